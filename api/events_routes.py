from fastapi import APIRouter, status

from models.events import ConversionCreate, ConversionEvent
from services import assignment
from data.storage import StorageAdapter
from api.depends import CLIENT_AUTH, STORAGE_DEPENDENCY

import logging

logger = logging.getLogger(__name__)

conversion_router = APIRouter(
    prefix="/conversions",
    tags=["conversions"],
    dependencies=[CLIENT_AUTH],
)


# POST /conversions
@conversion_router.post("", response_model=ConversionEvent, status_code=status.HTTP_201_CREATED)
async def record_conversion_route(conversion_data: ConversionCreate, storage: StorageAdapter = STORAGE_DEPENDENCY):
    """
    Record a conversion (signup, purchase, ...) against an assignment.
    The variant is copied from the stored assignment; an unknown assignment is a 404.
    """
    return await assignment.convert_assignment(
        storage,
        conversion_data.assignment_id,
        event=conversion_data.event,
        metadata=conversion_data.metadata,
    )
