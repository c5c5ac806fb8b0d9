from pydantic import BaseModel, Field
from typing import Any
from datetime import datetime
from models.experiments import VariantValue, utc_now

DEFAULT_EVENT = "conversion"


class ConversionEvent(BaseModel):
    """A conversion recorded against an existing assignment. Append-only."""
    id: str
    test_id: str
    user_id: str
    event: str = DEFAULT_EVENT
    variant: VariantValue = Field(..., description="Copied from the assignment, never re-derived.")
    assignment_id: str
    converted_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] | None = None


class ConversionCreate(BaseModel):
    """Schema for recording a conversion via POST /conversions."""
    assignment_id: str
    event: str = Field(default=DEFAULT_EVENT, min_length=1, description="Event label (e.g., 'signup', 'purchase').")
    metadata: dict[str, Any] | None = None
