from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from contextvars import ContextVar

import logging
import uuid

REQUEST_ID_HEADER = "X-Request-ID"

# Request ID of the request being served, read by the logging filter
request_id_context: ContextVar[str] = ContextVar("request_id", default="N/A")

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id (caller supplied or generated) for log correlation."""

    async def dispatch(self, request: Request, call_next):
        # Honor an upstream id, otherwise a short one is readable enough in logs
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())[:8]
        token = request_id_context.set(request_id)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.debug("%s %s -> %d", request.method, request.url.path, response.status_code)
            return response
        except Exception:
            logger.exception("Unhandled error during %s %s", request.method, request.url.path)
            raise
        finally:
            request_id_context.reset(token)
