from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

# Internal imports
from config import config
from api.experiment_routes import test_router
from api.events_routes import conversion_router
from services.errors import ConfigurationError, NotFoundError, StorageError

import contextlib
import logging
import middleware

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles startup and shutdown events for the application.
    Code before 'yield' runs on startup, code after it on shutdown.
    """
    if config.storage_backend == "sql":
        from data.database import create_tables
        logger.info("Application starting up: initializing database schema...")
        create_tables()
        logger.info("Database tables initialized successfully.")
    else:
        logger.info("Application starting up with %s storage.", config.storage_backend)

    yield

    logger.info("Application shutting down.")


# --- FastAPI App Initialization ---
app = FastAPI(
    lifespan=lifespan,
    title="Experiment Assignment API",
    version="1.0.0",
    description="Deterministic A/B test assignment, conversion tracking and per-variant results."
)

app.add_middleware(middleware.RequestIDMiddleware)

app.include_router(test_router)
app.include_router(conversion_router)


# --- Error Mapping ---

@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.info("configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(content={"status": "failed", "error": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(content={"status": "failed", "error": str(exc)}, status_code=status.HTTP_404_NOT_FOUND)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("storage error on %s: %s", request.url.path, exc)
    return JSONResponse(content={"status": "failed", "error": "storage unavailable"}, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


@app.get("/health")
def health_check():
    return JSONResponse(content={"status": "healthy"}, status_code=200)
