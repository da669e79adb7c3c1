"""
FastAPI application entry point.

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.dependencies import current_orchestrator, reset_services
from .api.routes import buckets, folders, health, uploads
from .config.settings import get_settings
from .core.media.errors import (
    AlreadyExists,
    ConversionFailed,
    InvalidInput,
    MediaError,
    NotFound,
    PayloadTooLarge,
    StoreWriteFailed,
)

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)

# Most specific first; InvalidPath is covered by InvalidInput.
ERROR_STATUS_CODES: list[tuple[type[MediaError], int]] = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (AlreadyExists, status.HTTP_409_CONFLICT),
    (InvalidInput, status.HTTP_400_BAD_REQUEST),
    (PayloadTooLarge, status.HTTP_413_CONTENT_TOO_LARGE),
    (ConversionFailed, status.HTTP_502_BAD_GATEWAY),
    (StoreWriteFailed, status.HTTP_502_BAD_GATEWAY),
]


def status_code_for(exc: MediaError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    settings = get_settings()

    logger.info(
        "PhotoVault API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "storage": settings.s3_mock_mode,
                "converter": settings.converter_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    # Shutdown: let detached metadata updates finish before the loop goes away
    orchestrator = current_orchestrator()
    if orchestrator is not None and orchestrator.pending_sidecar_updates:
        logger.info(
            "Waiting for pending metadata updates",
            extra={"pending": orchestrator.pending_sidecar_updates}
        )
        await orchestrator.drain()
    reset_services()

    logger.info("PhotoVault API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Called once at import time for uvicorn, and again by tests that need
    an app built from different settings.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Photo and video library on top of S3-compatible object storage.

        ## Features

        - Buckets and folders (folders are key prefixes; empty folders
          are kept alive by a hidden placeholder object)
        - Batch uploads: JPEG and HEIC images are converted to AVIF by
          an external converter, everything else is stored as-is
        - Per-folder `metadata.json` with EXIF data of uploaded images

        ## Authentication

        Uploads need an API key in the `X-API-Key` header. Creating
        buckets and folders needs an admin key. Listing and downloading
        are public.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        buckets.router,
        prefix="/buckets",
        tags=["Buckets"],
    )

    app.include_router(
        folders.router,
        prefix="/buckets",
        tags=["Folders"],
    )

    app.include_router(
        uploads.router,
        prefix="/buckets",
        tags=["Uploads"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "PhotoVault API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(MediaError)
    async def media_error_handler(request: Request, exc: MediaError):
        code = status_code_for(exc)
        log = logger.error if code >= 500 else logger.info
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_type": type(exc).__name__,
                "error": exc.message,
                "status_code": code,
            }
        )
        return JSONResponse(
            status_code=code,
            content={"success": False, "error": exc.message},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Logs the full error server-side and returns a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Internal server error. Please contact support if this persists.",
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
