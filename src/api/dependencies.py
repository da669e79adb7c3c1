"""
FastAPI dependency injection.

Dependencies provide the object store, converter and media services to
route handlers. Routes never build their own collaborators, so tests can
swap any of them through `app.dependency_overrides`.

The object store, converter and orchestrator are process-wide: the mock
store has to keep its contents between requests, and the orchestrator
owns the pending sidecar tasks that are drained on shutdown.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.media.batch import BatchCoordinator
from ..core.media.folders import FolderService
from ..core.media.interfaces import ImageConverter, ObjectStore
from ..core.media.uploads import UploadOrchestrator
from ..infrastructure.converter.client import ConverterConfig, create_image_converter
from ..infrastructure.metadata.exif import PillowMetadataExtractor
from ..infrastructure.metadata.sidecar import ObjectStoreMetadataSidecar
from ..infrastructure.storage.client import StorageConfig, create_object_store

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared instances, created on first use
_object_store: Optional[ObjectStore] = None
_image_converter: Optional[ImageConverter] = None
_upload_orchestrator: Optional[UploadOrchestrator] = None


def reset_services() -> None:
    """Forget the shared instances. Used by tests and on shutdown."""
    global _object_store, _image_converter, _upload_orchestrator
    _object_store = None
    _image_converter = None
    _upload_orchestrator = None


def current_orchestrator() -> Optional[UploadOrchestrator]:
    return _upload_orchestrator


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


async def require_admin(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: Annotated[str, Depends(verify_api_key)],
) -> str:
    """Allow only admin keys through (bucket and folder management)."""
    if api_key not in settings.admin_api_keys_list:
        logger.warning(
            "Admin operation refused",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return api_key


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_object_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStore:
    """Provide the shared object store (S3 or in-memory)."""
    global _object_store

    if _object_store is None:
        if settings.s3_mock_mode:
            _object_store = create_object_store(mock_mode=True)
            logger.info("Created shared mock object store")
        else:
            config = StorageConfig(
                access_key_id=settings.s3_access_key_id,
                secret_access_key=settings.s3_secret_access_key,
                endpoint_url=settings.s3_endpoint_url,
                region=settings.s3_region,
            )
            _object_store = create_object_store(config=config)

    return _object_store


def get_image_converter(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ImageConverter:
    """Provide the converter client (HTTP or mock)."""
    global _image_converter

    if _image_converter is None:
        if settings.converter_mock_mode:
            _image_converter = create_image_converter(mock_mode=True)
        else:
            config = ConverterConfig(
                base_url=settings.converter_url,
                timeout_seconds=settings.converter_timeout_seconds,
                health_timeout_seconds=settings.converter_health_timeout_seconds,
            )
            _image_converter = create_image_converter(config=config)

    return _image_converter


def get_folder_service(
    store: Annotated[ObjectStore, Depends(get_object_store)],
) -> FolderService:
    return FolderService(store)


def get_upload_orchestrator(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    converter: Annotated[ImageConverter, Depends(get_image_converter)],
) -> UploadOrchestrator:
    global _upload_orchestrator

    if _upload_orchestrator is None:
        _upload_orchestrator = UploadOrchestrator(
            store=store,
            converter=converter,
            extractor=PillowMetadataExtractor(),
            sidecar=ObjectStoreMetadataSidecar(store, settings.metadata_sidecar_name),
            convertible_types=settings.convertible_image_types_list,
            max_video_size_mb=settings.max_video_size_mb,
            max_file_size_mb=settings.max_upload_size_mb,
        )
        logger.debug("Created upload orchestrator")

    return _upload_orchestrator


def get_batch_coordinator(
    store: Annotated[ObjectStore, Depends(get_object_store)],
    orchestrator: Annotated[UploadOrchestrator, Depends(get_upload_orchestrator)],
) -> BatchCoordinator:
    return BatchCoordinator(store, orchestrator)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
AdminUser = Annotated[str, Depends(require_admin)]
ObjectStoreDep = Annotated[ObjectStore, Depends(get_object_store)]
ImageConverterDep = Annotated[ImageConverter, Depends(get_image_converter)]
FolderServiceDep = Annotated[FolderService, Depends(get_folder_service)]
BatchCoordinatorDep = Annotated[BatchCoordinator, Depends(get_batch_coordinator)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
