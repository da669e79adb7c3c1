"""
Media library logic.

Folder emulation over a flat object store, the per-file upload pipeline
and the batch coordinator that drives it.
"""

from .batch import BatchCoordinator
from .errors import (
    AlreadyExists,
    ConversionFailed,
    InvalidInput,
    InvalidPath,
    MediaError,
    NotFound,
    PayloadTooLarge,
    SidecarUpdateFailed,
    StoreWriteFailed,
)
from .folders import (
    FolderService,
    folder_prefix,
    join_key,
    normalize_folder_path,
    normalize_upload_folder,
)
from .models import (
    BatchResult,
    BatchStatus,
    ConvertedVariant,
    FileKind,
    UploadedFile,
    UploadFailure,
    UploadResult,
    UploadStage,
)
from .uploads import UploadOrchestrator

__all__ = [
    "AlreadyExists",
    "BatchCoordinator",
    "BatchResult",
    "BatchStatus",
    "ConversionFailed",
    "ConvertedVariant",
    "FileKind",
    "FolderService",
    "InvalidInput",
    "InvalidPath",
    "MediaError",
    "NotFound",
    "PayloadTooLarge",
    "SidecarUpdateFailed",
    "StoreWriteFailed",
    "UploadFailure",
    "UploadOrchestrator",
    "UploadResult",
    "UploadStage",
    "UploadedFile",
    "folder_prefix",
    "join_key",
    "normalize_folder_path",
    "normalize_upload_folder",
]
