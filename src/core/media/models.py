"""
Domain models for the media library.

These models describe buckets, folders, uploaded files and the results of
ingesting them. They have no dependencies on FastAPI, boto3 or httpx; the
infrastructure layer translates to and from these types.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


PLACEHOLDER_NAME = ".folderkeeper"


class UploadStage(Enum):
    """
    Stages a single file moves through during ingestion.

    FAILED is terminal and reachable from any stage before DONE.
    """
    RECEIVED = "received"
    METADATA_EXTRACTED = "metadata_extracted"
    CONVERTED = "converted"
    VARIANTS_PERSISTED = "variants_persisted"
    SIDECAR_TRIGGERED = "sidecar_triggered"
    DONE = "done"
    FAILED = "failed"


class FileKind(Enum):
    """How an uploaded file is routed at pipeline entry."""
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"


class BatchStatus(Enum):
    """Three-way outcome of a batch upload."""
    COMPLETE = "complete"  # every file succeeded
    PARTIAL = "partial"    # some files succeeded, some failed
    FAILED = "failed"      # no file succeeded


@dataclass
class UploadedFile:
    """
    A file received from a client, held whole in memory.

    Lives for the duration of one request. Image types are never persisted
    in this form, only their converted variants are.
    """
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def size_mb(self) -> float:
        return self.size / 1024 / 1024


@dataclass
class ConvertedVariant:
    """One converted representation of an uploaded image."""
    filename: str
    data: bytes
    content_type: str = "image/avif"
    variant: str = "full"

    def __post_init__(self) -> None:
        if not self.filename:
            raise ValueError("Variant filename cannot be empty")
        if not self.data:
            raise ValueError("Variant content cannot be empty")

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadResult:
    """
    Record of one object written to the store.

    Produced once per persisted variant (or once for a direct-persist file).
    Never produced for a file that failed.
    """
    original_name: str
    object_name: str
    size: int
    content_type: str
    etag: str
    version_id: Optional[str] = None
    variant: Optional[str] = None
    file_type: FileKind = FileKind.FILE

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalName": self.original_name,
            "objectName": self.object_name,
            "variant": self.variant,
            "size": self.size,
            "mimetype": self.content_type,
            "etag": self.etag,
            "versionId": self.version_id,
            "fileType": self.file_type.value,
        }


@dataclass
class UploadFailure:
    """A file that failed somewhere in its pipeline."""
    filename: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"filename": self.filename, "error": self.error}


@dataclass
class BatchResult:
    """
    Aggregate outcome of a batch upload.

    A file contributes zero or more entries to `results` or exactly one
    entry to `errors`, never both.
    """
    total_files: int = 0
    results: list[UploadResult] = field(default_factory=list)
    errors: list[UploadFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def failed_files(self) -> int:
        return len(self.errors)

    @property
    def succeeded_files(self) -> int:
        return self.total_files - len(self.errors)

    @property
    def status(self) -> BatchStatus:
        if not self.errors:
            return BatchStatus.COMPLETE
        if self.succeeded_files > 0:
            return BatchStatus.PARTIAL
        return BatchStatus.FAILED


# ---------------------------------------------------------------------------
# Object store values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BucketInfo:
    name: str
    creation_date: Optional[datetime] = None


@dataclass(frozen=True)
class WriteResult:
    """What the store reports back after a put."""
    etag: str
    version_id: Optional[str] = None


@dataclass(frozen=True)
class ObjectEntry:
    """A leaf key returned by a listing."""
    name: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return self.name == PLACEHOLDER_NAME or self.name.endswith("/" + PLACEHOLDER_NAME)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "lastModified": self.last_modified.isoformat() if self.last_modified else None,
            "etag": self.etag,
            "type": "file",
        }


@dataclass(frozen=True)
class FolderEntry:
    """A common prefix returned by a delimited listing."""
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "type": "folder"}


ListingEntry = Union[ObjectEntry, FolderEntry]


@dataclass
class ObjectStat:
    key: str
    size: int
    content_type: str = "application/octet-stream"
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class StoredObject:
    """Object content together with its stat."""
    stat: ObjectStat
    data: bytes


# ---------------------------------------------------------------------------
# Folder results
# ---------------------------------------------------------------------------

@dataclass
class FolderListing:
    bucket: str
    prefix: str
    recursive: bool
    folders: list[FolderEntry] = field(default_factory=list)
    objects: list[ObjectEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "prefix": self.prefix or "/",
            "recursive": self.recursive,
            "folders": [f.to_dict() for f in self.folders],
            "objects": [o.to_dict() for o in self.objects],
            "totalFolders": len(self.folders),
            "totalObjects": len(self.objects),
        }


@dataclass(frozen=True)
class FolderCreated:
    bucket: str
    folder_path: str  # canonical prefix, ends with "/"
    folder_name: str  # normalized path without the trailing slash


@dataclass(frozen=True)
class FolderDeleted:
    bucket: str
    folder_path: str
    deleted_objects: int
