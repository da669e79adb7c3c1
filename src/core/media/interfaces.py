"""
Protocols for the collaborators the media core depends on.

The core never imports boto3, httpx or Pillow. Whatever satisfies these
protocols can be injected, which is how the mock implementations and the
test doubles plug in.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from .models import (
    BucketInfo,
    ConvertedVariant,
    ListingEntry,
    ObjectStat,
    StoredObject,
    UploadResult,
    WriteResult,
)


class ObjectStore(Protocol):
    """
    Flat bucket/key blob store.

    Keys containing "/" are the only hierarchy mechanism; the store itself
    knows nothing about folders.
    """

    async def bucket_exists(self, bucket: str) -> bool:
        ...

    async def make_bucket(self, bucket: str, region: Optional[str] = None) -> None:
        ...

    async def list_buckets(self) -> list[BucketInfo]:
        ...

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        length: int,
        content_type: str = "application/octet-stream",
        metadata: Optional[dict[str, str]] = None,
    ) -> WriteResult:
        """Write an object and return its etag/version."""
        ...

    async def get_object(self, bucket: str, key: str) -> StoredObject:
        ...

    async def stat_object(self, bucket: str, key: str) -> ObjectStat:
        ...

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        recursive: bool = False,
        delimiter: str = "/",
    ) -> list[ListingEntry]:
        """
        List keys under a prefix.

        Non-recursive listings group by `delimiter` and return FolderEntry
        values for common prefixes. Order is whatever the store returns.
        """
        ...

    async def remove_objects(self, bucket: str, keys: list[str]) -> int:
        """Bulk delete. Returns the number of keys removed."""
        ...


@dataclass
class ConverterHealth:
    ok: bool
    detail: Any = None


class ImageConverter(Protocol):
    """Client for the image conversion service."""

    async def health_check(self) -> ConverterHealth:
        ...

    async def convert(
        self,
        data: bytes,
        original_name: str,
        content_type: str,
    ) -> list[ConvertedVariant]:
        """
        Convert an image and return its variants.

        Raises ConversionFailed on any failure; never returns partial data.
        """
        ...


class MetadataExtractor(Protocol):
    """Reads embedded capture metadata (EXIF) from raw image bytes."""

    def extract(self, data: bytes, filename: str) -> Optional[dict[str, Any]]:
        ...


class MetadataSidecar(Protocol):
    """Keeps the per-folder JSON metadata file up to date."""

    async def update_folder_metadata(
        self,
        bucket: str,
        result_key: str,
        extracted: dict[str, Any],
        upload_result: UploadResult,
    ) -> None:
        ...
