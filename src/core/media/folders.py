"""
Folder emulation on top of a flat object store.

A folder is nothing more than a key prefix ending in "/". An otherwise
empty folder is kept observable by a small placeholder object at
`<prefix>.folderkeeper`. Folder deletion is defined as "delete every key
sharing this prefix".

There is no locking: two concurrent creators can both pass the existence
check and both write the placeholder, and the store decides (last write
wins). A bulk delete that fails halfway is surfaced as-is and not rolled
back.
"""

import json
import logging
import re
from datetime import datetime, timezone

from .errors import AlreadyExists, InvalidPath, NotFound
from .interfaces import ObjectStore
from .models import (
    PLACEHOLDER_NAME,
    FolderCreated,
    FolderDeleted,
    FolderEntry,
    FolderListing,
    ObjectEntry,
)

logger = logging.getLogger(__name__)

_SLASH_RUN = re.compile(r"/+")


def normalize_folder_path(path: str) -> str:
    """
    Canonicalize a user-supplied folder path.

    Strips surrounding whitespace and slashes and collapses slash runs:
    "//albums///2024/" -> "albums/2024". Raises InvalidPath if nothing is
    left or a segment is "." or "..".
    """
    clean = (path or "").strip()
    clean = _SLASH_RUN.sub("/", clean).strip("/")

    if not clean:
        raise InvalidPath("Invalid folder path")

    if any(segment in (".", "..") for segment in clean.split("/")):
        raise InvalidPath(f"Invalid folder path: {path!r}")

    return clean


def folder_prefix(path: str) -> str:
    """Return the canonical prefix ("albums/2024/") for a folder path."""
    return normalize_folder_path(path) + "/"


def normalize_upload_folder(path: str) -> str:
    """
    Canonical folder for an upload target, or "" for the bucket root.

    Same rules as normalize_folder_path, except that an empty path (or one
    made only of slashes) means the root instead of being an error.
    """
    if not _SLASH_RUN.sub("/", (path or "").strip()).strip("/"):
        return ""
    return normalize_folder_path(path)


def join_key(folder_path: str, filename: str) -> str:
    """Join an optional folder path and a filename into an object key."""
    folder = (folder_path or "").rstrip("/")
    if folder:
        return f"{folder}/{filename}"
    return filename


class FolderService:
    """
    Folder create/delete/list expressed as prefix operations.

    Invoked directly by the HTTP layer. Errors propagate to the caller;
    nothing here is retried.
    """

    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    async def _require_bucket(self, bucket: str) -> None:
        if not await self._store.bucket_exists(bucket):
            raise NotFound("Bucket not found")

    async def create_folder(self, bucket: str, path: str) -> FolderCreated:
        """
        Create an empty folder by writing its placeholder.

        Fails with AlreadyExists if any key (placeholder included) already
        starts with the folder's prefix.
        """
        folder_name = normalize_folder_path(path)
        prefix = f"{folder_name}/"

        await self._require_bucket(bucket)

        existing = await self._store.list_objects(bucket, prefix, recursive=True)
        if existing:
            raise AlreadyExists("Folder already exists")

        placeholder = json.dumps({
            "type": "folder_placeholder",
            "created": datetime.now(timezone.utc).isoformat(),
            "folderName": folder_name,
        }).encode("utf-8")

        await self._store.put_object(
            bucket,
            prefix + PLACEHOLDER_NAME,
            placeholder,
            len(placeholder),
            content_type="application/json",
            metadata={"type": "folder-placeholder"},
        )

        logger.info(
            "Created folder",
            extra={"bucket": bucket, "folder_path": prefix}
        )

        return FolderCreated(bucket=bucket, folder_path=prefix, folder_name=folder_name)

    async def delete_folder(self, bucket: str, path: str) -> FolderDeleted:
        """
        Delete a folder and everything under it in one bulk operation.

        Returns the number of keys removed, placeholder included.
        """
        prefix = folder_prefix(path)

        await self._require_bucket(bucket)

        entries = await self._store.list_objects(bucket, prefix, recursive=True)
        keys = [e.name for e in entries if isinstance(e, ObjectEntry)]

        if not keys:
            raise NotFound("Folder not found or already empty")

        removed = await self._store.remove_objects(bucket, keys)

        logger.info(
            "Deleted folder",
            extra={"bucket": bucket, "folder_path": prefix, "count": removed}
        )

        return FolderDeleted(bucket=bucket, folder_path=prefix, deleted_objects=removed)

    async def list_children(
        self,
        bucket: str,
        prefix: str = "",
        recursive: bool = False,
    ) -> FolderListing:
        """
        List what lives under a prefix.

        Non-recursive: one level, child folders as bare prefixes and child
        files as leaf keys. Recursive: every key below the prefix as a flat
        file list. Placeholders are hidden in both modes and the store's
        ordering is kept.
        """
        await self._require_bucket(bucket)

        entries = await self._store.list_objects(bucket, prefix, recursive=recursive)

        listing = FolderListing(bucket=bucket, prefix=prefix, recursive=recursive)
        for entry in entries:
            if isinstance(entry, FolderEntry):
                if not recursive:
                    listing.folders.append(entry)
            elif not entry.is_placeholder:
                listing.objects.append(entry)

        return listing
