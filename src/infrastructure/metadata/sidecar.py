"""
Per-folder JSON metadata sidecar kept in the object store.

Each folder that receives converted images gets one `metadata.json` (name
configurable) mapping stored file names to their upload details and EXIF
fields. Updates are read-modify-write, serialized per sidecar key within one
process. Writers in other processes can still overwrite each other's entries.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

from ...core.media.errors import NotFound, SidecarUpdateFailed
from ...core.media.folders import join_key
from ...core.media.interfaces import ObjectStore
from ...core.media.models import UploadResult

logger = logging.getLogger(__name__)

DEFAULT_SIDECAR_NAME = "metadata.json"


def sidecar_key(result_key: str, sidecar_name: str = DEFAULT_SIDECAR_NAME) -> str:
    """Key of the sidecar for the folder holding `result_key`."""
    folder = result_key.rsplit("/", 1)[0] if "/" in result_key else ""
    return join_key(folder, sidecar_name)


class ObjectStoreMetadataSidecar:
    """MetadataSidecar that stores the JSON document next to the images."""

    def __init__(self, store: ObjectStore, sidecar_name: str = DEFAULT_SIDECAR_NAME) -> None:
        self._store = store
        self._sidecar_name = sidecar_name
        self._locks: dict[str, asyncio.Lock] = {}

    async def _load(self, bucket: str, key: str, folder: str) -> dict[str, Any]:
        try:
            stored = await self._store.get_object(bucket, key)
        except NotFound:
            return {"folder": folder or "/", "images": {}}

        document = json.loads(stored.data.decode("utf-8"))
        if not isinstance(document, dict):
            raise SidecarUpdateFailed(f"Sidecar {key} is not a JSON object")
        document.setdefault("images", {})
        return document

    async def update_folder_metadata(
        self,
        bucket: str,
        result_key: str,
        extracted: dict[str, Any],
        upload_result: UploadResult,
    ) -> None:
        key = sidecar_key(result_key, self._sidecar_name)
        folder = result_key.rsplit("/", 1)[0] if "/" in result_key else ""
        now = datetime.now(timezone.utc).isoformat()

        try:
            async with self._locks.setdefault(f"{bucket}/{key}", asyncio.Lock()):
                document = await self._load(bucket, key, folder)

                file_name = result_key.rsplit("/", 1)[-1]
                document["images"][file_name] = {
                    "originalName": upload_result.original_name,
                    "objectName": upload_result.object_name,
                    "size": upload_result.size,
                    "mimetype": upload_result.content_type,
                    "etag": upload_result.etag,
                    "uploaded": now,
                    "exif": extracted,
                }
                document["updated"] = now

                body = json.dumps(document, indent=2, default=str).encode("utf-8")
                await self._store.put_object(
                    bucket, key, body, len(body), content_type="application/json"
                )
        except SidecarUpdateFailed:
            raise
        except Exception as e:
            raise SidecarUpdateFailed(
                f"Failed to update metadata for {result_key}: {e}"
            ) from e

        logger.debug(
            "Updated folder metadata",
            extra={"bucket": bucket, "sidecar": key, "image_count": len(document["images"])}
        )
