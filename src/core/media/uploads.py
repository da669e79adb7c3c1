"""
Per-file ingestion pipeline.

Every uploaded file is routed once, at entry, by its declared media type:

- convertible images go through EXIF extraction, conversion and variant
  persistence, followed by a detached sidecar metadata update;
- videos are size-checked and stored verbatim;
- anything else is stored verbatim.

Images are never stored in their original form. If conversion fails the
file fails; there is no code path that falls back to the original bytes.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Iterable, Optional

from .errors import (
    ConversionFailed,
    InvalidInput,
    MediaError,
    PayloadTooLarge,
    SidecarUpdateFailed,
    StoreWriteFailed,
)
from .folders import join_key, normalize_upload_folder
from .interfaces import ImageConverter, MetadataExtractor, MetadataSidecar, ObjectStore
from .models import (
    ConvertedVariant,
    FileKind,
    UploadedFile,
    UploadResult,
    UploadStage,
    WriteResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CONVERTIBLE_TYPES = frozenset({"image/jpeg", "image/heic", "image/heif"})
DEFAULT_MAX_VIDEO_SIZE_MB = 2000
CONVERTER_MARKER = "avif-converter-microservice"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def safe_filename(filename: str) -> str:
    """Reduce a client-supplied name to its final path component."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name.strip()
    if not name or name in (".", ".."):
        raise InvalidInput("File name is required")
    return name


class UploadOrchestrator:
    """
    Runs one file through its pipeline and reports what was persisted.

    The orchestrator holds no per-file state between calls. The only thing
    that outlives a call is the set of pending sidecar tasks, which are
    detached from the request and observed only through logging.
    """

    def __init__(
        self,
        store: ObjectStore,
        converter: ImageConverter,
        extractor: Optional[MetadataExtractor] = None,
        sidecar: Optional[MetadataSidecar] = None,
        convertible_types: Iterable[str] = DEFAULT_CONVERTIBLE_TYPES,
        max_video_size_mb: int = DEFAULT_MAX_VIDEO_SIZE_MB,
        max_file_size_mb: Optional[int] = None,
    ) -> None:
        self._store = store
        self._converter = converter
        self._extractor = extractor
        self._sidecar = sidecar
        self._convertible_types = frozenset(t.lower() for t in convertible_types)
        self._max_video_size_mb = max_video_size_mb
        self._max_file_size_mb = max_file_size_mb
        self._pending: set[asyncio.Task] = set()

    # -----------------------------------------------------------------------
    # Routing
    # -----------------------------------------------------------------------

    def classify(self, file: UploadedFile) -> FileKind:
        content_type = (file.content_type or "").lower()
        if content_type in self._convertible_types:
            return FileKind.IMAGE
        if content_type.startswith("video/"):
            return FileKind.VIDEO
        return FileKind.FILE

    async def process_file(
        self,
        file: UploadedFile,
        bucket: str,
        folder_path: str = "",
    ) -> list[UploadResult]:
        """
        Ingest one file and return one result per object written.

        Raises a MediaError subclass (or whatever the store raised) when the
        file fails; the batch coordinator turns that into a per-file error.
        """
        name = safe_filename(file.filename)
        kind = self.classify(file)

        logger.debug(
            "Processing file",
            extra={
                "file_name": name,
                "content_type": file.content_type,
                "size_bytes": file.size,
                "kind": kind.value,
            }
        )

        # videos are checked against their own ceiling only
        if kind is FileKind.VIDEO:
            if file.size_mb > self._max_video_size_mb:
                raise PayloadTooLarge(
                    f"Video file too large: {file.size_mb:.2f}MB. "
                    f"Maximum allowed: {self._max_video_size_mb}MB"
                )
        elif self._max_file_size_mb is not None and file.size_mb > self._max_file_size_mb:
            raise PayloadTooLarge(
                f"File too large: {file.size_mb:.2f}MB. "
                f"Maximum allowed: {self._max_file_size_mb}MB"
            )

        folder_path = normalize_upload_folder(folder_path)

        if kind is FileKind.IMAGE:
            return await self._process_image(file, name, bucket, folder_path)

        return [await self._persist_original(file, name, kind, bucket, folder_path)]

    # -----------------------------------------------------------------------
    # Direct persist (non-convertible types)
    # -----------------------------------------------------------------------

    async def _persist_original(
        self,
        file: UploadedFile,
        name: str,
        kind: FileKind,
        bucket: str,
        folder_path: str,
    ) -> UploadResult:
        key = join_key(folder_path, name)
        content_type = file.content_type or (
            "video/quicktime" if kind is FileKind.VIDEO else "application/octet-stream"
        )
        tags = {
            "original-name": name,
            "upload-date": _utc_now(),
        }
        if kind is FileKind.VIDEO:
            tags["file-type"] = "video"

        write = await self._put(bucket, key, file.data, content_type, tags)

        logger.info(
            "Stored file",
            extra={"object_name": key, "size_bytes": file.size, "etag": write.etag}
        )

        return UploadResult(
            original_name=name,
            object_name=key,
            size=file.size,
            content_type=content_type,
            etag=write.etag,
            version_id=write.version_id,
            file_type=kind,
        )

    # -----------------------------------------------------------------------
    # Image pipeline
    # -----------------------------------------------------------------------

    async def _process_image(
        self,
        file: UploadedFile,
        name: str,
        bucket: str,
        folder_path: str,
    ) -> list[UploadResult]:
        stage = UploadStage.RECEIVED
        try:
            extracted = self._extract_metadata(file, name)
            stage = UploadStage.METADATA_EXTRACTED
            self._log_stage(name, stage)

            variants = await self._convert(file, name)
            stage = UploadStage.CONVERTED
            self._log_stage(name, stage, variants=len(variants))

            results = []
            for variant in variants:
                results.append(
                    await self._persist_variant(variant, name, bucket, folder_path)
                )
            stage = UploadStage.VARIANTS_PERSISTED
            self._log_stage(name, stage, variants=len(results))
        except Exception:
            logger.warning(
                "Image processing failed, original not stored",
                extra={
                    "file_name": name,
                    "stage": UploadStage.FAILED.value,
                    "last_completed_stage": stage.value,
                },
            )
            raise

        # The outcome is settled at this point; nothing below may change it.
        if extracted and results:
            self._schedule_sidecar_update(bucket, results[-1], extracted)
            self._log_stage(name, UploadStage.SIDECAR_TRIGGERED)

        self._log_stage(name, UploadStage.DONE)
        return results

    def _extract_metadata(self, file: UploadedFile, name: str) -> Optional[dict[str, Any]]:
        """Best effort: extraction problems never fail the file."""
        if self._extractor is None:
            return None
        try:
            return self._extractor.extract(file.data, name)
        except Exception as e:
            logger.info(
                "Metadata extraction failed, continuing without it",
                extra={"file_name": name, "error": str(e)}
            )
            return None

    async def _convert(self, file: UploadedFile, name: str) -> list[ConvertedVariant]:
        try:
            variants = await self._converter.convert(file.data, name, file.content_type)
        except ConversionFailed:
            raise
        except Exception as e:
            raise ConversionFailed(f"Conversion failed: {e}") from e

        if not variants:
            raise ConversionFailed("Conversion failed: no variants returned")

        return list(variants)

    async def _persist_variant(
        self,
        variant: ConvertedVariant,
        original_name: str,
        bucket: str,
        folder_path: str,
    ) -> UploadResult:
        key = join_key(folder_path, variant.filename)
        tags = {
            "original-name": original_name,
            "variant": variant.variant,
            "upload-date": _utc_now(),
            "converted-by": CONVERTER_MARKER,
        }

        write = await self._put(bucket, key, variant.data, variant.content_type, tags)

        logger.debug(
            "Stored variant",
            extra={
                "object_name": key,
                "variant": variant.variant,
                "size_bytes": variant.size,
                "etag": write.etag,
            }
        )

        return UploadResult(
            original_name=original_name,
            object_name=key,
            size=variant.size,
            content_type=variant.content_type,
            etag=write.etag,
            version_id=write.version_id,
            variant=variant.variant,
            file_type=FileKind.IMAGE,
        )

    async def _put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        tags: dict[str, str],
    ) -> WriteResult:
        try:
            return await self._store.put_object(
                bucket, key, data, len(data), content_type=content_type, metadata=tags
            )
        except MediaError:
            raise
        except Exception as e:
            raise StoreWriteFailed(f"Failed to store {key}: {e}") from e

    # -----------------------------------------------------------------------
    # Sidecar (fire-and-forget)
    # -----------------------------------------------------------------------

    def _schedule_sidecar_update(
        self,
        bucket: str,
        result: UploadResult,
        extracted: dict[str, Any],
    ) -> None:
        if self._sidecar is None:
            return

        task = asyncio.get_running_loop().create_task(
            self._update_sidecar(bucket, result, extracted)
        )
        self._pending.add(task)
        task.add_done_callback(self._on_sidecar_done)

    async def _update_sidecar(
        self,
        bucket: str,
        result: UploadResult,
        extracted: dict[str, Any],
    ) -> None:
        try:
            await self._sidecar.update_folder_metadata(
                bucket, result.object_name, extracted, result
            )
        except SidecarUpdateFailed:
            raise
        except Exception as e:
            raise SidecarUpdateFailed(
                f"Failed to update metadata for {result.object_name}: {e}"
            ) from e

    def _on_sidecar_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                "Sidecar metadata update failed",
                extra={"error": str(error)},
            )

    @property
    def pending_sidecar_updates(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for outstanding sidecar updates. Their errors are only logged."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _log_stage(self, name: str, stage: UploadStage, **context: Any) -> None:
        logger.debug(
            "Upload stage reached",
            extra={"file_name": name, "stage": stage.value, **context}
        )
