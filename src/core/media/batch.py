"""
Batch upload coordination.

Files are processed strictly one after another, in the order received.
Each file runs inside its own failure boundary: whatever goes wrong for
one file becomes an entry in the error list and the next file proceeds.
"""

import logging
from typing import Sequence

from .errors import InvalidInput, NotFound
from .folders import normalize_upload_folder
from .interfaces import ObjectStore
from .models import BatchResult, UploadedFile, UploadFailure
from .uploads import UploadOrchestrator

logger = logging.getLogger(__name__)


class BatchCoordinator:
    """Drives the orchestrator across a list of files."""

    def __init__(self, store: ObjectStore, orchestrator: UploadOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator

    async def process_batch(
        self,
        files: Sequence[UploadedFile],
        bucket: str,
        folder_path: str = "",
    ) -> BatchResult:
        """
        Upload every file and return the aggregate result.

        Only boundary validation raises (no files, no bucket, an invalid
        folder path, unknown bucket). Per-file failures never escape.
        """
        if not files:
            raise InvalidInput("No files provided")
        if not bucket:
            raise InvalidInput("Bucket name is required")
        folder_path = normalize_upload_folder(folder_path)
        if not await self._store.bucket_exists(bucket):
            raise NotFound("Bucket not found")

        batch = BatchResult(total_files=len(files))

        logger.info(
            "Batch upload started",
            extra={"bucket": bucket, "folder_path": folder_path or "/", "files": len(files)}
        )

        for index, file in enumerate(files, start=1):
            try:
                results = await self._orchestrator.process_file(file, bucket, folder_path)
            except Exception as e:
                logger.warning(
                    "File upload failed",
                    extra={
                        "position": index,
                        "file_name": file.filename,
                        "error": str(e),
                    }
                )
                batch.errors.append(UploadFailure(filename=file.filename, error=str(e)))
                continue

            batch.results.extend(results)
            logger.debug(
                "File upload succeeded",
                extra={"position": index, "file_name": file.filename, "objects": len(results)}
            )

        logger.info(
            "Batch upload finished",
            extra={
                "bucket": bucket,
                "status": batch.status.value,
                "objects": len(batch.results),
                "failed_files": batch.failed_files,
            }
        )

        return batch
