"""
Upload endpoint.

Accepts one or more files as multipart form data and hands them to the
batch coordinator. The HTTP status mirrors the batch outcome:

- 201: every file succeeded
- 207: some files succeeded, some failed
- 400: no file succeeded
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, UploadFile, status
from fastapi.responses import JSONResponse

from ...core.media.models import BatchResult, BatchStatus, UploadedFile
from ..dependencies import AuthenticatedUser, BatchCoordinatorDep
from .schemas import UploadData, UploadError, UploadedItem, UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_CODES = {
    BatchStatus.COMPLETE: status.HTTP_201_CREATED,
    BatchStatus.PARTIAL: status.HTTP_207_MULTI_STATUS,
    BatchStatus.FAILED: status.HTTP_400_BAD_REQUEST,
}


def build_upload_response(bucket: str, folder_path: str, batch: BatchResult) -> UploadResponse:
    response = UploadResponse(
        success=batch.success,
        status=batch.status.value,
        data=UploadData(
            bucket=bucket,
            folder_path=folder_path or "/",
            uploaded=[
                UploadedItem(
                    original_name=r.original_name,
                    object_name=r.object_name,
                    variant=r.variant,
                    size=r.size,
                    mimetype=r.content_type,
                    etag=r.etag,
                    version_id=r.version_id,
                    file_type=r.file_type.value,
                )
                for r in batch.results
            ],
            uploaded_count=len(batch.results),
            total_files=batch.total_files,
        ),
    )
    if batch.errors:
        response.errors = [UploadError(filename=e.filename, error=e.error) for e in batch.errors]
        response.error_count = len(batch.errors)
    return response


@router.post(
    "/{bucket_name}/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload one or more files",
    description="JPEG and HEIC images are converted to AVIF; other files are stored as-is.",
    responses={
        207: {"model": UploadResponse, "description": "Some files failed"},
        400: {"model": UploadResponse, "description": "No file succeeded"},
    },
)
async def upload_files(
    bucket_name: str,
    coordinator: BatchCoordinatorDep,
    api_key: AuthenticatedUser,
    files: Annotated[Optional[list[UploadFile]], File(description="Files to upload")] = None,
    folder_path: Annotated[str, Form(alias="folderPath")] = "",
) -> JSONResponse:
    received = []
    for upload in files or []:
        received.append(UploadedFile(
            filename=upload.filename or "",
            content_type=upload.content_type or "application/octet-stream",
            data=await upload.read(),
        ))

    logger.info(
        "Upload request received",
        extra={
            "bucket": bucket_name,
            "folder_path": folder_path or "/",
            "files": [f"{f.filename} ({f.size} bytes, {f.content_type})" for f in received],
        }
    )

    batch = await coordinator.process_batch(received, bucket_name, folder_path)
    response = build_upload_response(bucket_name, folder_path, batch)
    status_code = _STATUS_CODES[batch.status]

    logger.info(
        "Upload request completed",
        extra={
            "status_code": status_code,
            "uploaded": len(batch.results),
            "failed": batch.failed_files,
            "total_files": batch.total_files,
        }
    )

    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
    )
