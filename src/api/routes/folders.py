"""
Folder management endpoints (admin only).

Folders are prefixes in a flat key space; see core.media.folders.
"""

import logging

from fastapi import APIRouter, status

from ..dependencies import AdminUser, FolderServiceDep
from .schemas import ApiResponse, FolderRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{bucket_name}/folders",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an empty folder",
    responses={409: {"description": "Folder already exists"}},
)
async def create_folder(
    bucket_name: str,
    request: FolderRequest,
    folders: FolderServiceDep,
    admin: AdminUser,
) -> ApiResponse:
    created = await folders.create_folder(bucket_name, request.folder_path)

    return ApiResponse(
        message=f"Folder '{created.folder_name}' created successfully",
        data={
            "bucket": created.bucket,
            "folderPath": created.folder_path,
            "folderName": created.folder_name,
        },
    )


@router.delete(
    "/{bucket_name}/folders",
    response_model=ApiResponse,
    summary="Delete a folder and everything in it",
    responses={404: {"description": "Folder not found or already empty"}},
)
async def delete_folder(
    bucket_name: str,
    request: FolderRequest,
    folders: FolderServiceDep,
    admin: AdminUser,
) -> ApiResponse:
    deleted = await folders.delete_folder(bucket_name, request.folder_path)

    return ApiResponse(
        message=(
            f"Folder '{deleted.folder_path}' and {deleted.deleted_objects} "
            "objects deleted successfully"
        ),
        data={
            "bucket": deleted.bucket,
            "folderPath": deleted.folder_path,
            "deletedObjects": deleted.deleted_objects,
        },
    )
