"""
Bucket and object endpoints.

Listing and downloading are public so albums can be browsed without a
key; creating buckets needs an admin key.
"""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Query, Response, status

from ...core.media.errors import AlreadyExists, InvalidInput, NotFound
from ..dependencies import AdminUser, FolderServiceDep, ObjectStoreDep
from .schemas import ApiResponse, BucketItem, CreateBucketRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse,
    summary="List buckets",
)
async def list_buckets(store: ObjectStoreDep) -> ApiResponse:
    buckets = await store.list_buckets()
    return ApiResponse(
        data=[BucketItem(name=b.name, creation_date=b.creation_date) for b in buckets],
        count=len(buckets),
    )


@router.post(
    "",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a bucket",
)
async def create_bucket(
    request: CreateBucketRequest,
    store: ObjectStoreDep,
    admin: AdminUser,
) -> ApiResponse:
    if not request.bucket_name:
        raise InvalidInput("Bucket name is required")

    if await store.bucket_exists(request.bucket_name):
        raise AlreadyExists("Bucket already exists")

    await store.make_bucket(request.bucket_name, request.region)

    logger.info(
        "Bucket created",
        extra={"bucket": request.bucket_name, "region": request.region}
    )

    return ApiResponse(
        message=f"Bucket '{request.bucket_name}' created successfully",
        data={"bucketName": request.bucket_name, "region": request.region},
    )


@router.get(
    "/{bucket_name}/objects",
    response_model=ApiResponse,
    summary="List objects and folders under a prefix",
)
async def list_objects(
    bucket_name: str,
    folders: FolderServiceDep,
    prefix: str = Query(default="", description="Key prefix to list under"),
    recursive: bool = Query(default=False, description="List every key below the prefix"),
) -> ApiResponse:
    listing = await folders.list_children(bucket_name, prefix, recursive)
    return ApiResponse(data=listing.to_dict())


@router.get(
    "/{bucket_name}/download",
    summary="Download one object",
    responses={200: {"content": {"application/octet-stream": {}}}},
)
async def download_object(
    bucket_name: str,
    store: ObjectStoreDep,
    object_name: str = Query(default="", alias="object", description="Object key"),
) -> Response:
    if not object_name:
        raise InvalidInput("Object name is required")

    if not await store.bucket_exists(bucket_name):
        raise NotFound("Bucket not found")

    try:
        stored = await store.get_object(bucket_name, object_name)
    except NotFound:
        raise NotFound("Object not found") from None

    stat = stored.stat
    filename = object_name.rsplit("/", 1)[-1]
    headers = {
        "Content-Disposition": f"inline; filename*=UTF-8''{quote(filename)}",
    }
    if stat.etag:
        headers["ETag"] = f'"{stat.etag}"'
    if stat.last_modified:
        headers["Last-Modified"] = stat.last_modified.strftime("%a, %d %b %Y %H:%M:%S GMT")

    return Response(content=stored.data, media_type=stat.content_type, headers=headers)
