"""
Object store gateway for S3-compatible storage.

Works against MinIO, Cloudflare R2 or AWS S3 through boto3. The gateway is
deliberately flat: buckets and keys only. Folder semantics live in the
core (see core.media.folders).

Mock mode keeps buckets in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote, unquote

from ...core.media.errors import AlreadyExists, NotFound, StoreWriteFailed
from ...core.media.interfaces import ObjectStore
from ...core.media.models import (
    BucketInfo,
    FolderEntry,
    ListingEntry,
    ObjectEntry,
    ObjectStat,
    StoredObject,
    WriteResult,
)

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}
_BUCKET_EXISTS_CODES = {"BucketAlreadyExists", "BucketAlreadyOwnedByYou"}


class StorageError(Exception):
    """Raised when storage operations fail for reasons the core does not model."""
    pass


@dataclass
class StorageConfig:
    """Configuration for an S3-compatible endpoint."""
    access_key_id: str
    secret_access_key: str
    endpoint_url: Optional[str] = None
    region: str = "us-east-1"
    connect_timeout: int = 60
    read_timeout: int = 60


def _error_code(error: Exception) -> str:
    response = getattr(error, "response", None) or {}
    return str(response.get("Error", {}).get("Code", "Unknown"))


def _clean_etag(etag: Optional[str]) -> str:
    return (etag or "").strip('"')


class S3ObjectStore:
    """
    boto3-backed object store.

    boto3 is synchronous, so every call is pushed to a worker thread with
    asyncio.to_thread. The calls block until the transport's own timeouts
    fire; there is no retry on top of what botocore does itself.
    """

    def __init__(self, config: StorageConfig) -> None:
        try:
            import boto3
            from botocore.config import Config
            from botocore.exceptions import ClientError
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config
        self._client_error = ClientError

        # MinIO and R2 both want v4 signatures and path-style addressing
        boto_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
        )

        kwargs = {
            "aws_access_key_id": config.access_key_id or None,
            "aws_secret_access_key": config.secret_access_key or None,
            "region_name": config.region,
            "config": boto_config,
        }
        if config.endpoint_url:
            kwargs["endpoint_url"] = config.endpoint_url

        self._s3_client = boto3.client("s3", **kwargs)

        logger.info(
            "Initialized S3 object store",
            extra={"endpoint": config.endpoint_url or "aws", "region": config.region}
        )

    async def _call(self, operation: str, **params):
        method = getattr(self._s3_client, operation)
        return await asyncio.to_thread(method, **params)

    def _translate(self, error: Exception, operation: str, target: str) -> Exception:
        """Map a botocore error to the core taxonomy, logging the original."""
        code = _error_code(error)
        logger.error(
            "S3 operation failed",
            extra={"operation": operation, "target": target, "code": code, "error": str(error)}
        )
        if code in _NOT_FOUND_CODES:
            return NotFound(f"Not found: {target}")
        if operation in ("put_object", "delete_objects"):
            return StoreWriteFailed(f"S3 {operation} failed for {target}: {code}")
        return StorageError(f"S3 {operation} failed for {target}: {code}")

    # -----------------------------------------------------------------------
    # Buckets
    # -----------------------------------------------------------------------

    async def bucket_exists(self, bucket: str) -> bool:
        try:
            await self._call("head_bucket", Bucket=bucket)
            return True
        except self._client_error as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise self._translate(e, "head_bucket", bucket) from e

    async def make_bucket(self, bucket: str, region: Optional[str] = None) -> None:
        params = {"Bucket": bucket}
        region = region or self._config.region
        # us-east-1 is the implicit default and must not be sent explicitly
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            await self._call("create_bucket", **params)
        except self._client_error as e:
            if _error_code(e) in _BUCKET_EXISTS_CODES:
                raise AlreadyExists("Bucket already exists") from e
            raise self._translate(e, "create_bucket", bucket) from e

        logger.info("Created bucket", extra={"bucket": bucket, "region": region})

    async def list_buckets(self) -> list[BucketInfo]:
        try:
            response = await self._call("list_buckets")
        except self._client_error as e:
            raise self._translate(e, "list_buckets", "*") from e

        return [
            BucketInfo(name=b["Name"], creation_date=b.get("CreationDate"))
            for b in response.get("Buckets", [])
        ]

    # -----------------------------------------------------------------------
    # Objects
    # -----------------------------------------------------------------------

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        length: int,
        content_type: str = "application/octet-stream",
        metadata: Optional[dict[str, str]] = None,
    ) -> WriteResult:
        # user metadata travels as HTTP headers, so it has to be ASCII
        encoded_metadata = {
            k: quote(str(v), safe=" ._-:/@+") for k, v in (metadata or {}).items()
        }

        try:
            response = await self._call(
                "put_object",
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentLength=length,
                ContentType=content_type,
                Metadata=encoded_metadata,
            )
        except self._client_error as e:
            raise self._translate(e, "put_object", f"{bucket}/{key}") from e

        logger.debug(
            "Put object",
            extra={"bucket": bucket, "key": key, "size_bytes": length}
        )

        return WriteResult(
            etag=_clean_etag(response.get("ETag")),
            version_id=response.get("VersionId"),
        )

    async def get_object(self, bucket: str, key: str) -> StoredObject:
        try:
            response = await self._call("get_object", Bucket=bucket, Key=key)
            data = await asyncio.to_thread(response["Body"].read)
        except self._client_error as e:
            raise self._translate(e, "get_object", f"{bucket}/{key}") from e

        return StoredObject(stat=self._to_stat(key, response), data=data)

    async def stat_object(self, bucket: str, key: str) -> ObjectStat:
        try:
            response = await self._call("head_object", Bucket=bucket, Key=key)
        except self._client_error as e:
            raise self._translate(e, "head_object", f"{bucket}/{key}") from e

        return self._to_stat(key, response)

    def _to_stat(self, key: str, response: dict) -> ObjectStat:
        return ObjectStat(
            key=key,
            size=int(response.get("ContentLength", 0)),
            content_type=response.get("ContentType") or "application/octet-stream",
            etag=_clean_etag(response.get("ETag")),
            last_modified=response.get("LastModified"),
            metadata={k: unquote(v) for k, v in response.get("Metadata", {}).items()},
        )

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        recursive: bool = False,
        delimiter: str = "/",
    ) -> list[ListingEntry]:
        params = {"Bucket": bucket, "Prefix": prefix}
        if not recursive:
            params["Delimiter"] = delimiter

        def _collect() -> list[ListingEntry]:
            entries: list[ListingEntry] = []
            paginator = self._s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for common in page.get("CommonPrefixes", []):
                    entries.append(FolderEntry(name=common["Prefix"]))
                for obj in page.get("Contents", []):
                    entries.append(ObjectEntry(
                        name=obj["Key"],
                        size=int(obj.get("Size", 0)),
                        last_modified=obj.get("LastModified"),
                        etag=_clean_etag(obj.get("ETag")),
                    ))
            return entries

        try:
            return await asyncio.to_thread(_collect)
        except self._client_error as e:
            raise self._translate(e, "list_objects_v2", f"{bucket}/{prefix}") from e

    async def remove_objects(self, bucket: str, keys: list[str]) -> int:
        """
        Delete keys in batches of DELETE_BATCH_SIZE.

        A batch that reports per-key errors raises StoreWriteFailed. Keys
        deleted by earlier batches stay deleted.
        """
        removed = 0
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            chunk = keys[start:start + DELETE_BATCH_SIZE]
            try:
                response = await self._call(
                    "delete_objects",
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": k} for k in chunk], "Quiet": True},
                )
            except self._client_error as e:
                raise self._translate(e, "delete_objects", bucket) from e

            errors = response.get("Errors", [])
            if errors:
                first = errors[0]
                logger.error(
                    "Bulk delete partially failed",
                    extra={"bucket": bucket, "failed": len(errors), "removed_so_far": removed}
                )
                raise StoreWriteFailed(
                    f"Failed to delete {len(errors)} objects "
                    f"(first: {first.get('Key')}: {first.get('Code')})"
                )
            removed += len(chunk)

        logger.info("Removed objects", extra={"bucket": bucket, "count": removed})
        return removed


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _MockObject:
    data: bytes
    content_type: str
    metadata: dict[str, str]
    etag: str
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MockObjectStore:
    """
    In-memory object store.

    Keys are listed in lexicographic order, matching S3. Not suitable for
    production; used in mock mode and throughout the tests.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, _MockObject]] = {}
        self._bucket_dates: dict[str, datetime] = {}
        self.put_count = 0
        logger.info("Initialized mock object store (in-memory)")

    def _bucket(self, bucket: str) -> dict[str, _MockObject]:
        if bucket not in self._buckets:
            raise NotFound(f"Not found: {bucket}")
        return self._buckets[bucket]

    def object_keys(self, bucket: str) -> list[str]:
        """All keys in a bucket, sorted. Test helper."""
        return sorted(self._bucket(bucket))

    async def bucket_exists(self, bucket: str) -> bool:
        return bucket in self._buckets

    async def make_bucket(self, bucket: str, region: Optional[str] = None) -> None:
        if bucket in self._buckets:
            raise AlreadyExists("Bucket already exists")
        self._buckets[bucket] = {}
        self._bucket_dates[bucket] = datetime.now(timezone.utc)

    async def list_buckets(self) -> list[BucketInfo]:
        return [
            BucketInfo(name=name, creation_date=self._bucket_dates[name])
            for name in sorted(self._buckets)
        ]

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        length: int,
        content_type: str = "application/octet-stream",
        metadata: Optional[dict[str, str]] = None,
    ) -> WriteResult:
        objects = self._bucket(bucket)
        if not key:
            raise StoreWriteFailed("Object key cannot be empty")

        body = bytes(data[:length])
        etag = hashlib.md5(body).hexdigest()
        objects[key] = _MockObject(
            data=body,
            content_type=content_type,
            metadata=dict(metadata or {}),
            etag=etag,
        )
        self.put_count += 1

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": len(body)}
        )
        return WriteResult(etag=etag)

    async def get_object(self, bucket: str, key: str) -> StoredObject:
        stat = await self.stat_object(bucket, key)
        return StoredObject(stat=stat, data=self._bucket(bucket)[key].data)

    async def stat_object(self, bucket: str, key: str) -> ObjectStat:
        obj = self._bucket(bucket).get(key)
        if obj is None:
            raise NotFound(f"Not found: {bucket}/{key}")
        return ObjectStat(
            key=key,
            size=len(obj.data),
            content_type=obj.content_type,
            etag=obj.etag,
            last_modified=obj.last_modified,
            metadata=dict(obj.metadata),
        )

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        recursive: bool = False,
        delimiter: str = "/",
    ) -> list[ListingEntry]:
        objects = self._bucket(bucket)
        entries: list[ListingEntry] = []
        seen_prefixes: set[str] = set()

        for key in sorted(objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if not recursive and delimiter in rest:
                common = prefix + rest.split(delimiter, 1)[0] + delimiter
                if common not in seen_prefixes:
                    seen_prefixes.add(common)
                    entries.append(FolderEntry(name=common))
                continue
            obj = objects[key]
            entries.append(ObjectEntry(
                name=key,
                size=len(obj.data),
                last_modified=obj.last_modified,
                etag=obj.etag,
            ))

        return entries

    async def remove_objects(self, bucket: str, keys: list[str]) -> int:
        objects = self._bucket(bucket)
        for key in keys:
            objects.pop(key, None)

        logger.debug(
            "Deleted objects from mock storage",
            extra={"bucket": bucket, "count": len(keys)}
        )
        return len(keys)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_store(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStore:
    """
    Create an object store based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory store

    Returns:
        ObjectStore implementation (S3 or Mock)
    """
    if mock_mode:
        return MockObjectStore()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3ObjectStore(config)
