"""
Flat bucket/key storage for photos, videos and folder placeholders.

S3ObjectStore talks to MinIO, R2 or AWS S3 through boto3; MockObjectStore
keeps everything in memory for mock mode and tests.
"""

from .client import (
    MockObjectStore,
    S3ObjectStore,
    StorageConfig,
    StorageError,
    create_object_store,
)

__all__ = [
    "MockObjectStore",
    "S3ObjectStore",
    "StorageConfig",
    "StorageError",
    "create_object_store",
]
