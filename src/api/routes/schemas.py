"""
Request/response models shared by the routers.

Field names are snake_case in Python and camelCase on the wire, which is
what the existing web client expects.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel):
    """Envelope used by every JSON endpoint."""
    success: bool = True
    message: Optional[str] = None
    data: Any = None
    count: Optional[int] = None


class ErrorResponse(CamelModel):
    success: bool = False
    error: str


class BucketItem(CamelModel):
    name: str
    creation_date: Optional[datetime] = None


class CreateBucketRequest(CamelModel):
    bucket_name: str = Field(default="", description="Name of the bucket to create")
    region: str = Field(default="us-east-1", description="Region for the new bucket")


class FolderRequest(CamelModel):
    folder_path: str = Field(default="", description="Folder path, e.g. albums/2024")


class UploadedItem(CamelModel):
    original_name: str
    object_name: str
    variant: Optional[str] = None
    size: int
    mimetype: str
    etag: str
    version_id: Optional[str] = None
    file_type: str


class UploadError(CamelModel):
    filename: str
    error: str


class UploadData(CamelModel):
    bucket: str
    folder_path: str
    uploaded: list[UploadedItem]
    uploaded_count: int
    total_files: int


class UploadResponse(CamelModel):
    success: bool
    status: str = Field(description="complete, partial or failed")
    data: UploadData
    errors: Optional[list[UploadError]] = None
    error_count: Optional[int] = None
