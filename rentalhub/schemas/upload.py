"""RentalHub Backend — Upload / Signed URL Schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Bucket = Literal["facility-images", "product-images", "avatars", "documents"]
ContentType = Literal["image/jpeg", "image/png", "image/webp", "application/pdf"]


class UploadRequest(BaseModel):
    bucket: Bucket
    filename: str = Field(min_length=1, max_length=255)
    content_type: ContentType
    folder: Optional[str] = Field(default=None, max_length=100)


class UploadResponse(BaseModel):
    upload_url: str
    path: str
    bucket: str
    expires_at: datetime
    public_url: str


class SignedUrlItem(BaseModel):
    path: str
    signed_url: str
    expires_at: datetime


class DeleteFilesRequest(BaseModel):
    bucket: Bucket
    paths: List[str] = Field(min_length=1, max_length=100)


class DeleteFilesResponse(BaseModel):
    deleted: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)


class SignedUrlsResponse(BaseModel):
    urls: List[SignedUrlItem] = Field(default_factory=list)
    denied: List[str] = Field(default_factory=list)
