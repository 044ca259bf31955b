"""
RentalHub Backend — Upload & Storage Route Handlers
=====================================================

What:  Signed upload/download URLs (/api/uploads) and the storage
       endpoints those URLs point at (/api/storage/{bucket}/{path}).
Who:   Facility/product image pickers, avatar upload, document upload.

Flow:
    1. POST /api/uploads              → {upload_url, path, public_url, ...}
    2. PUT  upload_url (raw bytes, Content-Type header)
    3. GET  public_url (public buckets) or a signed URL from GET /api/uploads
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import FileResponse

from rentalhub.dependencies import get_current_user
from rentalhub.models.user import User
from rentalhub.schemas.common import ErrorResponse, SuccessResponse
from rentalhub.schemas.upload import (
    Bucket,
    DeleteFilesRequest,
    DeleteFilesResponse,
    SignedUrlsResponse,
    UploadRequest,
    UploadResponse,
)
from rentalhub.services.storage_service import PUBLIC_BUCKETS, storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Uploads"])


@router.post(
    "/uploads",
    response_model=SuccessResponse[UploadResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Get a signed upload URL",
)
async def create_upload(
    payload: UploadRequest,
    user: User = Depends(get_current_user),
) -> SuccessResponse[UploadResponse]:
    return SuccessResponse(data=storage_service.create_upload(user, payload))


@router.get(
    "/uploads",
    response_model=SuccessResponse[SignedUrlsResponse],
    summary="Signed download URLs for existing objects",
)
async def signed_urls(
    bucket: Bucket = Query(...),
    paths: str = Query(..., description="Comma-separated object paths"),
    user: User = Depends(get_current_user),
) -> SuccessResponse[SignedUrlsResponse]:
    return SuccessResponse(data=storage_service.signed_download_urls(user, bucket, paths.split(",")))


@router.delete(
    "/uploads",
    response_model=SuccessResponse[DeleteFilesResponse],
    summary="Delete your uploaded objects",
)
async def delete_uploads(
    payload: DeleteFilesRequest,
    user: User = Depends(get_current_user),
) -> SuccessResponse[DeleteFilesResponse]:
    result = await storage_service.delete_objects(user, payload.bucket, payload.paths)
    return SuccessResponse(data=result, message=f"{len(result.deleted)} file(s) deleted")


@router.put(
    "/storage/{bucket}/{path:path}",
    response_model=SuccessResponse[dict],
    responses={
        400: {"description": "Bad content type or too large", "model": ErrorResponse},
        403: {"description": "Missing, expired or invalid signature", "model": ErrorResponse},
    },
    tags=["Storage"],
    summary="Upload object bytes to a signed URL",
)
async def put_object(
    bucket: str,
    path: str,
    request: Request,
    expires: Optional[int] = Query(default=None),
    signature: Optional[str] = Query(default=None),
    content_type: Optional[str] = Header(default=None),
    content_length: Optional[int] = Header(default=None),
) -> SuccessResponse[dict]:
    storage_service.verify("PUT", bucket, path, expires, signature)
    storage_service.validate_size(content_length)
    storage_service.validate_content_type(path, content_type)
    body = await request.body()
    size = await storage_service.store_object(bucket, path, body, content_type)
    return SuccessResponse(
        data={"bucket": bucket, "path": path, "size": size},
        message="File uploaded successfully",
    )


@router.get(
    "/storage/{bucket}/{path:path}",
    response_class=FileResponse,
    responses={
        403: {"description": "Signature required for private buckets", "model": ErrorResponse},
        404: {"description": "Object not found", "model": ErrorResponse},
    },
    tags=["Storage"],
    summary="Download an object",
)
async def get_object(
    bucket: str,
    path: str,
    expires: Optional[int] = Query(default=None),
    signature: Optional[str] = Query(default=None),
) -> FileResponse:
    if bucket not in PUBLIC_BUCKETS or signature is not None:
        storage_service.verify("GET", bucket, path, expires, signature)
    target = storage_service.locate(bucket, path)
    return FileResponse(
        path=str(target),
        headers={"Cache-Control": "private, max-age=3600"},
    )
