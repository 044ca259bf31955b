"""
RentalHub Backend — Object Storage Service (Signed URLs)
==========================================================

What:  Local-disk object storage organised in buckets, accessed through
       short-lived HMAC-signed URLs.
How:   POST /api/uploads hands out a signed PUT URL; the client uploads the
       raw bytes to /api/storage/{bucket}/{path}; downloads use signed GET
       URLs (public buckets can also be read unsigned).
Who:   routes/uploads.py (both the /api/uploads and /api/storage endpoints).

Layout:
    storage_root/
    └── <bucket>/
        └── <user_id>/<folder or "general">/<stem>_<ms>_<rand6>.<ext>

Security Model:
    1. Bucket and content type come from fixed allow-lists.
    2. User input only reaches the object name after sanitising, and the
       resolved path must stay inside the bucket directory.
    3. Signatures cover method, bucket, path and expiry, so a download
       link can never be replayed as an upload link.
    4. Size is checked against Content-Length before reading, then again
       on the actual body.
"""

import hashlib
import hmac
import logging
import re
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple
from urllib.parse import quote, urlencode

import aiofiles
import aiofiles.os

from rentalhub.config import settings
from rentalhub.exceptions import (
    FileStorageError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from rentalhub.models.user import ROLE_ADMIN, User
from rentalhub.schemas.upload import (
    DeleteFilesResponse,
    SignedUrlItem,
    SignedUrlsResponse,
    UploadRequest,
    UploadResponse,
)

logger = logging.getLogger(__name__)

ALLOWED_BUCKETS = frozenset({"facility-images", "product-images", "avatars", "documents"})
# Readable without a signature (their URLs end up in <img> tags).
PUBLIC_BUCKETS = frozenset({"facility-images", "product-images", "avatars"})

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
}
_EXTENSION_ALIASES = {"jpeg": "jpg"}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def _sanitize(part: str, fallback: str, max_length: int = 50) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", part).strip("_")[:max_length]
    return cleaned or fallback


def build_object_path(
    user_id: uuid.UUID,
    filename: str,
    content_type: str,
    folder: Optional[str] = None,
) -> str:
    """`{user_id}/{folder}/{stem}_{ms}_{rand6}.{ext}` with every segment sanitised."""
    name = Path(filename)
    ext = name.suffix.lower().lstrip(".")
    ext = _EXTENSION_ALIASES.get(ext, ext)
    expected = ALLOWED_CONTENT_TYPES[content_type]
    if ext != expected:
        ext = expected

    folder_parts = [
        _sanitize(segment, "general") for segment in (folder or "general").split("/") if segment.strip()
    ] or ["general"]
    stem = _sanitize(name.stem, "file")
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(6))
    return f"{user_id}/{'/'.join(folder_parts)}/{stem}_{int(time.time() * 1000)}_{suffix}.{ext}"


class StorageService:

    def __init__(self, storage_root: Optional[str] = None, secret: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self._secret = secret
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("StorageService initialized with storage_root=%s", self.storage_root)

    @property
    def secret(self) -> str:
        return self._secret or settings.signing_secret

    # ── Signing ───────────────────────────────────────────────────────────

    def sign(self, method: str, bucket: str, path: str, expires: int) -> str:
        message = f"{method.upper()}\n{bucket}/{path}\n{expires}".encode("utf-8")
        return hmac.new(self.secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

    def signed_url(self, method: str, bucket: str, path: str, expires_in: Optional[int] = None) -> Tuple[str, datetime]:
        expires = int(time.time()) + (expires_in or settings.upload_url_expire_seconds)
        query = urlencode({"expires": expires, "signature": self.sign(method, bucket, path, expires)})
        url = f"{self.object_url(bucket, path)}?{query}"
        return url, datetime.fromtimestamp(expires, tz=timezone.utc)

    def object_url(self, bucket: str, path: str) -> str:
        return f"{settings.public_base_url.rstrip('/')}/api/storage/{bucket}/{quote(path)}"

    def verify(self, method: str, bucket: str, path: str, expires: Optional[int], signature: Optional[str]) -> None:
        """Raises PermissionDeniedError for a missing, expired or forged signature."""
        if expires is None or not signature:
            raise PermissionDeniedError("A signed URL is required for this object")
        if expires < int(time.time()):
            raise PermissionDeniedError("This link has expired")
        if not hmac.compare_digest(self.sign(method, bucket, path, expires), signature):
            raise PermissionDeniedError("Invalid URL signature")

    # ── Paths ─────────────────────────────────────────────────────────────

    def _check_bucket(self, bucket: str) -> None:
        if bucket not in ALLOWED_BUCKETS:
            raise ValidationError(
                message=f"Unknown bucket '{bucket}'",
                field="bucket",
                context={"allowed": sorted(ALLOWED_BUCKETS)},
            )

    def resolve(self, bucket: str, path: str) -> Path:
        """Absolute file path for an object; rejects anything escaping the bucket."""
        self._check_bucket(bucket)
        bucket_root = (self.storage_root / bucket).resolve()
        target = (bucket_root / path).resolve()
        if not path or not target.is_relative_to(bucket_root) or target == bucket_root:
            raise ValidationError(message="Invalid object path", field="path")
        return target

    # ── Upload ────────────────────────────────────────────────────────────

    def create_upload(self, user: User, payload: UploadRequest) -> UploadResponse:
        path = build_object_path(user.id, payload.filename, payload.content_type, payload.folder)
        upload_url, expires_at = self.signed_url("PUT", payload.bucket, path)
        logger.info("Upload URL issued: %s/%s for user %s", payload.bucket, path, user.id)
        return UploadResponse(
            upload_url=upload_url,
            path=path,
            bucket=payload.bucket,
            expires_at=expires_at,
            public_url=self.object_url(payload.bucket, path),
        )

    def validate_size(self, content_length: Optional[int], actual_size: Optional[int] = None) -> None:
        max_mb = settings.max_file_size / (1024 * 1024)
        size = actual_size if actual_size is not None else content_length
        if size is not None and size > settings.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "size": size},
            )

    def validate_content_type(self, path: str, content_type: Optional[str]) -> None:
        media_type = (content_type or "").split(";")[0].strip().lower()
        if media_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                message=f"Content type '{media_type or 'unknown'}' is not allowed",
                field="content_type",
                context={"allowed": sorted(ALLOWED_CONTENT_TYPES)},
            )
        if not path.endswith(f".{ALLOWED_CONTENT_TYPES[media_type]}"):
            raise ValidationError(
                message="Content type does not match the object extension",
                field="content_type",
            )

    async def store_object(self, bucket: str, path: str, content: bytes, content_type: Optional[str]) -> int:
        target = self.resolve(bucket, path)
        self.validate_content_type(path, content_type)
        self.validate_size(None, len(content))
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store object %s/%s: %s", bucket, path, str(e))
            raise FileStorageError(
                message="Failed to save the uploaded file. Please try again.",
                context={"bucket": bucket, "path": path, "os_error": str(e)},
            )
        logger.info("Object stored: %s/%s (%d bytes)", bucket, path, len(content))
        return len(content)

    # ── Download ──────────────────────────────────────────────────────────

    def locate(self, bucket: str, path: str) -> Path:
        target = self.resolve(bucket, path)
        if not target.is_file():
            raise NotFoundError(resource="file", resource_id=f"{bucket}/{path}")
        return target

    def can_access(self, user: User, bucket: str, target: Path) -> bool:
        """Admins reach everything; everyone else only what resolves under their own prefix."""
        if user.role == ROLE_ADMIN:
            return True
        own_root = (self.storage_root / bucket / str(user.id)).resolve()
        return target.is_relative_to(own_root) and target != own_root

    def signed_download_urls(self, user: User, bucket: str, paths: Iterable[str]) -> SignedUrlsResponse:
        """
        Signed GET URLs for the given paths.

        Public buckets are readable by anyone; in private buckets the caller
        must own the object. Missing objects are left out, objects the
        caller may not read are listed under `denied`.
        """
        self._check_bucket(bucket)
        response = SignedUrlsResponse()
        for path in paths:
            path = path.strip()
            if not path:
                continue
            try:
                target = self.resolve(bucket, path)
            except ValidationError:
                response.denied.append(path)
                continue
            if bucket not in PUBLIC_BUCKETS and not self.can_access(user, bucket, target):
                logger.warning("Signed URL denied: %s/%s for user %s", bucket, path, user.id)
                response.denied.append(path)
                continue
            if not target.is_file():
                logger.debug("Signed URL skipped, no such object: %s/%s", bucket, path)
                continue
            url, expires_at = self.signed_url("GET", bucket, path)
            response.urls.append(SignedUrlItem(path=path, signed_url=url, expires_at=expires_at))
        return response

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_objects(self, user: User, bucket: str, paths: Iterable[str]) -> DeleteFilesResponse:
        """Removes the caller's objects; admins may remove any object."""
        self._check_bucket(bucket)
        response = DeleteFilesResponse()
        for path in paths:
            try:
                target = self.resolve(bucket, path)
            except ValidationError:
                response.skipped.append(path)
                continue
            if not self.can_access(user, bucket, target) or not target.is_file():
                response.skipped.append(path)
                continue
            try:
                await aiofiles.os.remove(target)
            except OSError as e:
                logger.warning("Failed to delete %s/%s: %s", bucket, path, str(e))
                response.skipped.append(path)
                continue
            response.deleted.append(path)

        logger.info(
            "Delete in %s by %s: %d deleted, %d skipped",
            bucket, user.id, len(response.deleted), len(response.skipped),
        )
        return response


storage_service = StorageService()
