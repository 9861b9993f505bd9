"""
Object storage for dress photos and avatars.

Buckets are GridFS collections in the hosted database. Objects are addressed
by path inside a bucket and exposed through public URLs served by
``GET /storage/{bucket}/{path}``.
"""

import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional, Tuple

import gridfs
from pymongo.errors import PyMongoError

import database
from config import settings
from errors import NotFoundError, UploadFailedError
from logging_config import get_logger, log_event

LOGGER = get_logger(__name__)

DRESS_BUCKET = "dresses"
AVATAR_BUCKET = "avatars"
DRESS_IMAGE_PREFIX = "dress-images"
CACHE_CONTROL = "3600"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class PendingImage:
    """An image picked in a form but not uploaded yet."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def validate_image(content_type: Optional[str], size: int, max_bytes: Optional[int] = None) -> None:
    limit = max_bytes or settings.max_upload_bytes
    if size > limit:
        raise UploadFailedError(f"Image size must be less than {limit // (1024 * 1024)}MB")
    if not (content_type or "").startswith("image/"):
        raise UploadFailedError("File must be an image")


def file_extension(filename: str, default: str = "jpg") -> str:
    if "." not in filename:
        return default
    ext = filename.rsplit(".", 1)[1].lower()
    return ext or default


def unique_image_path(filename: str, prefix: str = DRESS_IMAGE_PREFIX) -> str:
    """``<prefix>/<ms timestamp>-<random>.<ext>`` so uploads never collide."""
    timestamp = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(13))
    return f"{prefix}/{timestamp}-{suffix}.{file_extension(filename)}"


def avatar_path(user_id: str, filename: str) -> str:
    return f"avatars/{user_id}.{file_extension(filename)}"


class ObjectStorage:
    """Upload/download by path inside one GridFS bucket."""

    def __init__(self, bucket: str, fs=None, base_url: Optional[str] = None):
        self.bucket = bucket
        self._fs = fs
        self.base_url = (base_url or settings.public_base_url).rstrip("/")

    @property
    def fs(self):
        if self._fs is None:
            self._fs = gridfs.GridFS(database.get_db(), collection=self.bucket)
        return self._fs

    def upload(self, path: str, data: bytes, content_type: str, upsert: bool = False) -> str:
        try:
            existing = self.fs.find_one({"filename": path})
            if existing is not None:
                if not upsert:
                    raise UploadFailedError("The resource already exists")
                self.fs.delete(existing._id)
            self.fs.put(
                data,
                filename=path,
                metadata={"contentType": content_type, "cacheControl": CACHE_CONTROL},
            )
        except PyMongoError as exc:
            log_event(LOGGER, logging.ERROR, "storage.upload_failed", bucket=self.bucket, path=path, error=str(exc))
            raise UploadFailedError(f"Upload failed: {exc}") from exc
        log_event(LOGGER, logging.INFO, "storage.uploaded", bucket=self.bucket, path=path, size=len(data))
        return path

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/{self.bucket}/{path}"

    def download(self, path: str) -> Tuple[bytes, str]:
        grid_out = self.fs.find_one({"filename": path})
        if grid_out is None:
            raise NotFoundError("Object not found")
        metadata = grid_out.metadata or {}
        return grid_out.read(), metadata.get("contentType", "application/octet-stream")


def upload_image(storage: ObjectStorage, image: PendingImage) -> str:
    """Validate and upload one dress photo, returning its public URL."""
    try:
        validate_image(image.content_type, image.size)
        path = storage.upload(unique_image_path(image.filename), image.data, image.content_type)
    except UploadFailedError as exc:
        log_event(LOGGER, logging.WARNING, "storage.image_rejected", image_name=image.filename, error=exc.message)
        raise UploadFailedError(f"Image upload failed: {exc.message}") from exc
    return storage.get_public_url(path)


def dress_storage() -> ObjectStorage:
    return ObjectStorage(DRESS_BUCKET)


def avatar_storage() -> ObjectStorage:
    return ObjectStorage(AVATAR_BUCKET)
