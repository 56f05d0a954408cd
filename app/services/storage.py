"""
Blob storage for cover images, QR codes and event photos.

Paths are hierarchical (``events/{event_id}/...``). The local store writes
under ``settings.UPLOAD_DIR`` and is served by the app at ``/uploads``;
the Firebase store writes to the configured Cloud Storage bucket.
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass
from typing import List

from google.api_core.exceptions import GoogleAPICallError, NotFound

from app.core.config import settings
from app.core.exceptions import DependencyFailureError, ValidationFailedError
from app.services.firebase_client import get_storage_bucket

logger = logging.getLogger(__name__)


def sanitize_filename(filename: str) -> str:
    """Keep letters, digits, dots and dashes"""
    cleaned = re.sub(r"[^a-zA-Z0-9.-]", "", filename or "")
    return cleaned or "file"


def event_prefix(event_id: str) -> str:
    return f"events/{event_id}/"


def qr_code_path(event_id: str) -> str:
    return f"events/{event_id}/qr-code.png"


def cover_image_path(event_id: str, stamp: str, filename: str) -> str:
    return f"events/{event_id}/cover/{stamp}-{sanitize_filename(filename)}"


def photo_path(event_id: str, photo_id: str, filename: str) -> str:
    return f"events/{event_id}/photos/{photo_id}-{sanitize_filename(filename)}"


@dataclass
class UploadedFile:
    """An image received from the client, already read into memory"""
    filename: str
    content: bytes
    content_type: str

    def validate_image(self) -> None:
        if not (self.content_type or "").startswith("image/"):
            raise ValidationFailedError(f"{self.filename} is not an image")
        if len(self.content) > settings.MAX_UPLOAD_SIZE:
            raise ValidationFailedError(f"{self.filename} exceeds the maximum upload size")
        if not self.content:
            raise ValidationFailedError(f"{self.filename} is empty")


class BlobStore:
    """Interface shared by the storage backends"""

    def put(self, path: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    def url(self, path: str) -> str:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError

    def list(self, prefix: str) -> List[str]:
        raise NotImplementedError

    def delete_prefix(self, prefix: str) -> int:
        """Delete every blob under ``prefix``; returns the number removed"""
        paths = self.list(prefix)
        for path in paths:
            self.delete(path)
        return len(paths)


class LocalBlobStore(BlobStore):
    """Filesystem-backed store used for development and tests"""

    def __init__(self, root: str = None, base_url: str = None):
        self.root = os.path.abspath(root or settings.UPLOAD_DIR)
        self.base_url = (base_url or settings.BASE_URL).rstrip("/")

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, path))
        if full != self.root and not full.startswith(self.root + os.sep):
            raise ValidationFailedError(f"Invalid storage path: {path}")
        return full

    def put(self, path: str, data: bytes, content_type: str) -> str:
        full = self._full_path(path)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise DependencyFailureError(f"Could not write blob {path}") from exc
        return self.url(path)

    def url(self, path: str) -> str:
        return f"{self.base_url}/uploads/{path}"

    def delete(self, path: str) -> None:
        try:
            os.remove(self._full_path(path))
        except FileNotFoundError:
            logger.info(f"Blob already absent: {path}")
        except OSError as exc:
            raise DependencyFailureError(f"Could not delete blob {path}") from exc

    def list(self, prefix: str) -> List[str]:
        base = self._full_path(prefix.rstrip("/") or ".")
        if not os.path.isdir(base):
            return []
        paths = []
        for dirpath, _, filenames in os.walk(base):
            for name in filenames:
                full = os.path.join(dirpath, name)
                paths.append(os.path.relpath(full, self.root).replace(os.sep, "/"))
        return sorted(paths)

    def delete_prefix(self, prefix: str) -> int:
        count = super().delete_prefix(prefix)
        base = self._full_path(prefix.rstrip("/"))
        if os.path.isdir(base):
            shutil.rmtree(base, ignore_errors=True)
        return count


class FirebaseBlobStore(BlobStore):
    """Cloud Storage bucket from the Firebase project"""

    def __init__(self, bucket=None):
        self.bucket = bucket or get_storage_bucket()

    def put(self, path: str, data: bytes, content_type: str) -> str:
        blob = self.bucket.blob(path)
        try:
            blob.upload_from_string(data, content_type=content_type)
            blob.make_public()
        except GoogleAPICallError as exc:
            raise DependencyFailureError(f"Could not upload blob {path}") from exc
        return blob.public_url

    def url(self, path: str) -> str:
        return self.bucket.blob(path).public_url

    def delete(self, path: str) -> None:
        try:
            self.bucket.blob(path).delete()
        except NotFound:
            logger.info(f"Blob already absent: {path}")
        except GoogleAPICallError as exc:
            raise DependencyFailureError(f"Could not delete blob {path}") from exc

    def list(self, prefix: str) -> List[str]:
        try:
            return [blob.name for blob in self.bucket.list_blobs(prefix=prefix)]
        except GoogleAPICallError as exc:
            raise DependencyFailureError(f"Could not list blobs under {prefix}") from exc


def get_blob_store() -> BlobStore:
    """FastAPI dependency selecting the configured backend"""
    if settings.USE_FIREBASE:
        return FirebaseBlobStore()
    return LocalBlobStore()
