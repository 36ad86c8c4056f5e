"""File storage for uploaded QR code images (local disk)."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path, PurePosixPath

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

IMAGE_TYPES: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class FileStorageService:
    """Store and retrieve files under the configured storage root."""

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root or settings.FILE_STORAGE_PATH)
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, relative_path: str) -> Path:
        path = (self._root / relative_path).resolve()
        if self._root.resolve() not in path.parents:
            raise ValueError("Invalid file path")
        return path

    def save(self, relative_path: str, data: bytes) -> str:
        """Persist *data* under *relative_path* and return the full path."""
        dest = self._path(relative_path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        return str(dest)

    def read(self, relative_path: str) -> bytes:
        return self._path(relative_path).read_bytes()

    def exists(self, relative_path: str) -> bool:
        return self._path(relative_path).exists()

    def delete(self, relative_path: str) -> None:
        path = self._path(relative_path)
        if path.exists():
            os.remove(path)

    def url(self, relative_path: str) -> str:
        return f"/files/{relative_path}"

    def save_qr_image(
        self,
        filename: str | None,
        content_type: str | None,
        data: bytes,
    ) -> dict:
        """Validate and store a QR code image; returns what the upload endpoint reports."""
        content_type = (content_type or "").lower()
        if content_type not in IMAGE_TYPES:
            raise ValueError("Only image files are allowed")
        if not data:
            raise ValueError("Uploaded file is empty")
        if len(data) > settings.MAX_UPLOAD_BYTES:
            limit_mb = settings.MAX_UPLOAD_BYTES // (1024 * 1024)
            raise ValueError(f"File too large. Maximum size is {limit_mb} MB")

        suffix = PurePosixPath(filename or "").suffix.lower()
        if suffix not in (*IMAGE_TYPES.values(), ".jpeg"):
            suffix = IMAGE_TYPES[content_type]
        stored = f"qr-codes/qr-{uuid.uuid4().hex}{suffix}"
        self.save(stored, data)
        logger.info("Stored QR image %s (%d bytes)", stored, len(data))
        return {
            "filename": stored,
            "url": self.url(stored),
            "size": len(data),
            "content_type": content_type,
        }
