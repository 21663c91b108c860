"""Persistence for images pushed to the display."""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from pathlib import Path

from ..common.exceptions import StorageError

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


class ImageStore:
    """Writes uploaded images into the upload directory and returns their URL."""

    def __init__(self, upload_dir: str | Path, url_prefix: str = "/uploads") -> None:
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def ensure_dir(self) -> Path:
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create upload directory {self.upload_dir}: {e}") from e
        return self.upload_dir

    @staticmethod
    def decode(image: str) -> bytes:
        """Decode a data URL or bare base64 string."""
        payload = _DATA_URL_PREFIX.sub("", image.strip(), count=1)
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise StorageError(f"Image is not valid base64: {e}") from e
        if not data:
            raise StorageError("Image is empty")
        return data

    def save(self, image: str | bytes) -> str:
        """Persist an image and return the URL it is served from."""
        data = image if isinstance(image, bytes) else self.decode(image)
        if not data:
            raise StorageError("Image is empty")

        directory = self.ensure_dir()
        filename = f"display-{int(time.time() * 1000)}.jpg"
        try:
            (directory / filename).write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write {filename}: {e}") from e

        logger.info("Saved image %s (%d bytes)", filename, len(data))
        return f"{self.url_prefix}/{filename}"
