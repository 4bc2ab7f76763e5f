# src/infrastructure/storage/image_storage.py

import logging
import os
from pathlib import Path
from uuid import uuid4

from fastapi import UploadFile

from src.domain.exceptions import InvalidUploadError


logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_IMAGE_BYTES = 5 * 1024 * 1024
MAX_IMAGES_PER_BOAT = 5


class ImageStorage:
    """Stores boat images on local disk, served back under /uploads."""

    def __init__(self, root: str | Path = UPLOAD_DIR, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def save_images(self, files: list[UploadFile]) -> list[str]:
        files = [item for item in files if item.filename]
        if len(files) > MAX_IMAGES_PER_BOAT:
            raise InvalidUploadError(f"Massimo {MAX_IMAGES_PER_BOAT} immagini per barca")

        for item in files:
            if not (item.content_type or "").startswith("image/"):
                raise InvalidUploadError("Solo immagini sono permesse")

        # The whole batch is size-checked before anything touches the disk.
        contents = []
        for item in files:
            data = item.file.read(MAX_IMAGE_BYTES + 1)
            if len(data) > MAX_IMAGE_BYTES:
                raise InvalidUploadError("Immagine troppo grande (max 5MB)")
            contents.append((Path(item.filename).suffix.lower(), data))

        self.root.mkdir(parents=True, exist_ok=True)
        urls = []
        try:
            for suffix, data in contents:
                name = f"{uuid4().hex}{suffix}"
                (self.root / name).write_bytes(data)
                urls.append(f"{self.url_prefix}/{name}")
        except OSError:
            self.delete_images(urls)
            raise

        logger.info("Stored %s boat images in %s", len(urls), self.root)
        return urls

    def delete_images(self, urls: list[str]) -> None:
        for url in urls:
            path = self.root / url.rsplit("/", 1)[-1]
            path.unlink(missing_ok=True)
        if urls:
            logger.info("Removed %s boat images from %s", len(urls), self.root)
