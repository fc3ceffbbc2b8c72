"""Local disk storage for uploaded hotel, category and room images"""
import logging
import os
import random
import time
from typing import Iterable, List, Optional

from fastapi import UploadFile
from pydantic import BaseModel

from domain.exceptions import ValidationFailure
from infrastructure import settings

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
FOLDERS = ("hotels", "categories", "rooms")


class StoredImage(BaseModel):
    path: str
    url: str


class LocalImageStorage:
    """Writes uploads under root_dir/<folder> and hands back public URLs"""

    def __init__(
        self,
        root_dir: str = settings.UPLOAD_DIR,
        url_prefix: str = settings.UPLOAD_URL_PREFIX,
        max_size: int = settings.MAX_UPLOAD_SIZE,
        max_files: int = settings.MAX_IMAGES_PER_ENTITY,
    ):
        self.root_dir = root_dir
        self.url_prefix = url_prefix.rstrip("/")
        self.max_size = max_size
        self.max_files = max_files

    def ensure_directories(self) -> None:
        for folder in FOLDERS:
            os.makedirs(os.path.join(self.root_dir, folder), exist_ok=True)

    async def save(self, files: List[UploadFile], folder: str) -> List[StoredImage]:
        """Validate every file, then write them all; nothing is kept on failure"""
        if folder not in FOLDERS:
            raise ValueError(f"Unknown upload folder: {folder}")
        if len(files) > self.max_files:
            raise ValidationFailure.single("images", f"At most {self.max_files} images can be uploaded")

        payloads = []
        errors = []
        for index, upload in enumerate(files):
            content = await upload.read()
            problem = self._check(upload, content)
            if problem:
                errors.append({"field": f"images.{index}", "message": problem})
            payloads.append((upload.filename or "image", content))
        if errors:
            raise ValidationFailure(errors)

        self.ensure_directories()
        stored: List[StoredImage] = []
        try:
            for filename, content in payloads:
                stored.append(self._write(folder, filename, content))
        except OSError:
            self.delete(s.path for s in stored)
            raise
        return stored

    def delete(self, paths: Iterable[str]) -> None:
        """Remove stored files; a missing file is logged, not raised"""
        for path in paths:
            try:
                os.remove(path)
                logger.info("Deleted uploaded image %s", path)
            except FileNotFoundError:
                logger.warning("Uploaded image already gone: %s", path)
            except OSError:
                logger.exception("Could not delete uploaded image %s", path)

    def _check(self, upload: UploadFile, content: bytes) -> Optional[str]:
        extension = os.path.splitext(upload.filename or "")[1].lower()
        if extension not in ALLOWED_EXTENSIONS or (upload.content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
            return "Only image files (jpeg, jpg, png, gif, webp) are allowed"
        if len(content) > self.max_size:
            return f"File exceeds the {self.max_size} byte limit"
        return None

    def _write(self, folder: str, filename: str, content: bytes) -> StoredImage:
        base, extension = os.path.splitext(os.path.basename(filename))
        unique = f"{base}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{extension.lower()}"
        path = os.path.join(self.root_dir, folder, unique)
        with open(path, "wb") as out:
            out.write(content)
        return StoredImage(path=path, url=f"{self.url_prefix}/{folder}/{unique}")
