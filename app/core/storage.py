import logging
import os
import uuid
from typing import Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import InternalError, InvalidImage

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp"}


class LocalImageStore:
    """Blob store for question and answer images, kept on local disk.

    References are opaque file names; callers only pass them back to
    ``url_for`` or ``delete``.
    """

    def __init__(self, root: str, base_url: str, max_bytes: int):
        self.root = root
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    async def save(self, upload: UploadFile) -> str:
        content_type = upload.content_type or ""
        if not content_type.startswith("image/"):
            raise InvalidImage()

        data = await upload.read(self.max_bytes + 1)
        if not data:
            raise InvalidImage("Uploaded image is empty")
        if len(data) > self.max_bytes:
            raise InvalidImage(f"Image size must be at most {self.max_bytes // (1024 * 1024)}MB")

        ext = os.path.splitext(upload.filename or "")[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            ext = ".img"
        ref = f"{uuid.uuid4().hex}{ext}"

        try:
            await run_in_threadpool(self._write, ref, data)
        except OSError as e:
            logger.error(f"Failed to store image {ref}: {e}")
            raise InternalError("Failed to store image")
        return ref

    def _write(self, ref: str, data: bytes):
        os.makedirs(self.root, exist_ok=True)
        with open(os.path.join(self.root, ref), "wb") as f:
            f.write(data)

    async def delete(self, ref: Optional[str]):
        if not ref:
            return
        path = os.path.join(self.root, os.path.basename(ref))
        try:
            await run_in_threadpool(os.remove, path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not delete image {ref}: {e}")

    def exists(self, ref: str) -> bool:
        return os.path.exists(os.path.join(self.root, os.path.basename(ref)))

    def url_for(self, ref: Optional[str]) -> Optional[str]:
        if not ref:
            return None
        return f"{self.base_url}/{ref}"


image_store = LocalImageStore(settings.UPLOAD_DIR, settings.IMAGE_BASE_URL, settings.MAX_IMAGE_BYTES)


def get_image_store() -> LocalImageStore:
    return image_store


def has_upload(upload: Optional[UploadFile]) -> bool:
    """Browsers send an empty file part when no file was chosen."""
    return upload is not None and bool(upload.filename)
