"""
Local-disk blob store for uploaded card images.

Blobs are addressed by a flat file name; records keep the reference
``/uploads/<name>``, which is also where the API serves them.
"""
import logging
import os
import re
import time
from pathlib import Path
from typing import Optional

from app.core.exceptions import NotFound

logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
REFERENCE_PREFIX = "/uploads/"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def build_blob_name(filename: Optional[str]) -> str:
    """Timestamp-prefixed name, e.g. ``1729260000123-avatar.png``."""
    base = os.path.basename(filename or "") or "image"
    base = _UNSAFE_CHARS.sub("_", base).lstrip(".") or "image"
    return f"{int(time.time() * 1000)}-{base}"


def name_from_reference(reference: Optional[str]) -> Optional[str]:
    if not reference:
        return None
    return os.path.basename(reference)


class LocalBlobStore:
    def __init__(self, root: str = UPLOAD_DIR):
        self.root = Path(root)

    def _path(self, name: str) -> Path:
        path = (self.root / name).resolve()
        if path.parent != self.root.resolve():
            raise NotFound("Image")
        return path

    def store(self, name: str, data: bytes) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        self._path(name).write_bytes(data)
        logger.info("Stored blob %s (%d bytes)", name, len(data))
        return f"{REFERENCE_PREFIX}{name}"

    def serve(self, name: str) -> Path:
        path = self._path(name)
        if not path.is_file():
            raise NotFound("Image")
        return path

    def delete(self, name: str) -> None:
        path = self._path(name)
        if path.exists():
            path.unlink()
            logger.info("Deleted blob %s", name)


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore(UPLOAD_DIR)
