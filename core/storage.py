"""Object storage for decorated thumbnails.

Keys are flat file names (``ab12cd34.jpg``). Writes replace the object in
place so public URLs stay valid across re-decorations.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from core.config import get_settings
from core.errors import StorageError

logger = logging.getLogger(__name__)


class LocalObjectStore:
    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls) -> "LocalObjectStore":
        settings = get_settings()
        return cls(settings.object_store_root, settings.object_store_public_base_url)

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"Invalid object key: {key!r}")
        return self.root / key

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path_for(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            # Write then rename so readers never see a half-written image.
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".upload-")
        except OSError as error:
            raise StorageError(f"Failed to store {key}: {error}") from error
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except OSError as error:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.warning("Could not remove temporary upload %s", tmp_name)
            raise StorageError(f"Failed to store {key}: {error}") from error
        logger.info("Stored %s (%d bytes, %s)", key, len(data), content_type)
        return key

    def get(self, key: str) -> bytes:
        try:
            return self._path_for(key).read_bytes()
        except OSError as error:
            raise StorageError(f"Failed to read {key}: {error}") from error

    def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as error:
            raise StorageError(f"Failed to delete {key}: {error}") from error

    def get_public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"
