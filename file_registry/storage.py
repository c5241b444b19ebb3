from __future__ import annotations

import logging
import os
import secrets
from pathlib import Path
from typing import BinaryIO

from file_registry.config import UPLOAD_DIR
from file_registry.core.exceptions import BlobStoreError

logger = logging.getLogger("file_registry.storage")

_TOKEN_BYTES = 16
_MAX_TOKEN_ATTEMPTS = 5
_CHUNK_SIZE = 1024 * 1024


class BlobStore:
    """Opaque byte storage in a single flat directory.

    Locations are bare file names relative to ``root``; callers never see or
    choose them.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _reserve_path(self) -> tuple[str, Path]:
        for _ in range(_MAX_TOKEN_ATTEMPTS):
            location = secrets.token_hex(_TOKEN_BYTES)
            path = self.root / location
            if not path.exists():
                return location, path
        logger.error("event=blob_reserve_failed attempts=%s", _MAX_TOKEN_ATTEMPTS)
        raise BlobStoreError()

    def _path_for(self, location: str) -> Path:
        try:
            path = (self.root / location).resolve()
            path.relative_to(self.root)
        except (ValueError, RuntimeError) as exc:
            raise BlobStoreError() from exc
        return path

    def save(self, stream: BinaryIO) -> tuple[str, int]:
        """Copy ``stream`` into a new blob and return ``(location, bytes_written)``."""
        location, path = self._reserve_path()
        written = 0
        try:
            # "xb" so a colliding token fails instead of overwriting
            with open(path, "xb") as f:
                while True:
                    chunk = stream.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    f.write(chunk)
                    written += len(chunk)
        except OSError as exc:
            logger.error("event=blob_write_failed location=%s error=%s", location, exc)
            raise BlobStoreError() from exc
        logger.debug("event=blob_written location=%s size_bytes=%s", location, written)
        return location, written

    def resolve(self, location: str) -> Path:
        """Absolute path of a readable blob."""
        path = self._path_for(location)
        if not path.is_file():
            raise BlobStoreError() from FileNotFoundError(str(path))
        if not os.access(path, os.R_OK):
            raise BlobStoreError() from PermissionError(str(path))
        return path

    def delete(self, location: str) -> None:
        path = self._path_for(location)
        try:
            path.unlink()
        except OSError as exc:
            logger.error("event=blob_delete_failed location=%s error=%s", location, exc)
            raise BlobStoreError() from exc
        logger.debug("event=blob_deleted location=%s", location)

    def locations(self) -> list[tuple[str, float]]:
        """Every blob currently on disk as ``(location, mtime)``."""
        found = []
        with os.scandir(self.root) as entries:
            for entry in entries:
                if entry.is_file(follow_symlinks=False):
                    found.append((entry.name, entry.stat().st_mtime))
        return found


blob_store = BlobStore(UPLOAD_DIR)

