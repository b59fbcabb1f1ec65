"""
Local-disk file store.

Files live flat under a single upload directory:
    <upload_dir>/<uuid hex><ext>

All filesystem calls run in the default thread executor so a slow disk
never blocks the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from docshelf.storage.base import FileStore, StoredFileNotFoundError

logger = logging.getLogger(__name__)


class LocalFileStore(FileStore):

    def __init__(self, upload_dir: str | Path) -> None:
        self._root = Path(upload_dir)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, stored_filename: str) -> Path:
        # References are server-generated basenames; anything else is a bug or an attack
        if (
            not stored_filename
            or "/" in stored_filename
            or "\\" in stored_filename
            or stored_filename in (".", "..")
        ):
            raise ValueError(f"Invalid stored filename: {stored_filename!r}")
        return self._root / stored_filename

    async def save(self, data: bytes, extension: str) -> str:
        stored_filename = self.new_reference(extension)
        path = self._path(stored_filename)

        def _write() -> None:
            self._root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _write)
        logger.info("Stored file | ref=%s size=%d", stored_filename, len(data))
        return stored_filename

    async def read(self, stored_filename: str) -> bytes:
        path = self._path(stored_filename)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, path.read_bytes)
        except FileNotFoundError as exc:
            raise StoredFileNotFoundError(f"Stored file not found: {stored_filename}") from exc

    async def delete(self, stored_filename: str) -> bool:
        path = self._path(stored_filename)

        def _unlink() -> bool:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            return True

        loop = asyncio.get_running_loop()
        removed = await loop.run_in_executor(None, _unlink)
        if removed:
            logger.info("Deleted stored file | ref=%s", stored_filename)
        else:
            logger.warning("Stored file already absent | ref=%s", stored_filename)
        return removed

    async def exists(self, stored_filename: str) -> bool:
        path = self._path(stored_filename)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, path.is_file)
