"""
File store contract.

The store owns the uploaded bytes; document records only hold the opaque
stored_filename returned by save(). References are always generated
server-side, never taken from the client.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod


class StoredFileNotFoundError(FileNotFoundError):
    """The backing bytes for a stored_filename are absent."""


class FileStore(ABC):

    @staticmethod
    def new_reference(extension: str) -> str:
        """Build a collision-free stored filename, e.g. '3f2a...9c.pdf'."""
        return f"{uuid.uuid4().hex}{extension.lower()}"

    @abstractmethod
    async def save(self, data: bytes, extension: str) -> str:
        """Persist bytes and return the new stored_filename."""

    @abstractmethod
    async def read(self, stored_filename: str) -> bytes:
        """Return the stored bytes. Raises StoredFileNotFoundError if absent."""

    @abstractmethod
    async def delete(self, stored_filename: str) -> bool:
        """Remove the stored bytes. Returns False if they were already gone."""

    @abstractmethod
    async def exists(self, stored_filename: str) -> bool:
        """Return True if bytes are stored under this reference."""
