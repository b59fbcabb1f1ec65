"""
S3 File Store

Objects are stored under a fixed prefix in one bucket:
    s3://<BUCKET>/<prefix>/<uuid hex><ext>

The key is always constructed server-side from the stored_filename —
clients never supply raw S3 keys. Deletion is a hard delete: removing a
document releases its backing bytes.
"""

from __future__ import annotations

import logging
import mimetypes

import aioboto3
from botocore.exceptions import ClientError

from docshelf.storage.base import FileStore, StoredFileNotFoundError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3FileStore(FileStore):
    """
    Async S3 operations for uploaded documents.

    A single aioboto3 session is reused; each call opens a short-lived
    client context.
    """

    def __init__(self, bucket: str, prefix: str = "documents", region: str = "us-east-1") -> None:
        self._bucket  = bucket
        self._prefix  = prefix.strip("/")
        self._region  = region
        self._session = aioboto3.Session()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self):
        """Return a scoped async S3 client context manager."""
        return self._session.client("s3", region_name=self._region)

    def key_for(self, stored_filename: str) -> str:
        safe_name = stored_filename.replace("/", "_").replace("..", "_")
        return f"{self._prefix}/{safe_name}" if self._prefix else safe_name

    # ------------------------------------------------------------------
    # FileStore operations
    # ------------------------------------------------------------------

    async def save(self, data: bytes, extension: str) -> str:
        stored_filename = self.new_reference(extension)
        key = self.key_for(stored_filename)
        content_type = mimetypes.guess_type(stored_filename)[0] or "application/octet-stream"

        async with self._client() as s3:
            await s3.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )

        logger.info("S3 upload ok | bucket=%s key=%s size=%d", self._bucket, key, len(data))
        return stored_filename

    async def read(self, stored_filename: str) -> bytes:
        key = self.key_for(stored_filename)
        async with self._client() as s3:
            try:
                resp = await s3.get_object(Bucket=self._bucket, Key=key)
                return await resp["Body"].read()
            except ClientError as exc:
                if exc.response["Error"]["Code"] in _NOT_FOUND_CODES:
                    raise StoredFileNotFoundError(f"Object not found: {key}") from exc
                raise

    async def delete(self, stored_filename: str) -> bool:
        if not await self.exists(stored_filename):
            logger.warning("S3 object already absent | key=%s", self.key_for(stored_filename))
            return False

        key = self.key_for(stored_filename)
        async with self._client() as s3:
            await s3.delete_object(Bucket=self._bucket, Key=key)
        logger.info("S3 delete | bucket=%s key=%s", self._bucket, key)
        return True

    async def exists(self, stored_filename: str) -> bool:
        key = self.key_for(stored_filename)
        async with self._client() as s3:
            try:
                await s3.head_object(Bucket=self._bucket, Key=key)
            except ClientError as exc:
                if exc.response["Error"]["Code"] in _NOT_FOUND_CODES:
                    return False
                raise
        return True
