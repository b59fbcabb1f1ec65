from __future__ import annotations

from docshelf.core.config import Settings, settings as default_settings
from docshelf.storage.base import FileStore


def get_file_store(config: Settings | None = None) -> FileStore:
    """Return the file store selected by STORAGE_BACKEND."""
    config = config or default_settings
    if config.storage_backend == "s3":
        from docshelf.storage.s3 import S3FileStore
        return S3FileStore(
            bucket=config.s3_bucket,
            prefix=config.s3_prefix,
            region=config.aws_region,
        )

    from docshelf.storage.local import LocalFileStore
    return LocalFileStore(config.upload_dir)
