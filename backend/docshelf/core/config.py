"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------
    max_upload_bytes: int = 10 * 1024 * 1024   # 10 MiB
    upload_dir:       str = "uploads"          # local file store root

    # ------------------------------------------------------------------
    # Backends
    # ------------------------------------------------------------------
    storage_backend:    str = "local"      # "local" | "s3"
    repository_backend: str = "memory"     # "memory" | "sql"
    task_dispatcher:    str = "inprocess"  # "inprocess" | "celery"

    # ------------------------------------------------------------------
    # AWS: S3 file store
    # ------------------------------------------------------------------
    aws_region: str = "us-east-1"
    s3_bucket:  str = "docshelf-documents"
    s3_prefix:  str = "documents"

    # Local dev: set these; prod: use the instance / task role (no static keys)
    aws_access_key_id:     str = ""
    aws_secret_access_key: str = ""

    # ------------------------------------------------------------------
    # Database (SQL repository backend only)
    # ------------------------------------------------------------------
    database_url: str = "sqlite+aiosqlite:///./docshelf.db"
    db_echo_sql:  bool = False   # set True in local dev to log queries

    # ------------------------------------------------------------------
    # Celery (celery dispatcher only)
    # ------------------------------------------------------------------
    celery_broker_url:     str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False

    @model_validator(mode="after")
    def _check_backends(self) -> "Settings":
        if self.storage_backend not in ("local", "s3"):
            raise ValueError(f"Unknown storage_backend: {self.storage_backend!r}")
        if self.repository_backend not in ("memory", "sql"):
            raise ValueError(f"Unknown repository_backend: {self.repository_backend!r}")
        if self.task_dispatcher not in ("inprocess", "celery"):
            raise ValueError(f"Unknown task_dispatcher: {self.task_dispatcher!r}")
        # A Celery worker runs in another process and cannot see an in-memory map
        if self.task_dispatcher == "celery" and self.repository_backend != "sql":
            raise ValueError("task_dispatcher=celery requires repository_backend=sql")
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def max_upload_mb(self) -> int:
        return self.max_upload_bytes // (1024 * 1024)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
