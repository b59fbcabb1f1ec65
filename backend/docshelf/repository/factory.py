"""
Document Repository Factory

Selects the backend (memory | sql) based on config. The rest of the app
only imports create_repository() — never the concrete classes.
"""

from __future__ import annotations

from docshelf.core.config import Settings, settings as default_settings
from docshelf.repository.base import DocumentRepository


async def create_repository(config: Settings | None = None) -> DocumentRepository:
    """
    Build the configured repository. Called once at startup (and once per
    Celery worker process); the result is shared for the process lifetime.
    """
    config = config or default_settings
    backend = config.repository_backend.lower()

    if backend == "memory":
        from docshelf.repository.memory import InMemoryDocumentRepository
        return InMemoryDocumentRepository()

    if backend == "sql":
        from docshelf.repository.sql import SqlDocumentRepository
        return await SqlDocumentRepository.from_url(config.database_url, echo=config.db_echo_sql)

    raise ValueError(
        f"Unknown repository backend: '{backend}'. "
        f"Valid options: 'memory', 'sql'"
    )
