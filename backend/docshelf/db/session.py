"""
Database engine and session management (SQL repository backend only).

Flow:
  1. build_engine() creates an AsyncEngine from DATABASE_URL.
  2. init_models() creates the documents table if it does not exist.
  3. build_session_factory() returns the async_sessionmaker the repository
     uses — one short-lived session per repository call.

Nothing here runs at import time, so the default in-memory deployment
never opens a database connection.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from docshelf.models.documents import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(
        database_url,
        pool_pre_ping=True,   # detect stale connections before use
        echo=echo,            # log SQL in dev; disable in prod
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps ORM objects usable after commit
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create tables on first start. Migrations are out of scope for this schema."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready | url=%s", engine.url.render_as_string(hide_password=True))


async def check_db_health(engine: AsyncEngine) -> dict:
    """Used by /ready. Returns {"status": "ok"} or {"status": "error", "error": ...}."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        logger.error("Database health check failed: %s", exc)
        return {"status": "error", "error": str(exc)}
