"""
SQLAlchemy ORM Model — Documents

Backs SqlDocumentRepository. Uses portable column types (JSON, not JSONB)
so the same model runs on SQLite (aiosqlite) for local dev and tests and
on PostgreSQL (asyncpg) in deployment.

Derived columns (content, description, category, keywords, page_count)
stay NULL until the background step writes them in a single UPDATE.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Declarative base: shared across all models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Document model: documents
# ---------------------------------------------------------------------------

class DocumentRecord(Base):
    """
    One uploaded file and everything derived from it.

    State machine (status column):
        processing — stored, waiting for extraction + analysis
        completed  — content and derived fields written
        error      — background step failed
    """

    __tablename__ = "documents"
    __table_args__ = (
        Index("idx_documents_status",      "status"),
        Index("idx_documents_upload_time", "upload_timestamp"),
        # Without AUTOINCREMENT SQLite hands a deleted max id to the next insert
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    original_filename: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Basename supplied by the client; used as the download filename",
    )
    stored_filename: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Opaque file-store reference: <uuid hex><ext>",
    )
    file_type: Mapped[str] = mapped_column(String(8), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Derived: NULL until status leaves 'processing'
    content:     Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category:    Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    keywords:    Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    page_count:  Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="processing",
        server_default="processing",
    )
    upload_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<DocumentRecord id={self.id} status={self.status} "
            f"file={self.original_filename!r}>"
        )
