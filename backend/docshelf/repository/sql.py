"""
SQLAlchemy document repository.

Each call opens its own short-lived session. update() loads the row,
validates the merged record against the Document lifecycle invariants and
writes every mutable column in one transaction, so the change is atomic
per record. Free-text matching reuses the shared predicate; file-type and
category filters and ordering run in SQL.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from docshelf.db.session import build_engine, build_session_factory, check_db_health, init_models
from docshelf.models.documents import DocumentRecord
from docshelf.repository.base import (
    DocumentRepository,
    matches_query,
    normalize_category,
    normalize_file_type,
    owns_record,
)
from docshelf.schemas.documents import (
    Document,
    DocumentCreate,
    DocumentStats,
    DocumentStatus,
    DocumentUpdate,
)

logger = logging.getLogger(__name__)

_MUTABLE_COLUMNS = ("content", "description", "category", "keywords", "page_count", "status")


def _to_document(record: DocumentRecord) -> Document:
    uploaded = record.upload_timestamp
    if uploaded.tzinfo is None:
        # SQLite hands back naive datetimes; everything is stored as UTC
        uploaded = uploaded.replace(tzinfo=timezone.utc)
    return Document(
        id=record.id,
        title=record.title,
        original_filename=record.original_filename,
        stored_filename=record.stored_filename,
        file_type=record.file_type,
        size_bytes=record.size_bytes,
        content=record.content,
        description=record.description,
        category=record.category,
        keywords=list(record.keywords) if record.keywords is not None else None,
        page_count=record.page_count,
        status=record.status,
        upload_timestamp=uploaded,
    )


class SqlDocumentRepository(DocumentRepository):

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine | None = None,
    ) -> None:
        self._sessions = session_factory
        self._engine = engine

    @classmethod
    async def from_url(cls, database_url: str, echo: bool = False) -> "SqlDocumentRepository":
        engine = build_engine(database_url, echo=echo)
        await init_models(engine)
        return cls(build_session_factory(engine), engine=engine)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(self, data: DocumentCreate) -> Document:
        record = DocumentRecord(
            title=data.title,
            original_filename=data.original_filename,
            stored_filename=data.stored_filename,
            file_type=data.file_type.value,
            size_bytes=data.size_bytes,
            status=DocumentStatus.PROCESSING.value,
            upload_timestamp=datetime.now(timezone.utc),
        )
        async with self._sessions.begin() as session:
            session.add(record)
            await session.flush()   # assigns id
            document = _to_document(record)
        logger.debug("Created record | doc=%s", document.id)
        return document

    async def get(self, document_id: int) -> Optional[Document]:
        async with self._sessions() as session:
            record = await session.get(DocumentRecord, document_id)
            return _to_document(record) if record is not None else None

    async def update(
        self,
        document_id:  int,
        changes:      DocumentUpdate,
        *,
        expected_ref: Optional[str] = None,
    ) -> Optional[Document]:
        async with self._sessions.begin() as session:
            record = await session.get(DocumentRecord, document_id, with_for_update=True)
            if record is None:
                return None

            current = _to_document(record)
            if not owns_record(current, expected_ref):
                logger.debug("Guarded update skipped | doc=%s ref=%s", document_id, expected_ref)
                return None
            updated = Document.model_validate(
                {**current.model_dump(), **changes.model_dump(exclude_unset=True)}
            )
            for column, value in updated.model_dump(mode="json", include=set(_MUTABLE_COLUMNS)).items():
                setattr(record, column, value)
        return updated

    async def delete(self, document_id: int) -> bool:
        async with self._sessions.begin() as session:
            result = await session.execute(
                delete(DocumentRecord).where(DocumentRecord.id == document_id)
            )
            return result.rowcount > 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_all(self) -> list[Document]:
        return await self.search()

    async def search(
        self,
        query:     str = "",
        file_type: Optional[str] = None,
        category:  Optional[str] = None,
    ) -> list[Document]:
        stmt = select(DocumentRecord).order_by(
            DocumentRecord.upload_timestamp.desc(),
            DocumentRecord.id.desc(),
        )
        wanted_type = normalize_file_type(file_type)
        if wanted_type is not None:
            stmt = stmt.where(DocumentRecord.file_type == wanted_type)
        wanted_category = normalize_category(category)
        if wanted_category is not None:
            stmt = stmt.where(DocumentRecord.category == wanted_category)

        async with self._sessions() as session:
            result = await session.execute(stmt)
            documents = [_to_document(r) for r in result.scalars().all()]

        return [d for d in documents if matches_query(d, query)]

    async def stats(self) -> DocumentStats:
        stmt = select(
            func.count(DocumentRecord.id),
            func.coalesce(func.sum(DocumentRecord.size_bytes), 0),
            func.coalesce(
                func.sum(case((DocumentRecord.status == DocumentStatus.PROCESSING.value, 1), else_=0)),
                0,
            ),
        )
        async with self._sessions() as session:
            total, size, processing = (await session.execute(stmt)).one()
        return DocumentStats(
            total_documents=int(total),
            total_size=int(size),
            processing_count=int(processing),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        if self._engine is None:
            return True
        return (await check_db_health(self._engine))["status"] == "ok"

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
