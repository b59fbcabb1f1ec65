"""
In-memory document repository.

A dict keyed by auto-incrementing id, guarded by an asyncio.Lock. Records
are immutable pydantic models: update() validates and stores a brand-new
Document, so a reader holding an old record never sees a partial write.
Nothing survives a restart.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from docshelf.repository.base import (
    DocumentRepository,
    compute_stats,
    matches_filters,
    newest_first,
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


class InMemoryDocumentRepository(DocumentRepository):

    def __init__(self) -> None:
        self._documents: dict[int, Document] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def create(self, data: DocumentCreate) -> Document:
        async with self._lock:
            document = Document(
                id=self._next_id,
                upload_timestamp=datetime.now(timezone.utc),
                status=DocumentStatus.PROCESSING,
                **data.model_dump(),
            )
            self._documents[document.id] = document
            self._next_id += 1
        logger.debug("Created record | doc=%s", document.id)
        return document

    async def get(self, document_id: int) -> Optional[Document]:
        return self._documents.get(document_id)

    async def update(
        self,
        document_id:  int,
        changes:      DocumentUpdate,
        *,
        expected_ref: Optional[str] = None,
    ) -> Optional[Document]:
        async with self._lock:
            current = self._documents.get(document_id)
            if current is None or not owns_record(current, expected_ref):
                return None
            # model_validate re-runs the lifecycle invariants; model_copy would not
            updated = Document.model_validate(
                {**current.model_dump(), **changes.model_dump(exclude_unset=True)}
            )
            self._documents[document_id] = updated
        return updated

    async def delete(self, document_id: int) -> bool:
        async with self._lock:
            return self._documents.pop(document_id, None) is not None

    async def list_all(self) -> list[Document]:
        return newest_first(self._documents.values())

    async def search(
        self,
        query:     str = "",
        file_type: Optional[str] = None,
        category:  Optional[str] = None,
    ) -> list[Document]:
        return newest_first(
            doc for doc in list(self._documents.values())
            if matches_filters(doc, query, file_type, category)
        )

    async def stats(self) -> DocumentStats:
        return compute_stats(list(self._documents.values()))
