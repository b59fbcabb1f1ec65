"""
Document repository contract.

Both backends (in-memory and SQL) implement this interface, so the
ingestion pipeline and API never depend on how records are stored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from docshelf.schemas.documents import (
    ALL_CATEGORIES,
    ALL_TYPES,
    Document,
    DocumentCreate,
    DocumentStats,
    DocumentStatus,
    DocumentUpdate,
)


class DocumentRepository(ABC):

    @abstractmethod
    async def create(self, data: DocumentCreate) -> Document:
        """Assign an id and upload timestamp, store in `processing`, return the record."""

    @abstractmethod
    async def get(self, document_id: int) -> Optional[Document]:
        """Return the record or None."""

    @abstractmethod
    async def update(
        self,
        document_id:  int,
        changes:      DocumentUpdate,
        *,
        expected_ref: Optional[str] = None,
    ) -> Optional[Document]:
        """
        Apply changes as one whole-record replacement. None if the id is unknown.

        With expected_ref set the write is a compare-and-set: it only lands
        while the record is still `processing` and still points at that
        stored file. Otherwise nothing changes and None is returned.
        """

    @abstractmethod
    async def delete(self, document_id: int) -> bool:
        """Remove the record. False if the id is unknown."""

    @abstractmethod
    async def list_all(self) -> list[Document]:
        """All records, newest upload first."""

    @abstractmethod
    async def search(
        self,
        query:     str = "",
        file_type: Optional[str] = None,
        category:  Optional[str] = None,
    ) -> list[Document]:
        """Records matching all three filters (AND), newest upload first."""

    @abstractmethod
    async def stats(self) -> DocumentStats:
        """Document count, total stored bytes and number still processing."""

    async def ping(self) -> bool:
        """Readiness probe hook; backends with a connection override this."""
        return True

    async def close(self) -> None:
        """Release backend resources on shutdown."""


# ---------------------------------------------------------------------------
# Shared filter semantics
# ---------------------------------------------------------------------------

def normalize_file_type(file_type: Optional[str]) -> Optional[str]:
    """None means no filter; 'pdf' and '.PDF' both mean '.pdf'."""
    if not file_type or file_type == ALL_TYPES:
        return None
    value = file_type.strip().lower()
    return value if value.startswith(".") else f".{value}"


def normalize_category(category: Optional[str]) -> Optional[str]:
    if not category or category == ALL_CATEGORIES:
        return None
    return category


def matches_query(doc: Document, query: str) -> bool:
    """Case-insensitive substring match on title, description, content or any keyword."""
    if not query:
        return True
    needle = query.lower()
    return (
        needle in doc.title.lower()
        or (doc.description is not None and needle in doc.description.lower())
        or (doc.content is not None and needle in doc.content.lower())
        or any(needle in keyword.lower() for keyword in doc.keywords or ())
    )


def matches_filters(
    doc:       Document,
    query:     str = "",
    file_type: Optional[str] = None,
    category:  Optional[str] = None,
) -> bool:
    wanted_type = normalize_file_type(file_type)
    wanted_category = normalize_category(category)
    return (
        matches_query(doc, query)
        and (wanted_type is None or doc.file_type.value == wanted_type)
        and (wanted_category is None or (doc.category is not None and doc.category.value == wanted_category))
    )


def owns_record(doc: Document, expected_ref: Optional[str]) -> bool:
    """True when an update guarded by expected_ref may be applied to doc."""
    if expected_ref is None:
        return True
    return doc.status is DocumentStatus.PROCESSING and doc.stored_filename == expected_ref


def newest_first(docs: Iterable[Document]) -> list[Document]:
    return sorted(docs, key=lambda d: (d.upload_timestamp, d.id), reverse=True)


def compute_stats(docs: Iterable[Document]) -> DocumentStats:
    docs = list(docs)
    return DocumentStats(
        total_documents=len(docs),
        total_size=sum(d.size_bytes for d in docs),
        processing_count=sum(1 for d in docs if d.status is DocumentStatus.PROCESSING),
    )
