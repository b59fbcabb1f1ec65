"""
Document Processor — the background step of the ingestion pipeline

Runs once per document, off the request path:
  1. Load the record; skip unless status == processing
  2. Read the stored bytes and extract text   (Extractor — never raises)
  3. Derive description / category / keywords (Analyzer — pure)
  4. Write content + derived fields + status=completed in ONE update

If anything in steps 1–4 raises (repository failure, invariant violation,
a bug), the document is moved to status=error instead. The step itself
never raises: it is awaited by an asyncio task or a Celery worker, and
neither has anyone to report to.

Known gap: a process crash between upload and step 4 leaves the document
in `processing`; there is no recovery sweep.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from docshelf.processing.analyzer import analyze_content
from docshelf.processing.extractor import Extractor
from docshelf.repository.base import DocumentRepository
from docshelf.schemas.documents import Document, DocumentStatus, DocumentUpdate
from docshelf.storage.base import FileStore

logger = logging.getLogger(__name__)


class DocumentProcessor:

    def __init__(
        self,
        repository: DocumentRepository,
        store:      FileStore,
        extractor:  Extractor | None = None,
    ) -> None:
        self._repository = repository
        self._store      = store
        self._extractor  = extractor or Extractor()

    async def process(self, document_id: int) -> Optional[Document]:
        """Run the background step. Returns the final record, or None if it vanished."""
        t0 = time.monotonic()
        ref: Optional[str] = None
        try:
            doc = await self._repository.get(document_id)
            if doc is None:
                logger.error("Document not found, nothing to process | doc=%s", document_id)
                return None

            if doc.status is not DocumentStatus.PROCESSING:
                logger.warning(
                    "Document already in status=%s, skipping | doc=%s",
                    doc.status.value, document_id,
                )
                return doc

            ref = doc.stored_filename
            extraction = await self._extractor.extract(
                self._store, doc.stored_filename, doc.file_type,
            )
            analysis = analyze_content(extraction.content)

            updated = await self._repository.update(
                document_id,
                DocumentUpdate(
                    content=extraction.content,
                    page_count=extraction.page_count,
                    description=analysis.description,
                    category=analysis.category,
                    keywords=analysis.keywords,
                    status=DocumentStatus.COMPLETED,
                ),
                expected_ref=ref,
            )
        except Exception:
            logger.exception("Processing failed | doc=%s", document_id)
            return await self._mark_failed(document_id, ref)

        if updated is None:
            # Deleted (or its id handed to a new upload) while we were extracting
            logger.warning("Document gone or replaced during processing | doc=%s", document_id)
            return None

        logger.info(
            "Processing complete | doc=%s category=%s keywords=%d pages=%s elapsed_ms=%.0f",
            document_id, updated.category.value if updated.category else None,
            len(updated.keywords or ()), updated.page_count,
            (time.monotonic() - t0) * 1000,
        )
        return updated

    async def _mark_failed(self, document_id: int, ref: Optional[str]) -> Optional[Document]:
        """Move the document to status=error; log (never raise) if even that fails."""
        try:
            failed = await self._repository.update(
                document_id, DocumentUpdate(status=DocumentStatus.ERROR), expected_ref=ref,
            )
        except Exception:
            logger.exception(
                "Could not mark document as error; it stays in processing | doc=%s",
                document_id,
            )
            return None

        if failed is None:
            logger.warning("Document vanished before it could be marked error | doc=%s", document_id)
        else:
            logger.info("Document marked error | doc=%s", document_id)
        return failed
