"""
Document Ingestion Service

Orchestrates the synchronous half of the upload pipeline:
  1. Validate presence, extension and size of the upload
  2. Resolve the display title (caller-supplied or filename stem)
  3. Write the bytes to the file store
  4. Insert the document record (status=processing, no derived fields)
  5. Publish the background processing task
  6. Return the record immediately — the caller never waits on extraction

Validation invariants enforced here:
  - Extension is checked (case-insensitive) BEFORE anything is stored.
  - Size is capped while reading; oversized uploads never reach the store.
  - The stored filename is generated server-side; the client's filename is
    reduced to its basename and only used for display / download.

Nothing is stored and no record is created for a rejected upload.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from fastapi import HTTPException, UploadFile, status

from docshelf.repository.base import DocumentRepository
from docshelf.schemas.documents import (
    MAX_TITLE_LENGTH,
    Document,
    DocumentCreate,
    DocumentStatus,
    DocumentUpdate,
    FileType,
    UploadErrors,
)
from docshelf.services.processor import DocumentProcessor
from docshelf.storage.base import FileStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Filename helpers
# ---------------------------------------------------------------------------

def _basename(filename: str) -> str:
    """Strip any directory component a client may have sent."""
    return filename.replace("\\", "/").rsplit("/", 1)[-1].strip()


def _stem(filename: str) -> str:
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    return stem or filename


# ---------------------------------------------------------------------------
# Core ingestion orchestrator
# ---------------------------------------------------------------------------

class IngestionService:
    """
    Stateless service object — one instance per request.
    All dependencies are injected (testable, no hidden globals).
    """

    def __init__(
        self,
        repository:       DocumentRepository,
        store:            FileStore,
        task_publisher:   "TaskPublisher",
        max_upload_bytes: int,
    ) -> None:
        self._repository = repository
        self._store      = store
        self._publisher  = task_publisher
        self._max_bytes  = max_upload_bytes

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def ingest(self, file: UploadFile | None, title: str | None = None) -> Document:
        """
        Accept one upload. Returns the new record in `processing` state.
        Raises HTTPException with a structured ErrorResponse on validation
        and storage errors.
        """
        # ---- Step 1: Validate presence + extension -------------------
        if file is None or not file.filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=UploadErrors.missing_file().model_dump(),
            )

        original_filename = _basename(file.filename)
        file_type = FileType.from_filename(original_filename)
        if file_type is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=UploadErrors.unsupported_file_type(original_filename).model_dump(),
            )

        # ---- Step 2: Resolve title ------------------------------------
        resolved_title = (title or "").strip()
        if len(resolved_title) > MAX_TITLE_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=UploadErrors.invalid_title(resolved_title).model_dump(),
            )
        if not resolved_title:
            resolved_title = _stem(original_filename)[:MAX_TITLE_LENGTH]

        # ---- Step 3: Read with size guard ----------------------------
        data = await self._read_upload(file)

        # ---- Step 4: Store bytes -------------------------------------
        try:
            stored_filename = await self._store.save(data, file_type.value)
        except Exception as exc:
            logger.exception("File store write failed | file=%s", original_filename)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=UploadErrors.storage_error(str(exc)).model_dump(),
            )

        # ---- Step 5: Create record -----------------------------------
        try:
            doc = await self._repository.create(
                DocumentCreate(
                    title=resolved_title,
                    original_filename=original_filename,
                    stored_filename=stored_filename,
                    file_type=file_type,
                    size_bytes=len(data),
                )
            )
        except Exception:
            logger.exception("Record creation failed | ref=%s", stored_filename)
            await self._discard(stored_filename)
            raise

        logger.info(
            "Ingest accepted | doc=%s file=%s type=%s size=%d ref=%s",
            doc.id, original_filename, file_type.value, len(data), stored_filename,
        )

        # ---- Step 6: Publish background task -------------------------
        await self._dispatch(doc.id)

        return doc

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _read_upload(self, file: UploadFile) -> bytes:
        """
        Read the upload into memory with a hard size ceiling.
        Reads at most limit+1 bytes so an oversized body is never fully buffered.
        """
        data = await file.read(self._max_bytes + 1)
        if len(data) > self._max_bytes:
            size = file.size if file.size is not None else len(data)
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=UploadErrors.file_too_large(size, self._max_bytes).model_dump(),
            )
        return data

    async def _dispatch(self, document_id: int) -> None:
        """
        Publish the processing task. A document nobody will ever process
        must not sit in `processing`, so a publish failure moves it to error.
        """
        try:
            await self._publisher.publish(document_id)
        except Exception as exc:
            logger.error(
                "Failed to publish processing task | doc=%s error=%s", document_id, exc,
            )
            try:
                await self._repository.update(
                    document_id, DocumentUpdate(status=DocumentStatus.ERROR),
                )
            except Exception:
                logger.exception("Could not mark unpublished document as error | doc=%s", document_id)

    async def _discard(self, stored_filename: str) -> None:
        try:
            await self._store.delete(stored_filename)
        except Exception as exc:
            logger.warning("Orphaned stored file | ref=%s error=%s", stored_filename, exc)


# ---------------------------------------------------------------------------
# Task publishers: how the background step gets scheduled.
# Injected into IngestionService so they can be mocked in tests.
# ---------------------------------------------------------------------------

class TaskPublisher(ABC):
    """Schedules DocumentProcessor.process(document_id) without blocking the caller."""

    @abstractmethod
    async def publish(self, document_id: int) -> None:
        ...

    async def drain(self) -> None:
        """Wait for in-flight work this publisher owns (no-op for remote queues)."""


class InProcessTaskPublisher(TaskPublisher):
    """
    Runs the background step as an asyncio task on the current event loop.

    Strong references to in-flight tasks are kept until they finish so the
    loop cannot garbage-collect them mid-run. drain() is awaited on
    shutdown (and by tests) to let running steps reach a terminal state.
    """

    def __init__(self, processor: DocumentProcessor) -> None:
        self._processor = processor
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def publish(self, document_id: int) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._processor.process(document_id),
            name=f"process-document-{document_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Processing task scheduled | doc=%s", document_id)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class CeleryTaskPublisher(TaskPublisher):
    """
    Sends the document processing task to the Celery broker.
    Import is deferred so the broker connection is not required at module load time.
    """

    async def publish(self, document_id: int) -> None:
        """
        Dispatch process_document.apply_async() to the Celery worker.
        Runs in a thread executor to avoid blocking the async event loop.
        """
        from docshelf.workers.tasks import process_document

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            lambda: process_document.apply_async(kwargs={"document_id": document_id}),
        )
        logger.info("Processing task published | doc=%s", document_id)
