"""
Celery Tasks — Document Processing

Task: process_document
  Runs the same DocumentProcessor the in-process publisher uses:
  load record → read stored bytes → extract → analyze → single update.
  Failures are absorbed by the processor (status=error), so the task
  itself does not retry.

Each worker process builds its repository and file store once, lazily,
from the same settings as the API.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from celery import Task

from docshelf.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

_processor = None


# ---------------------------------------------------------------------------
# Async task helper
# Run async coroutines inside Celery's synchronous task context.
# ---------------------------------------------------------------------------

_loop: asyncio.AbstractEventLoop | None = None


def run_async(coro):
    """
    Execute an async coroutine from a synchronous Celery task.

    One loop per worker process: the SQL engine's pooled connections are
    bound to the loop that created them, so the loop must outlive a task.
    """
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


async def _get_processor():
    global _processor
    if _processor is None:
        from docshelf.core.config import settings
        from docshelf.repository.factory import create_repository
        from docshelf.services.processor import DocumentProcessor
        from docshelf.storage.factory import get_file_store

        _processor = DocumentProcessor(
            repository=await create_repository(settings),
            store=get_file_store(settings),
        )
    return _processor


# ---------------------------------------------------------------------------
# Main processing task
# ---------------------------------------------------------------------------

@celery_app.task(
    name="docshelf.workers.tasks.process_document",
    bind=True,
    max_retries=0,
)
def process_document(self: Task, *, document_id: int) -> dict[str, Any]:
    """Background step for one document. Returns the terminal status."""
    return run_async(_process_document_async(document_id))


async def _process_document_async(document_id: int) -> dict[str, Any]:
    processor = await _get_processor()
    doc = await processor.process(document_id)
    if doc is None:
        return {"status": "not_found", "document_id": document_id}
    return {"status": doc.status.value, "document_id": document_id}
