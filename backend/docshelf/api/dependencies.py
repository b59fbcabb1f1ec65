"""
Composed FastAPI Dependencies

Route handlers import from here — never from repository/, storage/ or
services/ directly. The concrete backends are built once in the app
lifespan and parked on app.state; tests swap them through
app.dependency_overrides.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from docshelf.core.config import settings
from docshelf.repository.base import DocumentRepository
from docshelf.services.ingestion import IngestionService, TaskPublisher
from docshelf.storage.base import FileStore


# ---------------------------------------------------------------------------
# 1. Backends owned by the application
# ---------------------------------------------------------------------------

def get_repository(request: Request) -> DocumentRepository:
    return request.app.state.repository


def get_file_store(request: Request) -> FileStore:
    return request.app.state.file_store


def get_task_publisher(request: Request) -> TaskPublisher:
    return request.app.state.task_publisher


# ---------------------------------------------------------------------------
# 2. Per-request ingestion service
# ---------------------------------------------------------------------------

def get_ingestion_service(
    repository: Annotated[DocumentRepository, Depends(get_repository)],
    store:      Annotated[FileStore,          Depends(get_file_store)],
    publisher:  Annotated[TaskPublisher,      Depends(get_task_publisher)],
) -> IngestionService:
    return IngestionService(
        repository=repository,
        store=store,
        task_publisher=publisher,
        max_upload_bytes=settings.max_upload_bytes,
    )


# ---------------------------------------------------------------------------
# Type aliases for cleaner route signatures
# ---------------------------------------------------------------------------

Repository = Annotated[DocumentRepository, Depends(get_repository)]
Store      = Annotated[FileStore,          Depends(get_file_store)]
Ingestion  = Annotated[IngestionService,   Depends(get_ingestion_service)]
