"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy (all function-scoped):
  backends      : repository, file_store, processor, publisher
  mocks         : mock_store, mock_publisher
  sample bytes  : sample_txt_bytes, sample_pdf_bytes, sample_docx_bytes, ...
  HTTP          : app_with_overrides, async_client

Environment strategy:
  - Default backends only: in-memory repository, local disk store under
    pytest's tmp_path, in-process asyncio publisher.
  - SQL repository tests use SQLite (aiosqlite) in tmp_path.
  - S3 tests mock aioboto3.Session — no AWS or LocalStack needed.
  - Celery is never contacted; apply_async is patched.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only
  pytest -m integration           # full HTTP stack, still no external services
  pytest backend/tests/unit/test_analyzer.py
"""

from __future__ import annotations

import io
import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("REPOSITORY_BACKEND",    "memory")
os.environ.setdefault("STORAGE_BACKEND",       "local")
os.environ.setdefault("TASK_DISPATCHER",       "inprocess")
os.environ.setdefault("UPLOAD_DIR",            os.path.join(tempfile.gettempdir(), "docshelf-test-uploads"))
os.environ.setdefault("AWS_REGION",            "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID",     "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("S3_BUCKET",             "test-bucket")
os.environ.setdefault("CELERY_BROKER_URL",     "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("APP_ENV",               "development")
os.environ.setdefault("DEBUG",                 "true")


# ─────────────────────────────────────────────────────────────────────────────
# Record helpers (plain functions: imported by test modules)
# ─────────────────────────────────────────────────────────────────────────────

def make_create(
    title:      str = "Quarterly report",
    file_type:  str = ".txt",
    size_bytes: int = 128,
    stored_filename: str | None = None,
):
    """Build a DocumentCreate with sensible defaults."""
    from docshelf.schemas.documents import DocumentCreate, FileType

    ft = FileType(file_type)
    return DocumentCreate(
        title=title,
        original_filename=f"{title.lower().replace(' ', '_')}{ft.value}",
        stored_filename=stored_filename or f"{uuid.uuid4().hex}{ft.value}",
        file_type=ft,
        size_bytes=size_bytes,
    )


def completed_update(
    content:  str = "Plain notes about the garden.",
    category: str = "General",
    keywords: list[str] | None = None,
    description: str | None = None,
    page_count: int | None = None,
):
    """Build the single DocumentUpdate the background step writes."""
    from docshelf.schemas.documents import Category, DocumentStatus, DocumentUpdate

    return DocumentUpdate(
        content=content,
        description=description if description is not None else content[:200].strip(),
        category=Category(category),
        keywords=keywords if keywords is not None else [],
        page_count=page_count,
        status=DocumentStatus.COMPLETED,
    )


def make_document(doc_id: int = 1, **overrides):
    """A processing-state Document, as returned right after upload."""
    from docshelf.schemas.documents import Document

    base = make_create().model_dump()
    base.update(
        id=doc_id,
        upload_timestamp=datetime.now(timezone.utc) - timedelta(seconds=doc_id),
    )
    base.update(overrides)
    return Document(**base)


# ─────────────────────────────────────────────────────────────────────────────
# Sample file bytes
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def sample_txt_bytes() -> bytes:
    """Plain UTF-8 text, including a non-ASCII character."""
    return "Software notes: the algorithm handles café orders.\nSecond line.\n".encode("utf-8")


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Two-page PDF with a real text layer, generated with PyMuPDF."""
    import fitz

    doc = fitz.open()
    for text in ("Research methodology overview", "Experiment results and analysis"):
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def corrupted_pdf_bytes() -> bytes:
    """Has the %PDF header but no parseable structure."""
    return b"%PDF-1.4\n" + b"\x00garbage" * 64


@pytest.fixture
def sample_docx_bytes() -> bytes:
    """DOCX with two paragraphs, generated with python-docx."""
    import docx

    document = docx.Document()
    document.add_paragraph("Copyright and license terms")
    document.add_paragraph("Second paragraph")
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


@pytest.fixture
def legacy_doc_bytes() -> bytes:
    """OLE2 compound-file header — a binary .doc that python-docx cannot read."""
    return b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 512


# ─────────────────────────────────────────────────────────────────────────────
# Real default backends (in-memory repository, tmp_path disk store)
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def repository():
    from docshelf.repository.memory import InMemoryDocumentRepository
    return InMemoryDocumentRepository()


@pytest.fixture
def file_store(tmp_path):
    from docshelf.storage.local import LocalFileStore
    return LocalFileStore(tmp_path / "uploads")


@pytest.fixture
def processor(repository, file_store):
    from docshelf.services.processor import DocumentProcessor
    return DocumentProcessor(repository, file_store)


@pytest.fixture
def publisher(processor):
    """In-process publisher; tests await publisher.drain() to finish background work."""
    from docshelf.services.ingestion import InProcessTaskPublisher
    return InProcessTaskPublisher(processor)


# ─────────────────────────────────────────────────────────────────────────────
# Mocks
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_store():
    """Fully mocked FileStore. All methods are AsyncMock."""
    from docshelf.storage.base import FileStore

    store = MagicMock(spec=FileStore)
    store.save   = AsyncMock(return_value="0123456789abcdef.txt")
    store.read   = AsyncMock(return_value=b"file content")
    store.delete = AsyncMock(return_value=True)
    store.exists = AsyncMock(return_value=True)
    return store


@pytest.fixture
def mock_publisher():
    """Mocked TaskPublisher — records calls without scheduling anything."""
    from docshelf.services.ingestion import TaskPublisher

    publisher = MagicMock(spec=TaskPublisher)
    publisher.publish = AsyncMock(return_value=None)
    publisher.drain   = AsyncMock(return_value=None)
    return publisher


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client with backend dependency overrides
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_with_overrides(repository, file_store, publisher):
    """
    FastAPI app with every backend dependency overridden:
      - get_repository     → in-memory repository fixture
      - get_file_store     → tmp_path LocalFileStore
      - get_task_publisher → InProcessTaskPublisher over the same two

    ASGITransport does not run the lifespan, so nothing touches app.state.
    """
    from docshelf.api.dependencies import get_file_store, get_repository, get_task_publisher
    from docshelf.main import app

    app.dependency_overrides[get_repository]     = lambda: repository
    app.dependency_overrides[get_file_store]     = lambda: file_store
    app.dependency_overrides[get_task_publisher] = lambda: publisher

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app_with_overrides, publisher) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client using the overridden app."""
    from httpx import ASGITransport
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await publisher.drain()
