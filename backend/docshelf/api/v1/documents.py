"""
Document API Router
Prefix: /api/v1/documents

Endpoints:
  POST   /upload                 multipart upload → 201 + record in `processing`
  GET    ""                      list / search (search, fileType, category)
  GET    /{document_id}          single record
  GET    /{document_id}/download original bytes as an attachment
  DELETE /{document_id}          remove stored bytes + record

Request lifecycle (upload):
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Content-Length fast reject (before the body is read) │
  │ 2. Extension + size + title validation                  │
  │ 3. Bytes written to the file store                      │
  │ 4. Record created (status=processing)                   │
  │ 5. Background task published → returns 201              │
  └─────────────────────────────────────────────────────────┘

Clients poll GET /documents/{id} until status is `completed` or `error`.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse

from docshelf.api.dependencies import Ingestion, Repository, Store
from docshelf.core.config import settings
from docshelf.schemas.documents import (
    DeleteResponse,
    Document,
    ErrorResponse,
    FileType,
    UploadErrors,
)
from docshelf.storage.base import StoredFileNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/documents",
    tags=["Documents"],
)

# Multipart boundaries + headers around the file part
_FORM_OVERHEAD_BYTES = 4096

_MEDIA_TYPES = {
    FileType.TXT:  "text/plain; charset=utf-8",
    FileType.PDF:  "application/pdf",
    FileType.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    FileType.DOC:  "application/msword",
}


# ---------------------------------------------------------------------------
# POST /documents/upload
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=Document,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document for processing",
    description=(
        "Accepts TXT, PDF, DOCX or DOC files up to the configured limit. "
        "Returns 201 immediately with the record in `processing`; "
        "extraction and analysis run in the background."
    ),
    responses={
        201: {"model": Document, "description": "File accepted for processing"},
        400: {"model": ErrorResponse, "description": "Missing file, unsupported type or invalid title"},
        413: {"model": ErrorResponse, "description": "File exceeds the upload limit"},
        500: {"model": ErrorResponse, "description": "File store write failed"},
    },
)
async def upload_document(
    request: Request,
    service: Ingestion,
    file:    Optional[UploadFile] = File(None, description="Document file (TXT, PDF, DOCX, DOC)"),
    title:   Optional[str]        = Form(None, description="Display title; defaults to the filename stem"),
) -> JSONResponse:
    # Guard: reject oversized requests before parsing further
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit():
        declared = int(content_length)
        if declared > settings.max_upload_bytes + _FORM_OVERHEAD_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=UploadErrors.file_too_large(declared, settings.max_upload_bytes).model_dump(),
            )

    doc = await service.ingest(file=file, title=title)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=doc.model_dump(mode="json"),
        headers={
            "X-Document-ID": str(doc.id),
            "Location":      f"/api/v1/documents/{doc.id}",
        },
    )


# ---------------------------------------------------------------------------
# GET /documents : list / search
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[Document],
    summary="List or search documents",
    description=(
        "All filters are optional and combine with AND. "
        "`All Types` / `All Categories` mean no filter. Newest upload first."
    ),
)
async def list_documents(
    repository: Repository,
    search:     str           = Query("", description="Matches title, description, content or keyword"),
    file_type:  Optional[str] = Query(None, alias="fileType", description="e.g. .pdf"),
    category:   Optional[str] = Query(None, description="Technical | Legal | Research | General"),
) -> list[Document]:
    query = search.strip()
    if not query and not file_type and not category:
        return await repository.list_all()
    return await repository.search(query=query, file_type=file_type, category=category)


# ---------------------------------------------------------------------------
# GET /documents/{document_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{document_id}",
    response_model=Document,
    summary="Get a single document",
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse, "description": "Malformed document id"},
    },
)
async def get_document(document_id: int, repository: Repository) -> Document:
    return await _require_document(repository, document_id)


# ---------------------------------------------------------------------------
# GET /documents/{document_id}/download
# ---------------------------------------------------------------------------

@router.get(
    "/{document_id}/download",
    summary="Download the original file",
    response_class=Response,
    responses={
        200: {"description": "Original bytes as an attachment"},
        404: {"model": ErrorResponse, "description": "Unknown document or stored file missing"},
    },
)
async def download_document(document_id: int, repository: Repository, store: Store) -> Response:
    doc = await _require_document(repository, document_id)

    try:
        data = await store.read(doc.stored_filename)
    except StoredFileNotFoundError:
        logger.warning(
            "Stored file missing | doc=%s ref=%s", document_id, doc.stored_filename,
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=UploadErrors.file_not_found(document_id).model_dump(),
        )

    return Response(
        content=data,
        media_type=_MEDIA_TYPES.get(doc.file_type, "application/octet-stream"),
        headers={"Content-Disposition": _content_disposition(doc.original_filename)},
    )


# ---------------------------------------------------------------------------
# DELETE /documents/{document_id}
# ---------------------------------------------------------------------------

@router.delete(
    "/{document_id}",
    response_model=DeleteResponse,
    summary="Delete a document and its stored file",
    responses={
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse, "description": "File store delete failed; record kept"},
    },
)
async def delete_document(document_id: int, repository: Repository, store: Store) -> DeleteResponse:
    doc = await _require_document(repository, document_id)

    # Bytes first, then the record; an already-missing file is fine.
    # Any other store failure keeps the record so the client can retry.
    try:
        removed = await store.delete(doc.stored_filename)
    except Exception as exc:
        logger.error(
            "File store delete failed, record kept | doc=%s ref=%s error=%s",
            document_id, doc.stored_filename, exc,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=UploadErrors.storage_error(str(exc)).model_dump(),
        )
    if not removed:
        logger.info("Stored file already absent | doc=%s ref=%s", document_id, doc.stored_filename)

    if not await repository.delete(document_id):
        # Lost a race with another delete
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=UploadErrors.document_not_found(document_id).model_dump(),
        )

    logger.info("Document deleted | doc=%s", document_id)
    return DeleteResponse()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _require_document(repository: Repository, document_id: int) -> Document:
    doc = await repository.get(document_id)
    if doc is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=UploadErrors.document_not_found(document_id).model_dump(),
        )
    return doc


def _content_disposition(filename: str) -> str:
    """attachment header with an ASCII fallback plus the RFC 5987 UTF-8 form."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"
