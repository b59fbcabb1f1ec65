"""
Document Schemas — Records, Updates, Stats and Error Envelopes

Covers the full lifecycle of a document record:
  - DocumentCreate  : fields known at upload time (written once)
  - DocumentUpdate  : the only fields the background step may change
  - Document        : the stored record returned by every endpoint
  - DocumentStats   : aggregate counters for GET /stats
  - ErrorResponse   : structured error bodies for all 4xx/5xx cases

State machine (status field):
    processing  — record created, extraction + analysis not finished
    completed   — content and derived fields written
    error       — background step failed; no derived fields

Design decisions:
  - id is always repository-assigned; never client-supplied.
  - file_type is the lowercased extension including the dot (".pdf").
  - All timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Closed enums
# ---------------------------------------------------------------------------

class FileType(str, Enum):
    """Declared type — selects the extraction strategy. Immutable after creation."""
    TXT  = ".txt"
    PDF  = ".pdf"
    DOCX = ".docx"
    DOC  = ".doc"

    @classmethod
    def from_filename(cls, filename: str) -> Optional["FileType"]:
        """
        Return the FileType for a filename's extension (case-insensitive), or None.
        A dotfile such as ".txt" has no extension.
        """
        stem, dot, ext = filename.rpartition(".")
        if not dot or not stem:
            return None
        try:
            return cls(f".{ext.lower()}")
        except ValueError:
            return None


class DocumentStatus(str, Enum):
    """Transitions: processing → completed | error (both terminal)."""
    PROCESSING = "processing"
    COMPLETED  = "completed"
    ERROR      = "error"


class Category(str, Enum):
    TECHNICAL = "Technical"
    LEGAL     = "Legal"
    RESEARCH  = "Research"
    GENERAL   = "General"


ALLOWED_EXTENSIONS: frozenset[str] = frozenset(t.value for t in FileType)

# Filter values meaning "no filter" on GET /documents
ALL_TYPES      = "All Types"
ALL_CATEGORIES = "All Categories"

MAX_KEYWORDS = 10
MAX_TITLE_LENGTH = 255


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class DocumentCreate(BaseModel):
    """Everything known when an upload is accepted."""
    title:             str
    original_filename: str
    stored_filename:   str
    file_type:         FileType
    size_bytes:        int = Field(..., ge=0)


class DocumentUpdate(BaseModel):
    """
    Fields the background step writes back in a single update.
    Identity and upload facts (id, file_type, size_bytes, ...) are not here
    and therefore cannot change.
    """
    content:     Optional[str] = None
    description: Optional[str] = None
    category:    Optional[Category] = None
    keywords:    Optional[list[str]] = Field(None, max_length=MAX_KEYWORDS)
    page_count:  Optional[int] = Field(None, ge=0)
    status:      Optional[DocumentStatus] = None


class Document(BaseModel):
    """A stored document record."""
    model_config = ConfigDict(from_attributes=True)

    id:                int
    title:             str
    original_filename: str
    stored_filename:   str
    file_type:         FileType
    size_bytes:        int = Field(..., ge=0)
    content:           Optional[str] = None
    description:       Optional[str] = None
    category:          Optional[Category] = None
    keywords:          Optional[list[str]] = Field(None, max_length=MAX_KEYWORDS)
    page_count:        Optional[int] = Field(None, ge=0)
    status:            DocumentStatus = DocumentStatus.PROCESSING
    upload_timestamp:  datetime

    @model_validator(mode="after")
    def _check_lifecycle(self) -> "Document":
        derived = {
            "content":     self.content,
            "description": self.description,
            "category":    self.category,
            "keywords":    self.keywords,
        }
        if self.status is DocumentStatus.COMPLETED:
            missing = [name for name, value in derived.items() if value is None]
            if missing:
                raise ValueError(f"completed document is missing {', '.join(missing)}")
        else:
            derived["page_count"] = self.page_count
            present = [name for name, value in derived.items() if value is not None]
            if present:
                raise ValueError(
                    f"{self.status.value} document must not carry {', '.join(present)}"
                )
        return self


class DocumentStats(BaseModel):
    """GET /stats body. Serialized with camelCase keys (totalDocuments, ...)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_documents:  int = 0
    total_size:       int = 0
    processing_count: int = 0


class DeleteResponse(BaseModel):
    message: str = "Document deleted successfully"


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str         = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code:    str               = Field(..., description="Stable machine-readable code")
    message:       str               = Field(..., description="Human-readable summary")
    details:       list[ErrorDetail] = Field(default_factory=list)
    request_id:    str | None        = Field(None, description="Trace ID for log correlation")


# ---------------------------------------------------------------------------
# Pre-defined error factories (keeps route handlers thin)
# ---------------------------------------------------------------------------

class UploadErrors:
    """Factories for every documented error case."""

    @staticmethod
    def unsupported_file_type(filename: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="UNSUPPORTED_FILE_TYPE",
            message="Unsupported file type. Only TXT, PDF, and DOCX files are allowed.",
            details=[
                ErrorDetail(
                    field="file",
                    message=(
                        f"'{filename}' has an unsupported extension. "
                        f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}."
                    ),
                    code="UNSUPPORTED_FILE_TYPE",
                )
            ],
        )

    @staticmethod
    def file_too_large(size_bytes: int, limit_bytes: int) -> ErrorResponse:
        limit_mb = limit_bytes // (1024 * 1024)
        return ErrorResponse(
            error_code="FILE_TOO_LARGE",
            message=f"Uploaded file exceeds the {limit_mb} MB limit.",
            details=[
                ErrorDetail(
                    field="file",
                    message=f"Received {size_bytes:,} bytes; limit is {limit_bytes:,} bytes.",
                    code="FILE_TOO_LARGE",
                )
            ],
        )

    @staticmethod
    def missing_file() -> ErrorResponse:
        return ErrorResponse(
            error_code="MISSING_FILE",
            message="No file uploaded.",
            details=[
                ErrorDetail(
                    field="file",
                    message="The 'file' multipart field is required.",
                    code="MISSING_FILE",
                )
            ],
        )

    @staticmethod
    def invalid_title(title: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="INVALID_TITLE",
            message="The provided title is too long.",
            details=[
                ErrorDetail(
                    field="title",
                    message=f"Title must be at most {MAX_TITLE_LENGTH} characters (got {len(title)}).",
                    code="INVALID_TITLE",
                )
            ],
        )

    @staticmethod
    def storage_error(detail: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="STORAGE_ERROR",
            message="Failed to store the document. Please retry.",
            details=(
                [ErrorDetail(field=None, message=detail, code="STORAGE_ERROR")]
                if detail
                else []
            ),
        )

    @staticmethod
    def internal_error(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            details=[],
            request_id=request_id,
        )

    @staticmethod
    def document_not_found(document_id: int) -> ErrorResponse:
        return ErrorResponse(
            error_code="DOCUMENT_NOT_FOUND",
            message=f"Document '{document_id}' was not found.",
            details=[],
        )

    @staticmethod
    def file_not_found(document_id: int) -> ErrorResponse:
        return ErrorResponse(
            error_code="FILE_NOT_FOUND",
            message=f"Stored file for document '{document_id}' was not found.",
            details=[],
        )
