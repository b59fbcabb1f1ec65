"""
Text Extraction
═══════════════

Strategy dispatch over the closed FileType enum:

  .txt          →  UTF-8 decode, verbatim
  .pdf          →  PyMuPDF (fitz) text layer + page count
  .docx / .doc  →  python-docx paragraph text

Every strategy returns a StrategyResult (success with content, or failure
with a reason). The Extractor normalises failures into fixed sentinel
strings so a bad file still yields *some* content:

  PDF_FAILED          "PDF content extraction failed"
  DOCX_FAILED         "DOCX content extraction failed"
  UNSUPPORTED_TYPE    "Unsupported file type"
  EXTRACTION_FAILED   "Text extraction failed"   (I/O or anything unexpected)

Extractor.extract() never raises. The ingestion pipeline has no retry
path, so an exception here would strand the document in `processing`.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from docshelf.schemas.documents import FileType
from docshelf.storage.base import FileStore

logger = logging.getLogger(__name__)

PDF_FAILED        = "PDF content extraction failed"
DOCX_FAILED       = "DOCX content extraction failed"
UNSUPPORTED_TYPE  = "Unsupported file type"
EXTRACTION_FAILED = "Text extraction failed"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class StrategyResult:
    """
    Outcome of a single format strategy.

    ok          : True when the parser produced text
    content     : extracted text (empty on failure)
    page_count  : pages reported by the parser, if the format has them
    reason      : failure description (logged, never returned to clients)
    """
    ok:         bool
    content:    str = ""
    page_count: Optional[int] = None
    reason:     str = ""

    @classmethod
    def success(cls, content: str, page_count: Optional[int] = None) -> "StrategyResult":
        return cls(ok=True, content=content, page_count=page_count)

    @classmethod
    def failure(cls, reason: str) -> "StrategyResult":
        return cls(ok=False, reason=reason)


@dataclass
class ExtractionResult:
    content:    str
    page_count: Optional[int] = None


# ---------------------------------------------------------------------------
# Strategies: blocking; run in the thread executor
# ---------------------------------------------------------------------------

def extract_txt(data: bytes) -> StrategyResult:
    return StrategyResult.success(data.decode("utf-8", errors="replace"))


def extract_pdf(data: bytes) -> StrategyResult:
    try:
        import fitz  # PyMuPDF; imported here to avoid module-level import cost

        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text("text") or "" for page in doc]
            page_count = doc.page_count
    except Exception as exc:
        return StrategyResult.failure(f"{type(exc).__name__}: {exc}")

    # MuPDF repairs some broken files into an empty document instead of raising
    if page_count == 0:
        return StrategyResult.failure("no pages")

    return StrategyResult.success("\n\n".join(pages), page_count=page_count)


def extract_docx(data: bytes) -> StrategyResult:
    try:
        import docx  # python-docx

        document = docx.Document(io.BytesIO(data))
    except Exception as exc:
        return StrategyResult.failure(f"{type(exc).__name__}: {exc}")

    return StrategyResult.success("\n".join(p.text for p in document.paragraphs))


Strategy = Callable[[bytes], StrategyResult]

STRATEGIES: dict[FileType, Strategy] = {
    FileType.TXT:  extract_txt,
    FileType.PDF:  extract_pdf,
    FileType.DOCX: extract_docx,
    FileType.DOC:  extract_docx,
}

FAILURE_SENTINELS: dict[FileType, str] = {
    FileType.TXT:  EXTRACTION_FAILED,
    FileType.PDF:  PDF_FAILED,
    FileType.DOCX: DOCX_FAILED,
    FileType.DOC:  DOCX_FAILED,
}


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class Extractor:
    """
    Reads a stored file and runs the strategy for its declared type.

    Usage:
        extractor = Extractor()
        result = await extractor.extract(store, doc.stored_filename, doc.file_type)
    """

    def __init__(self, strategies: dict[FileType, Strategy] | None = None) -> None:
        self._strategies = strategies if strategies is not None else STRATEGIES

    async def extract(
        self,
        store:           FileStore,
        stored_filename: str,
        declared_type:   FileType | str,
    ) -> ExtractionResult:
        t0 = time.monotonic()

        file_type = _coerce_type(declared_type)
        strategy = self._strategies.get(file_type) if file_type else None
        if strategy is None:
            logger.warning(
                "Extraction skipped | ref=%s type=%s reason=unsupported",
                stored_filename, declared_type,
            )
            return ExtractionResult(content=UNSUPPORTED_TYPE)

        try:
            data = await store.read(stored_filename)
            loop = asyncio.get_running_loop()
            result: StrategyResult = await loop.run_in_executor(None, strategy, data)
        except Exception as exc:
            logger.error(
                "Text extraction failed | ref=%s type=%s error=%s",
                stored_filename, file_type.value, exc, exc_info=True,
            )
            return ExtractionResult(content=EXTRACTION_FAILED)

        if not result.ok:
            logger.warning(
                "Parser failed, using sentinel | ref=%s type=%s reason=%s",
                stored_filename, file_type.value, result.reason,
            )
            return ExtractionResult(content=FAILURE_SENTINELS[file_type])

        logger.info(
            "Extraction | ref=%s type=%s chars=%d pages=%s elapsed_ms=%.0f",
            stored_filename, file_type.value, len(result.content),
            result.page_count, (time.monotonic() - t0) * 1000,
        )
        return ExtractionResult(content=result.content, page_count=result.page_count)


def _coerce_type(declared_type: FileType | str) -> FileType | None:
    if isinstance(declared_type, FileType):
        return declared_type
    value = str(declared_type).lower()
    if value and not value.startswith("."):
        value = f".{value}"
    try:
        return FileType(value)
    except ValueError:
        return None
