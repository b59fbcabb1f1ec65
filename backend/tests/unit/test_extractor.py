"""
Unit Tests — Extractor
═══════════════════════
Runs every strategy against a real LocalFileStore in tmp_path.

Coverage targets:
  ✅ TXT  → verbatim UTF-8, no page count, invalid bytes replaced
  ✅ PDF  → page texts joined, page count reported
  ✅ PDF  corrupted → "PDF content extraction failed"
  ✅ DOCX → paragraphs joined with newline
  ✅ DOC  (binary) → "DOCX content extraction failed"
  ✅ Unknown type → "Unsupported file type"
  ✅ Missing stored file / strategy crash → "Text extraction failed"
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from docshelf.processing.extractor import (
    DOCX_FAILED,
    EXTRACTION_FAILED,
    PDF_FAILED,
    UNSUPPORTED_TYPE,
    Extractor,
    StrategyResult,
    extract_pdf,
)
from docshelf.schemas.documents import FileType


@pytest.mark.unit
@pytest.mark.extraction
class TestExtractor:

    async def test_txt_round_trip(self, file_store, sample_txt_bytes):
        ref = await file_store.save(sample_txt_bytes, ".txt")
        result = await Extractor().extract(file_store, ref, FileType.TXT)
        assert result.content == sample_txt_bytes.decode("utf-8")
        assert result.page_count is None

    async def test_txt_invalid_utf8_is_replaced(self, file_store):
        ref = await file_store.save(b"ok \xff\xfe end", ".txt")
        result = await Extractor().extract(file_store, ref, FileType.TXT)
        assert result.content.startswith("ok ")
        assert result.content.endswith(" end")
        assert "�" in result.content

    async def test_pdf_text_and_page_count(self, file_store, sample_pdf_bytes):
        ref = await file_store.save(sample_pdf_bytes, ".pdf")
        result = await Extractor().extract(file_store, ref, FileType.PDF)
        assert result.page_count == 2
        assert "Research methodology overview" in result.content
        assert "Experiment results and analysis" in result.content
        assert "\n\n" in result.content

    async def test_corrupted_pdf_yields_sentinel(self, file_store, corrupted_pdf_bytes):
        ref = await file_store.save(corrupted_pdf_bytes, ".pdf")
        result = await Extractor().extract(file_store, ref, FileType.PDF)
        assert result.content == PDF_FAILED
        assert result.page_count is None

    async def test_docx_paragraphs(self, file_store, sample_docx_bytes):
        ref = await file_store.save(sample_docx_bytes, ".docx")
        result = await Extractor().extract(file_store, ref, FileType.DOCX)
        assert result.content == "Copyright and license terms\nSecond paragraph"
        assert result.page_count is None

    async def test_legacy_doc_yields_docx_sentinel(self, file_store, legacy_doc_bytes):
        ref = await file_store.save(legacy_doc_bytes, ".doc")
        result = await Extractor().extract(file_store, ref, FileType.DOC)
        assert result.content == DOCX_FAILED

    async def test_string_type_is_accepted(self, file_store, sample_txt_bytes):
        ref = await file_store.save(sample_txt_bytes, ".txt")
        result = await Extractor().extract(file_store, ref, "TXT")
        assert result.content == sample_txt_bytes.decode("utf-8")

    async def test_unsupported_type(self, mock_store):
        result = await Extractor().extract(mock_store, "whatever.rtf", ".rtf")
        assert result.content == UNSUPPORTED_TYPE
        mock_store.read.assert_not_awaited()

    async def test_missing_stored_file(self, file_store):
        result = await Extractor().extract(file_store, "deadbeef.txt", FileType.TXT)
        assert result.content == EXTRACTION_FAILED

    async def test_store_io_error(self, mock_store):
        mock_store.read = AsyncMock(side_effect=OSError("disk on fire"))
        result = await Extractor().extract(mock_store, "abc.pdf", FileType.PDF)
        assert result.content == EXTRACTION_FAILED

    async def test_strategy_crash_is_caught(self, mock_store):
        def _boom(data: bytes) -> StrategyResult:
            raise RuntimeError("parser bug")

        extractor = Extractor(strategies={FileType.PDF: _boom})
        result = await extractor.extract(mock_store, "abc.pdf", FileType.PDF)
        assert result.content == EXTRACTION_FAILED


@pytest.mark.unit
@pytest.mark.extraction
class TestStrategies:

    def test_pdf_strategy_reports_failure_reason(self):
        result = extract_pdf(b"not a pdf at all")
        assert result.ok is False
        assert result.reason
