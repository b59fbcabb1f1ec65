"""
Document Processing Package
════════════════════════════

The content-derivation half of the ingestion pipeline:

  Stored file → Text Extraction → Content Analysis

Modules
───────
  extractor.py  Strategy dispatch per declared type (TXT / PDF / DOCX) with sentinel fallbacks
  analyzer.py   Description, keyword and category derivation from extracted text

Both are stateless; the background processor in services/processor.py
wires them to the repository.
"""

from docshelf.processing.analyzer import AnalysisResult, analyze_content
from docshelf.processing.extractor import ExtractionResult, Extractor

__all__ = [
    "AnalysisResult",
    "analyze_content",
    "ExtractionResult",
    "Extractor",
]
