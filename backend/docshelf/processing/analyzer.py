"""
Content Analyzer
════════════════

Derives the lightweight metadata stored alongside extracted text:

  description : first 200 characters, trimmed, "..." when truncated
  keywords    : top-10 most frequent tokens longer than 3 characters
  category    : first-match classification against fixed keyword lists
                (Technical → Legal → Research → General)

Pure functions — no I/O and no failure mode. Empty input still produces
a result (empty description, no keywords, General).
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field

from docshelf.schemas.documents import MAX_KEYWORDS, Category

DESCRIPTION_MAX_CHARS = 200
MIN_KEYWORD_LENGTH = 4   # tokens of length <= 3 are discarded

# ASCII \W, same token boundaries the web client assumes
_TOKEN_SPLIT_RE = re.compile(r"\W+", re.ASCII)

# Checked in order; the first list with any substring hit wins.
CATEGORY_KEYWORDS: tuple[tuple[Category, tuple[str, ...]], ...] = (
    (Category.TECHNICAL, (
        "software", "technology", "system", "algorithm", "code",
        "programming", "quantum", "ai", "artificial", "intelligence",
    )),
    (Category.LEGAL, (
        "legal", "law", "compliance", "regulation", "gdpr",
        "copyright", "patent", "license",
    )),
    (Category.RESEARCH, (
        "research", "study", "analysis", "methodology",
        "experiment", "data", "results",
    )),
)


@dataclass
class AnalysisResult:
    description: str
    category:    Category
    keywords:    list[str] = field(default_factory=list)


def build_description(content: str) -> str:
    description = content[:DESCRIPTION_MAX_CHARS].strip()
    if len(content) > DESCRIPTION_MAX_CHARS:
        description += "..."
    return description


def extract_keywords(content: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """
    Rank tokens by frequency, most frequent first.

    Counter keeps first-occurrence order and most_common() sorts stably,
    so equally frequent tokens stay in the order they first appeared.
    """
    tokens = (
        token
        for token in _TOKEN_SPLIT_RE.split(content.lower())
        if len(token) >= MIN_KEYWORD_LENGTH
    )
    return [token for token, _ in Counter(tokens).most_common(limit)]


def classify(content: str) -> Category:
    """Case-insensitive substring match over the whole content."""
    lowered = content.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return Category.GENERAL


def analyze_content(content: str) -> AnalysisResult:
    return AnalysisResult(
        description=build_description(content),
        category=classify(content),
        keywords=extract_keywords(content),
    )
