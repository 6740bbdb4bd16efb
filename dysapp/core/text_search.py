"""
Naive OCR text search.

This is a linear scan over a candidate set the store has already narrowed to one
subject (plus optional equality and minimum-score filters). It is not an
inverted index.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .models import AnalysisRecord

_WHITESPACE = re.compile(r"\s+")

OCR_PREVIEW_LENGTH = 200


def normalize_text(text: str) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", (text or "").lower().strip())


@dataclass(frozen=True)
class TextSearchResult:
    record: AnalysisRecord
    relevance: float

    @property
    def ocr_preview(self) -> Optional[str]:
        text = self.record.ocr_text
        if text is None or len(text) <= OCR_PREVIEW_LENGTH:
            return text
        return text[:OCR_PREVIEW_LENGTH] + "..."


class TextSearchEngine:
    """Substring and word-overlap relevance scoring."""

    def relevance(self, query: str, text: str) -> float:
        """
        Score a candidate text against a query.

        A normalized substring match scores min(100, 50 + 10 * occurrences).
        Otherwise the score is (matching query words / total query words) * 50,
        comparing whole words. No match scores 0.
        """
        normalized_query = normalize_text(query)
        normalized_text = normalize_text(text)
        if not normalized_query or not normalized_text:
            return 0

        if normalized_query in normalized_text:
            occurrences = normalized_text.count(normalized_query)
            return min(100, 50 + occurrences * 10)

        query_words = normalized_query.split(" ")
        text_words = set(normalized_text.split(" "))
        matching = sum(1 for word in query_words if word in text_words)
        if matching:
            return (matching / len(query_words)) * 50

        return 0

    def search(self, query: str, candidates: Iterable[AnalysisRecord],
               limit: Optional[int] = None) -> List[TextSearchResult]:
        """Rank candidates by relevance desc, ties by overall score desc."""
        results = []
        for record in candidates:
            if not record.ocr_text or not record.ocr_text.strip():
                continue
            score = self.relevance(query, record.ocr_text)
            if score > 0:
                results.append(TextSearchResult(record=record, relevance=score))

        results.sort(key=lambda r: (-r.relevance, -r.record.overall_score))

        if limit is not None:
            results = results[:limit]
        return results
