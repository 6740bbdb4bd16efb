"""
Tests for OCR text relevance scoring and ranking.
"""

import pytest

from conftest import build_record
from dysapp.core.text_search import TextSearchEngine, TextSearchResult, normalize_text


def test_normalize_text():
    assert normalize_text("  Blue\n\tBanner   SALE ") == "blue banner sale"
    assert normalize_text(None) == ""


class TestRelevance:
    """Substring hits outrank partial word overlap."""

    def setup_method(self):
        self.engine = TextSearchEngine()

    def test_single_substring_match(self):
        assert self.engine.relevance("blue banner", "Blue Banner Sale Blue") == 60

    def test_repeated_substring_adds_ten_each(self):
        assert self.engine.relevance("Blue Banner", "blue banner, BLUE  banner") == 70

    def test_substring_score_capped(self):
        assert self.engine.relevance("sale", "sale " * 12) == 100

    def test_word_overlap_scores_proportionally(self):
        assert self.engine.relevance("blue poster", "Blue Banner") == pytest.approx(25)
        assert self.engine.relevance("red blue green poster", "blue green sale") == pytest.approx(25)

    def test_no_match(self):
        assert self.engine.relevance("summer", "Blue Banner") == 0

    def test_empty_inputs(self):
        assert self.engine.relevance("  ", "Blue Banner") == 0
        assert self.engine.relevance("blue", "") == 0


class TestSearch:

    def setup_method(self):
        self.engine = TextSearchEngine()

    def test_ranking_by_relevance_then_score(self):
        candidates = [
            build_record("one_word", ocr_text="Blue Poster", overall_score=95),
            build_record("phrase_low", ocr_text="Blue Banner Sale", overall_score=40),
            build_record("phrase_high", ocr_text="blue banner now", overall_score=90),
            build_record("unrelated", ocr_text="Summer Festival", overall_score=99),
        ]

        results = self.engine.search("blue banner", candidates)

        assert [r.record.id for r in results] == ["phrase_high", "phrase_low", "one_word"]
        assert [r.relevance for r in results] == [60, 60, 25]

    def test_skips_records_without_text(self):
        candidates = [
            build_record("none", ocr_text=None),
            build_record("blank", ocr_text="   "),
            build_record("hit", ocr_text="Blue Banner"),
        ]

        assert [r.record.id for r in self.engine.search("banner", candidates)] == ["hit"]

    def test_limit(self):
        candidates = [build_record(f"r{i}", ocr_text="sale") for i in range(5)]
        assert len(self.engine.search("sale", candidates, limit=2)) == 2


class TestOcrPreview:

    def test_long_text_truncated(self):
        result = TextSearchResult(record=build_record(ocr_text="x" * 250), relevance=60)

        assert len(result.ocr_preview) == 203
        assert result.ocr_preview.endswith("...")

    def test_short_text_unchanged(self):
        result = TextSearchResult(record=build_record(ocr_text="Blue Banner"), relevance=60)
        assert result.ocr_preview == "Blue Banner"
