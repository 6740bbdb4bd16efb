"""
Tests for ResponseSanitizer normalization.
"""

import pytest

from dysapp.core.mapping import candidate_to_model
from dysapp.core.models import (
    EmotionalTone,
    FixScope,
    FormatPrediction,
    Tier,
    ValidatedAnalysisResult,
)
from dysapp.core.sanitizer import ResponseSanitizer, canonical_hex
from dysapp.core.validation import ResponseValidator


def sanitize(payload):
    return ResponseSanitizer().sanitize(ResponseValidator().validated(payload))


class TestCanonicalHex:

    @pytest.mark.parametrize("raw,expected", [
        ("#abc", "#AABBCC"),
        ("1a2b3c", "#1A2B3C"),
        (" #FfF ", "#FFFFFF"),
    ])
    def test_canonical_form(self, raw, expected):
        assert canonical_hex(raw) == expected


class TestResponseSanitizer:
    """Sanitization of validated payloads into candidates."""

    def test_maps_model_vocabulary_to_candidate(self, model_payload):
        candidate = sanitize(model_payload)

        assert candidate.format_prediction == FormatPrediction.POSTER
        assert candidate.fix_scope == FixScope.DETAIL_TUNING
        assert candidate.layer1.hierarchy_score == 80
        assert candidate.layer1.accessibility.tiny_text is True
        assert candidate.layer2.grid_consistency == 60
        assert candidate.layer3.trust_vibe == Tier.HIGH
        assert candidate.layer3.emotional_tone == EmotionalTone.ENERGETIC
        assert candidate.search_queries == ["bold sale poster"]
        assert candidate.ocr_text == "Blue Banner Sale"

    def test_scores_clamped_and_rounded_half_up(self, model_payload):
        model_payload["layer1_performance"]["hierarchy_score"] = 104.6
        model_payload["layer1_performance"]["scanability_score"] = -3
        model_payload["layer1_performance"]["goal_clarity_score"] = 72.5
        model_payload["overall_score"] = 49.5

        candidate = sanitize(model_payload)

        assert candidate.layer1.hierarchy_score == 100
        assert candidate.layer1.scanability_score == 0
        assert candidate.layer1.goal_clarity_score == 73
        assert candidate.overall_score == 50

    def test_usage_ratio_clamped(self, model_payload):
        model_payload["color_palette"][0]["usage_ratio"] = 1.7
        model_payload["color_palette"][1]["usage_ratio"] = -0.2

        candidate = sanitize(model_payload)

        assert candidate.color_palette[0].usage_ratio == 1.0
        assert candidate.color_palette[1].usage_ratio == 0.0

    def test_colors_canonicalized(self, model_payload):
        candidate = sanitize(model_payload)
        assert [c.hex for c in candidate.color_palette] == ["#1A2B3C", "#FFFFFF"]

    def test_lists_truncated_to_first_entries(self, model_payload):
        model_payload["detected_keywords"] = [f"kw{i}" for i in range(30)]
        model_payload["next_actions"] = [f"action{i}" for i in range(10)]
        model_payload["color_palette"] = [
            {"hex": f"#00000{i}", "approx_name": f"c{i}", "usage_ratio": 0.1} for i in range(8)
        ]

        candidate = sanitize(model_payload)

        assert candidate.detected_keywords == [f"kw{i}" for i in range(20)]
        assert candidate.next_actions == [f"action{i}" for i in range(7)]
        assert [c.approx_name for c in candidate.color_palette] == ["c0", "c1", "c2", "c3", "c4"]

    def test_list_items_coerced_to_strings(self, model_payload):
        model_payload["detected_keywords"] = [1, "bold"]
        model_payload["strengths"] = ["  padded  ", 7.5]
        candidate = sanitize(model_payload)

        assert candidate.detected_keywords == ["1", "bold"]
        assert candidate.strengths == ["padded", "7.5"]

    def test_empty_recognized_text_becomes_none(self, model_payload):
        model_payload["recognized_text"] = ""
        assert sanitize(model_payload).ocr_text is None

        del model_payload["recognized_text"]
        assert sanitize(model_payload).ocr_text is None

    def test_null_text_becomes_empty_string(self, model_payload):
        model_payload["layer1_performance"]["diagnosis_summary"] = None
        assert sanitize(model_payload).layer1.diagnosis_summary == ""

    def test_requires_validated_input(self, model_payload):
        """Raw payloads cannot bypass the validator."""
        with pytest.raises(TypeError):
            ResponseSanitizer().sanitize(model_payload)

    def test_idempotent(self, model_payload):
        """Sanitizing already-sanitized output changes nothing."""
        model_payload["overall_score"] = 66.5
        model_payload["layer2_form"]["visual_balance"] = 130
        first = sanitize(model_payload)

        second = ResponseSanitizer().sanitize(
            ValidatedAnalysisResult(payload=candidate_to_model(first))
        )

        assert second == first
