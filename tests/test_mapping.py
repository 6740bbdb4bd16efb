"""
Tests for the vocabulary mapping between model output, records, store
documents and analytics rows.
"""

import json

from conftest import build_record
from dysapp.core.mapping import (
    candidate_to_model,
    record_from_document,
    record_to_analytics_metrics_row,
    record_to_analytics_work_row,
    record_to_document,
)
from dysapp.core.sanitizer import ResponseSanitizer
from dysapp.core.validation import ResponseValidator


class TestStoreDocument:
    """Record <-> nested camelCase document."""

    def test_document_uses_store_vocabulary(self):
        doc = record_to_document(build_record())

        assert doc["userId"] == "user-a"
        assert doc["formatPrediction"] == "Poster"
        assert doc["fixScope"] == "DetailTuning"
        assert doc["layer1Metrics"]["hierarchyScore"] == 80
        assert doc["layer1Metrics"]["accessibility"]["tinyText"] is True
        assert doc["layer3Metrics"]["emotionalTone"] == "Calm"
        assert doc["colorPalette"] == [{"hex": "#1A2B3C", "approxName": "Navy", "usageRatio": 0.5}]
        assert doc["ragSearchQueries"] == ["bold poster"]
        assert doc["modelOverallScore"] == 77
        assert doc["imageEmbedding"] is None
        assert doc["createdAt"] == "2024-05-01T12:00:00+00:00"

    def test_document_is_json_serializable(self):
        record = build_record(embedding=[0.25, 0.5], ocr_text="Sale")
        assert json.loads(json.dumps(record_to_document(record)))["imageEmbedding"] == [0.25, 0.5]

    def test_round_trip_preserves_every_field(self):
        record = build_record(
            image_url="https://cdn.example.com/poster.png",
            ocr_text="Blue Banner Sale",
            embedding=[0.25, -0.5, 1.0],
            embedding_model="deterministic-hash",
            embedding_dim=3,
            embedding_version=1,
            fix_scope_override_reason="Model suggested DetailTuning",
            is_public=True,
        )

        doc = json.loads(json.dumps(record_to_document(record)))
        restored = record_from_document(record.id, doc)

        assert restored == record
        assert restored.has_embedding

    def test_missing_optional_fields_decode_to_none(self):
        doc = record_to_document(build_record())
        for key in ("imageUrl", "ocrText", "imageEmbedding", "fixScopeOverrideReason"):
            doc.pop(key)

        restored = record_from_document("rec1", doc)

        assert restored.image_url is None
        assert restored.ocr_text is None
        assert restored.embedding is None
        assert restored.has_embedding is False


class TestModelVocabulary:
    """Candidate -> model payload."""

    def test_candidate_to_model_uses_model_keys(self, model_payload):
        candidate = ResponseSanitizer().sanitize(ResponseValidator().validated(model_payload))
        payload = candidate_to_model(candidate)

        assert payload["rag_search_queries"] == ["bold sale poster"]
        assert payload["recognized_text"] == "Blue Banner Sale"
        assert payload["layer1_performance"]["accessibility"]["tiny_text"] is True
        assert payload["color_palette"][1]["hex"] == "#FFFFFF"

    def test_missing_ocr_text_omitted(self, model_payload):
        del model_payload["recognized_text"]
        candidate = ResponseSanitizer().sanitize(ResponseValidator().validated(model_payload))

        assert "recognized_text" not in candidate_to_model(candidate)


class TestAnalyticsRows:
    """Flat snake_case export rows."""

    def test_work_row(self):
        row = record_to_analytics_work_row(build_record())

        assert row == {
            "id": "rec1",
            "user_id": "user-a",
            "file_name": "poster.png",
            "format": "Poster",
            "image_url": None,
            "created_at": "2024-05-01T12:00:00+00:00",
            "updated_at": "2024-05-01T12:00:00+00:00",
            "analysis_version": 1,
            "embedding_version": None,
        }

    def test_metrics_row(self):
        row = record_to_analytics_metrics_row(build_record())

        assert row["layer1_hierarchy_score"] == 80
        assert row["layer1_accessibility_tiny_text"] is True
        assert row["layer1_diagnosis_summary"] == "summary"
        assert row["layer2_typography_quality"] == 90
        assert row["layer3_trust_vibe"] == "High"
        assert row["overall_score"] == 78
        assert row["fix_scope"] == "DetailTuning"
        assert row["color_palette"] == [{"hex": "#1A2B3C", "approx_name": "Navy", "usage_ratio": 0.5}]
        assert row["detected_keywords"] == ["poster"]
        assert row["rag_search_queries"] == ["bold poster"]
        assert row["last_analyzed_at"] == "2024-05-01T12:00:00+00:00"

    def test_metrics_row_leaves_out_prose_and_work_fields(self):
        row = record_to_analytics_metrics_row(build_record())

        assert "layer1_hierarchy_analysis" not in row
        assert "format" not in row
        assert "next_actions" not in row
