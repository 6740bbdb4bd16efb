"""
Shared fixtures: model payloads, analysis records and temporary stores.
"""

import copy
from datetime import datetime, timedelta, timezone

import pytest

from dysapp.core.models import (
    AccessibilityFlags,
    AnalysisRecord,
    ColorItem,
    CommunicativeMetrics,
    EmotionalTone,
    FixScope,
    FormatPrediction,
    FormMetrics,
    PerformanceMetrics,
    Tier,
)
from dysapp.core.rate_limiter import InMemoryRateLimiter, RateLimit
from dysapp.core.store import SQLiteAnalysisStore
from dysapp.vector.index import SimpleInMemoryVectorStore

TEST_DIM = 8

BASE_PAYLOAD = {
    "format_prediction": "Poster",
    "layer1_performance": {
        "hierarchy_score": 80,
        "scanability_score": 70,
        "goal_clarity_score": 90,
        "accessibility": {"low_contrast": False, "tiny_text": True, "cluttered": False},
        "diagnosis_summary": "Clear focal point with a readable reading order.",
        "hierarchy_analysis": "Headline dominates.",
        "scanability_analysis": "Body copy is dense.",
        "goal_clarity_analysis": "CTA is obvious.",
    },
    "layer2_form": {
        "grid_consistency": 60,
        "visual_balance": 70,
        "color_harmony": 80,
        "typography_quality": 90,
        "grid_analysis": "Columns drift.",
        "balance_analysis": "Weighted left.",
        "color_analysis": "Analogous palette.",
        "typography_analysis": "Two families, good contrast.",
    },
    "layer3_communicative": {
        "trust_vibe": "High",
        "engagement_potential": "Medium",
        "emotional_tone": "Energetic",
        "trust_analysis": "Professional.",
        "engagement_analysis": "Moderate pull.",
        "emotional_analysis": "Upbeat.",
    },
    "overall_score": 77,
    "fix_scope": "DetailTuning",
    "color_palette": [
        {"hex": "#1a2b3c", "approx_name": "Navy", "usage_ratio": 0.5},
        {"hex": "#fff", "approx_name": "White", "usage_ratio": 0.3},
    ],
    "detected_keywords": ["poster", "sale", "bold"],
    "next_actions": ["Align columns", "Increase body size"],
    "strengths": ["Strong headline"],
    "weaknesses": ["Drifting grid"],
    "overall_analysis": "A solid poster that needs grid work.",
    "rag_search_queries": ["bold sale poster"],
    "recognized_text": "Blue Banner Sale",
}


@pytest.fixture
def model_payload():
    """A fresh, valid model payload per test."""
    return copy.deepcopy(BASE_PAYLOAD)


def build_record(record_id: str = "rec1", user_id: str = "user-a", **overrides) -> AnalysisRecord:
    created = overrides.pop("created_at", datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
    fields = dict(
        id=record_id,
        user_id=user_id,
        file_name="poster.png",
        image_url=None,
        format_prediction=FormatPrediction.POSTER,
        layer1=PerformanceMetrics(
            hierarchy_score=80, scanability_score=70, goal_clarity_score=90,
            accessibility=AccessibilityFlags(tiny_text=True),
            diagnosis_summary="summary",
        ),
        layer2=FormMetrics(grid_consistency=60, visual_balance=70, color_harmony=80, typography_quality=90),
        layer3=CommunicativeMetrics(trust_vibe=Tier.HIGH, engagement_potential=Tier.MEDIUM,
                                    emotional_tone=EmotionalTone.CALM),
        overall_score=78,
        model_overall_score=77,
        fix_scope=FixScope.DETAIL_TUNING,
        color_palette=[ColorItem(hex="#1A2B3C", approx_name="Navy", usage_ratio=0.5)],
        detected_keywords=["poster"],
        next_actions=["Align columns"],
        strengths=["Strong headline"],
        weaknesses=["Drifting grid"],
        overall_analysis="analysis",
        search_queries=["bold poster"],
        ocr_text=None,
        embedding=None,
        created_at=created,
        updated_at=created,
        last_analyzed_at=created,
    )
    fields.update(overrides)
    return AnalysisRecord(**fields)


@pytest.fixture
def make_record():
    """Factory for AnalysisRecord instances with sensible defaults."""
    counter = {"n": 0}

    def _make(record_id=None, user_id="user-a", **overrides):
        counter["n"] += 1
        if record_id is None:
            record_id = f"rec{counter['n']}"
        overrides.setdefault(
            "created_at", datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) + timedelta(minutes=counter["n"])
        )
        return build_record(record_id, user_id, **overrides)

    return _make


def unit(index: int, dim: int = TEST_DIM, weight: float = 1.0):
    """Basis vector with an optional small component on the next axis."""
    vector = [0.0] * dim
    vector[index % dim] = 1.0
    if weight != 1.0:
        vector[(index + 1) % dim] = weight
    return vector


@pytest.fixture
def store(tmp_path):
    """SQLite analysis store on a temporary database with an in-memory overlay."""
    return SQLiteAnalysisStore(str(tmp_path / "analyses.db"), SimpleInMemoryVectorStore())


@pytest.fixture
def permissive_limiter():
    return InMemoryRateLimiter(default=RateLimit(max_requests=10_000, window_sec=60))
