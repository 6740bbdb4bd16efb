"""
Tests for environment-driven configuration.
"""

import pytest

from dysapp.core import config
from dysapp.core.diagnose import FixScopeThresholds
from dysapp.core.rate_limiter import InMemoryRateLimiter, RateLimit
from dysapp.vector.embeddings import DeterministicHashEmbedding
from dysapp.vector.index import SimpleInMemoryVectorStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from the built-in defaults."""
    for name in ("VECTOR_PROVIDER", "EMBED_PROVIDER", "EMBEDDING_DIM", "DEBUG", "MIN_REFERENCE_SCORE",
                 "HIERARCHY_CRITICAL", "GOAL_CLARITY_CRITICAL", "SCANABILITY_CRITICAL",
                 "HIERARCHY_AMBIGUOUS_LOW", "HIERARCHY_AMBIGUOUS_HIGH", "GRID_CONSISTENCY_LOW"):
        monkeypatch.delenv(name, raising=False)
    for operation in config.RATE_LIMIT_DEFAULTS:
        monkeypatch.delenv(f"RATE_LIMIT_{operation.upper()}", raising=False)


class TestRateLimits:

    def test_defaults(self):
        limits = config.get_rate_limits()

        assert limits["analyze_design"] == RateLimit(max_requests=10, window_sec=60)
        assert limits["search_text"] == RateLimit(max_requests=30, window_sec=60)
        assert limits["default"] == RateLimit(max_requests=100, window_sec=60)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_SEARCH_TEXT", "5/10")
        assert config.get_rate_limits()["search_text"] == RateLimit(max_requests=5, window_sec=10)

    @pytest.mark.parametrize("raw", ["five/ten", "5", "0/60", "5/-1"])
    def test_malformed_override_keeps_default(self, monkeypatch, raw):
        monkeypatch.setenv("RATE_LIMIT_SEARCH_TEXT", raw)

        assert config.get_rate_limits()["search_text"] == RateLimit(max_requests=30, window_sec=60)
        assert any("RATE_LIMIT_SEARCH_TEXT" in issue for issue in config.validate_config())

    def test_rate_limiter_factory(self):
        limiter = config.get_rate_limiter()

        assert isinstance(limiter, InMemoryRateLimiter)
        assert limiter.limit_for("save_item") == RateLimit(max_requests=20, window_sec=60)
        assert limiter.limit_for("unknown_op") == RateLimit(max_requests=100, window_sec=60)
        assert not limiter.running


class TestFactories:

    def test_thresholds(self, monkeypatch):
        assert config.get_fix_scope_thresholds() == FixScopeThresholds()

        monkeypatch.setenv("HIERARCHY_CRITICAL", "40")
        assert config.get_fix_scope_thresholds().hierarchy_critical == 40

    def test_vector_store(self, monkeypatch):
        assert isinstance(config.get_vector_store(), SimpleInMemoryVectorStore)

        monkeypatch.setenv("VECTOR_PROVIDER", "annoy")
        with pytest.raises(ValueError):
            config.get_vector_store()

    def test_embedding_provider(self, monkeypatch):
        monkeypatch.setenv("EMBEDDING_DIM", "32")
        provider = config.get_embedding_provider()

        assert isinstance(provider, DeterministicHashEmbedding)
        assert provider.get_dimension() == 32

    def test_min_reference_score(self, monkeypatch):
        assert config.get_min_reference_score() == 70
        monkeypatch.setenv("MIN_REFERENCE_SCORE", "85")
        assert config.get_min_reference_score() == 85


class TestValidateConfig:

    def test_defaults_are_valid(self):
        assert config.validate_config() == []

    def test_reports_issues(self, monkeypatch):
        monkeypatch.setenv("VECTOR_PROVIDER", "annoy")
        monkeypatch.setenv("EMBED_PROVIDER", "magic")
        monkeypatch.setenv("HIERARCHY_AMBIGUOUS_LOW", "70")
        monkeypatch.setenv("HIERARCHY_AMBIGUOUS_HIGH", "60")

        issues = config.validate_config()

        assert len(issues) == 3
        assert "VECTOR_PROVIDER must be 'memory' or 'faiss'" in issues

    def test_debug_read_at_call_time(self, monkeypatch):
        assert config.debug_enabled() is False
        monkeypatch.setenv("DEBUG", "true")
        assert config.debug_enabled() is True

    def test_sentence_transformers_requires_explicit_dim(self, monkeypatch):
        monkeypatch.setenv("EMBED_PROVIDER", "sentence_transformers")

        issues = config.validate_config()
        assert any("EMBEDDING_DIM must be set" in issue for issue in issues)

        monkeypatch.setenv("EMBEDDING_DIM", "512")
        assert config.validate_config() == []

    def test_hash_provider_uses_default_dim(self, monkeypatch):
        monkeypatch.setenv("EMBED_PROVIDER", "hash")
        assert config.validate_config() == []
