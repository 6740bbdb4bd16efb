"""
Critique pipeline orchestrator.

analyze_design runs: rate limit -> input checks -> vision model -> validator ->
sanitizer -> decision engine -> score aggregation -> embedding -> store.
Every other operation is gated by the same limiter and checks ownership before
touching anything.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Tuple

from . import config
from .diagnose import DecisionEngine, DiagnosisDetails, FixScopeDecision
from .errors import (
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
    RateLimitedError,
)
from .inputs import validate_file_name, validate_image_size, validate_mime_type, validate_record_id
from .model_client import IGenerativeModel
from .models import (
    AnalysisRecord,
    Bookmark,
    FixScope,
    FormatPrediction,
    SearchFilters,
    UserPreferences,
    UserProfile,
)
from .rate_limiter import IRateLimiter
from .sanitizer import ResponseSanitizer
from .scoring import ScoreAggregator
from .store import IAnalysisStore
from .text_search import TextSearchEngine, TextSearchResult
from .validation import ResponseValidator
from .vision_schema import DESIGN_ANALYSIS_SCHEMA, SYSTEM_INSTRUCTION
from dysapp.util.logging import logger
from dysapp.vector.embeddings import IEmbeddingProvider
from dysapp.vector.similarity import SimilarityIndex, SimilarResult


@dataclass(frozen=True)
class AnalysisOutcome:
    record: AnalysisRecord
    decision: FixScopeDecision
    diagnosis: DiagnosisDetails


@dataclass(frozen=True)
class AnalysisPage:
    records: List[AnalysisRecord]
    total: int
    has_more: bool
    limit: int
    offset: int


@dataclass(frozen=True)
class BookmarkEntry:
    bookmark: Bookmark
    record: Optional[AnalysisRecord]


@dataclass(frozen=True)
class BookmarkPage:
    entries: List[BookmarkEntry]
    has_more: bool
    next_cursor: Optional[str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _bounded_limit(limit: Optional[int], default: int, maximum: int) -> int:
    if limit is None:
        return default
    if limit < 1:
        raise InvalidArgumentError("limit must be >= 1")
    return min(limit, maximum)


def _string_list(preferences: Mapping[str, Any], key: str) -> List[str]:
    value = preferences.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise InvalidArgumentError(f"preferences.{key} must be a list of strings")
    return list(value)


def _parse_preferences(preferences: Mapping[str, Any]) -> UserPreferences:
    if not isinstance(preferences, Mapping):
        raise InvalidArgumentError("preferences must be an object")

    language = preferences.get("language")
    if language is not None and not isinstance(language, str):
        raise InvalidArgumentError("preferences.language must be a string")

    return UserPreferences(
        preferred_formats=_string_list(preferences, "preferred_formats"),
        preferred_colors=_string_list(preferences, "preferred_colors"),
        language=language,
    )


class AnalysisPipeline:
    """Sequences the critique stages and the read/search/bookmark operations."""

    def __init__(self, store: IAnalysisStore, model: IGenerativeModel,
                 embedder: Optional[IEmbeddingProvider] = None,
                 rate_limiter: Optional[IRateLimiter] = None,
                 decision_engine: Optional[DecisionEngine] = None,
                 embedding_dim: Optional[int] = None,
                 embedding_model: Optional[str] = None,
                 id_factory: Callable[[], str] = _new_id,
                 clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self.model = model
        self.embedder = embedder
        self.rate_limiter = rate_limiter or config.get_rate_limiter()
        self.validator = ResponseValidator()
        self.sanitizer = ResponseSanitizer()
        self.decision_engine = decision_engine or DecisionEngine(config.get_fix_scope_thresholds())
        self.aggregator = ScoreAggregator()
        self.text_search = TextSearchEngine()
        self.embedding_dim = embedding_dim or config.get_embedding_dim()
        self.embedding_model = embedding_model or getattr(embedder, "model_name", None) or config.EMBEDDING_MODEL
        self.similarity = SimilarityIndex(store, dimension=self.embedding_dim)
        self._id_factory = id_factory
        self._clock = clock

    @classmethod
    def from_config(cls) -> "AnalysisPipeline":
        from .store import SQLiteAnalysisStore

        return cls(
            store=SQLiteAnalysisStore(config.get_db_path(), config.get_vector_store()),
            model=config.get_generative_model(),
            embedder=config.get_embedding_provider(),
            rate_limiter=config.get_rate_limiter(),
        )

    def start(self) -> None:
        self.rate_limiter.start()

    def stop(self) -> None:
        self.rate_limiter.stop()

    # Gates

    def _gate(self, user_id: str, operation: str) -> None:
        if not user_id:
            raise PermissionDeniedError("Authentication required")
        if not self.rate_limiter.allow(user_id, operation):
            logger.log_rate_limited(user_id, operation)
            raise RateLimitedError("Rate limit exceeded. Please try again later.",
                                   details={"operation": operation})

    def _load(self, analysis_id: str) -> AnalysisRecord:
        validate_record_id(analysis_id)
        record = self.store.get(analysis_id)
        if record is None:
            raise NotFoundError("Analysis not found", details={"analysis_id": analysis_id})
        return record

    def _load_readable(self, user_id: str, analysis_id: str) -> AnalysisRecord:
        record = self._load(analysis_id)
        if record.user_id != user_id and not record.is_public:
            raise PermissionDeniedError("You do not have access to this analysis")
        return record

    # Analyze

    def _embed(self, analysis_id: str, image_data: bytes, mime_type: str) -> Optional[List[float]]:
        """Produce the image vector, or None. Never raises."""
        if self.embedder is None:
            return None
        try:
            vector = self.embedder.embed_image(image_data, mime_type)
        except Exception as e:
            logger.log_embedding_failure(analysis_id, f"{type(e).__name__}: {e}")
            return None

        if vector is None or len(vector) == 0:
            logger.log_embedding_failure(analysis_id, "empty embedding")
            return None
        if len(vector) != self.embedding_dim:
            logger.log_embedding_failure(
                analysis_id, f"dimension {len(vector)} does not match expected {self.embedding_dim}")
            return None
        return [float(x) for x in vector]

    def analyze_design(self, user_id: str, image_data: bytes, mime_type: str, file_name: str,
                       image_url: Optional[str] = None) -> AnalysisOutcome:
        self._gate(user_id, "analyze_design")

        validate_mime_type(mime_type)
        validate_image_size(image_data)
        safe_file_name = validate_file_name(file_name)
        logger.log_pipeline_stage("start", user_id, details={"file_name": safe_file_name, "bytes": len(image_data)})

        raw = self.model.analyze_image(image_data, mime_type, SYSTEM_INSTRUCTION, DESIGN_ANALYSIS_SCHEMA)
        validated = self.validator.validated(raw)
        candidate = self.sanitizer.sanitize(validated)

        decision = self.decision_engine.validate_against_model(candidate.fix_scope, candidate.layer1,
                                                               candidate.layer2)
        overall_score = self.aggregator.overall_score(candidate.layer1, candidate.layer2, candidate.layer3)

        analysis_id = self._id_factory()
        embedding = self._embed(analysis_id, image_data, mime_type)
        now = self._clock()

        record = AnalysisRecord(
            id=analysis_id,
            user_id=user_id,
            file_name=safe_file_name,
            image_url=image_url,
            format_prediction=candidate.format_prediction,
            layer1=candidate.layer1,
            layer2=candidate.layer2,
            layer3=candidate.layer3,
            overall_score=overall_score,
            model_overall_score=candidate.overall_score,
            fix_scope=decision.fix_scope,
            fix_scope_override_reason=decision.reason,
            color_palette=candidate.color_palette,
            detected_keywords=candidate.detected_keywords,
            next_actions=candidate.next_actions,
            strengths=candidate.strengths,
            weaknesses=candidate.weaknesses,
            overall_analysis=candidate.overall_analysis,
            search_queries=candidate.search_queries,
            ocr_text=candidate.ocr_text,
            embedding=embedding,
            embedding_model=self.embedding_model if embedding is not None else None,
            embedding_dim=len(embedding) if embedding is not None else None,
            embedding_version=config.EMBEDDING_VERSION if embedding is not None else None,
            analysis_version=config.ANALYSIS_VERSION,
            created_at=now,
            updated_at=now,
            last_analyzed_at=now,
        )

        self.store.put(record)
        self.store.increment_analysis_count(user_id, 1)

        diagnosis = self.decision_engine.generate_diagnosis_details(record.layer1, record.layer2, record.fix_scope)
        logger.log_pipeline_stage("complete", user_id, details={
            "analysis_id": analysis_id,
            "format": record.format_prediction.value,
            "fix_scope": record.fix_scope.value,
            "overridden": decision.overridden,
            "overall_score": overall_score,
            "layer1_average": diagnosis.layer1_average,
            "layer2_average": diagnosis.layer2_average,
            "critical_issues": len(diagnosis.critical_issues),
            "has_embedding": embedding is not None,
        })

        return AnalysisOutcome(record=record, decision=decision, diagnosis=diagnosis)

    # Records

    def get_analysis(self, user_id: str, analysis_id: str) -> AnalysisRecord:
        self._gate(user_id, "get_analyses")
        return self._load_readable(user_id, analysis_id)

    def list_analyses(self, user_id: str, limit: Optional[int] = None, offset: int = 0,
                      format_prediction: Optional[FormatPrediction] = None,
                      fix_scope: Optional[FixScope] = None,
                      min_score: Optional[int] = None) -> AnalysisPage:
        self._gate(user_id, "get_analyses")
        limit = _bounded_limit(limit, config.DEFAULT_LIST_LIMIT, config.MAX_LIST_LIMIT)
        if offset < 0:
            raise InvalidArgumentError("offset must be >= 0")

        filters = SearchFilters(user_id=user_id, format_prediction=format_prediction,
                                fix_scope=fix_scope, min_score=min_score)
        records = self.store.scan(filters, limit=limit + 1, offset=offset)
        return AnalysisPage(
            records=records[:limit],
            total=self.store.count(filters),
            has_more=len(records) > limit,
            limit=limit,
            offset=offset,
        )

    def delete_analysis(self, user_id: str, analysis_id: str) -> bool:
        self._gate(user_id, "delete_analysis")
        record = self._load(analysis_id)
        if record.user_id != user_id:
            raise PermissionDeniedError("You can only delete your own analyses")

        deleted = self.store.delete(analysis_id)
        if deleted:
            self.store.increment_analysis_count(user_id, -1)
        return deleted

    # Search

    def search_similar(self, user_id: str, analysis_id: str, limit: Optional[int] = None,
                       format_prediction: Optional[FormatPrediction] = None,
                       fix_scope: Optional[FixScope] = None,
                       min_score: Optional[int] = None,
                       own_only: bool = False) -> List[SimilarResult]:
        self._gate(user_id, "search_similar")
        source = self._load_readable(user_id, analysis_id)
        if source.embedding is None or len(source.embedding) != self.embedding_dim:
            raise PreconditionFailedError(
                "No embedding available for this analysis. Similarity search is unavailable for it.",
                details={"analysis_id": analysis_id},
            )

        limit = _bounded_limit(limit, config.DEFAULT_SIMILAR_LIMIT, config.MAX_SIMILAR_RESULTS)
        filters = SearchFilters(
            user_id=user_id if own_only else None,
            format_prediction=format_prediction,
            fix_scope=fix_scope,
            min_score=min_score,
        )
        results = self.similarity.find_nearest(source.embedding, limit, filters, exclude_id=analysis_id)
        logger.log_search("similar", user_id, len(results), {"analysis_id": analysis_id, "limit": limit})
        return results

    def search_text(self, user_id: str, query: str, limit: Optional[int] = None,
                    format_prediction: Optional[FormatPrediction] = None,
                    fix_scope: Optional[FixScope] = None,
                    min_score: Optional[int] = None) -> List[TextSearchResult]:
        self._gate(user_id, "search_text")

        query = (query or "").strip()
        if len(query) < config.MIN_SEARCH_QUERY_LENGTH:
            raise InvalidArgumentError(f"Query must be at least {config.MIN_SEARCH_QUERY_LENGTH} characters")
        if len(query) > config.MAX_SEARCH_QUERY_LENGTH:
            raise InvalidArgumentError(
                f"Query exceeds maximum length of {config.MAX_SEARCH_QUERY_LENGTH} characters")

        limit = _bounded_limit(limit, config.DEFAULT_SEARCH_LIMIT, config.MAX_SEARCH_RESULTS)
        filters = SearchFilters(user_id=user_id, format_prediction=format_prediction,
                                fix_scope=fix_scope, min_score=min_score)
        candidates = self.store.scan(filters, require_ocr_text=True)
        results = self.text_search.search(query, candidates, limit=limit)
        logger.log_search("text", user_id, len(results), {"candidates": len(candidates)})
        return results

    # Bookmarks

    def save_bookmark(self, user_id: str, analysis_id: str) -> Tuple[Bookmark, bool]:
        """Bookmark a readable analysis. Saving twice returns the existing bookmark."""
        self._gate(user_id, "save_item")
        self._load_readable(user_id, analysis_id)
        bookmark, created = self.store.add_bookmark(user_id, analysis_id)
        logger.log_store_operation("bookmark.save", bookmark.id, details={"created": created})
        return bookmark, created

    def list_bookmarks(self, user_id: str, limit: Optional[int] = None,
                       start_after: Optional[str] = None) -> BookmarkPage:
        self._gate(user_id, "get_bookmarks")
        limit = _bounded_limit(limit, config.DEFAULT_LIST_LIMIT, config.MAX_LIST_LIMIT)

        bookmarks = self.store.list_bookmarks(user_id, limit + 1, start_after)
        has_more = len(bookmarks) > limit
        bookmarks = bookmarks[:limit]

        records = self.store.get_many([b.analysis_id for b in bookmarks])
        entries = [BookmarkEntry(bookmark=b, record=records.get(b.analysis_id)) for b in bookmarks]
        return BookmarkPage(
            entries=entries,
            has_more=has_more,
            next_cursor=bookmarks[-1].id if has_more and bookmarks else None,
        )

    def delete_bookmark(self, user_id: str, bookmark_id: str) -> bool:
        self._gate(user_id, "delete_bookmark")
        validate_record_id(bookmark_id)
        bookmark = self.store.get_bookmark(bookmark_id)
        if bookmark is None:
            raise NotFoundError("Bookmark not found", details={"bookmark_id": bookmark_id})
        if bookmark.user_id != user_id:
            raise PermissionDeniedError("You can only delete your own bookmarks")
        return self.store.delete_bookmark(bookmark_id)

    # Profile

    def get_user_profile(self, user_id: str) -> UserProfile:
        self._gate(user_id, "get_user_profile")
        return self.store.get_user_profile(user_id)

    def update_user_profile(self, user_id: str, display_name: Optional[str] = None,
                            preferences: Optional[Mapping[str, Any]] = None) -> UserProfile:
        """
        Update the caller's display name and/or preferences.

        Provided preferences replace the stored ones. At least one of the two
        fields must be given.
        """
        self._gate(user_id, "update_user_profile")

        if display_name is not None:
            if not isinstance(display_name, str):
                raise InvalidArgumentError("display_name must be a string")
            display_name = display_name.strip()
            if not display_name:
                raise InvalidArgumentError("display_name cannot be empty")

        parsed_preferences = None
        if preferences is not None:
            parsed_preferences = _parse_preferences(preferences)

        if display_name is None and parsed_preferences is None:
            raise InvalidArgumentError("No valid fields to update. Provide display_name or preferences.")

        profile = self.store.update_user_profile(user_id, display_name=display_name,
                                                 preferences=parsed_preferences)
        logger.log_operation("profile.update", "success", {
            "user_id": user_id,
            "fields": [name for name, value in (("display_name", display_name),
                                                ("preferences", parsed_preferences)) if value is not None],
        })
        return profile
