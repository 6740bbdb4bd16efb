"""
Filtered k-nearest-neighbour search over analysis embeddings.
Ranking is by cosine distance (1 - cosine similarity), lower is closer.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from dysapp.core import config
from dysapp.core.errors import PreconditionFailedError
from dysapp.core.models import AnalysisRecord, FixScope, FormatPrediction, SearchFilters


def normalize_vector(vector: Sequence[float]) -> List[float]:
    """Scale to unit length. Zero or empty vectors come back unchanged."""
    array = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(array) if array.size else 0.0
    if norm == 0:
        return array.tolist()
    return (array / norm).tolist()


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Mismatched lengths, empty, missing or all-zero vectors give 0.0 instead of
    raising, so rankings stay total.
    """
    if a is None or b is None or len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0

    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


def cosine_distance(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    return 1.0 - cosine_similarity(a, b)


@dataclass(frozen=True)
class SimilarResult:
    id: str
    distance: float
    format_prediction: FormatPrediction
    overall_score: int
    fix_scope: FixScope
    file_name: str
    image_url: Optional[str] = None

    @property
    def similarity(self) -> float:
        return 1.0 - self.distance

    @classmethod
    def from_record(cls, record: AnalysisRecord, distance: float) -> "SimilarResult":
        return cls(
            id=record.id,
            distance=distance,
            format_prediction=record.format_prediction,
            overall_score=record.overall_score,
            fix_scope=record.fix_scope,
            file_name=record.file_name,
            image_url=record.image_url,
        )


class SimilarityIndex:
    """Wraps an analysis store's nearest-neighbour query with the search contract."""

    def __init__(self, store, dimension: int = None):
        self.store = store
        self.dimension = dimension or config.get_embedding_dim()

    def _check_vector(self, query_vector: Optional[Sequence[float]]) -> None:
        if query_vector is None:
            raise PreconditionFailedError(
                "No embedding available for this analysis",
                details={"reason": "missing_embedding"},
            )
        if len(query_vector) != self.dimension:
            raise PreconditionFailedError(
                "No embedding available for this analysis",
                details={"reason": "dimension_mismatch", "expected": self.dimension,
                         "actual": len(query_vector)},
            )

    def find_nearest(self, query_vector: Sequence[float], k: int,
                     filters: Optional[SearchFilters] = None,
                     exclude_id: Optional[str] = None) -> List[SimilarResult]:
        """
        Return at most k results ordered by ascending cosine distance.

        Filters are handed to the store and applied before ranking. One extra
        neighbour is fetched so that dropping exclude_id still leaves k results.
        """
        self._check_vector(query_vector)
        if k < 1:
            return []

        hits = self.store.nearest(list(query_vector), k + 1, filters or SearchFilters())

        results = [
            SimilarResult.from_record(record, distance)
            for record, distance in hits
            if record.id != exclude_id
        ]
        results.sort(key=lambda r: r.distance)
        return results[:k]

    def find_user_similar(self, user_id: str, query_vector: Sequence[float], k: int = 10,
                          exclude_id: Optional[str] = None) -> List[SimilarResult]:
        """Nearest designs among one subject's own analyses."""
        return self.find_nearest(query_vector, k, SearchFilters(user_id=user_id), exclude_id)

    def find_format_references(self, format_prediction: FormatPrediction, query_vector: Sequence[float],
                               k: int = 10, min_score: Optional[int] = None,
                               exclude_id: Optional[str] = None) -> List[SimilarResult]:
        """High-scoring designs of the same format, used as references."""
        if min_score is None:
            min_score = config.get_min_reference_score()
        filters = SearchFilters(format_prediction=FormatPrediction(format_prediction), min_score=min_score)
        return self.find_nearest(query_vector, k, filters, exclude_id)

    def find_fix_scope_examples(self, fix_scope: FixScope, query_vector: Sequence[float],
                                k: int = None, exclude_id: Optional[str] = None) -> List[SimilarResult]:
        """Designs that received the same fix scope."""
        k = k or config.FIX_SCOPE_EXAMPLE_LIMIT
        return self.find_nearest(query_vector, k, SearchFilters(fix_scope=FixScope(fix_scope)), exclude_id)
