"""
Vector store interface and the in-memory cosine implementation.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
import numpy as np

# Import VectorRecord and QueryResult from types module
from .types import VectorRecord, QueryResult


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def add(self, record: VectorRecord) -> None:
        """Add or replace a single vector record."""
        pass

    @abstractmethod
    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the store."""
        pass

    @abstractmethod
    def search(self, query_vector: np.ndarray, top_k: int = 5,
               candidate_ids: Optional[Iterable[str]] = None) -> List[QueryResult]:
        """
        Return up to top_k results ranked by cosine similarity, highest first.

        When candidate_ids is given only those records are considered, so
        filters are applied before ranking rather than after.
        """
        pass

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Delete a vector record by ID."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class SimpleInMemoryVectorStore(IVectorStore):
    """Simple in-memory implementation of IVectorStore using cosine similarity."""

    def __init__(self):
        self._vectors = {}  # record_id -> VectorRecord
        self._index = {}    # record_id -> normalized_vector (for fast lookup)

    def add(self, record: VectorRecord) -> None:
        """Add or replace a single vector record."""
        if record.vector is None or len(record.vector) == 0:
            return

        vector = np.asarray(record.vector, dtype=np.float32)
        norm = np.linalg.norm(vector)
        if norm == 0:
            # Zero vectors cannot be ranked by cosine
            return

        self._vectors[record.id] = record
        self._index[record.id] = vector / norm

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the store."""
        for record in records:
            self.add(record)

    def search(self, query_vector: np.ndarray, top_k: int = 5,
               candidate_ids: Optional[Iterable[str]] = None) -> List[QueryResult]:
        if not self._index or top_k < 1:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        norm = np.linalg.norm(query)
        if norm == 0:
            # Return empty results if query vector is zero
            return []

        normalized_query = query / norm

        if candidate_ids is None:
            ids = list(self._index.keys())
        else:
            ids = [record_id for record_id in candidate_ids if record_id in self._index]

        # Calculate cosine similarities
        similarities = {}
        for record_id in ids:
            stored_vector = self._index[record_id]
            if stored_vector.shape != normalized_query.shape:
                continue
            similarities[record_id] = float(np.dot(normalized_query, stored_vector))

        # Sort by similarity (descending) and return top_k results
        sorted_results = sorted(similarities.items(), key=lambda x: x[1], reverse=True)

        return [
            QueryResult(id=record_id, score=score, metadata=self._vectors[record_id].metadata)
            for record_id, score in sorted_results[:top_k]
        ]

    def delete(self, record_id: str) -> None:
        """Delete a vector record by ID."""
        self._vectors.pop(record_id, None)
        self._index.pop(record_id, None)

    def clear(self) -> None:
        """Clear all records from the store."""
        self._vectors.clear()
        self._index.clear()

    def __len__(self) -> int:
        return len(self._index)
