"""
FAISS-backed vector store for analysis embeddings.
"""

from typing import Iterable, List, Optional
import numpy as np

from .types import VectorRecord, QueryResult
from .index import IVectorStore


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore.

    Uses an exact inner-product index over L2-normalized vectors, so scores are
    cosine similarities. FAISS flat indexes cannot remove rows, so deletes and
    replacements tombstone the old row; clear() rebuilds the index.
    """

    def __init__(self, dimension: int = 1408):
        """
        Initialize FAISS vector store.

        Args:
            dimension: Dimension of the vectors (default: 1408 for image embeddings)
        """
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        self.faiss = faiss
        self.dimension = dimension

        # Create a flat index (inner product metric for cosine similarity)
        self.index = faiss.IndexFlatIP(dimension)

        # Keep track of record IDs and their corresponding vector indices
        self.id_to_vector_index = {}
        self.vector_id_map = {}  # Vector index -> record ID
        self.metadata = {}
        self.next_vector_index = 0

    def _normalize(self, vector) -> Optional[np.ndarray]:
        vector = np.asarray(vector, dtype=np.float32)
        if len(vector) != self.dimension:
            raise ValueError(f"Vector dimension {len(vector)} does not match expected dimension {self.dimension}")

        norm = np.linalg.norm(vector)
        if norm == 0:  # Handle zero vectors to prevent division by zero
            return None
        return (vector / norm).astype(np.float32)

    def _tombstone(self, record_id: str) -> None:
        old_index = self.id_to_vector_index.pop(record_id, None)
        if old_index is not None:
            self.vector_id_map.pop(old_index, None)
        self.metadata.pop(record_id, None)

    def add(self, record: VectorRecord) -> None:
        """Add a single vector record, replacing any previous vector for the same id."""
        self.batch_add([record])

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the FAISS store."""
        vectors_to_add = []
        valid_records = []

        for record in records:
            if record.vector is None or len(record.vector) == 0:
                continue
            normalized = self._normalize(record.vector)
            if normalized is None:
                continue
            vectors_to_add.append(normalized)
            valid_records.append(record)

        if not vectors_to_add:
            return

        # Convert to numpy array of correct shape and dtype
        batch_vectors = np.vstack(vectors_to_add).astype(np.float32)
        self.index.add(batch_vectors)

        # Store mappings for each record
        for i, record in enumerate(valid_records):
            self._tombstone(record.id)
            self.id_to_vector_index[record.id] = self.next_vector_index + i
            self.vector_id_map[self.next_vector_index + i] = record.id
            self.metadata[record.id] = record.metadata

        self.next_vector_index += len(vectors_to_add)

    def search(self, query_vector: np.ndarray, top_k: int = 5,
               candidate_ids: Optional[Iterable[str]] = None) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        if not self.index.ntotal or top_k < 1 or len(query_vector) != self.dimension:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        norm = np.linalg.norm(query)
        if norm == 0:
            return []

        query_array = (query / norm).astype(np.float32).reshape(1, -1)

        allowed = None if candidate_ids is None else set(candidate_ids)
        # Tombstones and candidate restriction are applied after the FAISS pass,
        # so search the whole flat index whenever either is in play.
        if allowed is not None or len(self.vector_id_map) < self.index.ntotal:
            fetch = self.index.ntotal
        else:
            fetch = min(top_k, self.index.ntotal)

        scores, indices = self.index.search(query_array, fetch)

        query_results = []
        for score, vector_index in zip(scores[0], indices[0]):
            record_id = self.vector_id_map.get(int(vector_index))
            if record_id is None:
                continue
            if allowed is not None and record_id not in allowed:
                continue
            query_results.append(QueryResult(
                id=record_id,
                score=float(score),
                metadata=self.metadata.get(record_id, {}),
            ))
            if len(query_results) >= top_k:
                break

        return query_results

    def delete(self, record_id: str) -> None:
        """Tombstone a record. The row stays in the FAISS index until clear()."""
        self._tombstone(record_id)

    def clear(self) -> None:
        """Clear all records from the FAISS store."""
        # Create a new index with same parameters
        self.index = self.faiss.IndexFlatIP(self.dimension)
        self.id_to_vector_index.clear()
        self.vector_id_map.clear()
        self.metadata.clear()
        self.next_vector_index = 0

    def __len__(self) -> int:
        return len(self.id_to_vector_index)
