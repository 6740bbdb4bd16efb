"""
Test cases for FaissVectorStore implementation.
"""

import pytest
import numpy as np

pytest.importorskip("faiss")

from dysapp.vector.faiss_store import FaissVectorStore
from dysapp.vector.types import VectorRecord

DIM = 16


def basis(index, weight=0.0):
    vector = np.zeros(DIM, dtype=np.float32)
    vector[index] = 1.0
    vector[(index + 1) % DIM] = weight
    return vector


def test_faiss_store_initialization():
    """Test that FaissVectorStore can be initialized correctly."""
    store = FaissVectorStore(dimension=DIM)

    assert store.dimension == DIM
    assert len(store) == 0


def test_faiss_store_search_returns_cosine_scores():
    """Test searching for similar vectors."""
    store = FaissVectorStore(dimension=DIM)
    store.batch_add([
        VectorRecord(id="a", vector=basis(0) * 5, metadata={"user_id": "u1"}),
        VectorRecord(id="b", vector=basis(0, weight=1.0)),
        VectorRecord(id="c", vector=basis(8)),
    ])

    results = store.search(basis(0), top_k=2)

    assert [r.id for r in results] == ["a", "b"]
    assert results[0].score == pytest.approx(1.0, abs=1e-5)
    assert results[1].score == pytest.approx(np.sqrt(0.5), abs=1e-5)
    assert results[0].metadata == {"user_id": "u1"}


def test_faiss_store_candidate_ids():
    """Only candidate ids are ranked, even when others are closer."""
    store = FaissVectorStore(dimension=DIM)
    store.batch_add([VectorRecord(id=f"r{i}", vector=basis(i)) for i in range(6)])

    results = store.search(basis(0), top_k=3, candidate_ids=["r4", "r5"])

    assert sorted(r.id for r in results) == ["r4", "r5"]


def test_faiss_store_delete_tombstones():
    """Deleted ids disappear from results and from len()."""
    store = FaissVectorStore(dimension=DIM)
    store.batch_add([VectorRecord(id="a", vector=basis(0)), VectorRecord(id="b", vector=basis(0, 0.5))])

    store.delete("a")

    assert len(store) == 1
    assert [r.id for r in store.search(basis(0), top_k=5)] == ["b"]


def test_faiss_store_replace_keeps_single_entry():
    store = FaissVectorStore(dimension=DIM)
    store.add(VectorRecord(id="a", vector=basis(0)))
    store.add(VectorRecord(id="a", vector=basis(3)))

    results = store.search(basis(3), top_k=5)

    assert len(store) == 1
    assert [r.id for r in results] == ["a"]
    assert results[0].score == pytest.approx(1.0, abs=1e-5)


def test_faiss_store_skips_zero_vectors_and_rejects_wrong_dimension():
    store = FaissVectorStore(dimension=DIM)
    store.add(VectorRecord(id="zero", vector=np.zeros(DIM, dtype=np.float32)))
    assert len(store) == 0

    with pytest.raises(ValueError):
        store.add(VectorRecord(id="short", vector=np.ones(3, dtype=np.float32)))


def test_faiss_store_clear():
    """Test clearing all records from the FAISS store."""
    store = FaissVectorStore(dimension=DIM)
    store.batch_add([VectorRecord(id="a", vector=basis(0))])

    store.clear()

    assert len(store) == 0
    assert store.index.ntotal == 0
    assert store.search(basis(0)) == []
