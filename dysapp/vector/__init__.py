"""
Vector overlay for analysis embeddings - non-canonical, advisory layer over SQLite.
"""

# Package initialization for vector module
from .index import IVectorStore, SimpleInMemoryVectorStore
from .faiss_store import FaissVectorStore
from .types import VectorRecord, QueryResult
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding
from .similarity import SimilarityIndex, SimilarResult, cosine_similarity, cosine_distance, normalize_vector

__all__ = [
    'IVectorStore',
    'SimpleInMemoryVectorStore',
    'FaissVectorStore',
    'VectorRecord',
    'QueryResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'SimilarityIndex',
    'SimilarResult',
    'cosine_similarity',
    'cosine_distance',
    'normalize_vector',
]
