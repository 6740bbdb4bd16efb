"""
Image embedding providers. Embeddings are advisory: a failure here never aborts
an analysis, the record is simply stored without a vector.
"""

from abc import ABC, abstractmethod
import hashlib
import io

import numpy as np


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    model_name = "unknown"

    @abstractmethod
    def embed_image(self, image_data: bytes, mime_type: str = "image/png") -> list[float]:
        """Generate embedding vector for the given image bytes."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic digest-seeded embedding provider for development and tests.

    Identical image bytes always map to the same unit vector, which makes
    similarity behaviour reproducible without downloading a model.
    """

    model_name = "deterministic-hash"

    def __init__(self, dimension: int = 1408):
        self.dimension = dimension

    def embed_image(self, image_data: bytes, mime_type: str = "image/png") -> list[float]:
        """Generate a deterministic unit vector seeded from the image digest."""
        digest = hashlib.sha256(image_data).digest()
        rng = np.random.default_rng(int.from_bytes(digest[:8], "big"))
        vector = rng.standard_normal(self.dimension)
        return (vector / np.linalg.norm(vector)).tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Image embeddings from a CLIP model served through sentence-transformers."""

    def __init__(self, model_name: str = "clip-ViT-B-32"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_image(self, image_data: bytes, mime_type: str = "image/png") -> list[float]:
        """Generate embedding vector using the CLIP image encoder."""
        from PIL import Image

        with Image.open(io.BytesIO(image_data)) as image:
            embedding = self.model.encode(image.convert("RGB"), convert_to_tensor=False)
        return np.asarray(embedding, dtype=np.float32).tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            dimension = self.model.get_sentence_embedding_dimension()
            if dimension is None:
                # Some CLIP wrappers do not report it; measure with a blank image
                from PIL import Image
                blank = Image.new("RGB", (32, 32))
                dimension = len(self.model.encode(blank, convert_to_tensor=False))
            self._dimension = int(dimension)
        return self._dimension
