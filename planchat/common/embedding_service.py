"""
Embedding Service

On-device embedding generation using fastembed.
Used to rank blueprint snippets by similarity to the question text.
"""

import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger("planchat.common.embedding_service")


class EmbeddingService:
    """
    Embedding service for snippet similarity search.

    Uses fastembed for on-device embedding generation, which avoids external
    API calls and keeps plan text local.
    """

    def __init__(self, mode: str = "femb", model: str = "BAAI/bge-small-en-v1.5"):
        self._mode = mode
        self._model_name = model
        self._model = None

        if mode != "femb":
            logger.warning("Unsupported embedding mode: %s", mode)
            return
        try:
            from fastembed import TextEmbedding

            self._model = TextEmbedding(model_name=model)
            logger.info("Initialized embedding model %s", model)
        except ImportError:
            logger.warning("fastembed package not installed, embeddings unavailable")
        except Exception as e:
            logger.warning("Failed to initialize embedding model %s: %s", model, e)

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._model is not None

    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            List of L2-normalized embedding vectors
        """
        if not self._model:
            raise RuntimeError("Embedding model not initialized")

        if not texts:
            return []

        matrix = np.array(list(self._model.embed(texts)), dtype=np.float32)
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return (matrix / norms).tolist()

    def embed_single(self, text: str) -> List[float]:
        """Generate embedding for a single text."""
        if not text:
            raise ValueError("Cannot embed empty text")

        return self.embed([text])[0]

    def batch_cosine_similarity(
        self,
        query_vec: List[float],
        vectors: List[List[float]]
    ) -> List[float]:
        """
        Compute cosine similarity between a query and multiple vectors.

        Vectors are L2 normalized, so the dot product equals cosine similarity.

        Returns:
            List of similarity scores clamped to [0, 1]
        """
        if not vectors:
            return []

        query = np.array(query_vec)
        matrix = np.array(vectors)

        if matrix.shape[1] != query.shape[0]:
            raise ValueError(f"Vector dimension mismatch: {matrix.shape} vs {query.shape}")

        similarities = np.clip(np.dot(matrix, query), 0.0, 1.0)

        return similarities.tolist()


_service_instance: Optional[EmbeddingService] = None


def get_embedding_service(
    mode: str = "femb",
    model: str = "BAAI/bge-small-en-v1.5"
) -> EmbeddingService:
    """Get the shared EmbeddingService instance (model load is expensive)."""
    global _service_instance

    if _service_instance is None:
        _service_instance = EmbeddingService(mode=mode, model=model)

    return _service_instance
