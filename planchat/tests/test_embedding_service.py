"""Tests for EmbeddingService vector math with a stubbed fastembed model."""

import pytest
from unittest.mock import patch

from planchat.common.embedding_service import EmbeddingService


class _FakeModel:
    def embed(self, texts):
        for text in texts:
            yield [float(len(text)), 0.0] if "x" in text else [3.0, 4.0]


@pytest.fixture
def service():
    with patch("fastembed.TextEmbedding", return_value=_FakeModel()):
        yield EmbeddingService(mode="femb", model="test-model")


class TestEmbeddingService:
    def test_unsupported_mode_unavailable(self, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="planchat.common.embedding_service"):
            svc = EmbeddingService(mode="remote")
        assert not svc.is_available
        assert "Unsupported embedding mode" in caplog.text

    def test_embed_raises_when_unavailable(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            EmbeddingService(mode="remote").embed(["a"])

    def test_embed_normalizes(self, service):
        assert service.is_available
        vectors = service.embed(["xx", "plan"])
        assert vectors[0] == pytest.approx([1.0, 0.0])
        assert vectors[1] == pytest.approx([0.6, 0.8])

    def test_embed_empty_list(self, service):
        assert service.embed([]) == []

    def test_embed_single_rejects_empty(self, service):
        with pytest.raises(ValueError):
            service.embed_single("")

    def test_cosine_similarity_clipped(self, service):
        scores = service.batch_cosine_similarity([1.0, 0.0], [[1.0, 0.0], [-1.0, 0.0], [0.6, 0.8]])
        assert scores == pytest.approx([1.0, 0.0, 0.6])

    def test_cosine_similarity_dimension_mismatch(self, service):
        with pytest.raises(ValueError, match="dimension mismatch"):
            service.batch_cosine_similarity([1.0, 0.0, 0.0], [[1.0, 0.0]])

    def test_cosine_similarity_no_vectors(self, service):
        assert service.batch_cosine_similarity([1.0], []) == []
