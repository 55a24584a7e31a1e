"""
Unit tests for embed module.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from topic_coverage.core.errors import EmbeddingError
from topic_coverage.embed import (
    CachedEmbeddingProvider, GeminiEmbeddingProvider, OpenAIEmbeddingProvider,
    create_embedding_provider
)
from topic_coverage.infrastructure.cache import MemoryCache, embedding_cache_key
from tests.fakes import KeywordEmbeddingProvider


def openai_client(values):
    client = MagicMock()
    client.embeddings.create.return_value = SimpleNamespace(data=[SimpleNamespace(embedding=values)])
    return client


class TestOpenAIEmbeddingProvider:
    """Test OpenAIEmbeddingProvider class."""

    def test_embed(self):
        client = openai_client([0.1, 0.2, 0.3])
        provider = OpenAIEmbeddingProvider(client=client)

        vector = provider.embed("seo guide")

        assert vector.values == (0.1, 0.2, 0.3)
        assert vector.model == "text-embedding-3-small"
        client.embeddings.create.assert_called_once_with(model="text-embedding-3-small", input="seo guide")

    def test_long_input_truncated(self):
        client = openai_client([1.0])
        OpenAIEmbeddingProvider(client=client, max_input_chars=100).embed("x" * 500)
        assert len(client.embeddings.create.call_args.kwargs["input"]) == 100

    def test_model_override(self):
        client = openai_client([1.0])
        vector = OpenAIEmbeddingProvider(client=client).embed("text", model="text-embedding-3-large")
        assert vector.model == "text-embedding-3-large"

    def test_errors(self):
        client = MagicMock()
        client.embeddings.create.side_effect = RuntimeError("rate limited")
        with pytest.raises(EmbeddingError):
            OpenAIEmbeddingProvider(client=client).embed("text")

        with pytest.raises(EmbeddingError):
            OpenAIEmbeddingProvider(client=openai_client([])).embed("text")

        with pytest.raises(EmbeddingError):
            OpenAIEmbeddingProvider(client=openai_client([0.1, None])).embed("text")


class TestGeminiEmbeddingProvider:
    """Test GeminiEmbeddingProvider class."""

    def test_embed(self):
        calls = []

        def embed_fn(model, content):
            calls.append((model, content))
            return {'embedding': [0.5, 0.5]}

        vector = GeminiEmbeddingProvider(embed_fn=embed_fn).embed("seo guide")

        assert vector.values == (0.5, 0.5)
        assert calls == [("models/embedding-001", "seo guide")]

    def test_malformed_response(self):
        with pytest.raises(EmbeddingError):
            GeminiEmbeddingProvider(embed_fn=lambda model, content: {}).embed("text")

    @pytest.mark.parametrize("values", [[None, "x"], ["not a number"], [[0.1, 0.2]]])
    def test_non_numeric_values(self, values):
        provider = GeminiEmbeddingProvider(embed_fn=lambda model, content: {'embedding': values})
        with pytest.raises(EmbeddingError):
            provider.embed("hello")


class TestCachedEmbeddingProvider:
    """Test CachedEmbeddingProvider class."""

    def test_second_call_served_from_cache(self):
        inner = KeywordEmbeddingProvider()
        provider = CachedEmbeddingProvider(inner, MemoryCache())

        first = provider.embed("seo content")
        second = provider.embed("seo content")

        assert first.values == second.values
        assert inner.calls == ["seo content"]

    def test_errors_not_cached(self):
        inner = KeywordEmbeddingProvider(fail_markers=("bad",))
        cache = MemoryCache()
        provider = CachedEmbeddingProvider(inner, cache)

        with pytest.raises(EmbeddingError):
            provider.embed("bad text")
        assert len(cache) == 0

    def test_malformed_cache_entry_recomputed(self):
        inner = KeywordEmbeddingProvider()
        cache = MemoryCache()
        cache.set(embedding_cache_key("seo", ""), {'embedding': ['not-a-number']})

        vector = CachedEmbeddingProvider(inner, cache).embed("seo")

        assert vector.values[0] == 1.0
        assert inner.calls == ["seo"]


class TestCreateEmbeddingProvider:
    """Test create_embedding_provider function."""

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_embedding_provider("word2vec")

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            create_embedding_provider("openai")
