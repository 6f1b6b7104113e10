"""Unit tests for embedding providers, the provider factory and the tokenizer."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from docset_indexer.providers.embedding import (
    CallableEmbeddingProvider,
    MockEmbeddingProvider,
    build_embedding_provider,
)
from docset_indexer.providers.embedding.catalog import get_dimension, get_price_per_1m
from docset_indexer.providers.tokenizer.tiktoken_tokenizer import (
    FALLBACK_MODEL,
    TiktokenTokenizer,
)
from docset_indexer.utils.errors import ConfigurationError, EmbeddingError


class TestMockEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_constant_vectors(self) -> None:
        provider = MockEmbeddingProvider()
        vectors = await provider.embed(["a", "b"])

        assert vectors == [[1.0, 0.0, 0.0, 0.0, 0.0, 0.0]] * 2
        assert provider.get_dimension() == 6
        assert provider.call_count == 1

    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        assert await MockEmbeddingProvider().embed_single("q") == [1.0, 0.0, 0.0, 0.0, 0.0, 0.0]


class TestCallableEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_sync_function(self) -> None:
        provider = CallableEmbeddingProvider(
            lambda texts: [[1, 2] for _ in texts], model_name="text-embedding-3-small"
        )

        assert await provider.embed(["x", "y"]) == [[1.0, 2.0], [1.0, 2.0]]
        assert provider.get_provider_name() == "openai-text-embedding-3-small"
        assert provider.get_dimension() == 1536

    @pytest.mark.asyncio
    async def test_async_function(self) -> None:
        async def embed_fn(texts: list[str]) -> list[list[float]]:
            return [[0.5] for _ in texts]

        provider = CallableEmbeddingProvider(embed_fn, model_name="m", provider="ollama")
        assert await provider.embed(["x"]) == [[0.5]]

    @pytest.mark.asyncio
    async def test_empty_batch_skips_call(self) -> None:
        embed_fn = MagicMock()
        assert await CallableEmbeddingProvider(embed_fn, model_name="m").embed([]) == []
        embed_fn.assert_not_called()

    @pytest.mark.asyncio
    async def test_client_exception_becomes_embedding_error(self) -> None:
        provider = CallableEmbeddingProvider(
            MagicMock(side_effect=TimeoutError("slow")), model_name="m"
        )
        with pytest.raises(EmbeddingError, match="slow"):
            await provider.embed(["x"])

    @pytest.mark.asyncio
    async def test_wrong_vector_count(self) -> None:
        provider = CallableEmbeddingProvider(lambda texts: [[1.0]], model_name="m")
        with pytest.raises(EmbeddingError, match="returned 1 vectors for 2 inputs"):
            await provider.embed(["x", "y"])

    def test_dimension_override(self) -> None:
        provider = CallableEmbeddingProvider(lambda t: t, model_name="custom", dimension=384)
        assert provider.get_dimension() == 384


class TestFactory:
    def test_mock_provider_needs_no_client(self) -> None:
        assert isinstance(build_embedding_provider("mock", "anything"), MockEmbeddingProvider)
        assert isinstance(build_embedding_provider("openai", "mock"), MockEmbeddingProvider)

    def test_real_provider_wraps_client(self) -> None:
        provider = build_embedding_provider("mistral", "mistral-embed", lambda t: t)
        assert isinstance(provider, CallableEmbeddingProvider)
        assert provider.get_dimension() == 1024

    def test_unknown_provider(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported embedding provider"):
            build_embedding_provider("cohere", "embed-v3", lambda t: t)

    def test_missing_client(self) -> None:
        with pytest.raises(ConfigurationError, match="No embedding client"):
            build_embedding_provider("openai", "text-embedding-3-small")


class TestCatalog:
    def test_known_and_unknown_models(self) -> None:
        assert get_dimension("text-embedding-3-large") == 3072
        assert get_dimension("unknown") == 1536
        assert get_price_per_1m("text-embedding-3-small") == 0.02
        assert get_price_per_1m("unknown") == 0.0


class TestTiktokenTokenizer:
    def test_counts_with_model_encoding(self) -> None:
        encoding = MagicMock()
        encoding.encode.return_value = [1, 2, 3]
        with patch(
            "docset_indexer.providers.tokenizer.tiktoken_tokenizer.tiktoken.encoding_for_model",
            return_value=encoding,
        ):
            tokenizer = TiktokenTokenizer("text-embedding-3-large")

        assert tokenizer.count("hello world") == 3
        assert tokenizer.get_model_name() == "text-embedding-3-large"
        encoding.encode.assert_called_once_with("hello world", disallowed_special=())

    def test_unknown_model_falls_back(self) -> None:
        encoding = MagicMock()
        with patch(
            "docset_indexer.providers.tokenizer.tiktoken_tokenizer.tiktoken.encoding_for_model",
            side_effect=[KeyError("nomic-embed-text"), encoding],
        ) as encoding_for_model:
            tokenizer = TiktokenTokenizer("nomic-embed-text")

        assert tokenizer.get_model_name() == FALLBACK_MODEL
        assert encoding_for_model.call_args.args == (FALLBACK_MODEL,)
