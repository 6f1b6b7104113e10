"""Embedding provider implementations and the provider factory.

    - CallableEmbeddingProvider: adapts a caller-supplied embed function.
    - MockEmbeddingProvider    : constant vectors, no network.
"""

from __future__ import annotations

from docset_indexer.interfaces.embedding_provider import IEmbeddingProvider
from docset_indexer.providers.embedding.callable_embedding_provider import (
    CallableEmbeddingProvider,
    EmbedFn,
)
from docset_indexer.providers.embedding.catalog import SUPPORTED_PROVIDERS
from docset_indexer.providers.embedding.mock_embedding_provider import MockEmbeddingProvider
from docset_indexer.utils.errors import ConfigurationError


def build_embedding_provider(
    provider: str,
    model_name: str,
    embed_fn: EmbedFn | None = None,
) -> IEmbeddingProvider:
    """Return the embedding provider for *provider* / *model_name*.

    ``"mock"`` (as provider or model) needs no client.  Every other provider
    must come with an *embed_fn*.

    Raises
    ------
    ConfigurationError
        For an unknown provider, or a real provider without a client.
    """
    if provider == "mock" or model_name == "mock":
        return MockEmbeddingProvider()
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(
            message=f"Unsupported embedding provider: {provider}",
            provider_name=provider,
        )
    if embed_fn is None:
        raise ConfigurationError(
            message=f"No embedding client configured for {provider}/{model_name}",
            provider_name=provider,
        )
    return CallableEmbeddingProvider(embed_fn, model_name=model_name, provider=provider)


__all__ = [
    "CallableEmbeddingProvider",
    "EmbedFn",
    "MockEmbeddingProvider",
    "build_embedding_provider",
]
