"""Abstract base class for text-embedding providers.

The pipeline only needs "a function that turns text into a fixed-length
vector, given a model name and batch size"; concrete HTTP clients live
outside this package and are plugged in through
:class:`~docset_indexer.providers.embedding.CallableEmbeddingProvider`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the persistence pipeline."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            The texts to embed.  Callers keep batches within the provider's
            per-request limit (see ``EmbeddingBatcher``).

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*.

        Raises
        ------
        docset_indexer.utils.errors.EmbeddingError
            If the underlying call fails.
        """

    async def embed_single(self, text: str) -> list[float]:
        """Embed one text, e.g. a search query."""
        vectors = await self.embed([text])
        return vectors[0]

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai-text-embedding-3-small"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
