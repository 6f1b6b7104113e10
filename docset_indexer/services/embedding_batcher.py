"""Sub-batched embedding of nodes.

Providers cap how many inputs one request may carry, so nodes are embedded
``batch_size`` at a time (50 by default).  After each batch the optional
``on_batch`` callback receives the number of nodes just embedded, which the
persistence orchestrator turns into cumulative progress.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable

import structlog

from docset_indexer.interfaces.embedding_provider import IEmbeddingProvider
from docset_indexer.models.node import Node
from docset_indexer.utils.errors import DocsetIndexerError, EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_EMBED_BATCH_SIZE = 50

BatchCallback = Callable[[int], object]


class EmbeddingBatcher:
    """Embed nodes in provider-safe batches.

    Parameters
    ----------
    provider:
        The embedding provider.
    batch_size:
        Maximum texts per embedding request.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._provider = provider
        self._batch_size = batch_size

    @property
    def provider(self) -> IEmbeddingProvider:
        return self._provider

    async def embed_nodes(
        self,
        nodes: list[Node],
        on_batch: BatchCallback | None = None,
    ) -> list[Node]:
        """Return copies of *nodes* with ``embedding`` filled in, same order.

        Raises
        ------
        EmbeddingError
            If a request fails or returns the wrong number of vectors.
        """
        embedded: list[Node] = []
        for start in range(0, len(nodes), self._batch_size):
            batch = nodes[start : start + self._batch_size]
            vectors = await self._embed_batch([n.get_embed_text() for n in batch])
            embedded.extend(
                node.model_copy(update={"embedding": vector})
                for node, vector in zip(batch, vectors, strict=True)
            )
            if on_batch is not None:
                result = on_batch(len(batch))
                if inspect.isawaitable(result):
                    await result

        logger.debug(
            "nodes_embedded",
            count=len(embedded),
            batch_size=self._batch_size,
            provider=self._provider.get_provider_name(),
        )
        return embedded

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        try:
            vectors = await self._provider.embed(texts)
        except DocsetIndexerError:
            raise
        except Exception as exc:
            raise EmbeddingError(
                message=f"Embedding batch of {len(texts)} failed: {exc}",
                provider_name=self._provider.get_provider_name(),
            ) from exc

        if len(vectors) != len(texts) or any(not v for v in vectors):
            raise EmbeddingError(
                message=(
                    f"Provider returned {len(vectors)} vectors for {len(texts)} "
                    f"texts, or an empty vector"
                ),
                provider_name=self._provider.get_provider_name(),
            )
        return vectors
