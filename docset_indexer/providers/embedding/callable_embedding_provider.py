"""Adapter turning any embed function into an :class:`IEmbeddingProvider`.

Provider HTTP clients (OpenAI, Azure, Mistral, Gemini, Ollama) live with
the caller; they reach the pipeline as a plain ``embed(texts) -> vectors``
callable, sync or async.  This adapter validates what comes back and
converts client exceptions into :class:`EmbeddingError`.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

import structlog

from docset_indexer.interfaces.embedding_provider import IEmbeddingProvider
from docset_indexer.providers.embedding.catalog import get_dimension
from docset_indexer.utils.errors import DocsetIndexerError, EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

# Returns vectors, or an awaitable of vectors.
EmbedFn = Callable[[list[str]], Any]


class CallableEmbeddingProvider(IEmbeddingProvider):
    """Wrap *embed_fn* for *model_name* served by *provider*.

    Parameters
    ----------
    embed_fn:
        Called with one batch of texts; returns one vector per text.  May
        be a coroutine function.
    model_name:
        Used for the dimension lookup and log context.
    provider:
        Provider label, e.g. ``"openai"``.
    dimension:
        Overrides the catalog dimension for unlisted models.
    """

    def __init__(
        self,
        embed_fn: EmbedFn,
        model_name: str,
        provider: str = "openai",
        dimension: int | None = None,
    ) -> None:
        self._embed_fn = embed_fn
        self._model_name = model_name
        self._provider = provider
        self._dimension = dimension or get_dimension(model_name)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            result = self._embed_fn(texts)
            if inspect.isawaitable(result):
                result = await result
        except DocsetIndexerError:
            raise
        except Exception as exc:
            raise EmbeddingError(
                message=f"{self._model_name} embedding call failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        vectors = [list(map(float, v)) for v in result]
        if len(vectors) != len(texts):
            raise EmbeddingError(
                message=(
                    f"{self._model_name} returned {len(vectors)} vectors "
                    f"for {len(texts)} inputs"
                ),
                provider_name=self.get_provider_name(),
            )
        logger.debug(
            "embedding_batch",
            model=self._model_name,
            provider=self._provider,
            batch_size=len(texts),
        )
        return vectors

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"{self._provider}-{self._model_name}"

    def is_available(self) -> bool:
        return self._embed_fn is not None
