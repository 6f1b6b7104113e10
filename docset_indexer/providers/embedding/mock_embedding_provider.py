"""Deterministic embedding provider for tests and dry runs.

Every text maps to the same unit vector, which is enough to exercise the
persistence pipeline end to end without network access.
"""

from __future__ import annotations

import structlog

from docset_indexer.interfaces.embedding_provider import IEmbeddingProvider

logger = structlog.get_logger(logger_name=__name__)

_MOCK_VECTOR = (1.0, 0.0, 0.0, 0.0, 0.0, 0.0)


class MockEmbeddingProvider(IEmbeddingProvider):
    """Returns ``[1, 0, 0, 0, 0, 0]`` for every input."""

    def __init__(self) -> None:
        self.call_count = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.call_count += 1
        logger.debug("mock_embedding_batch", batch_size=len(texts))
        return [list(_MOCK_VECTOR) for _ in texts]

    def get_dimension(self) -> int:
        return len(_MOCK_VECTOR)

    def get_provider_name(self) -> str:
        return "mock"

    def is_available(self) -> bool:
        return True
