"""Shared pytest fixtures for the docset_indexer test suite."""

from __future__ import annotations

import hashlib
import logging
import re
import struct

import pytest
import structlog

from docset_indexer.interfaces.embedding_provider import IEmbeddingProvider
from docset_indexer.interfaces.storage_backend import IStorageBackend
from docset_indexer.interfaces.tokenizer import ITokenizer
from docset_indexer.models.embedding import Document
from docset_indexer.models.node import (
    IndexStruct,
    MetadataFilter,
    Node,
    SearchResult,
    matches_all,
)
from docset_indexer.providers.storage.similarity import rank_by_cosine

JPMORGAN_TEXT = (
    "JPMorgan Chase & Co. elected Mark Weinberger as a director, effective January 16, "
    "2024, and the Board of Directors appointed him as a member of the Audit Committee.  "
    "Mr. Weinberger was Global Chairman and Chief Executive Officer of Ernst & Young from "
    "2013 to 2019.  He was also elected a director of JPMorgan Chase Bank, N.A. and a "
    "manager of JPMorgan Chase Holdings LLC, and may be elected a director of such other "
    "subsidiary or subsidiaries as may be determined from time to time."
)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo any ``configure_logging`` call so no test inherits a closed stream."""
    root = logging.getLogger()
    level = root.level
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_WORD_OR_PUNCT = re.compile(r"\w+|[^\w\s]")


class WordTokenizer(ITokenizer):
    """One token per word and per punctuation mark; no downloads needed."""

    def encode(self, text: str) -> list[int]:
        return [len(t) for t in _WORD_OR_PUNCT.findall(text)]

    def get_model_name(self) -> str:
        return "word"


@pytest.fixture
def word_tokenizer() -> WordTokenizer:
    return WordTokenizer()


# ---------------------------------------------------------------------------
# Embedding
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 8


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic pseudo-embedding derived from the text's SHA-256."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    values = struct.unpack(f"{dim}B", digest[:dim])
    return [v / 255.0 + 0.01 for v in values]


class HashEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider that records its calls."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_hash_to_vector(t) for t in texts]

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "hash-embedding"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def hash_embedding_provider() -> HashEmbeddingProvider:
    return HashEmbeddingProvider()


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class RecordingStorage(IStorageBackend):
    """In-memory backend that logs every call.

    ``fail_on`` maps a method name to the 1-based call number that should
    raise ``error``.
    """

    def __init__(
        self,
        requires_flush: bool = True,
        fail_on: dict[str, int] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._requires_flush = requires_flush
        self._fail_on = fail_on or {}
        self._error = error or RuntimeError("storage write failed")
        self.calls: list[tuple[str, int]] = []
        self.nodes: dict[str, Node] = {}
        self.indexes: dict[str, dict[str, str]] = {}
        self.sources: dict[str, Document] = {}
        self.persist_count = 0

    @property
    def requires_explicit_flush(self) -> bool:
        return self._requires_flush

    def _record(self, name: str, size: int) -> None:
        self.calls.append((name, size))
        count = sum(1 for n, _ in self.calls if n == name)
        if self._fail_on.get(name) == count:
            raise self._error

    def call_sizes(self, name: str) -> list[int]:
        return [size for n, size in self.calls if n == name]

    async def add_vectors(self, nodes: list[Node]) -> None:
        self._record("add_vectors", len(nodes))
        for node in nodes:
            self.nodes[node.id] = node

    async def add_documents(self, nodes: list[Node]) -> None:
        self._record("add_documents", len(nodes))

    async def add_index_entry(self, index_struct: IndexStruct) -> None:
        self._record("add_index_entry", len(index_struct.nodes_dict))
        self.indexes.setdefault(index_struct.index_id, {}).update(index_struct.nodes_dict)

    async def add_source_documents(self, documents: list[Document]) -> None:
        self._record("add_source_documents", len(documents))
        for document in documents:
            self.sources[document.id] = document

    async def get_source_document(self, document_id: str) -> Document | None:
        return self.sources.get(document_id)

    async def persist(self) -> None:
        self._record("persist", 0)
        self.persist_count += 1

    async def query(
        self,
        embedding: list[float],
        top_k: int = 10,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchResult]:
        candidates = [n for n in self.nodes.values() if matches_all(n.metadata, filters)]
        ranked = rank_by_cosine(
            embedding,
            [n.id for n in candidates],
            [n.embedding for n in candidates],
            top_k,
        )
        return [
            SearchResult.for_node(
                i,
                self.nodes[i].source_document_id,
                text=self.nodes[i].text,
                score=s,
                metadata=self.nodes[i].metadata,
            )
            for i, s in ranked
        ]

    async def get_node(self, node_id: str) -> Node | None:
        return self.nodes.get(node_id)

    async def count(self) -> int:
        return len(self.nodes)

    async def drop(self) -> None:
        self.nodes.clear()
        self.indexes.clear()
        self.sources.clear()

    def get_backend_name(self) -> str:
        return "recording"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def recording_storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def storage_factory():
    """Build a :class:`RecordingStorage` with custom flush or failure behaviour."""
    return RecordingStorage


@pytest.fixture
def jpmorgan_text() -> str:
    return JPMORGAN_TEXT


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
