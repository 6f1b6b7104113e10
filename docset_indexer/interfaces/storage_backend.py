"""Abstract base class for document-set storage backends.

A backend holds four logical stores for one project: vectors (node id ->
embedding), documents (node id -> text + metadata), the index store
(which node ids make up the index) and the source documents the nodes were
split from (document id -> text + metadata).  Implementations differ in
durability:

- LocalFileBackend keeps everything in memory and must be flushed once
  with :meth:`persist` (``requires_explicit_flush`` is ``True``).
- SQLiteBackend and ChromaBackend write through on every call, so
  :meth:`persist` is a no-op.

Callers branch on the ``requires_explicit_flush`` capability, never on the
concrete class.  Node ``id`` is the dedup key: writing a node twice must
leave exactly one record.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docset_indexer.models.embedding import Document
from docset_indexer.models.node import IndexStruct, MetadataFilter, Node, SearchResult


class IStorageBackend(ABC):
    """Contract for persisting embedded nodes and querying them."""

    @property
    @abstractmethod
    def requires_explicit_flush(self) -> bool:
        """``True`` if writes only become durable after :meth:`persist`."""

    @abstractmethod
    async def add_vectors(self, nodes: list[Node]) -> None:
        """Upsert node embeddings.

        Raises
        ------
        docset_indexer.utils.errors.StorageError
            If the write fails or a node has no embedding.
        """

    @abstractmethod
    async def add_documents(self, nodes: list[Node]) -> None:
        """Upsert node text and metadata into the document store."""

    @abstractmethod
    async def add_index_entry(self, index_struct: IndexStruct) -> None:
        """Record (or extend) the index structure listing member nodes."""

    @abstractmethod
    async def add_source_documents(self, documents: list[Document]) -> None:
        """Upsert the source documents, keyed by document id."""

    @abstractmethod
    async def get_source_document(self, document_id: str) -> Document | None:
        """Return a stored source document or ``None``."""

    @abstractmethod
    async def persist(self) -> None:
        """Flush buffered writes.  No-op for write-through backends."""

    @abstractmethod
    async def query(
        self,
        embedding: list[float],
        top_k: int = 10,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchResult]:
        """Return the *top_k* nodes most similar to *embedding*.

        Results are sorted by descending cosine similarity and restricted to
        nodes whose metadata satisfies every filter.
        """

    @abstractmethod
    async def get_node(self, node_id: str) -> Node | None:
        """Return the stored node (with embedding) or ``None``."""

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored vectors."""

    @abstractmethod
    async def drop(self) -> None:
        """Delete every record belonging to this project."""

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return a short identifier, e.g. ``"simple"``, ``"sqlite"``, ``"chroma"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend can be used."""
