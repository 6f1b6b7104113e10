"""Chroma vector-service storage backend.

Wraps a ``chromadb`` client (normally ``HttpClient`` pointed at a Chroma
server) and keeps one collection per project, named from the sanitized
project name.  Chroma stores the embedding, document text and metadata of
a node in one record, so :meth:`add_vectors` writes everything and
:meth:`add_documents` / :meth:`add_index_entry` have nothing left to do.
Source documents live in a sibling ``<collection>_sources`` collection.
Upserts are committed by the server as they arrive, so :meth:`persist` is
a no-op.  Client errors, including an unreachable server, surface as
:class:`~docset_indexer.utils.errors.StorageError`.
"""

from __future__ import annotations

import os
from typing import Any

# Set before chromadb is imported; the client reads it at import time.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from docset_indexer.interfaces.storage_backend import IStorageBackend
from docset_indexer.models.embedding import Document
from docset_indexer.models.node import (
    IndexStruct,
    MetadataFilter,
    Node,
    SearchResult,
    matches_all,
)
from docset_indexer.utils.errors import StorageError
from docset_indexer.utils.naming import collection_name_for

logger = structlog.get_logger(logger_name=__name__)

UPSERT_BATCH_SIZE = 100

SOURCES_SUFFIX = "_sources"

# Chroma needs a vector per record; source documents are only fetched by id.
_SOURCE_PLACEHOLDER_EMBEDDING = [1.0]

# Reserved metadata keys; user metadata never starts with this prefix.
_RESERVED_PREFIX = "_docset_"
_IS_EXPANDED_KEY = f"{_RESERVED_PREFIX}is_expanded"
_SOURCE_DOCUMENT_KEY = f"{_RESERVED_PREFIX}source_document_id"

_WHERE_OPERATORS: dict[str, str] = {
    "==": "$eq",
    "!=": "$ne",
    "in": "$in",
    "nin": "$nin",
}


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops Chroma from loading its default ONNX model; we always pass vectors."""

    def __init__(self) -> None:
        pass

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("Embeddings are computed before they reach Chroma")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaBackend(IStorageBackend):
    """Write-through backend on a Chroma collection.

    Parameters
    ----------
    project_name:
        Unsanitized project name; the collection name is derived from it.
    client:
        A ready ``chromadb`` client.  When omitted an ``HttpClient`` is
        created for *host* / *port*.

    Raises
    ------
    StorageError
        If the client cannot be created or the collection cannot be opened.
    """

    def __init__(
        self,
        project_name: str,
        client: Any | None = None,
        host: str = "localhost",
        port: int = 8000,
    ) -> None:
        self._project_name = project_name
        self._collection_name = collection_name_for(project_name)
        if client is None:
            try:
                client = chromadb.HttpClient(
                    host=host,
                    port=port,
                    settings=chromadb.config.Settings(anonymized_telemetry=False),
                )
            except Exception as exc:
                raise StorageError(
                    message=f"Cannot connect to Chroma at {host}:{port}: {exc}",
                    provider_name=self.get_backend_name(),
                ) from exc
        self._client = client
        self._collection = self._open_collection(self._collection_name)
        self._sources: Any | None = None

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def requires_explicit_flush(self) -> bool:
        return False

    # ------------------------------------------------------------------
    # IStorageBackend implementation
    # ------------------------------------------------------------------

    async def add_vectors(self, nodes: list[Node]) -> None:
        for node in nodes:
            if node.embedding is None:
                raise StorageError(
                    message=f"Node {node.id} has no embedding",
                    provider_name=self.get_backend_name(),
                )
        try:
            for start in range(0, len(nodes), UPSERT_BATCH_SIZE):
                batch = nodes[start : start + UPSERT_BATCH_SIZE]
                self._collection.upsert(
                    ids=[n.id for n in batch],
                    embeddings=[n.embedding for n in batch],
                    documents=[n.text for n in batch],
                    metadatas=[_to_chroma_metadata(n) for n in batch],
                )
        except Exception as exc:
            raise StorageError(
                message=f"Chroma upsert failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc
        logger.debug(
            "chroma_upserted",
            collection=self._collection_name,
            count=len(nodes),
            batches=(len(nodes) + UPSERT_BATCH_SIZE - 1) // UPSERT_BATCH_SIZE,
        )

    async def add_documents(self, nodes: list[Node]) -> None:
        # Text and metadata were written together with the vectors.
        return None

    async def add_index_entry(self, index_struct: IndexStruct) -> None:
        # The collection itself is the index.
        return None

    async def add_source_documents(self, documents: list[Document]) -> None:
        if not documents:
            return
        sources = self._sources_collection()
        try:
            for start in range(0, len(documents), UPSERT_BATCH_SIZE):
                batch = documents[start : start + UPSERT_BATCH_SIZE]
                sources.upsert(
                    ids=[d.id for d in batch],
                    embeddings=[_SOURCE_PLACEHOLDER_EMBEDDING for _ in batch],
                    documents=[d.text for d in batch],
                    metadatas=[dict(d.metadata) or None for d in batch],
                )
        except Exception as exc:
            raise StorageError(
                message=f"Chroma source upsert failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc

    async def get_source_document(self, document_id: str) -> Document | None:
        sources = self._sources_collection()
        try:
            record = sources.get(ids=[document_id], include=["documents", "metadatas"])
        except Exception as exc:
            raise StorageError(
                message=f"Chroma source get failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc
        if not record["ids"]:
            return None
        metadatas = record.get("metadatas") or [None]
        return Document(
            id=document_id,
            text=record["documents"][0] or "",
            metadata={k: str(v) for k, v in (metadatas[0] or {}).items()},
        )

    async def persist(self) -> None:
        return None

    async def query(
        self,
        embedding: list[float],
        top_k: int = 10,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchResult]:
        where, post_filters = _translate_filters(filters)
        # Range filters run client-side, so fetch extra candidates for them.
        fetch_k = top_k * 4 if post_filters else top_k
        try:
            total = self._collection.count()
            if total == 0:
                return []
            kwargs: dict[str, Any] = {
                "query_embeddings": [embedding],
                "n_results": min(fetch_k, total),
                "include": ["documents", "metadatas", "distances"],
            }
            if where:
                kwargs["where"] = where
            results = self._collection.query(**kwargs)
        except Exception as exc:
            raise StorageError(
                message=f"Chroma query failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(ids)

        hits: list[SearchResult] = []
        for node_id, text, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            raw_meta = meta or {}
            metadata = _from_chroma_metadata(raw_meta)
            if not matches_all(metadata, post_filters):
                continue
            hits.append(
                SearchResult.for_node(
                    node_id,
                    raw_meta.get(_SOURCE_DOCUMENT_KEY) or None,
                    text=text or "",
                    # cosine space: distance = 1 - similarity
                    score=1.0 - float(distance),
                    metadata=metadata,
                )
            )
        return hits[:top_k]

    async def get_node(self, node_id: str) -> Node | None:
        try:
            record = self._collection.get(
                ids=[node_id],
                include=["embeddings", "documents", "metadatas"],
            )
        except Exception as exc:
            raise StorageError(
                message=f"Chroma get failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc
        if not record["ids"]:
            return None
        raw_meta = record["metadatas"][0] or {}
        embeddings = record.get("embeddings")
        embedding = None
        if embeddings is not None and len(embeddings) > 0:
            embedding = [float(x) for x in embeddings[0]]
        return Node(
            id=node_id,
            text=record["documents"][0] or "",
            metadata=_from_chroma_metadata(raw_meta),
            embedding=embedding,
            is_expanded=bool(raw_meta.get(_IS_EXPANDED_KEY, False)),
            source_document_id=raw_meta.get(_SOURCE_DOCUMENT_KEY) or None,
        )

    async def count(self) -> int:
        try:
            return self._collection.count()
        except Exception as exc:
            raise StorageError(
                message=f"Chroma count failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc

    async def drop(self) -> None:
        # Opened first so both deletes target an existing collection.
        self._sources_collection()
        try:
            self._client.delete_collection(name=self._collection_name)
            self._client.delete_collection(name=self._sources_name())
        except Exception as exc:
            raise StorageError(
                message=f"Chroma delete_collection failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc
        logger.info("chroma_collection_dropped", collection=self._collection_name)
        self._sources = None
        self._collection = self._open_collection(self._collection_name)

    def get_backend_name(self) -> str:
        return "chroma"

    def is_available(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception as exc:
            logger.warning("chroma_unreachable", error=str(exc))
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _sources_name(self) -> str:
        return f"{self._collection_name}{SOURCES_SUFFIX}"

    def _sources_collection(self) -> Any:
        if self._sources is None:
            self._sources = self._open_collection(self._sources_name())
        return self._sources

    def _open_collection(self, name: str) -> Any:
        try:
            try:
                return self._client.get_or_create_collection(
                    name=name,
                    metadata={"hnsw:space": "cosine"},
                    embedding_function=_NoopEmbeddingFunction(),
                )
            except ValueError:
                # Existing collection persisted with a different embedding function.
                return self._client.get_or_create_collection(
                    name=name,
                    metadata={"hnsw:space": "cosine"},
                )
        except Exception as exc:
            raise StorageError(
                message=f"Opening Chroma collection {name!r} failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc


def _to_chroma_metadata(node: Node) -> dict[str, str | bool]:
    metadata: dict[str, str | bool] = dict(node.metadata)
    metadata[_IS_EXPANDED_KEY] = node.is_expanded
    metadata[_SOURCE_DOCUMENT_KEY] = node.source_document_id or ""
    return metadata


def _from_chroma_metadata(meta: dict[str, Any]) -> dict[str, str]:
    return {k: str(v) for k, v in meta.items() if not k.startswith(_RESERVED_PREFIX)}


def _translate_filters(
    filters: list[MetadataFilter] | None,
) -> tuple[dict[str, Any] | None, list[MetadataFilter]]:
    """Split filters into a Chroma ``where`` clause and client-side range filters.

    Metadata values are stored as strings, which Chroma cannot range-compare,
    so ``>``, ``<``, ``>=`` and ``<=`` are applied after the query.
    """
    clauses: list[dict[str, Any]] = []
    post: list[MetadataFilter] = []
    for f in filters or []:
        op = _WHERE_OPERATORS.get(f.operator)
        if op is None:
            post.append(f)
            continue
        value = [str(v) for v in f.value] if f.operator in ("in", "nin") else str(f.value)
        clauses.append({f.key: {op: value}})

    if not clauses:
        return None, post
    if len(clauses) == 1:
        return clauses[0], post
    return {"$and": clauses}, post
