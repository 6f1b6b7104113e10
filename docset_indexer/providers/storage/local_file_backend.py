"""Local JSON-file storage backend.

Each project gets a directory ``<storage_path>/<sanitized project>/``
holding three files:

    vector_store.json   node id -> embedding
    doc_store.json      node id -> text, metadata and flags, plus the
                        source documents keyed by document id
    index_store.json    index id -> member node ids

Writes go to in-memory dicts and only reach disk on :meth:`persist`, which
the orchestrator calls once after the last super-chunk.  Dict keys are
node ids, so re-adding a node replaces it.
"""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Any

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
from docset_indexer.providers.storage.similarity import rank_by_cosine
from docset_indexer.utils.errors import StorageError
from docset_indexer.utils.naming import sanitize_project_name

logger = structlog.get_logger(logger_name=__name__)

VECTOR_STORE_FILE = "vector_store.json"
DOC_STORE_FILE = "doc_store.json"
INDEX_STORE_FILE = "index_store.json"


class LocalFileBackend(IStorageBackend):
    """File-backed store that must be flushed with :meth:`persist`.

    Parameters
    ----------
    storage_path:
        Root directory shared by all projects.
    project_name:
        Unsanitized project name; the directory name is derived from it.
    """

    def __init__(self, storage_path: str | Path, project_name: str) -> None:
        self._project_name = project_name
        self._persist_dir = Path(storage_path) / sanitize_project_name(project_name)
        self._embeddings: dict[str, list[float]] = {}
        self._documents: dict[str, dict[str, Any]] = {}
        self._indexes: dict[str, dict[str, str]] = {}
        self._sources: dict[str, dict[str, Any]] = {}
        self._load()

    @property
    def persist_dir(self) -> Path:
        return self._persist_dir

    @property
    def requires_explicit_flush(self) -> bool:
        return True

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
            self._embeddings[node.id] = list(node.embedding)

    async def add_documents(self, nodes: list[Node]) -> None:
        for node in nodes:
            self._documents[node.id] = {
                "text": node.text,
                "metadata": dict(node.metadata),
                "is_expanded": node.is_expanded,
                "source_document_id": node.source_document_id,
            }

    async def add_index_entry(self, index_struct: IndexStruct) -> None:
        nodes = self._indexes.setdefault(index_struct.index_id, {})
        nodes.update(index_struct.nodes_dict)

    async def add_source_documents(self, documents: list[Document]) -> None:
        for document in documents:
            self._sources[document.id] = {
                "text": document.text,
                "metadata": dict(document.metadata),
            }

    async def get_source_document(self, document_id: str) -> Document | None:
        source = self._sources.get(document_id)
        if source is None:
            return None
        return Document(id=document_id, text=source["text"], metadata=source["metadata"])

    async def persist(self) -> None:
        try:
            self._persist_dir.mkdir(parents=True, exist_ok=True)
            _write_json(self._persist_dir / VECTOR_STORE_FILE, {"embedding_dict": self._embeddings})
            _write_json(
                self._persist_dir / DOC_STORE_FILE,
                {"docs": self._documents, "source_docs": self._sources},
            )
            _write_json(self._persist_dir / INDEX_STORE_FILE, {"indexes": self._indexes})
        except OSError as exc:
            raise StorageError(
                message=f"Persisting {self._persist_dir} failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc
        logger.info(
            "local_store_persisted",
            path=str(self._persist_dir),
            vectors=len(self._embeddings),
            documents=len(self._documents),
        )

    async def query(
        self,
        embedding: list[float],
        top_k: int = 10,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchResult]:
        ids = [
            node_id
            for node_id in self._embeddings
            if matches_all(self._documents.get(node_id, {}).get("metadata", {}), filters)
        ]
        ranked = rank_by_cosine(embedding, ids, [self._embeddings[i] for i in ids], top_k)
        results = []
        for node_id, score in ranked:
            doc = self._documents.get(node_id, {})
            results.append(
                SearchResult.for_node(
                    node_id,
                    doc.get("source_document_id"),
                    text=doc.get("text", ""),
                    score=score,
                    metadata=doc.get("metadata", {}),
                )
            )
        return results

    async def get_node(self, node_id: str) -> Node | None:
        doc = self._documents.get(node_id)
        if doc is None:
            return None
        return Node(
            id=node_id,
            text=doc["text"],
            metadata=doc["metadata"],
            embedding=self._embeddings.get(node_id),
            is_expanded=doc.get("is_expanded", False),
            source_document_id=doc.get("source_document_id"),
        )

    async def count(self) -> int:
        return len(self._embeddings)

    async def drop(self) -> None:
        self._embeddings.clear()
        self._documents.clear()
        self._indexes.clear()
        self._sources.clear()
        if self._persist_dir.exists():
            shutil.rmtree(self._persist_dir)
        logger.info("local_store_dropped", path=str(self._persist_dir))

    def get_backend_name(self) -> str:
        return "simple"

    def is_available(self) -> bool:
        return True

    def get_index(self, index_id: str) -> IndexStruct | None:
        nodes = self._indexes.get(index_id)
        if nodes is None:
            return None
        return IndexStruct(index_id=index_id, nodes_dict=dict(nodes))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if not self._persist_dir.exists():
            return
        try:
            self._embeddings = _read_json(self._persist_dir / VECTOR_STORE_FILE).get(
                "embedding_dict", {}
            )
            doc_store = _read_json(self._persist_dir / DOC_STORE_FILE)
            self._documents = doc_store.get("docs", {})
            self._sources = doc_store.get("source_docs", {})
            self._indexes = _read_json(self._persist_dir / INDEX_STORE_FILE).get("indexes", {})
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(
                message=f"Loading {self._persist_dir} failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc
        logger.debug(
            "local_store_loaded",
            path=str(self._persist_dir),
            vectors=len(self._embeddings),
        )


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    # Readers only ever see a complete file.
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f)
    os.replace(tmp, path)
