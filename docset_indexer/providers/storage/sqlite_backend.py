"""Relational storage backend on SQLite via ``aiosqlite``.

Each project owns four tables named after its sanitized project name:

    docset_<project>_vectors    id, embedding (float32 blob)
    docset_<project>_documents  id, text, metadata (JSON), flags
    docset_<project>_index      index_id, nodes_dict (JSON)
    docset_<project>_sources    id, text, metadata (JSON) of source documents

Every write is an ``INSERT ... ON CONFLICT DO UPDATE`` upsert committed
before the call returns, so :meth:`persist` has nothing to do.  Distinct
projects never share a table, so concurrent runs for different projects
do not interfere.  Driver errors on any path surface as
:class:`~docset_indexer.utils.errors.StorageError`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np
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

_DEFAULT_DB_PATH = Path("data/docsets.db")


class SQLiteBackend(IStorageBackend):
    """Write-through relational backend.

    Parameters
    ----------
    db_path:
        SQLite database file; created on first use.
    project_name:
        Unsanitized project name; table names are derived from it.
    """

    def __init__(self, project_name: str, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._project_name = project_name
        prefix = f"docset_{sanitize_project_name(project_name)}"
        self._vectors_table = f'"{prefix}_vectors"'
        self._documents_table = f'"{prefix}_documents"'
        self._index_table = f'"{prefix}_index"'
        self._sources_table = f'"{prefix}_sources"'
        self._initialized = False

    @property
    def requires_explicit_flush(self) -> bool:
        return False

    async def initialize(self) -> None:
        """Create the project's tables if they don't exist."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    f"CREATE TABLE IF NOT EXISTS {self._vectors_table} ("
                    "id TEXT PRIMARY KEY, embedding BLOB NOT NULL, dimension INTEGER NOT NULL)"
                )
                await db.execute(
                    f"CREATE TABLE IF NOT EXISTS {self._documents_table} ("
                    "id TEXT PRIMARY KEY, text TEXT NOT NULL, metadata TEXT NOT NULL, "
                    "is_expanded INTEGER NOT NULL DEFAULT 0, source_document_id TEXT)"
                )
                await db.execute(
                    f"CREATE TABLE IF NOT EXISTS {self._index_table} ("
                    "index_id TEXT PRIMARY KEY, nodes_dict TEXT NOT NULL)"
                )
                await db.execute(
                    f"CREATE TABLE IF NOT EXISTS {self._sources_table} ("
                    "id TEXT PRIMARY KEY, text TEXT NOT NULL, metadata TEXT NOT NULL)"
                )
                await db.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise StorageError(
                message=f"SQLite initialization failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc
        self._initialized = True
        logger.info(
            "sqlite_backend_initialized", path=str(self._db_path), project=self._project_name
        )

    # ------------------------------------------------------------------
    # IStorageBackend implementation
    # ------------------------------------------------------------------

    async def add_vectors(self, nodes: list[Node]) -> None:
        rows = []
        for node in nodes:
            if node.embedding is None:
                raise StorageError(
                    message=f"Node {node.id} has no embedding",
                    provider_name=self.get_backend_name(),
                )
            rows.append((node.id, _to_blob(node.embedding), len(node.embedding)))
        await self._executemany(
            f"INSERT INTO {self._vectors_table} (id, embedding, dimension) VALUES (?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET embedding = excluded.embedding, "
            "dimension = excluded.dimension",
            rows,
        )

    async def add_documents(self, nodes: list[Node]) -> None:
        rows = [
            (
                node.id,
                node.text,
                json.dumps(node.metadata),
                int(node.is_expanded),
                node.source_document_id,
            )
            for node in nodes
        ]
        await self._executemany(
            f"INSERT INTO {self._documents_table} "
            "(id, text, metadata, is_expanded, source_document_id) VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET text = excluded.text, metadata = excluded.metadata, "
            "is_expanded = excluded.is_expanded, source_document_id = excluded.source_document_id",
            rows,
        )

    async def add_index_entry(self, index_struct: IndexStruct) -> None:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    f"SELECT nodes_dict FROM {self._index_table} WHERE index_id = ?",
                    (index_struct.index_id,),
                )
                row = await cursor.fetchone()
                nodes = json.loads(row[0]) if row else {}
                nodes.update(index_struct.nodes_dict)
                await db.execute(
                    f"INSERT INTO {self._index_table} (index_id, nodes_dict) VALUES (?, ?) "
                    "ON CONFLICT(index_id) DO UPDATE SET nodes_dict = excluded.nodes_dict",
                    (index_struct.index_id, json.dumps(nodes)),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"SQLite index write failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc

    async def add_source_documents(self, documents: list[Document]) -> None:
        rows = [(d.id, d.text, json.dumps(d.metadata)) for d in documents]
        await self._executemany(
            f"INSERT INTO {self._sources_table} (id, text, metadata) VALUES (?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET text = excluded.text, metadata = excluded.metadata",
            rows,
        )

    async def get_source_document(self, document_id: str) -> Document | None:
        rows = await self._fetch(
            f"SELECT text, metadata FROM {self._sources_table} WHERE id = ?",
            (document_id,),
        )
        if not rows:
            return None
        text, metadata_json = rows[0]
        return Document(id=document_id, text=text, metadata=json.loads(metadata_json))

    async def persist(self) -> None:
        logger.debug("sqlite_persist_noop", project=self._project_name)

    async def query(
        self,
        embedding: list[float],
        top_k: int = 10,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchResult]:
        rows = await self._fetch(
            f"SELECT v.id, v.embedding, d.text, d.metadata, d.source_document_id "
            f"FROM {self._vectors_table} v "
            f"JOIN {self._documents_table} d ON d.id = v.id"
        )

        candidates = {}
        for node_id, blob, text, metadata_json, source_document_id in rows:
            metadata = json.loads(metadata_json)
            if matches_all(metadata, filters):
                candidates[node_id] = (_from_blob(blob), text, metadata, source_document_id)

        ids = list(candidates)
        ranked = rank_by_cosine(embedding, ids, [candidates[i][0] for i in ids], top_k)
        return [
            SearchResult.for_node(
                node_id,
                candidates[node_id][3],
                text=candidates[node_id][1],
                score=score,
                metadata=candidates[node_id][2],
            )
            for node_id, score in ranked
        ]

    async def get_node(self, node_id: str) -> Node | None:
        rows = await self._fetch(
            f"SELECT d.text, d.metadata, d.is_expanded, d.source_document_id, v.embedding "
            f"FROM {self._documents_table} d "
            f"LEFT JOIN {self._vectors_table} v ON v.id = d.id WHERE d.id = ?",
            (node_id,),
        )
        if not rows:
            return None
        text, metadata_json, is_expanded, source_document_id, blob = rows[0]
        return Node(
            id=node_id,
            text=text,
            metadata=json.loads(metadata_json),
            embedding=_from_blob(blob) if blob is not None else None,
            is_expanded=bool(is_expanded),
            source_document_id=source_document_id,
        )

    async def get_index(self, index_id: str) -> IndexStruct | None:
        rows = await self._fetch(
            f"SELECT nodes_dict FROM {self._index_table} WHERE index_id = ?",
            (index_id,),
        )
        if not rows:
            return None
        return IndexStruct(index_id=index_id, nodes_dict=json.loads(rows[0][0]))

    async def count(self) -> int:
        rows = await self._fetch(f"SELECT COUNT(*) FROM {self._vectors_table}")
        return int(rows[0][0])

    async def drop(self) -> None:
        if not self._db_path.exists():
            return
        tables = (
            self._vectors_table,
            self._documents_table,
            self._index_table,
            self._sources_table,
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                for table in tables:
                    await db.execute(f"DROP TABLE IF EXISTS {table}")
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"SQLite drop failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc
        self._initialized = False
        logger.info("sqlite_backend_dropped", project=self._project_name)

    def get_backend_name(self) -> str:
        return "sqlite"

    def is_available(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def _fetch(self, sql: str, params: tuple[Any, ...] = ()) -> list[Any]:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(sql, params)
                return list(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"SQLite read failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc

    async def _executemany(self, sql: str, rows: list[tuple]) -> None:
        if not rows:
            return
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.executemany(sql, rows)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"SQLite write failed: {exc}",
                provider_name=self.get_backend_name(),
            ) from exc
        logger.debug("sqlite_rows_upserted", count=len(rows), project=self._project_name)


def _to_blob(embedding: list[float]) -> bytes:
    return np.asarray(embedding, dtype=np.float32).tobytes()


def _from_blob(blob: bytes) -> list[float]:
    return np.frombuffer(blob, dtype=np.float32).tolist()
