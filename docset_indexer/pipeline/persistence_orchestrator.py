"""Embedding and persistence of node sets in bounded super-chunks.

Flow for ``N`` nodes with super-chunk size ``S`` and embed batch size ``B``::

    storage.add_source_documents(documents)   when source documents are given
    for each super-chunk of up to S nodes:
        embed in requests of up to B texts   -> on_progress(done, N) per request
        storage.add_vectors(super-chunk)
        storage.add_documents(super-chunk)
        storage.add_index_entry(index_id, super-chunk ids)
    storage.persist()                         only if requires_explicit_flush

Node ids are the dedup key, so running the same nodes again upserts rather
than duplicating.  Any failure aborts the remaining super-chunks and
propagates; nothing is retried here.  Records of the failing super-chunk
that were already written stay written, and the caller decides whether to
drop the document set.
"""

from __future__ import annotations

import inspect
import uuid
from collections.abc import Callable

import structlog

from docset_indexer.interfaces.embedding_provider import IEmbeddingProvider
from docset_indexer.interfaces.storage_backend import IStorageBackend
from docset_indexer.models.embedding import Document
from docset_indexer.models.node import IndexStruct, MetadataFilter, Node, SearchResult
from docset_indexer.providers.embedding.callable_embedding_provider import (
    CallableEmbeddingProvider,
    EmbedFn,
)
from docset_indexer.services.embedding_batcher import DEFAULT_EMBED_BATCH_SIZE, EmbeddingBatcher
from docset_indexer.utils.errors import DocsetIndexerError, StorageError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_SUPER_CHUNK_SIZE = 10_000

ProgressCallback = Callable[[int, int], object]


class IndexHandle:
    """Query access to a persisted index.

    Returned by the orchestrator after a run, or built directly over a
    backend that already holds data.
    """

    def __init__(
        self,
        index_id: str,
        storage: IStorageBackend,
        embedding_provider: IEmbeddingProvider,
        node_count: int = 0,
    ) -> None:
        self._index_id = index_id
        self._storage = storage
        self._embedding_provider = embedding_provider
        self._node_count = node_count

    @property
    def index_id(self) -> str:
        return self._index_id

    @property
    def storage(self) -> IStorageBackend:
        return self._storage

    @property
    def node_count(self) -> int:
        return self._node_count

    async def search(
        self,
        query: str,
        top_k: int = 10,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchResult]:
        """Embed *query* and return the *top_k* most similar nodes."""
        embedding = await self._embedding_provider.embed_single(query)
        results = await self._storage.query(embedding, top_k=top_k, filters=filters)
        logger.info(
            "index_searched",
            index_id=self._index_id,
            query_length=len(query),
            results=len(results),
            top_score=results[0].score if results else 0.0,
        )
        return results

    async def get_node(self, node_id: str) -> Node | None:
        return await self._storage.get_node(node_id)

    async def get_source_document(self, document_id: str) -> Document | None:
        """Return the source record a hit's ``source_node_id`` points at."""
        return await self._storage.get_source_document(document_id)


class PersistenceOrchestrator:
    """Drive nodes through embedding into a storage backend.

    Parameters
    ----------
    storage:
        Destination backend.
    batcher:
        Embeds nodes in provider-sized requests.
    super_chunk_size:
        Nodes embedded and written per round (default 10,000).
    """

    def __init__(
        self,
        storage: IStorageBackend,
        batcher: EmbeddingBatcher,
        super_chunk_size: int = DEFAULT_SUPER_CHUNK_SIZE,
    ) -> None:
        if super_chunk_size <= 0:
            raise ValueError(f"super_chunk_size must be positive, got {super_chunk_size}")
        self._storage = storage
        self._batcher = batcher
        self._super_chunk_size = super_chunk_size

    async def persist(
        self,
        nodes: list[Node],
        on_progress: ProgressCallback | None = None,
        index_id: str | None = None,
        documents: list[Document] | None = None,
    ) -> IndexHandle:
        """Embed and store *nodes*; see the module docstring for the flow.

        *documents*, when given, are the source records the nodes were split
        from; they are stored so search hits can be mapped back to them.

        Raises
        ------
        EmbeddingError
            If an embedding request fails.
        StorageError
            If a backend write fails.
        """
        index_id = index_id or str(uuid.uuid4())
        total = len(nodes)
        processed = 0

        async def _tick(batch_count: int) -> None:
            nonlocal processed
            processed += batch_count
            if on_progress is not None:
                result = on_progress(processed, total)
                if inspect.isawaitable(result):
                    await result

        super_chunks = range(0, total, self._super_chunk_size)
        logger.info(
            "persistence_started",
            index_id=index_id,
            nodes=total,
            super_chunks=len(super_chunks),
            backend=self._storage.get_backend_name(),
        )

        if documents:
            await self._call_storage(self._storage.add_source_documents, documents)

        for number, start in enumerate(super_chunks, start=1):
            super_chunk = nodes[start : start + self._super_chunk_size]
            try:
                embedded = await self._batcher.embed_nodes(super_chunk, on_batch=_tick)
                await self._write(embedded, index_id)
            except DocsetIndexerError as exc:
                logger.error(
                    "persistence_aborted",
                    index_id=index_id,
                    super_chunk=number,
                    processed=processed,
                    total=total,
                    error=str(exc),
                )
                raise
            logger.info(
                "super_chunk_persisted",
                index_id=index_id,
                super_chunk=number,
                nodes=len(embedded),
                processed=processed,
                total=total,
            )

        if self._storage.requires_explicit_flush:
            await self._call_storage(self._storage.persist)

        logger.info("persistence_completed", index_id=index_id, nodes=total)
        return IndexHandle(index_id, self._storage, self._batcher.provider, node_count=total)

    async def _write(self, embedded: list[Node], index_id: str) -> None:
        await self._call_storage(self._storage.add_vectors, embedded)
        await self._call_storage(self._storage.add_documents, embedded)
        await self._call_storage(
            self._storage.add_index_entry,
            IndexStruct(index_id=index_id, nodes_dict={n.id: n.id for n in embedded}),
        )

    async def _call_storage(self, method: Callable, *args: object) -> None:
        try:
            await method(*args)
        except DocsetIndexerError:
            raise
        except Exception as exc:
            raise StorageError(
                message=f"{method.__name__} failed: {exc}",
                provider_name=self._storage.get_backend_name(),
            ) from exc


async def run_persistence(
    nodes: list[Node],
    embed_fn: IEmbeddingProvider | EmbedFn,
    storage: IStorageBackend,
    on_progress: ProgressCallback | None = None,
    super_chunk_size: int = DEFAULT_SUPER_CHUNK_SIZE,
    embed_batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
    index_id: str | None = None,
    documents: list[Document] | None = None,
) -> IndexHandle:
    """Embed *nodes* with *embed_fn* and persist them into *storage*.

    *embed_fn* may be an :class:`IEmbeddingProvider` or a bare
    ``embed(texts) -> vectors`` callable.
    """
    provider = (
        embed_fn
        if isinstance(embed_fn, IEmbeddingProvider)
        else CallableEmbeddingProvider(embed_fn, model_name="custom", provider="custom")
    )
    orchestrator = PersistenceOrchestrator(
        storage,
        EmbeddingBatcher(provider, batch_size=embed_batch_size),
        super_chunk_size=super_chunk_size,
    )
    return await orchestrator.persist(
        nodes, on_progress=on_progress, index_id=index_id, documents=documents
    )
