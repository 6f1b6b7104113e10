"""Document-set embedding service.

Composes the pipeline for callers that manage document sets:

    documents -> SentenceSplitter -> nodes -> ChunkExpander
              -> PersistenceOrchestrator (EmbeddingBatcher + storage backend)

and reports progress through a :class:`ProgressTracker`.  Splitting maps to
the first 5% of the operation and persistence to the next 90%, so polling
clients see ``5 + floor(processed / total * 90)``.

An empty document set is an expected outcome and comes back as
``EmbeddingResult(success=False, error=...)``.  Every other error
propagates after the operation has been cleared from the tracker.
"""

from __future__ import annotations

import math
import time
import uuid
from collections.abc import Callable
from typing import Any

import structlog

from docset_indexer.interfaces.tokenizer import ITokenizer
from docset_indexer.models.embedding import (
    CostEstimate,
    Document,
    EmbeddingConfig,
    EmbeddingResult,
    PreviewResult,
)
from docset_indexer.models.node import MetadataFilter, Node, SearchResult
from docset_indexer.pipeline.persistence_orchestrator import IndexHandle, run_persistence
from docset_indexer.pipeline.progress_tracker import ProgressTracker
from docset_indexer.providers.embedding import EmbedFn, build_embedding_provider
from docset_indexer.providers.embedding.catalog import get_price_per_1m
from docset_indexer.providers.storage import build_storage_backend
from docset_indexer.providers.tokenizer import get_tokenizer
from docset_indexer.services.expansion import ChunkExpander, node_id_for
from docset_indexer.services.splitting import SentenceSplitter
from docset_indexer.utils.errors import DataError, DocsetIndexerError
from docset_indexer.utils.naming import sanitize_project_name

logger = structlog.get_logger(logger_name=__name__)

EMPTY_DOCUMENT_SET_MESSAGE = (
    "That CSV does not appear to contain any documents. "
    "Please check the file and try again."
)

PREVIEW_SAMPLE_SIZE = 10

_SPLIT_PROGRESS = 5
_PERSIST_PROGRESS_SPAN = 90


class EmbeddingService:
    """Turn documents into a searchable, persisted document set.

    Parameters
    ----------
    tracker:
        Registry that receives progress for every ``create_embeddings`` run.
    embed_fn:
        Client function for real providers; not needed for the mock model.
    tokenizer_factory:
        Model name -> tokenizer.  Defaults to the tiktoken factory.
    chroma_client:
        Pre-built chromadb client for the ``chroma`` backend.
    clock:
        Wall-clock seconds, used for operation ids.
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        embed_fn: EmbedFn | None = None,
        tokenizer_factory: Callable[[str], ITokenizer] = get_tokenizer,
        chroma_client: Any | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tracker = tracker
        self._embed_fn = embed_fn
        self._tokenizer_factory = tokenizer_factory
        self._chroma_client = chroma_client
        self._clock = clock

    # ------------------------------------------------------------------
    # Node construction
    # ------------------------------------------------------------------

    def transform_documents_to_nodes(
        self,
        documents: list[Document],
        config: EmbeddingConfig,
    ) -> list[Node]:
        """Split every non-empty document and expand the resulting nodes.

        Metadata is copied onto each node but excluded from embedding input.
        """
        splitter = SentenceSplitter(
            self._tokenizer_factory(config.model_name),
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            include_metadata_in_chunk_size=config.include_metadata_in_chunk_size,
        )

        nodes: list[Node] = []
        for document in _non_empty(documents):
            metadata_str = "\n".join(f"{k}: {v}" for k, v in document.metadata.items())
            chunks = splitter.split_text_metadata_aware(document.text, metadata_str)
            nodes.extend(
                Node(
                    id=node_id_for(document.id, i),
                    text=chunk.text,
                    metadata=dict(document.metadata),
                    source_document_id=document.id,
                    excluded_embed_metadata_keys=tuple(document.metadata),
                )
                for i, chunk in enumerate(chunks)
            )

        expander = ChunkExpander(
            self._tokenizer_factory(config.expansion_tokenizer_model),
            max_expansion_tokens=config.max_expansion_tokens,
        )
        expanded = expander.expand(nodes)
        logger.info(
            "documents_transformed",
            documents=len(documents),
            chunks=len(nodes),
            nodes=len(expanded),
        )
        return expanded

    # ------------------------------------------------------------------
    # Embedding runs
    # ------------------------------------------------------------------

    async def create_embeddings(
        self,
        documents: list[Document],
        config: EmbeddingConfig,
    ) -> EmbeddingResult:
        """Split, expand, embed and persist *documents* for ``config.project_name``.

        Raises
        ------
        ConfigurationError
            For an unsupported provider / backend or an impossible chunk size.
        UpstreamError
            If embedding or storage fails; remaining work is abandoned.
        """
        operation_id = f"embed-{int(self._clock() * 1000)}-{uuid.uuid4().hex[:8]}"
        self._tracker.start(operation_id, 100)
        log = logger.bind(operation_id=operation_id, project=config.project_name)

        try:
            if not _non_empty(documents):
                raise DataError(message=EMPTY_DOCUMENT_SET_MESSAGE)

            nodes = self.transform_documents_to_nodes(documents, config)
            self._tracker.update(operation_id, _SPLIT_PROGRESS)

            storage = build_storage_backend(config, chroma_client=self._chroma_client)
            provider = build_embedding_provider(
                config.model_provider, config.model_name, self._embed_fn
            )

            def _on_progress(processed: int, total: int) -> None:
                share = math.floor(processed / total * _PERSIST_PROGRESS_SPAN) if total else 0
                self._tracker.update(operation_id, share + _SPLIT_PROGRESS)

            handle = await run_persistence(
                nodes,
                provider,
                storage,
                on_progress=_on_progress,
                super_chunk_size=config.super_chunk_size,
                embed_batch_size=config.embed_batch_size,
                index_id=sanitize_project_name(config.project_name),
                documents=_non_empty(documents),
            )
        except DataError as exc:
            self._tracker.clear(operation_id)
            log.warning("embedding_run_rejected", error=exc.message)
            return EmbeddingResult(success=False, error=exc.message, operation_id=operation_id)
        except DocsetIndexerError as exc:
            self._tracker.clear(operation_id)
            log.error("embedding_run_failed", error=str(exc))
            raise
        except Exception:
            self._tracker.clear(operation_id)
            log.exception("embedding_run_crashed")
            raise

        self._tracker.complete(operation_id)
        log.info("embedding_run_completed", nodes=handle.node_count)
        return EmbeddingResult(
            success=True,
            operation_id=operation_id,
            node_count=handle.node_count,
        )

    def preview_results(
        self,
        documents: list[Document],
        config: EmbeddingConfig,
    ) -> PreviewResult:
        """Return up to ten nodes from the middle of the set plus a cost estimate."""
        if not _non_empty(documents):
            return PreviewResult(success=False, error=EMPTY_DOCUMENT_SET_MESSAGE)

        nodes = self.transform_documents_to_nodes(documents, config)
        middle = len(nodes) // 2
        sample = nodes[middle : middle + PREVIEW_SAMPLE_SIZE]
        return PreviewResult(
            success=True,
            nodes=sample,
            cost=self.estimate_cost(nodes, config.model_name),
        )

    def estimate_cost(self, nodes: list[Node], model_name: str) -> CostEstimate:
        """Token count of every node's text and its list price for *model_name*."""
        tokenizer = self._tokenizer_factory(model_name)
        token_count = sum(tokenizer.count(node.text) for node in nodes)
        price = token_count / 1_000_000 * get_price_per_1m(model_name)
        return CostEstimate(model_name=model_name, token_count=token_count, estimated_price=price)

    # ------------------------------------------------------------------
    # Existing document sets
    # ------------------------------------------------------------------

    def get_existing_index(self, config: EmbeddingConfig) -> IndexHandle:
        """Open the already-persisted index for ``config.project_name``."""
        storage = build_storage_backend(config, chroma_client=self._chroma_client)
        provider = build_embedding_provider(
            config.model_provider, config.model_name, self._embed_fn
        )
        return IndexHandle(sanitize_project_name(config.project_name), storage, provider)

    async def search(
        self,
        index: IndexHandle,
        query: str,
        num_results: int = 10,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchResult]:
        return await index.search(query, top_k=num_results, filters=filters)

    async def get_source_document(self, index: IndexHandle, document_id: str) -> Document | None:
        """Look up the record a search hit's ``source_node_id`` refers to."""
        return await index.get_source_document(document_id)

    async def delete_document_set(self, config: EmbeddingConfig) -> None:
        """Remove everything stored for ``config.project_name``."""
        storage = build_storage_backend(config, chroma_client=self._chroma_client)
        await storage.drop()
        logger.info("document_set_deleted", project=config.project_name)


def _non_empty(documents: list[Document]) -> list[Document]:
    return [d for d in documents if d.text.strip()]
