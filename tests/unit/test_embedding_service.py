"""Unit tests for EmbeddingService document-set operations."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from docset_indexer.models.embedding import Document, EmbeddingConfig
from docset_indexer.models.progress import ProgressStatus
from docset_indexer.pipeline.progress_tracker import ProgressTracker
from docset_indexer.providers.storage.local_file_backend import LocalFileBackend
from docset_indexer.services.embedding_service import (
    EMPTY_DOCUMENT_SET_MESSAGE,
    EmbeddingService,
)
from docset_indexer.utils.errors import ConfigurationError, UpstreamError

_RECORDS = [
    Document(
        id="row-1",
        text="Widgets ship in boxes of ten. Each box is sealed.",
        metadata={"sku": "W-1"},
    ),
    Document(id="row-2", text="Gadgets ship loose. Handle with care.", metadata={"sku": "G-2"}),
    Document(id="row-3", text="Gizmos are discontinued.", metadata={"sku": "Z-3"}),
]


@pytest.fixture()
def tracker(fake_clock) -> ProgressTracker:
    return ProgressTracker(clock=fake_clock)


@pytest.fixture()
def service(tracker, word_tokenizer) -> EmbeddingService:
    return EmbeddingService(
        tracker,
        tokenizer_factory=lambda model_name: word_tokenizer,
        clock=lambda: 1_700_000_000.0,
    )


@pytest.fixture()
def config(tmp_path) -> EmbeddingConfig:
    return EmbeddingConfig(
        project_name="Product notes",
        model_name="mock",
        model_provider="mock",
        storage_path=str(tmp_path),
        chunk_size=50,
        chunk_overlap=10,
    )


class TestTransform:
    def test_nodes_carry_metadata_but_embed_only_text(self, service, config) -> None:
        nodes = service.transform_documents_to_nodes(_RECORDS, config)

        first = nodes[0]
        assert first.metadata == {"sku": "W-1"}
        assert first.source_document_id == "row-1"
        assert first.get_embed_text() == first.text

    def test_neighbouring_records_are_combined(self, service, config) -> None:
        nodes = service.transform_documents_to_nodes(_RECORDS, config)

        originals = [n for n in nodes if not n.is_expanded]
        assert [n.text for n in originals] == [d.text for d in _RECORDS]
        assert len(nodes) == 6
        assert nodes[1].text == f"{_RECORDS[0].text} {_RECORDS[1].text}"

    def test_blank_documents_are_skipped(self, service, config) -> None:
        nodes = service.transform_documents_to_nodes(
            [Document(text="   "), _RECORDS[0]], config
        )
        assert [n.text for n in nodes] == [_RECORDS[0].text]


class TestCreateEmbeddings:
    @pytest.mark.asyncio
    async def test_empty_document_set_is_a_structured_failure(
        self, service, tracker, config
    ) -> None:
        result = await service.create_embeddings([], config)

        assert result.success is False
        assert result.error == EMPTY_DOCUMENT_SET_MESSAGE
        assert tracker.current_status() == ProgressStatus()

    @pytest.mark.asyncio
    async def test_blank_documents_count_as_empty(self, service, config) -> None:
        result = await service.create_embeddings([Document(text=" \n ")], config)
        assert result.success is False

    @pytest.mark.asyncio
    async def test_successful_run_persists_and_completes(
        self, service, tracker, config, tmp_path
    ) -> None:
        progress: list[float] = []
        tracker.register_listener(lambda op, done, total: progress.append(done))

        result = await service.create_embeddings(_RECORDS, config)

        assert result.success is True
        assert result.operation_id.startswith("embed-1700000000000-")
        assert result.node_count == 6
        assert progress[0] == 0
        assert progress[1] == 5
        assert progress[-1] == 100
        assert progress == sorted(progress)
        assert tracker.get_status(result.operation_id).progress == 100
        assert tracker.current_operation is None

        stored = LocalFileBackend(tmp_path, "Product notes")
        assert await stored.count() == 6

    @pytest.mark.asyncio
    async def test_rerun_does_not_duplicate(self, service, config, tmp_path) -> None:
        await service.create_embeddings(_RECORDS, config)
        await service.create_embeddings(_RECORDS, config)

        assert await LocalFileBackend(tmp_path, "Product notes").count() == 6

    @pytest.mark.asyncio
    async def test_unsupported_backend_raises_and_clears(self, service, tracker, config) -> None:
        started: list[str] = []
        tracker.register_listener(lambda op, done, total: started.append(op))
        bad = config.model_copy(update={"vector_store_type": "pinecone"})

        with pytest.raises(ConfigurationError):
            await service.create_embeddings(_RECORDS, bad)
        assert started
        assert tracker.get_entry(started[0]) is None
        assert tracker.current_status() == ProgressStatus()

    @pytest.mark.asyncio
    async def test_unreachable_chroma_is_an_upstream_error(
        self, tracker, word_tokenizer, config
    ) -> None:
        client = MagicMock()
        client.get_or_create_collection.side_effect = ConnectionError("chroma down")
        service = EmbeddingService(
            tracker,
            tokenizer_factory=lambda model_name: word_tokenizer,
            chroma_client=client,
        )
        chroma = config.model_copy(update={"vector_store_type": "chroma"})

        with pytest.raises(UpstreamError, match="chroma down"):
            await service.create_embeddings(_RECORDS, chroma)
        assert tracker.current_operation is None
        assert tracker.current_status() == ProgressStatus()

    @pytest.mark.asyncio
    async def test_unexpected_error_clears_operation(self, tracker, config) -> None:
        def broken_tokenizer(model_name: str):
            raise RuntimeError("tokenizer exploded")

        service = EmbeddingService(tracker, tokenizer_factory=broken_tokenizer)

        with pytest.raises(RuntimeError, match="tokenizer exploded"):
            await service.create_embeddings(_RECORDS, config)
        assert tracker.current_operation is None
        assert tracker.current_status() == ProgressStatus()

    @pytest.mark.asyncio
    async def test_runs_in_the_same_millisecond_get_distinct_ids(self, service, config) -> None:
        first = await service.create_embeddings(_RECORDS, config)
        second = await service.create_embeddings(_RECORDS, config)

        assert first.operation_id != second.operation_id

    @pytest.mark.asyncio
    async def test_real_provider_without_client_raises(self, service, config) -> None:
        real = config.model_copy(
            update={"model_provider": "openai", "model_name": "text-embedding-3-small"}
        )
        with pytest.raises(ConfigurationError):
            await service.create_embeddings(_RECORDS, real)

    @pytest.mark.asyncio
    async def test_supplied_embed_fn_is_used(self, tracker, word_tokenizer, config) -> None:
        calls: list[int] = []

        def embed_fn(texts: list[str]) -> list[list[float]]:
            calls.append(len(texts))
            return [[0.1, 0.2, 0.3] for _ in texts]

        service = EmbeddingService(
            tracker, embed_fn=embed_fn, tokenizer_factory=lambda model_name: word_tokenizer
        )
        real = config.model_copy(
            update={"model_provider": "openai", "model_name": "text-embedding-3-small"}
        )

        result = await service.create_embeddings(_RECORDS, real)

        assert result.success is True
        assert sum(calls) == 6


class TestPreviewAndCost:
    def test_preview_samples_from_the_middle(self, service, config, word_tokenizer) -> None:
        records = [Document(id=f"r{i}", text=f"Record number {i}.") for i in range(30)]
        preview = service.preview_results(records, config)
        nodes = service.transform_documents_to_nodes(records, config)

        assert preview.success is True
        middle = len(nodes) // 2
        assert [n.id for n in preview.nodes] == [n.id for n in nodes[middle : middle + 10]]
        assert preview.cost is not None
        assert preview.cost.token_count == sum(word_tokenizer.count(n.text) for n in nodes)

    def test_preview_of_empty_set(self, service, config) -> None:
        preview = service.preview_results([], config)
        assert preview.success is False
        assert preview.error == EMPTY_DOCUMENT_SET_MESSAGE

    def test_cost_uses_list_price(self, service, config) -> None:
        nodes = service.transform_documents_to_nodes(_RECORDS, config)
        cost = service.estimate_cost(nodes, "text-embedding-3-small")

        assert cost.token_count > 0
        assert cost.estimated_price == pytest.approx(cost.token_count / 1_000_000 * 0.02)

    def test_unknown_model_costs_nothing(self, service, config) -> None:
        nodes = service.transform_documents_to_nodes(_RECORDS, config)
        assert service.estimate_cost(nodes, "mock").estimated_price == 0


class TestExistingSets:
    @pytest.mark.asyncio
    async def test_search_existing_index(self, service, config) -> None:
        await service.create_embeddings(_RECORDS, config)

        index = service.get_existing_index(config)
        results = await service.search(index, "widgets", num_results=3)

        assert len(results) == 3
        assert all(r.score == pytest.approx(1.0) for r in results)

    @pytest.mark.asyncio
    async def test_hits_map_back_to_source_records(self, service, config) -> None:
        await service.create_embeddings(_RECORDS, config)

        index = service.get_existing_index(config)
        results = await service.search(index, "widgets", num_results=6)

        assert len(results) == 6
        assert {r.source_node_id for r in results} == {d.id for d in _RECORDS}
        assert len({r.node_id for r in results}) == 6
        assert all(r.node_id != r.source_node_id for r in results)

        source = await service.get_source_document(index, "row-2")
        assert source == _RECORDS[1]
        assert await service.get_source_document(index, "missing") is None

    @pytest.mark.asyncio
    async def test_delete_document_set(self, service, config, tmp_path) -> None:
        await service.create_embeddings(_RECORDS, config)
        await service.delete_document_set(config)

        assert not (tmp_path / "Product_notes").exists()
