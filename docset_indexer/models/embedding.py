"""Document-set level models used by the embedding service.

``Document`` is what external record parsers hand us; ``EmbeddingConfig``
is the per-document-set configuration; the remaining models are the
structured results returned to callers.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field

from docset_indexer.models.node import Node


class Document(BaseModel):
    """A source record: one text field plus string metadata."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    metadata: dict[str, str] = Field(default_factory=dict)


class EmbeddingConfig(BaseModel):
    """How one document set is chunked, embedded and stored."""

    model_config = ConfigDict(frozen=True)

    model_name: str = "text-embedding-3-small"
    model_provider: str = "openai"
    vector_store_type: str = Field(
        default="simple",
        description='"simple" (local files), "sqlite" or "chroma".',
    )
    project_name: str
    storage_path: str = "./data/storage"
    sqlite_path: str = "./data/docsets.db"
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chunk_size: int = Field(default=1024, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    max_expansion_tokens: int = Field(default=100, ge=0)
    expansion_tokenizer_model: str = "text-embedding-3-small"
    include_metadata_in_chunk_size: bool = False
    embed_batch_size: int = Field(default=50, gt=0)
    super_chunk_size: int = Field(default=10000, gt=0)


class EmbeddingResult(BaseModel):
    """Structured outcome of ``create_embeddings``.

    Expected failures (an empty document set) come back with
    ``success=False`` and a user-facing ``error`` rather than raising.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    error: str | None = None
    operation_id: str | None = None
    node_count: int = 0


class CostEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    model_name: str
    token_count: int = Field(ge=0)
    estimated_price: float = Field(ge=0, description="USD at list price per 1M tokens.")


class PreviewResult(BaseModel):
    """Sample nodes plus a cost estimate, shown before committing to a run."""

    model_config = ConfigDict(frozen=True)

    success: bool
    nodes: list[Node] = Field(default_factory=list)
    cost: CostEstimate | None = None
    error: str | None = None
