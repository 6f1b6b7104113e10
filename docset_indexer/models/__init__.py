"""docset_indexer domain models: re-exports all public model classes.

    - chunk.py    : splitter fragments and merged chunks
    - node.py     : persisted nodes, index entries, filters, search hits
    - progress.py : progress snapshot returned to pollers
    - embedding.py: documents, per-set config and service results
"""

from __future__ import annotations

from docset_indexer.models.chunk import Chunk, Fragment
from docset_indexer.models.embedding import (
    CostEstimate,
    Document,
    EmbeddingConfig,
    EmbeddingResult,
    PreviewResult,
)
from docset_indexer.models.node import (
    IndexStruct,
    MetadataFilter,
    Node,
    SearchResult,
    matches_all,
)
from docset_indexer.models.progress import ProgressStatus

__all__ = [
    "Chunk",
    "CostEstimate",
    "Document",
    "EmbeddingConfig",
    "EmbeddingResult",
    "Fragment",
    "IndexStruct",
    "MetadataFilter",
    "Node",
    "PreviewResult",
    "ProgressStatus",
    "SearchResult",
    "matches_all",
]
