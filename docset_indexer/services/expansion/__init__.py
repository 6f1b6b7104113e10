"""Neighbour-context expansion of chunks."""

from docset_indexer.services.expansion.chunk_expander import (
    ChunkExpander,
    expand_chunks,
    node_id_for,
)

__all__ = ["ChunkExpander", "expand_chunks", "node_id_for"]
