"""Context expansion ("sploder") for short chunks.

Short chunks embed poorly on their own, so every chunk at or under
``max_expansion_tokens`` also gets neighbour-combined variants:

    original                    always
    chunk[i] + chunk[i+1]       if a next chunk exists
    chunk[i-1] + chunk[i] + chunk[i+1]
                                if both neighbours exist

Neighbours come from the whole ordered sequence, which for tabular input
means adjacent records.  Expanded nodes copy the base node's metadata, are
flagged ``is_expanded`` and get ids derived from the base id, so they never
replace an original and re-running expansion produces the same ids.
"""

from __future__ import annotations

import uuid

import structlog

from docset_indexer.interfaces.tokenizer import ITokenizer
from docset_indexer.models.chunk import Chunk
from docset_indexer.models.node import Node

logger = structlog.get_logger(logger_name=__name__)

NODE_NAMESPACE = uuid.UUID("6f1c2a4e-3b7d-5e8f-9a0b-1c2d3e4f5a6b")

_NEXT = "next"
_WINDOW = "window"


def node_id_for(source_id: str, index: int) -> str:
    """Deterministic node id for chunk *index* of *source_id*."""
    return str(uuid.uuid5(NODE_NAMESPACE, f"{source_id}:{index}"))


class ChunkExpander:
    """Emit neighbour-combined variants of short nodes.

    Parameters
    ----------
    tokenizer:
        Measures each base node's text against the threshold.
    max_expansion_tokens:
        Nodes longer than this are passed through unchanged.
    """

    def __init__(self, tokenizer: ITokenizer, max_expansion_tokens: int = 100) -> None:
        self._tokenizer = tokenizer
        self._max_expansion_tokens = max_expansion_tokens

    def expand(self, nodes: list[Node]) -> list[Node]:
        expanded: list[Node] = []
        for i, node in enumerate(nodes):
            expanded.append(node)
            if self._tokenizer.count(node.text) > self._max_expansion_tokens:
                continue

            prev_node = nodes[i - 1] if i > 0 else None
            next_node = nodes[i + 1] if i < len(nodes) - 1 else None

            if next_node is not None:
                expanded.append(
                    self._variant(node, f"{node.text} {next_node.text}", _NEXT)
                )
            if prev_node is not None and next_node is not None:
                expanded.append(
                    self._variant(
                        node,
                        f"{prev_node.text} {node.text} {next_node.text}",
                        _WINDOW,
                    )
                )

        logger.debug(
            "chunks_expanded",
            originals=len(nodes),
            total=len(expanded),
            max_expansion_tokens=self._max_expansion_tokens,
        )
        return expanded

    @staticmethod
    def _variant(base: Node, text: str, variant: str) -> Node:
        return Node(
            id=str(uuid.uuid5(NODE_NAMESPACE, f"{base.id}:{variant}")),
            text=text,
            metadata=dict(base.metadata),
            is_expanded=True,
            source_document_id=base.source_document_id,
            excluded_embed_metadata_keys=base.excluded_embed_metadata_keys,
        )


def expand_chunks(
    chunks: list[Chunk],
    max_expansion_tokens: int,
    tokenizer: ITokenizer | None = None,
    metadata: dict[str, str] | None = None,
    source_id: str = "chunks",
) -> list[Node]:
    """Turn *chunks* into nodes and expand them.

    Every original node carries *metadata* (copied), ids derived from
    *source_id* and the chunk's position.
    """
    if tokenizer is None:
        from docset_indexer.providers.tokenizer import get_tokenizer

        tokenizer = get_tokenizer()
    base_metadata = metadata or {}
    nodes = [
        Node(
            id=node_id_for(source_id, i),
            text=chunk.text,
            metadata=dict(base_metadata),
            source_document_id=source_id,
            excluded_embed_metadata_keys=tuple(base_metadata),
        )
        for i, chunk in enumerate(chunks)
    ]
    return ChunkExpander(tokenizer, max_expansion_tokens).expand(nodes)
