"""Persisted node models and the types used to query them.

Nodes are what storage backends hold: one per original chunk plus the
neighbour-combined variants manufactured by the chunk expander.  Nodes are
frozen; the embedding is attached with ``model_copy(update=...)`` once the
batcher has produced it.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Node(BaseModel):
    """An embeddable unit derived from a chunk."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable identifier; the dedup key in every backend.")
    text: str = Field(description="The only content the embedding model sees.")
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Provenance copied from the source document.",
    )
    embedding: list[float] | None = Field(
        default=None,
        description="Filled in by the embedding batcher; None until then.",
    )
    is_expanded: bool = Field(
        default=False,
        description="True for nodes synthesized from neighbouring chunks.",
    )
    source_document_id: str | None = Field(
        default=None,
        description="Identifier of the document this node was split from.",
    )
    excluded_embed_metadata_keys: tuple[str, ...] = Field(
        default=(),
        description="Metadata keys never rendered into the embedding input.",
    )

    def get_embed_text(self) -> str:
        """Text sent to the embedding model.

        Metadata keys listed in ``excluded_embed_metadata_keys`` are left
        out.  Nodes built by the embedding service exclude every key, so the
        model only ever sees ``text``.
        """
        included = {
            k: v for k, v in self.metadata.items() if k not in self.excluded_embed_metadata_keys
        }
        if not included:
            return self.text
        header = "\n".join(f"{k}: {v}" for k, v in included.items())
        return f"{header}\n\n{self.text}"


class IndexStruct(BaseModel):
    """Index-store entry listing which nodes belong to an index."""

    model_config = ConfigDict(frozen=True)

    index_id: str
    nodes_dict: dict[str, str] = Field(
        default_factory=dict,
        description="node_id -> node_id, the same shape the doc store is keyed by.",
    )

    def merged_with(self, node_ids: list[str]) -> IndexStruct:
        """Return a copy with *node_ids* added."""
        nodes = dict(self.nodes_dict)
        nodes.update({node_id: node_id for node_id in node_ids})
        return self.model_copy(update={"nodes_dict": nodes})


FilterOperator = Literal["==", "!=", ">", "<", ">=", "<=", "in", "nin"]


class MetadataFilter(BaseModel):
    """A single predicate on node metadata.  Lists of filters are ANDed."""

    model_config = ConfigDict(frozen=True)

    key: str
    operator: FilterOperator = "=="
    value: Any

    def matches(self, metadata: dict[str, str]) -> bool:
        if self.key not in metadata:
            return self.operator in ("!=", "nin")
        actual = metadata[self.key]
        if self.operator == "in":
            return actual in [str(v) for v in self.value]
        if self.operator == "nin":
            return actual not in [str(v) for v in self.value]
        if self.operator == "==":
            return actual == str(self.value)
        if self.operator == "!=":
            return actual != str(self.value)

        left, right = _comparable(actual, self.value)
        if self.operator == ">":
            return left > right
        if self.operator == "<":
            return left < right
        if self.operator == ">=":
            return left >= right
        return left <= right


def _comparable(actual: str, expected: Any) -> tuple[Any, Any]:
    """Compare numerically when both sides parse as numbers, else as strings."""
    try:
        return float(actual), float(expected)
    except (TypeError, ValueError):
        return actual, str(expected)


def matches_all(metadata: dict[str, str], filters: list[MetadataFilter] | None) -> bool:
    """True when *metadata* satisfies every filter (or there are none)."""
    return all(f.matches(metadata) for f in filters or [])


class SearchResult(BaseModel):
    """One similarity-search hit.

    ``source_node_id`` identifies the source document the hit was split
    from, so expanded variants map back to their record.  ``node_id`` is the
    matched node itself.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    score: float = Field(description="Cosine similarity; higher is closer.")
    metadata: dict[str, str] = Field(default_factory=dict)
    source_node_id: str
    node_id: str

    @classmethod
    def for_node(
        cls,
        node_id: str,
        source_document_id: str | None,
        text: str,
        score: float,
        metadata: dict[str, str],
    ) -> SearchResult:
        """Build a hit, falling back to *node_id* when the source is unknown."""
        return cls(
            text=text,
            score=score,
            metadata=metadata,
            source_node_id=source_document_id or node_id,
            node_id=node_id,
        )
