"""Greedy, overlap-preserving merge of splitter fragments into chunks.

Rules, applied to the fragment list front to back:

* a new accumulator (empty, or holding only overlap) always takes the
  next fragment;
* a fragment that would push a non-new accumulator past the budget closes
  the current chunk first, then starts the next one;
* anything else is appended.

Closing joins the accumulated texts with no separator, then seeds the next
accumulator with tail fragments of the closed chunk, newest first, while
they fit in the overlap budget.  Sentence fragments are never cut; a seeded
overlap plus one sentence may exceed the budget.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from docset_indexer.models.chunk import Chunk, Fragment
from docset_indexer.utils.errors import ConfigurationError


@dataclass
class _Accumulator:
    parts: list[Fragment] = field(default_factory=list)
    length: int = 0

    def add(self, fragment: Fragment) -> None:
        self.parts.append(fragment)
        self.length += fragment.token_size

    def text(self) -> str:
        return "".join(f.text for f in self.parts)


class ChunkMerger:
    """Merge fragments into chunks of at most *chunk_size* tokens.

    Raises
    ------
    ConfigurationError
        If *chunk_overlap* exceeds *chunk_size*, or if a fragment on its own
        is larger than *chunk_size*.
    """

    def __init__(self, chunk_size: int, chunk_overlap: int) -> None:
        if chunk_size <= 0:
            raise ConfigurationError(message=f"Chunk size must be positive, got {chunk_size}")
        if chunk_overlap < 0 or chunk_overlap > chunk_size:
            raise ConfigurationError(
                message=(
                    f"Chunk overlap ({chunk_overlap}) must be between 0 and "
                    f"the chunk size ({chunk_size})"
                ),
            )
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap

    def merge(self, fragments: list[Fragment]) -> list[str]:
        return [chunk.text for chunk in self.merge_chunks(fragments)]

    def merge_chunks(self, fragments: list[Fragment]) -> list[Chunk]:
        """Like :meth:`merge` but keeps token counts and sentence alignment.

        ``token_count`` is the sum of the member fragments' token sizes.
        """
        closed: list[_Accumulator] = []
        current = _Accumulator()
        new_chunk = True

        for fragment in fragments:
            if fragment.token_size > self._chunk_size:
                raise ConfigurationError(
                    message=(
                        f"Single token exceeded chunk size: fragment of "
                        f"{fragment.token_size} tokens, chunk size {self._chunk_size}"
                    ),
                )
            # A fragment that does not fit closes the chunk and goes into the
            # freshly seeded accumulator, which always accepts it.  Sentence
            # fragments are therefore never cut.
            if current.length + fragment.token_size > self._chunk_size and not new_chunk:
                closed.append(current)
                current = self._seed_overlap(current)
            current.add(fragment)
            new_chunk = False

        if not new_chunk:
            closed.append(current)

        return _postprocess(closed)

    def _seed_overlap(self, last: _Accumulator) -> _Accumulator:
        seeded = _Accumulator()
        for fragment in reversed(last.parts):
            if seeded.length + fragment.token_size > self._chunk_overlap:
                break
            seeded.parts.insert(0, fragment)
            seeded.length += fragment.token_size
        return seeded


def _postprocess(accumulators: list[_Accumulator]) -> list[Chunk]:
    chunks: list[Chunk] = []
    for acc in accumulators:
        text = acc.text().strip()
        if not text:
            continue
        chunks.append(
            Chunk(
                text=text,
                token_count=acc.length,
                is_sentence_aligned=all(f.is_sentence for f in acc.parts),
            )
        )
    return chunks


def merge(fragments: list[Fragment], chunk_size: int, chunk_overlap: int) -> list[str]:
    """Merge *fragments* into chunk strings; see :class:`ChunkMerger`."""
    return ChunkMerger(chunk_size, chunk_overlap).merge(fragments)
