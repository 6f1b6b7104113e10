"""Sentence-respecting text splitter: recursive split followed by merge.

This is the chunking entry point used by the embedding service.  It wires a
:class:`RecursiveSplitter` to a :class:`ChunkMerger` and adds the
metadata-aware variant, which can optionally reserve room in every chunk
for the rendered metadata.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from docset_indexer.interfaces.tokenizer import ITokenizer
from docset_indexer.models.chunk import Chunk
from docset_indexer.services.splitting.chunk_merger import ChunkMerger
from docset_indexer.services.splitting.recursive_splitter import RecursiveSplitter
from docset_indexer.services.splitting.sentence_tokenizer import DEFAULT_ABBREVIATIONS
from docset_indexer.services.splitting.strategies import (
    DEFAULT_PARAGRAPH_SEPARATOR,
    DEFAULT_SECONDARY_CHUNKING_REGEX,
    DEFAULT_SEPARATOR,
    default_strategies,
)
from docset_indexer.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

# Below this many tokens per chunk retrieval quality drops sharply.
_SMALL_CHUNK_WARNING = 50


class SentenceSplitter:
    """Split text into overlapping, sentence-aligned chunks.

    Parameters
    ----------
    tokenizer:
        Token counter shared by splitting and merging.
    chunk_size:
        Maximum tokens per chunk (default 1024).
    chunk_overlap:
        Maximum tokens repeated from the previous chunk (default 200).
    abbreviations:
        Tokens whose periods never end a sentence.
    include_metadata_in_chunk_size:
        When True, :meth:`split_text_metadata_aware` subtracts the metadata's
        token length from the budget.  Off by default: a 50-token chunk size
        with 40 tokens of metadata would otherwise yield 10-token chunks.
    """

    def __init__(
        self,
        tokenizer: ITokenizer,
        chunk_size: int = 1024,
        chunk_overlap: int = 200,
        abbreviations: Iterable[str] = DEFAULT_ABBREVIATIONS,
        paragraph_separator: str = DEFAULT_PARAGRAPH_SEPARATOR,
        separator: str = DEFAULT_SEPARATOR,
        secondary_chunking_regex: str = DEFAULT_SECONDARY_CHUNKING_REGEX,
        include_metadata_in_chunk_size: bool = False,
    ) -> None:
        if chunk_overlap > chunk_size:
            raise ConfigurationError(
                message=(
                    f"Chunk overlap ({chunk_overlap}) is larger than chunk size "
                    f"({chunk_size}); decrease the overlap"
                ),
            )
        self._tokenizer = tokenizer
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._include_metadata = include_metadata_in_chunk_size
        self._splitter = RecursiveSplitter(
            tokenizer,
            default_strategies(
                paragraph_separator=paragraph_separator,
                separator=separator,
                secondary_chunking_regex=secondary_chunking_regex,
                abbreviations=abbreviations,
            ),
        )

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def split_text(self, text: str) -> list[str]:
        return [chunk.text for chunk in self.split_chunks(text)]

    def split_chunks(self, text: str, chunk_size: int | None = None) -> list[Chunk]:
        """Split *text* into :class:`Chunk` objects.

        Empty text yields no chunks.
        """
        if not text:
            return []
        size = chunk_size or self._chunk_size
        fragments = self._splitter.split(text, size)
        merger = ChunkMerger(size, min(self._chunk_overlap, size))
        chunks = merger.merge_chunks(fragments)
        logger.debug(
            "text_split",
            fragments=len(fragments),
            chunks=len(chunks),
            chunk_size=size,
        )
        return chunks

    def split_text_metadata_aware(self, text: str, metadata: str) -> list[Chunk]:
        """Split *text* leaving room for *metadata* when configured to.

        Raises
        ------
        ConfigurationError
            If the metadata alone fills the whole chunk.
        """
        metadata_length = self._tokenizer.count(metadata)
        effective = (
            self._chunk_size - metadata_length if self._include_metadata else self._chunk_size
        )
        if effective <= 0:
            raise ConfigurationError(
                message=(
                    f"Metadata length ({metadata_length}) is longer than chunk size "
                    f"({self._chunk_size}). Consider increasing the chunk size or "
                    f"decreasing the size of your metadata to avoid this."
                ),
            )
        if effective < _SMALL_CHUNK_WARNING:
            logger.warning(
                "metadata_close_to_chunk_size",
                metadata_length=metadata_length,
                chunk_size=self._chunk_size,
                effective_chunk_size=effective,
            )
        return self.split_chunks(text, effective)
