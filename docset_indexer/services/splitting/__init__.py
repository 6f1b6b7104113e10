"""Text splitting: recursive budgeted split plus overlap-preserving merge."""

from __future__ import annotations

from collections.abc import Iterable

from docset_indexer.interfaces.tokenizer import ITokenizer
from docset_indexer.services.splitting.chunk_merger import ChunkMerger, merge
from docset_indexer.services.splitting.recursive_splitter import RecursiveSplitter
from docset_indexer.services.splitting.sentence_splitter import SentenceSplitter
from docset_indexer.services.splitting.sentence_tokenizer import (
    DEFAULT_ABBREVIATIONS,
    split_sentences,
)
from docset_indexer.services.splitting.strategies import SplitStrategy, default_strategies


def build_chunks(
    text: str,
    chunk_size: int,
    chunk_overlap: int,
    tokenizer: ITokenizer | None = None,
    abbreviations: Iterable[str] = DEFAULT_ABBREVIATIONS,
) -> list[str]:
    """Split *text* into chunk strings of at most *chunk_size* tokens.

    Uses the ``text-embedding-3-small`` tiktoken encoding when no tokenizer
    is given.
    """
    if tokenizer is None:
        from docset_indexer.providers.tokenizer import get_tokenizer

        tokenizer = get_tokenizer()
    splitter = SentenceSplitter(
        tokenizer,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        abbreviations=abbreviations,
    )
    return splitter.split_text(text)


__all__ = [
    "DEFAULT_ABBREVIATIONS",
    "ChunkMerger",
    "RecursiveSplitter",
    "SentenceSplitter",
    "SplitStrategy",
    "build_chunks",
    "default_strategies",
    "merge",
    "split_sentences",
]
