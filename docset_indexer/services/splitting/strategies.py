"""Ordered splitting strategies for the recursive splitter.

Each strategy is a pure ``str -> list[str]`` function tagged with whether
its pieces count as sentence-level.  The splitter walks the tuple in order
and uses the first strategy that returns more than one piece.  No strategy
may drop characters: joining its output must give back the input.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from docset_indexer.services.splitting.sentence_tokenizer import (
    DEFAULT_ABBREVIATIONS,
    split_sentences,
)

SplitFn = Callable[[str], list[str]]

DEFAULT_PARAGRAPH_SEPARATOR = "\n\n\n"
DEFAULT_SEPARATOR = " "
# Runs of non-punctuation ending in at most one punctuation mark; the
# second alternative picks up punctuation that follows punctuation.
DEFAULT_SECONDARY_CHUNKING_REGEX = r"[^,.;。？！]+[,.;。？！]?|[,.;。？！]"


@dataclass(frozen=True)
class SplitStrategy:
    name: str
    fn: SplitFn
    is_sentence: bool

    def __call__(self, text: str) -> list[str]:
        return self.fn(text)


def split_by_separator(separator: str) -> SplitFn:
    """Split on *separator*, prefixing it to every piece after the first."""

    def _split(text: str) -> list[str]:
        parts = text.split(separator)
        pieces = [parts[0], *(separator + part for part in parts[1:])]
        return [p for p in pieces if p]

    return _split


def split_by_regex(pattern: str) -> SplitFn:
    compiled = re.compile(pattern)

    def _split(text: str) -> list[str]:
        pieces = compiled.findall(text)
        # Anything the pattern cannot consume would otherwise vanish.
        if "".join(pieces) != text:
            return [text]
        return pieces

    return _split


def split_by_char() -> SplitFn:
    return list


def split_by_sentence(abbreviations: Iterable[str] = DEFAULT_ABBREVIATIONS) -> SplitFn:
    frozen = tuple(abbreviations)

    def _split(text: str) -> list[str]:
        return split_sentences(text, frozen) or [text]

    return _split


def default_strategies(
    paragraph_separator: str = DEFAULT_PARAGRAPH_SEPARATOR,
    separator: str = DEFAULT_SEPARATOR,
    secondary_chunking_regex: str = DEFAULT_SECONDARY_CHUNKING_REGEX,
    abbreviations: Iterable[str] = DEFAULT_ABBREVIATIONS,
) -> tuple[SplitStrategy, ...]:
    """Paragraphs, sentences, punctuation, separator, characters, in that order."""
    return (
        SplitStrategy("paragraph", split_by_separator(paragraph_separator), is_sentence=True),
        SplitStrategy("sentence", split_by_sentence(abbreviations), is_sentence=True),
        SplitStrategy("punctuation", split_by_regex(secondary_chunking_regex), is_sentence=False),
        SplitStrategy("separator", split_by_separator(separator), is_sentence=False),
        SplitStrategy("character", split_by_char(), is_sentence=False),
    )
