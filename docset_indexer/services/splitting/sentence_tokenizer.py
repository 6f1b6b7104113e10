"""Abbreviation-aware sentence boundary detection that keeps whitespace.

Sentences are returned with their trailing whitespace attached, so
``"".join(split_sentences(text)) == text`` always holds.  The merger relies
on that: it joins fragments without inserting separators, and trimmed
sentences would glue together as ``"Co.elected"``.

Abbreviation periods are masked before boundary detection rather than
excluded with a variable-width lookbehind, which ``re`` does not support.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

DEFAULT_ABBREVIATIONS: tuple[str, ...] = (
    "dr.",
    "vs.",
    "mr.",
    "ms.",
    "mx.",
    "mrs.",
    "prof.",
    "inc.",
    "corp.",
    "co.",
    "llc.",
    "ltd.",
    "etc.",
    "i.e.",
    "A.S.A.P.",
)

# Terminal punctuation, optional closing quotes/brackets, then whitespace or end.
_BOUNDARY = re.compile(r"[.!?]+[\"'”’)\]]*(?:\s+|$)")

# Dotted initialisms such as "N.W.", "D.C." or "U.S.A.".
_INITIALISM = re.compile(r"(?<![\w.])(?:[A-Za-z]\.){2,}")

_MASK = "\x00"


@lru_cache(maxsize=32)
def _abbreviation_pattern(abbreviations: tuple[str, ...]) -> re.Pattern[str] | None:
    cleaned = sorted({a.strip().lower() for a in abbreviations if a.strip()}, key=len, reverse=True)
    if not cleaned:
        return None
    alternatives = "|".join(re.escape(a) for a in cleaned)
    return re.compile(rf"(?<![\w.])(?:{alternatives})", re.IGNORECASE)


def _mask_periods(text: str, abbreviations: tuple[str, ...]) -> str:
    chars = list(text)
    patterns = [_INITIALISM]
    abbreviation_pattern = _abbreviation_pattern(abbreviations)
    if abbreviation_pattern is not None:
        patterns.append(abbreviation_pattern)
    for pattern in patterns:
        for match in pattern.finditer(text):
            for i in range(match.start(), match.end()):
                if chars[i] == ".":
                    chars[i] = _MASK
    return "".join(chars)


def split_sentences(text: str, abbreviations: Iterable[str] = DEFAULT_ABBREVIATIONS) -> list[str]:
    """Split *text* into sentences, keeping every character.

    Parameters
    ----------
    text:
        Text to split.
    abbreviations:
        Tokens (with their periods, e.g. ``"mr."``) whose periods never end
        a sentence.  Matched case-insensitively.

    Returns
    -------
    list[str]
        Sentences in order, each carrying the whitespace that followed it.
        Text without any boundary comes back as a single element.
    """
    if not text:
        return []

    masked = _mask_periods(text, tuple(abbreviations))

    sentences: list[str] = []
    last = 0
    for match in _BOUNDARY.finditer(masked):
        end = match.end()
        if end > last:
            sentences.append(text[last:end])
            last = end

    if last < len(text):
        sentences.append(text[last:])

    return sentences
