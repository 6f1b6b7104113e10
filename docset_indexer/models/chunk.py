"""Splitter and merger output models.

A :class:`Fragment` is the intermediate unit produced by the recursive
splitter; a :class:`Chunk` is what the merger hands on to expansion and
embedding.  Both are frozen.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Fragment(BaseModel):
    """A piece of text that fits the token budget on its own."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Fragment text, surrounding whitespace preserved.")
    is_sentence: bool = Field(
        description="True when produced by a paragraph or sentence strategy.",
    )
    token_size: int = Field(ge=0, description="Token count of ``text``.")


class Chunk(BaseModel):
    """A merged, budget-bounded span of text."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Trimmed chunk text.")
    token_count: int = Field(ge=0, description="Token count of ``text``.")
    is_sentence_aligned: bool = Field(
        default=True,
        description="False when at least one sub-sentence fragment was packed in.",
    )
