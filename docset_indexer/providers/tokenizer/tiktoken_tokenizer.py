"""tiktoken-backed tokenizer.

Token budgets are measured in the encoding of the embedding model being
used.  Models tiktoken does not know (mistral-embed, nomic-embed-text,
...) fall back to the ``text-embedding-3-small`` encoding, which is close
enough for budgeting and cost estimates.
"""

from __future__ import annotations

from functools import lru_cache

import structlog
import tiktoken

from docset_indexer.interfaces.tokenizer import ITokenizer

logger = structlog.get_logger(logger_name=__name__)

FALLBACK_MODEL = "text-embedding-3-small"


class TiktokenTokenizer(ITokenizer):
    """Encode text with the tiktoken encoding registered for *model_name*."""

    def __init__(self, model_name: str = FALLBACK_MODEL) -> None:
        try:
            self._encoding = tiktoken.encoding_for_model(model_name)
            self._model_name = model_name
        except KeyError:
            logger.warning(
                "tokenizer_model_unknown",
                model=model_name,
                fallback=FALLBACK_MODEL,
            )
            self._encoding = tiktoken.encoding_for_model(FALLBACK_MODEL)
            self._model_name = FALLBACK_MODEL

    def encode(self, text: str) -> list[int]:
        # Documents may legitimately contain strings like "<|endoftext|>".
        return self._encoding.encode(text, disallowed_special=())

    def get_model_name(self) -> str:
        return self._model_name


@lru_cache(maxsize=16)
def get_tokenizer(model_name: str = FALLBACK_MODEL) -> TiktokenTokenizer:
    """Return a shared tokenizer per model; building an encoding is costly."""
    return TiktokenTokenizer(model_name)
