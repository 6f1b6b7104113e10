"""Tokenizer implementations."""

from docset_indexer.providers.tokenizer.tiktoken_tokenizer import (
    FALLBACK_MODEL,
    TiktokenTokenizer,
    get_tokenizer,
)

__all__ = ["FALLBACK_MODEL", "TiktokenTokenizer", "get_tokenizer"]
