"""Abstract base class for tokenizers.

Every budget decision in the splitter, merger and expander is made in
tokens of the configured embedding model, so the tokenizer is injected
rather than hard-wired.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ITokenizer(ABC):
    """Contract for text -> token id encoders."""

    @abstractmethod
    def encode(self, text: str) -> list[int]:
        """Return the token ids for *text*."""

    def count(self, text: str) -> int:
        """Return the number of tokens in *text*."""
        return len(self.encode(text))

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model whose encoding this tokenizer uses."""
