"""Known embedding models: vector dimensions and list prices."""

from __future__ import annotations

DEFAULT_DIMENSION = 1536

MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "mxbai-embed-large": 1024,
    "mistral-embed": 1024,
    "gemini-embedding-001": 768,
}

# USD per 1M input tokens.  Local models are free.
PRICE_PER_1M_TOKENS: dict[str, float] = {
    "text-embedding-3-small": 0.02,
    "text-embedding-3-large": 0.13,
    "mistral-embed": 0.10,
    "mxbai-embed-large": 0.0,
    "nomic-embed-text": 0.0,
    "gemini-embedding-001": 0.0,
}

SUPPORTED_PROVIDERS: frozenset[str] = frozenset(
    {"openai", "azure", "mistral", "gemini", "ollama", "mock"}
)


def get_dimension(model_name: str) -> int:
    return MODEL_DIMENSIONS.get(model_name, DEFAULT_DIMENSION)


def get_price_per_1m(model_name: str) -> float:
    return PRICE_PER_1M_TOKENS.get(model_name, 0.0)
