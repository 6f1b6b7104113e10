"""Abstract interfaces for the pluggable collaborators of the pipeline."""

from docset_indexer.interfaces.embedding_provider import IEmbeddingProvider
from docset_indexer.interfaces.storage_backend import IStorageBackend
from docset_indexer.interfaces.tokenizer import ITokenizer

__all__ = [
    "IEmbeddingProvider",
    "IStorageBackend",
    "ITokenizer",
]
