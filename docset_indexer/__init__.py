"""docset_indexer: split, expand, embed and persist document sets for similarity search."""

__version__ = "0.1.0"
