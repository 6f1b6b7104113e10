"""Utility modules for docset_indexer.

- **errors** -- Exception hierarchy rooted at DocsetIndexerError, split by
  handling policy (configuration, upstream, data).
- **logging** -- structlog setup with a dual console / JSON renderer.
- **naming** -- Project-name sanitizing used to derive storage namespaces.
"""

from docset_indexer.utils.errors import (
    ConfigurationError,
    DataError,
    DocsetIndexerError,
    EmbeddingError,
    StorageError,
    UpstreamError,
)
from docset_indexer.utils.logging import configure_logging
from docset_indexer.utils.naming import (
    capitalize_first_letter,
    collection_name_for,
    sanitize_project_name,
)

__all__ = [
    "ConfigurationError",
    "DataError",
    "DocsetIndexerError",
    "EmbeddingError",
    "StorageError",
    "UpstreamError",
    "capitalize_first_letter",
    "collection_name_for",
    "configure_logging",
    "sanitize_project_name",
]
