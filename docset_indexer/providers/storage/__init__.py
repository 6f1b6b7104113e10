"""Storage backend implementations and the backend factory.

    - LocalFileBackend: JSON files per project, flushed once.  ("simple")
    - SQLiteBackend   : relational tables per project.        ("sqlite")
    - ChromaBackend   : external vector service collection.   ("chroma")
"""

from __future__ import annotations

from typing import Any

from docset_indexer.interfaces.storage_backend import IStorageBackend
from docset_indexer.models.embedding import EmbeddingConfig
from docset_indexer.utils.errors import ConfigurationError

SUPPORTED_BACKENDS = ("simple", "sqlite", "chroma")


def build_storage_backend(
    config: EmbeddingConfig,
    chroma_client: Any | None = None,
) -> IStorageBackend:
    """Return the backend for ``config.vector_store_type``.

    Backends are imported lazily so that, e.g., a local-file run never
    imports chromadb.

    Raises
    ------
    ConfigurationError
        For an unknown backend type.
    """
    backend_type = config.vector_store_type
    if backend_type == "simple":
        from docset_indexer.providers.storage.local_file_backend import LocalFileBackend

        return LocalFileBackend(config.storage_path, config.project_name)
    if backend_type == "sqlite":
        from docset_indexer.providers.storage.sqlite_backend import SQLiteBackend

        return SQLiteBackend(config.project_name, db_path=config.sqlite_path)
    if backend_type == "chroma":
        from docset_indexer.providers.storage.chroma_backend import ChromaBackend

        return ChromaBackend(
            config.project_name,
            client=chroma_client,
            host=config.chroma_host,
            port=config.chroma_port,
        )
    raise ConfigurationError(
        message=(
            f"Unsupported vector store type: {backend_type!r} "
            f"(expected one of {', '.join(SUPPORTED_BACKENDS)})"
        ),
        provider_name=backend_type,
    )


__all__ = ["SUPPORTED_BACKENDS", "build_storage_backend"]
