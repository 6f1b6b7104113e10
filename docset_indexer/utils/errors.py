"""Custom exception hierarchy for docset_indexer.

All application exceptions inherit from :class:`DocsetIndexerError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "openai", "chroma", "sqlite") caused the failure.

The hierarchy follows how each failure is meant to be handled:

    DocsetIndexerError  (base -- catch-all for any docset_indexer error)
    +-- ConfigurationError  (fatal, never retried: bad chunk size, unknown
    |                        model / provider / backend)
    +-- UpstreamError       (an external call failed; the pipeline aborts)
    |   +-- EmbeddingError  (embedding function raised or returned garbage)
    |   +-- StorageError    (a storage backend write / read failed)
    +-- DataError           (the input itself is unusable, e.g. no documents)

``DataError`` is the only member that the embedding service converts into a
structured unsuccessful result instead of letting it propagate.  The
orchestrator never retries; retry policy belongs to the client layer.
"""


class DocsetIndexerError(Exception):
    """Base exception for all docset_indexer errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which collaborator triggered the error.
    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[chroma] Upsert failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(DocsetIndexerError):
    """Raised when configuration is invalid, e.g. a single indivisible token
    exceeds the chunk size or an unsupported backend is requested."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Upstream (collaborator) errors
# ---------------------------------------------------------------------------

class UpstreamError(DocsetIndexerError):
    """Raised when an embedding call or storage write fails."""

    def __init__(
        self,
        message: str = "Upstream operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(UpstreamError):
    """Raised when the embedding function fails or returns a malformed batch."""

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(UpstreamError):
    """Raised when a storage backend operation fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Data errors
# ---------------------------------------------------------------------------

class DataError(DocsetIndexerError):
    """Raised when the input document set is empty or otherwise unusable."""

    def __init__(
        self,
        message: str = "Input data is unusable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
