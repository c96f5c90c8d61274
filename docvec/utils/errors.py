"""Custom exception hierarchy for docvec.

All application exceptions inherit from :class:`DocVecError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend or external service (e.g. "openai", "sqlite", "chromadb") caused
the failure.

    DocVecError  (base -- catch-all for any docvec error)
    +-- UnsupportedTypeError      (declared document type not recognized)
    +-- ExtractionError           (corrupt file, bad encoding, size limit)
    +-- ConfigurationError        (bad chunk/overlap params, unknown model, ...)
    +-- InputTooLongError         (text exceeds the model's input window)
    +-- ProviderUnavailableError  (embedding service down / rejected request)
    +-- DimensionMismatchError    (vector length != collection dimension)
    +-- CollectionNotFoundError   (unknown collection id)
    +-- IngestionCancelledError   (cooperative cancellation of a job)
    +-- VectorStoreError          (backend failure or timeout)
    +-- PersistenceError          (document repository failure)

Extraction and embedding errors are recovered per document by the
ingestion pipeline.  ``DimensionMismatchError`` and
``CollectionNotFoundError`` always propagate to the caller.
"""


class DocVecError(Exception):
    """Base exception for all docvec errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[openai] Rate limit exceeded``.
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
# Ingestion errors
# ---------------------------------------------------------------------------

class UnsupportedTypeError(DocVecError):
    """Raised when a declared document type is not one of the known types."""

    def __init__(
        self,
        message: str = "Unsupported document type",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(DocVecError):
    """Raised when a source file cannot be read or parsed into text."""

    def __init__(
        self,
        message: str = "Document extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DocVecError):
    """Raised for invalid parameters or missing configuration."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionCancelledError(DocVecError):
    """Raised at a stage boundary when an ingestion job has been cancelled."""

    def __init__(
        self,
        message: str = "Ingestion cancelled",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding errors
# ---------------------------------------------------------------------------

class InputTooLongError(DocVecError):
    """Raised when text exceeds an embedding model's maximum input length."""

    def __init__(
        self,
        message: str = "Input exceeds the model's maximum length",
        provider_name: str | None = None,
        token_estimate: int = 0,
        max_tokens: int = 0,
    ) -> None:
        self._token_estimate = token_estimate
        self._max_tokens = max_tokens
        super().__init__(message=message, provider_name=provider_name)

    @property
    def token_estimate(self) -> int:
        return self._token_estimate

    @property
    def max_tokens(self) -> int:
        return self._max_tokens


class ProviderUnavailableError(DocVecError):
    """Raised when an embedding provider cannot serve a request.

    Covers network errors, authentication failures, exhausted quota and
    timeouts.  The embedding generator recovers from it with the
    deterministic fallback provider.
    """

    def __init__(
        self,
        message: str = "Provider is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Vector store errors
# ---------------------------------------------------------------------------

class VectorStoreError(DocVecError):
    """Raised when a vector-store backend operation fails or times out."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DimensionMismatchError(VectorStoreError):
    """Raised when a vector's length differs from the collection dimension."""

    def __init__(
        self,
        message: str = "Vector dimension does not match collection dimension",
        provider_name: str | None = None,
        expected: int = 0,
        actual: int = 0,
    ) -> None:
        self._expected = expected
        self._actual = actual
        super().__init__(message=message, provider_name=provider_name)

    @property
    def expected(self) -> int:
        return self._expected

    @property
    def actual(self) -> int:
        return self._actual


class CollectionNotFoundError(VectorStoreError):
    """Raised when an operation references a collection that does not exist."""

    def __init__(
        self,
        message: str = "Collection not found",
        provider_name: str | None = None,
        collection_id: str = "",
    ) -> None:
        self._collection_id = collection_id
        super().__init__(message=message, provider_name=provider_name)

    @property
    def collection_id(self) -> str:
        return self._collection_id


# ---------------------------------------------------------------------------
# Persistence errors
# ---------------------------------------------------------------------------

class PersistenceError(DocVecError):
    """Raised when the document repository cannot store or load records."""

    def __init__(
        self,
        message: str = "Document persistence failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
