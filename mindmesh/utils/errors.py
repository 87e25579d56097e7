"""Custom exception hierarchy for MindMesh.

All application exceptions inherit from :class:`MindMeshError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "openai", "sqlite", "pymupdf") caused the failure.

The hierarchy is organized by how the caller is expected to react:

    MindMeshError  (base -- catch-all for any MindMesh error)
    +-- InvalidInputError        (caller error, never retried)
    |   +-- InvalidRequestError  (carries the offending field name)
    +-- ExtractionFailedError    (no usable text; document marked failed)
    +-- EmbeddingProviderError   (embedding call failed after retries)
    |   +-- EmbeddingTimeoutError  (wall-clock bound exceeded)
    |   +-- CircuitOpenError       (breaker is short-circuiting calls)
    +-- LLMError                 (language model call failed, single attempt)
    +-- NotFoundError            (unknown document / session / message id)
    +-- DuplicateDocumentError   (store uniqueness violation on owner + hash)
    +-- PipelineError            (invalid document state transition)
    +-- StorageError             (datastore failure)
    +-- ConfigurationError       (startup / invalid config)

The HTTP layer maps these onto status codes in one place
(:mod:`mindmesh.api.middleware`).
"""


class MindMeshError(Exception):
    """Base exception for all MindMesh errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[openai_embedding] Connection reset``.
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
# Caller errors
# ---------------------------------------------------------------------------

class InvalidInputError(MindMeshError):
    """Raised for caller mistakes: empty file, empty message, missing owner."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidRequestError(InvalidInputError):
    """Raised when a specific request field fails validation."""

    def __init__(
        self,
        message: str = "Invalid request",
        field: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._field = field
        super().__init__(message=message, provider_name=provider_name)

    @property
    def field(self) -> str | None:
        return self._field


class NotFoundError(MindMeshError):
    """Raised when a document, session or message id does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionFailedError(MindMeshError):
    """Raised when the text extractor produced no usable text."""

    def __init__(
        self,
        message: str = "No usable text could be extracted",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(MindMeshError):
    """Raised on an invalid document state transition."""

    def __init__(
        self,
        message: str = "Invalid document state transition",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External provider errors
# ---------------------------------------------------------------------------

class EmbeddingProviderError(MindMeshError):
    """Raised when the embedding provider fails after all retry attempts.

    The root cause is chained via ``raise ... from exc``.
    """

    def __init__(
        self,
        message: str = "Embedding provider failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingTimeoutError(EmbeddingProviderError):
    """Raised when an embedding call chain exceeds its wall-clock bound."""

    def __init__(
        self,
        message: str = "Embedding request timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CircuitOpenError(EmbeddingProviderError):
    """Raised when the circuit breaker rejects a call without attempting it."""

    def __init__(
        self,
        message: str = "Circuit breaker is open",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(MindMeshError):
    """Raised when a language model call fails or returns nothing usable."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage / configuration errors
# ---------------------------------------------------------------------------

class DuplicateDocumentError(MindMeshError):
    """Raised by a store when (owner, content hash) is already taken."""

    def __init__(
        self,
        message: str = "Document with identical content already exists",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(MindMeshError):
    """Raised when the datastore fails."""

    def __init__(
        self,
        message: str = "Datastore operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(MindMeshError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
