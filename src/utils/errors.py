"""Custom exception hierarchy for the answer cache service.

All application exceptions inherit from :class:`AnswerCacheError`, which
carries an optional ``provider_name`` so handlers and log lines can tell
which collaborator (e.g. "openai_embedding", "redis", "chromadb") failed.

    AnswerCacheError  (base)
    +-- TransientExternalError  (retryable: timeouts, 5xx, 429, connection drops)
    +-- MalformedResponseError  (non-retryable: empty vector, empty completion)
    +-- ProviderError           (non-retryable: provider rejected the request)
    +-- ConfigurationError      (startup / unknown backend selection)
    +-- JobStateError           (illegal ingest job transition)

Only :class:`TransientExternalError` is retried by
:class:`~src.utils.retry.RetryPolicy`.  The HTTP layer maps the classes to
status codes in :class:`~src.api.middleware.ErrorHandlingMiddleware`.
"""


class AnswerCacheError(Exception):
    """Base exception for all answer cache errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider in brackets,
    e.g. ``[redis] Connection refused``.
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
# External collaborator errors
# ---------------------------------------------------------------------------

class TransientExternalError(AnswerCacheError):
    """Raised when an external call fails in a way that may succeed on retry."""

    def __init__(
        self,
        message: str = "External service call failed transiently",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class MalformedResponseError(AnswerCacheError):
    """Raised when an external service answers with unusable content.

    Never retried: the same request would produce the same bad payload.
    """

    def __init__(
        self,
        message: str = "External service returned a malformed response",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderError(AnswerCacheError):
    """Raised when a provider rejects the request (auth, bad input, 4xx)."""

    def __init__(
        self,
        message: str = "External service rejected the request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration / state errors
# ---------------------------------------------------------------------------

class ConfigurationError(AnswerCacheError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class JobStateError(AnswerCacheError):
    """Raised when an ingest job is moved backwards or out of a terminal state."""

    def __init__(
        self,
        message: str = "Illegal ingest job state transition",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
