"""Utility modules for the answer cache service.

- **errors** -- Exception hierarchy rooted at AnswerCacheError; only
  TransientExternalError is retried.
- **retry** -- Exponential-backoff RetryPolicy wrapped around every
  external call.
- **concurrency** -- Semaphore-bounded, fail-fast fan-out used by the
  ingest pipeline.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from src.utils.concurrency import bounded_gather
from src.utils.errors import (
    AnswerCacheError,
    ConfigurationError,
    JobStateError,
    MalformedResponseError,
    ProviderError,
    TransientExternalError,
)
from src.utils.logging import configure_logging, get_logger
from src.utils.retry import RetryPolicy

__all__ = [
    "AnswerCacheError",
    "ConfigurationError",
    "JobStateError",
    "MalformedResponseError",
    "ProviderError",
    "RetryPolicy",
    "TransientExternalError",
    "bounded_gather",
    "configure_logging",
    "get_logger",
]
