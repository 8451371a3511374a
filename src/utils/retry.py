"""Bounded exponential-backoff retry for external calls.

Each adapter wraps its network call in :meth:`RetryPolicy.run`.  Only
:class:`~src.utils.errors.TransientExternalError` is retried; any other
exception propagates on the first occurrence.  Delays double from
``base_delay`` (2s, 4s, 8s with the defaults) and every retry is logged.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from src.utils.errors import TransientExternalError
from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class RetryPolicy:
    """Retry an async operation on transient failures.

    Parameters
    ----------
    max_retries:
        Retries after the first call.  ``3`` means at most four calls.
    base_delay:
        Delay before the first retry, in seconds; doubled on each retry.
    sleep:
        Awaitable sleep function.  Tests inject a no-op.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._sleep = sleep

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def delay_for(self, retry_number: int) -> float:
        """Return the backoff before retry *retry_number* (1-based)."""
        return self._base_delay * (2 ** (retry_number - 1))

    async def run(
        self,
        operation: Callable[[], Awaitable[_T]],
        *,
        operation_name: str = "external_call",
    ) -> _T:
        """Await ``operation()`` until it succeeds or retries are exhausted."""
        retry_number = 0
        while True:
            try:
                return await operation()
            except TransientExternalError as exc:
                if retry_number >= self._max_retries:
                    _logger.error(
                        "retries_exhausted",
                        operation=operation_name,
                        attempts=retry_number + 1,
                        error=str(exc),
                    )
                    raise
                retry_number += 1
                delay = self.delay_for(retry_number)
                _logger.warning(
                    "retrying_external_call",
                    operation=operation_name,
                    retry=retry_number,
                    delay_s=delay,
                    error=str(exc),
                )
                await self._sleep(delay)
