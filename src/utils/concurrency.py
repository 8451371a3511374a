"""Bounded, fail-fast concurrent fan-out.

:func:`bounded_gather` is the ingest pipeline's replacement for
``asyncio.gather``: every operation acquires a semaphore slot before it
runs, so at most ``limit`` run at once, and the first failure cancels the
rest instead of letting them finish.

Operations are passed as zero-argument factories rather than coroutine
objects so work that is cancelled before it acquires a slot is never
created.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def bounded_gather(
    operations: list[Callable[[], Awaitable[_T]]],
    limit: int,
) -> list[_T]:
    """Run *operations* with at most *limit* in flight; fail fast.

    Parameters
    ----------
    operations:
        Zero-argument callables returning awaitables.
    limit:
        Maximum number of operations executing concurrently.  A fresh
        semaphore is created per call, so separate callers never share
        slots.

    Returns
    -------
    list[_T]
        Results in the same order as *operations*.

    Raises
    ------
    Exception
        The first exception raised by any operation, after every other
        operation has been cancelled and awaited.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")
    if not operations:
        return []

    semaphore = asyncio.Semaphore(limit)

    async def _wrapped(operation: Callable[[], Awaitable[_T]]) -> _T:
        async with semaphore:
            return await operation()

    tasks = [asyncio.ensure_future(_wrapped(op)) for op in operations]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        await _cancel_all(tasks)
        raise

    failed = [t for t in tasks if t in done and not t.cancelled() and t.exception() is not None]
    if failed:
        await _cancel_all(list(pending))
        _logger.debug(
            "bounded_gather_cancelled",
            cancelled=len(pending),
            completed=len(done),
        )
        raise failed[0].exception()  # type: ignore[misc]

    return [t.result() for t in tasks]


async def _cancel_all(tasks: list[asyncio.Future]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
