"""Bounded background work queue.

Request handlers never run slow follow-up work (document processing,
cache writes) inline.  They wrap it in a :data:`WorkItem` and enqueue it
here; a single :class:`~src.pipeline.task_processor.BackgroundTaskProcessor`
drains each queue.

The queue is bounded.  When it is full, :meth:`BackgroundTaskQueue.enqueue`
suspends the producer until the consumer frees a slot, so a burst of
requests slows callers down instead of growing memory without limit.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from src.utils.logging import get_logger

# A unit of background work.  The argument is the owning processor's stop
# event; long-running items may poll it to exit early on shutdown.
WorkItem = Callable[[asyncio.Event], Awaitable[None]]


class BackgroundTaskQueue:
    """FIFO of :data:`WorkItem` callables with a fixed capacity."""

    def __init__(self, capacity: int = 100, name: str = "background") -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._name = name
        self._queue: asyncio.Queue[WorkItem] = asyncio.Queue(maxsize=capacity)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def name(self) -> str:
        return self._name

    @property
    def capacity(self) -> int:
        return self._capacity

    def qsize(self) -> int:
        """Return the number of items waiting to be processed."""
        return self._queue.qsize()

    async def enqueue(self, work_item: WorkItem) -> None:
        """Append *work_item*, suspending while the queue is full."""
        if work_item is None:
            raise ValueError("work_item must not be None")
        if self._queue.full():
            self._logger.warning(
                "queue_full_waiting",
                queue=self._name,
                capacity=self._capacity,
            )
        await self._queue.put(work_item)

    async def dequeue(self) -> WorkItem:
        """Remove and return the oldest item, suspending while the queue is empty.

        Cancelling the awaiting task raises :class:`asyncio.CancelledError`
        and leaves the queue unchanged.
        """
        return await self._queue.get()
