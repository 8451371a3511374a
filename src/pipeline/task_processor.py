"""Single-consumer processor for a :class:`BackgroundTaskQueue`.

Each queue gets exactly one processor, so items on one queue run strictly
one after another (a slow item delays those behind it) while the two
queues in the application never block each other.

Failure isolation: any ``Exception`` escaping a work item is logged and
discarded.  The loop keeps running and nothing reaches the request that
enqueued the item.

Shutdown: :meth:`BackgroundTaskProcessor.stop` sets the stop event, lets
an in-flight item finish, and cancels the consumer if it is idle in
``dequeue``.  Items still queued are dropped.
"""

from __future__ import annotations

import asyncio

import structlog

from src.pipeline.task_queue import BackgroundTaskQueue
from src.utils.logging import get_logger


class BackgroundTaskProcessor:
    """Drains one queue on a dedicated asyncio task."""

    def __init__(self, queue: BackgroundTaskQueue, name: str | None = None) -> None:
        self._queue = queue
        self._name = name or f"{queue.name}-processor"
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._busy = False
        self._processed = 0
        self._failed = 0
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def processed_count(self) -> int:
        return self._processed

    @property
    def failed_count(self) -> int:
        return self._failed

    def start(self) -> None:
        """Spawn the consumer task.  Calling twice is a no-op."""
        if self.is_running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=self._name)
        self._logger.info("processor_started", processor=self._name)

    async def stop(self) -> None:
        """Stop after the current item; drop anything still queued."""
        self._stop_event.set()
        task = self._task
        if task is None:
            return
        if not self._busy:
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self._task = None
        self._logger.info(
            "processor_stopped",
            processor=self._name,
            processed=self._processed,
            failed=self._failed,
            dropped=self._queue.qsize(),
        )

    # ------------------------------------------------------------------
    # Consumer loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            work_item = await self._queue.dequeue()
            self._busy = True
            try:
                await work_item(self._stop_event)
                self._processed += 1
            except Exception as exc:
                self._failed += 1
                self._logger.exception(
                    "background_work_failed",
                    processor=self._name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            finally:
                self._busy = False
