"""Bounded in-memory registry of ingest jobs.

Holds the latest :class:`~src.models.jobs.IngestJob` snapshot per job id
so ``GET /ingest/{job_id}`` can report progress.  Residency is capped:
once more than ``max_jobs`` distinct jobs have been registered, the
oldest-registered are evicted first (FIFO by first insertion, not by last
update).  History does not survive a restart.

All mutation happens synchronously on the event loop thread, so no lock
is needed.
"""

from __future__ import annotations

from collections import deque

import structlog

from src.models.jobs import IngestJob
from src.utils.logging import get_logger


class JobStore:
    """Upsert/get store with FIFO eviction."""

    def __init__(self, max_jobs: int = 1000) -> None:
        if max_jobs < 1:
            raise ValueError("max_jobs must be >= 1")
        self._max_jobs = max_jobs
        self._jobs: dict[str, IngestJob] = {}
        self._order: deque[str] = deque()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def max_jobs(self) -> int:
        return self._max_jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def add_or_update(self, job: IngestJob) -> None:
        """Insert a new job or replace the snapshot of an existing one."""
        if job.job_id not in self._jobs:
            self._order.append(job.job_id)
        self._jobs[job.job_id] = job

        while len(self._order) > self._max_jobs:
            evicted = self._order.popleft()
            self._jobs.pop(evicted, None)
            self._logger.debug("job_evicted", job_id=evicted)

    def get_job(self, job_id: str) -> IngestJob | None:
        """Return the latest snapshot for *job_id*, or ``None`` if unknown or evicted."""
        return self._jobs.get(job_id)
