"""Ingest job and chat result models.

An :class:`IngestJob` moves through a linear state machine::

    Pending → Processing → Done
                         ↘ Failed

``Done`` and ``Failed`` are terminal.  Jobs are frozen; the ingest
pipeline calls :meth:`IngestJob.transition` to obtain the next snapshot
and upserts it into the :class:`~src.pipeline.job_store.JobStore`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.utils.errors import JobStateError


class JobStatus(str, Enum):  # noqa: UP042
    """Lifecycle states of an ingest job."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    DONE = "Done"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.FAILED)


_STATUS_RANK: dict[JobStatus, int] = {
    JobStatus.PENDING: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.DONE: 2,
    JobStatus.FAILED: 2,
}


class IngestJob(BaseModel):
    """Snapshot of one document ingestion."""

    model_config = ConfigDict(frozen=True)

    job_id: str = Field(description="Unique identifier (UUID) for this job.")
    document_id: str
    file_name: str
    status: JobStatus = JobStatus.PENDING
    chunk_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    error: str | None = Field(default=None, description="Failure message when status is Failed.")

    def transition(self, status: JobStatus, **fields: Any) -> IngestJob:
        """Return a copy moved to *status* with *fields* applied.

        Raises
        ------
        JobStateError
            If the job is already terminal or *status* would move it backwards.
        """
        if self.status.is_terminal:
            raise JobStateError(
                message=f"Job {self.job_id} is already {self.status.value}"
            )
        if _STATUS_RANK[status] < _STATUS_RANK[self.status]:
            raise JobStateError(
                message=f"Job {self.job_id} cannot move from {self.status.value} to {status.value}"
            )
        return self.model_copy(update={"status": status, **fields})


class CacheStatus(str, Enum):  # noqa: UP042
    """Whether a chat answer came from the semantic cache."""

    HIT = "HIT"
    MISS = "MISS"


class ChatResult(BaseModel):
    """Outcome of one chat request."""

    model_config = ConfigDict(frozen=True)

    answer: str
    cache_status: CacheStatus
    source_chunk_ids: list[str] = Field(default_factory=list)
