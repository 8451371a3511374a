"""Pydantic request/response schemas for the answer cache API.

FastAPI validates incoming JSON against the request models (invalid
bodies get a 422 with details) and serialises responses through the
response models.  Request schemas end with "Request", response schemas
with "Response".

Length limits mirror the defaults in :class:`~src.config.settings.Settings`
(``max_prompt_length``, ``max_content_bytes``); the routes re-check the
configured values so deployments can tighten them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.models.jobs import CacheStatus, IngestJob, JobStatus

_MAX_PROMPT_LENGTH = 10_000
_MAX_CONTENT_LENGTH = 10 * 1024 * 1024


def _reject_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class ChatRequest(BaseModel):
    """A question for the chat endpoint."""

    prompt: str = Field(..., min_length=1, max_length=_MAX_PROMPT_LENGTH)

    @field_validator("prompt")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        return _reject_blank(value)


class ChatResponse(BaseModel):
    """Answer plus whether it was served from the semantic cache."""

    answer: str
    cache_status: CacheStatus
    source_chunk_ids: list[str] = Field(default_factory=list)


class IngestRequest(BaseModel):
    """A document to chunk, embed and store."""

    document_id: str = Field(..., min_length=1, max_length=256)
    file_name: str = Field(..., min_length=1, max_length=512)
    content: str = Field(..., min_length=1, max_length=_MAX_CONTENT_LENGTH)

    @field_validator("document_id", "file_name", "content")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        return _reject_blank(value)


class ReingestRequest(BaseModel):
    """Replacement content for an existing document."""

    file_name: str = Field(..., min_length=1, max_length=512)
    content: str = Field(..., min_length=1, max_length=_MAX_CONTENT_LENGTH)

    @field_validator("file_name", "content")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        return _reject_blank(value)


class IngestJobResponse(BaseModel):
    """Current state of an ingest job."""

    job_id: str
    document_id: str
    file_name: str
    status: JobStatus
    chunk_count: int
    created_at: datetime
    error: str | None = None

    @classmethod
    def from_job(cls, job: IngestJob) -> IngestJobResponse:
        return cls(**job.model_dump())


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]
    queues: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
