"""Domain models — re-exports all public model classes.

    - rag.py   — document chunks, cache entries, scored similarity results
    - jobs.py  — ingest job state machine and chat results
"""

from __future__ import annotations

from src.models.jobs import CacheStatus, ChatResult, IngestJob, JobStatus
from src.models.rag import CacheEntry, DocumentChunk, SimilarityResult

__all__ = [
    "CacheEntry",
    "CacheStatus",
    "ChatResult",
    "DocumentChunk",
    "IngestJob",
    "JobStatus",
    "SimilarityResult",
]
