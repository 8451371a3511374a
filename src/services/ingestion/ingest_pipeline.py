"""Asynchronous document ingestion: chunk, embed, store.

# ─── INGEST FLOW ──────────────────────────────────────────────────────
#
#   HTTP handler ──ingest()──→ JobStore (Processing) ──→ ingest queue
#                                                           │
#   BackgroundTaskProcessor ──→ _process():                 ▼
#       1. chunk the content, record chunk_count
#       2. compute every char_offset up front (prefix sums)
#       3. embed + store each chunk, at most N in flight
#       4. Done, or Failed on the first error (remaining chunks cancelled)
#
# ingest() returns as soon as the work item is queued; callers poll the
# JobStore for the outcome.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import functools
import itertools
import uuid
from datetime import datetime, timezone

import structlog

from src.interfaces.chunking_strategy import IChunkingStrategy
from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.jobs import IngestJob, JobStatus
from src.models.rag import DocumentChunk
from src.pipeline.job_store import JobStore
from src.pipeline.task_queue import BackgroundTaskQueue
from src.utils.concurrency import bounded_gather
from src.utils.logging import get_logger


class IngestPipeline:
    """Registers ingest jobs and processes them on the ingest queue."""

    def __init__(
        self,
        chunker: IChunkingStrategy,
        embedding_provider: IEmbeddingProvider,
        document_store: IDocumentStore,
        job_store: JobStore,
        ingest_queue: BackgroundTaskQueue,
        max_concurrency: int = 5,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._document_store = document_store
        self._job_store = job_store
        self._ingest_queue = ingest_queue
        self._max_concurrency = max_concurrency
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(self, document_id: str, file_name: str, content: str) -> IngestJob:
        """Register a job, queue its processing and return it in ``Processing``.

        May suspend while the ingest queue is full.
        """
        job = IngestJob(
            job_id=str(uuid.uuid4()),
            document_id=document_id,
            file_name=file_name,
        ).transition(JobStatus.PROCESSING)
        self._job_store.add_or_update(job)

        await self._ingest_queue.enqueue(functools.partial(self._process, job, content))

        self._logger.info(
            "ingest_queued",
            job_id=job.job_id,
            document_id=document_id,
            file_name=file_name,
            content_length=len(content),
        )
        return job

    # ------------------------------------------------------------------
    # Background processing
    # ------------------------------------------------------------------

    async def _process(self, job: IngestJob, content: str, stop_event: asyncio.Event) -> None:
        self._logger.info("ingest_started", job_id=job.job_id, document_id=job.document_id)
        try:
            texts = self._chunker.chunk(content)
            job = job.transition(JobStatus.PROCESSING, chunk_count=len(texts))
            self._job_store.add_or_update(job)

            # Offsets depend only on chunk order, never on completion order.
            offsets = list(itertools.accumulate((len(t) for t in texts), initial=0))
            ingested_at = datetime.now(tz=timezone.utc)  # noqa: UP017

            operations = [
                functools.partial(
                    self._embed_and_store,
                    DocumentChunk(
                        chunk_id=str(uuid.uuid4()),
                        document_id=job.document_id,
                        text=text,
                        chunk_index=index,
                        char_offset=offsets[index],
                        ingested_at=ingested_at,
                    ),
                )
                for index, text in enumerate(texts)
            ]
            await bounded_gather(operations, self._max_concurrency)
        except Exception as exc:
            job = job.transition(JobStatus.FAILED, error=str(exc))
            self._job_store.add_or_update(job)
            self._logger.error(
                "ingest_failed",
                job_id=job.job_id,
                document_id=job.document_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return

        job = job.transition(JobStatus.DONE)
        self._job_store.add_or_update(job)
        self._logger.info(
            "ingest_completed",
            job_id=job.job_id,
            document_id=job.document_id,
            chunk_count=job.chunk_count,
        )

    async def _embed_and_store(self, chunk: DocumentChunk) -> None:
        embedding = await self._embedding_provider.get_embedding(chunk.text)
        await self._document_store.store_chunk(chunk.model_copy(update={"embedding": embedding}))
