"""Unit tests for IngestPipeline and ReingestService."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.chunking_strategy import IChunkingStrategy
from src.models.jobs import JobStatus
from src.pipeline.job_store import JobStore
from src.pipeline.task_queue import BackgroundTaskQueue
from src.providers.cache.memory_semantic_cache import InMemorySemanticCache
from src.providers.document_store.memory_document_store import InMemoryDocumentStore
from src.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from src.services.ingestion.chunker import FixedSizeChunker
from src.services.ingestion.ingest_pipeline import IngestPipeline
from src.services.ingestion.reingest_service import ReingestService
from src.utils.errors import TransientExternalError
from tests.conftest import MockEmbeddingProvider, make_chunk, make_entry


# ======================================================================
# Shared helpers
# ======================================================================


class _ListChunker(IChunkingStrategy):
    """Returns a fixed list of chunks regardless of input."""

    def __init__(self, chunks: list[str]) -> None:
        self._chunks = chunks

    def chunk(self, text: str) -> list[str]:
        return list(self._chunks)


def _pipeline(
    chunks: list[str],
    embedding_provider=None,
    document_store=None,
    max_concurrency: int = 5,
) -> tuple[IngestPipeline, JobStore, BackgroundTaskQueue, InMemoryDocumentStore]:
    job_store = JobStore()
    queue = BackgroundTaskQueue(capacity=10, name="ingest")
    store = document_store or InMemoryDocumentStore()
    pipeline = IngestPipeline(
        chunker=_ListChunker(chunks),
        embedding_provider=embedding_provider or MockEmbeddingProvider(),
        document_store=store,
        job_store=job_store,
        ingest_queue=queue,
        max_concurrency=max_concurrency,
    )
    return pipeline, job_store, queue, store


async def _drain(queue: BackgroundTaskQueue) -> None:
    """Run every queued work item inline."""
    stop_event = asyncio.Event()
    while queue.qsize():
        work_item = await queue.dequeue()
        await work_item(stop_event)


# ======================================================================
# IngestPipeline
# ======================================================================


class TestIngestPipeline:
    @pytest.mark.asyncio
    async def test_ingest_returns_processing_job_and_queues_work(self) -> None:
        pipeline, job_store, queue, store = _pipeline(["a", "b"])

        job = await pipeline.ingest("doc-1", "doc.txt", "ab")

        assert job.status is JobStatus.PROCESSING
        assert job_store.get_job(job.job_id) == job
        assert queue.qsize() == 1
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_seven_chunks_complete_with_prefix_offsets(self) -> None:
        texts = ["alpha", "be", "gamma!", "d", "epsilon", "zeta", "eta"]
        pipeline, job_store, queue, store = _pipeline(texts, max_concurrency=5)

        job = await pipeline.ingest("doc-1", "doc.txt", "".join(texts))
        await _drain(queue)

        final = job_store.get_job(job.job_id)
        assert final.status is JobStatus.DONE
        assert final.chunk_count == 7
        assert final.error is None

        ids = await store.list_chunk_ids_by_document_id("doc-1")
        assert len(ids) == 7
        chunks = sorted(store._chunks.values(), key=lambda c: c.chunk_index)
        assert [c.chunk_index for c in chunks] == list(range(7))
        assert [c.char_offset for c in chunks] == [0, 5, 7, 13, 14, 21, 25]
        assert all(c.embedding for c in chunks)
        assert all(c.document_id == "doc-1" for c in chunks)

    @pytest.mark.asyncio
    async def test_offsets_independent_of_completion_order(self) -> None:
        texts = ["alpha", "be", "gamma!", "d", "epsilon", "zeta", "eta"]
        finished: list[str] = []

        async def _embed(text: str) -> list[float]:
            # Last chunk finishes first.
            await asyncio.sleep((len(texts) - texts.index(text)) * 0.01)
            finished.append(text)
            return [1.0, 0.0]

        embedder = MagicMock()
        embedder.get_embedding = AsyncMock(side_effect=_embed)
        pipeline, job_store, queue, store = _pipeline(
            texts, embedding_provider=embedder, max_concurrency=7
        )

        job = await pipeline.ingest("doc-1", "doc.txt", "".join(texts))
        await _drain(queue)

        assert finished == list(reversed(texts))
        final = job_store.get_job(job.job_id)
        assert final.status is JobStatus.DONE
        assert final.chunk_count == 7
        chunks = sorted(store._chunks.values(), key=lambda c: c.chunk_index)
        assert [c.text for c in chunks] == texts
        assert [c.char_offset for c in chunks] == [0, 5, 7, 13, 14, 21, 25]

    @pytest.mark.asyncio
    async def test_punctuation_only_tail_chunk_is_ingested(self) -> None:
        job_store = JobStore()
        queue = BackgroundTaskQueue()
        store = InMemoryDocumentStore()
        pipeline = IngestPipeline(
            chunker=FixedSizeChunker(chunk_size=10, overlap=2),
            embedding_provider=HashEmbeddingProvider(dimension=32),
            document_store=store,
            job_store=job_store,
            ingest_queue=queue,
        )

        job = await pipeline.ingest("doc-1", "doc.txt", "abcdefgh..")
        await _drain(queue)

        final = job_store.get_job(job.job_id)
        assert final.status is JobStatus.DONE
        assert final.error is None
        chunks = sorted(store._chunks.values(), key=lambda c: c.chunk_index)
        assert [c.text for c in chunks] == ["abcdefgh..", ".."]
        assert all(len(c.embedding) == 32 for c in chunks)

    @pytest.mark.asyncio
    async def test_concurrency_is_capped(self) -> None:
        in_flight = 0
        peak = 0

        async def _embed(text: str) -> list[float]:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return [1.0, 0.0]

        embedder = MagicMock()
        embedder.get_embedding = AsyncMock(side_effect=_embed)
        pipeline, job_store, queue, _ = _pipeline(
            [f"c{i}" for i in range(7)], embedding_provider=embedder, max_concurrency=5
        )

        job = await pipeline.ingest("doc-1", "doc.txt", "x")
        await _drain(queue)

        assert job_store.get_job(job.job_id).status is JobStatus.DONE
        assert peak == 5

    @pytest.mark.asyncio
    async def test_embedding_failure_marks_job_failed(self) -> None:
        embedder = MagicMock()
        embedder.get_embedding = AsyncMock(
            side_effect=TransientExternalError("upstream 503", provider_name="openai_embedding")
        )
        pipeline, job_store, queue, store = _pipeline(["a", "b", "c"], embedding_provider=embedder)

        job = await pipeline.ingest("doc-1", "doc.txt", "abc")
        await _drain(queue)

        final = job_store.get_job(job.job_id)
        assert final.status is JobStatus.FAILED
        assert "upstream 503" in final.error
        assert final.chunk_count == 3

    @pytest.mark.asyncio
    async def test_chunker_failure_marks_job_failed(self) -> None:
        chunker = MagicMock(spec=IChunkingStrategy)
        chunker.chunk.side_effect = ValueError("cannot split")
        job_store = JobStore()
        queue = BackgroundTaskQueue()
        pipeline = IngestPipeline(
            chunker=chunker,
            embedding_provider=MockEmbeddingProvider(),
            document_store=InMemoryDocumentStore(),
            job_store=job_store,
            ingest_queue=queue,
        )

        job = await pipeline.ingest("doc-1", "doc.txt", "text")
        await _drain(queue)

        final = job_store.get_job(job.job_id)
        assert final.status is JobStatus.FAILED
        assert final.error == "cannot split"

    @pytest.mark.asyncio
    async def test_empty_document_completes_with_zero_chunks(self) -> None:
        pipeline, job_store, queue, store = _pipeline([])

        job = await pipeline.ingest("doc-1", "doc.txt", "   ")
        await _drain(queue)

        final = job_store.get_job(job.job_id)
        assert final.status is JobStatus.DONE
        assert final.chunk_count == 0
        assert len(store) == 0

    def test_invalid_concurrency(self) -> None:
        with pytest.raises(ValueError):
            _pipeline(["a"], max_concurrency=0)


# ======================================================================
# ReingestService
# ======================================================================


class TestReingestService:
    @pytest.mark.asyncio
    async def test_invalidates_dependent_entries_then_replaces_chunks(self) -> None:
        store = InMemoryDocumentStore()
        cache = InMemorySemanticCache()
        await store.store_chunk(make_chunk(chunk_id="C1", document_id="D"))
        await store.store_chunk(make_chunk(chunk_id="C2", document_id="D", chunk_index=1))
        await store.store_chunk(make_chunk(chunk_id="C9", document_id="other"))
        await cache.store(make_entry(entry_id="E1", source_chunk_ids=["C1"]))
        await cache.store(make_entry(entry_id="E2", source_chunk_ids=["C2", "C9"]))
        await cache.store(make_entry(entry_id="E3", source_chunk_ids=["C9"]))

        pipeline, job_store, queue, _ = _pipeline(["new text"], document_store=store)
        service = ReingestService(document_store=store, semantic_cache=cache, ingest_pipeline=pipeline)

        job = await service.reingest("D", "d-v2.txt", "new text")

        assert len(cache) == 1
        assert cache._cache.get("E3") is not None
        assert await store.list_chunk_ids_by_document_id("D") == []
        assert await store.list_chunk_ids_by_document_id("other") == ["C9"]
        assert job.status is JobStatus.PROCESSING
        assert job.file_name == "d-v2.txt"

        await _drain(queue)
        assert job_store.get_job(job.job_id).status is JobStatus.DONE
        assert len(await store.list_chunk_ids_by_document_id("D")) == 1

    @pytest.mark.asyncio
    async def test_unknown_document_skips_invalidation(self) -> None:
        store = MagicMock()
        store.list_chunk_ids_by_document_id = AsyncMock(return_value=[])
        store.delete_by_document_id = AsyncMock(return_value=0)
        cache = MagicMock()
        cache.invalidate_by_chunk_ids = AsyncMock()
        pipeline = MagicMock()
        pipeline.ingest = AsyncMock(return_value="job")

        service = ReingestService(document_store=store, semantic_cache=cache, ingest_pipeline=pipeline)
        result = await service.reingest("new-doc", "n.txt", "content")

        assert result == "job"
        cache.invalidate_by_chunk_ids.assert_not_awaited()
        store.delete_by_document_id.assert_awaited_once_with("new-doc")
        pipeline.ingest.assert_awaited_once_with("new-doc", "n.txt", "content")

    @pytest.mark.asyncio
    async def test_steps_run_in_cascade_order(self) -> None:
        calls: list[str] = []
        store = MagicMock()
        store.list_chunk_ids_by_document_id = AsyncMock(
            side_effect=lambda d: calls.append("list") or ["C1"]
        )
        store.delete_by_document_id = AsyncMock(side_effect=lambda d: calls.append("delete") or 1)
        cache = MagicMock()
        cache.invalidate_by_chunk_ids = AsyncMock(
            side_effect=lambda ids: calls.append("invalidate") or 1
        )
        pipeline = MagicMock()
        pipeline.ingest = AsyncMock(side_effect=lambda *a: calls.append("ingest"))

        service = ReingestService(document_store=store, semantic_cache=cache, ingest_pipeline=pipeline)
        await service.reingest("D", "d.txt", "text")

        assert calls == ["list", "invalidate", "delete", "ingest"]
