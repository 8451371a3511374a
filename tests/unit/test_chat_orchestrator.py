"""Unit tests for RetrieverService and ChatOrchestrator (cache-aside flow)."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.document_store import IDocumentStore
from src.interfaces.semantic_cache import ISemanticCache
from src.models.jobs import CacheStatus
from src.models.rag import CacheEntry, DocumentChunk, SimilarityResult
from src.pipeline.chat_orchestrator import ChatOrchestrator
from src.pipeline.task_processor import BackgroundTaskProcessor
from src.pipeline.task_queue import BackgroundTaskQueue
from src.providers.cache.memory_semantic_cache import InMemorySemanticCache
from src.services.retriever_service import RetrieverService
from tests.conftest import MockEmbeddingProvider, make_chunk, make_entry


def _scored_chunk(chunk_id: str, score: float) -> SimilarityResult[DocumentChunk]:
    return SimilarityResult[DocumentChunk](item=make_chunk(chunk_id=chunk_id), score=score)


def _document_store(results: list[SimilarityResult[DocumentChunk]]) -> IDocumentStore:
    store = MagicMock(spec=IDocumentStore)
    store.search_by_vector = AsyncMock(return_value=results)
    return store


# ======================================================================
# RetrieverService
# ======================================================================


class TestRetrieverService:
    @pytest.mark.asyncio
    async def test_filters_below_min_score(self) -> None:
        store = _document_store(
            [_scored_chunk("a", 0.95), _scored_chunk("b", 0.75), _scored_chunk("c", 0.50)]
        )
        retriever = RetrieverService(store, top_k=5, min_score=0.75)

        chunks = await retriever.retrieve([0.1, 0.2])

        assert [c.chunk_id for c in chunks] == ["a", "b"]
        store.search_by_vector.assert_awaited_once_with([0.1, 0.2], 5)

    @pytest.mark.asyncio
    async def test_sorts_descending_and_keeps_ties_stable(self) -> None:
        store = _document_store(
            [
                _scored_chunk("low", 0.80),
                _scored_chunk("tie-1", 0.90),
                _scored_chunk("tie-2", 0.90),
                _scored_chunk("high", 0.99),
            ]
        )
        chunks = await RetrieverService(store, min_score=0.0).retrieve([1.0])

        assert [c.chunk_id for c in chunks] == ["high", "tie-1", "tie-2", "low"]

    @pytest.mark.asyncio
    async def test_nothing_relevant_returns_empty(self) -> None:
        store = _document_store([_scored_chunk("a", 0.2)])
        assert await RetrieverService(store, min_score=0.75).retrieve([1.0]) == []

    def test_invalid_top_k(self) -> None:
        with pytest.raises(ValueError):
            RetrieverService(_document_store([]), top_k=0)


# ======================================================================
# ChatOrchestrator
# ======================================================================


def _orchestrator(
    semantic_cache: ISemanticCache,
    llm_provider,
    retrieved: list[SimilarityResult[DocumentChunk]] | None = None,
    threshold: float = 0.85,
) -> tuple[ChatOrchestrator, BackgroundTaskQueue, MockEmbeddingProvider]:
    embedder = MockEmbeddingProvider()
    queue = BackgroundTaskQueue(capacity=10, name="cache")
    retriever = RetrieverService(_document_store(retrieved or []), top_k=5, min_score=0.75)
    orchestrator = ChatOrchestrator(
        embedding_provider=embedder,
        semantic_cache=semantic_cache,
        retriever=retriever,
        llm_provider=llm_provider,
        cache_queue=queue,
        similarity_threshold=threshold,
        cache_ttl=timedelta(hours=24),
    )
    return orchestrator, queue, embedder


def _cache_returning(result: SimilarityResult[CacheEntry] | None) -> ISemanticCache:
    cache = MagicMock(spec=ISemanticCache)
    cache.search_nearest = AsyncMock(return_value=result)
    cache.store = AsyncMock()
    return cache


class TestChatOrchestrator:
    @pytest.mark.asyncio
    async def test_hit_at_threshold_skips_llm(self, mock_llm_provider) -> None:
        entry = make_entry(answer="Cached answer.", source_chunk_ids=["C1"])
        cache = _cache_returning(SimilarityResult[CacheEntry](item=entry, score=0.85))
        orchestrator, queue, _ = _orchestrator(cache, mock_llm_provider)

        result = await orchestrator.process_chat("What is a semantic cache?")

        assert result.cache_status is CacheStatus.HIT
        assert result.answer == "Cached answer."
        assert result.source_chunk_ids == ["C1"]
        mock_llm_provider.generate_response.assert_not_awaited()
        assert queue.qsize() == 0

    @pytest.mark.asyncio
    async def test_score_below_threshold_is_miss(self, mock_llm_provider) -> None:
        entry = make_entry(answer="Stale answer.")
        cache = _cache_returning(SimilarityResult[CacheEntry](item=entry, score=0.84))
        orchestrator, queue, _ = _orchestrator(cache, mock_llm_provider)

        result = await orchestrator.process_chat("Something else entirely")

        assert result.cache_status is CacheStatus.MISS
        assert result.answer == "Generated answer."
        assert queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_miss_generates_from_retrieved_chunks_and_queues_write(
        self, mock_llm_provider
    ) -> None:
        cache = _cache_returning(None)
        retrieved = [_scored_chunk("C1", 0.9), _scored_chunk("C2", 0.8), _scored_chunk("C3", 0.1)]
        orchestrator, queue, embedder = _orchestrator(cache, mock_llm_provider, retrieved)

        result = await orchestrator.process_chat("How does invalidation work?")

        assert result.cache_status is CacheStatus.MISS
        assert result.source_chunk_ids == ["C1", "C2"]
        prompt, chunks = mock_llm_provider.generate_response.await_args.args
        assert prompt == "How does invalidation work?"
        assert [c.chunk_id for c in chunks] == ["C1", "C2"]

        # The write is deferred until the queue is drained.
        cache.store.assert_not_awaited()
        work_item = await queue.dequeue()
        await work_item(asyncio.Event())

        stored: CacheEntry = cache.store.await_args.args[0]
        assert stored.prompt == "How does invalidation work?"
        assert stored.answer == "Generated answer."
        assert stored.source_chunk_ids == ["C1", "C2"]
        assert stored.embedding == await embedder.get_embedding("How does invalidation work?")
        assert stored.expires_at - stored.created_at == timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_repeat_prompt_hits_after_write(self, mock_llm_provider) -> None:
        cache = InMemorySemanticCache()
        orchestrator, queue, _ = _orchestrator(cache, mock_llm_provider)

        first = await orchestrator.process_chat("What is a semantic cache?")
        work_item = await queue.dequeue()
        await work_item(asyncio.Event())
        second = await orchestrator.process_chat("What is a semantic cache?")

        assert first.cache_status is CacheStatus.MISS
        assert second.cache_status is CacheStatus.HIT
        assert second.answer == first.answer
        assert mock_llm_provider.generate_response.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_cache_write_is_isolated(self, mock_llm_provider) -> None:
        cache = _cache_returning(None)
        cache.store = AsyncMock(side_effect=RuntimeError("redis down"))
        orchestrator, queue, _ = _orchestrator(cache, mock_llm_provider)
        processor = BackgroundTaskProcessor(queue)
        processor.start()

        result = await orchestrator.process_chat("Any question")
        await asyncio.wait_for(_until_failed(processor), timeout=1.0)

        assert result.cache_status is CacheStatus.MISS
        assert result.answer == "Generated answer."
        assert processor.is_running
        await processor.stop()

    @pytest.mark.asyncio
    async def test_llm_failure_propagates(self, mock_llm_provider) -> None:
        mock_llm_provider.generate_response = AsyncMock(side_effect=RuntimeError("llm down"))
        orchestrator, queue, _ = _orchestrator(_cache_returning(None), mock_llm_provider)

        with pytest.raises(RuntimeError, match="llm down"):
            await orchestrator.process_chat("Any question")
        assert queue.qsize() == 0


async def _until_failed(processor: BackgroundTaskProcessor) -> None:
    while processor.failed_count == 0:
        await asyncio.sleep(0.005)
