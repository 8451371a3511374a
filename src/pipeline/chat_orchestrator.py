"""Cache-aside chat orchestration.

# ─── CHAT FLOW ────────────────────────────────────────────────────────
#
#   prompt ──embed──→ semantic cache (nearest entry)
#                        │
#          score ≥ threshold ──→ HIT: return cached answer
#                        │
#                        └──→ MISS: retrieve chunks ──→ LLM answer
#                                   ──→ enqueue cache write ──→ return
#
# The cache write runs on the cache queue's processor.  The response is
# returned without waiting for it, and a failed write never reaches the
# caller.  Concurrent identical misses are not coalesced; each one
# generates and caches its own answer.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import functools
import uuid
from datetime import datetime, timedelta, timezone

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.semantic_cache import ISemanticCache
from src.models.jobs import CacheStatus, ChatResult
from src.models.rag import CacheEntry
from src.pipeline.task_queue import BackgroundTaskQueue
from src.services.retriever_service import RetrieverService
from src.utils.logging import get_logger


class ChatOrchestrator:
    """Answers prompts from the semantic cache or by retrieval + generation."""

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        semantic_cache: ISemanticCache,
        retriever: RetrieverService,
        llm_provider: ILLMProvider,
        cache_queue: BackgroundTaskQueue,
        similarity_threshold: float = 0.85,
        cache_ttl: timedelta = timedelta(hours=24),
    ) -> None:
        self._embedding_provider = embedding_provider
        self._semantic_cache = semantic_cache
        self._retriever = retriever
        self._llm_provider = llm_provider
        self._cache_queue = cache_queue
        self._similarity_threshold = similarity_threshold
        self._cache_ttl = cache_ttl
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def process_chat(self, prompt: str) -> ChatResult:
        """Return a cached or freshly generated answer for *prompt*."""
        vector = await self._embedding_provider.get_embedding(prompt)

        nearest = await self._semantic_cache.search_nearest(vector)
        if nearest is not None and nearest.score >= self._similarity_threshold:
            entry = nearest.item
            self._logger.info(
                "cache_hit",
                entry_id=entry.entry_id,
                score=round(nearest.score, 4),
            )
            return ChatResult(
                answer=entry.answer,
                cache_status=CacheStatus.HIT,
                source_chunk_ids=list(entry.source_chunk_ids),
            )

        self._logger.info(
            "cache_miss",
            nearest_score=round(nearest.score, 4) if nearest is not None else None,
            threshold=self._similarity_threshold,
        )

        chunks = await self._retriever.retrieve(vector)
        answer = await self._llm_provider.generate_response(prompt, chunks)
        source_chunk_ids = [c.chunk_id for c in chunks]

        now = datetime.now(tz=timezone.utc)  # noqa: UP017
        entry = CacheEntry(
            entry_id=str(uuid.uuid4()),
            prompt=prompt,
            answer=answer,
            embedding=vector,
            source_chunk_ids=source_chunk_ids,
            created_at=now,
            expires_at=now + self._cache_ttl,
        )
        await self._cache_queue.enqueue(functools.partial(self._store_entry, entry))

        return ChatResult(
            answer=answer,
            cache_status=CacheStatus.MISS,
            source_chunk_ids=source_chunk_ids,
        )

    async def _store_entry(self, entry: CacheEntry, stop_event: asyncio.Event) -> None:
        try:
            await self._semantic_cache.store(entry)
        except Exception as exc:
            self._logger.warning(
                "cache_store_failed",
                entry_id=entry.entry_id,
                error=str(exc),
            )
            raise
        self._logger.debug("cache_entry_stored", entry_id=entry.entry_id)
