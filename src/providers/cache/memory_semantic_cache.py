"""In-memory semantic cache using cachetools.TLRUCache.

``TLRUCache`` gives every entry its own expiry, computed from the entry's
``expires_at``.  An entry whose expiry has already passed when it is
stored gets the default TTL instead, so a late cache write still lands.

A secondary index maps each source chunk id to the entry ids built from
it.  Invalidation is a set union over that index, the in-memory
counterpart of the OR'd TAG query the Redis cache runs.  Entries leaving
the cache through expiry or LRU eviction are dropped from the index as
they go.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator

import structlog
from cachetools import Cache, TLRUCache

from src.interfaces.semantic_cache import ISemanticCache
from src.models.rag import CacheEntry, SimilarityResult
from src.utils.vectors import cosine_similarity

logger = structlog.get_logger(logger_name=__name__)


class _IndexedTLRUCache(TLRUCache):
    """TLRUCache that reports every expired or evicted value to *on_evict*."""

    def __init__(
        self,
        maxsize: int,
        ttu: Callable[[str, CacheEntry, float], float],
        timer: Callable[[], float],
        on_evict: Callable[[CacheEntry], None],
    ) -> None:
        super().__init__(maxsize=maxsize, ttu=ttu, timer=timer)
        self._on_evict = on_evict

    def expire(self, time=None):
        expired = super().expire(time)
        for _key, value in expired:
            self._on_evict(value)
        return expired

    def popitem(self):
        key, value = super().popitem()
        self._on_evict(value)
        return key, value

    def peek_values(self) -> Iterator[CacheEntry]:
        # Cache.__getitem__ reads without touching LRU order.
        for key in list(self):
            yield Cache.__getitem__(self, key)


class InMemorySemanticCache(ISemanticCache):
    """Process-local semantic cache with per-entry expiry.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    default_ttl:
        Seconds an entry lives when its own ``expires_at`` has passed.
    timer:
        Clock returning epoch seconds.  Tests inject a fake clock.
    """

    def __init__(
        self,
        max_size: int = 10_000,
        default_ttl: float = 24 * 3600,
        timer: Callable[[], float] = time.time,
    ) -> None:
        self._default_ttl = default_ttl
        self._cache = _IndexedTLRUCache(
            maxsize=max_size,
            ttu=self._time_to_use,
            timer=timer,
            on_evict=self._unindex,
        )
        self._chunk_index: dict[str, set[str]] = {}

    def __len__(self) -> int:
        self._cache.expire()
        return len(self._cache)

    # ------------------------------------------------------------------
    # ISemanticCache implementation
    # ------------------------------------------------------------------

    async def store(self, entry: CacheEntry) -> None:
        previous = self._cache.pop(entry.entry_id, None)
        if previous is not None:
            self._unindex(previous)

        self._cache[entry.entry_id] = entry
        for chunk_id in entry.source_chunk_ids:
            self._chunk_index.setdefault(chunk_id, set()).add(entry.entry_id)
        logger.debug("cache_set", entry_id=entry.entry_id, sources=len(entry.source_chunk_ids))

    async def search_nearest(self, vector: list[float]) -> SimilarityResult[CacheEntry] | None:
        self._cache.expire()
        best: SimilarityResult[CacheEntry] | None = None
        for entry in self._cache.peek_values():
            if not entry.embedding:
                continue
            score = cosine_similarity(vector, entry.embedding)
            if best is None or score > best.score:
                best = SimilarityResult[CacheEntry](item=entry, score=score)
        return best

    async def invalidate_by_chunk_ids(self, chunk_ids: list[str]) -> int:
        entry_ids: set[str] = set()
        for chunk_id in chunk_ids:
            entry_ids |= self._chunk_index.pop(chunk_id, set())

        removed = 0
        for entry_id in entry_ids:
            entry = self._cache.pop(entry_id, None)
            if entry is None:
                continue
            self._unindex(entry)
            removed += 1

        logger.info("cache_invalidated", chunk_ids=len(chunk_ids), removed=removed)
        return removed

    def get_provider_name(self) -> str:
        return "memory_semantic_cache"

    def is_available(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _time_to_use(self, key: str, entry: CacheEntry, now: float) -> float:
        expires = entry.expires_at.timestamp()
        if expires <= now:
            return now + self._default_ttl
        return expires

    def _unindex(self, entry: CacheEntry) -> None:
        for chunk_id in entry.source_chunk_ids:
            ids = self._chunk_index.get(chunk_id)
            if ids is None:
                continue
            ids.discard(entry.entry_id)
            if not ids:
                del self._chunk_index[chunk_id]
