"""Abstract base class for the semantic answer cache.

Unlike a key-value cache, lookups are by vector: the chat orchestrator
embeds the prompt and asks for the single nearest stored entry, then
decides for itself whether the score clears the hit threshold.

Entries record the chunk ids their answer was built from.  The re-ingest
cascade calls :meth:`ISemanticCache.invalidate_by_chunk_ids` to drop every
entry that shares at least one id with a document being replaced.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.rag import CacheEntry, SimilarityResult


# Concrete implementations:
#   RedisSemanticCache: Redis/Valkey with the search module (HNSW + TAG)
#   InMemorySemanticCache: cachetools TLRUCache plus a chunk-id index
# Located in: src/providers/cache/
class ISemanticCache(ABC):
    """Contract for vector-keyed answer caching."""

    @abstractmethod
    async def store(self, entry: CacheEntry) -> None:
        """Upsert *entry*, expiring it at ``entry.expires_at``.

        If that instant has already passed, the store's default TTL
        applies instead.
        """

    @abstractmethod
    async def search_nearest(self, vector: list[float]) -> SimilarityResult[CacheEntry] | None:
        """Return the closest unexpired entry, or ``None`` if the cache is empty."""

    @abstractmethod
    async def invalidate_by_chunk_ids(self, chunk_ids: list[str]) -> int:
        """Delete every entry referencing any of *chunk_ids*; return the count."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this cache."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the cache backend is reachable."""
