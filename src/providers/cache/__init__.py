"""Semantic cache providers.

InMemorySemanticCache keeps entries in a cachetools TLRUCache; it is fast
but not shared across processes.  For multi-worker deployments set
``CACHE_BACKEND=redis`` to use RedisSemanticCache, which needs a server
with the search module (Redis Stack or Valkey with valkey-search).
"""

from src.providers.cache.memory_semantic_cache import InMemorySemanticCache

__all__ = ["InMemorySemanticCache"]
