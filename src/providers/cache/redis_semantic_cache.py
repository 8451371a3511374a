"""Redis/Valkey semantic cache using the search module.

Each :class:`CacheEntry` is a HASH under ``{prefix}{entry_id}``:

    entry_id, prompt, answer     plain fields
    source_chunk_ids_json        JSON list, used to rebuild the entry
    source_chunk_ids             comma-joined TAG field, used for invalidation
    created_at, expires_at       ISO-8601
    vector                       float32 bytes, HNSW cosine index

The key's TTL is set from ``expires_at`` (default TTL when already past),
so expiry is enforced by the server.

Lookup is a single-neighbour KNN query.  RediSearch reports cosine
*distance*, converted here to ``score = 1 - distance``.  Invalidation
runs ``@source_chunk_ids:{a | b | ...}`` with ``NOCONTENT`` a page at a
time and deletes the matching keys until a page covers the reported total.
"""

from __future__ import annotations

import json
import re
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

import redis.asyncio as redis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from src.interfaces.semantic_cache import ISemanticCache
from src.models.rag import CacheEntry, SimilarityResult
from src.utils.errors import ProviderError, TransientExternalError
from src.utils.retry import RetryPolicy
from src.utils.vectors import to_float32_bytes

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

_PAGE_SIZE = 1000
# Chunk ids per OR'd TAG query; keeps the query string bounded.
_IDS_PER_QUERY = 100
_TAG_SPECIAL = re.compile(r"([^A-Za-z0-9_])")

_RETURN_FIELDS = (
    "entry_id",
    "prompt",
    "answer",
    "source_chunk_ids_json",
    "created_at",
    "expires_at",
    "score",
)


def escape_tag_value(value: str) -> str:
    """Backslash-escape every character RediSearch treats as TAG syntax."""
    return _TAG_SPECIAL.sub(r"\\\1", value)


def build_tag_query(field: str, values: list[str]) -> str:
    """Return ``@field:{v1 | v2 | ...}`` with each value escaped."""
    return f"@{field}:{{{' | '.join(escape_tag_value(v) for v in values)}}}"


class RedisSemanticCache(ISemanticCache):
    """Semantic cache backed by Redis/Valkey with a vector search index."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        dimension: int = 1536,
        index_name: str = "idx:cache",
        key_prefix: str = "cache:",
        default_ttl_seconds: int = 24 * 3600,
        retry_factory: Callable[[], RetryPolicy] | None = None,
        client: Any | None = None,
    ) -> None:
        self._dimension = dimension
        self._index_name = index_name
        self._key_prefix = key_prefix
        self._default_ttl_seconds = default_ttl_seconds
        self._retry_factory = retry_factory or RetryPolicy
        # Binary-safe client: vectors are raw float32 bytes.
        self._client = client or redis.from_url(redis_url, decode_responses=False)
        self._index_ready = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure_index(self) -> None:
        """Create the search index if it does not exist yet."""
        try:
            await self._call("ft_info", lambda: self._client.execute_command("FT.INFO", self._index_name))
        except ProviderError:
            await self._call(
                "ft_create",
                lambda: self._client.execute_command(
                    "FT.CREATE", self._index_name,
                    "ON", "HASH",
                    "PREFIX", "1", self._key_prefix,
                    "SCHEMA",
                    "prompt", "TEXT",
                    "answer", "TEXT",
                    "source_chunk_ids", "TAG", "SEPARATOR", ",",
                    "vector", "VECTOR", "HNSW", "6",
                    "TYPE", "FLOAT32",
                    "DIM", str(self._dimension),
                    "DISTANCE_METRIC", "COSINE",
                ),
            )
            logger.info("redis_index_created", index=self._index_name, dimension=self._dimension)
        self._index_ready = True

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # ISemanticCache implementation
    # ------------------------------------------------------------------

    async def store(self, entry: CacheEntry) -> None:
        key = self._key(entry.entry_id)
        mapping = {
            "entry_id": entry.entry_id,
            "prompt": entry.prompt,
            "answer": entry.answer,
            "source_chunk_ids_json": json.dumps(entry.source_chunk_ids),
            "source_chunk_ids": ",".join(entry.source_chunk_ids),
            "created_at": entry.created_at.isoformat(),
            "expires_at": entry.expires_at.isoformat(),
            "vector": to_float32_bytes(entry.embedding),
        }
        ttl = self._ttl_seconds(entry.expires_at)

        async def _write() -> None:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping=mapping)
                pipe.expire(key, ttl)
                await pipe.execute()

        await self._call("store", _write)
        logger.debug("redis_cache_set", entry_id=entry.entry_id, ttl_s=ttl)

    async def search_nearest(self, vector: list[float]) -> SimilarityResult[CacheEntry] | None:
        reply = await self._call(
            "search_nearest",
            lambda: self._client.execute_command(
                "FT.SEARCH", self._index_name,
                "*=>[KNN 1 @vector $query_vector AS score]",
                "PARAMS", "2", "query_vector", to_float32_bytes(vector),
                "SORTBY", "score",
                "RETURN", str(len(_RETURN_FIELDS)), *_RETURN_FIELDS,
                "LIMIT", "0", "1",
                "DIALECT", "2",
            ),
        )
        if not reply or int(reply[0]) == 0 or len(reply) < 3:
            return None

        fields = self._pairs_to_dict(reply[2])
        entry = CacheEntry(
            entry_id=fields["entry_id"],
            prompt=fields.get("prompt", ""),
            answer=fields.get("answer", ""),
            source_chunk_ids=json.loads(fields.get("source_chunk_ids_json") or "[]"),
            created_at=datetime.fromisoformat(fields["created_at"]),
            expires_at=datetime.fromisoformat(fields["expires_at"]),
        )
        score = max(-1.0, min(1.0, 1.0 - float(fields["score"])))
        return SimilarityResult[CacheEntry](item=entry, score=score)

    async def invalidate_by_chunk_ids(self, chunk_ids: list[str]) -> int:
        removed = 0
        for start in range(0, len(chunk_ids), _IDS_PER_QUERY):
            query = build_tag_query("source_chunk_ids", chunk_ids[start : start + _IDS_PER_QUERY])
            removed += await self._delete_matching(query)
        logger.info("cache_invalidated", chunk_ids=len(chunk_ids), removed=removed)
        return removed

    def get_provider_name(self) -> str:
        return "redis"

    def is_available(self) -> bool:
        return self._index_ready

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _delete_matching(self, query: str) -> int:
        removed = 0
        while True:
            reply = await self._call(
                "invalidate_search",
                lambda: self._client.execute_command(
                    "FT.SEARCH", self._index_name, query,
                    "NOCONTENT",
                    "LIMIT", "0", str(_PAGE_SIZE),
                    "DIALECT", "2",
                ),
            )
            total = int(reply[0]) if reply else 0
            keys = list(reply[1:]) if reply else []
            if not keys:
                return removed

            deleted = await self._call("invalidate_delete", lambda: self._client.delete(*keys))
            removed += int(deleted)
            if len(keys) >= total or deleted == 0:
                return removed

    async def _call(self, operation: str, fn: Callable[[], Awaitable[_T]]) -> _T:
        async def _attempt() -> _T:
            try:
                return await fn()
            except (RedisConnectionError, RedisTimeoutError) as exc:
                raise TransientExternalError(
                    message=f"Redis {operation} failed: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            except ResponseError as exc:
                raise ProviderError(
                    message=f"Redis {operation} rejected: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            except RedisError as exc:
                raise TransientExternalError(
                    message=f"Redis {operation} error: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

        return await self._retry_factory().run(_attempt, operation_name=f"redis.{operation}")

    def _key(self, entry_id: str) -> str:
        return f"{self._key_prefix}{entry_id}"

    def _ttl_seconds(self, expires_at: datetime) -> int:
        remaining = (expires_at - datetime.now(tz=timezone.utc)).total_seconds()  # noqa: UP017
        if remaining <= 0:
            return self._default_ttl_seconds
        return max(1, int(remaining))

    @staticmethod
    def _pairs_to_dict(pairs: list[Any]) -> dict[str, str]:
        decoded = [p.decode("utf-8") if isinstance(p, bytes) else str(p) for p in pairs]
        return dict(zip(decoded[::2], decoded[1::2]))
