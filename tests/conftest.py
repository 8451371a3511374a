"""Shared pytest fixtures for the answer cache test suite."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.models.rag import CacheEntry, DocumentChunk
from src.utils.retry import RetryPolicy


def from_float32_bytes(raw: bytes) -> list[float]:
    """Decode a little-endian float32 blob written by ``to_float32_bytes``."""
    return np.frombuffer(raw, dtype="<f4").astype(np.float64).tolist()


# ---------------------------------------------------------------------------
# General fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def test_settings() -> Settings:
    """Settings with offline providers and in-memory backends."""
    return Settings(
        _env_file=None,
        embedding_provider="hash",
        llm_provider="ollama",
        cache_backend="memory",
        document_store_backend="memory",
        vector_dimension=64,
        retry_base_delay_seconds=0.0,
    )


@pytest.fixture
def no_sleep_retry() -> RetryPolicy:
    """A RetryPolicy that never actually sleeps."""
    return RetryPolicy(max_retries=3, base_delay=2.0, sleep=AsyncMock())


@pytest.fixture
def sample_document_text() -> str:
    """A short multi-sentence document for chunking and ingestion tests."""
    return (
        "Semantic caches store answers keyed by the meaning of a question. "
        "A new question is embedded and compared with cached questions. "
        "When the similarity clears a threshold, the cached answer is served. "
        "Otherwise relevant chunks are retrieved from the document store. "
        "The language model answers using only those chunks. "
        "The new answer is written back to the cache in the background. "
        "Re-ingesting a document invalidates answers built on its old chunks."
    )


# ---------------------------------------------------------------------------
# Model builders
# ---------------------------------------------------------------------------


def make_chunk(
    chunk_id: str = "chunk-1",
    document_id: str = "doc-1",
    text: str = "Some chunk text.",
    embedding: list[float] | None = None,
    chunk_index: int = 0,
    char_offset: int = 0,
) -> DocumentChunk:
    """Build a DocumentChunk with sensible defaults."""
    return DocumentChunk(
        chunk_id=chunk_id,
        document_id=document_id,
        text=text,
        embedding=embedding if embedding is not None else [1.0, 0.0, 0.0],
        chunk_index=chunk_index,
        char_offset=char_offset,
    )


def make_entry(
    entry_id: str = "entry-1",
    prompt: str = "What is a semantic cache?",
    answer: str = "A cache keyed by meaning.",
    embedding: list[float] | None = None,
    source_chunk_ids: list[str] | None = None,
    ttl: timedelta = timedelta(hours=1),
    created_at: datetime | None = None,
) -> CacheEntry:
    """Build a CacheEntry that expires *ttl* after *created_at* (default now)."""
    created = created_at or datetime.now(tz=timezone.utc)  # noqa: UP017
    return CacheEntry(
        entry_id=entry_id,
        prompt=prompt,
        answer=answer,
        embedding=embedding if embedding is not None else [1.0, 0.0, 0.0],
        source_chunk_ids=source_chunk_ids or [],
        created_at=created,
        expires_at=created + ttl,
    )


# ---------------------------------------------------------------------------
# Mock providers
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 16


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic pseudo-embedding: identical text, identical vector."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = [digest[i % len(digest)] / 255.0 + 0.01 for i in range(dim)]
    norm = sum(v * v for v in raw) ** 0.5
    return [v / norm for v in raw]


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic embedding provider for testing."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def get_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embeddings"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Return a mock LLM provider that answers with a fixed string."""
    provider = MagicMock(spec=ILLMProvider)
    provider.generate_response = AsyncMock(return_value="Generated answer.")
    provider.get_provider_name.return_value = "mock-llm"
    provider.is_available.return_value = True
    return provider
