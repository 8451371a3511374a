"""Unit tests for Settings defaults / env overrides and logging helpers."""

from __future__ import annotations

import pytest
import structlog
from pydantic import ValidationError

from src.config.settings import Settings
from src.utils.logging import bind_request_context, clear_request_context, get_logger


# ======================================================================
# Settings
# ======================================================================


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("CACHE_SIMILARITY_THRESHOLD", "RAG_TOP_K", "CACHE_TTL_HOURS"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.cache_similarity_threshold == 0.85
        assert settings.retrieval_min_score == 0.75
        assert settings.rag_top_k == 5
        assert settings.cache_ttl_hours == 24
        assert settings.ingest_max_concurrency == 5
        assert settings.job_store_max_jobs == 1000
        assert settings.retry_max_retries == 3
        assert settings.retry_base_delay_seconds == 2.0
        assert settings.max_content_bytes == 10 * 1024 * 1024

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CACHE_BACKEND", "redis")
        monkeypatch.setenv("RAG_TOP_K", "8")

        settings = Settings(_env_file=None)

        assert settings.cache_backend == "redis"
        assert settings.rag_top_k == 8

    def test_out_of_range_threshold_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, cache_similarity_threshold=1.5)


# ======================================================================
# Logging helpers
# ======================================================================


class TestRequestContext:
    def test_bind_and_clear(self) -> None:
        clear_request_context()
        bind_request_context(correlation_id="req-42")

        assert structlog.contextvars.get_contextvars() == {"correlation_id": "req-42"}

        clear_request_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_get_logger_returns_usable_logger(self) -> None:
        logger = get_logger(__name__)
        logger.info("test_event", key="value")
