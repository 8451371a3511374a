"""Answer cache FastAPI application entry point.

Wires providers, services, background queues and routes together via
dependency injection.  Configuration comes from ``.env`` and environment
variables (see :class:`~src.config.settings.Settings`); backend selectors
pick one concrete adapter per interface.

Two queue/processor pairs are created: one for ingest processing and one
for cache writes.  The lifespan starts both consumers on startup and stops
them on shutdown, dropping whatever is still queued.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    CorrelationIdMiddleware,
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.settings import Settings
from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.semantic_cache import ISemanticCache
from src.pipeline.chat_orchestrator import ChatOrchestrator
from src.pipeline.job_store import JobStore
from src.pipeline.task_processor import BackgroundTaskProcessor
from src.pipeline.task_queue import BackgroundTaskQueue
from src.providers.cache.memory_semantic_cache import InMemorySemanticCache
from src.providers.document_store.memory_document_store import InMemoryDocumentStore
from src.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.services.ingestion.chunker import build_chunker
from src.services.ingestion.ingest_pipeline import IngestPipeline
from src.services.ingestion.reingest_service import ReingestService
from src.services.retriever_service import RetrieverService
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging, get_logger
from src.utils.retry import RetryPolicy

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_retry_factory(app_settings: Settings) -> Callable[[], RetryPolicy]:
    """Return a factory so every external call gets its own RetryPolicy."""

    def _factory() -> RetryPolicy:
        return RetryPolicy(
            max_retries=app_settings.retry_max_retries,
            base_delay=app_settings.retry_base_delay_seconds,
        )

    return _factory


def _build_embedding_provider(
    app_settings: Settings,
    retry_factory: Callable[[], RetryPolicy],
) -> IEmbeddingProvider:
    """Select the embedding provider named by ``EMBEDDING_PROVIDER``."""
    name = app_settings.embedding_provider.lower()
    if name == "hash":
        return HashEmbeddingProvider(dimension=app_settings.vector_dimension)
    if name == "openai":
        provider = OpenAIEmbeddingProvider(settings=app_settings, retry_factory=retry_factory)
        if not provider.is_available():
            raise ConfigurationError(
                message="EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY",
                provider_name=provider.get_provider_name(),
            )
        return provider
    raise ConfigurationError(message=f"Unknown embedding provider: {app_settings.embedding_provider!r}")


def _build_llm_provider(
    app_settings: Settings,
    retry_factory: Callable[[], RetryPolicy],
) -> ILLMProvider:
    """Select the LLM provider named by ``LLM_PROVIDER``."""
    name = app_settings.llm_provider.lower()
    if name == "anthropic":
        provider: ILLMProvider = AnthropicLLMProvider(settings=app_settings, retry_factory=retry_factory)
        if not provider.is_available():
            raise ConfigurationError(
                message="LLM_PROVIDER=anthropic requires ANTHROPIC_API_KEY",
                provider_name=provider.get_provider_name(),
            )
        return provider
    if name == "ollama":
        return OllamaLLMProvider(settings=app_settings, retry_factory=retry_factory)
    raise ConfigurationError(message=f"Unknown LLM provider: {app_settings.llm_provider!r}")


def _build_document_store(
    app_settings: Settings,
    retry_factory: Callable[[], RetryPolicy],
) -> IDocumentStore:
    """Select the document store named by ``DOCUMENT_STORE_BACKEND``."""
    backend = app_settings.document_store_backend.lower()
    if backend == "memory":
        return InMemoryDocumentStore()
    if backend == "chromadb":
        # Lazy import: chromadb is heavy and only needed for this backend.
        from src.providers.document_store.chromadb_document_store import ChromaDBDocumentStore

        return ChromaDBDocumentStore(
            persist_directory=app_settings.chromadb_persist_dir,
            collection_name=app_settings.chromadb_collection,
            retry_factory=retry_factory,
        )
    raise ConfigurationError(
        message=f"Unknown document store backend: {app_settings.document_store_backend!r}"
    )


def _build_semantic_cache(
    app_settings: Settings,
    retry_factory: Callable[[], RetryPolicy],
) -> ISemanticCache:
    """Select the semantic cache named by ``CACHE_BACKEND``."""
    backend = app_settings.cache_backend.lower()
    default_ttl = app_settings.cache_ttl_hours * 3600
    if backend == "memory":
        return InMemorySemanticCache(default_ttl=default_ttl)
    if backend == "redis":
        from src.providers.cache.redis_semantic_cache import RedisSemanticCache

        return RedisSemanticCache(
            redis_url=app_settings.redis_url,
            dimension=app_settings.vector_dimension,
            index_name=app_settings.redis_index_name,
            key_prefix=app_settings.redis_key_prefix,
            default_ttl_seconds=default_ttl,
            retry_factory=retry_factory,
        )
    raise ConfigurationError(message=f"Unknown cache backend: {app_settings.cache_backend!r}")


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider, service and queue for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    retry_factory = _build_retry_factory(app_settings)

    # -- Providers --
    embedding_provider = _build_embedding_provider(app_settings, retry_factory)
    llm_provider = _build_llm_provider(app_settings, retry_factory)
    document_store = _build_document_store(app_settings, retry_factory)
    semantic_cache = _build_semantic_cache(app_settings, retry_factory)

    # -- Background work --
    ingest_queue = BackgroundTaskQueue(capacity=app_settings.ingest_queue_capacity, name="ingest")
    cache_queue = BackgroundTaskQueue(capacity=app_settings.cache_queue_capacity, name="cache")
    job_store = JobStore(max_jobs=app_settings.job_store_max_jobs)

    # -- Services --
    retriever = RetrieverService(
        document_store=document_store,
        top_k=app_settings.rag_top_k,
        min_score=app_settings.retrieval_min_score,
    )
    chat_orchestrator = ChatOrchestrator(
        embedding_provider=embedding_provider,
        semantic_cache=semantic_cache,
        retriever=retriever,
        llm_provider=llm_provider,
        cache_queue=cache_queue,
        similarity_threshold=app_settings.cache_similarity_threshold,
        cache_ttl=timedelta(hours=app_settings.cache_ttl_hours),
    )
    ingest_pipeline = IngestPipeline(
        chunker=build_chunker(app_settings),
        embedding_provider=embedding_provider,
        document_store=document_store,
        job_store=job_store,
        ingest_queue=ingest_queue,
        max_concurrency=app_settings.ingest_max_concurrency,
    )
    reingest_service = ReingestService(
        document_store=document_store,
        semantic_cache=semantic_cache,
        ingest_pipeline=ingest_pipeline,
    )

    return {
        "settings": app_settings,
        "embedding_provider": embedding_provider,
        "llm_provider": llm_provider,
        "document_store": document_store,
        "semantic_cache": semantic_cache,
        "ingest_queue": ingest_queue,
        "cache_queue": cache_queue,
        "ingest_processor": BackgroundTaskProcessor(ingest_queue),
        "cache_processor": BackgroundTaskProcessor(cache_queue),
        "job_store": job_store,
        "retriever": retriever,
        "chat_orchestrator": chat_orchestrator,
        "ingest_pipeline": ingest_pipeline,
        "reingest_service": reingest_service,
    }


async def _prepare_providers(components: dict[str, Any]) -> None:
    """Run async provider setup that cannot happen in constructors."""
    semantic_cache = components["semantic_cache"]
    ensure_index = getattr(semantic_cache, "ensure_index", None)
    if ensure_index is not None:
        await ensure_index()

    llm_provider = components["llm_provider"]
    if isinstance(llm_provider, OllamaLLMProvider) and not await llm_provider.ping():
        _logger.warning("ollama_unreachable", base_url=components["settings"].ollama_base_url)


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build components and start the queue consumers; stop them on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await _prepare_providers(components)

    ingest_processor: BackgroundTaskProcessor = components["ingest_processor"]
    cache_processor: BackgroundTaskProcessor = components["cache_processor"]
    ingest_processor.start()
    cache_processor.start()

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        embedding=components["embedding_provider"].get_provider_name(),
        llm=components["llm_provider"].get_provider_name(),
        document_store=components["document_store"].get_provider_name(),
        semantic_cache=components["semantic_cache"].get_provider_name(),
    )

    yield

    await ingest_processor.stop()
    await cache_processor.stop()

    close = getattr(components["semantic_cache"], "close", None)
    if close is not None:
        await close()
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Answer Cache API",
        version=_VERSION,
        description=(
            "Answer questions from ingested documents with retrieval-augmented "
            "generation, serving near-duplicate questions from a semantic cache."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    application.add_middleware(CorrelationIdMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
