"""FastAPI API routes for the answer cache service.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                                 Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/chat                             POST    Answer a prompt (cache-aside)
# /api/v1/ingest                           POST    Queue a document for ingestion
# /api/v1/ingest/{job_id}                  GET     Poll an ingest job
# /api/v1/ingest/{document_id}/reingest    POST    Invalidate + replace a document
# /api/v1/health                           GET     Providers, queues, processors
#
# DEPENDENCY INJECTION PATTERN:
# Each route declares its collaborators as Annotated[..., Depends(fn)]
# parameters; the helper functions read them from app.state, which is
# populated at startup by main.py's _build_all.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from src.api.schemas import (
    ChatRequest,
    ChatResponse,
    HealthResponse,
    IngestJobResponse,
    IngestRequest,
    ReingestRequest,
)
from src.config.settings import Settings
from src.pipeline.chat_orchestrator import ChatOrchestrator
from src.pipeline.job_store import JobStore
from src.services.ingestion.ingest_pipeline import IngestPipeline
from src.services.ingestion.reingest_service import ReingestService
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_chat_orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.chat_orchestrator


def _get_ingest_pipeline(request: Request) -> IngestPipeline:
    return request.app.state.ingest_pipeline


def _get_reingest_service(request: Request) -> ReingestService:
    return request.app.state.reingest_service


def _get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


SettingsDep = Annotated[Settings, Depends(_get_settings)]
OrchestratorDep = Annotated[ChatOrchestrator, Depends(_get_chat_orchestrator)]
IngestPipelineDep = Annotated[IngestPipeline, Depends(_get_ingest_pipeline)]
ReingestDep = Annotated[ReingestService, Depends(_get_reingest_service)]
JobStoreDep = Annotated[JobStore, Depends(_get_job_store)]


def _check_content_size(content: str, settings: Settings) -> None:
    size = len(content.encode("utf-8"))
    if size > settings.max_content_bytes:
        raise HTTPException(
            status_code=422,
            detail=f"Content is {size} bytes; the limit is {settings.max_content_bytes}",
        )


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    response: Response,
    orchestrator: OrchestratorDep,
    settings: SettingsDep,
) -> ChatResponse:
    """Answer a prompt from the semantic cache or via retrieval + generation."""
    if len(body.prompt) > settings.max_prompt_length:
        raise HTTPException(
            status_code=422,
            detail=f"Prompt exceeds {settings.max_prompt_length} characters",
        )

    result = await orchestrator.process_chat(body.prompt)
    response.headers["X-Cache-Status"] = result.cache_status.value
    return ChatResponse(
        answer=result.answer,
        cache_status=result.cache_status,
        source_chunk_ids=result.source_chunk_ids,
    )


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post("/ingest", response_model=IngestJobResponse, status_code=202)
async def ingest(
    body: IngestRequest,
    response: Response,
    pipeline: IngestPipelineDep,
    settings: SettingsDep,
) -> IngestJobResponse:
    """Queue a document for chunking and embedding; poll the returned job."""
    _check_content_size(body.content, settings)

    job = await pipeline.ingest(body.document_id, body.file_name, body.content)
    response.headers["Location"] = f"{router.prefix}/ingest/{job.job_id}"
    return IngestJobResponse.from_job(job)


@router.get("/ingest/{job_id}", response_model=IngestJobResponse)
async def get_ingest_job(job_id: str, job_store: JobStoreDep) -> IngestJobResponse:
    """Return the latest snapshot of an ingest job."""
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Unknown ingest job: {job_id}")
    return IngestJobResponse.from_job(job)


@router.post(
    "/ingest/{document_id}/reingest",
    response_model=IngestJobResponse,
    status_code=202,
)
async def reingest(
    document_id: str,
    body: ReingestRequest,
    response: Response,
    reingest_service: ReingestDep,
    settings: SettingsDep,
) -> IngestJobResponse:
    """Invalidate cached answers built on *document_id*, then replace it."""
    if not document_id.strip():
        raise HTTPException(status_code=422, detail="document_id must not be blank")
    _check_content_size(body.content, settings)

    job = await reingest_service.reingest(document_id, body.file_name, body.content)
    response.headers["Location"] = f"{router.prefix}/ingest/{job.job_id}"
    return IngestJobResponse.from_job(job)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Report provider availability, queue depth and processor liveness."""
    state = request.app.state

    providers: dict[str, Any] = {}
    for key in ("embedding_provider", "llm_provider", "document_store", "semantic_cache"):
        provider = getattr(state, key, None)
        if provider is not None:
            providers[key] = {
                "name": provider.get_provider_name(),
                "available": provider.is_available(),
            }

    queues: dict[str, Any] = {}
    for queue_key, processor_key in (
        ("ingest_queue", "ingest_processor"),
        ("cache_queue", "cache_processor"),
    ):
        queue = getattr(state, queue_key, None)
        processor = getattr(state, processor_key, None)
        if queue is None:
            continue
        queues[queue.name] = {
            "depth": queue.qsize(),
            "capacity": queue.capacity,
            "processor_running": processor.is_running if processor is not None else False,
        }

    healthy = all(p["available"] for p in providers.values()) and all(
        q["processor_running"] for q in queues.values()
    )
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        version=_VERSION,
        providers=providers,
        queues=queues,
    )
