"""API middleware — CORS, correlation ids, request logging and error handling.

# ─── MIDDLEWARE EXECUTION ORDER ───────────────────────────────────────
#
# Starlette middleware is a stack (last added, first executed):
#
#   In main.py:
#     app.add_middleware(ErrorHandlingMiddleware)    # innermost
#     app.add_middleware(RequestLoggingMiddleware)
#     app.add_middleware(CorrelationIdMiddleware)    # outermost
#
#   Request flow:
#     Client → CorrelationId → RequestLogging → ErrorHandling → route
#
# CorrelationId binds the id into structlog's contextvars first, so every
# log line of the request (including the access log) carries it.
# RequestLogging sees the final status code, even when ErrorHandling
# replaced an exception with a JSON error body.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import (
    AnswerCacheError,
    MalformedResponseError,
    ProviderError,
    TransientExternalError,
)
from src.utils.logging import bind_request_context, clear_request_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-Id"
LATENCY_HEADER = "X-Latency-Ms"


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; defaults to ``["*"]`` when no origins are given."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_ID_HEADER, LATENCY_HEADER, "X-Cache-Status", "Location"],
    )


# ---------------------------------------------------------------------------
# Correlation id
# ---------------------------------------------------------------------------


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Echo the caller's ``X-Correlation-Id`` or mint one, and bind it to logs."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        bind_request_context(correlation_id=correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request and report its duration in ``X-Latency-Ms``."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            if response is not None:
                response.headers[LATENCY_HEADER] = str(duration_ms)
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


def status_for_error(exc: AnswerCacheError) -> int:
    """Map an application error to its HTTP status code."""
    if isinstance(exc, TransientExternalError):
        return 503
    if isinstance(exc, (MalformedResponseError, ProviderError)):
        return 502
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``AnswerCacheError`` subclasses into JSON ``ErrorResponse`` bodies.

    Transient upstream failures become 503, malformed or rejected upstream
    responses 502, anything else 500.  Details go to the server log only;
    the client sees the error class name and message, never a stack trace.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except AnswerCacheError as exc:
            status_code = status_for_error(exc)
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message,
            )
            return JSONResponse(
                status_code=status_code,
                content=body.model_dump(),
            )
