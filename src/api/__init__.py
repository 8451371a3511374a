"""API layer — routes, schemas and middleware."""

from src.api.middleware import (
    CorrelationIdMiddleware,
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    IngestJobResponse,
    IngestRequest,
    ReingestRequest,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "CorrelationIdMiddleware",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "IngestJobResponse",
    "IngestRequest",
    "ReingestRequest",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
]
