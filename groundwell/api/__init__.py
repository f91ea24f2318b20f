"""groundwell API layer: routes, schemas, and middleware."""

from groundwell.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from groundwell.api.routes import router
from groundwell.api.schemas import (
    ChatRequest,
    ChatResponse,
    CrawlJobListResponse,
    CrawlJobResponse,
    CrawlRequest,
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    ProvidersResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ChatRequest",
    "ChatResponse",
    "CrawlJobListResponse",
    "CrawlJobResponse",
    "CrawlRequest",
    "DocumentListResponse",
    "DocumentResponse",
    "ErrorResponse",
    "HealthResponse",
    "ProvidersResponse",
]
