"""API middleware: CORS, request logging, and error handling.

Starlette middleware is a stack (last added, first executed).  main.py adds
ErrorHandlingMiddleware first and RequestLoggingMiddleware second, so the
logging middleware is outermost and records the final status code, even
when the error handler replaced an exception with a JSON body.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from groundwell.api.schemas import ErrorResponse
from groundwell.utils.errors import (
    ConfigurationError,
    CrawlError,
    ExtractionError,
    GroundwellError,
    NotFoundError,
    PipelineError,
    ProviderError,
    StorageError,
    ValidationError,
    VectorStoreError,
)
from groundwell.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Checked in order; the first matching class wins, so subclasses go first.
_STATUS_CODES: tuple[tuple[type[GroundwellError], int], ...] = (
    (ValidationError, 400),
    (ConfigurationError, 400),
    (ExtractionError, 422),
    (NotFoundError, 404),
    (PipelineError, 409),
    (ProviderError, 502),
    (CrawlError, 502),
    (VectorStoreError, 503),
    (StorageError, 500),
)


def status_code_for(exc: GroundwellError) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware.  Defaults to ``["*"]`` for development."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log its outcome as one ``http_request`` event.

    The id is bound into structlog's contextvars, so every record emitted
    while handling the request carries it.  Background ingestion tasks
    spawned by the request copy the context and keep the same id.  The id is
    echoed back in the ``X-Request-ID`` header.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _logger.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            structlog.contextvars.unbind_contextvars("request_id")


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert escaping ``GroundwellError`` subclasses into JSON ``ErrorResponse`` bodies.

    The client sees the error class name and message only; anything else
    stays in the server log.  Non-application exceptions fall through to
    FastAPI's default 500 handler.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except GroundwellError as exc:
            status_code = status_code_for(exc)
            log = _logger.warning if status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status_code, content=body.model_dump())
