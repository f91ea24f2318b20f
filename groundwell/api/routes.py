"""FastAPI routes for groundwell.

Service dependencies are resolved from ``app.state`` (populated in
main.py's ``_build_all``) through ``Annotated[..., Depends(...)]`` aliases.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                          Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/documents                 POST    Upload a file (multipart) → ingest
# /api/v1/documents?user_id=        GET     List a user's documents
# /api/v1/documents/{id}            GET     One document's state
# /api/v1/documents/{id}/rescan     POST    Re-ingest a ready document
# /api/v1/documents/{id}            DELETE  Delete document, chunks, blob
# /api/v1/crawl                     POST    Start a sitemap / full crawl
# /api/v1/crawl?user_id=            GET     List a user's crawl jobs
# /api/v1/crawl/{id}                GET     One crawl job's state
# /api/v1/crawl/{id}                DELETE  Delete crawl job and its chunks
# /api/v1/chat                      POST    RAG-augmented completion
# /api/v1/providers                 GET     Supported providers
# /api/v1/health                    GET     Health check
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Form, Query, Request, Response, UploadFile

from groundwell import __version__
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
from groundwell.config.settings import Settings
from groundwell.interfaces.vector_store_provider import IVectorStoreProvider
from groundwell.providers.persistence.sqlite_crawl_job_repository import SQLiteCrawlJobRepository
from groundwell.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository
from groundwell.providers.registry import supported_providers
from groundwell.services.chat_service import ChatService
from groundwell.services.ingestion.orchestrator import IngestionOrchestrator
from groundwell.utils.errors import NotFoundError, ValidationError, VectorStoreError
from groundwell.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Uploads are read in 64 KB pieces so an oversized file is rejected
# without buffering all of it.
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_orchestrator(request: Request) -> IngestionOrchestrator:
    """Return the ingestion orchestrator from application state."""
    return request.app.state.orchestrator


def _get_documents(request: Request) -> SQLiteDocumentRepository:
    return request.app.state.document_repository


def _get_crawl_jobs(request: Request) -> SQLiteCrawlJobRepository:
    return request.app.state.crawl_job_repository


def _get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _get_vector_store(request: Request) -> IVectorStoreProvider:
    return request.app.state.vector_store


SettingsDep = Annotated[Settings, Depends(_get_settings)]
OrchestratorDep = Annotated[IngestionOrchestrator, Depends(_get_orchestrator)]
DocumentsDep = Annotated[SQLiteDocumentRepository, Depends(_get_documents)]
CrawlJobsDep = Annotated[SQLiteCrawlJobRepository, Depends(_get_crawl_jobs)]
ChatServiceDep = Annotated[ChatService, Depends(_get_chat_service)]
VectorStoreDep = Annotated[IVectorStoreProvider, Depends(_get_vector_store)]

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=DocumentResponse,
    status_code=202,
    responses=_ERROR_RESPONSES,
    summary="Upload a document for ingestion",
)
async def upload_document(
    file: UploadFile,
    user_id: Annotated[str, Form(min_length=1)],
    orchestrator: OrchestratorDep,
    settings: SettingsDep,
) -> DocumentResponse:
    """Store the file and start background ingestion; returns the ``processing`` record."""
    if not file.filename:
        raise ValidationError(message="No file provided")

    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > settings.max_upload_bytes:
            raise ValidationError(
                message=(
                    f"File too large. Maximum size is "
                    f"{settings.max_upload_bytes // (1024 * 1024)} MB"
                )
            )
        chunks.append(chunk)
    data = b"".join(chunks)

    document = await orchestrator.submit_document(
        user_id=user_id,
        filename=file.filename,
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )
    return DocumentResponse.from_model(document)


@router.get("/documents", response_model=DocumentListResponse, summary="List documents")
async def list_documents(
    user_id: Annotated[str, Query(min_length=1)],
    documents: DocumentsDep,
) -> DocumentListResponse:
    items = [DocumentResponse.from_model(d) for d in await documents.list_by_user(user_id)]
    return DocumentListResponse(documents=items, total=len(items))


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses=_ERROR_RESPONSES,
    summary="Get a document",
)
async def get_document(document_id: str, documents: DocumentsDep) -> DocumentResponse:
    document = await documents.get(document_id)
    if document is None:
        raise NotFoundError(message=f"Document not found: {document_id}")
    return DocumentResponse.from_model(document)


@router.post(
    "/documents/{document_id}/rescan",
    response_model=DocumentResponse,
    status_code=202,
    responses=_ERROR_RESPONSES,
    summary="Re-ingest a ready document",
)
async def rescan_document(document_id: str, orchestrator: OrchestratorDep) -> DocumentResponse:
    document = await orchestrator.rescan_document(document_id)
    return DocumentResponse.from_model(document)


@router.delete(
    "/documents/{document_id}",
    status_code=204,
    responses=_ERROR_RESPONSES,
    summary="Delete a document and its chunks",
)
async def delete_document(document_id: str, orchestrator: OrchestratorDep) -> Response:
    await orchestrator.delete_document(document_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Crawl jobs
# ---------------------------------------------------------------------------


@router.post(
    "/crawl",
    response_model=CrawlJobResponse,
    status_code=202,
    responses=_ERROR_RESPONSES,
    summary="Start a crawl job",
)
async def start_crawl(body: CrawlRequest, orchestrator: OrchestratorDep) -> CrawlJobResponse:
    job = await orchestrator.submit_crawl(body.user_id, body.url, body.crawl_type)
    return CrawlJobResponse.from_model(job)


@router.get("/crawl", response_model=CrawlJobListResponse, summary="List crawl jobs")
async def list_crawl_jobs(
    user_id: Annotated[str, Query(min_length=1)],
    crawl_jobs: CrawlJobsDep,
) -> CrawlJobListResponse:
    items = [CrawlJobResponse.from_model(j) for j in await crawl_jobs.list_by_user(user_id)]
    return CrawlJobListResponse(jobs=items, total=len(items))


@router.get(
    "/crawl/{job_id}",
    response_model=CrawlJobResponse,
    responses=_ERROR_RESPONSES,
    summary="Get a crawl job",
)
async def get_crawl_job(job_id: str, crawl_jobs: CrawlJobsDep) -> CrawlJobResponse:
    job = await crawl_jobs.get(job_id)
    if job is None:
        raise NotFoundError(message=f"Crawl job not found: {job_id}")
    return CrawlJobResponse.from_model(job)


@router.delete(
    "/crawl/{job_id}",
    status_code=204,
    responses=_ERROR_RESPONSES,
    summary="Delete a crawl job and its chunks",
)
async def delete_crawl_job(job_id: str, orchestrator: OrchestratorDep) -> Response:
    await orchestrator.delete_crawl_job(job_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={**_ERROR_RESPONSES, 502: {"model": ErrorResponse}},
    summary="Chat with knowledge-base context",
)
async def chat(body: ChatRequest, chat_service: ChatServiceDep) -> ChatResponse:
    result = await chat_service.reply(
        body.message,
        system_prompt=body.system_prompt,
        provider=body.provider,
        model=body.model,
    )
    return ChatResponse(
        reply=result.reply,
        provider=result.provider,
        context_used=result.context_used,
    )


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get("/providers", response_model=ProvidersResponse, summary="List supported providers")
async def list_providers(settings: SettingsDep) -> ProvidersResponse:
    configured = set(settings.get_configured_providers())
    providers = [
        {**info.model_dump(), "configured": info.id in configured}
        for info in supported_providers()
    ]
    return ProvidersResponse(providers=providers)


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(settings: SettingsDep, vector_store: VectorStoreDep) -> HealthResponse:
    """Report whether completion, embeddings, and the vector index are usable."""
    configured = settings.get_configured_providers()
    providers: dict[str, Any] = {
        "llm": settings.default_provider in configured,
        "embedding": settings.embedding_provider in configured,
    }
    try:
        await vector_store.ensure_collection()
        providers["vector_store"] = True
    except VectorStoreError as exc:
        _logger.warning("health_vector_store_unreachable", error=exc.message)
        providers["vector_store"] = False

    if providers["vector_store"] and providers["embedding"] and providers["llm"]:
        status = "healthy"
    elif providers["vector_store"]:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(status=status, version=__version__, providers=providers)
