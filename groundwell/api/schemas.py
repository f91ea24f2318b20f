"""Pydantic request/response schemas for the groundwell API.

Request schemas end with "Request", response schemas with "Response".
Responses are built from the internal models with ``from_model`` so the
wire shape stays stable if the internal models grow fields.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from groundwell.models.source import (
    CrawlJob,
    CrawlStatus,
    CrawlType,
    Document,
    DocumentStatus,
)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentResponse(BaseModel):
    """An uploaded document and its processing state."""

    id: str
    user_id: str
    original_filename: str
    content_type: str
    size_bytes: int
    status: DocumentStatus
    error_message: str | None = None
    created_at: datetime
    processed_at: datetime | None = None

    @classmethod
    def from_model(cls, document: Document) -> DocumentResponse:
        return cls(
            id=document.id,
            user_id=document.user_id,
            original_filename=document.original_filename,
            content_type=document.content_type,
            size_bytes=document.size_bytes,
            status=document.status,
            error_message=document.error_message,
            created_at=document.created_at,
            processed_at=document.processed_at,
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse] = Field(default_factory=list)
    total: int = 0


# ---------------------------------------------------------------------------
# Crawl jobs
# ---------------------------------------------------------------------------


class CrawlRequest(BaseModel):
    """Start a crawl of *url* for *user_id*."""

    user_id: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1, max_length=2048)
    crawl_type: CrawlType = CrawlType.SITEMAP


class CrawlJobResponse(BaseModel):
    """A crawl job, its progress counters, and its state."""

    id: str
    user_id: str
    url: str
    crawl_type: CrawlType
    status: CrawlStatus
    pages_found: int = 0
    pages_processed: int = 0
    error_message: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_model(cls, job: CrawlJob) -> CrawlJobResponse:
        return cls(
            id=job.id,
            user_id=job.user_id,
            url=job.url,
            crawl_type=job.crawl_type,
            status=job.status,
            pages_found=job.pages_found,
            pages_processed=job.pages_processed,
            error_message=job.error_message,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class CrawlJobListResponse(BaseModel):
    jobs: list[CrawlJobResponse] = Field(default_factory=list)
    total: int = 0


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """A chat message, optionally with a provider/model override."""

    message: str = Field(..., min_length=1, max_length=8000)
    system_prompt: str | None = Field(default=None, max_length=8000)
    provider: str | None = None
    model: str | None = None


class ChatResponse(BaseModel):
    reply: str
    provider: str
    context_used: bool = False


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ProvidersResponse(BaseModel):
    """Supported providers and whether each has a credential configured."""

    providers: list[dict[str, Any]]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
