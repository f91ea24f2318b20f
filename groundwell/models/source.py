"""Content source models: uploaded documents and crawl jobs.

A *source* is anything that produces chunks in the vector index.  There are
two variants, kept as separate frozen models rather than a class hierarchy:

    Document  -- an uploaded file, stored in blob storage
    CrawlJob  -- a seed URL plus the pages discovered from it

Both expose ``source_type`` / ``source_id`` / ``status`` so the ingestion
orchestrator and the chunk ledger can treat them uniformly.  ``Source`` is
the tagged union of the two.

Lifecycle state machines::

    Document:  uploading -> processing -> ready
                    \\            \\          \\
                     +------------+----------+--> failed (terminal)

    CrawlJob:  pending -> running -> completed
                   \\          \\
                    +----------+--> failed (terminal)

Self-transitions ``ready -> ready`` (a rescan refreshing ``processed_at``)
and ``running -> running`` (progress counters) are allowed; nothing ever
moves backwards and nothing leaves ``failed``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Status enums
# ---------------------------------------------------------------------------
class DocumentStatus(str, Enum):  # noqa: UP042  keep str mixin for sqlite/json round-trips
    """Processing state of an uploaded document."""

    UPLOADING = "uploading"    # Record created, bytes not yet in blob storage
    PROCESSING = "processing"  # Background ingestion running
    READY = "ready"            # All chunks embedded, upserted, and ledgered
    FAILED = "failed"          # Terminal; error_message says why

    def can_advance_to(self, new: DocumentStatus) -> bool:
        return new in _DOCUMENT_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return self is DocumentStatus.FAILED


class CrawlStatus(str, Enum):  # noqa: UP042
    """Processing state of a crawl job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_advance_to(self, new: CrawlStatus) -> bool:
        return new in _CRAWL_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (CrawlStatus.COMPLETED, CrawlStatus.FAILED)


class CrawlType(str, Enum):  # noqa: UP042
    """URL discovery strategy for a crawl job."""

    SITEMAP = "sitemap"  # {seed}/sitemap.xml <loc> entries
    FULL = "full"        # same-host link-following traversal


_DOCUMENT_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.UPLOADING: frozenset({DocumentStatus.PROCESSING, DocumentStatus.FAILED}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.READY, DocumentStatus.FAILED}),
    DocumentStatus.READY: frozenset({DocumentStatus.READY, DocumentStatus.FAILED}),
    DocumentStatus.FAILED: frozenset(),
}

_CRAWL_TRANSITIONS: dict[CrawlStatus, frozenset[CrawlStatus]] = {
    CrawlStatus.PENDING: frozenset({CrawlStatus.RUNNING, CrawlStatus.FAILED}),
    CrawlStatus.RUNNING: frozenset(
        {CrawlStatus.RUNNING, CrawlStatus.COMPLETED, CrawlStatus.FAILED}
    ),
    CrawlStatus.COMPLETED: frozenset(),
    CrawlStatus.FAILED: frozenset(),
}


def document_predecessors(new: DocumentStatus) -> list[DocumentStatus]:
    """Statuses from which a document may move to *new* (used in conditional UPDATEs)."""
    return [s for s, targets in _DOCUMENT_TRANSITIONS.items() if new in targets]


def crawl_predecessors(new: CrawlStatus) -> list[CrawlStatus]:
    """Statuses from which a crawl job may move to *new*."""
    return [s for s, targets in _CRAWL_TRANSITIONS.items() if new in targets]


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """An uploaded file and its ingestion state."""

    model_config = ConfigDict(frozen=True)

    source_type: Literal["document"] = "document"
    id: str = Field(description="UUID of the document.")
    user_id: str = Field(description="Owner of the document.")
    filename: str = Field(description="Sanitised filename used in the storage key.")
    original_filename: str = Field(description="Filename as uploaded.")
    storage_key: str = Field(default="", description="Blob storage key; empty until uploaded.")
    content_type: str = Field(description="Declared MIME type of the upload.")
    size_bytes: int = Field(ge=0, description="Size of the uploaded payload.")
    status: DocumentStatus = DocumentStatus.UPLOADING
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    processed_at: datetime | None = None

    @property
    def source_id(self) -> str:
        return self.id


# ---------------------------------------------------------------------------
# CrawlJob
# ---------------------------------------------------------------------------
class CrawlJob(BaseModel):
    """A crawl request and its progress counters."""

    model_config = ConfigDict(frozen=True)

    source_type: Literal["crawl_job"] = "crawl_job"
    id: str = Field(description="UUID of the crawl job.")
    user_id: str = Field(description="Owner of the crawl job.")
    url: str = Field(description="Seed URL the crawl starts from.")
    crawl_type: CrawlType
    status: CrawlStatus = CrawlStatus.PENDING
    pages_found: int = Field(default=0, ge=0, description="URLs returned by discovery.")
    pages_processed: int = Field(default=0, ge=0, description="Pages fetched successfully.")
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def source_id(self) -> str:
        return self.id


Source = Union[Document, CrawlJob]
