"""Pydantic v2 data models for groundwell."""

from groundwell.models.rag import (
    ChatReply,
    CrawledPage,
    IngestionResult,
    LedgerEntry,
    NewLedgerEntry,
    SearchHit,
    VectorPoint,
)
from groundwell.models.source import (
    CrawlJob,
    CrawlStatus,
    CrawlType,
    Document,
    DocumentStatus,
    Source,
)

__all__ = [
    "ChatReply",
    "CrawlJob",
    "CrawlStatus",
    "CrawlType",
    "CrawledPage",
    "Document",
    "DocumentStatus",
    "IngestionResult",
    "LedgerEntry",
    "NewLedgerEntry",
    "SearchHit",
    "Source",
    "VectorPoint",
]
