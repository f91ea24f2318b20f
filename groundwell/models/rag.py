"""RAG data models: ledger entries, vector points, search hits, crawled pages.

Data flow for one source::

    text --chunker--> [chunk, ...]
         --embedder--> [vector, ...]
         --VectorPoint(id=uuid4, vector, content)--> Qdrant
         --LedgerEntry(source_type, source_id, chunk_index, content, point_id)--> SQLite

The ledger is the relational record of which points belong to which source;
deleting or rescanning a source reads the ledger to know which points to
remove from the index.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from groundwell.models.source import utc_now


class VectorPoint(BaseModel):
    """One entry in the vector index: id, embedding, and the chunk text payload."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Random UUID; never derived from content.")
    vector: list[float] = Field(description="Embedding vector.")
    content: str = Field(description="Chunk text stored in the point payload.")


class NewLedgerEntry(BaseModel):
    """A ledger row about to be written (no id / timestamp yet)."""

    model_config = ConfigDict(frozen=True)

    source_type: str
    source_id: str
    chunk_index: int = Field(ge=0)
    content: str
    point_id: str


class LedgerEntry(NewLedgerEntry):
    """A persisted chunk ledger row."""

    id: int
    created_at: datetime = Field(default_factory=utc_now)


class SearchHit(BaseModel):
    """A similarity-search result from the vector index."""

    model_config = ConfigDict(frozen=True)

    point_id: str
    score: float
    content: str = ""


class CrawledPage(BaseModel):
    """A fetched web page reduced to its title and visible body text."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str | None = None
    content: str = ""

    def as_text(self) -> str:
        """Text fed to the chunker: title line (when present) followed by the body."""
        if self.title:
            return f"{self.title}\n{self.content}"
        return self.content


class IngestionResult(BaseModel):
    """Summary of one completed pipeline run, used for logging and tests."""

    model_config = ConfigDict(frozen=True)

    source_type: str
    source_id: str
    chunks: int = Field(default=0, ge=0)
    batches: int = Field(default=0, ge=0)
    point_ids: list[str] = Field(default_factory=list)
    abandoned: bool = Field(
        default=False,
        description="True when the source vanished mid-run and writes were skipped or rolled back.",
    )


class ChatReply(BaseModel):
    """A completion produced for one chat message."""

    model_config = ConfigDict(frozen=True)

    reply: str
    provider: str
    context_used: bool = False
