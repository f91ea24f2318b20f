"""Ingestion pipeline for the groundwell knowledge base.

Orchestrates: **extract -> chunk -> embed -> upsert -> ledger**.

1. **Extract** (services/text_extractor.py) -- uploaded bytes to plain text;
   crawled pages are reduced to text by services/crawler.py.
2. **Chunk** (chunker.py / TextChunker) -- overlapping word windows.
3. **Embed** (via IEmbeddingProvider) -- sequential batches per source.
4. **Upsert** (via IVectorStoreProvider) -- one write of every point.
5. **Ledger** (SQLiteChunkLedger) -- one row per point, keyed by source.

IngestionOrchestrator runs each source as a detached background task and
owns the document / crawl-job status transitions.
"""

from groundwell.services.ingestion.chunker import TextChunker, chunk_text
from groundwell.services.ingestion.orchestrator import IngestionOrchestrator

__all__ = ["IngestionOrchestrator", "TextChunker", "chunk_text"]
