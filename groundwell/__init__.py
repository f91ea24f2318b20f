"""groundwell: document and web-crawl ingestion into a vector index, with RAG chat."""

__version__ = "0.1.0"
