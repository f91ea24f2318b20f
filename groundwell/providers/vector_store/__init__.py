"""Vector store provider implementations.

Qdrant is the sole implementation.  Points carry only the chunk text as
payload; which source a point belongs to is recorded in the SQLite chunk
ledger, not in the index.
"""

from groundwell.providers.vector_store.qdrant_provider import QdrantVectorStore

__all__ = ["QdrantVectorStore"]
