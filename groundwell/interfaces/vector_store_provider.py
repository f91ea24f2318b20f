"""Abstract base class for the vector index.

The index holds a single collection of points ``(id, vector, {"content": text})``.
It knows nothing about documents or crawl jobs; the chunk ledger maps points
back to their sources.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from groundwell.models.rag import SearchHit, VectorPoint


# Concrete implementation: QdrantVectorStore (groundwell/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for the vector index used by ingestion and retrieval."""

    @abstractmethod
    async def ensure_collection(self) -> None:
        """Create the collection (fixed dimension, cosine distance) if it does not exist.

        Safe to call repeatedly; other methods call it lazily.
        """

    @abstractmethod
    async def upsert(self, points: list[VectorPoint]) -> None:
        """Insert or replace *points* in one request.

        An empty list is a no-op.  Every vector must match the collection
        dimension.

        Raises
        ------
        groundwell.utils.errors.VectorStoreError
            On dimension mismatch or a failed request.
        """

    @abstractmethod
    async def search(self, vector: list[float], top_k: int) -> list[SearchHit]:
        """Return up to *top_k* points most similar to *vector*, best first."""

    @abstractmethod
    async def delete_by_ids(self, point_ids: list[str]) -> None:
        """Delete the given points.  An empty list is a no-op."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"qdrant"``."""
