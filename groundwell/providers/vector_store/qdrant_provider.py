"""Qdrant-backed vector index.

Implements :class:`IVectorStoreProvider` over a single Qdrant collection.
Points are keyed by random UUIDs and carry one payload field, ``content``,
holding the chunk text.  The collection is created lazily the first time
any operation runs, with a fixed dimension and cosine distance.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog
from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models as rest
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from groundwell.interfaces.vector_store_provider import IVectorStoreProvider
from groundwell.models.rag import SearchHit, VectorPoint
from groundwell.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "qdrant"

# Transport and API failures the client can raise.
_QDRANT_ERRORS = (UnexpectedResponse, ResponseHandlingException, httpx.HTTPError)


class QdrantVectorStore(IVectorStoreProvider):
    """Vector index stored in one Qdrant collection.

    Parameters
    ----------
    url:
        Qdrant REST endpoint, e.g. ``http://localhost:6333``.
    collection_name:
        Name of the collection holding every chunk point.
    vector_size:
        Dimension every vector must have.
    api_key:
        Optional Qdrant Cloud API key.
    client:
        Pre-built client; tests inject a mock here.
    """

    def __init__(
        self,
        url: str,
        collection_name: str,
        vector_size: int,
        api_key: str | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        self._collection = collection_name
        self._vector_size = vector_size
        self._client = client or AsyncQdrantClient(url=url, api_key=api_key or None)
        self._ready = False
        self._ready_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def ensure_collection(self) -> None:
        if self._ready:
            return
        async with self._ready_lock:
            if self._ready:
                return
            try:
                exists = await self._client.collection_exists(self._collection)
                if not exists:
                    await self._client.create_collection(
                        collection_name=self._collection,
                        vectors_config=rest.VectorParams(
                            size=self._vector_size,
                            distance=rest.Distance.COSINE,
                        ),
                    )
                    logger.info(
                        "qdrant_collection_created",
                        collection=self._collection,
                        vector_size=self._vector_size,
                    )
            except _QDRANT_ERRORS as exc:
                raise VectorStoreError(
                    message=f"Failed to prepare collection '{self._collection}': {exc}",
                    provider_name=_PROVIDER_NAME,
                ) from exc
            self._ready = True

    async def upsert(self, points: list[VectorPoint]) -> None:
        if not points:
            return
        for point in points:
            self._check_dimension(point.vector)

        await self.ensure_collection()
        try:
            await self._client.upsert(
                collection_name=self._collection,
                points=[
                    rest.PointStruct(
                        id=point.id,
                        vector=point.vector,
                        payload={"content": point.content},
                    )
                    for point in points
                ],
                wait=True,
            )
        except _QDRANT_ERRORS as exc:
            raise VectorStoreError(
                message=f"Failed to upsert {len(points)} points: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        logger.info("qdrant_upsert", collection=self._collection, points=len(points))

    async def search(self, vector: list[float], top_k: int) -> list[SearchHit]:
        self._check_dimension(vector)
        await self.ensure_collection()
        try:
            response = await self._client.query_points(
                collection_name=self._collection,
                query=vector,
                limit=top_k,
                with_payload=True,
            )
        except _QDRANT_ERRORS as exc:
            raise VectorStoreError(
                message=f"Search failed: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        return [
            SearchHit(
                point_id=str(point.id),
                score=point.score,
                content=str((point.payload or {}).get("content", "")),
            )
            for point in response.points
        ]

    async def delete_by_ids(self, point_ids: list[str]) -> None:
        if not point_ids:
            return
        await self.ensure_collection()
        try:
            await self._client.delete(
                collection_name=self._collection,
                points_selector=rest.PointIdsList(points=list(point_ids)),
                wait=True,
            )
        except _QDRANT_ERRORS as exc:
            raise VectorStoreError(
                message=f"Failed to delete {len(point_ids)} points: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        logger.info("qdrant_delete", collection=self._collection, points=len(point_ids))

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    async def close(self) -> None:
        await self._client.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_dimension(self, vector: list[float]) -> None:
        if len(vector) != self._vector_size:
            raise VectorStoreError(
                message=(
                    f"Vector dimension {len(vector)} does not match collection "
                    f"dimension {self._vector_size}"
                ),
                provider_name=_PROVIDER_NAME,
            )
