"""Shared pytest fixtures for the groundwell test suite."""

from __future__ import annotations

import hashlib
import struct
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from groundwell.interfaces.blob_storage_provider import IBlobStorageProvider
from groundwell.interfaces.embedding_provider import IEmbeddingProvider
from groundwell.interfaces.vector_store_provider import IVectorStoreProvider
from groundwell.models.rag import SearchHit, VectorPoint
from groundwell.providers.persistence.sqlite_chunk_ledger import SQLiteChunkLedger
from groundwell.providers.persistence.sqlite_crawl_job_repository import SQLiteCrawlJobRepository
from groundwell.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository
from groundwell.utils.errors import ProviderError, StorageError, VectorStoreError

# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 16


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit-length vector by hashing *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # Unsigned ints avoid NaN/inf bit patterns that raw floats can produce.
    values = [v / 2**32 - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider.

    Records the size of every ``embed`` call in ``batch_sizes``.  Set
    ``fail_on_call`` to make the n-th call (1-based) raise ProviderError.
    """

    def __init__(self, dim: int = _EMBEDDING_DIM, fail_on_call: int | None = None) -> None:
        self._dim = dim
        self.fail_on_call = fail_on_call
        self.batch_sizes: list[int] = []
        self.single_calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batch_sizes.append(len(texts))
        if self.fail_on_call is not None and len(self.batch_sizes) == self.fail_on_call:
            raise ProviderError(message="rate limited", provider_name="mock-embedding")
        return [_hash_to_vector(t, self._dim) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.single_calls.append(text)
        return _hash_to_vector(text, self._dim)

    def get_dimension(self) -> int:
        return self._dim

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# In-memory stores
# ---------------------------------------------------------------------------


class MockVectorStore(IVectorStoreProvider):
    """Vector index backed by a dict of point id -> VectorPoint.

    ``upsert_sizes`` records each upsert call; ``fail_deletes`` makes
    ``delete_by_ids`` raise VectorStoreError.
    """

    def __init__(self) -> None:
        self.points: dict[str, VectorPoint] = {}
        self.upsert_sizes: list[int] = []
        self.deleted_batches: list[list[str]] = []
        self.fail_deletes = False
        self.fail_search = False

    async def ensure_collection(self) -> None:
        return None

    async def upsert(self, points: list[VectorPoint]) -> None:
        self.upsert_sizes.append(len(points))
        for point in points:
            self.points[point.id] = point

    async def search(self, vector: list[float], top_k: int) -> list[SearchHit]:
        if self.fail_search:
            raise VectorStoreError(message="qdrant unreachable", provider_name="mock-qdrant")
        scored = [
            (sum(a * b for a, b in zip(vector, p.vector)), p) for p in self.points.values()
        ]
        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            SearchHit(point_id=p.id, score=score, content=p.content)
            for score, p in scored[:top_k]
        ]

    async def delete_by_ids(self, point_ids: list[str]) -> None:
        if self.fail_deletes:
            raise VectorStoreError(message="delete failed", provider_name="mock-qdrant")
        self.deleted_batches.append(list(point_ids))
        for point_id in point_ids:
            self.points.pop(point_id, None)

    def get_provider_name(self) -> str:
        return "mock-qdrant"


class MockBlobStorage(IBlobStorageProvider):
    """Blob store backed by a dict."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.fail_uploads = False

    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail_uploads:
            raise StorageError(message="bucket unavailable", provider_name="mock-blob")
        self.blobs[key] = data

    async def download(self, key: str) -> bytes:
        if key not in self.blobs:
            raise StorageError(message=f"Blob not found: {key}", provider_name="mock-blob")
        return self.blobs[key]

    async def delete(self, key: str) -> None:
        self.blobs.pop(key, None)

    def get_provider_name(self) -> str:
        return "mock-blob"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """IEmbeddingProvider returning deterministic hash-based vectors."""
    return MockEmbeddingProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def mock_blob_storage() -> MockBlobStorage:
    return MockBlobStorage()


@pytest.fixture
def mock_registry(mock_embedding_provider: MockEmbeddingProvider) -> MagicMock:
    """ProviderRegistry stand-in whose ``embedding()`` returns the mock provider."""
    registry = MagicMock()
    registry.embedding.return_value = mock_embedding_provider
    return registry


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "groundwell_test.db"


@pytest_asyncio.fixture
async def document_repository(db_path: Path) -> SQLiteDocumentRepository:
    repo = SQLiteDocumentRepository(db_path=db_path)
    await repo.initialize()
    return repo


@pytest_asyncio.fixture
async def crawl_job_repository(db_path: Path) -> SQLiteCrawlJobRepository:
    repo = SQLiteCrawlJobRepository(db_path=db_path)
    await repo.initialize()
    return repo


@pytest_asyncio.fixture
async def chunk_ledger(db_path: Path) -> SQLiteChunkLedger:
    ledger = SQLiteChunkLedger(db_path=db_path)
    await ledger.initialize()
    return ledger


@pytest.fixture
def sample_text() -> str:
    """Multi-paragraph text for chunker and pipeline tests."""
    return (
        "Retrieval augmented generation grounds a language model in documents "
        "the model never saw during training. An ingestion pipeline extracts "
        "text from uploaded files, splits it into overlapping windows, embeds "
        "each window, and stores the vectors in an index.\n\n"
        "At query time the user's message is embedded with the same model and "
        "the nearest chunks are pulled from the index. Those chunks are pasted "
        "into the system prompt so the model can quote them when it answers.\n\n"
        "Keeping the relational ledger and the vector index consistent is the "
        "hard part: a deleted document must take its vectors with it, and a "
        "rescan must replace old chunks rather than duplicate them."
    )
