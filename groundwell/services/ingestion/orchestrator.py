"""Orchestrator for document and crawl ingestion.

Pipeline stages: **extract -> chunk -> embed (batched) -> upsert -> ledger -> status**.

# ─── LIFECYCLE ────────────────────────────────────────────────────────
#
#   submit_document()  validates synchronously, stores the bytes, moves the
#                      record uploading -> processing, spawns ingest_document
#   submit_crawl()     validates synchronously, creates a pending job,
#                      spawns run_crawl (pending -> running -> completed)
#   rescan_document()  ready documents only; spawns reprocess_document,
#                      which purges the old ledger rows + points and then
#                      re-runs ingest_document (status stays ready)
#   delete_*()         removes the record first, then its ledger rows,
#                      points, and blob
#
# Background tasks are detached and never cancelled.  Every failure inside
# one is converted into the source's terminal ``failed`` state; nothing
# escapes the task.
#
# WRITE GUARD:
# A source can be deleted while its task is still embedding.  Before the
# upsert the task re-reads the source and abandons its writes if the source
# is gone or no longer in progress.  If the delete lands between the upsert
# and the final status update, that update is rejected by the repository
# and the task purges the rows and points it just wrote.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import math
import uuid
from typing import TYPE_CHECKING, Awaitable, Callable, Coroutine
from urllib.parse import urlparse

import structlog

from groundwell.models.rag import CrawledPage, IngestionResult, NewLedgerEntry, VectorPoint
from groundwell.models.source import (
    CrawlJob,
    CrawlStatus,
    CrawlType,
    Document,
    DocumentStatus,
)
from groundwell.utils.concurrency import BackgroundTasks
from groundwell.utils.errors import (
    ConfigurationError,
    CrawlError,
    GroundwellError,
    NotFoundError,
    PipelineError,
    ProviderError,
    StorageError,
    ValidationError,
    VectorStoreError,
)

if TYPE_CHECKING:
    from groundwell.interfaces.blob_storage_provider import IBlobStorageProvider
    from groundwell.interfaces.embedding_provider import IEmbeddingProvider
    from groundwell.interfaces.vector_store_provider import IVectorStoreProvider
    from groundwell.providers.persistence.sqlite_chunk_ledger import SQLiteChunkLedger
    from groundwell.providers.persistence.sqlite_crawl_job_repository import (
        SQLiteCrawlJobRepository,
    )
    from groundwell.providers.persistence.sqlite_document_repository import (
        SQLiteDocumentRepository,
    )
    from groundwell.providers.registry import ProviderRegistry
    from groundwell.services.crawler import CrawlerService
    from groundwell.services.ingestion.chunker import TextChunker
    from groundwell.services.text_extractor import TextExtractor

logger = structlog.get_logger(logger_name=__name__)

DOCUMENT = "document"
CRAWL_JOB = "crawl_job"

_GENERIC_FAILURE = "Unexpected error during ingestion"
_DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024


class IngestionOrchestrator:
    """Drive documents and crawl jobs through extraction, embedding, and indexing.

    Parameters
    ----------
    documents, crawl_jobs:
        Source record repositories.
    ledger:
        Chunk ledger mapping points back to sources.
    vector_store:
        The vector index.
    storage:
        Blob store holding uploaded bytes.
    extractor, chunker, crawler:
        Pipeline stages.
    providers:
        Registry used to resolve the embedding provider at trigger time.
    embed_batch_size:
        Chunks per embedding request.
    max_upload_bytes:
        Largest accepted upload.
    """

    def __init__(
        self,
        documents: SQLiteDocumentRepository,
        crawl_jobs: SQLiteCrawlJobRepository,
        ledger: SQLiteChunkLedger,
        vector_store: IVectorStoreProvider,
        storage: IBlobStorageProvider,
        extractor: TextExtractor,
        chunker: TextChunker,
        crawler: CrawlerService,
        providers: ProviderRegistry,
        embed_batch_size: int = 100,
        max_upload_bytes: int = _DEFAULT_MAX_UPLOAD_BYTES,
    ) -> None:
        if embed_batch_size < 1:
            raise ValueError(f"embed_batch_size must be >= 1, got {embed_batch_size}")
        self._documents = documents
        self._crawl_jobs = crawl_jobs
        self._ledger = ledger
        self._vector_store = vector_store
        self._storage = storage
        self._extractor = extractor
        self._chunker = chunker
        self._crawler = crawler
        self._providers = providers
        self._batch_size = embed_batch_size
        self._max_upload_bytes = max_upload_bytes
        self._tasks = BackgroundTasks()
        # (source_type, source_id) -> the task currently working on it
        self._in_flight: dict[tuple[str, str], asyncio.Task[IngestionResult | None]] = {}

    # ------------------------------------------------------------------
    # Job triggers (validate synchronously, then fire and forget)
    # ------------------------------------------------------------------

    async def submit_document(
        self,
        user_id: str,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> Document:
        """Accept an upload and start ingesting it in the background.

        Returns the document record in its ``processing`` state.

        Raises
        ------
        ValidationError
            Empty or oversized upload, unsupported type, or no usable
            embedding credential.  Nothing is persisted in these cases.
        StorageError
            The blob upload failed; the record is left ``failed``.
        PipelineError
            The record vanished before it could enter ``processing``.
        """
        if not data:
            raise ValidationError(message="Uploaded file is empty")
        if len(data) > self._max_upload_bytes:
            raise ValidationError(
                message=(
                    f"File too large. Maximum size is "
                    f"{self._max_upload_bytes // (1024 * 1024)} MB"
                )
            )
        if not self._extractor.is_supported(content_type, filename):
            raise ValidationError(
                message=f"Unsupported file type: {content_type} ({filename})"
            )
        embedder = self._resolve_embedder()

        document = await self._documents.create(user_id, filename, content_type, len(data))
        key = self._storage.generate_key(user_id, document.id, filename)
        try:
            await self._storage.upload(key, data, content_type)
        except StorageError as exc:
            await self._documents.update_status(document.id, DocumentStatus.FAILED, str(exc))
            raise
        await self._documents.set_storage_key(document.id, key)
        if not await self._documents.update_status(document.id, DocumentStatus.PROCESSING):
            raise PipelineError(
                message=f"Document {document.id} could not enter processing (deleted during upload?)"
            )

        self.start_ingestion(document.id, embedder)
        return await self._documents.get(document.id) or document

    def start_ingestion(
        self,
        document_id: str,
        embedder: IEmbeddingProvider | None = None,
    ) -> None:
        """Spawn :meth:`ingest_document` as a detached background task."""
        embedder = embedder or self._resolve_embedder()
        self._spawn(DOCUMENT, document_id, self.ingest_document(document_id, embedder))

    async def submit_crawl(self, user_id: str, url: str, crawl_type: CrawlType | str) -> CrawlJob:
        """Create a crawl job and start it in the background.

        Raises
        ------
        ValidationError
            Invalid URL or crawl type, or no usable embedding credential.
        """
        url = url.strip()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValidationError(message=f"Invalid URL: {url!r}")
        try:
            mode = CrawlType(crawl_type)
        except ValueError as exc:
            raise ValidationError(
                message=f"Invalid crawl type: {crawl_type!r} (expected 'sitemap' or 'full')"
            ) from exc
        embedder = self._resolve_embedder()

        job = await self._crawl_jobs.create(user_id, url, mode)
        self.start_crawl(job.id, url, mode, embedder)
        return job

    def start_crawl(
        self,
        job_id: str,
        seed_url: str,
        crawl_type: CrawlType,
        embedder: IEmbeddingProvider | None = None,
    ) -> None:
        """Spawn :meth:`run_crawl` as a detached background task."""
        embedder = embedder or self._resolve_embedder()
        self._spawn(CRAWL_JOB, job_id, self.run_crawl(job_id, seed_url, crawl_type, embedder))

    async def rescan_document(self, document_id: str) -> Document:
        """Re-ingest a ``ready`` document from its stored bytes.

        Raises
        ------
        NotFoundError
            Unknown document.
        ValidationError
            The document is not ``ready``, is already being processed, or
            no embedding credential is available.
        """
        document = await self._documents.get(document_id)
        if document is None:
            raise NotFoundError(message=f"Document not found: {document_id}")
        if document.status is not DocumentStatus.READY:
            raise ValidationError(
                message=f"Only ready documents can be rescanned (status: {document.status.value})"
            )
        if (DOCUMENT, document_id) in self._in_flight:
            raise ValidationError(message=f"Document {document_id} is already being processed")
        embedder = self._resolve_embedder()

        self._spawn(DOCUMENT, document_id, self.reprocess_document(document_id, embedder))
        return document

    async def delete_document(self, document_id: str) -> None:
        """Delete a document, its ledger rows, its points, and its stored bytes."""
        document = await self._documents.get(document_id)
        if document is None:
            raise NotFoundError(message=f"Document not found: {document_id}")

        # Record first, so a running task sees the source is gone.
        await self._documents.delete(document_id)
        await self._purge_source(DOCUMENT, document_id)
        if document.storage_key:
            try:
                await self._storage.delete(document.storage_key)
            except StorageError as exc:
                logger.warning(
                    "blob_delete_failed",
                    document_id=document_id,
                    key=document.storage_key,
                    error=str(exc),
                )

    async def delete_crawl_job(self, job_id: str) -> None:
        """Delete a crawl job together with its ledger rows and points."""
        job = await self._crawl_jobs.get(job_id)
        if job is None:
            raise NotFoundError(message=f"Crawl job not found: {job_id}")
        await self._crawl_jobs.delete(job_id)
        await self._purge_source(CRAWL_JOB, job_id)

    async def wait_for_background_tasks(self) -> None:
        """Block until every spawned ingestion / crawl task has finished."""
        await self._tasks.wait()

    @property
    def pending_tasks(self) -> int:
        return self._tasks.pending

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    async def ingest_document(
        self,
        document_id: str,
        embedder: IEmbeddingProvider,
    ) -> IngestionResult | None:
        """Run the document pipeline.  Never raises; failures mark the document ``failed``."""
        log = logger.bind(source_type=DOCUMENT, source_id=document_id)
        try:
            document = await self._documents.get(document_id)
            if document is None or not self._document_in_progress(document):
                log.warning("ingestion_skipped", reason="document missing or not in progress")
                return None

            log.info("ingestion_started", filename=document.original_filename)
            data = await self._storage.download(document.storage_key)
            text = await self._extractor.extract(
                data, document.content_type, document.original_filename
            )
            chunks = self._chunker.chunk(text)

            result = await self._embed_and_store(
                DOCUMENT, document_id, chunks, embedder, self._document_still_active
            )
            if result.abandoned:
                return result

            # Released before the ready write, so no reader ever sees the
            # document ready and still busy.
            self._release(DOCUMENT, document_id)
            if not await self._documents.update_status(document_id, DocumentStatus.READY):
                return await self._roll_back(result)

            log.info("ingestion_completed", chunks=result.chunks, batches=result.batches)
            return result
        except GroundwellError as exc:
            log.error("ingestion_failed", error=str(exc))
            await self._mark_document_failed(document_id, str(exc))
        except Exception as exc:  # noqa: BLE001  background task must never crash
            log.exception("ingestion_crashed", error=str(exc))
            await self._mark_document_failed(document_id, _GENERIC_FAILURE)
        return None

    async def reprocess_document(
        self,
        document_id: str,
        embedder: IEmbeddingProvider,
    ) -> IngestionResult | None:
        """Purge a document's existing chunks, then run the pipeline again."""
        try:
            await self._purge_source(DOCUMENT, document_id)
        except Exception as exc:  # noqa: BLE001  ledger failure must still end in a terminal state
            logger.exception("rescan_purge_failed", document_id=document_id, error=str(exc))
            await self._mark_document_failed(document_id, f"Rescan cleanup failed: {exc}")
            return None
        return await self.ingest_document(document_id, embedder)

    async def run_crawl(
        self,
        job_id: str,
        seed_url: str,
        crawl_type: CrawlType,
        embedder: IEmbeddingProvider,
    ) -> IngestionResult | None:
        """Run the crawl pipeline.  Never raises; failures mark the job ``failed``."""
        log = logger.bind(source_type=CRAWL_JOB, source_id=job_id)
        try:
            if not await self._crawl_jobs.update_status(job_id, CrawlStatus.RUNNING):
                log.warning("crawl_skipped", reason="job missing or not pending")
                return None

            urls = await self._crawler.discover(seed_url, crawl_type)
            await self._crawl_jobs.update_status(
                job_id, CrawlStatus.RUNNING, pages_found=len(urls), pages_processed=0
            )

            results = await self._crawler.fetch_pages(urls)
            pages = [r for r in results if isinstance(r, CrawledPage)]
            for failure in results:
                if isinstance(failure, CrawlError):
                    log.warning("crawl_page_failed", error=failure.message)
            await self._crawl_jobs.update_status(
                job_id, CrawlStatus.RUNNING, pages_processed=len(pages)
            )

            chunks = [chunk for page in pages for chunk in self._chunker.chunk(page.as_text())]
            result = await self._embed_and_store(
                CRAWL_JOB, job_id, chunks, embedder, self._crawl_job_still_active
            )
            if result.abandoned:
                return result

            if not await self._crawl_jobs.update_status(
                job_id, CrawlStatus.COMPLETED, pages_processed=len(pages)
            ):
                return await self._roll_back(result)

            log.info(
                "crawl_completed",
                pages_found=len(urls),
                pages_processed=len(pages),
                chunks=result.chunks,
            )
            return result
        except GroundwellError as exc:
            log.error("crawl_failed", error=str(exc))
            await self._mark_crawl_failed(job_id, str(exc))
        except Exception as exc:  # noqa: BLE001  background task must never crash
            log.exception("crawl_crashed", error=str(exc))
            await self._mark_crawl_failed(job_id, _GENERIC_FAILURE)
        return None

    # ------------------------------------------------------------------
    # Embed / upsert / ledger
    # ------------------------------------------------------------------

    async def _embed_and_store(
        self,
        source_type: str,
        source_id: str,
        chunks: list[str],
        embedder: IEmbeddingProvider,
        still_active: Callable[[str], Awaitable[bool]],
    ) -> IngestionResult:
        """Embed *chunks* batch by batch, then write all points and ledger rows at once.

        A failing batch raises :class:`ProviderError` before anything is
        written.
        """
        log = logger.bind(source_type=source_type, source_id=source_id)
        if not chunks:
            log.info("ingestion_no_chunks")
            return IngestionResult(source_type=source_type, source_id=source_id)

        total_batches = math.ceil(len(chunks) / self._batch_size)
        vectors: list[list[float]] = []
        for number, start in enumerate(range(0, len(chunks), self._batch_size), start=1):
            batch = chunks[start : start + self._batch_size]
            try:
                batch_vectors = await embedder.embed(batch)
            except ProviderError as exc:
                raise ProviderError(
                    message=f"Embedding batch {number}/{total_batches} failed: {exc.message}",
                    provider_name=exc.provider_name or embedder.get_provider_name(),
                ) from exc
            except Exception as exc:  # noqa: BLE001  SDK/transport errors from any provider
                raise ProviderError(
                    message=f"Embedding batch {number}/{total_batches} failed: {exc}",
                    provider_name=embedder.get_provider_name(),
                ) from exc
            if len(batch_vectors) != len(batch):
                raise ProviderError(
                    message=(
                        f"Embedding batch {number}/{total_batches} returned "
                        f"{len(batch_vectors)} vectors for {len(batch)} chunks"
                    ),
                    provider_name=embedder.get_provider_name(),
                )
            vectors.extend(batch_vectors)
            log.info("embedding_batch", batch=number, of=total_batches, size=len(batch))

        if not await still_active(source_id):
            log.warning("ingestion_abandoned", reason="source deleted before write")
            return IngestionResult(
                source_type=source_type,
                source_id=source_id,
                chunks=len(chunks),
                batches=total_batches,
                abandoned=True,
            )

        points = [
            VectorPoint(id=str(uuid.uuid4()), vector=vector, content=chunk)
            for chunk, vector in zip(chunks, vectors)
        ]
        point_ids = [p.id for p in points]
        await self._vector_store.upsert(points)
        try:
            await self._ledger.insert_batch(
                [
                    NewLedgerEntry(
                        source_type=source_type,
                        source_id=source_id,
                        chunk_index=index,
                        content=point.content,
                        point_id=point.id,
                    )
                    for index, point in enumerate(points)
                ]
            )
        except Exception:
            # Points with no ledger row could never be cleaned up later.
            await self._delete_points(point_ids, source_type, source_id)
            raise

        return IngestionResult(
            source_type=source_type,
            source_id=source_id,
            chunks=len(chunks),
            batches=total_batches,
            point_ids=point_ids,
        )

    async def _purge_source(self, source_type: str, source_id: str) -> list[str]:
        """Remove the source's ledger rows and then their points.

        A failed vector delete is logged and swallowed; re-ingestion must
        not be blocked by it.
        """
        point_ids = await self._ledger.delete_by_source(source_type, source_id)
        await self._delete_points(point_ids, source_type, source_id)
        return point_ids

    async def _delete_points(self, point_ids: list[str], source_type: str, source_id: str) -> None:
        if not point_ids:
            return
        try:
            await self._vector_store.delete_by_ids(point_ids)
        except VectorStoreError as exc:
            logger.warning(
                "vector_delete_failed",
                source_type=source_type,
                source_id=source_id,
                points=len(point_ids),
                point_ids=point_ids,
                error=str(exc),
            )

    async def _roll_back(self, result: IngestionResult) -> IngestionResult:
        """Undo the writes of a run whose source disappeared before it could finish."""
        logger.warning(
            "ingestion_abandoned",
            source_type=result.source_type,
            source_id=result.source_id,
            reason="source deleted before completion",
        )
        await self._purge_source(result.source_type, result.source_id)
        return result.model_copy(update={"abandoned": True})

    # ------------------------------------------------------------------
    # Guards and failure handling
    # ------------------------------------------------------------------

    @staticmethod
    def _document_in_progress(document: Document) -> bool:
        # READY covers a rescan, which keeps the document ready while it runs.
        return document.status in (DocumentStatus.PROCESSING, DocumentStatus.READY)

    async def _document_still_active(self, document_id: str) -> bool:
        document = await self._documents.get(document_id)
        return document is not None and self._document_in_progress(document)

    async def _crawl_job_still_active(self, job_id: str) -> bool:
        job = await self._crawl_jobs.get(job_id)
        return job is not None and job.status is CrawlStatus.RUNNING

    async def _mark_document_failed(self, document_id: str, message: str) -> None:
        try:
            await self._documents.update_status(document_id, DocumentStatus.FAILED, message)
        except Exception as exc:  # noqa: BLE001  last-resort path inside a background task
            logger.exception("status_update_failed", source_id=document_id, error=str(exc))

    async def _mark_crawl_failed(self, job_id: str, message: str) -> None:
        try:
            await self._crawl_jobs.update_status(job_id, CrawlStatus.FAILED, error_message=message)
        except Exception as exc:  # noqa: BLE001  last-resort path inside a background task
            logger.exception("status_update_failed", source_id=job_id, error=str(exc))

    def _resolve_embedder(self) -> IEmbeddingProvider:
        try:
            return self._providers.embedding()
        except ConfigurationError as exc:
            raise ValidationError(
                message=f"No usable embedding provider: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc

    def _spawn(
        self,
        source_type: str,
        source_id: str,
        coro: Coroutine[object, object, IngestionResult | None],
    ) -> None:
        key = (source_type, source_id)
        task = self._tasks.spawn(coro, name=f"{source_type}:{source_id}")
        self._in_flight[key] = task
        task.add_done_callback(lambda done: self._release(source_type, source_id, done))

    def _release(
        self,
        source_type: str,
        source_id: str,
        task: asyncio.Task[IngestionResult | None] | None = None,
    ) -> None:
        """Drop the in-flight mark, but only if *task* (default: the current one) holds it."""
        key = (source_type, source_id)
        owner = task if task is not None else asyncio.current_task()
        if self._in_flight.get(key) is owner:
            del self._in_flight[key]
