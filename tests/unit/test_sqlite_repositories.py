"""Unit tests for the SQLite document and crawl-job repositories.

Each test runs against a fresh database file under ``tmp_path``.
"""

from __future__ import annotations

import pytest

from groundwell.models.source import CrawlStatus, CrawlType, DocumentStatus
from groundwell.providers.persistence.sqlite_crawl_job_repository import SQLiteCrawlJobRepository
from groundwell.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository


class TestDocumentRepository:
    @pytest.mark.asyncio
    async def test_create_and_get(self, document_repository: SQLiteDocumentRepository) -> None:
        created = await document_repository.create("user-1", "Q3 report.pdf", "application/pdf", 1234)

        fetched = await document_repository.get(created.id)
        assert fetched is not None
        assert fetched.status is DocumentStatus.UPLOADING
        assert fetched.original_filename == "Q3 report.pdf"
        assert fetched.filename == "Q3_report.pdf"
        assert fetched.size_bytes == 1234
        assert fetched.processed_at is None

    @pytest.mark.asyncio
    async def test_get_missing(self, document_repository: SQLiteDocumentRepository) -> None:
        assert await document_repository.get("nope") is None

    @pytest.mark.asyncio
    async def test_list_by_user(self, document_repository: SQLiteDocumentRepository) -> None:
        await document_repository.create("alice", "a.txt", "text/plain", 1)
        await document_repository.create("alice", "b.txt", "text/plain", 1)
        await document_repository.create("bob", "c.txt", "text/plain", 1)

        docs = await document_repository.list_by_user("alice")
        assert {d.original_filename for d in docs} == {"a.txt", "b.txt"}

    @pytest.mark.asyncio
    async def test_storage_key(self, document_repository: SQLiteDocumentRepository) -> None:
        doc = await document_repository.create("u", "a.txt", "text/plain", 1)
        await document_repository.set_storage_key(doc.id, "users/u/x/a.txt")
        fetched = await document_repository.get(doc.id)
        assert fetched is not None and fetched.storage_key == "users/u/x/a.txt"

    @pytest.mark.asyncio
    async def test_happy_path_transitions(
        self, document_repository: SQLiteDocumentRepository
    ) -> None:
        doc = await document_repository.create("u", "a.txt", "text/plain", 1)

        assert await document_repository.update_status(doc.id, DocumentStatus.PROCESSING)
        assert await document_repository.update_status(doc.id, DocumentStatus.READY)

        fetched = await document_repository.get(doc.id)
        assert fetched is not None
        assert fetched.status is DocumentStatus.READY
        assert fetched.processed_at is not None

    @pytest.mark.asyncio
    async def test_ready_can_refresh(self, document_repository: SQLiteDocumentRepository) -> None:
        doc = await document_repository.create("u", "a.txt", "text/plain", 1)
        await document_repository.update_status(doc.id, DocumentStatus.PROCESSING)
        await document_repository.update_status(doc.id, DocumentStatus.READY)
        first = await document_repository.get(doc.id)

        assert await document_repository.update_status(doc.id, DocumentStatus.READY)
        second = await document_repository.get(doc.id)
        assert first is not None and second is not None
        assert second.processed_at >= first.processed_at

    @pytest.mark.asyncio
    async def test_failed_is_terminal(self, document_repository: SQLiteDocumentRepository) -> None:
        doc = await document_repository.create("u", "a.txt", "text/plain", 1)
        await document_repository.update_status(doc.id, DocumentStatus.PROCESSING)
        assert await document_repository.update_status(
            doc.id, DocumentStatus.FAILED, "boom"
        )

        for target in DocumentStatus:
            assert not await document_repository.update_status(doc.id, target)

        fetched = await document_repository.get(doc.id)
        assert fetched is not None
        assert fetched.status is DocumentStatus.FAILED
        assert fetched.error_message == "boom"

    @pytest.mark.asyncio
    async def test_no_regression_or_skip(
        self, document_repository: SQLiteDocumentRepository
    ) -> None:
        doc = await document_repository.create("u", "a.txt", "text/plain", 1)
        # uploading cannot jump straight to ready
        assert not await document_repository.update_status(doc.id, DocumentStatus.READY)
        await document_repository.update_status(doc.id, DocumentStatus.PROCESSING)
        assert not await document_repository.update_status(doc.id, DocumentStatus.UPLOADING)

    @pytest.mark.asyncio
    async def test_update_deleted_document(
        self, document_repository: SQLiteDocumentRepository
    ) -> None:
        doc = await document_repository.create("u", "a.txt", "text/plain", 1)
        await document_repository.update_status(doc.id, DocumentStatus.PROCESSING)
        assert await document_repository.delete(doc.id)

        assert not await document_repository.update_status(doc.id, DocumentStatus.READY)
        assert not await document_repository.delete(doc.id)


class TestCrawlJobRepository:
    @pytest.mark.asyncio
    async def test_create_pending(self, crawl_job_repository: SQLiteCrawlJobRepository) -> None:
        job = await crawl_job_repository.create("u", "https://example.com", CrawlType.FULL)

        fetched = await crawl_job_repository.get(job.id)
        assert fetched is not None
        assert fetched.status is CrawlStatus.PENDING
        assert fetched.crawl_type is CrawlType.FULL
        assert fetched.pages_found == 0
        assert fetched.started_at is None

    @pytest.mark.asyncio
    async def test_progress_counters(self, crawl_job_repository: SQLiteCrawlJobRepository) -> None:
        job = await crawl_job_repository.create("u", "https://example.com", CrawlType.SITEMAP)

        assert await crawl_job_repository.update_status(job.id, CrawlStatus.RUNNING)
        started = (await crawl_job_repository.get(job.id)).started_at
        assert started is not None

        await crawl_job_repository.update_status(job.id, CrawlStatus.RUNNING, pages_found=10)
        await crawl_job_repository.update_status(job.id, CrawlStatus.RUNNING, pages_processed=7)
        assert await crawl_job_repository.update_status(job.id, CrawlStatus.COMPLETED)

        fetched = await crawl_job_repository.get(job.id)
        assert fetched is not None
        assert fetched.status is CrawlStatus.COMPLETED
        assert fetched.pages_found == 10
        assert fetched.pages_processed == 7
        assert fetched.started_at == started
        assert fetched.completed_at is not None

    @pytest.mark.asyncio
    async def test_terminal_states(self, crawl_job_repository: SQLiteCrawlJobRepository) -> None:
        done = await crawl_job_repository.create("u", "https://a.com", CrawlType.SITEMAP)
        await crawl_job_repository.update_status(done.id, CrawlStatus.RUNNING)
        await crawl_job_repository.update_status(done.id, CrawlStatus.COMPLETED)

        failed = await crawl_job_repository.create("u", "https://b.com", CrawlType.SITEMAP)
        await crawl_job_repository.update_status(
            failed.id, CrawlStatus.FAILED, error_message="sitemap 404"
        )

        for job_id in (done.id, failed.id):
            for target in CrawlStatus:
                assert not await crawl_job_repository.update_status(job_id, target)
        assert (await crawl_job_repository.get(failed.id)).error_message == "sitemap 404"

    @pytest.mark.asyncio
    async def test_pending_cannot_complete(
        self, crawl_job_repository: SQLiteCrawlJobRepository
    ) -> None:
        job = await crawl_job_repository.create("u", "https://a.com", CrawlType.FULL)
        assert not await crawl_job_repository.update_status(job.id, CrawlStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_list_and_delete(self, crawl_job_repository: SQLiteCrawlJobRepository) -> None:
        job = await crawl_job_repository.create("u", "https://a.com", CrawlType.FULL)
        await crawl_job_repository.create("other", "https://b.com", CrawlType.FULL)

        assert [j.id for j in await crawl_job_repository.list_by_user("u")] == [job.id]
        assert await crawl_job_repository.delete(job.id)
        assert await crawl_job_repository.get(job.id) is None
