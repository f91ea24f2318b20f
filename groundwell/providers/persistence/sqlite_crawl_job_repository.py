"""SQLite-backed crawl job records.

Same conditional-update scheme as the document repository: a status write
only lands when the current status is a legal predecessor, so a crawl job
that has failed or completed can never be revived.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from groundwell.models.source import CrawlJob, CrawlStatus, CrawlType, crawl_predecessors, utc_now

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/groundwell.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS crawl_jobs (
    id               TEXT    PRIMARY KEY,
    user_id          TEXT    NOT NULL,
    url              TEXT    NOT NULL,
    crawl_type       TEXT    NOT NULL,
    status           TEXT    NOT NULL,
    pages_found      INTEGER NOT NULL DEFAULT 0,
    pages_processed  INTEGER NOT NULL DEFAULT 0,
    error_message    TEXT,
    created_at       TEXT    NOT NULL,
    started_at       TEXT,
    completed_at     TEXT
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_crawl_jobs_user ON crawl_jobs(user_id);",
]

_COLUMNS = (
    "id, user_id, url, crawl_type, status, pages_found, pages_processed, "
    "error_message, created_at, started_at, completed_at"
)


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_job(row: aiosqlite.Row) -> CrawlJob:
    return CrawlJob(
        id=row["id"],
        user_id=row["user_id"],
        url=row["url"],
        crawl_type=CrawlType(row["crawl_type"]),
        status=CrawlStatus(row["status"]),
        pages_found=row["pages_found"],
        pages_processed=row["pages_processed"],
        error_message=row["error_message"],
        created_at=datetime.fromisoformat(row["created_at"]),
        started_at=_parse_ts(row["started_at"]),
        completed_at=_parse_ts(row["completed_at"]),
    )


class SQLiteCrawlJobRepository:
    """Crawl job persistence over a shared SQLite database file."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the crawl_jobs table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("crawl_jobs_table_initialized", path=str(self._db_path))

    async def create(self, user_id: str, url: str, crawl_type: CrawlType) -> CrawlJob:
        """Insert a new crawl job in the ``pending`` state and return it."""
        job = CrawlJob(id=str(uuid.uuid4()), user_id=user_id, url=url, crawl_type=crawl_type)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                f"INSERT INTO crawl_jobs ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    job.id,
                    job.user_id,
                    job.url,
                    job.crawl_type.value,
                    job.status.value,
                    0,
                    0,
                    None,
                    job.created_at.isoformat(),
                    None,
                    None,
                ),
            )
            await db.commit()
        logger.info("crawl_job_created", job_id=job.id, url=url, crawl_type=crawl_type.value)
        return job

    async def get(self, job_id: str) -> CrawlJob | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(f"SELECT {_COLUMNS} FROM crawl_jobs WHERE id = ?", (job_id,))
            row = await cursor.fetchone()
        return _row_to_job(row) if row else None

    async def list_by_user(self, user_id: str) -> list[CrawlJob]:
        """Return the user's crawl jobs, newest first."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM crawl_jobs WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_job(r) for r in rows]

    async def update_status(
        self,
        job_id: str,
        status: CrawlStatus,
        *,
        pages_found: int | None = None,
        pages_processed: int | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Advance the job to *status*, optionally updating its counters.

        ``started_at`` is stamped the first time the job enters ``running``;
        ``completed_at`` when it reaches ``completed`` or ``failed``.
        Counters left as ``None`` keep their stored value.  Returns ``False``
        when the job is gone or the transition is not allowed.
        """
        predecessors = [s.value for s in crawl_predecessors(status)]
        if not predecessors:
            return False
        placeholders = ", ".join("?" for _ in predecessors)
        now = utc_now().isoformat()
        started_at = now if status is CrawlStatus.RUNNING else None
        completed_at = (
            now if status in (CrawlStatus.COMPLETED, CrawlStatus.FAILED) else None
        )
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "UPDATE crawl_jobs "
                "SET status = ?, "
                "    pages_found = COALESCE(?, pages_found), "
                "    pages_processed = COALESCE(?, pages_processed), "
                "    error_message = COALESCE(?, error_message), "
                "    started_at = COALESCE(started_at, ?), "
                "    completed_at = COALESCE(?, completed_at) "
                f"WHERE id = ? AND status IN ({placeholders})",
                (
                    status.value,
                    pages_found,
                    pages_processed,
                    error_message,
                    started_at,
                    completed_at,
                    job_id,
                    *predecessors,
                ),
            )
            await db.commit()
            updated = cursor.rowcount > 0

        if updated:
            logger.info(
                "crawl_job_status_changed",
                job_id=job_id,
                status=status.value,
                pages_found=pages_found,
                pages_processed=pages_processed,
            )
        else:
            logger.warning("crawl_job_status_rejected", job_id=job_id, requested=status.value)
        return updated

    async def delete(self, job_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("DELETE FROM crawl_jobs WHERE id = ?", (job_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("crawl_job_deleted", job_id=job_id)
        return deleted
