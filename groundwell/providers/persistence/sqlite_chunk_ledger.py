"""SQLite-backed chunk ledger.

Every point written to the vector index gets one ledger row recording which
source it came from and its position in that source:

    (id, source_type, source_id, chunk_index, content, point_id, created_at)

``chunk_index`` is unique per ``(source_type, source_id)`` and dense from 0.
The ledger is the authority on which points must be removed when a source
is deleted or rescanned: :meth:`SQLiteChunkLedger.delete_by_source` hands
back the point ids of the rows it removed, and if the subsequent vector
delete fails those points are orphaned in the index but never referenced
again.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from groundwell.models.rag import LedgerEntry, NewLedgerEntry
from groundwell.models.source import utc_now

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/groundwell.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS document_chunks (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    source_type  TEXT    NOT NULL,
    source_id    TEXT    NOT NULL,
    chunk_index  INTEGER NOT NULL,
    content      TEXT    NOT NULL,
    point_id     TEXT    NOT NULL UNIQUE,
    created_at   TEXT    NOT NULL,
    UNIQUE(source_type, source_id, chunk_index)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chunks_source ON document_chunks(source_type, source_id);",
]

_INSERT_SQL = """\
INSERT INTO document_chunks (source_type, source_id, chunk_index, content, point_id, created_at)
VALUES (?, ?, ?, ?, ?, ?);
"""


class SQLiteChunkLedger:
    """Relational record of vector points per source."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the document_chunks table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("chunk_ledger_initialized", path=str(self._db_path))

    async def insert_batch(self, entries: list[NewLedgerEntry]) -> int:
        """Write all *entries* in one transaction.  Returns the number written.

        Either every row lands or none does (a unique-index violation rolls
        the whole batch back).
        """
        if not entries:
            return 0
        created_at = utc_now().isoformat()
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.executemany(
                _INSERT_SQL,
                [
                    (e.source_type, e.source_id, e.chunk_index, e.content, e.point_id, created_at)
                    for e in entries
                ],
            )
            await db.commit()
        logger.info(
            "chunk_ledger_written",
            source_type=entries[0].source_type,
            source_id=entries[0].source_id,
            entries=len(entries),
        )
        return len(entries)

    async def list_by_source(self, source_type: str, source_id: str) -> list[LedgerEntry]:
        """Return the source's ledger rows ordered by chunk_index."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT id, source_type, source_id, chunk_index, content, point_id, created_at "
                "FROM document_chunks WHERE source_type = ? AND source_id = ? "
                "ORDER BY chunk_index",
                (source_type, source_id),
            )
            rows = await cursor.fetchall()
        return [
            LedgerEntry(
                id=r["id"],
                source_type=r["source_type"],
                source_id=r["source_id"],
                chunk_index=r["chunk_index"],
                content=r["content"],
                point_id=r["point_id"],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    async def count_by_source(self, source_type: str, source_id: str) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM document_chunks WHERE source_type = ? AND source_id = ?",
                (source_type, source_id),
            )
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def delete_by_source(self, source_type: str, source_id: str) -> list[str]:
        """Delete every ledger row for the source and return their point ids."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            # BEGIN IMMEDIATE so no insert for this source slips in between
            # the SELECT and the DELETE.
            await db.execute("BEGIN IMMEDIATE")
            cursor = await db.execute(
                "SELECT point_id FROM document_chunks WHERE source_type = ? AND source_id = ?",
                (source_type, source_id),
            )
            point_ids = [row[0] for row in await cursor.fetchall()]
            await db.execute(
                "DELETE FROM document_chunks WHERE source_type = ? AND source_id = ?",
                (source_type, source_id),
            )
            await db.commit()
        if point_ids:
            logger.info(
                "chunk_ledger_cleared",
                source_type=source_type,
                source_id=source_id,
                entries=len(point_ids),
            )
        return point_ids
