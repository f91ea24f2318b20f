"""SQLite-backed document records.

Persists :class:`~groundwell.models.source.Document` rows using
``aiosqlite``.  Status changes go through a conditional ``UPDATE`` whose
``WHERE status IN (...)`` clause lists the legal predecessor states, so the
lifecycle can never regress even if two writers race; a rejected transition
simply updates zero rows.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from groundwell.interfaces.blob_storage_provider import sanitize_filename
from groundwell.models.source import Document, DocumentStatus, document_predecessors, utc_now

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/groundwell.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id                 TEXT    PRIMARY KEY,
    user_id            TEXT    NOT NULL,
    filename           TEXT    NOT NULL,
    original_filename  TEXT    NOT NULL,
    storage_key        TEXT    NOT NULL DEFAULT '',
    content_type       TEXT    NOT NULL,
    size_bytes         INTEGER NOT NULL,
    status             TEXT    NOT NULL,
    error_message      TEXT,
    created_at         TEXT    NOT NULL,
    processed_at       TEXT
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_user ON documents(user_id);",
]

_COLUMNS = (
    "id, user_id, filename, original_filename, storage_key, content_type, "
    "size_bytes, status, error_message, created_at, processed_at"
)


def _row_to_document(row: aiosqlite.Row) -> Document:
    return Document(
        id=row["id"],
        user_id=row["user_id"],
        filename=row["filename"],
        original_filename=row["original_filename"],
        storage_key=row["storage_key"],
        content_type=row["content_type"],
        size_bytes=row["size_bytes"],
        status=DocumentStatus(row["status"]),
        error_message=row["error_message"],
        created_at=datetime.fromisoformat(row["created_at"]),
        processed_at=datetime.fromisoformat(row["processed_at"]) if row["processed_at"] else None,
    )


class SQLiteDocumentRepository:
    """Document persistence over a shared SQLite database file."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("documents_table_initialized", path=str(self._db_path))

    async def create(
        self,
        user_id: str,
        original_filename: str,
        content_type: str,
        size_bytes: int,
    ) -> Document:
        """Insert a new document in the ``uploading`` state and return it."""
        document = Document(
            id=str(uuid.uuid4()),
            user_id=user_id,
            filename=sanitize_filename(original_filename),
            original_filename=original_filename,
            content_type=content_type,
            size_bytes=size_bytes,
            status=DocumentStatus.UPLOADING,
        )
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                f"INSERT INTO documents ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    document.id,
                    document.user_id,
                    document.filename,
                    document.original_filename,
                    document.storage_key,
                    document.content_type,
                    document.size_bytes,
                    document.status.value,
                    document.error_message,
                    document.created_at.isoformat(),
                    None,
                ),
            )
            await db.commit()
        logger.info("document_created", document_id=document.id, user_id=user_id)
        return document

    async def get(self, document_id: str) -> Document | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM documents WHERE id = ?",
                (document_id,),
            )
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def list_by_user(self, user_id: str) -> list[Document]:
        """Return the user's documents, newest first."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM documents WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_document(r) for r in rows]

    async def set_storage_key(self, document_id: str, storage_key: str) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "UPDATE documents SET storage_key = ? WHERE id = ?",
                (storage_key, document_id),
            )
            await db.commit()

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        error_message: str | None = None,
    ) -> bool:
        """Advance the document to *status* if the state machine allows it.

        ``processed_at`` is stamped when the document reaches ``ready`` or
        ``failed``.  Returns ``False`` (and changes nothing) when the
        document no longer exists or the transition is not allowed.
        """
        predecessors = [s.value for s in document_predecessors(status)]
        if not predecessors:
            return False
        placeholders = ", ".join("?" for _ in predecessors)
        processed_at = (
            utc_now().isoformat()
            if status in (DocumentStatus.READY, DocumentStatus.FAILED)
            else None
        )
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "UPDATE documents "
                "SET status = ?, error_message = ?, "
                "    processed_at = COALESCE(?, processed_at) "
                f"WHERE id = ? AND status IN ({placeholders})",
                (status.value, error_message, processed_at, document_id, *predecessors),
            )
            await db.commit()
            updated = cursor.rowcount > 0

        if updated:
            logger.info("document_status_changed", document_id=document_id, status=status.value)
        else:
            logger.warning(
                "document_status_rejected",
                document_id=document_id,
                requested=status.value,
            )
        return updated

    async def delete(self, document_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("document_deleted", document_id=document_id)
        return deleted
