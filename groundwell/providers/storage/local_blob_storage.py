"""Filesystem-backed blob storage.

Objects live under ``root_dir/<key>``; keys follow the
``users/{user_id}/{document_id}/{filename}`` layout produced by
:meth:`IBlobStorageProvider.generate_key`.  File I/O runs in a worker
thread so large uploads do not block the event loop.
"""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath

import structlog

from groundwell.interfaces.blob_storage_provider import IBlobStorageProvider
from groundwell.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "local-blob-storage"


class LocalBlobStorage(IBlobStorageProvider):
    """Blob store rooted at a local directory."""

    def __init__(self, root_dir: str | Path) -> None:
        self._root = Path(root_dir).resolve()

    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to store '{key}': {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        logger.info("blob_uploaded", key=key, size_bytes=len(data), content_type=content_type)

    async def download(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise StorageError(
                message=f"Object not found: '{key}'",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except OSError as exc:
            raise StorageError(
                message=f"Failed to read '{key}': {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to delete '{key}': {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        logger.info("blob_deleted", key=key)

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def _path_for(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not key or key.startswith("/") or any(p in ("..", "") for p in parts):
            raise StorageError(message=f"Invalid storage key: '{key}'", provider_name=_PROVIDER_NAME)
        return self._root.joinpath(*parts)
