"""Abstract base class for the blob store holding uploaded document bytes."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: str) -> str:
    """Reduce *filename* to a single safe path segment (``"report final.pdf"`` -> ``"report_final.pdf"``)."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).strip("._")
    return name or "unnamed"


# Concrete implementation: LocalBlobStorage (groundwell/providers/storage/)
class IBlobStorageProvider(ABC):
    """Contract for storing and retrieving raw upload bytes by key."""

    @staticmethod
    def generate_key(user_id: str, document_id: str, filename: str) -> str:
        """Return the storage key ``users/{user_id}/{document_id}/{filename}``."""
        return f"users/{user_id}/{document_id}/{sanitize_filename(filename)}"

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        """Store *data* under *key*, replacing any existing object."""

    @abstractmethod
    async def download(self, key: str) -> bytes:
        """Return the bytes stored under *key*.

        Raises
        ------
        groundwell.utils.errors.StorageError
            If the key does not exist or cannot be read.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the object under *key*.  Deleting a missing key is not an error."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"local-blob-storage"``."""
