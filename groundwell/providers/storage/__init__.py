"""Blob storage for uploaded document bytes."""

from groundwell.providers.storage.local_blob_storage import LocalBlobStorage

__all__ = ["LocalBlobStorage"]
