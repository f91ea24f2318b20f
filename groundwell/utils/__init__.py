"""Utility modules for groundwell.

- **errors** -- exception hierarchy rooted at GroundwellError; each stage of
  a source's lifecycle raises its own subclass.
- **concurrency** -- semaphore-bounded gather and the background task
  registry used for detached ingestion jobs.
- **logging** -- structlog setup with console rendering in development and
  JSON in production.
"""

from groundwell.utils.concurrency import BackgroundTasks, throttled_gather
from groundwell.utils.errors import (
    ConfigurationError,
    CrawlError,
    ExtractionError,
    ExtractionTimeoutError,
    GroundwellError,
    NotFoundError,
    PipelineError,
    ProviderError,
    StorageError,
    ValidationError,
    VectorStoreError,
)
from groundwell.utils.logging import configure_logging, get_logger

__all__ = [
    "BackgroundTasks",
    "ConfigurationError",
    "CrawlError",
    "ExtractionError",
    "ExtractionTimeoutError",
    "GroundwellError",
    "NotFoundError",
    "PipelineError",
    "ProviderError",
    "StorageError",
    "ValidationError",
    "VectorStoreError",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]
