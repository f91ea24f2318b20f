"""Exception hierarchy for groundwell.

Every application error derives from :class:`GroundwellError`, which carries
an optional ``provider_name`` naming the external system involved (e.g.
"openai", "qdrant", "blob-storage").  The tree follows the lifecycle of a
content source:

    GroundwellError  (base)
    +-- ValidationError          (rejected synchronously, before any background work)
    +-- NotFoundError            (unknown document / crawl job)
    +-- ConfigurationError       (missing credential, unknown provider, bad settings)
    +-- ExtractionError          (unsupported, corrupt, or undecodable file)
    |   +-- ExtractionTimeoutError  (extraction exceeded its wall-clock bound)
    +-- ProviderError            (embedding or completion call failed)
    +-- VectorStoreError         (Qdrant request failed or dimension mismatch)
    +-- StorageError             (blob upload / download / delete failed)
    +-- CrawlError               (sitemap / discovery / page fetch failed)
    +-- PipelineError            (invalid lifecycle transition requested)

Background ingestion converts anything below the base class into the
source's ``failed`` state; the API middleware converts it into a JSON
error body.
"""


class GroundwellError(Exception):
    """Base exception for all groundwell errors.

    ``__str__`` prefixes the provider name in brackets, e.g.
    ``[openai] Embedding batch 2/3 failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller-visible errors (raised before a background task is spawned)
# ---------------------------------------------------------------------------

class ValidationError(GroundwellError):
    """Raised when a request is rejected: bad URL, unsupported file, missing credential."""

    def __init__(
        self,
        message: str = "Request validation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(GroundwellError):
    """Raised when a document or crawl job does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(GroundwellError):
    """Raised when configuration or credentials are invalid or missing."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Ingestion errors (recorded on the source as error_message)
# ---------------------------------------------------------------------------

class ExtractionError(GroundwellError):
    """Raised when text cannot be extracted from an uploaded file."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionTimeoutError(ExtractionError):
    """Raised when extraction exceeds its wall-clock limit.

    Kept distinct from a parse failure so operators can tell a pathological
    file from a corrupt one.
    """

    def __init__(
        self,
        message: str = "Text extraction timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderError(GroundwellError):
    """Raised when an embedding or completion provider call fails."""

    def __init__(
        self,
        message: str = "Provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorStoreError(GroundwellError):
    """Raised when a vector index operation fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(GroundwellError):
    """Raised when the blob store cannot upload, download, or delete an object."""

    def __init__(
        self,
        message: str = "Blob storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CrawlError(GroundwellError):
    """Raised when URL discovery fails, or returned per page when a fetch fails."""

    def __init__(
        self,
        message: str = "Crawl failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(GroundwellError):
    """Raised when a lifecycle transition is requested that the state machine forbids."""

    def __init__(
        self,
        message: str = "Invalid pipeline state transition",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
