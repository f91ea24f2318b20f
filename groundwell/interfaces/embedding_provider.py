"""Abstract base class for text-embedding service providers.

Implementations wrap an external embeddings API (OpenAI or any
OpenAI-compatible endpoint such as Mistral, Together, or a local Ollama).
Ingestion and retrieval depend only on this contract, so tests substitute a
deterministic hash-based fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAICompatibleEmbeddingProvider
# Located in: groundwell/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for embedding services used by ingestion and retrieval."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Texts to embed in a single API call.  Callers are responsible
            for keeping batches within the provider's per-call limit.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*.

        Raises
        ------
        groundwell.utils.errors.ProviderError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for one text (e.g. a chat query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of produced vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"openai:text-embedding-3-small"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has what it needs to make calls."""

    async def aclose(self) -> None:
        """Release the underlying HTTP client.  No-op unless overridden."""
