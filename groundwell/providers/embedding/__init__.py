"""Embedding provider adapters.

A single implementation, OpenAICompatibleEmbeddingProvider, covers every
embedding-capable provider (OpenAI, Mistral, Together, Ollama) through the
openai SDK with a per-provider base URL.  ProviderRegistry picks the
endpoint and model; ingestion receives the built client.
"""

from groundwell.providers.embedding.openai_embedding_provider import (
    OpenAICompatibleEmbeddingProvider,
)

__all__ = ["OpenAICompatibleEmbeddingProvider"]
