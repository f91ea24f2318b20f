"""Abstract interfaces for groundwell's external collaborators.

Every external dependency (embeddings, completions, vector index, blob
storage) is reached through an ABC defined here, so concrete providers can
be swapped and tests can inject fakes.
"""

from groundwell.interfaces.blob_storage_provider import IBlobStorageProvider
from groundwell.interfaces.embedding_provider import IEmbeddingProvider
from groundwell.interfaces.llm_provider import ILLMProvider
from groundwell.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IBlobStorageProvider",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
