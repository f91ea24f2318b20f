"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
The same adapter serves OpenAI itself and every OpenAI-compatible
embeddings endpoint (Mistral, Together, Ollama's ``/v1``) by pointing the
client at a different ``base_url``; the provider registry supplies the URL,
model, and credential.

Batching is the caller's job: the ingestion orchestrator sends fixed-size
batches and treats a failed call as fatal for the whole source, so this
adapter makes exactly one API request per :meth:`embed` call.
"""

from __future__ import annotations

import openai
import structlog

from groundwell.interfaces.embedding_provider import IEmbeddingProvider
from groundwell.utils.errors import ProviderError

logger = structlog.get_logger(logger_name=__name__)

# Known embedding model dimensions; unknown models fall back to the
# configured collection size.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "mistral-embed": 1024,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "togethercomputer/m2-bert-80M-8k-retrieval": 768,
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
}


class OpenAICompatibleEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Parameters
    ----------
    provider:
        Registry id of the upstream service (``"openai"``, ``"mistral"`` ...).
    api_key:
        Credential for the service.  Ollama accepts any non-empty string.
    model:
        Embedding model name.
    base_url:
        Endpoint override; ``None`` uses the SDK default (api.openai.com).
    default_dimension:
        Dimension reported for models missing from the known-model table.
    """

    def __init__(
        self,
        provider: str,
        api_key: str,
        model: str,
        base_url: str | None = None,
        default_dimension: int = 1536,
    ) -> None:
        self._provider = provider
        self._api_key = api_key
        self._model = model
        client_kwargs: dict = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._dimension = _MODEL_DIMENSIONS.get(model, default_dimension)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        try:
            response = await self._client.embeddings.create(input=texts, model=self._model)
        except openai.APIError as exc:
            raise ProviderError(
                message=f"Embedding request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        # The API may return items out of order; ``index`` is authoritative.
        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise ProviderError(
                message=f"Expected {len(texts)} embeddings, received {len(data)}",
                provider_name=self.get_provider_name(),
            )

        logger.debug(
            "embedding_request",
            provider=self._provider,
            model=self._model,
            batch_size=len(texts),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return [item.embedding for item in data]

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"{self._provider}:{self._model}"

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def aclose(self) -> None:
        await self._client.close()
