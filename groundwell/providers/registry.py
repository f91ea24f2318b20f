"""Provider registry: builds LLM and embedding clients by provider name.

Callers ask for ``registry.embedding("mistral")`` or ``registry.llm()``
(configured default) and receive a ready client, or a
:class:`ConfigurationError` when the provider is unknown, cannot do what was
asked (Anthropic has no embeddings API), or has no credential.

# ─── PROVIDER TABLE ───────────────────────────────────────────────────
#
#   id          transport           completion  embeddings
#   ─────────────────────────────────────────────────────
#   openai      openai SDK          yes         yes
#   anthropic   anthropic SDK       yes         no
#   groq        openai SDK + url    yes         no
#   deepseek    openai SDK + url    yes         no
#   mistral     openai SDK + url    yes         yes
#   together    openai SDK + url    yes         yes
#   openrouter  openai SDK + url    yes         no
#   xai         openai SDK + url    yes         no
#   perplexity  openai SDK + url    yes         no
#   ollama      openai SDK + url    yes         yes   (no key needed)
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, ConfigDict, Field

from groundwell.config.settings import Settings
from groundwell.interfaces.embedding_provider import IEmbeddingProvider
from groundwell.interfaces.llm_provider import ILLMProvider
from groundwell.providers.embedding.openai_embedding_provider import (
    OpenAICompatibleEmbeddingProvider,
)
from groundwell.providers.llm.anthropic_provider import AnthropicLLMProvider
from groundwell.providers.llm.openai_provider import OpenAICompatibleLLMProvider
from groundwell.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class ProviderInfo(BaseModel):
    """Static description of a supported provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    base_url: str | None = Field(default=None, description="OpenAI-compatible endpoint, if any.")
    supports_completion: bool = True
    supports_embeddings: bool = False
    default_model: str
    default_embedding_model: str | None = None
    requires_api_key: bool = True


_PROVIDERS: dict[str, ProviderInfo] = {
    info.id: info
    for info in (
        ProviderInfo(
            id="openai",
            name="OpenAI",
            supports_embeddings=True,
            default_model="gpt-4o",
            default_embedding_model="text-embedding-3-small",
        ),
        ProviderInfo(
            id="anthropic",
            name="Anthropic",
            default_model="claude-sonnet-4-20250514",
        ),
        ProviderInfo(
            id="groq",
            name="Groq",
            base_url="https://api.groq.com/openai/v1",
            default_model="llama-3.3-70b-versatile",
        ),
        ProviderInfo(
            id="deepseek",
            name="DeepSeek",
            base_url="https://api.deepseek.com/v1",
            default_model="deepseek-chat",
        ),
        ProviderInfo(
            id="mistral",
            name="Mistral",
            base_url="https://api.mistral.ai/v1",
            supports_embeddings=True,
            default_model="mistral-large-latest",
            default_embedding_model="mistral-embed",
        ),
        ProviderInfo(
            id="together",
            name="Together AI",
            base_url="https://api.together.xyz/v1",
            supports_embeddings=True,
            default_model="meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo",
            default_embedding_model="togethercomputer/m2-bert-80M-8k-retrieval",
        ),
        ProviderInfo(
            id="openrouter",
            name="OpenRouter",
            base_url="https://openrouter.ai/api/v1",
            default_model="openai/gpt-4o",
        ),
        ProviderInfo(
            id="xai",
            name="xAI",
            base_url="https://api.x.ai/v1",
            default_model="grok-2-latest",
        ),
        ProviderInfo(
            id="perplexity",
            name="Perplexity",
            base_url="https://api.perplexity.ai",
            default_model="sonar",
        ),
        ProviderInfo(
            id="ollama",
            name="Ollama",
            supports_embeddings=True,
            default_model="llama3.1",
            default_embedding_model="nomic-embed-text",
            requires_api_key=False,
        ),
    )
}

# Aliases accepted in settings and requests.
_ALIASES = {"claude": "anthropic", "grok": "xai"}


def supported_providers() -> list[ProviderInfo]:
    """Return metadata for every provider the registry can build."""
    return list(_PROVIDERS.values())


class ProviderRegistry:
    """Resolve provider names to configured LLM / embedding clients."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        # One client per (kind, provider, model, key); SDK clients hold a
        # connection pool and are closed by aclose() at shutdown.
        self._llms: dict[tuple[str, str, str, str], ILLMProvider] = {}
        self._embedders: dict[tuple[str, str, str, str], IEmbeddingProvider] = {}

    def get_info(self, provider: str) -> ProviderInfo:
        key = provider.strip().lower()
        key = _ALIASES.get(key, key)
        info = _PROVIDERS.get(key)
        if info is None:
            raise ConfigurationError(message=f"Unsupported provider: {provider!r}")
        return info

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def llm(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
    ) -> ILLMProvider:
        info = self.get_info(provider or self._settings.default_provider)
        key = self._resolve_key(info, api_key)
        if model is None:
            model = (
                self._settings.default_model
                if info.id == self._settings.default_provider
                else info.default_model
            )

        cache_key = ("llm", info.id, model, key)
        cached = self._llms.get(cache_key)
        if cached is None:
            if info.id == "anthropic":
                cached = AnthropicLLMProvider(api_key=key, model=model)
            else:
                cached = OpenAICompatibleLLMProvider(
                    provider=info.id,
                    api_key=key,
                    model=model,
                    base_url=self._base_url(info),
                )
            self._llms[cache_key] = cached
        return cached

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def embedding(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
    ) -> IEmbeddingProvider:
        """Return the embedding client for *provider*, building it on first use.

        Raises
        ------
        ConfigurationError
            If the provider is unknown, has no embeddings API, or has no
            credential configured.  The ingestion triggers convert this into
            a caller-visible validation error.
        """
        info = self.get_info(provider or self._settings.embedding_provider)
        if not info.supports_embeddings:
            raise ConfigurationError(
                message=f"Provider '{info.id}' does not support embeddings",
                provider_name=info.id,
            )
        key = self._resolve_key(info, api_key)
        if model is None:
            model = (
                self._settings.default_embedding_model
                if info.id == self._settings.embedding_provider
                else info.default_embedding_model
            )
        cache_key = ("embedding", info.id, model or "", key)
        cached = self._embedders.get(cache_key)
        if cached is None:
            cached = OpenAICompatibleEmbeddingProvider(
                provider=info.id,
                api_key=key,
                model=model or "",
                base_url=self._base_url(info),
                default_dimension=self._settings.qdrant_vector_size,
            )
            self._embedders[cache_key] = cached
        return cached

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Close every client handed out so far."""
        clients: list[ILLMProvider | IEmbeddingProvider] = [
            *self._llms.values(),
            *self._embedders.values(),
        ]
        self._llms.clear()
        self._embedders.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception as exc:  # noqa: BLE001  one stuck client must not keep the rest open
                logger.warning(
                    "provider_close_failed", provider=client.get_provider_name(), error=str(exc)
                )
        logger.info("provider_clients_closed", count=len(clients))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve_key(self, info: ProviderInfo, api_key: str | None) -> str:
        key = api_key or self._settings.get_api_key(info.id)
        if key:
            return key
        if not info.requires_api_key:
            # Ollama ignores the key but the SDK refuses an empty one.
            return info.id
        raise ConfigurationError(
            message=f"No API key configured for provider '{info.id}'",
            provider_name=info.id,
        )

    def _base_url(self, info: ProviderInfo) -> str | None:
        if info.id == "ollama":
            return f"{self._settings.ollama_base_url.rstrip('/')}/v1"
        if info.id == "openai":
            return self._settings.openai_base_url or None
        return info.base_url
