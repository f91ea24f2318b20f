"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS ARE RESOLVED ─────────────────────────────────────────
#
#   1. Environment variables, e.g. QDRANT_URL=http://qdrant:6333 (wins)
#   2. .env file in the working directory (local development)
#   3. The defaults declared below
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; matching is
# case-insensitive.  An empty API key means "provider not configured" and
# the provider registry refuses to build a client for it.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """groundwell application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM / Embedding Providers ===
    default_provider: str = "openai"
    default_model: str = "gpt-4o-mini"
    default_embedding_provider: str = ""  # empty = same as default_provider
    default_embedding_model: str = "text-embedding-3-small"
    openai_api_key: str = ""
    openai_base_url: str = ""  # override for self-hosted OpenAI-compatible gateways
    anthropic_api_key: str = ""
    groq_api_key: str = ""
    deepseek_api_key: str = ""
    mistral_api_key: str = ""
    together_api_key: str = ""
    openrouter_api_key: str = ""
    xai_api_key: str = ""
    perplexity_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"
    system_prompt: str = (
        "You are a helpful assistant. Answer clearly and concisely, and say so "
        "when you do not know the answer."
    )

    # === Vector Index (Qdrant) ===
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str = ""
    qdrant_collection: str = "groundwell_chunks"
    qdrant_vector_size: int = 1536

    # === Storage ===
    database_path: str = "data/groundwell.db"
    blob_storage_dir: str = "data/blobs"
    max_upload_bytes: int = 50 * 1024 * 1024

    # === Ingestion ===
    chunk_size: int = 200
    chunk_overlap: int = 30
    embed_batch_size: int = 100
    extraction_timeout_seconds: float = 120.0

    # === Crawler ===
    crawler_max_concurrent: int = 5
    crawler_request_timeout_seconds: float = 30.0
    crawler_user_agent: str = "groundwell-crawler/0.1 (+https://github.com/groundwell)"
    crawler_max_urls: int = 200

    # === Retrieval ===
    rag_top_k: int = 5

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def embedding_provider(self) -> str:
        return self.default_embedding_provider or self.default_provider

    def get_api_key(self, provider: str) -> str:
        """Return the configured API key for *provider* ("" when unset or unknown)."""
        return getattr(self, f"{provider}_api_key", "") or ""

    def get_configured_providers(self) -> list[str]:
        """Return provider ids that have a credential (Ollama needs none)."""
        providers = [
            name
            for name in (
                "openai",
                "anthropic",
                "groq",
                "deepseek",
                "mistral",
                "together",
                "openrouter",
                "xai",
                "perplexity",
            )
            if self.get_api_key(name)
        ]
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
