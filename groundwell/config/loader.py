"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION LAYERS ─────────────────────────────────────────────
#
#   1. config/config.yaml  - static defaults checked into the repo
#   2. .env file           - local developer overrides (not committed)
#   3. Environment vars    - set by the deployment
#
# load_config() reads the YAML file, then deep-merges values derived from
# Settings (layers 2 and 3) on top:
#   base      = {"crawler": {"user_agent": "x", "max_urls": 200}}
#   overrides = {"crawler": {"max_concurrent": 8}}
#   result    = {"crawler": {"user_agent": "x", "max_urls": 200, "max_concurrent": 8}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from groundwell.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
              an empty base.
        settings: Settings instance to derive overrides from; a fresh one is
                  built when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "default_provider": settings.default_provider,
            "default_model": settings.default_model,
            "embedding_provider": settings.embedding_provider,
            "default_embedding_model": settings.default_embedding_model,
            "configured_providers": settings.get_configured_providers(),
        },
        "qdrant": {
            "url": settings.qdrant_url,
            "collection": settings.qdrant_collection,
            "vector_size": settings.qdrant_vector_size,
        },
        "ingestion": {
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
            "embed_batch_size": settings.embed_batch_size,
            "extraction_timeout_seconds": settings.extraction_timeout_seconds,
        },
        "crawler": {
            "max_concurrent": settings.crawler_max_concurrent,
            "request_timeout_seconds": settings.crawler_request_timeout_seconds,
            "max_urls": settings.crawler_max_urls,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
