"""groundwell FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging before the app is built.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from groundwell import __version__
from groundwell.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from groundwell.api.routes import router as api_router
from groundwell.config.loader import load_config
from groundwell.config.settings import Settings
from groundwell.providers.persistence.sqlite_chunk_ledger import SQLiteChunkLedger
from groundwell.providers.persistence.sqlite_crawl_job_repository import SQLiteCrawlJobRepository
from groundwell.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository
from groundwell.providers.registry import ProviderRegistry
from groundwell.providers.storage.local_blob_storage import LocalBlobStorage
from groundwell.providers.vector_store.qdrant_provider import QdrantVectorStore
from groundwell.services.chat_service import ChatService
from groundwell.services.crawler import SKIP_TAGS, CrawlerService
from groundwell.services.ingestion.chunker import TextChunker
from groundwell.services.ingestion.orchestrator import IngestionOrchestrator
from groundwell.services.retrieval import RetrievalService
from groundwell.services.text_extractor import TextExtractor
from groundwell.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


def _build_all(app_settings: Settings, app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    # -- Persistence (one SQLite file, three tables) --
    document_repository = SQLiteDocumentRepository(db_path=app_settings.database_path)
    crawl_job_repository = SQLiteCrawlJobRepository(db_path=app_settings.database_path)
    chunk_ledger = SQLiteChunkLedger(db_path=app_settings.database_path)

    # -- External stores --
    vector_store = QdrantVectorStore(
        url=app_settings.qdrant_url,
        collection_name=app_settings.qdrant_collection,
        vector_size=app_settings.qdrant_vector_size,
        api_key=app_settings.qdrant_api_key or None,
    )
    blob_storage = LocalBlobStorage(root_dir=app_settings.blob_storage_dir)
    registry = ProviderRegistry(app_settings)

    # -- Pipeline stages --
    crawler = CrawlerService(
        max_concurrent=app_settings.crawler_max_concurrent,
        request_timeout=app_settings.crawler_request_timeout_seconds,
        user_agent=app_settings.crawler_user_agent,
        max_urls=app_settings.crawler_max_urls,
        skip_tags=app_config.get("crawler", {}).get("skip_tags") or SKIP_TAGS,
    )
    orchestrator = IngestionOrchestrator(
        documents=document_repository,
        crawl_jobs=crawl_job_repository,
        ledger=chunk_ledger,
        vector_store=vector_store,
        storage=blob_storage,
        extractor=TextExtractor(timeout_seconds=app_settings.extraction_timeout_seconds),
        chunker=TextChunker(
            chunk_size=app_settings.chunk_size,
            overlap=app_settings.chunk_overlap,
        ),
        crawler=crawler,
        providers=registry,
        embed_batch_size=app_settings.embed_batch_size,
        max_upload_bytes=app_settings.max_upload_bytes,
    )

    # -- Query side --
    retrieval = RetrievalService(vector_store=vector_store, top_k=app_settings.rag_top_k)
    chat_service = ChatService(
        providers=registry,
        retrieval=retrieval,
        default_system_prompt=app_settings.system_prompt,
    )

    return {
        "settings": app_settings,
        "document_repository": document_repository,
        "crawl_job_repository": crawl_job_repository,
        "chunk_ledger": chunk_ledger,
        "vector_store": vector_store,
        "blob_storage": blob_storage,
        "provider_registry": registry,
        "crawler": crawler,
        "orchestrator": orchestrator,
        "chat_service": chat_service,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise stores on startup; drain background jobs and close clients on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["document_repository"].initialize()
    await components["crawl_job_repository"].initialize()
    await components["chunk_ledger"].initialize()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        llm_provider=settings.default_provider,
        embedding_provider=settings.embedding_provider,
        configured_providers=settings.get_configured_providers(),
    )

    yield

    # -- Shutdown: let running ingestion finish, then close clients --
    orchestrator: IngestionOrchestrator = components["orchestrator"]
    if orchestrator.pending_tasks:
        _logger.info("app_draining", pending=orchestrator.pending_tasks)
    await orchestrator.wait_for_background_tasks()
    await components["crawler"].aclose()
    await components["vector_store"].close()
    await components["provider_registry"].aclose()
    _logger.info("app_shutdown", message="Background tasks drained, clients closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="groundwell API",
        version=__version__,
        description=(
            "Upload documents or crawl websites into a vector knowledge base, "
            "then chat with answers grounded in the retrieved chunks."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "groundwell.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
