"""MindMesh FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env``, ``config/config.yaml`` and the process
environment, configures structured logging, and exposes the app factory.

Live or mock behaviour is decided here, once, from the settings:

    Embedder   ->  OpenAI (OPENAI_API_KEY set)  else deterministic mock
    Generator  ->  Anthropic -> OpenAI           else deterministic mock
    Store      ->  SQLite (aiosqlite)            or in-memory

:func:`build_components` is shared with the CLI.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from mindmesh import __version__
from mindmesh.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from mindmesh.api.routes import router as api_router
from mindmesh.config.loader import load_settings
from mindmesh.config.settings import Settings
from mindmesh.interfaces.embedding_provider import IEmbeddingProvider
from mindmesh.interfaces.llm_provider import ILLMProvider
from mindmesh.providers.embedding.mock_embedding_provider import MockEmbeddingProvider
from mindmesh.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from mindmesh.providers.extraction.text_extractor import DocumentTextExtractor
from mindmesh.providers.llm.anthropic_provider import AnthropicLLMProvider
from mindmesh.providers.llm.mock_provider import MockLLMProvider
from mindmesh.providers.llm.openai_provider import OpenAILLMProvider
from mindmesh.providers.store.memory_store import MemoryStore
from mindmesh.providers.store.sqlite_store import SQLiteStore
from mindmesh.services.chat_service import ChatService
from mindmesh.services.embedding_client import EmbeddingClient
from mindmesh.services.ingestion.chunker import TextChunker
from mindmesh.services.ingestion.ingestion_service import IngestionService
from mindmesh.services.ingestion.metadata_enricher import MetadataEnricher
from mindmesh.services.retrieval_service import RetrievalService
from mindmesh.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """OpenAI when a key is configured, otherwise the deterministic mock."""
    if app_settings.openai_api_key:
        provider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider
    return MockEmbeddingProvider(dimension=app_settings.embedding_dimension)


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the first available generator.

    Priority order: Anthropic -> OpenAI -> deterministic mock.
    """
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return MockLLMProvider()


def _build_store(app_settings: Settings) -> MemoryStore | SQLiteStore:
    if app_settings.storage_backend == "memory":
        return MemoryStore()
    return SQLiteStore(db_path=app_settings.database_path)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components to be stored on ``app.state``.
    The store still needs ``await store.initialize()`` before use.
    """
    embedder = _build_embedding_provider(app_settings)
    generator = _build_llm_provider(app_settings)
    live_generator = not isinstance(generator, MockLLMProvider)
    # Offline, metadata falls back to the rule-based heuristics.
    auxiliary_llm = generator if live_generator else None

    store = _build_store(app_settings)

    embedding_client = EmbeddingClient.from_settings(embedder, auxiliary_llm, app_settings)
    enricher = MetadataEnricher(
        llm=auxiliary_llm,
        embedding_client=embedding_client,
        strategy=app_settings.enrichment_strategy,
        max_chars=app_settings.enrichment_max_chars,
        timeout_seconds=app_settings.llm_timeout_seconds,
    )
    chunker = TextChunker(
        min_size=app_settings.chunk_min_size,
        target_size=app_settings.chunk_target_size,
        max_size=app_settings.chunk_max_size,
        token_multiplier=app_settings.token_multiplier,
    )
    ingestion_service = IngestionService(
        store=store,
        extractor=DocumentTextExtractor(),
        enricher=enricher,
        chunker=chunker,
        embedding_client=embedding_client,
    )
    retrieval_service = RetrievalService(
        store=store,
        default_limit=app_settings.retrieval_default_limit,
        max_limit=app_settings.retrieval_max_limit,
    )
    chat_service = ChatService(
        embedding_client=embedding_client,
        retrieval=retrieval_service,
        llm=generator,
        chat_store=store,
        snippet_max_length=app_settings.snippet_max_length,
        llm_timeout_seconds=app_settings.llm_timeout_seconds,
        temperature=app_settings.llm_temperature,
        max_tokens=app_settings.llm_max_tokens,
    )

    provider_registry: dict[str, Any] = {
        "embedding": embedder.get_provider_name(),
        "llm": generator.get_provider_name(),
        "store": app_settings.storage_backend,
        "enrichment": app_settings.enrichment_strategy if live_generator else "rule_based",
        "mode": "live" if live_generator and not isinstance(embedder, MockEmbeddingProvider) else "mock",
    }

    return {
        "settings": app_settings,
        "store": store,
        "embedding_client": embedding_client,
        "ingestion_service": ingestion_service,
        "retrieval_service": retrieval_service,
        "chat_service": chat_service,
        "provider_registry": provider_registry,
        "primary_llm_name": generator.get_provider_name(),
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup."""
    app_settings: Settings = application.state.settings
    components = build_components(app_settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["store"].initialize()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=app_settings.app_env,
        **components["provider_registry"],
    )

    yield

    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="MindMesh API",
        version=__version__,
        description=(
            "Upload documents, have them chunked, enriched and embedded, then "
            "ask questions answered only from the owner's own documents."
        ),
        lifespan=_lifespan,
    )
    application.state.settings = app_settings or load_settings()

    # Last added runs first: logging wraps error handling.
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


settings = load_settings()
configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)

app = create_app(settings)

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "mindmesh.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
