"""Shared pytest fixtures for the MindMesh test suite."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from mindmesh.config.settings import Settings
from mindmesh.interfaces.llm_provider import ILLMProvider
from mindmesh.models.document import DocumentChunk, new_id
from mindmesh.providers.embedding.mock_embedding_provider import MockEmbeddingProvider
from mindmesh.providers.extraction.text_extractor import DocumentTextExtractor
from mindmesh.providers.store.memory_store import MemoryStore
from mindmesh.services.embedding_client import EmbeddingClient
from mindmesh.services.ingestion.chunker import TextChunker
from mindmesh.services.ingestion.ingestion_service import IngestionService
from mindmesh.services.ingestion.metadata_enricher import MetadataEnricher
from mindmesh.services.retrieval_service import RetrievalService
from mindmesh.utils.resilience import RetryPolicy

# Small dimension keeps the vector maths fast and the assertions readable.
TEST_DIMENSION = 8


async def no_sleep(_seconds: float) -> None:
    """Backoff stand-in so retry tests never wait."""


# ---------------------------------------------------------------------------
# Sample text
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def sample_text() -> str:
    """Several paragraphs of prose, long enough to yield multiple chunks."""
    paragraphs = [
        (
            "Retrieval-augmented generation combines a search step with a language "
            "model. The search step finds passages that are relevant to the question, "
            "and the model writes an answer grounded in those passages."
        ),
        (
            "Documents are first split into chunks. Each chunk is small enough to be "
            "embedded as a single vector, yet large enough to carry a complete thought. "
            "Paragraph boundaries are preserved whenever possible."
        ),
        (
            "Embeddings map text onto points in a high-dimensional space. Passages "
            "about similar subjects end up close together, so the nearest neighbours "
            "of a question vector are usually the passages that answer it."
        ),
        (
            "Every chunk carries metadata describing its document: the type, the "
            "language, a short summary, keywords and topics. Queries may filter on "
            "that metadata to narrow the search to a subset of the corpus."
        ),
        (
            "Answers cite the chunks they were built from. Keeping that provenance "
            "makes it possible to audit an answer and to collect feedback on the "
            "passages that were actually useful."
        ),
    ]
    return "\n\n".join(paragraphs * 2)


# ---------------------------------------------------------------------------
# Providers & services
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedder() -> MockEmbeddingProvider:
    """Deterministic hash-to-vector embedder."""
    return MockEmbeddingProvider(dimension=TEST_DIMENSION)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def mock_llm() -> MagicMock:
    """A generator test double whose ``complete`` returns a fixed answer."""
    llm = MagicMock(spec=ILLMProvider)
    llm.complete = AsyncMock(return_value="The answer, according to Document 1.")
    llm.get_provider_name.return_value = "test_llm"
    llm.is_available.return_value = True
    return llm


@pytest.fixture
def embedding_client(mock_embedder: MockEmbeddingProvider) -> EmbeddingClient:
    return EmbeddingClient(
        mock_embedder,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.01, multiplier=2.0),
        timeout_seconds=5.0,
        sleep=no_sleep,
    )


@pytest.fixture
def chunker() -> TextChunker:
    return TextChunker(min_size=50, target_size=300, max_size=400)


@pytest.fixture
def ingestion_service(
    memory_store: MemoryStore,
    embedding_client: EmbeddingClient,
    chunker: TextChunker,
) -> IngestionService:
    return IngestionService(
        store=memory_store,
        extractor=DocumentTextExtractor(),
        enricher=MetadataEnricher(),
        chunker=chunker,
        embedding_client=embedding_client,
    )


@pytest.fixture
def retrieval_service(memory_store: MemoryStore) -> RetrievalService:
    return RetrievalService(memory_store, default_limit=5, max_limit=20)


@pytest.fixture
def offline_settings(tmp_path: Path) -> Settings:
    """Settings with no credentials and in-memory storage."""
    return Settings(
        openai_api_key="",
        anthropic_api_key="",
        storage_backend="memory",
        database_path=str(tmp_path / "mindmesh.db"),
        embedding_dimension=TEST_DIMENSION,
        chunk_min_size=50,
        chunk_target_size=300,
        chunk_max_size=400,
        _env_file=None,
    )


def make_chunk(
    document_id: str,
    index: int,
    embedding: list[float],
    content: str | None = None,
    metadata: dict | None = None,
) -> DocumentChunk:
    """Build a DocumentChunk with predictable fields."""
    return DocumentChunk(
        id=new_id(),
        document_id=document_id,
        chunk_index=index,
        content=content if content is not None else f"chunk {index} of {document_id}",
        token_count=3,
        embedding=embedding,
        metadata=metadata or {},
    )


@pytest.fixture
def chunk_factory():
    """Return :func:`make_chunk` for tests that need hand-built chunks."""
    return make_chunk


@pytest.fixture
def fast_sleep():
    """Return the no-wait backoff function."""
    return no_sleep


@pytest.fixture(autouse=True, scope="session")
def _uncached_loggers() -> None:
    """Loggers must pick up pytest's stdout swaps instead of pinning the first stream."""
    structlog.configure(cache_logger_on_first_use=False)
