"""Public interface definitions for every external collaborator.

Business logic in :mod:`mindmesh.services` talks only to these abstract
base classes; concrete adapters in :mod:`mindmesh.providers` are chosen
once in :mod:`mindmesh.main` and injected.

CONCRETE PROVIDER MAP:
    Interface            ->  Concrete implementations (in mindmesh/providers/)
    ---------------------------------------------------------------------
    IEmbeddingProvider   ->  OpenAIEmbeddingProvider, MockEmbeddingProvider
    ILLMProvider         ->  AnthropicLLMProvider, OpenAILLMProvider,
                             MockLLMProvider
    ITextExtractor       ->  DocumentTextExtractor
    IDocumentStore       ->  MemoryStore, SQLiteStore
    IChatStore           ->  MemoryStore, SQLiteStore
"""

from mindmesh.interfaces.chat_store import IChatStore
from mindmesh.interfaces.document_store import IDocumentStore
from mindmesh.interfaces.embedding_provider import IEmbeddingProvider
from mindmesh.interfaces.llm_provider import ILLMProvider
from mindmesh.interfaces.text_extractor import ITextExtractor

__all__ = [
    "IChatStore",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "ITextExtractor",
]
