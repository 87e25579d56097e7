"""Abstract base class for text-embedding providers (the "Embedder").

Defines the contract for turning text into fixed-dimension vectors.
Live and offline behaviour are two implementations of this one interface,
chosen by the composition root in :mod:`mindmesh.main`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider  - text-embedding-3-small (requires API key)
#   MockEmbeddingProvider    - deterministic seeded vectors, no network
# Located in: mindmesh/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for embedding services.

    Providers are raw adapters: they do not truncate, retry or time out.
    Those policies live in :class:`~mindmesh.services.embedding_client.EmbeddingClient`.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more non-empty strings.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*, each of length
            :meth:`get_dimension`.

        Raises
        ------
        mindmesh.utils.errors.EmbeddingProviderError
            If the underlying API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the vectors; constant per instance."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured for use."""
