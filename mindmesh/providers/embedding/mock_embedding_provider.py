"""Deterministic offline embedding provider.

Each text is hashed with SHA-256; the first eight bytes of the digest seed
a numpy ``Generator`` which draws ``dimension`` values uniformly from
``[-1, 1)``.  Identical text always yields the identical vector, so the
ingestion and retrieval pipelines run end to end without network access.
"""

from __future__ import annotations

import hashlib

import numpy as np

from mindmesh.interfaces.embedding_provider import IEmbeddingProvider


class MockEmbeddingProvider(IEmbeddingProvider):
    """Seeded pseudo-random vectors keyed by the text's hash."""

    def __init__(self, dimension: int = 1536) -> None:
        self._dimension = dimension

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [self._vector_for(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        return self._vector_for(text)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "mock_embedding"

    def is_available(self) -> bool:
        return True

    def _vector_for(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        seed = int.from_bytes(digest[:8], "big")
        rng = np.random.default_rng(seed)
        return rng.uniform(-1.0, 1.0, self._dimension).tolist()
