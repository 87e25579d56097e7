"""Owner-scoped nearest-neighbour retrieval over stored chunks.

Thin policy layer over :meth:`IDocumentStore.find_similar`: it validates
the owner, normalizes the metadata filter into the closed metadata value
kinds, and resolves the effective result limit.  Ranking itself (ascending
cosine distance, ties by chunk id) is the store's job.
"""

from __future__ import annotations

from typing import Any

import structlog

from mindmesh.interfaces.document_store import IDocumentStore
from mindmesh.models.document import ChunkSearchResult
from mindmesh.models.metadata import Metadata, normalize_metadata
from mindmesh.utils.errors import InvalidRequestError

logger = structlog.get_logger(logger_name=__name__)


class RetrievalService:
    """Finds the chunks most similar to a query vector.

    Parameters
    ----------
    store:
        The document store holding chunk embeddings.
    default_limit:
        Result size used when the caller does not supply one.
    max_limit:
        Upper bound; larger requested limits are clamped to it.
    """

    def __init__(
        self,
        store: IDocumentStore,
        default_limit: int = 5,
        max_limit: int = 20,
    ) -> None:
        if not 1 <= default_limit <= max_limit:
            raise ValueError(
                f"Retrieval limits must satisfy 1 <= default <= max, got {default_limit}/{max_limit}"
            )
        self._store = store
        self._default_limit = default_limit
        self._max_limit = max_limit

    def effective_limit(self, limit: int | None) -> int:
        """Resolve the requested *limit* into the bound actually used."""
        if limit is None:
            return self._default_limit
        if limit < 1:
            raise InvalidRequestError(message="limit must be a positive integer", field="limit")
        return min(limit, self._max_limit)

    @staticmethod
    def prepare_filter(metadata_filter: dict[str, Any] | None) -> Metadata | None:
        """Normalize a containment filter; an empty filter means no constraint."""
        if not metadata_filter:
            return None
        try:
            return normalize_metadata(metadata_filter)
        except TypeError as exc:
            raise InvalidRequestError(message=str(exc), field="metadata_filter") from exc

    async def find_similar(
        self,
        query_vector: list[float],
        owner_id: str,
        metadata_filter: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[ChunkSearchResult]:
        """Return the owner's chunks nearest to *query_vector*.

        An empty list (not an error) is returned when nothing is eligible.
        """
        if not owner_id or not owner_id.strip():
            raise InvalidRequestError(message="owner_id is required", field="owner_id")
        bound = self.effective_limit(limit)
        criteria = self.prepare_filter(metadata_filter)

        if not query_vector:
            return []

        results = await self._store.find_similar(query_vector, owner_id, criteria, bound)
        logger.debug(
            "retrieval_complete",
            owner_id=owner_id,
            limit=bound,
            filtered=criteria is not None,
            results=len(results),
        )
        return results
