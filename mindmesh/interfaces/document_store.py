"""Abstract base class for document and chunk persistence.

The store owns three capabilities the pipeline relies on:

(a) record CRUD for documents and chunks,
(b) a nearest-neighbour query over chunk embeddings, scoped to one owner
    and optionally to a metadata containment predicate,
(c) a uniqueness constraint over ``(owner_id, content_hash)``, surfaced
    as :class:`~mindmesh.utils.errors.DuplicateDocumentError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from mindmesh.models.document import ChunkSearchResult, Document, DocumentChunk


# Concrete implementations: MemoryStore, SQLiteStore
# Located in: mindmesh/providers/store/
class IDocumentStore(ABC):
    """Contract for document, chunk and vector persistence."""

    async def initialize(self) -> None:
        """Prepare the backing storage (create tables, directories)."""

    # -- documents ---------------------------------------------------------

    @abstractmethod
    async def insert_document(self, document: Document) -> Document:
        """Persist a new document.

        Raises
        ------
        mindmesh.utils.errors.DuplicateDocumentError
            If another document already has the same owner and hash.
        """

    @abstractmethod
    async def update_document(self, document: Document) -> Document:
        """Replace the stored record for ``document.id``."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document, or ``None`` if it does not exist."""

    @abstractmethod
    async def find_document_by_hash(self, owner_id: str, content_hash: str) -> Document | None:
        """Return the owner's document with this content hash, if any."""

    @abstractmethod
    async def list_documents(self, owner_id: str) -> list[Document]:
        """Return the owner's documents, newest first."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Delete the document record; return ``True`` if it existed."""

    # -- chunks ------------------------------------------------------------

    @abstractmethod
    async def add_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Persist a batch of chunks atomically; return how many were stored."""

    @abstractmethod
    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Return a document's chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def count_chunks(self, document_id: str) -> int:
        """Return the number of chunks stored for a document."""

    @abstractmethod
    async def delete_chunks(self, document_id: str) -> int:
        """Delete every chunk of a document; return how many were removed."""

    @abstractmethod
    async def find_similar(
        self,
        query_vector: list[float],
        owner_id: str,
        metadata_filter: dict[str, Any] | None,
        limit: int,
    ) -> list[ChunkSearchResult]:
        """Return up to *limit* of the owner's chunks nearest to *query_vector*.

        Ranking is ascending cosine distance, ties broken by chunk id.
        When *metadata_filter* is given only chunks whose metadata contains
        it are eligible.
        """
