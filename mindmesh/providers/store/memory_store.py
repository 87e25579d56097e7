"""In-memory datastore for development and tests.

Keeps documents, chunks, sessions and messages in plain dicts.  The
``(owner_id, content_hash)`` uniqueness constraint and the nearest-
neighbour query behave exactly like :class:`SQLiteStore`, so services can
be exercised without touching disk.  State lives only as long as the
instance.
"""

from __future__ import annotations

import itertools
from typing import Any

import structlog

from mindmesh.interfaces.chat_store import IChatStore
from mindmesh.interfaces.document_store import IDocumentStore
from mindmesh.models.chat import ChatMessage, ChatSession
from mindmesh.models.document import ChunkSearchResult, Document, DocumentChunk
from mindmesh.models.metadata import metadata_contains
from mindmesh.utils.errors import DuplicateDocumentError, NotFoundError
from mindmesh.utils.vectors import rank_by_distance

logger = structlog.get_logger(logger_name=__name__)


class MemoryStore(IDocumentStore, IChatStore):
    """Dict-backed implementation of both store interfaces."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._hash_index: dict[tuple[str, str], str] = {}
        self._chunks: dict[str, list[DocumentChunk]] = {}
        self._sessions: dict[str, ChatSession] = {}
        self._messages: dict[str, ChatMessage] = {}
        self._session_messages: dict[str, list[str]] = {}
        self._sequence = itertools.count()
        self._document_order: dict[str, int] = {}
        self._session_order: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def insert_document(self, document: Document) -> Document:
        key = (document.owner_id, document.content_hash)
        if key in self._hash_index:
            raise DuplicateDocumentError(
                message=f"Owner {document.owner_id} already has content {document.content_hash[:12]}",
                provider_name="memory",
            )
        self._documents[document.id] = document
        self._hash_index[key] = document.id
        self._document_order[document.id] = next(self._sequence)
        return document

    async def update_document(self, document: Document) -> Document:
        if document.id not in self._documents:
            raise NotFoundError(message=f"Document {document.id} not found", provider_name="memory")
        self._documents[document.id] = document
        return document

    async def get_document(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    async def find_document_by_hash(self, owner_id: str, content_hash: str) -> Document | None:
        document_id = self._hash_index.get((owner_id, content_hash))
        return self._documents.get(document_id) if document_id else None

    async def list_documents(self, owner_id: str) -> list[Document]:
        owned = [doc for doc in self._documents.values() if doc.owner_id == owner_id]
        owned.sort(key=lambda doc: (doc.created_at, self._document_order[doc.id]), reverse=True)
        return owned

    async def delete_document(self, document_id: str) -> bool:
        document = self._documents.pop(document_id, None)
        if document is None:
            return False
        self._hash_index.pop((document.owner_id, document.content_hash), None)
        self._document_order.pop(document_id, None)
        # Mirror ON DELETE CASCADE.
        self._chunks.pop(document_id, None)
        return True

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def add_chunks(self, chunks: list[DocumentChunk]) -> int:
        for chunk in chunks:
            if chunk.document_id not in self._documents:
                raise NotFoundError(
                    message=f"Document {chunk.document_id} not found", provider_name="memory"
                )
        for chunk in chunks:
            self._chunks.setdefault(chunk.document_id, []).append(chunk)
        return len(chunks)

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        return sorted(self._chunks.get(document_id, []), key=lambda c: c.chunk_index)

    async def count_chunks(self, document_id: str) -> int:
        return len(self._chunks.get(document_id, []))

    async def delete_chunks(self, document_id: str) -> int:
        return len(self._chunks.pop(document_id, []))

    async def find_similar(
        self,
        query_vector: list[float],
        owner_id: str,
        metadata_filter: dict[str, Any] | None,
        limit: int,
    ) -> list[ChunkSearchResult]:
        owned_ids = {doc.id for doc in self._documents.values() if doc.owner_id == owner_id}
        candidates = (
            (chunk.id, chunk.embedding, chunk)
            for document_id in owned_ids
            for chunk in self._chunks.get(document_id, [])
            if not metadata_filter or metadata_contains(chunk.metadata, metadata_filter)
        )
        ranked = rank_by_distance(query_vector, candidates, limit)
        return [ChunkSearchResult.from_chunk(chunk, distance) for distance, chunk in ranked]

    # ------------------------------------------------------------------
    # Sessions & messages
    # ------------------------------------------------------------------

    async def create_session(self, session: ChatSession) -> ChatSession:
        self._sessions[session.id] = session
        self._session_messages.setdefault(session.id, [])
        self._session_order[session.id] = next(self._sequence)
        return session

    async def get_session(self, session_id: str) -> ChatSession | None:
        return self._sessions.get(session_id)

    async def update_session(self, session: ChatSession) -> ChatSession:
        if session.id not in self._sessions:
            raise NotFoundError(message=f"Session {session.id} not found", provider_name="memory")
        self._sessions[session.id] = session
        return session

    async def list_sessions(self, owner_id: str) -> list[ChatSession]:
        owned = [s for s in self._sessions.values() if s.owner_id == owner_id]
        owned.sort(key=lambda s: (s.created_at, self._session_order[s.id]), reverse=True)
        return owned

    async def add_message(self, message: ChatMessage) -> ChatMessage:
        if message.session_id not in self._sessions:
            raise NotFoundError(
                message=f"Session {message.session_id} not found", provider_name="memory"
            )
        self._messages[message.id] = message
        self._session_messages[message.session_id].append(message.id)
        return message

    async def get_message(self, message_id: str) -> ChatMessage | None:
        return self._messages.get(message_id)

    async def update_message(self, message: ChatMessage) -> ChatMessage:
        if message.id not in self._messages:
            raise NotFoundError(message=f"Message {message.id} not found", provider_name="memory")
        self._messages[message.id] = message
        return message

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        return [self._messages[mid] for mid in self._session_messages.get(session_id, [])]
