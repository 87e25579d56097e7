"""SQLite-backed datastore.

Persists documents, chunks, chat sessions and messages to a local SQLite
database (``data/mindmesh.db`` by default) using ``aiosqlite``.

SQLite has no vector index, so :meth:`SQLiteStore.find_similar` narrows
candidates with SQL (owner join) and ranks them in-process with numpy.
Embeddings are stored as little-endian float64 BLOBs; metadata and
``used_chunk_ids`` as JSON text.  Metadata containment is evaluated with
:func:`~mindmesh.models.metadata.metadata_contains`.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite
import numpy as np
import structlog

from mindmesh.interfaces.chat_store import IChatStore
from mindmesh.interfaces.document_store import IDocumentStore
from mindmesh.models.chat import ChatMessage, ChatSession
from mindmesh.models.document import ChunkSearchResult, Document, DocumentChunk
from mindmesh.models.metadata import metadata_contains
from mindmesh.utils.errors import DuplicateDocumentError, NotFoundError, StorageError
from mindmesh.utils.vectors import rank_by_distance

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/mindmesh.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id              TEXT    PRIMARY KEY,
    owner_id        TEXT    NOT NULL,
    filename        TEXT    NOT NULL,
    content_hash    TEXT    NOT NULL,
    content_type    TEXT,
    size_bytes      INTEGER NOT NULL DEFAULT 0,
    status          TEXT    NOT NULL DEFAULT 'pending',
    error_message   TEXT,
    extracted_text  TEXT,
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL,
    UNIQUE(owner_id, content_hash)
);
""",
    """\
CREATE TABLE IF NOT EXISTS document_chunks (
    id           TEXT    PRIMARY KEY,
    document_id  TEXT    NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index  INTEGER NOT NULL,
    content      TEXT    NOT NULL,
    token_count  INTEGER NOT NULL DEFAULT 0,
    embedding    BLOB    NOT NULL,
    metadata     TEXT    NOT NULL DEFAULT '{}',
    UNIQUE(document_id, chunk_index)
);
""",
    """\
CREATE TABLE IF NOT EXISTS chat_sessions (
    id          TEXT PRIMARY KEY,
    owner_id    TEXT NOT NULL,
    title       TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS chat_messages (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    id              TEXT    NOT NULL UNIQUE,
    session_id      TEXT    NOT NULL REFERENCES chat_sessions(id) ON DELETE CASCADE,
    role            TEXT    NOT NULL CHECK (role IN ('user', 'assistant')),
    content         TEXT    NOT NULL,
    used_chunk_ids  TEXT    NOT NULL DEFAULT '[]',
    feedback_score  INTEGER,
    created_at      TEXT    NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON document_chunks(document_id);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_owner ON chat_sessions(owner_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_messages_session ON chat_messages(session_id, seq);",
]

_DOCUMENT_COLUMNS = (
    "id, owner_id, filename, content_hash, content_type, size_bytes, status, "
    "error_message, extracted_text, created_at, updated_at"
)

_INSERT_DOCUMENT_SQL = f"""\
INSERT INTO documents ({_DOCUMENT_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPDATE_DOCUMENT_SQL = """\
UPDATE documents
SET filename = ?, content_type = ?, size_bytes = ?, status = ?, error_message = ?,
    extracted_text = ?, updated_at = ?
WHERE id = ?;
"""

_INSERT_CHUNK_SQL = """\
INSERT INTO document_chunks (id, document_id, chunk_index, content, token_count, embedding, metadata)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_CHUNK_COLUMNS = "c.id, c.document_id, c.chunk_index, c.content, c.token_count, c.embedding, c.metadata"

_SIMILAR_CANDIDATES_SQL = f"""\
SELECT {_CHUNK_COLUMNS}
FROM document_chunks c
JOIN documents d ON d.id = c.document_id
WHERE d.owner_id = ?;
"""

_MESSAGE_COLUMNS = "id, session_id, role, content, used_chunk_ids, feedback_score, created_at"


def _encode_vector(vector: list[float]) -> bytes:
    return np.asarray(vector, dtype="<f8").tobytes()


def _decode_vector(blob: bytes) -> list[float]:
    return np.frombuffer(blob, dtype="<f8").tolist()


class SQLiteStore(IDocumentStore, IChatStore):
    """aiosqlite implementation of both store interfaces."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("sqlite_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def insert_document(self, document: Document) -> Document:
        try:
            async with self._connect() as db:
                await db.execute(
                    _INSERT_DOCUMENT_SQL,
                    (
                        document.id,
                        document.owner_id,
                        document.filename,
                        document.content_hash,
                        document.content_type,
                        document.size_bytes,
                        document.status.value,
                        document.error_message,
                        document.extracted_text,
                        document.created_at.isoformat(),
                        document.updated_at.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.IntegrityError as exc:
            raise DuplicateDocumentError(
                message=f"Owner {document.owner_id} already has content {document.content_hash[:12]}",
                provider_name="sqlite",
            ) from exc
        return document

    async def update_document(self, document: Document) -> Document:
        async with self._connect() as db:
            cursor = await db.execute(
                _UPDATE_DOCUMENT_SQL,
                (
                    document.filename,
                    document.content_type,
                    document.size_bytes,
                    document.status.value,
                    document.error_message,
                    document.extracted_text,
                    document.updated_at.isoformat(),
                    document.id,
                ),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFoundError(message=f"Document {document.id} not found", provider_name="sqlite")
        return document

    async def get_document(self, document_id: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
            )
            row = await cursor.fetchone()
        return Document.model_validate(dict(row)) if row else None

    async def find_document_by_hash(self, owner_id: str, content_hash: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE owner_id = ? AND content_hash = ?",
                (owner_id, content_hash),
            )
            row = await cursor.fetchone()
        return Document.model_validate(dict(row)) if row else None

    async def list_documents(self, owner_id: str) -> list[Document]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE owner_id = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (owner_id,),
            )
            rows = await cursor.fetchall()
        return [Document.model_validate(dict(r)) for r in rows]

    async def delete_document(self, document_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def add_chunks(self, chunks: list[DocumentChunk]) -> int:
        if not chunks:
            return 0
        rows = [
            (
                chunk.id,
                chunk.document_id,
                chunk.chunk_index,
                chunk.content,
                chunk.token_count,
                _encode_vector(chunk.embedding),
                json.dumps(chunk.metadata, ensure_ascii=False),
            )
            for chunk in chunks
        ]
        try:
            async with self._connect() as db:
                await db.executemany(_INSERT_CHUNK_SQL, rows)
                await db.commit()
        except aiosqlite.IntegrityError as exc:
            raise StorageError(
                message=f"Could not store chunks: {exc}", provider_name="sqlite"
            ) from exc
        return len(rows)

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM document_chunks c "
                "WHERE c.document_id = ? ORDER BY c.chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_chunk(r) for r in rows]

    async def count_chunks(self, document_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM document_chunks WHERE document_id = ?", (document_id,)
            )
            row = await cursor.fetchone()
        return int(row[0])

    async def delete_chunks(self, document_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM document_chunks WHERE document_id = ?", (document_id,)
            )
            await db.commit()
            return cursor.rowcount

    async def find_similar(
        self,
        query_vector: list[float],
        owner_id: str,
        metadata_filter: dict[str, Any] | None,
        limit: int,
    ) -> list[ChunkSearchResult]:
        async with self._connect() as db:
            cursor = await db.execute(_SIMILAR_CANDIDATES_SQL, (owner_id,))
            rows = await cursor.fetchall()

        chunks = (self._row_to_chunk(r) for r in rows)
        candidates = (
            (chunk.id, chunk.embedding, chunk)
            for chunk in chunks
            if not metadata_filter or metadata_contains(chunk.metadata, metadata_filter)
        )
        ranked = rank_by_distance(query_vector, candidates, limit)
        return [ChunkSearchResult.from_chunk(chunk, distance) for distance, chunk in ranked]

    # ------------------------------------------------------------------
    # Sessions & messages
    # ------------------------------------------------------------------

    async def create_session(self, session: ChatSession) -> ChatSession:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO chat_sessions (id, owner_id, title, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.owner_id,
                    session.title,
                    session.created_at.isoformat(),
                    session.updated_at.isoformat(),
                ),
            )
            await db.commit()
        return session

    async def get_session(self, session_id: str) -> ChatSession | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, owner_id, title, created_at, updated_at FROM chat_sessions WHERE id = ?",
                (session_id,),
            )
            row = await cursor.fetchone()
        return ChatSession.model_validate(dict(row)) if row else None

    async def update_session(self, session: ChatSession) -> ChatSession:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE chat_sessions SET title = ?, updated_at = ? WHERE id = ?",
                (session.title, session.updated_at.isoformat(), session.id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFoundError(message=f"Session {session.id} not found", provider_name="sqlite")
        return session

    async def list_sessions(self, owner_id: str) -> list[ChatSession]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, owner_id, title, created_at, updated_at FROM chat_sessions "
                "WHERE owner_id = ? ORDER BY created_at DESC, rowid DESC",
                (owner_id,),
            )
            rows = await cursor.fetchall()
        return [ChatSession.model_validate(dict(r)) for r in rows]

    async def add_message(self, message: ChatMessage) -> ChatMessage:
        try:
            async with self._connect() as db:
                await db.execute(
                    f"INSERT INTO chat_messages ({_MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        message.id,
                        message.session_id,
                        message.role.value,
                        message.content,
                        json.dumps(message.used_chunk_ids),
                        message.feedback_score,
                        message.created_at.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.IntegrityError as exc:
            raise NotFoundError(
                message=f"Session {message.session_id} not found", provider_name="sqlite"
            ) from exc
        return message

    async def get_message(self, message_id: str) -> ChatMessage | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages WHERE id = ?", (message_id,)
            )
            row = await cursor.fetchone()
        return self._row_to_message(row) if row else None

    async def update_message(self, message: ChatMessage) -> ChatMessage:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE chat_messages SET content = ?, used_chunk_ids = ?, feedback_score = ? "
                "WHERE id = ?",
                (
                    message.content,
                    json.dumps(message.used_chunk_ids),
                    message.feedback_score,
                    message.id,
                ),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFoundError(message=f"Message {message.id} not found", provider_name="sqlite")
        return message

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM chat_messages WHERE session_id = ? ORDER BY seq",
                (session_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_message(r) for r in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> DocumentChunk:
        data = dict(row)
        data["embedding"] = _decode_vector(data["embedding"])
        data["metadata"] = json.loads(data["metadata"])
        return DocumentChunk.model_validate(data)

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> ChatMessage:
        data = dict(row)
        data["used_chunk_ids"] = json.loads(data["used_chunk_ids"])
        return ChatMessage.model_validate(data)
