"""Pydantic request/response schemas for the MindMesh API.

Defines the public contract for every REST endpoint: document upload,
listing, chunk inspection, reprocessing, chat, session history, feedback
and health.

Convention: request schemas end with "Request", response schemas end with
"Response".  Embedding vectors and retained extraction text are internal
and never appear in any response.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from mindmesh.models.chat import ChatMessage, ChatSession, MessageRole
from mindmesh.models.document import Document, DocumentChunk, DocumentStatus


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentResponse(BaseModel):
    """Caller-facing view of a document record."""

    id: str
    owner_id: str
    filename: str
    content_hash: str
    content_type: str | None = None
    size_bytes: int
    status: DocumentStatus
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> DocumentResponse:
        return cls(**document.model_dump(exclude={"extracted_text"}))


class UploadResponse(BaseModel):
    """Result of an upload-and-ingest request."""

    document: DocumentResponse
    is_duplicate: bool
    chunks_created: int = 0
    total_tokens: int = 0
    ingestion_time: float = Field(default=0.0, description="Seconds spent ingesting.")


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int


class DeleteDocumentResponse(BaseModel):
    document_id: str
    deleted: bool = True


class ChunkResponse(BaseModel):
    """A stored chunk without its embedding."""

    id: str
    document_id: str
    chunk_index: int
    content: str
    token_count: int
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk) -> ChunkResponse:
        return cls(**chunk.model_dump(exclude={"embedding"}))


class ChunkListResponse(BaseModel):
    document_id: str
    chunks: list[ChunkResponse]
    total: int


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """A question asked against the owner's documents.

    ``message`` and ``owner_id`` are validated by the chat service so that
    missing values surface as field-specific 400 errors.
    """

    owner_id: str = ""
    message: str = ""
    session_id: str | None = None
    metadata_filter: dict[str, Any] | None = Field(
        default=None,
        description="Only chunks whose metadata contains these key/values are eligible.",
    )
    limit: int | None = Field(default=None, description="Maximum chunks placed in the prompt.")


class CitedChunkResponse(BaseModel):
    id: str
    document_id: str
    content_snippet: str
    chunk_index: int
    token_count: int


class ChatResponse(BaseModel):
    session_id: str
    answer: str
    cited_chunks: list[CitedChunkResponse] = Field(default_factory=list)
    message_id: str


class SessionResponse(BaseModel):
    id: str
    owner_id: str
    title: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, session: ChatSession) -> SessionResponse:
        return cls(**session.model_dump())


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    total: int


class MessageResponse(BaseModel):
    id: str
    session_id: str
    role: MessageRole
    content: str
    used_chunk_ids: list[str] = Field(default_factory=list)
    feedback_score: int | None = None
    created_at: datetime

    @classmethod
    def from_message(cls, message: ChatMessage) -> MessageResponse:
        return cls(**message.model_dump())


class MessageListResponse(BaseModel):
    session_id: str
    messages: list[MessageResponse]
    total: int


class FeedbackRequest(BaseModel):
    """Feedback score for an assistant message, -1 (bad) to 5 (excellent)."""

    score: int


class FeedbackResponse(BaseModel):
    message_id: str
    feedback_score: int


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
    field: str | None = None
