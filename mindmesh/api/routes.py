"""FastAPI API routes for MindMesh.

Thin transport over the services: each endpoint maps onto one service
operation.  Service dependencies are resolved from ``app.state`` via
FastAPI's ``Depends`` using the ``Annotated`` pattern, and application
errors are converted to HTTP responses by
:class:`~mindmesh.api.middleware.ErrorHandlingMiddleware`.

Endpoint                                  Method  Operation
-----------------------------------------------------------------------
/api/v1/documents/upload                  POST    ingest (multipart file + owner_id)
/api/v1/documents?owner_id=               GET     list an owner's documents
/api/v1/documents/{id}                    GET     get one document
/api/v1/documents/{id}                    DELETE  delete chunks, then document
/api/v1/documents/{id}/reprocess          POST    rebuild chunks from retained text
/api/v1/documents/{id}/chunks             GET     ordered chunks (no embeddings)
/api/v1/chat                              POST    grounded chat turn
/api/v1/chat/sessions?owner_id=           GET     list an owner's sessions
/api/v1/chat/sessions/{id}/messages       GET     session history
/api/v1/chat/messages/{id}/feedback       POST    record feedback on an answer
/api/v1/health                            GET     provider / mode status
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, UploadFile

from mindmesh import __version__
from mindmesh.api.schemas import (
    ChatRequest,
    ChatResponse,
    ChunkListResponse,
    ChunkResponse,
    CitedChunkResponse,
    DeleteDocumentResponse,
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    FeedbackRequest,
    FeedbackResponse,
    HealthResponse,
    MessageListResponse,
    MessageResponse,
    SessionListResponse,
    SessionResponse,
    UploadResponse,
)
from mindmesh.config.settings import Settings
from mindmesh.services.chat_service import ChatService
from mindmesh.services.ingestion.ingestion_service import IngestionService
from mindmesh.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Uploads are read in 64 KB increments so oversized files are rejected early.
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    """Return the ingestion service from application state."""
    return request.app.state.ingestion_service


def _get_chat_service(request: Request) -> ChatService:
    """Return the chat service from application state."""
    return request.app.state.chat_service


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
ChatDep = Annotated[ChatService, Depends(_get_chat_service)]
SettingsDep = Annotated[Settings, Depends(_get_settings)]

_NOT_FOUND = {404: {"model": ErrorResponse}}
_BAD_REQUEST = {400: {"model": ErrorResponse}}


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/documents/upload",
    response_model=UploadResponse,
    responses={
        **_BAD_REQUEST,
        413: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Upload a document and ingest it",
)
async def upload_document(
    file: UploadFile,
    owner_id: Annotated[str, Form()],
    ingestion: IngestionDep,
    settings: SettingsDep,
) -> UploadResponse:
    """Store, extract, enrich, chunk and embed one uploaded file.

    Re-uploading identical bytes for the same owner returns the existing
    document with ``is_duplicate=true``.
    """
    max_bytes = settings.max_upload_bytes
    parts: list[bytes] = []
    total_size = 0
    while True:
        part = await file.read(_UPLOAD_CHUNK_SIZE)
        if not part:
            break
        total_size += len(part)
        if total_size > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum: {max_bytes} bytes.",
            )
        parts.append(part)
    data = b"".join(parts)

    result = await ingestion.ingest(
        owner_id=owner_id,
        filename=file.filename,
        data=data,
        content_type=file.content_type,
    )
    return UploadResponse(
        document=DocumentResponse.from_document(result.document),
        is_duplicate=result.is_duplicate,
        chunks_created=result.chunks_created,
        total_tokens=result.total_tokens,
        ingestion_time=result.ingestion_time,
    )


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    responses=_BAD_REQUEST,
    summary="List an owner's documents, newest first",
)
async def list_documents(
    ingestion: IngestionDep,
    owner_id: Annotated[str, Query()] = "",
) -> DocumentListResponse:
    documents = await ingestion.list_documents(owner_id)
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(d) for d in documents],
        total=len(documents),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses=_NOT_FOUND,
    summary="Get one document",
)
async def get_document(document_id: str, ingestion: IngestionDep) -> DocumentResponse:
    return DocumentResponse.from_document(await ingestion.get_document(document_id))


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteDocumentResponse,
    responses=_NOT_FOUND,
    summary="Delete a document and all of its chunks",
)
async def delete_document(document_id: str, ingestion: IngestionDep) -> DeleteDocumentResponse:
    await ingestion.delete_document(document_id)
    return DeleteDocumentResponse(document_id=document_id)


@router.post(
    "/documents/{document_id}/reprocess",
    response_model=UploadResponse,
    responses={**_NOT_FOUND, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Rebuild a document's chunks from its extracted text",
)
async def reprocess_document(document_id: str, ingestion: IngestionDep) -> UploadResponse:
    result = await ingestion.reprocess(document_id)
    return UploadResponse(
        document=DocumentResponse.from_document(result.document),
        is_duplicate=False,
        chunks_created=result.chunks_created,
        total_tokens=result.total_tokens,
        ingestion_time=result.ingestion_time,
    )


@router.get(
    "/documents/{document_id}/chunks",
    response_model=ChunkListResponse,
    responses=_NOT_FOUND,
    summary="List a document's chunks in order",
)
async def list_chunks(document_id: str, ingestion: IngestionDep) -> ChunkListResponse:
    chunks = await ingestion.get_chunks(document_id)
    return ChunkListResponse(
        document_id=document_id,
        chunks=[ChunkResponse.from_chunk(c) for c in chunks],
        total=len(chunks),
    )


# ---------------------------------------------------------------------------
# Chat endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={**_BAD_REQUEST, 500: {"model": ErrorResponse}},
    summary="Ask a question grounded in the owner's documents",
)
async def chat(body: ChatRequest, chat_service: ChatDep) -> ChatResponse:
    result = await chat_service.chat(
        owner_id=body.owner_id,
        message=body.message,
        session_id=body.session_id,
        metadata_filter=body.metadata_filter,
        limit=body.limit,
    )
    return ChatResponse(
        session_id=result.session_id,
        answer=result.answer,
        cited_chunks=[CitedChunkResponse(**c.model_dump()) for c in result.cited_chunks],
        message_id=result.message_id,
    )


@router.get(
    "/chat/sessions",
    response_model=SessionListResponse,
    responses=_BAD_REQUEST,
    summary="List an owner's chat sessions, newest first",
)
async def list_sessions(
    chat_service: ChatDep,
    owner_id: Annotated[str, Query()] = "",
) -> SessionListResponse:
    sessions = await chat_service.list_sessions(owner_id)
    return SessionListResponse(
        sessions=[SessionResponse.from_session(s) for s in sessions],
        total=len(sessions),
    )


@router.get(
    "/chat/sessions/{session_id}/messages",
    response_model=MessageListResponse,
    responses=_NOT_FOUND,
    summary="Get a session's messages in order",
)
async def list_messages(session_id: str, chat_service: ChatDep) -> MessageListResponse:
    messages = await chat_service.get_messages(session_id)
    return MessageListResponse(
        session_id=session_id,
        messages=[MessageResponse.from_message(m) for m in messages],
        total=len(messages),
    )


@router.post(
    "/chat/messages/{message_id}/feedback",
    response_model=FeedbackResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND},
    summary="Record a feedback score (-1..5) on an assistant answer",
)
async def record_feedback(
    message_id: str,
    body: FeedbackRequest,
    chat_service: ChatDep,
) -> FeedbackResponse:
    message = await chat_service.record_feedback(message_id, body.score)
    return FeedbackResponse(message_id=message.id, feedback_score=message.feedback_score or 0)


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and which providers are live or mocked."""
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    embedding_client = getattr(request.app.state, "embedding_client", None)
    if embedding_client is not None:
        providers["embedding_circuit"] = embedding_client.circuit_breaker.state.value

    status = "healthy"
    if providers.get("embedding_circuit") == "open":
        status = "degraded"

    return HealthResponse(status=status, version=__version__, providers=providers)
