"""Document and chunk models for the ingestion and retrieval pipeline.

A :class:`Document` is one uploaded file owned by one user; its
:class:`DocumentStatus` moves through a small state machine:

    PENDING -> PROCESSING -> COMPLETED
                          -> FAILED

``COMPLETED`` and ``FAILED`` documents may re-enter ``PROCESSING`` when
they are reprocessed.  All models are frozen; status changes produce a
new instance via :meth:`Document.with_status`.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mindmesh.models.metadata import Metadata, normalize_metadata
from mindmesh.utils.errors import PipelineError


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: DocumentStatus) -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.PROCESSING, DocumentStatus.FAILED}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.COMPLETED, DocumentStatus.FAILED}),
    DocumentStatus.COMPLETED: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.FAILED: frozenset({DocumentStatus.PROCESSING}),
}


class Document(BaseModel):
    """An uploaded file, unique per (owner_id, content_hash)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id, description="Opaque document identifier.")
    owner_id: str = Field(description="Identifier of the owning user.")
    filename: str = Field(description="Original filename as uploaded.")
    content_hash: str = Field(description="SHA-256 hex digest of the raw bytes.")
    content_type: str | None = Field(default=None, description="MIME type hint from upload.")
    size_bytes: int = Field(default=0, ge=0, description="Size of the raw upload.")
    status: DocumentStatus = Field(default=DocumentStatus.PENDING)
    error_message: str | None = Field(
        default=None, description="Reason for the last failure, if any."
    )
    extracted_text: str | None = Field(
        default=None,
        description="Text retained for reprocessing; never exposed over HTTP.",
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def with_status(self, status: DocumentStatus, **changes: Any) -> Document:
        """Return a copy moved to *status*, raising on an illegal transition."""
        if not self.status.can_transition_to(status):
            raise PipelineError(
                message=f"Cannot move document {self.id} from {self.status.value} to {status.value}"
            )
        return self.model_copy(update={"status": status, "updated_at": utc_now(), **changes})


class TextFragment(BaseModel):
    """One output fragment of the chunker, before it is embedded."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Zero-based position in reading order.")
    text: str
    token_count: int = Field(ge=0, description="Estimated tokens (heuristic).")
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentChunk(BaseModel):
    """A stored fragment with its embedding."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    document_id: str
    chunk_index: int = Field(ge=0)
    content: str
    token_count: int = Field(default=0, ge=0)
    embedding: list[float] = Field(default_factory=list, repr=False)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata")
    @classmethod
    def _closed_metadata(cls, value: dict[str, Any]) -> Metadata:
        try:
            return normalize_metadata(value)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc


class ChunkSearchResult(BaseModel):
    """A retrieved chunk, projected without its embedding."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    chunk_index: int
    content: str
    token_count: int
    metadata: dict[str, Any] = Field(default_factory=dict)
    distance: float = Field(description="Cosine distance to the query; lower is closer.")

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk, distance: float) -> ChunkSearchResult:
        return cls(
            id=chunk.id,
            document_id=chunk.document_id,
            chunk_index=chunk.chunk_index,
            content=chunk.content,
            token_count=chunk.token_count,
            metadata=chunk.metadata,
            distance=distance,
        )


class IngestionResult(BaseModel):
    """Outcome of ingesting (or re-ingesting) one document."""

    model_config = ConfigDict(frozen=True)

    document: Document
    is_duplicate: bool = False
    chunks_created: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Seconds spent.")
