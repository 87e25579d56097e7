"""Chat session and message models.

Assistant messages carry ``used_chunk_ids``, the ordered ids of the chunks
that were placed in the prompt.  These are weak references: deleting a
chunk later does not rewrite the message.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mindmesh.models.document import new_id, utc_now

PLACEHOLDER_TITLE = "New conversation"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatSession(BaseModel):
    """A conversation owned by one user."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    owner_id: str
    title: str = PLACEHOLDER_TITLE
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def has_placeholder_title(self) -> bool:
        return self.title == PLACEHOLDER_TITLE


class ChatMessage(BaseModel):
    """One turn of a conversation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    session_id: str
    role: MessageRole
    content: str
    used_chunk_ids: list[str] = Field(default_factory=list)
    feedback_score: int | None = Field(default=None, ge=-1, le=5)
    created_at: datetime = Field(default_factory=utc_now)


class CitedChunk(BaseModel):
    """Caller-facing projection of a chunk used to answer a question."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    content_snippet: str
    chunk_index: int
    token_count: int


class ChatResult(BaseModel):
    """The outcome of one chat turn."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    answer: str
    cited_chunks: list[CitedChunk] = Field(default_factory=list)
    message_id: str
