"""Abstract base class for chat session and message persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod

from mindmesh.models.chat import ChatMessage, ChatSession


# Concrete implementations: MemoryStore, SQLiteStore
# Located in: mindmesh/providers/store/
class IChatStore(ABC):
    """Contract for storing conversations."""

    @abstractmethod
    async def create_session(self, session: ChatSession) -> ChatSession:
        """Persist a new session."""

    @abstractmethod
    async def get_session(self, session_id: str) -> ChatSession | None:
        """Return the session, or ``None`` if it does not exist."""

    @abstractmethod
    async def update_session(self, session: ChatSession) -> ChatSession:
        """Replace the stored record for ``session.id``."""

    @abstractmethod
    async def list_sessions(self, owner_id: str) -> list[ChatSession]:
        """Return the owner's sessions, newest first."""

    @abstractmethod
    async def add_message(self, message: ChatMessage) -> ChatMessage:
        """Append a message to its session."""

    @abstractmethod
    async def get_message(self, message_id: str) -> ChatMessage | None:
        """Return the message, or ``None`` if it does not exist."""

    @abstractmethod
    async def update_message(self, message: ChatMessage) -> ChatMessage:
        """Replace the stored record for ``message.id``."""

    @abstractmethod
    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        """Return a session's messages in creation order."""
