"""Answer synthesis and chat session management.

One chat turn runs these steps in order:

  1. VALIDATE  -- message and owner are required; limit and filter are
                  checked before anything is persisted.
  2. SESSION   -- reuse the caller's session when it exists and belongs to
                  the owner, otherwise start a new one.
  3. PERSIST   -- store the user message first so history survives a
                  failure later in the turn.
  4. RETRIEVE  -- embed the message and fetch the nearest chunks.
  5. ANSWER    -- with no chunks, return a fixed "not found" answer and
                  skip the language model entirely.  Otherwise build a
                  grounded prompt and make a single generator call.
  6. RECORD    -- store the assistant message with the ordered ids of the
                  chunks placed in the prompt, then derive the session
                  title from the first user message.

Provider failures during embedding or generation propagate to the caller.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from mindmesh.interfaces.chat_store import IChatStore
from mindmesh.interfaces.llm_provider import ILLMProvider
from mindmesh.models.chat import (
    ChatMessage,
    ChatResult,
    ChatSession,
    CitedChunk,
    MessageRole,
)
from mindmesh.models.document import ChunkSearchResult, utc_now
from mindmesh.services.embedding_client import EmbeddingClient
from mindmesh.services.retrieval_service import RetrievalService
from mindmesh.utils.errors import (
    InvalidInputError,
    InvalidRequestError,
    LLMError,
    NotFoundError,
)

logger = structlog.get_logger(logger_name=__name__)

NOT_FOUND_ANSWER = (
    "I could not find any relevant documents to answer your question. "
    "Try uploading related documents or rephrasing the question."
)

TITLE_MAX_LENGTH = 50
FEEDBACK_MIN_SCORE = -1
FEEDBACK_MAX_SCORE = 5
_ELLIPSIS = "..."

_SYSTEM_PROMPT = (
    "You are an assistant that answers questions about the user's own documents.\n\n"
    "Guidelines:\n"
    "- Answer ONLY from the information in the CONTEXT section.\n"
    "- If the context is insufficient to answer, say so explicitly instead of guessing.\n"
    "- Cite the documents you used, e.g. (Document 2), whenever possible.\n"
    "- Answer in the same language as the question."
)


def truncate_with_ellipsis(text: str, max_length: int) -> str:
    """Return *text* unchanged if it fits, else its head plus ``"..."``."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(_ELLIPSIS)] + _ELLIPSIS


def derive_title(first_message: str) -> str:
    return truncate_with_ellipsis(first_message.strip(), TITLE_MAX_LENGTH)


def build_context(chunks: list[ChunkSearchResult]) -> str:
    """Render retrieved chunks, in rank order, as the prompt's context block."""
    sections: list[str] = []
    for position, chunk in enumerate(chunks, start=1):
        lines = [f"=== Document {position} ==="]
        metadata_lines = _describe_metadata(chunk.metadata)
        if metadata_lines:
            lines.append("METADATA:")
            lines.extend(metadata_lines)
        lines.append("CONTENT:")
        lines.append(chunk.content)
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


def build_prompt(context: str, question: str) -> str:
    return f"CONTEXT:\n{context}\n\nQUESTION:\n{question}\n\nANSWER:"


def _describe_metadata(metadata: dict[str, Any]) -> list[str]:
    lines: list[str] = []
    document_type = metadata.get("document_type")
    if document_type and document_type != "unknown":
        lines.append(f"Type: {document_type}")
    language = metadata.get("language")
    if language and language != "unknown":
        lines.append(f"Language: {language}")
    if metadata.get("summary"):
        lines.append(f"Summary: {metadata['summary']}")
    for key, label in (("keywords", "Keywords"), ("topics", "Topics")):
        values = metadata.get(key)
        if isinstance(values, list) and values:
            lines.append(f"{label}: {', '.join(str(v) for v in values)}")
    confidence = metadata.get("confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool) and confidence > 0:
        lines.append(f"Confidence: {confidence:.2f}")
    return lines


class ChatService:
    """Grounded question answering over an owner's documents.

    Parameters
    ----------
    embedding_client:
        Vectorizes the user's message.
    retrieval:
        Finds the chunks placed in the prompt.
    llm:
        Generator for the answer (live or mock).
    chat_store:
        Session and message persistence.
    snippet_max_length:
        Cap on the content snippet returned for each cited chunk.
    llm_timeout_seconds:
        Bound on the single generator call.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        retrieval: RetrievalService,
        llm: ILLMProvider,
        chat_store: IChatStore,
        *,
        snippet_max_length: int = 300,
        llm_timeout_seconds: float = 60.0,
        temperature: float = 0.3,
        max_tokens: int = 1500,
    ) -> None:
        self._embedding_client = embedding_client
        self._retrieval = retrieval
        self._llm = llm
        self._chat_store = chat_store
        self._snippet_max_length = snippet_max_length
        self._llm_timeout = llm_timeout_seconds
        self._temperature = temperature
        self._max_tokens = max_tokens

    # ------------------------------------------------------------------
    # Chat turn
    # ------------------------------------------------------------------

    async def chat(
        self,
        owner_id: str,
        message: str,
        session_id: str | None = None,
        metadata_filter: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> ChatResult:
        """Answer *message* from the owner's documents.

        Raises
        ------
        InvalidRequestError
            Empty message, missing owner, bad limit or filter.
        EmbeddingProviderError
            The message could not be vectorized.
        LLMError
            The generator failed or timed out.
        """
        if not message or not message.strip():
            raise InvalidRequestError(message="message must not be empty", field="message")
        if not owner_id or not owner_id.strip():
            raise InvalidRequestError(message="owner_id is required", field="owner_id")
        bound = self._retrieval.effective_limit(limit)
        criteria = self._retrieval.prepare_filter(metadata_filter)

        session = await self._resolve_session(owner_id, session_id)
        await self._chat_store.add_message(
            ChatMessage(session_id=session.id, role=MessageRole.USER, content=message)
        )

        query_vector = await self._embedding_client.embed(message)
        chunks = await self._retrieval.find_similar(query_vector, owner_id, criteria, bound)

        if chunks:
            answer = await self._generate(build_prompt(build_context(chunks), message))
        else:
            answer = NOT_FOUND_ANSWER

        assistant = await self._chat_store.add_message(
            ChatMessage(
                session_id=session.id,
                role=MessageRole.ASSISTANT,
                content=answer,
                used_chunk_ids=[chunk.id for chunk in chunks],
            )
        )
        await self._touch_session(session)

        logger.info(
            "chat_turn_complete",
            owner_id=owner_id,
            session_id=session.id,
            chunks=len(chunks),
            grounded=bool(chunks),
        )
        return ChatResult(
            session_id=session.id,
            answer=answer,
            cited_chunks=[self._cite(chunk) for chunk in chunks],
            message_id=assistant.id,
        )

    # ------------------------------------------------------------------
    # Session queries & feedback
    # ------------------------------------------------------------------

    async def list_sessions(self, owner_id: str) -> list[ChatSession]:
        if not owner_id or not owner_id.strip():
            raise InvalidRequestError(message="owner_id is required", field="owner_id")
        return await self._chat_store.list_sessions(owner_id)

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        session = await self._chat_store.get_session(session_id)
        if session is None:
            raise NotFoundError(message=f"Session {session_id} not found")
        return await self._chat_store.get_messages(session.id)

    async def record_feedback(self, message_id: str, score: int) -> ChatMessage:
        """Attach a feedback score (-1..5) to an assistant message."""
        if (
            isinstance(score, bool)
            or not isinstance(score, int)
            or not FEEDBACK_MIN_SCORE <= score <= FEEDBACK_MAX_SCORE
        ):
            raise InvalidRequestError(
                message=f"score must be an integer between {FEEDBACK_MIN_SCORE} and {FEEDBACK_MAX_SCORE}",
                field="score",
            )
        message = await self._chat_store.get_message(message_id)
        if message is None:
            raise NotFoundError(message=f"Message {message_id} not found")
        if message.role is not MessageRole.ASSISTANT:
            raise InvalidInputError(message="Feedback can only be recorded on assistant messages")

        updated = await self._chat_store.update_message(
            message.model_copy(update={"feedback_score": score})
        )
        logger.info("feedback_recorded", message_id=message_id, score=score)
        return updated

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _resolve_session(self, owner_id: str, session_id: str | None) -> ChatSession:
        if session_id:
            existing = await self._chat_store.get_session(session_id)
            if existing is not None and existing.owner_id == owner_id:
                return existing
            if existing is not None:
                logger.warning("session_owner_mismatch", session_id=session_id, owner_id=owner_id)
        return await self._chat_store.create_session(ChatSession(owner_id=owner_id))

    async def _touch_session(self, session: ChatSession) -> None:
        changes: dict[str, Any] = {"updated_at": utc_now()}
        if session.has_placeholder_title:
            messages = await self._chat_store.get_messages(session.id)
            first_user = next((m for m in messages if m.role is MessageRole.USER), None)
            if first_user is not None:
                changes["title"] = derive_title(first_user.content)
        await self._chat_store.update_session(session.model_copy(update=changes))

    async def _generate(self, user_prompt: str) -> str:
        provider = self._llm.get_provider_name()
        try:
            return await asyncio.wait_for(
                self._llm.complete(
                    system_prompt=_SYSTEM_PROMPT,
                    user_prompt=user_prompt,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                ),
                timeout=self._llm_timeout,
            )
        except LLMError:
            raise
        except asyncio.TimeoutError as exc:
            raise LLMError(
                message=f"Answer generation did not complete within {self._llm_timeout:g}s",
                provider_name=provider,
            ) from exc
        except Exception as exc:
            raise LLMError(message=f"Answer generation failed: {exc}", provider_name=provider) from exc

    def _cite(self, chunk: ChunkSearchResult) -> CitedChunk:
        return CitedChunk(
            id=chunk.id,
            document_id=chunk.document_id,
            content_snippet=truncate_with_ellipsis(chunk.content, self._snippet_max_length),
            chunk_index=chunk.chunk_index,
            token_count=chunk.token_count,
        )
