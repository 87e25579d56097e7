"""Resilient embedding client.

Wraps an :class:`~mindmesh.interfaces.embedding_provider.IEmbeddingProvider`
with the policies every embedding call needs:

1. **Truncate** text longer than the character budget, preferring a
   paragraph break, then a sentence end, then whitespace, as long as the
   cut keeps most of the budget.
2. **Retry** failed provider calls sequentially with exponential backoff.
3. **Time out** the whole call chain, retries included; exceeding the
   bound cancels the in-flight request and raises
   :class:`~mindmesh.utils.errors.EmbeddingTimeoutError`.
4. **Circuit breaker** around each attempt (disabled unless configured).

Blank text returns an empty vector rather than an error.

The client also exposes the auxiliary language-model operations used by
the detailed enrichment strategy (summarize, keywords, topics, classify).
Those never raise: failures are logged and a default value is returned,
and without a generator they fall back to rule-based heuristics.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

from mindmesh.config.settings import Settings
from mindmesh.interfaces.embedding_provider import IEmbeddingProvider
from mindmesh.interfaces.llm_provider import ILLMProvider
from mindmesh.services.ingestion import metadata_rules
from mindmesh.utils.errors import (
    CircuitOpenError,
    EmbeddingProviderError,
    EmbeddingTimeoutError,
)
from mindmesh.utils.resilience import CircuitBreaker, RetryPolicy, retry_async

logger = structlog.get_logger(logger_name=__name__)

_PARAGRAPH_KEEP_RATIO = 0.8
_SENTENCE_KEEP_RATIO = 0.8
_WHITESPACE_KEEP_RATIO = 0.9
_SENTENCE_BREAKS = (". ", "! ", "? ")

_SUMMARY_PROMPT = (
    "You summarize documents. Reply with a concise summary of two or three "
    "sentences, written in the same language as the document. No preamble."
)
_KEYWORDS_PROMPT = (
    "Extract between 5 and 10 keywords that best describe the document. "
    "Reply with a single comma-separated list and nothing else."
)
_TOPICS_PROMPT = (
    "Identify between 2 and 5 broad topics covered by the document. "
    "Reply with a single comma-separated list and nothing else."
)
_CLASSIFY_PROMPT = (
    "Classify the document into exactly one of these labels: article, report, "
    "manual, code, email, legal, academic, notes, other. Reply with the label only."
)


def truncate_for_embedding(text: str, budget: int) -> str:
    """Cut *text* to at most *budget* characters at the most natural boundary."""
    if len(text) <= budget:
        return text

    window = text[:budget]

    paragraph = window.rfind("\n\n")
    if paragraph >= budget * _PARAGRAPH_KEEP_RATIO:
        return text[:paragraph]

    sentence = max(window.rfind(marker) for marker in _SENTENCE_BREAKS)
    if sentence >= budget * _SENTENCE_KEEP_RATIO:
        return text[: sentence + 1]

    space = window.rfind(" ")
    if space >= budget * _WHITESPACE_KEEP_RATIO:
        return text[:space]

    return window


class EmbeddingClient:
    """Text to fixed-dimension vector, with truncation and resilience.

    Parameters
    ----------
    embedder:
        The raw provider (live or mock).
    llm:
        Optional generator for the auxiliary operations.  ``None`` selects
        the rule-based heuristics.
    max_chars:
        Character budget applied before embedding.
    aux_max_chars:
        Character budget applied before auxiliary LLM calls.
    retry_policy:
        Attempts and backoff for the provider call.
    timeout_seconds:
        Wall-clock bound for one :meth:`embed` call, retries included.
    circuit_breaker:
        Breaker guarding provider calls; a disabled one is created if omitted.
    sleep:
        Backoff sleep function, injectable for tests.
    """

    def __init__(
        self,
        embedder: IEmbeddingProvider,
        llm: ILLMProvider | None = None,
        *,
        max_chars: int = 32000,
        aux_max_chars: int = 4000,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float = 30.0,
        circuit_breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._embedder = embedder
        self._llm = llm
        self._max_chars = max_chars
        self._aux_max_chars = aux_max_chars
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout = timeout_seconds
        self._breaker = circuit_breaker or CircuitBreaker(embedder.get_provider_name())
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        embedder: IEmbeddingProvider,
        llm: ILLMProvider | None,
        settings: Settings,
    ) -> EmbeddingClient:
        breaker = CircuitBreaker(
            embedder.get_provider_name(),
            enabled=settings.circuit_breaker_enabled,
            failure_rate_threshold=settings.circuit_breaker_failure_rate,
            window_size=settings.circuit_breaker_window,
            open_seconds=settings.circuit_breaker_open_seconds,
            half_open_calls=settings.circuit_breaker_half_open_calls,
        )
        return cls(
            embedder,
            llm,
            max_chars=settings.embedding_max_chars,
            aux_max_chars=settings.auxiliary_max_chars,
            retry_policy=RetryPolicy(
                max_attempts=settings.embedding_max_attempts,
                base_delay=settings.embedding_backoff_base,
                multiplier=settings.embedding_backoff_multiplier,
            ),
            timeout_seconds=settings.embedding_timeout_seconds,
            circuit_breaker=breaker,
        )

    @property
    def dimension(self) -> int:
        return self._embedder.get_dimension()

    @property
    def provider_name(self) -> str:
        return self._embedder.get_provider_name()

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*, or ``[]`` for blank text.

        Raises
        ------
        EmbeddingTimeoutError
            The call chain exceeded ``timeout_seconds``.
        CircuitOpenError
            The circuit breaker rejected the call.
        EmbeddingProviderError
            Every attempt failed; the last failure is chained as the cause.
        """
        if not text or not text.strip():
            return []

        prepared = truncate_for_embedding(text, self._max_chars)
        if len(prepared) < len(text):
            logger.debug("embedding_input_truncated", original=len(text), truncated=len(prepared))

        try:
            return await asyncio.wait_for(self._embed_with_retry(prepared), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("embedding_timeout", timeout_seconds=self._timeout, provider=self.provider_name)
            raise EmbeddingTimeoutError(
                message=f"Embedding did not complete within {self._timeout:g}s",
                provider_name=self.provider_name,
            ) from exc

    async def _embed_with_retry(self, text: str) -> list[float]:
        try:
            return await retry_async(
                lambda: self._breaker.call(lambda: self._embed_once(text)),
                self._retry_policy,
                give_up_on=(CircuitOpenError,),
                sleep=self._sleep,
                operation="embedding",
            )
        except CircuitOpenError:
            raise
        except Exception as exc:
            raise EmbeddingProviderError(
                message=(
                    f"Embedding failed after {self._retry_policy.max_attempts} attempts: {exc}"
                ),
                provider_name=self.provider_name,
            ) from exc

    async def _embed_once(self, text: str) -> list[float]:
        vector = await self._embedder.embed_single(text)
        expected = self._embedder.get_dimension()
        if len(vector) != expected:
            raise EmbeddingProviderError(
                message=f"Expected {expected}-dimensional vector, got {len(vector)}",
                provider_name=self.provider_name,
            )
        return list(vector)

    # ------------------------------------------------------------------
    # Auxiliary operations (never raise)
    # ------------------------------------------------------------------

    async def summarize(self, text: str) -> str:
        if not text.strip():
            return ""
        if self._llm is None:
            return f"{metadata_rules.MOCK_MARKER} {metadata_rules.leading_summary(text)}"
        reply = await self._ask(_SUMMARY_PROMPT, text, "summarize")
        return reply.strip() if reply else ""

    async def extract_keywords(self, text: str) -> list[str]:
        if not text.strip():
            return []
        if self._llm is None:
            return metadata_rules.extract_keywords(text)
        return _split_csv(await self._ask(_KEYWORDS_PROMPT, text, "extract_keywords"))

    async def extract_topics(self, text: str) -> list[str]:
        if not text.strip():
            return []
        if self._llm is None:
            return metadata_rules.derive_topics(metadata_rules.extract_keywords(text))
        return _split_csv(await self._ask(_TOPICS_PROMPT, text, "extract_topics"))

    async def classify(self, text: str) -> str:
        if not text.strip():
            return "unknown"
        if self._llm is None:
            return metadata_rules.classify_text(text)
        reply = await self._ask(_CLASSIFY_PROMPT, text, "classify")
        label = reply.strip().strip(".").lower() if reply else ""
        return label or "unknown"

    async def _ask(self, system_prompt: str, text: str, operation: str) -> str | None:
        assert self._llm is not None
        excerpt = text[: self._aux_max_chars]
        try:
            return await self._llm.complete(
                system_prompt=system_prompt,
                user_prompt=excerpt,
                temperature=0.0,
                max_tokens=300,
            )
        except Exception as exc:
            logger.warning(
                "metadata_enrichment_failed",
                operation=operation,
                provider=self._llm.get_provider_name(),
                error=str(exc),
            )
            return None


def _split_csv(reply: str | None) -> list[str]:
    if not reply:
        return []
    seen: dict[str, None] = {}
    for part in reply.replace("\n", ",").split(","):
        item = part.strip().strip("-*. ").strip()
        if item and item.lower() not in (k.lower() for k in seen):
            seen[item] = None
    return list(seen)
