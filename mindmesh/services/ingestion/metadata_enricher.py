"""Document-level metadata enrichment.

Produces one :class:`~mindmesh.models.metadata.DocumentMetadata` per
document (never per chunk).  Its fields are document type, keywords,
topics, summary, language and confidence.  The result is merged into
every chunk's metadata by the ingestion service.

Two strategies are available:

- ``"single"`` (default) -- one LLM call asking for a strict JSON object.
  Markdown fences and surrounding prose are tolerated when parsing.
- ``"detailed"`` -- the summarize / keywords / topics / classify
  operations of :class:`~mindmesh.services.embedding_client.EmbeddingClient`,
  plus document statistics and a semantic hash.

Enrichment never raises.  When no LLM is configured, or the call or
parse fails, the rule-based heuristics in
:mod:`mindmesh.services.ingestion.metadata_rules` supply the metadata.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import structlog

from mindmesh.interfaces.llm_provider import ILLMProvider
from mindmesh.models.metadata import DocumentMetadata
from mindmesh.services.embedding_client import EmbeddingClient
from mindmesh.services.ingestion import metadata_rules

logger = structlog.get_logger(logger_name=__name__)

_RULE_BASED_CONFIDENCE = 0.5
_DETAILED_CONFIDENCE = 0.7

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)

_SYSTEM_PROMPT = """\
You analyse documents and describe them with structured metadata.
Respond with a single JSON object and nothing else, using exactly these keys:
  "document_type": one of "article", "report", "manual", "code", "email",
                   "legal", "academic", "notes", "markdown", "text", "other"
  "keywords":      5 to 10 short keywords (array of strings)
  "topics":        2 to 5 broad topics (array of strings)
  "summary":       2 or 3 sentences in the document's language
  "language":      ISO-639-1 code of the document's language
  "confidence":    number between 0 and 1 expressing your certainty
"""


class MetadataEnricher:
    """Describes a document with a single LLM call or rule-based fallback.

    Parameters
    ----------
    llm:
        Generator used for the ``"single"`` strategy; ``None`` means offline.
    embedding_client:
        Required for the ``"detailed"`` strategy.
    strategy:
        ``"single"`` or ``"detailed"``.
    max_chars:
        Only the first *max_chars* characters are sent to the model.
    timeout_seconds:
        Bound on the single LLM call.
    """

    def __init__(
        self,
        llm: ILLMProvider | None = None,
        embedding_client: EmbeddingClient | None = None,
        *,
        strategy: str = "single",
        max_chars: int = 6000,
        timeout_seconds: float = 60.0,
    ) -> None:
        if strategy not in ("single", "detailed"):
            raise ValueError(f"Unknown enrichment strategy: {strategy!r}")
        if strategy == "detailed" and embedding_client is None:
            raise ValueError("The detailed strategy needs an embedding client")
        self._llm = llm
        self._client = embedding_client
        self._strategy = strategy
        self._max_chars = max_chars
        self._timeout = timeout_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enrich(self, text: str, filename: str | None = None) -> DocumentMetadata:
        """Return descriptive metadata for *text*; never raises."""
        if not text or not text.strip():
            return self.empty_metadata(filename)
        if self._strategy == "detailed":
            return await self._enrich_detailed(text, filename)
        if self._llm is None:
            return self.rule_based_metadata(text, filename)

        excerpt = text[: self._max_chars]
        try:
            reply = await asyncio.wait_for(
                self._llm.complete(
                    system_prompt=_SYSTEM_PROMPT,
                    user_prompt=f"Filename: {filename or 'unknown'}\n\nDocument:\n{excerpt}",
                    temperature=0.0,
                    max_tokens=600,
                ),
                timeout=self._timeout,
            )
            metadata = self._parse_response(reply)
        except Exception as exc:
            logger.warning(
                "metadata_enrichment_failed",
                provider=self._llm.get_provider_name(),
                filename=filename,
                error=str(exc) or type(exc).__name__,
            )
            return self.rule_based_metadata(text, filename)

        if metadata.document_type in ("", "unknown", "other"):
            fallback_type = metadata_rules.detect_document_type(filename)
            if fallback_type != "unknown":
                metadata = metadata.model_copy(update={"document_type": fallback_type})
        return metadata

    @staticmethod
    def rule_based_metadata(text: str, filename: str | None = None) -> DocumentMetadata:
        """Deterministic offline metadata built from heuristics."""
        keywords = metadata_rules.extract_keywords(text)
        document_type = metadata_rules.detect_document_type(filename)
        if document_type == "unknown":
            document_type = metadata_rules.classify_text(text)
        return DocumentMetadata(
            document_type=document_type,
            keywords=keywords,
            topics=metadata_rules.derive_topics(keywords),
            summary=f"{metadata_rules.MOCK_MARKER} {metadata_rules.leading_summary(text)}",
            language=metadata_rules.detect_language(text),
            confidence=_RULE_BASED_CONFIDENCE,
        )

    @staticmethod
    def empty_metadata(filename: str | None = None) -> DocumentMetadata:
        return DocumentMetadata(document_type=metadata_rules.detect_document_type(filename))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _enrich_detailed(self, text: str, filename: str | None) -> DocumentMetadata:
        assert self._client is not None
        summary, keywords, topics, label = await asyncio.gather(
            self._client.summarize(text),
            self._client.extract_keywords(text),
            self._client.extract_topics(text),
            self._client.classify(text),
        )
        document_type = label
        if document_type in ("", "unknown", "other"):
            document_type = metadata_rules.detect_document_type(filename)
        return DocumentMetadata(
            document_type=document_type,
            keywords=keywords,
            topics=topics,
            summary=summary,
            language=metadata_rules.detect_language(text),
            confidence=_DETAILED_CONFIDENCE if self._llm is not None else _RULE_BASED_CONFIDENCE,
            extra={
                "stats": metadata_rules.document_stats(text),
                "semantic_hash": metadata_rules.semantic_hash(text),
            },
        )

    @staticmethod
    def _parse_response(response: str) -> DocumentMetadata:
        """Parse the model's JSON reply; raises ``ValueError`` if unusable.

        Handles clean JSON, markdown-fenced JSON, and JSON embedded in prose.
        """
        cleaned = response.strip()
        fence_match = _FENCE_RE.search(cleaned)
        if fence_match:
            cleaned = fence_match.group(1).strip()
        else:
            brace_start = cleaned.find("{")
            brace_end = cleaned.rfind("}")
            if brace_start != -1 and brace_end > brace_start:
                cleaned = cleaned[brace_start : brace_end + 1]

        data = json.loads(cleaned)
        if not isinstance(data, dict):
            raise ValueError("Metadata reply is not a JSON object")

        return DocumentMetadata(
            document_type=str(data.get("document_type") or "unknown").strip().lower(),
            keywords=_as_str_list(data.get("keywords")),
            topics=_as_str_list(data.get("topics")),
            summary=str(data.get("summary") or "").strip(),
            language=str(data.get("language") or "unknown").strip().lower(),
            confidence=_clamp_confidence(data.get("confidence")),
        )


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def _clamp_confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return min(1.0, max(0.0, number))
