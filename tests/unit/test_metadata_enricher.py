"""Unit tests for MetadataEnricher — LLM JSON parsing, rule-based fallback,
and the detailed strategy.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from mindmesh.interfaces.llm_provider import ILLMProvider
from mindmesh.models.metadata import DocumentMetadata
from mindmesh.services.ingestion import metadata_rules
from mindmesh.services.ingestion.metadata_enricher import MetadataEnricher

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_ENGLISH_TEXT = (
    "The committee reviewed the budget for the next fiscal year. "
    "The budget includes funding for research and for the new laboratory. "
    "Members agreed that the laboratory budget should be increased."
)

_VALID_REPLY = {
    "document_type": "Report",
    "keywords": ["budget", "laboratory", "research"],
    "topics": ["Finance", "Science"],
    "summary": "The committee reviewed next year's budget.",
    "language": "EN",
    "confidence": 0.9,
}


def _llm(reply: str | Exception | None = None, *, delay: float = 0.0) -> MagicMock:
    llm = MagicMock(spec=ILLMProvider)

    async def _complete(**_kwargs) -> str:
        if delay:
            await asyncio.sleep(delay)
        if isinstance(reply, Exception):
            raise reply
        return reply or ""

    llm.complete = AsyncMock(side_effect=_complete)
    llm.get_provider_name.return_value = "test_llm"
    return llm


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


class TestParseResponse:
    def test_clean_json(self) -> None:
        meta = MetadataEnricher._parse_response(json.dumps(_VALID_REPLY))

        assert meta.document_type == "report"
        assert meta.language == "en"
        assert meta.keywords == ["budget", "laboratory", "research"]
        assert meta.confidence == pytest.approx(0.9)

    def test_markdown_fenced_json(self) -> None:
        reply = f"```json\n{json.dumps(_VALID_REPLY)}\n```"
        assert MetadataEnricher._parse_response(reply).topics == ["Finance", "Science"]

    def test_json_embedded_in_prose(self) -> None:
        reply = f"Here is the metadata: {json.dumps(_VALID_REPLY)} Hope this helps."
        assert MetadataEnricher._parse_response(reply).summary.startswith("The committee")

    def test_confidence_is_clamped(self) -> None:
        reply = json.dumps({**_VALID_REPLY, "confidence": 7})
        assert MetadataEnricher._parse_response(reply).confidence == 1.0

    def test_comma_separated_keywords_accepted(self) -> None:
        reply = json.dumps({**_VALID_REPLY, "keywords": "alpha, beta"})
        assert MetadataEnricher._parse_response(reply).keywords == ["alpha", "beta"]

    def test_garbage_raises(self) -> None:
        with pytest.raises(ValueError):
            MetadataEnricher._parse_response("not json at all")

    def test_json_array_raises(self) -> None:
        with pytest.raises(ValueError):
            MetadataEnricher._parse_response("[1, 2, 3]")


# ---------------------------------------------------------------------------
# Single strategy
# ---------------------------------------------------------------------------


class TestSingleStrategy:
    @pytest.mark.asyncio()
    async def test_blank_text_returns_empty_metadata(self) -> None:
        llm = _llm(json.dumps(_VALID_REPLY))
        meta = await MetadataEnricher(llm=llm).enrich("   ", "notes.md")

        assert meta.document_type == "markdown"
        assert meta.keywords == []
        llm.complete.assert_not_called()

    @pytest.mark.asyncio()
    async def test_uses_llm_reply(self) -> None:
        llm = _llm(json.dumps(_VALID_REPLY))
        meta = await MetadataEnricher(llm=llm).enrich(_ENGLISH_TEXT, "minutes.txt")

        assert meta.document_type == "report"
        assert meta.confidence == pytest.approx(0.9)
        llm.complete.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_prompt_is_bounded(self) -> None:
        llm = _llm(json.dumps(_VALID_REPLY))
        await MetadataEnricher(llm=llm, max_chars=50).enrich("z" * 1000, "a.txt")

        prompt = llm.complete.await_args.kwargs["user_prompt"]
        assert prompt.count("z") == 50

    @pytest.mark.asyncio()
    async def test_unknown_type_falls_back_to_extension(self) -> None:
        llm = _llm(json.dumps({**_VALID_REPLY, "document_type": "other"}))
        meta = await MetadataEnricher(llm=llm).enrich(_ENGLISH_TEXT, "paper.pdf")
        assert meta.document_type == "pdf"

    @pytest.mark.asyncio()
    async def test_llm_error_falls_back_to_rules(self) -> None:
        meta = await MetadataEnricher(llm=_llm(RuntimeError("down"))).enrich(_ENGLISH_TEXT, "a.txt")

        assert meta.summary.startswith(metadata_rules.MOCK_MARKER)
        assert meta.confidence == pytest.approx(0.5)

    @pytest.mark.asyncio()
    async def test_unparseable_reply_falls_back_to_rules(self) -> None:
        meta = await MetadataEnricher(llm=_llm("I cannot help with that")).enrich(_ENGLISH_TEXT)
        assert meta.keywords[0] == "budget"

    @pytest.mark.asyncio()
    async def test_timeout_falls_back_to_rules(self) -> None:
        enricher = MetadataEnricher(llm=_llm(json.dumps(_VALID_REPLY), delay=5), timeout_seconds=0.05)
        meta = await enricher.enrich(_ENGLISH_TEXT, "a.txt")
        assert meta.summary.startswith(metadata_rules.MOCK_MARKER)


class TestRuleBased:
    def test_offline_metadata(self) -> None:
        meta = MetadataEnricher.rule_based_metadata(_ENGLISH_TEXT, "minutes.txt")

        assert isinstance(meta, DocumentMetadata)
        assert meta.document_type == "text"
        assert meta.language == "en"
        assert meta.keywords[0] == "budget"
        assert meta.topics[0] == "Budget"
        assert meta.summary.startswith("[MOCK] The committee")

    def test_portuguese_detected(self) -> None:
        text = "O relatório mostra que a receita cresceu muito e que os custos não subiram."
        assert MetadataEnricher.rule_based_metadata(text).language == "pt"

    @pytest.mark.asyncio()
    async def test_enrich_without_llm_is_rule_based(self) -> None:
        meta = await MetadataEnricher().enrich(_ENGLISH_TEXT, "notes.md")
        assert meta.document_type == "markdown"
        assert meta.confidence == pytest.approx(0.5)


# ---------------------------------------------------------------------------
# Detailed strategy
# ---------------------------------------------------------------------------


class TestDetailedStrategy:
    def test_requires_embedding_client(self) -> None:
        with pytest.raises(ValueError):
            MetadataEnricher(strategy="detailed")

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(ValueError):
            MetadataEnricher(strategy="fancy")

    @pytest.mark.asyncio()
    async def test_offline_detailed_adds_stats_and_hash(self, embedding_client) -> None:
        enricher = MetadataEnricher(embedding_client=embedding_client, strategy="detailed")

        meta = await enricher.enrich(_ENGLISH_TEXT, "minutes.txt")

        assert meta.document_type == "text"
        assert meta.extra["stats"]["words"] == len(_ENGLISH_TEXT.split())
        assert meta.extra["semantic_hash"] == metadata_rules.semantic_hash(_ENGLISH_TEXT)
        assert "semantic_hash" in meta.to_metadata()
