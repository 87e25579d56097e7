"""Deterministic offline LLM provider.

Used when no LLM credential is configured.  It never calls the network;
the reply echoes the question found in the prompt so answers stay
traceable in offline demos and tests.
"""

from __future__ import annotations

import re

from mindmesh.interfaces.llm_provider import ILLMProvider

_QUESTION_RE = re.compile(r"QUESTION:\s*(.+?)(?:\n\s*\n|\nANSWER:|\Z)", re.DOTALL)
_PREVIEW_CHARS = 200


class MockLLMProvider(ILLMProvider):
    """Returns ``"[MOCK] ..."`` answers without any external call."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1500,
    ) -> str:
        match = _QUESTION_RE.search(user_prompt)
        subject = match.group(1).strip() if match else user_prompt.strip()
        if len(subject) > _PREVIEW_CHARS:
            subject = subject[:_PREVIEW_CHARS] + "..."
        return (
            "[MOCK] This is a simulated answer generated without a language model. "
            f"You asked: {subject}"
        )

    def get_provider_name(self) -> str:
        return "mock"

    def is_available(self) -> bool:
        return True
