"""Unit tests for provider adapters — OpenAI, Anthropic and the offline mocks."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mindmesh.config.settings import Settings
from mindmesh.utils.errors import EmbeddingProviderError, LLMError


# ======================================================================
# Shared helpers
# ======================================================================

def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "anthropic_api_key": "test-anthropic",
        "embedding_dimension": 1536,
        "_env_file": None,
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _openai_error(message: str):
    import openai

    return openai.APIError(message=message, request=MagicMock(), body=None)


# ======================================================================
# OpenAI LLM Provider
# ======================================================================


class TestOpenAILLMProvider:
    def test_provider_name_reflects_base_url(self) -> None:
        from mindmesh.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(_settings()).get_provider_name() == "openai"
        compatible = OpenAILLMProvider(_settings(openai_base_url="http://localhost:1234/v1"))
        assert compatible.get_provider_name() == "openai-compatible"

    def test_is_available_without_key(self) -> None:
        from mindmesh.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_complete_success(self) -> None:
        from mindmesh.providers.llm.openai_provider import OpenAILLMProvider

        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content="LLM response text"))]
        mock_response.usage = MagicMock(total_tokens=100)

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch("mindmesh.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            result = await provider.complete("system prompt", "user prompt", temperature=0.0, max_tokens=10)

        assert result == "LLM response text"
        kwargs = mock_client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "system prompt"}
        assert kwargs["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_empty_content_is_an_error(self) -> None:
        from mindmesh.providers.llm.openai_provider import OpenAILLMProvider

        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content=None))]
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch("mindmesh.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            with pytest.raises(LLMError):
                await OpenAILLMProvider(_settings()).complete("s", "u")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        from mindmesh.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=_openai_error("Rate limit exceeded"))

        with patch("mindmesh.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            with pytest.raises(LLMError) as exc_info:
                await OpenAILLMProvider(_settings()).complete("s", "u")

        assert exc_info.value.provider_name == "openai"


# ======================================================================
# Anthropic LLM Provider
# ======================================================================


class TestAnthropicLLMProvider:
    @pytest.mark.asyncio
    async def test_text_blocks_joined(self) -> None:
        from mindmesh.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_response = MagicMock()
        mock_response.content = [
            MagicMock(type="text", text="First part."),
            MagicMock(type="tool_use", text="ignored"),
            MagicMock(type="text", text="Second part."),
        ]
        mock_response.usage = MagicMock(input_tokens=10, output_tokens=5)
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        with patch("mindmesh.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            result = await AnthropicLLMProvider(_settings()).complete("system", "user")

        assert result == "First part.\nSecond part."
        assert mock_client.messages.create.await_args.kwargs["system"] == "system"

    @pytest.mark.asyncio
    async def test_no_text_is_an_error(self) -> None:
        from mindmesh.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_response = MagicMock()
        mock_response.content = []
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        with patch("mindmesh.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            with pytest.raises(LLMError):
                await AnthropicLLMProvider(_settings()).complete("system", "user")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        import anthropic

        from mindmesh.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(
            side_effect=anthropic.APIError(message="overloaded", request=MagicMock(), body=None)
        )

        with patch("mindmesh.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            with pytest.raises(LLMError) as exc_info:
                await AnthropicLLMProvider(_settings()).complete("system", "user")

        assert exc_info.value.provider_name == "anthropic"


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        from mindmesh.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_response = MagicMock()
        mock_response.data = [MagicMock(embedding=[0.1, 0.2, 0.3])]
        mock_response.usage = MagicMock(total_tokens=3)
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=mock_response)

        with patch(
            "mindmesh.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            result = await provider.embed_single("hello")

        assert result == [0.1, 0.2, 0.3]
        assert "dimensions" not in mock_client.embeddings.create.await_args.kwargs

    @pytest.mark.asyncio
    async def test_shortened_dimension_requested(self) -> None:
        from mindmesh.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_response = MagicMock()
        mock_response.data = [MagicMock(embedding=[0.0] * 256)]
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=mock_response)

        with patch(
            "mindmesh.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings(embedding_dimension=256))
            await provider.embed(["hello"])

        assert provider.get_dimension() == 256
        assert mock_client.embeddings.create.await_args.kwargs["dimensions"] == 256

    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        from mindmesh.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        with patch("mindmesh.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI"):
            assert await OpenAIEmbeddingProvider(_settings()).embed([]) == []

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        from mindmesh.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(side_effect=_openai_error("bad request"))

        with patch(
            "mindmesh.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            with pytest.raises(EmbeddingProviderError):
                await OpenAIEmbeddingProvider(_settings()).embed(["hello"])


# ======================================================================
# Offline providers
# ======================================================================


class TestMockProviders:
    @pytest.mark.asyncio
    async def test_mock_embedding_is_deterministic(self) -> None:
        from mindmesh.providers.embedding.mock_embedding_provider import MockEmbeddingProvider

        provider = MockEmbeddingProvider(dimension=16)
        first, second, other = await provider.embed(["same", "same", "different"])

        assert len(first) == 16
        assert first == second
        assert first != other
        assert all(-1.0 <= value < 1.0 for value in first)

    @pytest.mark.asyncio
    async def test_mock_llm_echoes_question(self) -> None:
        from mindmesh.providers.llm.mock_provider import MockLLMProvider

        reply = await MockLLMProvider().complete(
            "system", "CONTEXT:\nstuff\n\nQUESTION:\nWhy is the sky blue?\n\nANSWER:"
        )

        assert reply.startswith("[MOCK]")
        assert reply.endswith("You asked: Why is the sky blue?")

    @pytest.mark.asyncio
    async def test_mock_llm_without_question_marker(self) -> None:
        from mindmesh.providers.llm.mock_provider import MockLLMProvider

        reply = await MockLLMProvider().complete("system", "x" * 300)

        assert reply.endswith("x" * 200 + "...")
