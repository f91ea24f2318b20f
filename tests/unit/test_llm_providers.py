"""Unit tests for the LLM provider adapters with mocked SDK clients."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import openai
import pytest

from groundwell.providers.llm.anthropic_provider import AnthropicLLMProvider
from groundwell.providers.llm.openai_provider import OpenAICompatibleLLMProvider
from groundwell.utils.errors import ProviderError


def _chat_response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=42),
    )


class TestOpenAICompatibleLLMProvider:
    @pytest.mark.asyncio
    async def test_complete(self) -> None:
        provider = OpenAICompatibleLLMProvider("groq", "gsk", "llama-3.3-70b-versatile")
        create = AsyncMock(return_value=_chat_response("Paris."))

        with patch.object(provider._client.chat.completions, "create", create):
            reply = await provider.complete("Be terse.", "Capital of France?")

        assert reply == "Paris."
        messages = create.await_args.kwargs["messages"]
        assert messages == [
            {"role": "system", "content": "Be terse."},
            {"role": "user", "content": "Capital of France?"},
        ]
        assert provider.get_provider_name() == "groq:llama-3.3-70b-versatile"

    @pytest.mark.asyncio
    async def test_empty_response(self) -> None:
        provider = OpenAICompatibleLLMProvider("openai", "sk", "gpt-4o-mini")
        create = AsyncMock(return_value=_chat_response(""))
        with patch.object(provider._client.chat.completions, "create", create):
            with pytest.raises(ProviderError, match="empty response"):
                await provider.complete("s", "u")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        provider = OpenAICompatibleLLMProvider("openai", "sk", "gpt-4o-mini")
        error = openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.com"))
        with patch.object(
            provider._client.chat.completions, "create", AsyncMock(side_effect=error)
        ):
            with pytest.raises(ProviderError, match="timed out"):
                await provider.complete("s", "u")


class TestAnthropicLLMProvider:
    @pytest.mark.asyncio
    async def test_system_prompt_is_top_level(self) -> None:
        provider = AnthropicLLMProvider(api_key="sk-ant", model="claude-sonnet-4-20250514")
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="First."),
                SimpleNamespace(type="tool_use", text=None),
                SimpleNamespace(type="text", text=" Second."),
            ],
            usage=SimpleNamespace(input_tokens=10, output_tokens=4),
        )
        create = AsyncMock(return_value=response)

        with patch.object(provider._client.messages, "create", create):
            reply = await provider.complete("Context block", "Question")

        assert reply == "First. Second."
        kwargs = create.await_args.kwargs
        assert kwargs["system"] == "Context block"
        assert kwargs["messages"] == [{"role": "user", "content": "Question"}]

    @pytest.mark.asyncio
    async def test_no_text_blocks(self) -> None:
        provider = AnthropicLLMProvider(api_key="sk-ant")
        response = SimpleNamespace(content=[], usage=SimpleNamespace(input_tokens=1, output_tokens=0))
        with patch.object(provider._client.messages, "create", AsyncMock(return_value=response)):
            with pytest.raises(ProviderError, match="no text content"):
                await provider.complete("s", "u")

    def test_availability(self) -> None:
        assert AnthropicLLMProvider(api_key="sk-ant").is_available()
        assert not AnthropicLLMProvider(api_key="").is_available()
