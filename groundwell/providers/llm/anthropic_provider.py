"""Anthropic Messages API adapter for :class:`ILLMProvider`.

Unlike the OpenAI-compatible adapter, the system prompt (with any retrieved
context appended) travels as the top-level ``system`` field, and the reply
arrives as a list of content blocks of which only ``text`` blocks count.
"""

from __future__ import annotations

import anthropic
import structlog

from groundwell.interfaces.llm_provider import ILLMProvider
from groundwell.utils.errors import ProviderError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicLLMProvider(ILLMProvider):
    """Completion provider for Claude models."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, timeout: float = 60.0) -> None:
        self._api_key = api_key
        self._model = model
        self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        name = self.get_provider_name()
        try:
            message = await self._client.messages.create(
                model=self._model,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except anthropic.APITimeoutError as exc:
            raise ProviderError(message="anthropic completion timed out", provider_name=name) from exc
        except anthropic.APIError as exc:
            raise ProviderError(message=f"anthropic API error: {exc}", provider_name=name) from exc

        # Consecutive text blocks are pieces of one answer.
        text = "".join(block.text for block in message.content if block.type == "text")
        if not text.strip():
            raise ProviderError(message="anthropic returned no text content", provider_name=name)

        if getattr(message, "stop_reason", None) == "max_tokens":
            logger.warning("llm_completion_truncated", provider=name, max_tokens=max_tokens)
        logger.info(
            "llm_completion",
            provider=name,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
        )
        return text

    def get_provider_name(self) -> str:
        return f"anthropic:{self._model}"

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def aclose(self) -> None:
        await self._client.close()
