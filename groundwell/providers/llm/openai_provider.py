"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.  Many
hosted model services (Groq, DeepSeek, Mistral, Together, OpenRouter, xAI,
Perplexity, Ollama) expose the chat-completions API, so one adapter pointed
at a different ``base_url`` covers all of them.
"""

from __future__ import annotations

import openai
import structlog

from groundwell.interfaces.llm_provider import ILLMProvider
from groundwell.utils.errors import ProviderError

logger = structlog.get_logger(logger_name=__name__)


class OpenAICompatibleLLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        provider: str,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._provider = provider
        self._api_key = api_key
        self._model = model
        client_kwargs: dict = {"api_key": api_key, "timeout": timeout}
        if base_url:
            client_kwargs["base_url"] = base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise ProviderError(
                message=f"{self._provider} completion timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(
                message=f"{self._provider} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError(
                message=f"{self._provider} returned an empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "llm_completion",
            provider=self._provider,
            model=self._model,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def get_provider_name(self) -> str:
        return f"{self._provider}:{self._model}"

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def aclose(self) -> None:
        await self._client.close()
