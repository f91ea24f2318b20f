"""Abstract base class for LLM completion providers.

Implementations wrap the Anthropic Messages API or an OpenAI-compatible
chat-completions endpoint.  The chat service is provider-agnostic and only
calls :meth:`ILLMProvider.complete`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: AnthropicLLMProvider, OpenAICompatibleLLMProvider
# Located in: groundwell/providers/llm/
class ILLMProvider(ABC):
    """Contract for text-completion services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            Instruction message, including any retrieved context block.
        user_prompt:
            The user's message.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on the response length.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        groundwell.utils.errors.ProviderError
            If the API call fails or returns no text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"anthropic:claude-sonnet-4-20250514"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are present."""

    async def aclose(self) -> None:
        """Release the underlying HTTP client.  No-op unless overridden."""
