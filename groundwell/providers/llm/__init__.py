"""LLM provider adapters.

Two concrete implementations of ILLMProvider (groundwell/interfaces/llm_provider.py):
    - OpenAICompatibleLLMProvider -- OpenAI and every OpenAI-compatible API
      (Groq, DeepSeek, Mistral, Together, OpenRouter, xAI, Perplexity, Ollama)
    - AnthropicLLMProvider        -- Claude models via the anthropic SDK
"""

from groundwell.providers.llm.anthropic_provider import AnthropicLLMProvider
from groundwell.providers.llm.openai_provider import OpenAICompatibleLLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAICompatibleLLMProvider"]
