"""Chat completion grounded in the knowledge base.

Flow for one message:
  1. Resolve the completion provider (and, best-effort, the embedding
     provider) through the registry.
  2. Append retrieved context to the system prompt.  A missing embedding
     credential or a retrieval failure just means no context.
  3. Call the LLM.  Only a completion failure fails the request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from groundwell.models.rag import ChatReply
from groundwell.utils.errors import ConfigurationError, ValidationError

if TYPE_CHECKING:
    from groundwell.interfaces.embedding_provider import IEmbeddingProvider
    from groundwell.providers.registry import ProviderRegistry
    from groundwell.services.retrieval import RetrievalService

logger = structlog.get_logger(logger_name=__name__)


class ChatService:
    """Answer chat messages with RAG-augmented completions.

    Parameters
    ----------
    providers:
        Registry resolving LLM and embedding clients.
    retrieval:
        Retrieval step used to build the context block.
    default_system_prompt:
        Used when the caller does not supply a system prompt.
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        retrieval: RetrievalService,
        default_system_prompt: str,
    ) -> None:
        self._providers = providers
        self._retrieval = retrieval
        self._default_system_prompt = default_system_prompt

    async def reply(
        self,
        message: str,
        system_prompt: str | None = None,
        provider: str | None = None,
        model: str | None = None,
    ) -> ChatReply:
        """Return the LLM's reply to *message*.

        Raises
        ------
        ValidationError
            Empty message.
        ConfigurationError
            Unknown completion provider or missing credential.
        ProviderError
            The completion call failed.
        """
        if not message.strip():
            raise ValidationError(message="Message must not be empty")

        llm = self._providers.llm(provider=provider, model=model)
        base_prompt = system_prompt or self._default_system_prompt

        embedder = self._embedder()
        if embedder is None:
            augmented = base_prompt
        else:
            augmented = await self._retrieval.augment_system_prompt(base_prompt, message, embedder)

        text = await llm.complete(system_prompt=augmented, user_prompt=message)
        context_used = augmented != base_prompt
        logger.info(
            "chat_replied",
            provider=llm.get_provider_name(),
            context_used=context_used,
            reply_chars=len(text),
        )
        return ChatReply(reply=text, provider=llm.get_provider_name(), context_used=context_used)

    def _embedder(self) -> IEmbeddingProvider | None:
        try:
            return self._providers.embedding()
        except ConfigurationError as exc:
            logger.info("rag_skipped", reason=exc.message)
            return None
