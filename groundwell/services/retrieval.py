"""Query-time retrieval step.

Embeds the user's message, pulls the nearest chunks from the vector index,
and formats them into a context block appended to the system prompt.
Retrieval is best-effort: any failure degrades to an empty context so the
chat reply is still produced without grounding.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from groundwell.interfaces.embedding_provider import IEmbeddingProvider
    from groundwell.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

CONTEXT_PREAMBLE = (
    "\n\nUse the following context from the knowledge base to help answer "
    "the user's question. If the context is not relevant, you may ignore it."
    "\n\n---\n"
)
CONTEXT_TRAILER = "\n---\n"

DEFAULT_TOP_K = 5


def format_context(texts: list[str]) -> str:
    """Wrap retrieved chunk texts in the context block.  Empty input gives ``""``."""
    if not texts:
        return ""
    return CONTEXT_PREAMBLE + "\n\n".join(texts) + CONTEXT_TRAILER


class RetrievalService:
    """Nearest-chunk lookup for chat grounding.

    Parameters
    ----------
    vector_store:
        Index searched for the message's nearest chunks.
    top_k:
        Number of hits requested per query.
    """

    def __init__(self, vector_store: IVectorStoreProvider, top_k: int = DEFAULT_TOP_K) -> None:
        self._vector_store = vector_store
        self._top_k = top_k

    async def build_context(self, message: str, embedder: IEmbeddingProvider) -> str:
        """Return the formatted context block for *message*, or ``""``."""
        try:
            vector = await embedder.embed_single(message)
            hits = await self._vector_store.search(vector, self._top_k)
        except Exception as exc:  # noqa: BLE001  retrieval never blocks the reply
            logger.warning("rag_retrieval_failed", error=str(exc))
            return ""

        texts = [hit.content for hit in hits if hit.content.strip()]
        logger.debug("rag_retrieved", hits=len(hits), used=len(texts))
        return format_context(texts)

    async def augment_system_prompt(
        self,
        system_prompt: str,
        message: str,
        embedder: IEmbeddingProvider,
    ) -> str:
        return system_prompt + await self.build_context(message, embedder)
