"""Overlapping word-window chunking.

Text is split on whitespace and cut into windows of ``chunk_size`` words.
Each window starts ``chunk_size - overlap`` words after the previous one,
so consecutive chunks share exactly ``overlap`` words and a sentence that
straddles a boundary appears whole in at least one of them::

    words:    w0 w1 w2 w3 w4 w5 w6 w7 w8 w9
    size=4, overlap=1
    chunk 0:  w0 w1 w2 w3
    chunk 1:           w3 w4 w5 w6
    chunk 2:                    w6 w7 w8 w9

The final window may be shorter.  Chunking is pure and deterministic.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(logger_name=__name__)


def chunk_text(text: str, chunk_size: int, overlap: int) -> list[str]:
    """Split *text* into overlapping windows of at most *chunk_size* words.

    Returns an empty list for empty or whitespace-only input.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not 0 <= overlap < chunk_size:
        raise ValueError(f"overlap must be in [0, {chunk_size}), got {overlap}")

    words = text.split()
    if not words:
        return []

    step = chunk_size - overlap
    chunks: list[str] = []
    start = 0
    while start < len(words):
        end = min(start + chunk_size, len(words))
        chunk = " ".join(words[start:end])
        if chunk.strip():
            chunks.append(chunk)
        if end >= len(words):
            break
        start += step
    return chunks


class TextChunker:
    """Word-window chunker with fixed size and overlap.

    Parameters
    ----------
    chunk_size:
        Maximum words per chunk (default 200).
    overlap:
        Words shared by consecutive chunks (default 30).  Must be smaller
        than ``chunk_size``.
    """

    def __init__(self, chunk_size: int = 200, overlap: int = 30) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= overlap < chunk_size:
            raise ValueError(f"overlap must be in [0, {chunk_size}), got {overlap}")
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(self, text: str) -> list[str]:
        chunks = chunk_text(text, self._chunk_size, self._overlap)
        logger.debug(
            "text_chunked",
            chunks=len(chunks),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks
