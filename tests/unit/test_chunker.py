"""Unit tests for the word-window TextChunker."""

from __future__ import annotations

import pytest

from groundwell.services.ingestion.chunker import TextChunker, chunk_text


def _words(n: int) -> str:
    return " ".join(f"w{i}" for i in range(n))


class TestWindowing:
    def test_no_chunk_exceeds_window(self, sample_text: str) -> None:
        chunker = TextChunker(chunk_size=20, overlap=5)
        chunks = chunker.chunk(sample_text)

        assert len(chunks) > 1
        assert all(len(c.split()) <= 20 for c in chunks)

    def test_consecutive_chunks_share_overlap(self) -> None:
        chunks = chunk_text(_words(10), chunk_size=4, overlap=1)

        assert chunks == ["w0 w1 w2 w3", "w3 w4 w5 w6", "w6 w7 w8 w9"]

    def test_union_of_chunks_covers_every_word(self) -> None:
        text = _words(100)
        chunks = chunk_text(text, chunk_size=30, overlap=5)

        seen = {word for chunk in chunks for word in chunk.split()}
        assert seen == set(text.split())

    def test_final_window_may_be_short(self) -> None:
        chunks = chunk_text(_words(7), chunk_size=5, overlap=0)

        assert chunks == ["w0 w1 w2 w3 w4", "w5 w6"]

    def test_short_text_is_one_chunk(self) -> None:
        assert chunk_text("just a few words", chunk_size=200, overlap=30) == [
            "just a few words"
        ]

    def test_whitespace_is_normalised(self) -> None:
        assert chunk_text("a\n\nb\t c", chunk_size=10, overlap=2) == ["a b c"]

    def test_deterministic(self, sample_text: str) -> None:
        chunker = TextChunker(chunk_size=25, overlap=5)
        assert chunker.chunk(sample_text) == chunker.chunk(sample_text)


class TestEmptyInput:
    @pytest.mark.parametrize("text", ["", "   ", "\n\t\n"])
    def test_empty_text_yields_no_chunks(self, text: str) -> None:
        assert TextChunker().chunk(text) == []


class TestConfiguration:
    def test_defaults(self) -> None:
        chunker = TextChunker()
        assert chunker.chunk_size == 200
        assert chunker.overlap == 30

    @pytest.mark.parametrize(
        ("chunk_size", "overlap"),
        [(0, 0), (-5, 0), (10, 10), (10, 11), (10, -1)],
    )
    def test_invalid_configuration_rejected(self, chunk_size: int, overlap: int) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=chunk_size, overlap=overlap)
