"""Tests for corpus chunking."""

from __future__ import annotations

from records_recon.pipeline import chunk_corpus


class TestChunkCorpus:
    def test_single_paragraph_is_one_chunk(self) -> None:
        corpus = "x" * 20_000
        assert chunk_corpus(corpus, max_chunks=4, target_chars=5_000) == [corpus]

    def test_below_target_is_one_chunk(self) -> None:
        corpus = "first paragraph\n\nsecond paragraph"
        assert chunk_corpus(corpus) == [corpus]

    def test_splits_on_paragraph_boundaries_up_to_max(self) -> None:
        paragraphs = [f"[Page {i}] " + "y" * 990 for i in range(10)]
        corpus = "\n\n".join(paragraphs)
        chunks = chunk_corpus(corpus, max_chunks=4, target_chars=2_000)
        assert len(chunks) == 4
        assert "\n\n".join(chunks) == corpus
        for chunk in chunks:
            for para in chunk.split("\n\n"):
                assert para in paragraphs

    def test_chunk_count_follows_target(self) -> None:
        corpus = "\n\n".join("z" * 1_000 for _ in range(6))
        assert len(chunk_corpus(corpus, max_chunks=4, target_chars=3_000)) == 2
