"""Split a filtered corpus into roughly equal chunks on paragraph boundaries."""

from __future__ import annotations

import math

from records_recon.filtering.salience import CORPUS_SEPARATOR


def chunk_corpus(corpus: str, max_chunks: int = 4, target_chars: int = 5_000) -> list[str]:
    """Split *corpus* into at most *max_chunks* chunks near *target_chars* each.

    A corpus with one paragraph, or shorter than one target, comes back as a
    single chunk unchanged. Paragraphs are never split.
    """
    paragraphs = [p for p in corpus.split(CORPUS_SEPARATOR) if p.strip()]
    if len(paragraphs) <= 1:
        return [corpus]

    total = sum(len(p) for p in paragraphs)
    num_chunks = min(max_chunks, max(1, math.ceil(total / target_chars)))
    if num_chunks <= 1:
        return [corpus]

    target = math.ceil(total / num_chunks)
    chunks: list[str] = []
    current: list[str] = []
    size = 0
    for para in paragraphs:
        if size >= target and len(chunks) < num_chunks - 1:
            chunks.append(CORPUS_SEPARATOR.join(current))
            current = []
            size = 0
        current.append(para)
        size += len(para)
    if current:
        chunks.append(CORPUS_SEPARATOR.join(current))
    return chunks
