"""Chunked, concurrent condition extraction over a filtered corpus."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from pydantic import BaseModel

from records_recon.core.config import ExtractionConfig, LLMConfig
from records_recon.events import ProgressEvent
from records_recon.exceptions import LLMClientError
from records_recon.filtering.heuristics import extract_date, extract_provider
from records_recon.models import ExtractedItem, ExtractionOutcome
from records_recon.pipeline.chunking import chunk_corpus
from records_recon.pipeline.parsing import parse_extraction_output
from records_recon.prompts import get_prompt
from records_recon.providers.protocols import ICompletionClient
from records_recon.reconcile.canonical import deduplicate_items

log = logging.getLogger(__name__)

Emit = Callable[[BaseModel], None]


def backfill_from_excerpt(item: ExtractedItem) -> ExtractedItem:
    """Fill a missing date/provider from the item's own excerpt."""
    if not item.excerpt or (item.date_found and item.provider):
        return item
    update: dict[str, str] = {}
    if not item.date_found:
        date = extract_date(item.excerpt)
        if date:
            update["date_found"] = date
    if not item.provider:
        provider = extract_provider(item.excerpt)
        if provider:
            update["provider"] = provider
    return item.model_copy(update=update) if update else item


class ChunkOrchestrator:
    """Fan a corpus out to the extraction service, one call per chunk.

    Each chunk has its own deadlines; a failed chunk contributes nothing and
    does not affect its siblings. Results land in per-chunk slots and are
    merged only after every call has settled. Cancelling ``extract`` cancels
    all in-flight calls.
    """

    def __init__(
        self,
        client: ICompletionClient,
        extraction: ExtractionConfig | None = None,
        llm: LLMConfig | None = None,
    ) -> None:
        self._client = client
        self._extraction = extraction or ExtractionConfig()
        self._llm = llm or LLMConfig()

    async def extract(
        self,
        corpus: str,
        file_names: str,
        emit: Emit,
        start_pct: int = 30,
        end_pct: int = 55,
    ) -> ExtractionOutcome:
        chunks = chunk_corpus(corpus, self._extraction.max_parallel_chunks, self._extraction.chars_per_chunk)
        n = len(chunks)
        plural = "s" if n > 1 else ""
        emit(
            ProgressEvent(
                message=f"Phase 2a: Extracting conditions across {n} parallel stream{plural}...",
                percent=start_pct,
                phase="extraction",
            )
        )

        system_prompt = get_prompt("recon", "extraction", "EXTRACTION_SYSTEM_PROMPT")
        user_template = get_prompt("recon", "extraction", "EXTRACTION_USER_PROMPT")
        completed = 0

        def token_progress(count: int, budget: int) -> None:
            pct = start_pct + round((count / budget) * (end_pct - start_pct) * 0.8)
            emit(
                ProgressEvent(
                    message=f"Phase 2a: Extracting - {count} tokens ({n} stream{plural})...",
                    percent=min(pct, end_pct - 5),
                    phase="extraction",
                )
            )

        async def run_chunk(index: int, chunk: str) -> list[ExtractedItem]:
            nonlocal completed
            output = await self._client.stream_complete(
                user_template.format(file_names=file_names, corpus=chunk),
                system_prompt=system_prompt,
                model=self._llm.extract_model,
                label=f"Extraction chunk {index + 1}/{n}",
                max_tokens=self._llm.max_tokens,
                on_token=token_progress if index == 0 else None,
            )
            completed += 1
            if n > 1:
                emit(
                    ProgressEvent(
                        message=f"Phase 2a: {completed}/{n} streams complete...",
                        percent=start_pct + round((completed / n) * (end_pct - start_pct)),
                        phase="extraction",
                    )
                )
            return [backfill_from_excerpt(item) for item in parse_extraction_output(output)]

        slots = await asyncio.gather(
            *(run_chunk(i, chunk) for i, chunk in enumerate(chunks)),
            return_exceptions=True,
        )

        merged: list[ExtractedItem] = []
        failed = 0
        for index, slot in enumerate(slots):
            if isinstance(slot, BaseException):
                if not isinstance(slot, Exception):
                    raise slot
                failed += 1
                if isinstance(slot, LLMClientError):
                    log.warning("Chunk %d/%d extraction failed: %s", index + 1, n, slot)
                else:
                    log.error("Chunk %d/%d extraction crashed", index + 1, n, exc_info=slot)
                continue
            merged.extend(slot)

        items = deduplicate_items(merged)
        succeeded = bool(items) or failed < n
        log.info(
            "Extraction finished: %d chunks, %d failed, %d raw items, %d after dedup",
            n, failed, len(merged), len(items),
        )
        return ExtractionOutcome(items=items, succeeded=succeeded, chunk_count=n, failed_chunks=failed)
