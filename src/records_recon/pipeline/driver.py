"""Pipeline driver: runs one scan or retry and streams its events.

Usage::

    pipeline = ReconPipeline(settings)
    async for event in pipeline.run(documents):
        print(to_ndjson(event), end="")

The work runs in its own task and talks to the caller only through an
``EventBus``. Closing the generator early (client disconnect, Ctrl-C)
cancels that task, which cancels every in-flight extraction call.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import contextlib
import logging
import time
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable

from pydantic import BaseModel

from records_recon.core.config import AppSettings
from records_recon.events import (
    CompleteEvent,
    ErrorEvent,
    EventBus,
    FileReadyEvent,
    KeywordFlagEvent,
    ProgressEvent,
    ScanCacheEvent,
)
from records_recon.exceptions import InputValidationError, ReconError
from records_recon.extraction.pdf_text import extract
from records_recon.filtering.salience import filter_text, text_density
from records_recon.hooks.run_tracker import end_run, get_current_run, start_run, track_stage
from records_recon.models import (
    DocumentPayload,
    KeywordFlag,
    RetryRequest,
    ScanSynopsis,
    StageMetrics,
    StructuredSummary,
)
from records_recon.pipeline.orchestrator import ChunkOrchestrator
from records_recon.providers.client import LLMClient
from records_recon.providers.protocols import ICompletionClient
from records_recon.report import IMAGE_ONLY_NOTE, NO_SIGNAL_NOTE, ReportAssembler
from records_recon.synthesis.coordinator import StructuringCoordinator

log = logging.getLogger(__name__)

Decoder = Callable[[bytes], tuple[str, int]]

FILE_SEPARATOR = "\n\n---\n\n"
_MB = 1024 * 1024


class PipelineState(str, Enum):
    INIT = "init"
    FILTERING = "filtering"
    RETRYING = "retrying"
    EXTRACTING = "extracting"
    STRUCTURING = "structuring"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def phase(self) -> str:
        """Label attached to an error raised while in this state."""
        return _PHASE_LABELS[self]


_PHASE_LABELS = {
    PipelineState.INIT: "upload",
    PipelineState.FILTERING: "filtering",
    PipelineState.RETRYING: "retry",
    PipelineState.EXTRACTING: "extraction",
    PipelineState.STRUCTURING: "structuring",
    PipelineState.COMPLETE: "complete",
    PipelineState.ERROR: "error",
}

_TRANSITIONS = {
    PipelineState.INIT: {PipelineState.FILTERING, PipelineState.RETRYING},
    PipelineState.FILTERING: {PipelineState.EXTRACTING, PipelineState.COMPLETE},
    PipelineState.RETRYING: {PipelineState.EXTRACTING},
    PipelineState.EXTRACTING: {PipelineState.STRUCTURING, PipelineState.COMPLETE},
    PipelineState.STRUCTURING: {PipelineState.COMPLETE},
    PipelineState.COMPLETE: set(),
    PipelineState.ERROR: set(),
}


class _Run:
    """Mutable bookkeeping for one pipeline run."""

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus
        self.state = PipelineState.INIT
        self._started = time.monotonic()

    def advance(self, state: PipelineState) -> None:
        if state is not PipelineState.ERROR and state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {state.value}")
        log.debug("Pipeline state %s -> %s", self.state.value, state.value)
        self.state = state

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def progress(self, message: str, percent: int, phase: str) -> None:
        self.bus.emit(ProgressEvent(message=message, percent=percent, phase=phase))

    def complete(self, report: BaseModel) -> None:
        self.advance(PipelineState.COMPLETE)
        self.bus.emit(CompleteEvent(report=report))

    def fail(self, message: str) -> None:
        phase = self.state.phase
        self.state = PipelineState.ERROR
        self.bus.emit(ErrorEvent(message=message, phase=phase))


def _stages() -> list[StageMetrics]:
    run = get_current_run()
    return list(run.stages) if run else []


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


class ReconPipeline:
    """Scan documents, or retry extraction over a cached corpus."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        client: ICompletionClient | None = None,
        decoder: Decoder = extract,
    ) -> None:
        self._settings = settings or AppSettings()
        self._client = client or LLMClient(self._settings.llm)
        self._decoder = decoder
        self._orchestrator = ChunkOrchestrator(self._client, self._settings.extraction, self._settings.llm)
        self._coordinator = StructuringCoordinator(self._client, self._settings.llm)

    # ── Entry points ─────────────────────────────────────────────────

    def run(self, documents: list[DocumentPayload]) -> AsyncIterator[BaseModel]:
        """Stream the events of a full scan over *documents*."""
        return self._stream(lambda run: self._scan(run, documents), mode="scan")

    def retry(self, request: RetryRequest) -> AsyncIterator[BaseModel]:
        """Stream the events of an extraction retry over a cached corpus."""
        return self._stream(lambda run: self._retry(run, request), mode="retry")

    async def _stream(
        self,
        work: Callable[[_Run], Awaitable[None]],
        mode: str,
    ) -> AsyncIterator[BaseModel]:
        bus = EventBus()
        task = asyncio.create_task(self._guarded(work, _Run(bus), mode))
        try:
            async for event in bus:
                yield event
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def _guarded(self, work: Callable[[_Run], Awaitable[None]], run: _Run, mode: str) -> None:
        start_run(mode=mode)
        status = "failed"
        try:
            await work(run)
            status = "completed"
        except asyncio.CancelledError:
            status = "cancelled"
            log.info("Run cancelled in state %s", run.state.value)
            raise
        except ReconError as exc:
            log.warning("Run failed in state %s: %s", run.state.value, exc)
            run.fail(str(exc))
        except Exception:
            log.exception("Unexpected failure in state %s", run.state.value)
            run.fail("An unexpected error occurred while processing the documents.")
        finally:
            if not run.bus.closed and status != "cancelled":
                run.fail("The pipeline ended without producing a result.")
            analytics = end_run(status)
            if analytics is not None:
                log.info("Run %s %s in %.0f ms", analytics.run_id, status, analytics.total_duration_ms)

    # ── Scan ─────────────────────────────────────────────────────────

    def _decode_payload(self, doc: DocumentPayload) -> bytes:
        cap = self._settings.extraction.max_file_bytes
        limit = f"{doc.name} exceeds the {cap // _MB} MB limit."
        if doc.size > cap:
            raise InputValidationError(limit)
        data = doc.data
        if data.startswith("data:") and "," in data:
            data = data.split(",", 1)[1]
        try:
            raw = base64.b64decode(data)
        except (binascii.Error, ValueError) as exc:
            raise InputValidationError(f"{doc.name} is not valid base64 data.") from exc
        finally:
            doc.data = ""
        if len(raw) > cap:
            raise InputValidationError(limit)
        return raw

    async def _scan(self, run: _Run, documents: list[DocumentPayload]) -> None:
        if not documents:
            raise InputValidationError("No files provided.")
        for doc in documents:
            if doc.size > self._settings.extraction.max_file_bytes:
                raise InputValidationError(
                    f"{doc.name} exceeds the {self._settings.extraction.max_file_bytes // _MB} MB limit."
                )

        run.advance(PipelineState.FILTERING)
        filter_config = self._settings.filter
        n = len(documents)
        run.progress(f"Reading {_plural(n, 'document')}...", 5, "upload")

        corpora: list[str] = []
        raw_texts: list[str] = []
        flags: list[KeywordFlag] = []
        seen_flags: set[str] = set()
        keywords: list[str] = []
        headers: list[str] = []
        total_pages = total_paragraphs = kept_paragraphs = 0

        with track_stage("filter") as stage:
            for index, doc in enumerate(documents):
                raw = self._decode_payload(doc)
                if doc.is_pdf:
                    text, page_count = await asyncio.to_thread(self._decoder, raw)
                else:
                    log.info("Skipping text extraction for non-PDF upload %s (%s)", doc.name, doc.type)
                    text, page_count = "", 0
                del raw

                result = filter_text(text, filter_config)
                raw_texts.append(text)
                if result.corpus:
                    corpora.append(result.corpus)
                total_pages += page_count
                total_paragraphs += result.total_paragraphs
                kept_paragraphs += result.kept_paragraphs
                keywords.extend(k for k in result.detected_keywords if k not in keywords)
                headers.extend(h for h in result.detected_headers if h not in headers)
                for flag in result.keyword_flags:
                    key = flag.condition.lower()
                    if key not in seen_flags:
                        seen_flags.add(key)
                        flags.append(flag)

                run.bus.emit(
                    FileReadyEvent(
                        file_name=doc.name,
                        page_count=page_count,
                        kept_paragraphs=result.kept_paragraphs,
                        total_paragraphs=result.total_paragraphs,
                        reduction_pct=result.reduction_pct,
                    )
                )
                run.progress(
                    f"Filtered {doc.name} ({index + 1}/{n})",
                    5 + round((index + 1) / n * 15),
                    "filtering",
                )
            stage.item_count = kept_paragraphs

        for flag in flags:
            run.bus.emit(
                KeywordFlagEvent(condition=flag.condition, confidence=flag.confidence, excerpt=flag.excerpt[:120])
            )

        corpus = FILE_SEPARATOR.join(corpora)
        reduction = round((1 - kept_paragraphs / total_paragraphs) * 100) if total_paragraphs else 0
        synopsis = ScanSynopsis(
            total_pages=total_pages,
            total_paragraphs=total_paragraphs,
            kept_paragraphs=kept_paragraphs,
            reduction_pct=reduction,
            keywords_detected=keywords,
            section_headers_found=headers,
        )
        file_names = ", ".join(doc.name for doc in documents)
        assembler = ReportAssembler(n, self._settings.llm.extract_model, synopsis)

        # Kept paragraphs already passed the length and signal filters
        if kept_paragraphs == 0:
            image_only = text_density("\n".join(raw_texts)) < filter_config.min_text_density
            note = IMAGE_ONLY_NOTE if image_only else NO_SIGNAL_NOTE
            log.info("No paragraph survived filtering (image_only=%s); skipping extraction", image_only)
            run.complete(assembler.empty(note, elapsed_ms=run.elapsed_ms, stages=_stages()))
            return

        run.progress(
            f"Kept {kept_paragraphs} of {total_paragraphs} paragraphs ({reduction}% reduction), "
            f"{_plural(len(flags), 'keyword flag')}",
            25,
            "filter_done",
        )
        run.bus.emit(ScanCacheEvent(corpus=corpus, keyword_flags=flags, synopsis=synopsis, file_names=file_names))

        await self._extract_and_report(run, corpus, flags, file_names, assembler, start_pct=30, end_pct=55)

    # ── Retry ────────────────────────────────────────────────────────

    async def _retry(self, run: _Run, request: RetryRequest) -> None:
        run.advance(PipelineState.RETRYING)
        corpus = request.corpus
        if request.use_reduced_cap:
            corpus = corpus[: self._settings.extraction.retry_char_cap]
        if not corpus.strip():
            raise InputValidationError("Retry request carries an empty corpus.")

        run.progress(f"Retrying extraction on cached corpus ({len(corpus)} chars)...", 10, "retry")
        file_count = len([name for name in request.file_names.split(",") if name.strip()]) or 1
        assembler = ReportAssembler(file_count, self._settings.llm.extract_model, request.synopsis)
        await self._extract_and_report(
            run, corpus, request.keyword_flags, request.file_names, assembler, start_pct=30, end_pct=60
        )

    # ── Shared tail: extraction, structuring, report ─────────────────

    async def _extract_and_report(
        self,
        run: _Run,
        corpus: str,
        flags: list[KeywordFlag],
        file_names: str,
        assembler: ReportAssembler,
        *,
        start_pct: int,
        end_pct: int,
    ) -> None:
        run.advance(PipelineState.EXTRACTING)
        with track_stage("extract") as stage:
            outcome = await self._orchestrator.extract(corpus, file_names, run.bus.emit, start_pct, end_pct)
            stage.item_count = len(outcome.items)
            stage.error_count += outcome.failed_chunks

        if not outcome.succeeded:
            run.complete(assembler.interim(flags, "extraction_failed", elapsed_ms=run.elapsed_ms, stages=_stages()))
            return
        if not outcome.items:
            if flags:
                report = assembler.interim(flags, "extraction_empty", elapsed_ms=run.elapsed_ms, stages=_stages())
            else:
                report = assembler.final(
                    [], StructuredSummary(), source="none", elapsed_ms=run.elapsed_ms, stages=_stages()
                )
            run.complete(report)
            return

        run.advance(PipelineState.STRUCTURING)
        struct_start = end_pct + 5
        run.progress(
            f"Phase 2b: Organizing {_plural(len(outcome.items), 'condition')} into timeline and index...",
            struct_start,
            "structuring",
        )

        def token_progress(count: int, budget: int) -> None:
            pct = struct_start + round((count / budget) * (90 - struct_start))
            run.progress(f"Phase 2b: Structuring - {count} tokens...", min(pct, 90), "structuring")

        with track_stage("structure") as stage:
            structured = await self._coordinator.structure(outcome.items, on_token=token_progress)
            stage.item_count = len(structured.summary.conditions_index)

        run.progress("Building report...", 95, "report")
        run.complete(
            assembler.final(
                outcome.items,
                structured.summary,
                source=structured.source,
                elapsed_ms=run.elapsed_ms,
                stages=_stages(),
            )
        )
