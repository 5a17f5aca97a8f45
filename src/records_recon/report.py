"""Report assembly: one immutable report value per run."""

from __future__ import annotations

import logging
from typing import Literal, Optional

from records_recon.models import (
    ExtractedItem,
    FinalReport,
    InterimReport,
    KeywordFlag,
    ProcessingDetails,
    ScanSynopsis,
    StageMetrics,
    StructuredSummary,
)
from records_recon.pipeline.parsing import keyword_flags_to_items
from records_recon.reconcile.canonical import dedupe_timeline, deduplicate_items
from records_recon.synthesis.aggregator import aggregate

log = logging.getLogger(__name__)

DISCLAIMER = (
    "This index is an organizational aid generated automatically from the "
    "uploaded records. It is not a medical diagnosis, a legal opinion, or a "
    "determination of eligibility for any benefit. Every entry cites the page "
    "it was found on; verify each citation against the source document and "
    "review the result with a qualified advocate."
)

LOCAL_STRUCTURING_NOTE = "Organized using extraction data (structuring phase skipped)."
EXTRACTION_FAILED_NOTE = (
    "Extraction timed out - showing keyword-detected items. Retry for another attempt."
)
EXTRACTION_EMPTY_NOTE = (
    "Extraction found no conditions - showing keyword-detected items. "
    "Retry with the full corpus for another attempt."
)
IMAGE_ONLY_NOTE = (
    "No extractable text was found. The documents appear to be scanned images; "
    "run them through OCR and upload again."
)
NO_SIGNAL_NOTE = "No clinical keywords or section headers were found in the extracted text."


def summary_sentence(item_count: int, file_count: int) -> str:
    if item_count == 0:
        return "No conditions were extracted from the provided documents."
    noun = "condition" if item_count == 1 else "conditions"
    docs = "document" if file_count == 1 else "documents"
    return (
        f"{item_count} {noun} extracted and organized from {file_count} {docs}. "
        "Each entry includes page citations for verification."
    )


class ReportAssembler:
    """Build ``FinalReport`` / ``InterimReport`` values.

    Holds the run-wide metadata (file count, model, synopsis) so the driver
    only has to supply what the current branch produced.
    """

    def __init__(
        self,
        file_count: int,
        ai_model: str,
        synopsis: Optional[ScanSynopsis] = None,
    ) -> None:
        self.file_count = file_count
        self.ai_model = ai_model
        self.synopsis = synopsis

    def _details(
        self,
        elapsed_ms: int,
        source: Literal["service", "local", "none"],
        stages: list[StageMetrics] | None,
    ) -> ProcessingDetails:
        return ProcessingDetails(
            files_processed=self.file_count,
            processing_time_ms=elapsed_ms,
            ai_model=self.ai_model,
            structuring_source=source,
            stages=list(stages or []),
        )

    def final(
        self,
        items: list[ExtractedItem],
        summary: StructuredSummary,
        *,
        source: Literal["service", "local", "none"],
        elapsed_ms: int,
        stages: list[StageMetrics] | None = None,
        note: Optional[str] = None,
        no_extractable_text: bool = False,
    ) -> FinalReport:
        if note is None and source == "local":
            note = LOCAL_STRUCTURING_NOTE
        return FinalReport(
            disclaimer=DISCLAIMER,
            summary=summary_sentence(len(items), self.file_count),
            document_summary=summary.document_summary,
            timeline=dedupe_timeline(summary.timeline),
            conditions_index=summary.conditions_index,
            keyword_frequency=summary.keyword_frequency,
            extracted_items=items,
            processing_details=self._details(elapsed_ms, source, stages),
            scan_synopsis=self.synopsis,
            note=note,
            no_extractable_text=no_extractable_text,
        )

    def empty(self, note: str, *, elapsed_ms: int, stages: list[StageMetrics] | None = None) -> FinalReport:
        """Zero-item report for a run whose text carried no signal."""
        return self.final(
            [],
            StructuredSummary(),
            source="none",
            elapsed_ms=elapsed_ms,
            stages=stages,
            note=note,
            no_extractable_text=True,
        )

    def interim(
        self,
        flags: list[KeywordFlag],
        reason: Literal["extraction_failed", "extraction_empty"],
        *,
        elapsed_ms: int,
        stages: list[StageMetrics] | None = None,
    ) -> InterimReport:
        """Report from provisional keyword flags, organized locally."""
        items = deduplicate_items(keyword_flags_to_items(flags))
        summary = aggregate(items)
        note = EXTRACTION_FAILED_NOTE if reason == "extraction_failed" else EXTRACTION_EMPTY_NOTE
        log.info("Building interim report (%s) from %d keyword flags", reason, len(flags))
        return InterimReport(
            disclaimer=DISCLAIMER,
            summary=summary_sentence(len(items), self.file_count),
            document_summary=summary.document_summary,
            timeline=summary.timeline,
            conditions_index=summary.conditions_index,
            keyword_frequency=summary.keyword_frequency,
            extracted_items=items,
            processing_details=self._details(elapsed_ms, "local", stages),
            scan_synopsis=self.synopsis,
            reason=reason,
            note=note,
        )
