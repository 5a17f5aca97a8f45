"""Pydantic data models for records-recon.

Pipeline values flow leaves-first: ``PageText`` -> ``Paragraph`` ->
``ScoredParagraph`` -> ``FilterResult`` -> ``ExtractedItem`` -> ``Report``.
Reports are frozen once constructed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Confidence = Literal["high", "medium", "low"]

CONFIDENCE_RANK: dict[str, int] = {"high": 3, "medium": 2, "low": 1}

EXCERPT_MAX_CHARS = 200

# ── Document / paragraph models ──────────────────────────────────────


class PageText(BaseModel):
    """Text of one physical page."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    text: str = ""


class Paragraph(BaseModel):
    """Consecutive non-blank lines, with the date/provider last seen before it."""

    text: str
    page: int = 1
    nearest_date: Optional[str] = None
    nearest_provider: Optional[str] = None


class ScoredParagraph(BaseModel):
    """A paragraph that survived noise filtering and matched at least one signal."""

    text: str
    page: int
    matched_keywords: list[str] = Field(default_factory=list)
    is_section_header: bool = False
    section_key: Optional[str] = None
    section_name: str = ""
    date: Optional[str] = None
    provider: Optional[str] = None

    @property
    def keyword_count(self) -> int:
        return len(self.matched_keywords)


class KeywordFlag(BaseModel):
    """Provisional condition signal raised by the salience filter."""

    condition: str
    confidence: Confidence
    excerpt: str
    date_found: Optional[str] = None
    page_number: Optional[int] = None
    section_found: Optional[str] = None


class ScanSynopsis(BaseModel):
    """Statistics describing what the salience filter kept."""

    total_pages: int = 0
    total_paragraphs: int = 0
    kept_paragraphs: int = 0
    reduction_pct: int = 0
    keywords_detected: list[str] = Field(default_factory=list)
    section_headers_found: list[str] = Field(default_factory=list)


class FilterResult(BaseModel):
    """Output of one salience-filter pass over page-tagged text."""

    corpus: str = ""
    total_paragraphs: int = 0
    kept_paragraphs: int = 0
    keyword_flags: list[KeywordFlag] = Field(default_factory=list)
    detected_keywords: list[str] = Field(default_factory=list)
    detected_headers: list[str] = Field(default_factory=list)

    @property
    def reduction_pct(self) -> int:
        if self.total_paragraphs <= 0:
            return 0
        return round((1 - self.kept_paragraphs / self.total_paragraphs) * 100)


# ── Extraction models ────────────────────────────────────────────────


class ExtractedItem(BaseModel):
    """One condition mention returned by the extraction service."""

    item_id: str
    condition: str
    category: str = "Other"
    excerpt: str = ""
    date_found: Optional[str] = None
    page_number: Optional[int] = None
    section_found: Optional[str] = None
    provider: Optional[str] = None
    confidence: Confidence = "medium"

    @field_validator("excerpt")
    @classmethod
    def _cap_excerpt(cls, v: str) -> str:
        return v[:EXCERPT_MAX_CHARS]


class ExtractionOutcome(BaseModel):
    """Merged, deduplicated result of the chunked extraction stage."""

    items: list[ExtractedItem] = Field(default_factory=list)
    succeeded: bool = False
    chunk_count: int = 0
    failed_chunks: int = 0


# ── Structured summary models ────────────────────────────────────────


class TimelineEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: Optional[str] = None
    page: Optional[int] = None
    section: Optional[str] = None
    provider: Optional[str] = None
    entry: str = ""
    category: str = "Other"


class ConditionExcerpt(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    page: Optional[int] = None
    date: Optional[str] = None


class ConditionIndexEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    condition: str
    category: str = "Other"
    first_mention_date: Optional[str] = None
    first_mention_page: Optional[int] = None
    mention_count: int = 1
    pages_found: list[int] = Field(default_factory=list)
    excerpts: list[ConditionExcerpt] = Field(default_factory=list)


class KeywordFrequency(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    count: int = 1


class DateRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    earliest: Optional[str] = None
    latest: Optional[str] = None


class DocumentSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_pages_referenced: int = 0
    date_range: DateRange = Field(default_factory=DateRange)
    document_types_detected: list[str] = Field(default_factory=list)
    providers_found: list[str] = Field(default_factory=list)


class StructuredSummary(BaseModel):
    """Timeline, condition index and frequencies, from the service or the local aggregator."""

    document_summary: DocumentSummary = Field(default_factory=DocumentSummary)
    timeline: list[TimelineEntry] = Field(default_factory=list)
    conditions_index: list[ConditionIndexEntry] = Field(default_factory=list)
    keyword_frequency: list[KeywordFrequency] = Field(default_factory=list)


# ── Run analytics ────────────────────────────────────────────────────


class StageMetrics(BaseModel):
    """Timing for one pipeline stage."""

    stage: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_ms: float = 0.0
    item_count: int = 0
    error_count: int = 0


class RunAnalytics(BaseModel):
    """Per-run analytics collected by ``hooks.run_tracker``."""

    run_id: str
    mode: str = "scan"
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: Optional[datetime] = None
    status: str = "running"
    stages: list[StageMetrics] = Field(default_factory=list)
    total_duration_ms: float = 0.0

    def finalize(self, status: str = "completed") -> None:
        self.ended_at = datetime.now(timezone.utc)
        self.total_duration_ms = (self.ended_at - self.started_at).total_seconds() * 1000
        if self.status == "running":
            self.status = status


# ── Report ───────────────────────────────────────────────────────────


class ProcessingDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    files_processed: int = 0
    processing_time_ms: int = 0
    ai_model: str = ""
    structuring_source: Literal["service", "local", "none"] = "none"
    stages: list[StageMetrics] = Field(default_factory=list)


class _ReportBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    disclaimer: str
    summary: str
    document_summary: DocumentSummary = Field(default_factory=DocumentSummary)
    timeline: list[TimelineEntry] = Field(default_factory=list)
    conditions_index: list[ConditionIndexEntry] = Field(default_factory=list)
    keyword_frequency: list[KeywordFrequency] = Field(default_factory=list)
    extracted_items: list[ExtractedItem] = Field(default_factory=list)
    processing_details: ProcessingDetails = Field(default_factory=ProcessingDetails)
    scan_synopsis: Optional[ScanSynopsis] = None
    note: Optional[str] = None
    no_extractable_text: bool = False


class FinalReport(_ReportBase):
    """Report built from extraction output (structured by the service or locally)."""

    kind: Literal["final"] = "final"

    @property
    def is_interim(self) -> bool:
        return False


class InterimReport(_ReportBase):
    """Report built from provisional keyword flags when extraction produced nothing usable."""

    kind: Literal["interim"] = "interim"
    reason: Literal["extraction_failed", "extraction_empty"]
    note: str

    @property
    def is_interim(self) -> bool:
        return True


Report = Annotated[Union[FinalReport, InterimReport], Field(discriminator="kind")]


# ── Requests ─────────────────────────────────────────────────────────


class DocumentPayload(BaseModel):
    """One uploaded document: base64 data plus declared media type and size."""

    name: str
    type: str = "application/pdf"
    data: str = ""
    size: int = 0

    @property
    def is_pdf(self) -> bool:
        return self.type == "application/pdf" or self.name.lower().endswith(".pdf")


class RetryRequest(BaseModel):
    """A previously cached filtered corpus to re-run extraction against."""

    corpus: str
    keyword_flags: list[KeywordFlag] = Field(default_factory=list)
    synopsis: Optional[ScanSynopsis] = None
    file_names: str = "cached documents"
    use_reduced_cap: bool = False


class ReconRequest(BaseModel):
    """Body of ``POST /api/recon``: either documents or a retry."""

    files: list[DocumentPayload] = Field(default_factory=list)
    retry: Optional[RetryRequest] = None
