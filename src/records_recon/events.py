"""Progress events and the per-run event bus.

Events are a closed, ``type``-discriminated union serialized one JSON object
per line (NDJSON). Exactly one terminal event (``complete`` or ``error``)
ends every stream.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated, AsyncIterator, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from records_recon.models import KeywordFlag, Report, ScanSynopsis

log = logging.getLogger(__name__)


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    message: str
    percent: int = Field(ge=0, le=100)
    phase: str


class FileReadyEvent(BaseModel):
    type: Literal["file_ready"] = "file_ready"
    file_name: str
    page_count: int
    kept_paragraphs: int
    total_paragraphs: int
    reduction_pct: int


class KeywordFlagEvent(BaseModel):
    type: Literal["keyword_flag"] = "keyword_flag"
    condition: str
    confidence: str
    excerpt: str


class ScanCacheEvent(BaseModel):
    """Everything a caller needs to retry extraction without re-uploading."""

    type: Literal["scan_cache"] = "scan_cache"
    corpus: str
    keyword_flags: list[KeywordFlag] = Field(default_factory=list)
    synopsis: ScanSynopsis
    file_names: str


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    report: Report
    percent: int = 100


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str
    phase: Optional[str] = None


PipelineEvent = Annotated[
    Union[ProgressEvent, FileReadyEvent, KeywordFlagEvent, ScanCacheEvent, CompleteEvent, ErrorEvent],
    Field(discriminator="type"),
]

TERMINAL_TYPES = frozenset({"complete", "error"})

_event_adapter: TypeAdapter[PipelineEvent] = TypeAdapter(PipelineEvent)


def to_ndjson(event: BaseModel) -> str:
    """Serialize one event as a single NDJSON line."""
    return event.model_dump_json() + "\n"


def parse_event(line: str) -> PipelineEvent:
    """Parse one NDJSON line back into its event type."""
    return _event_adapter.validate_json(line)


class EventBus:
    """Append-only event sequence for one pipeline run.

    Producers call ``emit``; a single consumer iterates. The first terminal
    event closes the bus and later emits are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[BaseModel] = asyncio.Queue()
        self._closed = False
        self.emitted = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: BaseModel) -> None:
        if self._closed:
            log.debug("Dropping %s event emitted after stream close", getattr(event, "type", "?"))
            return
        self._queue.put_nowait(event)
        self.emitted += 1
        if getattr(event, "type", None) in TERMINAL_TYPES:
            self._closed = True

    async def __aiter__(self) -> AsyncIterator[BaseModel]:
        while True:
            event = await self._queue.get()
            yield event
            if getattr(event, "type", None) in TERMINAL_TYPES:
                return
