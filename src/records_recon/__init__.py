"""records-recon: condition index from clinical documents, streamed as NDJSON events.

Public API::

    from records_recon import AppSettings, ReconPipeline, DocumentPayload, RetryRequest

    pipeline = ReconPipeline(AppSettings())
    async for event in pipeline.run([DocumentPayload(name="a.pdf", data=b64, size=n)]):
        ...
"""

from __future__ import annotations

from records_recon.core.config import AppSettings
from records_recon.events import EventBus, PipelineEvent, parse_event, to_ndjson
from records_recon.exceptions import ReconError
from records_recon.models import (
    DocumentPayload,
    ExtractedItem,
    FinalReport,
    InterimReport,
    ReconRequest,
    RetryRequest,
)
from records_recon.pipeline.driver import ReconPipeline

__version__ = "0.1.0"

__all__ = [
    "AppSettings",
    "DocumentPayload",
    "EventBus",
    "ExtractedItem",
    "FinalReport",
    "InterimReport",
    "PipelineEvent",
    "ReconError",
    "ReconPipeline",
    "ReconRequest",
    "RetryRequest",
    "parse_event",
    "to_ndjson",
]
