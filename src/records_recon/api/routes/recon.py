"""Streaming scan/retry endpoint."""

from __future__ import annotations

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from records_recon.events import to_ndjson
from records_recon.models import ReconRequest
from records_recon.pipeline.driver import ReconPipeline

log = logging.getLogger(__name__)

router = APIRouter(tags=["recon"])

NDJSON = "application/x-ndjson"


def get_pipeline(request: Request) -> ReconPipeline:
    """One pipeline per request, sharing the app-wide LLM client."""
    state = request.app.state
    return ReconPipeline(state.settings, client=state.llm_client)


async def _ndjson(events: AsyncIterator[BaseModel]) -> AsyncIterator[str]:
    # Closing this generator (client disconnect) closes the pipeline stream,
    # which cancels in-flight extraction calls.
    try:
        async for event in events:
            yield to_ndjson(event)
    finally:
        await events.aclose()  # type: ignore[attr-defined]


@router.post("/recon")
async def recon(body: ReconRequest, pipeline: ReconPipeline = Depends(get_pipeline)) -> StreamingResponse:
    """Scan uploaded documents, or retry extraction over a cached corpus.

    The response is an NDJSON event stream that always ends with exactly one
    ``complete`` or ``error`` event.
    """
    if body.retry is not None:
        log.info("Retry requested (%d chars, reduced_cap=%s)", len(body.retry.corpus), body.retry.use_reduced_cap)
        events = pipeline.retry(body.retry)
    else:
        log.info("Scan requested for %d file(s)", len(body.files))
        events = pipeline.run(body.files)
    return StreamingResponse(
        _ndjson(events),
        media_type=NDJSON,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
