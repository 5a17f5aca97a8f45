"""Structuring coordinator: service first, fallback model on timeout, local aggregation last."""

from __future__ import annotations

import json
import logging
from typing import Callable, Literal, Optional

from pydantic import BaseModel

from records_recon.core.config import LLMConfig
from records_recon.exceptions import JSONParseError, LLMServiceError, LLMTimeoutError
from records_recon.models import ExtractedItem, StructuredSummary
from records_recon.pipeline.parsing import parse_structuring_output
from records_recon.prompts import get_prompt
from records_recon.providers.protocols import ICompletionClient
from records_recon.synthesis.aggregator import aggregate

log = logging.getLogger(__name__)


class StructuringOutcome(BaseModel):
    summary: StructuredSummary
    source: Literal["service", "local"]
    model: Optional[str] = None


def items_payload(items: list[ExtractedItem]) -> str:
    """Compact JSON array sent to the structuring service."""
    return json.dumps(
        [
            {
                "condition": item.condition,
                "excerpt": item.excerpt,
                "page": item.page_number,
                "sectionFound": item.section_found,
                "date": item.date_found,
                "doctorName": item.provider,
                "category": item.category,
                "confidence": item.confidence,
            }
            for item in items
        ]
    )


class StructuringCoordinator:
    """Turn deduplicated items into a structured summary.

    The primary model is tried first; only a timeout moves on to the
    fallback model. A service error or unparseable output stops the attempt
    loop and the summary is aggregated locally, so this never fails the run.
    """

    def __init__(self, client: ICompletionClient, llm: LLMConfig | None = None) -> None:
        self._client = client
        self._llm = llm or LLMConfig()

    @property
    def models(self) -> list[str]:
        return [self._llm.structure_model, self._llm.fallback_model]

    async def structure(
        self,
        items: list[ExtractedItem],
        on_token: Optional[Callable[[int, int], None]] = None,
    ) -> StructuringOutcome:
        system_prompt = get_prompt("recon", "structuring", "STRUCTURING_SYSTEM_PROMPT")
        payload = items_payload(items)

        for attempt, model in enumerate(self.models, start=1):
            label = "Structuring (primary)" if attempt == 1 else "Structuring (fallback)"
            try:
                output = await self._client.stream_complete(
                    payload,
                    system_prompt=system_prompt,
                    model=model,
                    label=label,
                    max_tokens=self._llm.max_tokens,
                    on_token=on_token,
                )
                summary = parse_structuring_output(output)
            except LLMTimeoutError as exc:
                log.warning("Structuring attempt %d timed out (%s): %s", attempt, model, exc)
                continue
            except LLMServiceError as exc:
                log.warning("Structuring failed on %s, aggregating locally: %s", model, exc)
                break
            except JSONParseError as exc:
                log.warning(
                    "Structuring output from %s unparseable (%d chars), aggregating locally: %s",
                    model, len(exc.raw_response), exc,
                )
                break
            return StructuringOutcome(summary=summary, source="service", model=model)

        return StructuringOutcome(summary=aggregate(items), source="local")
