"""Parsers for extraction and structuring service output."""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import ValidationError

from records_recon.exceptions import JSONParseError
from records_recon.filtering.vocabulary import GENERIC_STANDALONE_TERMS
from records_recon.models import (
    ConditionExcerpt,
    ConditionIndexEntry,
    DateRange,
    DocumentSummary,
    ExtractedItem,
    KeywordFlag,
    KeywordFrequency,
    StructuredSummary,
    TimelineEntry,
)
from records_recon.providers.client import LLMClient
from records_recon.reconcile.canonical import map_to_category

log = logging.getLogger(__name__)

_SLUG = re.compile(r"[^a-z0-9]")
_DIGITS = re.compile(r"\d+")
_NUMBERED_ITEM = re.compile(r"^\d+\.\s", re.MULTILINE)
_NUMBERED_SPLIT = re.compile(r"\n(?=\d+\.\s)")
_CONFIDENCE = re.compile(r"[Cc]onfidence[:\s]+([Hh]igh|[Mm]edium|[Ll]ow)")
_QUOTE = re.compile(
    r"(?:[Ee]xcerpt|[Ee]xact [Qq]uote|[Qq]uote)[:\s]*[\"'“‘]?([^\"'“”‘’\n]{10,})"
)
_PAGE = re.compile(r"[Pp]age[:\s]+(\d+)")
_DATE = re.compile(r"[Dd]ate[:\s]+([\w/\-,\s]+?)(?:\n|$)")
_CATEGORY = re.compile(r"[Cc]ategory[:\s]+([^\n]+)")


def make_item_id(prefix: str, condition: str, index: int) -> str:
    return f"{prefix}_{_SLUG.sub('_', condition.lower())[:25]}_{index}"


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = _DIGITS.search(str(value))
    return int(match.group(0)) if match else None


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text and text.lower() != "null" else None


def _confidence(value: Any) -> str:
    text = str(value or "").lower()
    return text if text in ("high", "medium", "low") else "medium"


def _is_reportable(condition: str) -> bool:
    cond = condition.lower().strip()
    return len(cond) > 2 and cond not in GENERIC_STANDALONE_TERMS


def parse_extraction_output(raw: str) -> list[ExtractedItem]:
    """Items from an extraction response: JSON array first, numbered text as a fallback.

    Generic standalone terms and names of two characters or fewer are dropped.
    """
    if not raw or raw.strip() == "[]":
        return []

    parsed = LLMClient.extract_json(raw, expect=list)
    if parsed is not None:
        rows = [row for row in parsed if isinstance(row, dict)]
        rows = [row for row in rows if _is_reportable(str(row.get("condition") or ""))]
        return [_item_from_row(row, i) for i, row in enumerate(rows)]

    if _NUMBERED_ITEM.search(raw):
        log.info("Extraction output was not JSON; parsing numbered list")
        return _parse_numbered(raw)
    return []


def _item_from_row(row: dict[str, Any], index: int) -> ExtractedItem:
    condition = _as_str(row.get("condition")) or "Unknown Condition"
    return ExtractedItem(
        item_id=make_item_id("recon", condition, index),
        condition=condition,
        category=_as_str(row.get("category")) or map_to_category(condition),
        excerpt=_as_str(row.get("excerpt")) or "",
        date_found=_as_str(row.get("date")),
        page_number=_as_int(row.get("page")),
        section_found=_as_str(row.get("sectionFound")),
        provider=_as_str(row.get("doctorName")),
        confidence=_confidence(row.get("confidence")),
    )


def _parse_numbered(raw: str) -> list[ExtractedItem]:
    items: list[ExtractedItem] = []
    for block in _NUMBERED_SPLIT.split(raw):
        block = block.strip()
        if not block or not re.match(r"^\d+\.", block):
            continue
        first_line = block.split("\n", 1)[0]
        condition = re.sub(r"^\d+\.\s*", "", first_line).replace("**", "").strip()
        if len(condition) < 3 or not _is_reportable(condition):
            continue

        conf = _CONFIDENCE.search(block)
        quote = _QUOTE.search(block)
        page = _PAGE.search(block)
        date = _DATE.search(block)
        category = _CATEGORY.search(block)

        items.append(
            ExtractedItem(
                item_id=make_item_id("recon", condition, len(items)),
                condition=condition,
                category=category.group(1).strip() if category else map_to_category(condition),
                excerpt=quote.group(1).strip() if quote else "",
                date_found=date.group(1).strip().rstrip(", ") or None if date else None,
                page_number=int(page.group(1)) if page else None,
                confidence=conf.group(1).lower() if conf else "medium",
            )
        )
    return items


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_rows(value: Any) -> list[dict[str, Any]]:
    """Dict rows of a JSON array; anything that is not an array yields none."""
    if not isinstance(value, list):
        return []
    return [row for row in value if isinstance(row, dict)]


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    return [value] if isinstance(value, (str, int, float)) else []


def parse_structuring_output(raw: str) -> StructuredSummary:
    """Structured summary from a structuring response.

    Nested values of the wrong shape are treated as missing: a string
    ``date_range`` gives no dates, a scalar ``pages_found`` a one-page list.

    Raises:
        JSONParseError: no JSON object could be recovered, or it could not
            be turned into a summary.
    """
    parsed = LLMClient.extract_json(raw or "", expect=dict)
    if parsed is None:
        raise JSONParseError("Structuring output is not a JSON object", raw_response=raw or "")
    try:
        return _summary_from(parsed)
    except (ValidationError, TypeError, ValueError, OverflowError) as exc:
        raise JSONParseError(f"Structuring output has an unexpected shape: {exc}", raw_response=raw) from exc


def _summary_from(parsed: dict[str, Any]) -> StructuredSummary:
    ds = _as_dict(parsed.get("document_summary"))
    date_range = _as_dict(ds.get("date_range"))
    summary = DocumentSummary(
        total_pages_referenced=_as_int(ds.get("total_pages_referenced")) or 0,
        date_range=DateRange(
            earliest=_as_str(date_range.get("earliest")),
            latest=_as_str(date_range.get("latest")),
        ),
        document_types_detected=[str(t) for t in _as_list(ds.get("document_types_detected"))],
        providers_found=[str(p) for p in _as_list(ds.get("providers_found"))],
    )

    timeline = [
        TimelineEntry(
            date=_as_str(t.get("date")),
            page=_as_int(t.get("page")),
            section=_as_str(t.get("section")),
            provider=_as_str(t.get("provider")),
            entry=str(t.get("entry") or "")[:200],
            category=str(t.get("category") or "Other"),
        )
        for t in _as_rows(parsed.get("timeline"))
    ]

    conditions = [
        ConditionIndexEntry(
            condition=str(c.get("condition") or ""),
            category=str(c.get("category") or "Other"),
            first_mention_date=_as_str(c.get("first_mention_date")),
            first_mention_page=_as_int(c.get("first_mention_page")),
            mention_count=_as_int(c.get("mention_count")) or 1,
            pages_found=[p for p in (_as_int(x) for x in _as_list(c.get("pages_found"))) if p is not None],
            excerpts=[
                ConditionExcerpt(
                    text=str(e.get("text") or ""),
                    page=_as_int(e.get("page")),
                    date=_as_str(e.get("date")),
                )
                for e in _as_rows(c.get("excerpts"))
            ],
        )
        for c in _as_rows(parsed.get("conditions_index"))
    ]

    frequency = [
        KeywordFrequency(term=str(k.get("term") or ""), count=_as_int(k.get("count")) or 1)
        for k in _as_rows(parsed.get("keyword_frequency"))
    ]

    return StructuredSummary(
        document_summary=summary,
        timeline=timeline,
        conditions_index=conditions,
        keyword_frequency=frequency,
    )


def keyword_flags_to_items(flags: list[KeywordFlag]) -> list[ExtractedItem]:
    """Provisional items for an interim report."""
    return [
        ExtractedItem(
            item_id=make_item_id("kw", flag.condition, i),
            condition=flag.condition,
            category=map_to_category(flag.condition),
            excerpt=flag.excerpt,
            date_found=flag.date_found,
            page_number=flag.page_number,
            section_found=flag.section_found,
            confidence=flag.confidence,
        )
        for i, flag in enumerate(flags)
    ]
