"""Local aggregation: timeline, condition index and frequencies straight from items.

Used whenever the structuring service is unavailable or returns something
unusable, and for interim reports.
"""

from __future__ import annotations

from records_recon.models import (
    ConditionExcerpt,
    ConditionIndexEntry,
    DateRange,
    DocumentSummary,
    ExtractedItem,
    KeywordFrequency,
    StructuredSummary,
    TimelineEntry,
)
from records_recon.reconcile.canonical import canonical_key, dedupe_timeline

TOP_KEYWORDS = 10


def build_timeline(items: list[ExtractedItem]) -> list[TimelineEntry]:
    """Timeline sorted by date (undated last), one row per date/page/excerpt."""
    entries = [
        TimelineEntry(
            date=item.date_found,
            page=item.page_number,
            section=item.section_found,
            provider=item.provider,
            entry=item.excerpt[:200],
            category=item.category,
        )
        for item in items
    ]
    entries.sort(key=lambda e: (e.date is None, e.date or ""))
    return dedupe_timeline(entries)


def build_conditions_index(items: list[ExtractedItem]) -> list[ConditionIndexEntry]:
    """Group items by canonical key; the first item names the group."""
    groups: dict[str, list[ExtractedItem]] = {}
    for item in items:
        groups.setdefault(canonical_key(item.condition), []).append(item)

    index: list[ConditionIndexEntry] = []
    for members in groups.values():
        head = members[0]
        pages: list[int] = []
        for m in members:
            if m.page_number is not None and m.page_number not in pages:
                pages.append(m.page_number)
        index.append(
            ConditionIndexEntry(
                condition=head.condition,
                category=head.category,
                first_mention_date=head.date_found,
                first_mention_page=head.page_number,
                mention_count=len(members),
                pages_found=pages,
                excerpts=[
                    ConditionExcerpt(text=m.excerpt, page=m.page_number, date=m.date_found)
                    for m in members
                ],
            )
        )
    return index


def build_document_summary(items: list[ExtractedItem]) -> DocumentSummary:
    pages = {i.page_number for i in items if i.page_number is not None}
    dates = sorted(i.date_found for i in items if i.date_found)
    providers = list(dict.fromkeys(i.provider for i in items if i.provider))
    return DocumentSummary(
        total_pages_referenced=len(pages),
        date_range=DateRange(
            earliest=dates[0] if dates else None,
            latest=dates[-1] if dates else None,
        ),
        providers_found=providers,
    )


def aggregate(items: list[ExtractedItem]) -> StructuredSummary:
    """Build the full structured summary locally."""
    conditions = build_conditions_index(items)
    frequency = sorted(
        (KeywordFrequency(term=c.condition, count=c.mention_count) for c in conditions),
        key=lambda k: -k.count,
    )[:TOP_KEYWORDS]
    return StructuredSummary(
        document_summary=build_document_summary(items),
        timeline=build_timeline(items),
        conditions_index=conditions,
        keyword_frequency=frequency,
    )
