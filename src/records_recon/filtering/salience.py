"""Deterministic salience filter: page-tagged text -> bounded high-signal corpus.

Stages:

1. ``segment_paragraphs``: fold over lines, grouping non-blank lines and
   carrying the most recent date/provider forward in a ``ScannerState``.
2. ``score_paragraphs``: drop short/noise paragraphs, match keywords and
   section headers, track the current clinical section.
3. ``select_paragraphs``: breadth pass (keyword coverage), guaranteed-section
   pass, then fill, bounded by ``max_paragraphs``.
4. ``render_corpus``: inline-tag each paragraph and cut at the character cap.
5. ``build_keyword_flags``: provisional flags from multi-keyword paragraphs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from records_recon.core.config import FilterConfig
from records_recon.filtering.gating import pick_flag_keyword
from records_recon.filtering.heuristics import extract_date, extract_provider
from records_recon.filtering.vocabulary import (
    GUARANTEED_SECTIONS,
    KEYWORD_PATTERNS,
    NOISE_PATTERN,
    PAGE_MARKER_PATTERN,
    SECTION_HEADER_PATTERN,
    SECTION_HEADERS,
    section_display_name,
)
from records_recon.models import FilterResult, KeywordFlag, Paragraph, ScoredParagraph

log = logging.getLogger(__name__)

CORPUS_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class ScannerState:
    """Values carried line-to-line while scanning one document."""

    rolling_date: str | None = None
    rolling_provider: str | None = None
    current_section: str = ""


def observe_line(state: ScannerState, line: str) -> ScannerState:
    """Advance the rolling date/provider from any non-blank line."""
    date = extract_date(line)
    provider = extract_provider(line)
    if date is None and provider is None:
        return state
    return replace(
        state,
        rolling_date=date or state.rolling_date,
        rolling_provider=provider or state.rolling_provider,
    )


def segment_paragraphs(text: str, min_length: int = 30) -> list[Paragraph]:
    """Group lines into paragraphs on blank lines and page markers.

    A group still shorter than *min_length* absorbs the next short line
    instead of being closed. Each paragraph inherits the date/provider last
    seen when it was opened.
    """
    paragraphs: list[Paragraph] = []
    state = ScannerState()
    current_page = 1
    group = ""
    group_page = 1
    group_date: str | None = None
    group_provider: str | None = None

    def flush() -> None:
        nonlocal group
        if group:
            paragraphs.append(
                Paragraph(
                    text=group.strip(),
                    page=group_page,
                    nearest_date=group_date,
                    nearest_provider=group_provider,
                )
            )
            group = ""

    def open_group() -> None:
        nonlocal group_page, group_date, group_provider
        group_page = current_page
        group_date = state.rolling_date
        group_provider = state.rolling_provider

    for line in text.split("\n"):
        trimmed = line.strip()
        marker = PAGE_MARKER_PATTERN.match(trimmed)
        if marker:
            flush()
            current_page = int(marker.group(1))
            open_group()
            continue

        if not trimmed:
            if group:
                flush()
                open_group()
            continue

        state = observe_line(state, trimmed)

        if not group:
            open_group()
            group = trimmed
        elif len(trimmed) < min_length and len(group) < min_length:
            group += " " + trimmed
        elif len(group) >= min_length:
            flush()
            open_group()
            group = trimmed
        else:
            group += " " + trimmed

    flush()
    return paragraphs


def score_paragraphs(
    paragraphs: list[Paragraph],
    min_length: int = 30,
) -> tuple[list[ScoredParagraph], list[str], list[str]]:
    """Score paragraphs against the keyword and header vocabularies.

    Returns ``(scored, detected_keywords, detected_headers)``; detection
    lists keep first-seen order.
    """
    scored: list[ScoredParagraph] = []
    detected_keywords: dict[str, None] = {}
    detected_headers: dict[str, None] = {}
    state = ScannerState()

    for para in paragraphs:
        text = para.text.strip()
        if len(text) < min_length or NOISE_PATTERN.search(text):
            continue
        lower = text.lower()

        section_key = next((s for s in GUARANTEED_SECTIONS if s in lower), None)
        if section_key is not None:
            state = replace(state, current_section=section_display_name(section_key))

        is_header = SECTION_HEADER_PATTERN.search(text) is not None
        if is_header:
            for header in SECTION_HEADERS:
                bare = header.replace(":", "")
                if bare in lower:
                    detected_headers[bare.strip()] = None

        matched = [kw for kw, pattern in KEYWORD_PATTERNS if pattern.search(text)]
        for kw in matched:
            detected_keywords[kw] = None

        if matched or is_header:
            scored.append(
                ScoredParagraph(
                    text=text,
                    page=para.page,
                    matched_keywords=matched,
                    is_section_header=is_header,
                    section_key=section_key,
                    section_name=state.current_section,
                    date=extract_date(text) or para.nearest_date,
                    provider=extract_provider(text) or para.nearest_provider,
                )
            )

    return scored, list(detected_keywords), list(detected_headers)


def select_paragraphs(
    scored: list[ScoredParagraph],
    max_paragraphs: int = 100,
    section_quota: int = 6,
) -> list[ScoredParagraph]:
    """Three-pass greedy selection: keyword coverage, guaranteed sections, fill."""
    ranked = sorted(scored, key=lambda sp: (-sp.keyword_count, sp.page, -len(sp.text)))
    selected: list[ScoredParagraph] = []
    seen_texts: set[str] = set()

    def accept(sp: ScoredParagraph) -> None:
        selected.append(sp)
        seen_texts.add(sp.text)

    covered: set[str] = set()
    for sp in ranked:
        if len(selected) >= max_paragraphs:
            break
        if sp.text in seen_texts:
            continue
        if any(kw not in covered for kw in sp.matched_keywords):
            accept(sp)
            covered.update(sp.matched_keywords)

    section_counts: dict[str, int] = {}
    for sp in ranked:
        if len(selected) >= max_paragraphs:
            break
        if sp.section_key is None or sp.text in seen_texts:
            continue
        count = section_counts.get(sp.section_key, 0)
        if count < section_quota:
            accept(sp)
            section_counts[sp.section_key] = count + 1

    for sp in ranked:
        if len(selected) >= max_paragraphs:
            break
        if sp.text not in seen_texts:
            accept(sp)

    return selected


def render_tag(sp: ScoredParagraph) -> str:
    """``[Page P | Section | Date: D | Provider: X] text``"""
    parts = [f"Page {sp.page}"]
    if sp.section_name:
        parts.append(sp.section_name)
    if sp.date:
        parts.append(f"Date: {sp.date}")
    if sp.provider:
        parts.append(f"Provider: {sp.provider}")
    return f"[{' | '.join(parts)}] {sp.text}"


def render_corpus(
    selected: list[ScoredParagraph],
    cap: int = 20_000,
) -> tuple[str, list[ScoredParagraph]]:
    """Render tagged paragraphs joined by blank lines, never exceeding *cap* characters.

    The paragraph that would overflow is truncated to fill the remaining
    budget exactly and rendering stops. Returns the corpus and the
    paragraphs that made it in (fully or truncated).
    """
    pieces: list[str] = []
    rendered: list[ScoredParagraph] = []
    used = 0

    for sp in selected:
        sep = len(CORPUS_SEPARATOR) if pieces else 0
        remaining = cap - used - sep
        if remaining <= 0:
            break
        tagged = render_tag(sp)
        if len(tagged) > remaining:
            pieces.append(tagged[:remaining])
            rendered.append(sp)
            break
        pieces.append(tagged)
        rendered.append(sp)
        used += sep + len(tagged)

    return CORPUS_SEPARATOR.join(pieces), rendered


def build_keyword_flags(
    paragraphs: list[ScoredParagraph],
    config: FilterConfig,
) -> list[KeywordFlag]:
    """Provisional flags, at most one per distinct keyword."""
    flags: list[KeywordFlag] = []
    seen: set[str] = set()

    for sp in paragraphs:
        if sp.keyword_count < config.min_keyword_matches_flag:
            continue
        keyword = pick_flag_keyword(sp.text, sp.matched_keywords, config.negation_lookback)
        if keyword is None:
            continue
        key = "".join(ch for ch in keyword.lower() if "a" <= ch <= "z")
        if key in seen:
            continue
        seen.add(key)
        if sp.keyword_count >= 3:
            confidence = "high"
        elif sp.keyword_count == 2:
            confidence = "medium"
        else:
            confidence = "low"
        flags.append(
            KeywordFlag(
                condition=keyword[:1].upper() + keyword[1:],
                confidence=confidence,
                excerpt=sp.text[: config.flag_excerpt_chars],
                date_found=extract_date(sp.text),
                page_number=sp.page,
                section_found=sp.section_name or None,
            )
        )
    return flags


def filter_text(text: str, config: FilterConfig | None = None) -> FilterResult:
    """Run the full salience filter over one document's page-tagged text.

    Never raises on content; an input with no qualifying paragraphs yields
    an empty corpus.
    """
    config = config or FilterConfig()
    paragraphs = segment_paragraphs(text, config.min_paragraph_length)
    scored, keywords, headers = score_paragraphs(paragraphs, config.min_paragraph_length)
    selected = select_paragraphs(scored, config.max_paragraphs, config.section_guarantee_count)
    corpus, rendered = render_corpus(selected, config.filtered_text_cap)
    flags = build_keyword_flags(rendered, config)

    log.debug(
        "Salience filter kept %d/%d paragraphs (%d chars, %d flags)",
        len(rendered), len(paragraphs), len(corpus), len(flags),
    )
    return FilterResult(
        corpus=corpus,
        total_paragraphs=len(paragraphs),
        kept_paragraphs=len(rendered),
        keyword_flags=flags,
        detected_keywords=keywords,
        detected_headers=headers,
    )


def text_density(text: str) -> int:
    """Non-whitespace characters in *text*, ignoring page markers."""
    return sum(
        len("".join(line.split()))
        for line in text.split("\n")
        if not PAGE_MARKER_PATTERN.match(line.strip())
    )
