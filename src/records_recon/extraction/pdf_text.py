"""Page-aligned PDF text extraction with a byte-scraping fallback.

Output text is a sequence of ``<<<PAGE N>>>`` marker lines, each followed by
that page's text, with exactly one marker per physical page. When pypdf
cannot open the document, printable text is scraped from the raw bytes and
reported as a single synthetic page.
"""

from __future__ import annotations

import io
import logging
import re
from typing import Optional

from pypdf import PdfReader

from records_recon.exceptions import DecodeError
from records_recon.filtering.vocabulary import page_marker
from records_recon.models import PageText

log = logging.getLogger(__name__)

# Secondary page-count signal: page objects in the raw file
_PAGE_OBJECT = re.compile(rb"/Type\s*/Page(?![a-zA-Z])")
_TEXT_BLOCK = re.compile(r"BT[\s\S]*?ET")
_TJ_STRING = re.compile(r"\(([^)]*)\)\s*Tj")
_TJ_ARRAY = re.compile(r"\[([^\]]*)\]\s*TJ", re.IGNORECASE)
_PAREN_STRING = re.compile(r"\(([^)]*)\)")
_READABLE_RUN = re.compile(r"[A-Za-z][A-Za-z0-9\s,.;:'\-/()]{4,}")
_HAS_LOWER = re.compile(r"[a-z]")

MIN_OPERATOR_STRINGS = 10


def decode_pages(raw: bytes) -> list[PageText]:
    """Per-page text via pypdf. Raises ``DecodeError`` if the file cannot be read."""
    try:
        reader = PdfReader(io.BytesIO(raw))
        texts = [page.extract_text() or "" for page in reader.pages]
    except Exception as exc:
        raise DecodeError(f"PDF decode failed: {exc}") from exc

    if not texts:
        texts = [""]

    _log_alignment(raw, texts)
    return [PageText(page_number=i + 1, text=t) for i, t in enumerate(texts)]


def alignment_counts(raw: bytes, texts: list[str]) -> tuple[int, Optional[int], int]:
    """``(pages rendered, form-feed segments, page objects)`` for one document.

    Form-feed segments come from the page texts run together as one
    document text; ``None`` when that text holds no form feed.
    """
    whole = "".join(texts)
    ff_segments = whole.count("\f") + 1 if "\f" in whole else None
    return len(texts), ff_segments, len(_PAGE_OBJECT.findall(raw))


def _log_alignment(raw: bytes, texts: list[str]) -> None:
    """Diagnostic only: the per-page render stays authoritative."""
    rendered, ff_segments, page_objects = alignment_counts(raw, texts)
    if ff_segments is not None and ff_segments != rendered:
        log.info(
            "Page alignment: %d pages rendered, %d form-feed segments (drift %+d)",
            rendered, ff_segments, ff_segments - rendered,
        )
    if page_objects and page_objects != rendered:
        log.info(
            "Page alignment: %d pages rendered, %d page objects (drift %+d)",
            rendered, page_objects, page_objects - rendered,
        )
    else:
        log.debug("Page alignment: %d pages rendered, form-feed segments %s", rendered, ff_segments)


def scrape_text(raw: bytes) -> str:
    """Heuristic printable-text scrape of raw PDF bytes.

    Collects ``(...) Tj`` and ``[...] TJ`` strings from ``BT``/``ET`` blocks;
    if that finds fewer than ``MIN_OPERATOR_STRINGS`` strings, adds readable
    runs from a UTF-8 decode.
    """
    latin1 = raw.decode("latin-1")
    parts: list[str] = []
    for block in _TEXT_BLOCK.findall(latin1):
        parts.extend(s for s in _TJ_STRING.findall(block) if s)
        for array in _TJ_ARRAY.findall(block):
            parts.extend(s for s in _PAREN_STRING.findall(array) if s)

    if len(parts) < MIN_OPERATOR_STRINGS:
        utf8 = raw.decode("utf-8", errors="replace")
        parts.extend(
            run for run in _READABLE_RUN.findall(utf8) if len(run) > 8 and _HAS_LOWER.search(run)
        )

    return " ".join(" ".join(parts).split())


def render_pages(pages: list[PageText]) -> str:
    return "\n".join(f"{page_marker(p.page_number)}\n{p.text}" for p in pages)


def extract(raw: bytes) -> tuple[str, int]:
    """Page-tagged text and page count for one PDF. Never raises on bad input."""
    try:
        pages = decode_pages(raw)
    except DecodeError as exc:
        log.warning("%s; falling back to byte scraper", exc)
        pages = [PageText(page_number=1, text=scrape_text(raw))]
    return render_pages(pages), len(pages)
