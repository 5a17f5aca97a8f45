"""Document -> page-tagged text."""

from __future__ import annotations

from records_recon.extraction.pdf_text import decode_pages, extract, scrape_text

__all__ = ["decode_pages", "extract", "scrape_text"]
