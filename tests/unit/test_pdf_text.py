"""Tests for page-aligned PDF text extraction."""

from __future__ import annotations

import io

import pytest
from pypdf import PdfWriter

from records_recon.exceptions import DecodeError
from records_recon.extraction import extract
from records_recon.extraction.pdf_text import alignment_counts, decode_pages, render_pages, scrape_text
from records_recon.models import PageText


def _blank_pdf(pages: int) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


class TestDecodePages:
    def test_one_entry_per_physical_page(self) -> None:
        pages = decode_pages(_blank_pdf(3))
        assert [p.page_number for p in pages] == [1, 2, 3]
        assert all(p.text == "" for p in pages)

    def test_garbage_raises_decode_error(self) -> None:
        with pytest.raises(DecodeError):
            decode_pages(b"not a pdf")


class TestExtract:
    def test_blank_pages_still_get_markers(self) -> None:
        text, count = extract(_blank_pdf(2))
        assert count == 2
        assert text.count("<<<PAGE ") == 2
        assert "<<<PAGE 2>>>" in text

    def test_unreadable_file_falls_back_to_single_page(self) -> None:
        text, count = extract(b"%PDF-1.4 broken \x00\x01 Patient reports ringing in both ears \xff")
        assert count == 1
        assert text.startswith("<<<PAGE 1>>>\n")
        assert "Patient reports ringing in both ears" in text


class TestScrapeText:
    def test_collects_operator_strings(self) -> None:
        body = b" ".join(b"(word%d) Tj" % i for i in range(10))
        raw = b"BT " + body + b" ET"
        assert scrape_text(raw) == " ".join(f"word{i}" for i in range(10))

    def test_collects_tj_arrays(self) -> None:
        arrays = b" ".join(b"[(part%d) -20 (more%d)] TJ" % (i, i) for i in range(5))
        result = scrape_text(b"BT " + arrays + b" ET")
        assert result.startswith("part0 more0 part1")

    def test_readable_runs_when_operators_are_sparse(self) -> None:
        result = scrape_text(b"\x00\x01Chronic lumbar strain noted\x02\x03")
        assert "Chronic lumbar strain noted" in result


def test_render_pages() -> None:
    rendered = render_pages([PageText(page_number=1, text="a"), PageText(page_number=2, text="")])
    assert rendered == "<<<PAGE 1>>>\na\n<<<PAGE 2>>>\n"


class TestAlignmentCounts:
    def test_page_objects_match_rendered_pages(self) -> None:
        raw = _blank_pdf(3)
        rendered, ff_segments, page_objects = alignment_counts(raw, [p.text for p in decode_pages(raw)])
        assert rendered == 3
        assert page_objects == 3
        assert ff_segments is None

    def test_form_feeds_in_page_text_show_drift(self) -> None:
        rendered, ff_segments, _ = alignment_counts(b"", ["first\fsecond", "third\f"])
        assert rendered == 2
        assert ff_segments == 3
