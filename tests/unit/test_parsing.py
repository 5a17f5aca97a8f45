"""Tests for extraction/structuring output parsing."""

from __future__ import annotations

import pytest

from records_recon.exceptions import JSONParseError
from records_recon.models import KeywordFlag
from records_recon.pipeline.parsing import (
    keyword_flags_to_items,
    make_item_id,
    parse_extraction_output,
    parse_structuring_output,
)


class TestParseExtractionOutput:
    def test_fenced_array_with_trailing_comma(self) -> None:
        raw = """Here are the findings:
```json
[
  {"condition": "Bilateral tinnitus", "excerpt": "constant ringing in both ears",
   "page": "p. 3", "date": "2024-02-06", "doctorName": "null", "confidence": "HIGH"},
  {"condition": "Lumbar radiculopathy", "category": "Musculoskeletal", "page": 2},
]
```"""
        items = parse_extraction_output(raw)
        assert [i.condition for i in items] == ["Bilateral tinnitus", "Lumbar radiculopathy"]
        first = items[0]
        assert first.category == "Hearing"
        assert first.page_number == 3
        assert first.provider is None
        assert first.confidence == "high"
        assert items[1].confidence == "medium"

    def test_generic_and_tiny_conditions_are_dropped(self) -> None:
        raw = '[{"condition": "chronic"}, {"condition": "ab"}, {"condition": "GERD"}]'
        assert [i.condition for i in parse_extraction_output(raw)] == ["GERD"]

    def test_array_inside_prose_is_found(self) -> None:
        raw = 'Result: [{"condition": "Tinnitus"}] end. {"not": "this"}'
        assert [i.condition for i in parse_extraction_output(raw)] == ["Tinnitus"]

    def test_excerpt_is_capped(self) -> None:
        raw = '[{"condition": "Tinnitus", "excerpt": "' + "r" * 500 + '"}]'
        assert len(parse_extraction_output(raw)[0].excerpt) == 200

    def test_numbered_fallback(self) -> None:
        raw = (
            "1. **Tinnitus**\n"
            "   Confidence: High\n"
            '   Quote: "constant ringing in both ears"\n'
            "   Page: 4\n"
            "2. Lumbar strain\n"
            "   Category: Musculoskeletal\n"
        )
        items = parse_extraction_output(raw)
        assert [i.condition for i in items] == ["Tinnitus", "Lumbar strain"]
        assert items[0].confidence == "high"
        assert items[0].page_number == 4
        assert items[0].excerpt == "constant ringing in both ears"
        assert items[1].category == "Musculoskeletal"

    @pytest.mark.parametrize("raw", ["", "[]", "I could not find anything."])
    def test_empty_outputs(self, raw: str) -> None:
        assert parse_extraction_output(raw) == []


class TestParseStructuringOutput:
    def test_full_object(self) -> None:
        raw = """```json
{"document_summary": {"total_pages_referenced": "3", "date_range": {"earliest": "2024-01-01", "latest": null},
  "document_types_detected": ["Progress Note"], "providers_found": ["Dr. Xu"]},
 "timeline": [{"date": "2024-01-01", "page": 1, "entry": "Tinnitus noted", "category": "Hearing"}],
 "conditions_index": [{"condition": "Tinnitus", "category": "Hearing", "mention_count": 2,
   "pages_found": [1, "2"], "excerpts": [{"text": "ringing", "page": 1}]}],
 "keyword_frequency": [{"term": "tinnitus", "count": 2}]}
```"""
        summary = parse_structuring_output(raw)
        assert summary.document_summary.total_pages_referenced == 3
        assert summary.document_summary.date_range.latest is None
        assert summary.timeline[0].entry == "Tinnitus noted"
        assert summary.conditions_index[0].pages_found == [1, 2]
        assert summary.keyword_frequency[0].count == 2

    def test_missing_sections_default_empty(self) -> None:
        summary = parse_structuring_output('{"timeline": []}')
        assert summary.conditions_index == []
        assert summary.document_summary.total_pages_referenced == 0

    def test_unparseable_raises_with_raw(self) -> None:
        with pytest.raises(JSONParseError) as excinfo:
            parse_structuring_output("The model rambled instead")
        assert excinfo.value.raw_response == "The model rambled instead"

    def test_wrongly_shaped_sections_are_treated_as_missing(self) -> None:
        summary = parse_structuring_output(
            '{"document_summary": {"date_range": "2020 - 2024", "providers_found": "Dr. Xu"},'
            ' "timeline": "none", "conditions_index": [{"condition": "Tinnitus", "pages_found": 3}, "x"]}'
        )
        assert summary.document_summary.date_range.earliest is None
        assert summary.document_summary.providers_found == ["Dr. Xu"]
        assert summary.timeline == []
        assert summary.conditions_index[0].pages_found == [3]
        assert len(summary.conditions_index) == 1

    def test_string_document_summary(self) -> None:
        summary = parse_structuring_output('{"document_summary": "n/a", "keyword_frequency": {"term": "x"}}')
        assert summary.document_summary.total_pages_referenced == 0
        assert summary.keyword_frequency == []

    def test_unconvertible_value_raises_parse_error(self) -> None:
        raw = '{"document_summary": {"total_pages_referenced": 1e999}}'
        with pytest.raises(JSONParseError) as excinfo:
            parse_structuring_output(raw)
        assert excinfo.value.raw_response == raw


class TestKeywordFlagItems:
    def test_flags_become_items(self) -> None:
        flags = [
            KeywordFlag(condition="Tinnitus", confidence="medium", excerpt="ringing", page_number=1),
            KeywordFlag(condition="Back pain", confidence="high", excerpt="lumbar", page_number=2),
        ]
        items = keyword_flags_to_items(flags)
        assert items[0].item_id == "kw_tinnitus_0"
        assert items[0].category == "Hearing"
        assert items[1].category == "Musculoskeletal"
        assert items[1].confidence == "high"

    def test_make_item_id_slug(self) -> None:
        assert make_item_id("recon", "Post-Traumatic Stress", 3) == "recon_post_traumatic_stress_3"
