"""Tests for canonical keys, item deduplication, categories and timeline dedup."""

from __future__ import annotations

from records_recon.models import ExtractedItem, TimelineEntry
from records_recon.reconcile import canonical_key, deduplicate_items, map_to_category
from records_recon.reconcile.canonical import dedupe_timeline


def _item(condition: str, confidence: str = "medium", excerpt: str = "", item_id: str = "") -> ExtractedItem:
    return ExtractedItem(
        item_id=item_id or condition.lower(),
        condition=condition,
        confidence=confidence,
        excerpt=excerpt,
    )


class TestCanonicalKey:
    def test_modifiers_are_stripped(self) -> None:
        assert canonical_key("Bilateral Chronic Tinnitus") == canonical_key("tinnitus") == "tinnitus"

    def test_abbreviations_expand(self) -> None:
        assert canonical_key("PTSD") == canonical_key("Post traumatic stress disorder")

    def test_synonym_lookup_after_modifier_strip(self) -> None:
        assert canonical_key("Severe OSA") == "obstructive sleep apnea"

    def test_punctuation_and_spacing(self) -> None:
        assert canonical_key("  Lumbar   strain. ") == "lumbar strain"


class TestDeduplicateItems:
    def test_higher_confidence_wins(self) -> None:
        low = _item("tinnitus", "low", "ringing in ears for many years now")
        high = _item("Bilateral Tinnitus", "high", "ringing")
        assert deduplicate_items([low, high]) == [high]

    def test_longer_excerpt_breaks_ties(self) -> None:
        short = _item("PTSD", excerpt="nightmares")
        long = _item("Post-traumatic stress disorder", excerpt="nightmares and hypervigilance")
        assert deduplicate_items([short, long]) == [long]

    def test_first_appearance_order_and_idempotence(self) -> None:
        items = [
            _item("Knee strain"),
            _item("Tinnitus", "high"),
            _item("knee strain", "high"),
            _item("GERD"),
        ]
        once = deduplicate_items(items)
        assert [i.condition for i in once] == ["knee strain", "Tinnitus", "GERD"]
        assert deduplicate_items(once) == once

    def test_exact_tie_keeps_earlier(self) -> None:
        first = _item("Tinnitus", excerpt="same", item_id="a")
        second = _item("tinnitus", excerpt="same", item_id="b")
        assert deduplicate_items([first, second])[0].item_id == "a"


class TestCategory:
    def test_known_categories(self) -> None:
        assert map_to_category("Bilateral tinnitus") == "Hearing"
        assert map_to_category("Lumbar strain") == "Musculoskeletal"
        assert map_to_category("Burn pit exposure") == "Respiratory"
        assert map_to_category("Obstructive sleep apnea") == "Sleep"

    def test_unknown_is_other(self) -> None:
        assert map_to_category("Something unusual") == "Other"


class TestTimelineDedup:
    def test_same_date_page_and_similar_excerpt_collapse(self) -> None:
        stem = "Tinnitus reported, constant ringing in both ears since deployment overseas in 2004 " * 2
        a = TimelineEntry(date="2024-02-06", page=1, entry=stem + "first tail")
        b = TimelineEntry(date="2024-02-06", page=1, entry=stem.upper() + "second tail")
        c = TimelineEntry(date="2024-02-06", page=2, entry=stem)
        assert dedupe_timeline([a, b, c]) == [a, c]
