"""Condition canonicalization, deduplication and category mapping."""

from __future__ import annotations

import re

from records_recon.models import CONFIDENCE_RANK, ExtractedItem, TimelineEntry

CONDITION_SYNONYMS: dict[str, str] = {
    "bppv": "benign paroxysmal positional vertigo",
    "benign positional vertigo": "benign paroxysmal positional vertigo",
    "ptsd": "post-traumatic stress disorder",
    "post traumatic stress disorder": "post-traumatic stress disorder",
    "post-traumatic stress": "post-traumatic stress disorder",
    "osa": "obstructive sleep apnea",
    "sleep apnea": "obstructive sleep apnea",
    "mdd": "major depressive disorder",
    "major depression": "major depressive disorder",
    "gad": "generalized anxiety disorder",
    "gerd": "gastroesophageal reflux disease",
    "acid reflux": "gastroesophageal reflux disease",
    "gastroesophageal reflux": "gastroesophageal reflux disease",
    "tbi": "traumatic brain injury",
    "copd": "chronic obstructive pulmonary disease",
    "cad": "coronary artery disease",
    "chf": "congestive heart failure",
    "ibs": "irritable bowel syndrome",
    "ddd": "degenerative disc disease",
    "ckd": "chronic kidney disease",
    "ed": "erectile dysfunction",
    "crps": "complex regional pain syndrome",
    "rls": "restless leg syndrome",
    "restless legs syndrome": "restless leg syndrome",
    "htn": "hypertension",
    "dm": "diabetes mellitus",
    "dm2": "diabetes mellitus type 2",
    "dm ii": "diabetes mellitus type 2",
    "afib": "atrial fibrillation",
    "a-fib": "atrial fibrillation",
    "oa": "osteoarthritis",
    "ra": "rheumatoid arthritis",
    "mst": "military sexual trauma",
}

_PUNCT = re.compile(r"[^a-z0-9\s\-]")
_MODIFIERS = re.compile(
    r"\b(?:bilateral|chronic|acute|mild|moderate|severe|recurrent|left|right|unspecified)\b"
)
_SPACES = re.compile(r"\s+")

# First matching rule wins
CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Hearing", ("tinnitus", "hearing")),
    ("Mental Health", ("ptsd", "trauma", "anxiety", "depression", "mental", "panic", "mst")),
    ("Sleep", ("sleep apnea", "osa", "cpap")),
    ("Neurological", ("migraine", "headache", "tbi", "neurolog")),
    ("Respiratory", ("burn pit", "pact", "agent orange", "gulf war", "toxic", "presumptive")),
    ("Respiratory", ("respirat", "sinus", "rhinitis", "asthma", "copd")),
    ("GI", ("gerd", "gastro", "ibs")),
    (
        "Musculoskeletal",
        ("back", "knee", "shoulder", "musculo", "arthritis", "lumbar", "spinal", "joint",
         "cervical", "radiculop"),
    ),
    ("Oncological", ("cancer", "tumor")),
    ("Cardiovascular", ("heart", "cardio", "hypertens")),
    ("Endocrine", ("diabetes", "thyroid")),
    ("Genitourinary", ("erectile", "kidney", "bladder")),
    ("Dermatological", ("eczema", "psoriasis", "dermatit", "scar")),
    ("Ophthalmological", ("glaucoma", "cataract", "eye")),
)


def canonical_key(condition: str) -> str:
    """Normalized identity of a condition name.

    ``"Bilateral Chronic Tinnitus"`` and ``"tinnitus"`` share a key; so do
    ``"PTSD"`` and ``"Post traumatic stress disorder"``.
    """
    lower = _PUNCT.sub("", condition.lower()).strip()
    lower = _SPACES.sub(" ", lower)
    if lower in CONDITION_SYNONYMS:
        return CONDITION_SYNONYMS[lower]
    stripped = _SPACES.sub(" ", _MODIFIERS.sub("", lower)).strip()
    return CONDITION_SYNONYMS.get(stripped, stripped)


def _preference(item: ExtractedItem) -> tuple[int, int]:
    return CONFIDENCE_RANK.get(item.confidence, 0), len(item.excerpt)


def deduplicate_items(items: list[ExtractedItem]) -> list[ExtractedItem]:
    """Keep one item per canonical key: highest confidence, then longest excerpt.

    Order follows the first appearance of each key. Ties keep the earlier item,
    so applying this twice is the same as applying it once.
    """
    best: dict[str, ExtractedItem] = {}
    for item in items:
        key = canonical_key(item.condition)
        current = best.get(key)
        if current is None or _preference(item) > _preference(current):
            best[key] = item
    return list(best.values())


def map_to_category(label: str) -> str:
    """Coarse body-system category for a condition label."""
    lower = label.lower()
    for category, needles in CATEGORY_RULES:
        if any(n in lower for n in needles):
            return category
    return "Other"


def timeline_key(entry: TimelineEntry) -> str:
    """Dedup identity: date, page and the first 80 chars of the lowercased excerpt."""
    return f"{entry.date or ''}|{entry.page or ''}|{entry.entry.lower()[:80]}"


def dedupe_timeline(entries: list[TimelineEntry]) -> list[TimelineEntry]:
    seen: set[str] = set()
    out: list[TimelineEntry] = []
    for entry in entries:
        key = timeline_key(entry)
        if key in seen:
            continue
        seen.add(key)
        out.append(entry)
    return out
