"""Static lookup tables for the salience filter.

Tables are versioned as a unit: bump ``VOCABULARY_VERSION`` whenever a
keyword, header, noise phrase or screening rule changes, since keyword
flags and filtered corpora cached by callers depend on them.
"""

from __future__ import annotations

import re
from typing import Pattern

VOCABULARY_VERSION = 1

GUARANTEED_SECTIONS: tuple[str, ...] = (
    "assessment",
    "problem list",
    "active problems",
    "active diagnoses",
    "hpi",
    "history of present illness",
    "diagnosis",
    "diagnoses",
    "plan",
    "impression",
    "chief complaint",
)

CORE_KEYWORDS: tuple[str, ...] = (
    # conditions
    "tinnitus", "hearing loss", "ptsd", "post-traumatic", "sleep apnea",
    "migraine", "tbi", "traumatic brain", "anxiety", "depression",
    # exposures
    "burn pit", "burn-pit", "agent orange", "gulf war", "toxic exposure",
    "pact act", "presumptive", "iraq", "afghanistan",
    # musculoskeletal
    "back pain", "lumbar", "radiculopathy", "knee", "shoulder", "arthritis",
    "cervical", "sciatica",
    "sinusitis", "rhinitis", "asthma", "copd", "constrictive bronchiolitis",
    "gerd", "neuropathy", "chronic pain", "fibromyalgia",
    "diabetes", "hypertension", "erectile", "mst", "military sexual trauma",
    "mgus", "male breast cancer", "urethral cancer", "ischemic heart",
    "pancreatic cancer", "kidney cancer", "lymphatic cancer", "bladder cancer",
    "melanoma", "hepatitis", "parkinson",
    # claims language
    "service connected", "service-connected", "nexus", "at least as likely",
    "more likely than not", "secondary to", "aggravated by", "in-service",
    "c&p", "compensable", "rated at", "disability rating", "tdiu",
    "individual unemployability", "sc ",
    # generic clinical
    "diagnosis", "diagnosed", "abnormal", "chronic", "bilateral",
    "functional impairment", "limitation of motion", "worsening",
    "problem list", "active diagnoses", "range of motion", "rom",
    "deluca", "functional loss", "pain on use", "flare-up", "flare up",
    # lay evidence
    "buddy statement", "lay evidence", "stressor", "incident report",
    "seizure", "epilepsy", "cancer", "tumor", "thyroid", "kidney", "liver",
    "bipolar", "schizophrenia", "suicidal", "substance",
)

SECTION_HEADERS: tuple[str, ...] = (
    "assessment:", "problem list:", "active problems:", "diagnosis:",
    "plan:", "hpi:", "history of present illness:", "impression:",
    "clinical notes:", "active diagnoses:", "chief complaint:",
    "physical exam:", "mental status exam:", "c&p exam",
    "compensation", "disability benefits questionnaire", "dbq",
)

# Scheduling, billing and routine-vitals boilerplate
NOISE_PHRASES: tuple[str, ...] = (
    "appointment scheduled", "next appointment", "check-in", "checked in",
    "no show", "cancelled appointment", "refill request", "medication refill",
    "secure message", "my healthevet", "travel reimbursement", "copay",
    "emergency contact", "next of kin", "pharmacy", "prescription mailed",
    "demographics updated", "insurance", "eligibility", "means test",
    "flu shot", "covid vaccine", "immunization", "routine vital signs",
    "vital signs within normal", "height:", "weight:", "bmi:",
)

# Keywords too generic to name a condition on their own
GENERIC_STANDALONE_TERMS: frozenset[str] = frozenset({
    "diagnosed", "diagnosis", "chronic", "abnormal", "bilateral",
    "problem list", "active diagnoses", "worsening",
    "functional impairment", "limitation of motion", "pain on use",
    "range of motion", "rom", "deluca", "functional loss",
    "flare-up", "flare up",
})

NEGATION_PATTERN: Pattern[str] = re.compile(
    r"\b(?:no |absence of |denies |denied |negative for |without |(?:not |never )present"
    r"|ruled out|no evidence of |no history of |no signs? of |no symptoms? of "
    r"|does not have |patient denies )",
    re.IGNORECASE,
)

_ZERO_SCORE = r"[:\s]*(?:score[:\s]*)?\s*(?:0|none|negative|nil)"

# (instrument-with-negative-result pattern, keywords it suppresses)
SCREENING_RULES: tuple[tuple[Pattern[str], frozenset[str]], ...] = (
    (re.compile(r"phq-?9" + _ZERO_SCORE, re.IGNORECASE), frozenset({"depression", "suicidal"})),
    (re.compile(r"c-?ssrs[:\s]*(?:negative|none|denied|no)", re.IGNORECASE), frozenset({"suicidal"})),
    (re.compile(r"gad-?7" + _ZERO_SCORE, re.IGNORECASE), frozenset({"anxiety"})),
    (re.compile(r"pc-?ptsd" + _ZERO_SCORE, re.IGNORECASE), frozenset({"ptsd", "post-traumatic"})),
    (re.compile(r"audit-?c" + _ZERO_SCORE, re.IGNORECASE), frozenset({"substance"})),
    (
        re.compile(r"suicidal\s+ideation[:\s]*(?:0|none|denied|negative|absent)", re.IGNORECASE),
        frozenset({"suicidal"}),
    ),
)


def _literal_union(phrases: tuple[str, ...]) -> Pattern[str]:
    return re.compile("|".join(re.escape(p) for p in phrases), re.IGNORECASE)


KEYWORD_PATTERNS: tuple[tuple[str, Pattern[str]], ...] = tuple(
    (keyword, re.compile(re.escape(keyword), re.IGNORECASE)) for keyword in CORE_KEYWORDS
)

SECTION_HEADER_PATTERN: Pattern[str] = _literal_union(SECTION_HEADERS)

NOISE_PATTERN: Pattern[str] = _literal_union(NOISE_PHRASES)

PAGE_MARKER_PATTERN: Pattern[str] = re.compile(r"^<<<PAGE (\d+)>>>$")


def page_marker(page_number: int) -> str:
    return f"<<<PAGE {page_number}>>>"


def section_display_name(section_key: str) -> str:
    """Display form of a guaranteed-section key (``hpi`` -> ``HPI``)."""
    if section_key in ("hpi", "history of present illness"):
        return "HPI"
    return section_key.title()
