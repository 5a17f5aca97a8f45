"""False-positive gating for provisional keyword flags."""

from __future__ import annotations

from records_recon.filtering.vocabulary import (
    GENERIC_STANDALONE_TERMS,
    NEGATION_PATTERN,
    SCREENING_RULES,
)


def is_negated(text: str, keyword: str, lookback: int = 80) -> bool:
    """True if the first occurrence of *keyword* is preceded by a negation phrase.

    Only the *lookback* characters before the keyword are inspected.
    """
    lower = text.lower()
    idx = lower.find(keyword.lower())
    if idx == -1:
        return False
    prefix = lower[max(0, idx - lookback):idx]
    return NEGATION_PATTERN.search(prefix) is not None


def is_screening_false_positive(text: str, keyword: str) -> bool:
    """True if *text* reports a negative screening result for the instrument tied to *keyword*."""
    kw = keyword.lower()
    for pattern, suppressed in SCREENING_RULES:
        if kw in suppressed and pattern.search(text):
            return True
    return False


def pick_flag_keyword(text: str, matched_keywords: list[str], lookback: int = 80) -> str | None:
    """First matched keyword that is specific, not negated and not a screening artifact."""
    for keyword in matched_keywords:
        if keyword in GENERIC_STANDALONE_TERMS:
            continue
        if is_negated(text, keyword, lookback):
            continue
        if is_screening_false_positive(text, keyword):
            continue
        return keyword
    return None
