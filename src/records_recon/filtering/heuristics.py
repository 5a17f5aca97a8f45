"""Date and provider recognition for clinical note text.

Patterns are tried in priority order and the first match wins. Labelled
note headers (``DATE OF NOTE: FEB 06, 2024@14:48``, ``SIGNED BY: SMITH,JOHN M MD``)
beat bare dates and names found elsewhere in the text.
"""

from __future__ import annotations

import re

_MONTHS: dict[str, str] = {
    "january": "01", "february": "02", "march": "03", "april": "04",
    "may": "05", "june": "06", "july": "07", "august": "08",
    "september": "09", "october": "10", "november": "11", "december": "12",
    "jan": "01", "feb": "02", "mar": "03", "apr": "04", "jun": "06",
    "jul": "07", "aug": "08", "sep": "09", "oct": "10", "nov": "11", "dec": "12",
}

_NOTE_LABEL = (
    r"(?:DATE\s*OF\s*NOTE|ENTRY\s*DATE|DATE\s*ENTERED|DATE\s*SIGNED|DATE\s*OF\s*SERVICE"
    r"|VISIT\s*DATE|NOTE\s*DATE|ADMISSION\s*DATE|DISCHARGE\s*DATE)"
)

_LABELLED_NAMED = re.compile(
    _NOTE_LABEL + r"[:\s]+([A-Za-z]{3,9})\s+(\d{1,2}),?\s+(\d{4})(?:@[\d:]+)?", re.IGNORECASE
)
_LABELLED_NUMERIC = re.compile(
    _NOTE_LABEL + r"[:\s]+(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})(?:@[\d:]+)?", re.IGNORECASE
)
_ISO = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_MDY = re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")
_LABELLED_SHORT_YEAR = re.compile(
    r"(?:note\s*date|date\s*of\s*service|dos|visit\s*date|encounter\s*date)"
    r"[:\s]*(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})",
    re.IGNORECASE,
)
_ABBR_AT = re.compile(r"([A-Z]{3})\s+(\d{1,2}),?\s+(\d{4})@", re.IGNORECASE)
_NAMED = re.compile(r"(\w{3,9})\s+(\d{1,2}),?\s+(\d{4})")

_CREDENTIALS = (
    "MD|DO|PA|PA-C|NP|ARNP|RN|BSN|MSN|LCSW|PhD|PsyD|PharmD|DPM|OD|DDS|DMD"
)
_SIGNER = re.compile(
    r"(?:SIGNED\s*BY|AUTHOR|ATTENDING|COSIGNED\s*BY|EXPECTED\s*COSIGNER|Ordered\s*by|Clinician)"
    r"[:\s]+([A-Z][A-Z',.\-\s]{2,40}?)(?:\s+(?:" + _CREDENTIALS + r")\b|\s*$)",
    re.IGNORECASE | re.MULTILINE,
)
_DOCTOR = re.compile(r"Dr\.?\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+){0,2})")


def _ymd(year: str, month: str, day: str) -> str:
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def extract_date(text: str) -> str | None:
    """Return the first recognizable date in *text* as ``YYYY-MM-DD``."""
    m = _LABELLED_NAMED.search(text)
    if m and m.group(1).lower() in _MONTHS:
        return _ymd(m.group(3), _MONTHS[m.group(1).lower()], m.group(2))

    m = _LABELLED_NUMERIC.search(text)
    if m:
        return _ymd(m.group(3), m.group(1), m.group(2))

    m = _ISO.search(text)
    if m:
        return m.group(0)

    m = _MDY.search(text)
    if m:
        return _ymd(m.group(3), m.group(1), m.group(2))

    m = _LABELLED_SHORT_YEAR.search(text)
    if m:
        year = m.group(3)
        if len(year) == 2:
            year = f"20{year}"
        return _ymd(year, m.group(1), m.group(2))

    m = _ABBR_AT.search(text)
    if m and m.group(1).lower() in _MONTHS:
        return _ymd(m.group(3), _MONTHS[m.group(1).lower()], m.group(2))

    m = _NAMED.search(text)
    if m and m.group(1).lower() in _MONTHS:
        return _ymd(m.group(3), _MONTHS[m.group(1).lower()], m.group(2))

    return None


def extract_provider(text: str) -> str | None:
    """Return the signing/authoring provider named in *text*, if any.

    Upper-case ``LAST,FIRST M`` signer names are re-cased to ``Last, First m``.
    """
    m = _SIGNER.search(text)
    if m:
        raw = m.group(1).strip().rstrip(",")
        if "," in raw and raw == raw.upper():
            parts = [p.strip() for p in raw.split(",")]
            return ", ".join(p[:1].upper() + p[1:].lower() for p in parts)
        return raw

    m = _DOCTOR.search(text)
    if m:
        return f"Dr. {m.group(1)}"
    return None
