# ============================================================================
# src/document_intake/extractors/normalizers.py
# ============================================================================
"""
Normalization utilities for extracted values.

Turns raw OCR substrings into canonical forms:
- Dates -> YYYY-MM-DD
- Phones -> (NNN) NNN-NNNN
- Gender -> male / female / passthrough
- Names -> Capitalized

None of these raise. Input that can't be normalized comes back unchanged
so partial extraction value is kept.
"""

import re

_DATE_SEPARATORS = re.compile(r'[/-]')
_NON_DIGITS = re.compile(r'\D')
_WHITESPACE = re.compile(r'\s+')


def _to_int(part: str):
    try:
        return int(part)
    except ValueError:
        return None


def normalize_date(raw: str) -> str:
    """
    Normalize a date string to YYYY-MM-DD.

    Handles:
    - "1985-03-07" / "1985/3/7"  (year first)
    - "13/05/2020"  (first part > 12 -> DD/MM/YYYY)
    - "05/13/2020"  (second part > 12 -> MM/DD/YYYY)
    - "05/06/2020"  (ambiguous -> MM/DD/YYYY, US order)
    - "5/6/85"      (two-digit year: < 30 -> 20YY, else 19YY)

    Returns the input unchanged if it doesn't split into three numeric
    parts or fails range validation.
    """
    if not raw:
        return raw

    parts = _DATE_SEPARATORS.split(raw.strip())
    if len(parts) != 3:
        return raw

    if len(parts[0]) == 4:
        year, month, day = (_to_int(p) for p in parts)
    else:
        first, second, year = (_to_int(p) for p in parts)
        if first is None or second is None or year is None:
            return raw

        if year < 100:
            year = 2000 + year if year < 30 else 1900 + year

        if first > 12:
            day, month = first, second
        elif second > 12:
            month, day = first, second
        else:
            # Ambiguous, assume US order
            month, day = first, second

    if year is None or month is None or day is None:
        return raw

    if not (1 <= month <= 12 and 1 <= day <= 31 and 1900 <= year <= 2100):
        return raw

    return f"{year}-{month:02d}-{day:02d}"


def normalize_phone(raw: str) -> str:
    """Format 10-digit numbers as (NNN) NNN-NNNN, leave anything else alone."""
    if not raw:
        return raw
    digits = _NON_DIGITS.sub('', raw)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return raw


def normalize_gender(raw: str) -> str:
    if not raw:
        return raw
    lower = raw.strip().lower()
    if lower in ('m', 'male'):
        return 'male'
    if lower in ('f', 'female'):
        return 'female'
    return raw


def capitalize_name(raw: str) -> str:
    # "SMITH", "smith" and "sMITH" all become "Smith"
    raw = raw.strip() if raw else raw
    if not raw:
        return raw
    return raw[0].upper() + raw[1:].lower()


def collapse_whitespace(raw: str) -> str:
    """Join multi-line captures into one line."""
    return _WHITESPACE.sub(' ', raw.strip()) if raw else raw


def lowercase(raw: str) -> str:
    return raw.strip().lower() if raw else raw
