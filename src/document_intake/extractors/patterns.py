# ============================================================================
# src/document_intake/extractors/patterns.py
# ============================================================================
"""
Pattern Library

Ordered, immutable extraction rules per field category:
- Name cascade strategies (tried in order, first success wins)
- Labeled first/last name overrides
- Identity, contact, address, insurance, emergency contact
- Referral metadata
- Lab header fields plus the line-scan vocabulary

Every rule carries a fixed confidence weight. Fields with more than one
rule (email, insurance provider) try them in order and keep the first hit.

The library is a value: build a modified copy with dataclasses.replace()
to override rules per instance or per test.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, FrozenSet
from re import Pattern

from ..constants.lab_tests import COMMON_LAB_TESTS
from .normalizers import (
    normalize_date,
    normalize_phone,
    normalize_gender,
    capitalize_name,
    collapse_whitespace,
    lowercase,
)


def _strip(value: str) -> str:
    return value.strip()


@dataclass(frozen=True)
class FieldPattern:
    """
    One extraction rule for one field.

    group: capture group holding the value (0 = the whole match)
    value_regex: optional second regex run over the captured text; its
        whole match becomes the value (used to pull the number out of a
        labeled phone match). No hit means the rule didn't match.
    """
    field_name: str
    regex: Pattern
    confidence: float
    normalizer: Callable[[str], str] = _strip
    group: int = 1
    value_regex: Optional[Pattern] = None


@dataclass(frozen=True)
class NameStrategy:
    """
    One step of the person-name cascade.

    Either the regex captures first and last name as groups 1 and 2, or
    (split_full_name) group 1 holds a full name whose first and last
    whitespace-separated tokens are used.
    """
    name: str
    regex: Pattern
    confidence: float
    split_full_name: bool = False
    exclude_words: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class PatternLibrary:
    name_cascade: Tuple[NameStrategy, ...]
    name_overrides: Tuple[FieldPattern, ...]
    patient_fields: Tuple[FieldPattern, ...]
    referral_fields: Tuple[FieldPattern, ...]
    lab_fields: Tuple[FieldPattern, ...]
    lab_tests: Tuple[str, ...] = COMMON_LAB_TESTS
    lab_value: Pattern = field(default_factory=lambda: re.compile(r'(\d+\.?\d*)\s*([a-zA-Z/%]+)?'))
    lab_reference: Pattern = field(default_factory=lambda: re.compile(r'\(?\s*(\d+\.?\d*)\s*[-–]\s*(\d+\.?\d*)\s*\)?'))
    lab_abnormal: Pattern = field(default_factory=lambda: re.compile(r'\b(high|low|abnormal|h|l|\*)\b', re.I))
    context_length: int = 50


# Header words that look like an ALL-CAPS name line but aren't
HEADER_WORDS = frozenset({
    'REFERRAL', 'LETTER', 'PATIENT', 'DOCTOR', 'HOSPITAL', 'CLINIC',
    'MEDICAL', 'CENTER', 'HEALTH', 'PRIVATE', 'DEAR', 'DATE', 'FROM',
    'ADDRESS', 'PHONE',
})

_TITLE = r"(?:mr\.?|mrs\.?|ms\.?|miss|dr\.?)?"
_TITLE_NO_DR = r"(?:mr\.?|mrs\.?|ms\.?|miss)?"
_NAME_WORD = r"([A-Z][a-zA-Z\-']+)"
_DATE = r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4}|\d{4}[/-]\d{1,2}[/-]\d{1,2})"
_PHONE = r"\(?\d{3}\)?[\s.\-]?\d{3}[\s.\-]?\d{4}"
_STREET = (
    r"(\d+\s+[\w\s]+(?:st(?:reet)?|ave(?:nue)?|rd|road|blvd|boulevard|dr(?:ive)?"
    r"|ln|lane|way|ct|court|pl(?:ace)?|cir(?:cle)?))\.?"
)

PHONE_NUMBER = re.compile(_PHONE)


def _name_cascade() -> Tuple[NameStrategy, ...]:
    return (
        NameStrategy(
            name="re_header",
            regex=re.compile(rf"(?:^|\n)\s*re[:\s]+{_TITLE}\s*{_NAME_WORD}\s+{_NAME_WORD}", re.I | re.M),
            confidence=0.95,
        ),
        NameStrategy(
            name="patient_label",
            regex=re.compile(rf"patient\s*[:\-]\s*{_TITLE}\s*{_NAME_WORD}\s+{_NAME_WORD}", re.I),
            confidence=0.95,
        ),
        NameStrategy(
            name="dear_doctor",
            regex=re.compile(
                r"dear\s+(?:dr\.?|doctor)\s+[a-zA-Z\-']+[,\s]+(?:i\s+am\s+)?"
                rf"(?:referring|writing\s+(?:to\s+)?refer)\s+{_TITLE_NO_DR}\s*{_NAME_WORD}\s+{_NAME_WORD}",
                re.I,
            ),
            confidence=0.90,
        ),
        NameStrategy(
            name="referring",
            regex=re.compile(rf"(?:referring|refer)\s+{_TITLE}\s*{_NAME_WORD}\s+{_NAME_WORD}", re.I),
            confidence=0.85,
        ),
        NameStrategy(
            name="seeing",
            regex=re.compile(rf"(?:seeing|reviewing|assessing)\s+{_TITLE_NO_DR}\s*{_NAME_WORD}\s+{_NAME_WORD}", re.I),
            confidence=0.85,
        ),
        NameStrategy(
            name="full_name_label",
            regex=re.compile(
                r"(?:patient\s*(?:name)?|name)\s*[:\-]?\s*"
                r"([A-Z][a-z]+(?:\s+[A-Z]\.?)?\s+[A-Z][a-zA-Z\-']+)",
                re.I,
            ),
            confidence=0.80,
            split_full_name=True,
        ),
        NameStrategy(
            name="all_caps_line",
            # Case-sensitive on purpose: only genuinely upper-case lines
            regex=re.compile(r"(?:^|\n)\s*([A-Z]{2,}[A-Z\-']*)\s+([A-Z]{2,}[A-Z\-']*)\s*(?:\n|$)", re.M),
            confidence=0.70,
            exclude_words=HEADER_WORDS,
        ),
    )


def _name_overrides() -> Tuple[FieldPattern, ...]:
    return (
        FieldPattern(
            field_name="first_name",
            regex=re.compile(r"(?:first\s*name|given\s*name)\s*[:\-]?\s*([A-Z][a-zA-Z\-']+)", re.I),
            confidence=0.95,
            normalizer=capitalize_name,
        ),
        FieldPattern(
            field_name="last_name",
            regex=re.compile(r"(?:last\s*name|surname|family\s*name)\s*[:\-]?\s*([A-Z][a-zA-Z\-']+)", re.I),
            confidence=0.95,
            normalizer=capitalize_name,
        ),
    )


def _patient_fields() -> Tuple[FieldPattern, ...]:
    city_state_zip = re.compile(r"([A-Z][a-zA-Z\s]+),?\s*([A-Z]{2})\s*(\d{5}(?:-\d{4})?)")
    insurance_stop = r"(?:\n|$|member|policy|id|group)"

    return (
        # Identity
        FieldPattern(
            field_name="date_of_birth",
            regex=re.compile(rf"(?:d\.?o\.?b\.?|date\s*of\s*birth|birth\s*date|birthdate)\s*[:\-]?\s*{_DATE}", re.I),
            confidence=0.9,
            normalizer=normalize_date,
        ),
        FieldPattern(
            field_name="gender",
            regex=re.compile(r"(?:gender|sex)\s*[:\-]?\s*(male|female|m|f|other|non-binary)", re.I),
            confidence=0.95,
            normalizer=normalize_gender,
        ),

        # Contact
        FieldPattern(
            field_name="phone",
            regex=re.compile(rf"(?:phone|tel(?:ephone)?|mobile|cell|contact\s*(?:number|#)?)\s*[:\-]?\s*{_PHONE}", re.I),
            confidence=0.9,
            normalizer=normalize_phone,
            group=0,
            value_regex=PHONE_NUMBER,
        ),
        FieldPattern(
            field_name="email",
            regex=re.compile(r"(?:email|e-mail)\s*[:\-]?\s*([a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,})", re.I),
            confidence=0.95,
            normalizer=lowercase,
        ),
        FieldPattern(
            field_name="email",
            regex=re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}"),
            confidence=0.8,
            normalizer=lowercase,
            group=0,
        ),

        # Address
        FieldPattern(
            field_name="address_line1",
            regex=re.compile(rf"(?:address|street\s*address|mailing\s*address)\s*[:\-]?\s*{_STREET}", re.I),
            confidence=0.85,
        ),
        FieldPattern(field_name="city", regex=city_state_zip, confidence=0.9, group=1),
        FieldPattern(field_name="state", regex=city_state_zip, confidence=0.95, group=2),
        FieldPattern(field_name="zip", regex=city_state_zip, confidence=0.95, group=3),

        # Insurance
        FieldPattern(
            field_name="insurance_provider",
            regex=re.compile(
                r"(?:insurance\s*(?:company|provider|carrier)|health\s*plan|payer)\s*[:\-]?\s*"
                rf"([A-Za-z\s&]+?){insurance_stop}",
                re.I,
            ),
            confidence=0.85,
        ),
        FieldPattern(
            field_name="insurance_provider",
            regex=re.compile(rf"insurance\s*[:\-]\s*([A-Za-z\s&]+?){insurance_stop}", re.I),
            confidence=0.75,
        ),
        FieldPattern(
            field_name="insurance_id",
            regex=re.compile(
                r"(?:member\s*id|policy\s*(?:number|#|id)|insurance\s*id|subscriber\s*id)\s*[:\-]?\s*([A-Z0-9\-]+)",
                re.I,
            ),
            confidence=0.9,
        ),

        # Emergency contact
        FieldPattern(
            field_name="emergency_contact_name",
            regex=re.compile(
                r"(?:emergency\s*contact|emergency\s*contact\s*name|in\s*case\s*of\s*emergency)\s*[:\-]?\s*"
                r"([A-Z][a-zA-Z\-']+(?:\s+[A-Z][a-zA-Z\-']+)+)",
                re.I,
            ),
            confidence=0.85,
        ),
        FieldPattern(
            field_name="emergency_contact_phone",
            regex=re.compile(rf"(?:emergency\s*(?:contact\s*)?(?:phone|number|tel))\s*[:\-]?\s*{_PHONE}", re.I),
            confidence=0.85,
            normalizer=normalize_phone,
            group=0,
            value_regex=PHONE_NUMBER,
        ),
    )


def _referral_fields() -> Tuple[FieldPattern, ...]:
    return (
        FieldPattern(
            field_name="referring_physician",
            regex=re.compile(
                r"(?:referring\s*(?:physician|doctor|provider)|referred\s*by|from\s*dr\.?)\s*[:\-]?\s*"
                r"(?:dr\.?\s*)?([A-Z][a-zA-Z\-']+(?:\s+[A-Z][a-zA-Z\-']+)+)",
                re.I,
            ),
            confidence=0.85,
        ),
        FieldPattern(
            field_name="referring_facility",
            regex=re.compile(
                r"(?:referring\s*(?:facility|hospital|clinic|practice)|from)\s*[:\-]?\s*"
                r"([A-Z][a-zA-Z\s&\-]+?)(?:\n|address|phone|fax)",
                re.I,
            ),
            confidence=0.8,
        ),
        FieldPattern(
            field_name="reason_for_referral",
            regex=re.compile(
                r"(?:reason\s*for\s*referral|referral\s*reason|chief\s*complaint|reason\s*for\s*visit)\s*[:\-]?\s*"
                r"([^\n]+(?:\n(?![A-Z][a-z]+:)[^\n]+)*)",
                re.I,
            ),
            confidence=0.75,
            normalizer=collapse_whitespace,
        ),
        FieldPattern(
            field_name="referral_date",
            regex=re.compile(rf"(?:referral\s*date|date\s*of\s*referral)\s*[:\-]?\s*{_DATE}", re.I),
            confidence=0.9,
            normalizer=normalize_date,
        ),
    )


def _lab_fields() -> Tuple[FieldPattern, ...]:
    return (
        FieldPattern(
            field_name="lab_name",
            regex=re.compile(
                r"(?:laboratory|lab\s*name|performed\s*(?:at|by))\s*[:\-]?\s*"
                r"([A-Za-z\s&\-]+?)(?:\n|address|phone|result)",
                re.I,
            ),
            confidence=0.85,
        ),
        FieldPattern(
            field_name="test_date",
            regex=re.compile(
                r"(?:collection\s*date|date\s*collected|test\s*date|specimen\s*date)\s*[:\-]?\s*"
                r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})",
                re.I,
            ),
            confidence=0.9,
            normalizer=normalize_date,
        ),
    )


def default_pattern_library() -> PatternLibrary:
    """Build the standard rule set."""
    return PatternLibrary(
        name_cascade=_name_cascade(),
        name_overrides=_name_overrides(),
        patient_fields=_patient_fields(),
        referral_fields=_referral_fields(),
        lab_fields=_lab_fields(),
    )
