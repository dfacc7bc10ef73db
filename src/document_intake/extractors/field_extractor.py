# ============================================================================
# src/document_intake/extractors/field_extractor.py
# ============================================================================
"""
Field Extraction Engine

Turns raw OCR text into confidence-scored candidate fields:

1. NAME CASCADE
   - Strategies tried in fixed order (Re: header, Patient:, Dear Dr...,
     referring, seeing, labeled full name, ALL-CAPS line)
   - The first strategy that produces a first+last pair wins

2. LABEL OVERRIDES
   - "First Name:" / "Last Name:" always replace the cascade result

3. INDEPENDENT FIELDS
   - One rule list per field, first hit wins, value normalized

4. LAB LINE SCAN
   - Lines mentioning a known test become result rows

Referral and lab extraction only run for matching document types.
"""

import logging
from typing import Dict, Iterable, Optional

from ..constants import DocumentType
from ..core.context import (
    CandidateField,
    LabResultRow,
    ExtractedPatientData,
    ExtractedReferralData,
    ExtractedLabData,
    ExtractionBundle,
    ExtractionMethod,
)
from .normalizers import capitalize_name
from .patterns import FieldPattern, NameStrategy, PatternLibrary, default_pattern_library


def match_context(text: str, index: int, length: int = 50) -> str:
    """Source text around a match, single-line, with ... where truncated."""
    start = max(0, index - length)
    end = min(len(text), index + length)
    context = text[start:end]
    if start > 0:
        context = '...' + context
    if end < len(text):
        context = context + '...'
    return context.replace('\n', ' ').strip()


class FieldExtractionEngine:
    """
    Rule-based extractor driven by an injected PatternLibrary.

    Stateless apart from the library, so one instance can serve
    concurrent runs.
    """

    def __init__(self, patterns: Optional[PatternLibrary] = None):
        self.patterns = patterns or default_pattern_library()
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract_patient_data(self, text: str) -> ExtractedPatientData:
        values: Dict[str, CandidateField] = {}

        name = self._extract_name(text)
        if name:
            values.update(name)

        # Explicit per-field labels outrank any inferred name
        for pattern in self.patterns.name_overrides:
            candidate = self._apply(pattern, text)
            if candidate:
                values[pattern.field_name] = candidate

        values.update(self._first_hits(self.patterns.patient_fields, text))

        data = ExtractedPatientData(**values)
        self.logger.debug(f"Extracted {data.count()} patient fields")
        return data

    def extract_referral_data(self, text: str) -> ExtractedReferralData:
        return ExtractedReferralData(**self._first_hits(self.patterns.referral_fields, text))

    def extract_lab_data(self, text: str) -> ExtractedLabData:
        header = self._first_hits(self.patterns.lab_fields, text)
        return ExtractedLabData(
            lab_name=header.get("lab_name"),
            test_date=header.get("test_date"),
            test_results=self._scan_lab_lines(text),
        )

    def extract_all(self, text: str, document_type) -> ExtractionBundle:
        """
        Patient data always; referral data for referrals, lab data for lab
        results. Unknown type strings are treated as UNKNOWN.
        """
        doc_type = DocumentType.parse(document_type)
        text = text or ""

        bundle = ExtractionBundle(
            patient_data=self.extract_patient_data(text),
            method=ExtractionMethod.REGEX,
        )
        if doc_type == DocumentType.REFERRAL:
            bundle.referral_data = self.extract_referral_data(text)
        elif doc_type == DocumentType.LAB_RESULT:
            bundle.lab_data = self.extract_lab_data(text)

        return bundle

    # ------------------------------------------------------------------
    # Name cascade
    # ------------------------------------------------------------------

    def _extract_name(self, text: str) -> Optional[Dict[str, CandidateField]]:
        results = (self._try_strategy(strategy, text) for strategy in self.patterns.name_cascade)
        return next((result for result in results if result), None)

    def _try_strategy(self, strategy: NameStrategy, text: str) -> Optional[Dict[str, CandidateField]]:
        match = strategy.regex.search(text)
        if not match:
            return None

        if strategy.split_full_name:
            parts = match.group(1).strip().split()
            if len(parts) < 2:
                return None
            first, last = parts[0], parts[-1]
        else:
            first, last = match.group(1), match.group(2)

        if first in strategy.exclude_words or last in strategy.exclude_words:
            return None

        context = match_context(text, match.start(), self.patterns.context_length)
        self.logger.debug(f"Name found by '{strategy.name}' strategy")
        return {
            "first_name": CandidateField("first_name", capitalize_name(first), strategy.confidence, context),
            "last_name": CandidateField("last_name", capitalize_name(last), strategy.confidence, context),
        }

    # ------------------------------------------------------------------
    # Single-field rules
    # ------------------------------------------------------------------

    def _first_hits(self, patterns: Iterable[FieldPattern], text: str) -> Dict[str, CandidateField]:
        """First matching rule per field name, in rule order."""
        found: Dict[str, CandidateField] = {}
        for pattern in patterns:
            if pattern.field_name in found:
                continue
            candidate = self._apply(pattern, text)
            if candidate:
                found[pattern.field_name] = candidate
        return found

    def _apply(self, pattern: FieldPattern, text: str) -> Optional[CandidateField]:
        match = pattern.regex.search(text)
        if not match:
            return None

        raw = match.group(pattern.group)
        if raw is None:
            return None

        if pattern.value_regex is not None:
            inner = pattern.value_regex.search(raw)
            if not inner:
                return None
            raw = inner.group(0)

        value = pattern.normalizer(raw)
        if not value:
            return None

        return CandidateField(
            field_name=pattern.field_name,
            value=value,
            confidence=pattern.confidence,
            match_context=match_context(text, match.start(), self.patterns.context_length),
        )

    # ------------------------------------------------------------------
    # Lab results
    # ------------------------------------------------------------------

    def _scan_lab_lines(self, text: str):
        rows = []
        for line in text.split('\n'):
            lower = line.lower()
            for test in self.patterns.lab_tests:
                if test not in lower:
                    continue

                value = self.patterns.lab_value.search(line)
                if not value:
                    continue

                reference = self.patterns.lab_reference.search(line)
                rows.append(LabResultRow(
                    test_name=test.upper(),
                    value=value.group(1),
                    unit=value.group(2) or "",
                    reference_range=f"{reference.group(1)}-{reference.group(2)}" if reference else "",
                    abnormal=bool(self.patterns.lab_abnormal.search(line)),
                ))
                break  # one row per line
        return rows
