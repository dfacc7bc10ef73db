# ============================================================================
# src/document_intake/classifiers/document_classifier.py
# ============================================================================
"""
Document Classifier

Keyword classification of OCR text. Lists are checked in order:
1. Referral letter
2. Lab result
3. Intake form
Anything else is UNKNOWN.

The first list with any keyword present wins, so a referral letter that
mentions "glucose" is still a referral.
"""

import logging
from typing import Sequence, Tuple

from ..constants import DocumentType


REFERRAL_KEYWORDS = (
    'referral', 'referring physician', 'referred by', 'consultation request',
    'dear doctor', 'to whom it may concern', 'please see', 'evaluation requested',
)

LAB_RESULT_KEYWORDS = (
    'laboratory', 'lab result', 'test result', 'specimen', 'reference range',
    'normal range', 'abnormal', 'blood test', 'urinalysis', 'cbc', 'cmp',
    'lipid panel', 'hemoglobin', 'glucose', 'cholesterol',
)

INTAKE_FORM_KEYWORDS = (
    'patient information', 'intake form', 'registration form', 'medical history',
    'emergency contact', 'insurance information', 'primary care physician',
    'allergies', 'current medications', 'past medical history',
)


class DocumentClassifier:
    """Maps OCR text to a DocumentType by keyword presence."""

    def __init__(
        self,
        rules: Sequence[Tuple[DocumentType, Sequence[str]]] = (
            (DocumentType.REFERRAL, REFERRAL_KEYWORDS),
            (DocumentType.LAB_RESULT, LAB_RESULT_KEYWORDS),
            (DocumentType.INTAKE_FORM, INTAKE_FORM_KEYWORDS),
        ),
    ):
        self.rules = tuple(rules)
        self.logger = logging.getLogger(__name__)

    def classify(self, text: str) -> DocumentType:
        lower = (text or "").lower()
        for doc_type, keywords in self.rules:
            hit = next((kw for kw in keywords if kw in lower), None)
            if hit:
                self.logger.debug(f"Classified as {doc_type.value} (keyword '{hit}')")
                return doc_type
        return DocumentType.UNKNOWN
