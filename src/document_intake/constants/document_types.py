# ============================================================================
# src/document_intake/constants/document_types.py
# ============================================================================
"""
Document Types
- The OCR engine's document-type guess
- Decides which sub-extractors run beyond patient identity
"""

from enum import Enum

class DocumentType(str, Enum):
    """
    Document types the classifier can assign.
    """
    REFERRAL = "referral"
    LAB_RESULT = "lab_result"
    INTAKE_FORM = "intake_form"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value) -> "DocumentType":
        """Map arbitrary engine output onto a known type, UNKNOWN otherwise."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN
