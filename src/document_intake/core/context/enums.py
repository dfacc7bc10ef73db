# ============================================================================
# src/document_intake/core/context/enums.py
# ============================================================================
"""
Lifecycle Enums
- OCR result processing status
- Field mapping review status
- Referral resolution status
- Result source kind and extraction method
"""

from enum import Enum

class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)

class FieldStatus(str, Enum):
    PENDING = "pending"    # awaiting review
    APPLIED = "applied"    # terminal
    REJECTED = "rejected"  # terminal

class ResolutionStatus(str, Enum):
    PENDING = "pending"
    CREATED = "created"    # new patient created from the referral
    ADDED = "added"        # attached to an existing patient
    SKIPPED = "skipped"

class SourceKind(str, Enum):
    DOCUMENT = "document"
    REFERRAL_SCAN = "referral_scan"

class ExtractionMethod(str, Enum):
    AI = "ai"
    REGEX = "regex"
