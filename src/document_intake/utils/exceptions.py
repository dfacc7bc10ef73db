# ============================================================================
# src/document_intake/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the document intake engine.

Four kinds reach callers:
- NotFound: document, scan, OCR result or patient missing
- Conflict: processing already in progress for the document, or a
  run whose claim was taken over by a newer one
- Validation: bad field selections, unfinished results, resolved referrals
- Extraction: recorded on the OCR result as `failed`, never raised out of a run
"""


class DocumentIntakeError(Exception):
    """Base exception for all document intake errors."""
    pass


class NotFoundError(DocumentIntakeError):
    """Requested record does not exist."""
    pass


class DocumentNotFoundError(NotFoundError):
    """Document not found."""
    pass


class ReferralScanNotFoundError(NotFoundError):
    """Referral scan not found."""
    pass


class OcrResultNotFoundError(NotFoundError):
    """No OCR result for the document or id."""
    pass


class PatientNotFoundError(NotFoundError):
    """Patient record not found."""
    pass


class ConflictError(DocumentIntakeError):
    """Request conflicts with the current state of a record."""
    pass


class ProcessingInProgressError(ConflictError):
    """OCR processing is already running for this source."""
    def __init__(self, source_kind: str, source_id: str):
        super().__init__(f"OCR processing already in progress for {source_kind} {source_id}")
        self.source_kind = source_kind
        self.source_id = source_id


class ValidationError(DocumentIntakeError):
    """Request is well-formed but not acceptable in the current state."""
    pass


class ExtractionError(DocumentIntakeError):
    """Error while turning a document into extracted fields."""
    pass


class SourceFileMissingError(ExtractionError):
    """Backing file for a document is not on disk."""
    pass


class OcrEngineError(ExtractionError):
    """OCR engine failed to read the document."""
    pass


class AIExtractionError(ExtractionError):
    """AI extractor call failed or returned unusable output."""
    pass


class ConfigurationError(DocumentIntakeError):
    """Invalid configuration."""
    pass


class ProcessingSupersededError(ConflictError):
    """A newer run re-claimed the result this run was working on."""
    pass
