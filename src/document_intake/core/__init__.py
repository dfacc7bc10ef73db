# ============================================================================
# src/document_intake/core/__init__.py
# ============================================================================
"""
Core components for the document intake engine.

The orchestrator lives in core.orchestrator and is re-exported from the
package root; it depends on the extractors, which depend on core.context.
"""

from .context import (
    ProcessingStatus,
    FieldStatus,
    ResolutionStatus,
    SourceKind,
    ExtractionMethod,
    CandidateField,
    ExtractedPatientData,
    ExtractedReferralData,
    ExtractedLabData,
    ExtractionBundle,
    PatientRecord,
    PatientUpdate,
    MatchedPatient,
    OcrResult,
    ReferralOcrResult,
    FieldMapping,
    PendingReferral,
)
from .database import Database
from .patient_store import PatientStore
from .result_store import ResultStore
from .field_review import FieldReviewWorkflow
from .referral_review import ReferralReviewWorkflow
