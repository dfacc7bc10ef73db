# ============================================================================
# src/document_intake/core/context/__init__.py
# ============================================================================
"""
Data model shared by extractors, stores and workflows.
"""

from .enums import (
    ProcessingStatus,
    FieldStatus,
    ResolutionStatus,
    SourceKind,
    ExtractionMethod,
)
from .extracted_value import CandidateField, LabResultRow
from .extracted_data import (
    ExtractedPatientData,
    ExtractedReferralData,
    ExtractedLabData,
    ExtractionBundle,
)
from .records import (
    PatientRecord,
    PatientUpdate,
    MatchedPatient,
    DocumentRecord,
    ReferralScan,
    OcrResult,
    ReferralOcrResult,
    FieldMapping,
    PendingReferral,
)

__all__ = [
    # Enums
    'ProcessingStatus',
    'FieldStatus',
    'ResolutionStatus',
    'SourceKind',
    'ExtractionMethod',
    # Values
    'CandidateField',
    'LabResultRow',
    # Extraction groups
    'ExtractedPatientData',
    'ExtractedReferralData',
    'ExtractedLabData',
    'ExtractionBundle',
    # Records
    'PatientRecord',
    'PatientUpdate',
    'MatchedPatient',
    'DocumentRecord',
    'ReferralScan',
    'OcrResult',
    'ReferralOcrResult',
    'FieldMapping',
    'PendingReferral',
]
