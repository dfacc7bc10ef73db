# ============================================================================
# src/document_intake/__init__.py
# ============================================================================
"""
Document Intake Engine

OCR field extraction and patient matching for scanned clinical documents
(referral letters, lab results, intake forms).
"""

__version__ = "0.1.0"

from .core import Database, FieldReviewWorkflow, ReferralReviewWorkflow
from .core.orchestrator import DocumentProcessingOrchestrator
from .extractors import FieldExtractionEngine, OcrEngine, create_ai_extractor
from .matching import PatientMatchingEngine

__all__ = [
    'Database',
    'DocumentProcessingOrchestrator',
    'FieldReviewWorkflow',
    'ReferralReviewWorkflow',
    'FieldExtractionEngine',
    'OcrEngine',
    'create_ai_extractor',
    'PatientMatchingEngine',
]
