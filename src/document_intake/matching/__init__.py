# ============================================================================
# src/document_intake/matching/__init__.py
# ============================================================================
"""
Patient registry matching.
"""

from .patient_matcher import PatientMatchingEngine

__all__ = ['PatientMatchingEngine']
