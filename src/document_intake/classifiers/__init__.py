# ============================================================================
# src/document_intake/classifiers/__init__.py
# ============================================================================
"""
Document classification.
"""

from .document_classifier import DocumentClassifier

__all__ = ['DocumentClassifier']
