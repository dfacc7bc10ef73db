# ============================================================================
# src/document_intake/constants/__init__.py
# ============================================================================
"""
Convenient imports for all constants
"""

from .document_types import DocumentType
from .lab_tests import COMMON_LAB_TESTS
