# ============================================================================
# src/document_intake/extractors/__init__.py
# ============================================================================
"""
Text and field extraction: normalizers, pattern library, rule-based
field extraction, OCR and the optional AI extractor.
"""

from .normalizers import (
    normalize_date,
    normalize_phone,
    normalize_gender,
    capitalize_name,
)
from .patterns import FieldPattern, NameStrategy, PatternLibrary, default_pattern_library
from .field_extractor import FieldExtractionEngine, match_context
from .ocr_engine import OcrEngine, OcrOutput
from .ai_extractor import AIExtractor, AIExtraction, create_ai_extractor

__all__ = [
    'normalize_date',
    'normalize_phone',
    'normalize_gender',
    'capitalize_name',
    'FieldPattern',
    'NameStrategy',
    'PatternLibrary',
    'default_pattern_library',
    'FieldExtractionEngine',
    'match_context',
    'OcrEngine',
    'OcrOutput',
    'AIExtractor',
    'AIExtraction',
    'create_ai_extractor',
]
