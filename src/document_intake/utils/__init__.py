# ============================================================================
# src/document_intake/utils/__init__.py
# ============================================================================
"""
Utility modules for the document intake engine.
"""

from .exceptions import (
    DocumentIntakeError,
    NotFoundError,
    DocumentNotFoundError,
    ReferralScanNotFoundError,
    OcrResultNotFoundError,
    PatientNotFoundError,
    ConflictError,
    ProcessingInProgressError,
    ProcessingSupersededError,
    ValidationError,
    ExtractionError,
    SourceFileMissingError,
    OcrEngineError,
    AIExtractionError,
    ConfigurationError,
)

from .logging import (
    setup_logging,
    log_performance,
    LogAdapter,
    JsonFormatter,
)

__all__ = [
    # Exceptions
    'DocumentIntakeError',
    'NotFoundError',
    'DocumentNotFoundError',
    'ReferralScanNotFoundError',
    'OcrResultNotFoundError',
    'PatientNotFoundError',
    'ConflictError',
    'ProcessingInProgressError',
    'ProcessingSupersededError',
    'ValidationError',
    'ExtractionError',
    'SourceFileMissingError',
    'OcrEngineError',
    'AIExtractionError',
    'ConfigurationError',
    # Logging
    'setup_logging',
    'log_performance',
    'LogAdapter',
    'JsonFormatter',
]
