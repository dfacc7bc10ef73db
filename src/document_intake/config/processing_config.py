# ============================================================================
# src/document_intake/config/processing_config.py
# ============================================================================
"""
Processing Settings
- Stale `processing` recovery window
- OCR rendering options
- Background job concurrency
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class ProcessingSettings(BaseSettings):
    PROCESSING_STALE_AFTER_SECONDS: int = Field(
        default=3600,
        ge=0,
        description="A result stuck in 'processing' longer than this may be re-triggered. 0 disables recovery."
    )
    OCR_DPI: int = Field(
        default=200,
        ge=72, le=600,
        description="Rendering resolution for PDF pages"
    )
    OCR_LANGUAGE: str = Field(
        default="eng",
        description="Tesseract language code"
    )
    MAX_CONCURRENT_JOBS: int = Field(
        default=2,
        ge=1,
        description="Max OCR runs executing at once in one orchestrator"
    )

processing_settings = ProcessingSettings()
