# ============================================================================
# src/document_intake/config/thresholds_config.py
# ============================================================================
"""
Patient Matching Weights and Threshold
- Each supplied identity fragment contributes its weight on an exact match
- A patient qualifies when the summed score reaches MATCH_THRESHOLD
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class ThresholdSettings(BaseSettings):
    MATCH_THRESHOLD: float = Field(
        default=0.5,
        ge=0.0, le=1.0,
        description="Minimum summed score for a registry patient to count as a match"
    )
    LAST_NAME_WEIGHT: float = Field(
        default=0.4,
        ge=0.0, le=1.0,
        description="Score for a case-insensitive exact last name match"
    )
    FIRST_NAME_WEIGHT: float = Field(
        default=0.3,
        ge=0.0, le=1.0,
        description="Score for a case-insensitive exact first name match. Never enough on its own."
    )
    DOB_WEIGHT: float = Field(
        default=0.5,
        ge=0.0, le=1.0,
        description="Score for an exact YYYY-MM-DD date of birth match"
    )

threshold_settings = ThresholdSettings()
