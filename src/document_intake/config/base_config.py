# ============================================================================
# src/document_intake/config/base_config.py
# ============================================================================
"""
Base Configuration
- Data directory
- SQLite database holding patients, documents, scans and OCR results
- Upload directories for documents and referral scans
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

class BaseSettingsConfig(BaseSettings):
    DATA_DIR: Path = Field(
        default=Path("data"),
        description="Root directory for local data"
    )

    DATABASE_PATH: Path = Field(
        default=Path("data/intake.db"),
        description="SQLite database for patients, documents and OCR results"
    )

    # Uploaded patient documents (documents.filename is relative to this)
    UPLOADS_DIR: Path = Field(
        default=Path("uploads"),
        description="Directory holding uploaded patient documents"
    )

    REFERRAL_UPLOADS_DIR: Path = Field(
        default=Path("uploads/referrals"),
        description="Directory holding scanned referral letters"
    )

    def create_directories(self):
        """Create all necessary directories if they don't exist"""
        dirs = [
            self.DATA_DIR,
            self.UPLOADS_DIR,
            self.REFERRAL_UPLOADS_DIR,
            self.DATABASE_PATH.parent
        ]
        for directory in dirs:
            directory.mkdir(parents=True, exist_ok=True)

# Global instance
base_settings = BaseSettingsConfig()
