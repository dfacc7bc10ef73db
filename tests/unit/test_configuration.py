# ============================================================================
# TEST: Configuration and Setup
# ============================================================================

import pytest
from pydantic import ValidationError as SettingsValidationError


def test_configuration():
    """Test that configuration loads correctly"""
    print("=" * 70)
    print("TEST: Configuration Loading")
    print("=" * 70)

    from document_intake.config import (
        base_settings,
        threshold_settings,
        ai_settings,
        processing_settings,
        logging_settings,
    )

    print(f"✓ Configuration loaded successfully")
    print(f"  - Database: {base_settings.DATABASE_PATH}")
    print(f"  - Match threshold: {threshold_settings.MATCH_THRESHOLD}")
    print(f"  - AI extraction enabled: {ai_settings.AI_EXTRACTION_ENABLED}")
    print(f"  - Stale after: {processing_settings.PROCESSING_STALE_AFTER_SECONDS}s")
    print(f"  - Log level: {logging_settings.LOG_LEVEL}")

    # A first name alone must never reach the threshold
    assert threshold_settings.FIRST_NAME_WEIGHT < threshold_settings.MATCH_THRESHOLD
    assert threshold_settings.LAST_NAME_WEIGHT + threshold_settings.FIRST_NAME_WEIGHT >= threshold_settings.MATCH_THRESHOLD
    assert ai_settings.AI_EXTRACTION_ENABLED is False
    print(f"✓ Matching weights consistent")

    print("\n✅ Configuration test PASSED\n")


def test_environment_overrides(monkeypatch):
    """Settings read from environment variables"""
    from document_intake.config import AISettings, ProcessingSettings

    monkeypatch.setenv("AI_EXTRACTION_ENABLED", "true")
    monkeypatch.setenv("AI_MODEL", "llama3")
    monkeypatch.setenv("MAX_CONCURRENT_JOBS", "4")

    assert AISettings().AI_EXTRACTION_ENABLED is True
    assert AISettings().AI_MODEL == "llama3"
    assert ProcessingSettings().MAX_CONCURRENT_JOBS == 4


def test_invalid_values_rejected():
    from document_intake.config import ThresholdSettings, ProcessingSettings

    with pytest.raises(SettingsValidationError):
        ThresholdSettings(MATCH_THRESHOLD=1.5)
    with pytest.raises(SettingsValidationError):
        ProcessingSettings(MAX_CONCURRENT_JOBS=0)


def test_create_directories(tmp_path):
    from document_intake.config import BaseSettingsConfig

    settings = BaseSettingsConfig(
        DATA_DIR=tmp_path / "data",
        DATABASE_PATH=tmp_path / "db" / "intake.db",
        UPLOADS_DIR=tmp_path / "uploads",
        REFERRAL_UPLOADS_DIR=tmp_path / "uploads" / "referrals",
    )
    settings.create_directories()

    assert (tmp_path / "data").is_dir()
    assert (tmp_path / "db").is_dir()
    assert (tmp_path / "uploads" / "referrals").is_dir()
