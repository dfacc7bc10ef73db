# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import threading
import uuid
from pathlib import Path
from typing import Optional

import pytest

from document_intake.config import ProcessingSettings
from document_intake.constants import DocumentType
from document_intake.core import Database, PatientStore, ResultStore
from document_intake.core.context import (
    FieldMapping,
    PatientUpdate,
    ProcessingStatus,
    SourceKind,
)
from document_intake.core.orchestrator import DocumentProcessingOrchestrator
from document_intake.extractors.ocr_engine import OcrOutput


# ============================================================================
# SAMPLE OCR TEXT
# ============================================================================

@pytest.fixture
def sample_referral_text():
    """Referral letter with a Re: header, labeled DOB and referral metadata"""
    return (
        "Referral Date: 03/01/2024\n"
        "\n"
        "Re: Jane Doe\n"
        "DOB: 05/15/1980\n"
        "Phone: 555-123-4567\n"
        "\n"
        "Dear Dr. Adams,\n"
        "\n"
        "I am referring Jane Doe for evaluation of persistent headaches.\n"
        "\n"
        "Reason for Referral: Persistent headaches\n"
        "with visual disturbance\n"
        "\n"
        "Referring Facility: Riverside Medical Clinic\n"
        "Referring Physician: Dr. Robert Chen"
    )


@pytest.fixture
def sample_intake_text():
    """Intake form with every patient field labeled"""
    return (
        "PATIENT INFORMATION\n"
        "First Name: Janet\n"
        "Last Name: Doe\n"
        "Date of Birth: 05/15/1980\n"
        "Gender: F\n"
        "Phone: (555) 987-6543\n"
        "Email: Janet.Doe@Example.com\n"
        "Address: 42 Oak Street, Springfield, IL 62704\n"
        "Insurance Provider: Blue Cross\n"
        "Member ID: BC-998877\n"
        "Emergency Phone: 555-222-3333\n"
        "Emergency Contact: John Doe"
    )


@pytest.fixture
def sample_lab_text():
    """Lab report with a header block and two result rows"""
    return (
        "Laboratory: Quest Diagnostics\n"
        "Patient: Jane Doe\n"
        "DOB: 05/15/1980\n"
        "Collection Date: 03/10/2024\n"
        "\n"
        "Glucose 105 mg/dL (70-100) H\n"
        "Sodium 140 mEq (135-145)\n"
    )


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
def database(tmp_path):
    """Fresh SQLite database per test"""
    return Database(tmp_path / "intake.db")


@pytest.fixture
def patient_store(database):
    return PatientStore(database)


@pytest.fixture
def result_store(database):
    return ResultStore(database)


@pytest.fixture
def jane_doe(patient_store):
    """Registered patient matching the sample referral"""
    return patient_store.create(PatientUpdate(
        first_name="Jane",
        last_name="Doe",
        date_of_birth="1980-05-15",
        phone="(555) 000-1111",
    ))


@pytest.fixture
def completed_document_result(database, result_store, jane_doe):
    """
    A completed document OCR result with three pending mappings:
    first_name, phone and a lab-only field name.
    """
    document = result_store.create_document(jane_doe.id, "intake.pdf", "intake.pdf", "application/pdf")
    result = result_store.begin_processing(SourceKind.DOCUMENT, document.id)
    result_store.mark_completed(
        result.id,
        result.claim_id,
        raw_text="First Name: Janet",
        confidence_score=0.9,
        document_type=DocumentType.INTAKE_FORM.value,
        extracted_data={},
    )
    mappings = [
        make_mapping(result.id, jane_doe.id, "first_name", "Janet", jane_doe.first_name),
        make_mapping(result.id, jane_doe.id, "phone", "(555) 987-6543", jane_doe.phone),
        make_mapping(result.id, jane_doe.id, "lab_name", "Quest Diagnostics"),
    ]
    result_store.replace_pending_mappings(result.id, result.claim_id, mappings)
    return result_store.get_result(result.id), {m.field_name: m for m in mappings}


@pytest.fixture
def completed_referral_result(result_store):
    """A completed, unresolved referral result for an unregistered patient"""
    scan = result_store.create_referral_scan("reviewer", "letter.pdf", "letter.pdf", "application/pdf", 2048)
    result = result_store.begin_processing(SourceKind.REFERRAL_SCAN, scan.id)
    result_store.mark_completed(
        result.id,
        result.claim_id,
        raw_text="Re: Maria Lopez",
        confidence_score=0.8,
        document_type=DocumentType.REFERRAL.value,
        extracted_data={},
        referral_fields={
            "patient_first_name": "Maria",
            "patient_last_name": "Lopez",
            "patient_dob": "1975-02-03",
            "patient_phone": "(555) 444-3333",
            "referring_physician": "Robert Chen",
            "reason_for_referral": "Knee pain",
        },
    )
    result_store.set_referral_scan_status(scan.id, ProcessingStatus.COMPLETED)
    return result_store.get_result(result.id)


def make_mapping(
    result_id: str,
    patient_id: Optional[str],
    field_name: str,
    value: str,
    original: Optional[str] = None,
) -> FieldMapping:
    return FieldMapping(
        id=str(uuid.uuid4()),
        ocr_result_id=result_id,
        patient_id=patient_id,
        field_name=field_name,
        extracted_value=value,
        original_value=original,
        confidence_score=0.9,
    )


# ============================================================================
# OCR / ORCHESTRATOR
# ============================================================================

class FakeOcrEngine:
    """
    Stands in for Tesseract.

    Returns fixed text for any existing file. With a gate, process()
    blocks until the gate is set so a run can be held in `processing`.
    """

    def __init__(
        self,
        text: str,
        document_type: DocumentType = DocumentType.UNKNOWN,
        confidence: float = 0.87,
        gate: Optional[threading.Event] = None,
    ):
        self.text = text
        self.document_type = document_type
        self.confidence = confidence
        self.gate = gate
        self.calls = []

    def process(self, file_path: Path, mime_type: Optional[str]) -> OcrOutput:
        self.calls.append(Path(file_path))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return OcrOutput(text=self.text, confidence=self.confidence, document_type=self.document_type)


@pytest.fixture
def uploads_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir(exist_ok=True)
    return path


@pytest.fixture
def referral_uploads_dir(tmp_path):
    path = tmp_path / "uploads" / "referrals"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def make_orchestrator(database, uploads_dir, referral_uploads_dir):
    """Factory: orchestrator over the test database with a fake OCR engine"""
    def _make(ocr_engine, ai_extractor=None, stale_after_seconds=3600):
        return DocumentProcessingOrchestrator(
            database,
            ocr_engine=ocr_engine,
            ai_extractor=ai_extractor,
            uploads_dir=uploads_dir,
            referral_uploads_dir=referral_uploads_dir,
            settings=ProcessingSettings(
                PROCESSING_STALE_AFTER_SECONDS=stale_after_seconds,
                MAX_CONCURRENT_JOBS=2,
            ),
        )
    return _make


@pytest.fixture
def mapping_factory():
    return make_mapping


@pytest.fixture
def fake_ocr_engine():
    """The FakeOcrEngine class, for tests that build their own"""
    return FakeOcrEngine
