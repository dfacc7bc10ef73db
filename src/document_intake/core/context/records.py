# ============================================================================
# src/document_intake/core/context/records.py
# ============================================================================
"""
Persisted Record Classes

Row-level views of what the stores hold:
- Patients and the allow-listed patient update
- Documents and referral scans
- OCR results (plain and referral flavours)
- Field mappings awaiting review
- The matcher's read-only MatchedPatient projection
"""

from dataclasses import dataclass, fields, asdict
from typing import Optional, Dict, Any

from .enums import ProcessingStatus, FieldStatus, ResolutionStatus, SourceKind
from .extracted_data import ExtractionBundle


@dataclass
class PatientRecord:
    id: str
    mrn: str
    first_name: str
    last_name: str
    date_of_birth: str  # YYYY-MM-DD
    gender: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_id: Optional[str] = None
    notes: Optional[str] = None
    active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def value_of(self, field_name: str) -> Optional[str]:
        """Current value for a patient field, None for unknown names."""
        if field_name not in PatientUpdate.allowed_fields():
            return None
        value = getattr(self, field_name, None)
        return str(value) if value is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PatientUpdate:
    """
    The only patient columns the review workflow may write.

    Built from arbitrary field_name -> value pairs; names outside this
    class are dropped rather than rejected.
    """
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_id: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def allowed_fields(cls) -> frozenset:
        return frozenset(f.name for f in fields(cls))

    @classmethod
    def from_values(cls, values: Dict[str, str]) -> "PatientUpdate":
        allowed = cls.allowed_fields()
        return cls(**{name: value for name, value in values.items() if name in allowed})

    def columns(self) -> Dict[str, str]:
        """Only the fields that were set."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def is_empty(self) -> bool:
        return not self.columns()


@dataclass(frozen=True)
class MatchedPatient:
    id: str
    mrn: str
    first_name: str
    last_name: str
    date_of_birth: str
    match_score: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DocumentRecord:
    id: str
    patient_id: str
    filename: str  # stored name, relative to the uploads directory
    original_name: str
    mime_type: str
    created_at: Optional[str] = None


@dataclass
class ReferralScan:
    id: str
    uploaded_by: str
    filename: str
    original_name: str
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class OcrResult:
    id: str
    source_kind: SourceKind
    source_id: str
    raw_text: Optional[str] = None
    confidence_score: Optional[float] = None
    document_type: Optional[str] = None
    extracted_data: Optional[Dict[str, Any]] = None
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    error_message: Optional[str] = None
    processed_at: Optional[str] = None
    claim_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def document_id(self) -> Optional[str]:
        return self.source_id if self.source_kind == SourceKind.DOCUMENT else None

    @property
    def referral_scan_id(self) -> Optional[str]:
        return self.source_id if self.source_kind == SourceKind.REFERRAL_SCAN else None

    def extraction(self) -> ExtractionBundle:
        """The stored extraction output (empty before completion)."""
        return ExtractionBundle.from_dict(self.extracted_data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source_kind"] = self.source_kind.value
        data["processing_status"] = self.processing_status.value
        return data


@dataclass
class ReferralOcrResult(OcrResult):
    # Resolved identity (AI or regex)
    patient_first_name: Optional[str] = None
    patient_last_name: Optional[str] = None
    patient_dob: Optional[str] = None
    patient_phone: Optional[str] = None

    # Referral metadata
    referring_physician: Optional[str] = None
    referring_facility: Optional[str] = None
    reason_for_referral: Optional[str] = None

    # Registry match
    matched_patient_id: Optional[str] = None
    match_confidence: Optional[float] = None

    # Human resolution
    resolution_status: ResolutionStatus = ResolutionStatus.PENDING
    resolved_patient_id: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["resolution_status"] = self.resolution_status.value
        return data


@dataclass
class FieldMapping:
    id: str
    ocr_result_id: str
    field_name: str
    extracted_value: str
    patient_id: Optional[str] = None
    original_value: Optional[str] = None
    confidence_score: Optional[float] = None
    status: FieldStatus = FieldStatus.PENDING
    applied_at: Optional[str] = None
    applied_by: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class PendingReferral:
    """A completed, unresolved referral joined with its scan and matched patient."""
    result: ReferralOcrResult
    filename: str
    original_name: str
    scan_status: ProcessingStatus
    matched_patient: Optional[MatchedPatient] = None
