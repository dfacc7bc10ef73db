# ============================================================================
# src/document_intake/core/context/extracted_data.py
# ============================================================================
"""
Extracted Data Classes

Structured representations for:
- Patient identity, contact, address, insurance, emergency contact
- Referral metadata
- Lab panel rows
- The combined extraction written to an OCR result

Every field is an optional CandidateField; only fields declared here can
ever be produced, so downstream code never handles free-form keys.
"""

from dataclasses import dataclass, field, fields
from typing import Optional, List, Dict, Any, Iterator, Tuple

from .extracted_value import CandidateField, LabResultRow
from .enums import ExtractionMethod


class _CandidateGroup:
    """Shared iteration and (de)serialization for groups of candidate fields."""

    def items(self) -> Iterator[Tuple[str, CandidateField]]:
        """Yield (field_name, candidate) for every populated field, in declaration order."""
        for f in fields(self):
            candidate = getattr(self, f.name)
            if isinstance(candidate, CandidateField):
                yield f.name, candidate

    def value_of(self, field_name: str) -> Optional[str]:
        candidate = getattr(self, field_name, None)
        return candidate.value if isinstance(candidate, CandidateField) else None

    def to_dict(self) -> Dict[str, Any]:
        return {name: candidate.to_dict() for name, candidate in self.items()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{
            name: CandidateField.from_dict(value)
            for name, value in data.items()
            if name in known and value
        })

    def count(self) -> int:
        return sum(1 for _ in self.items())


@dataclass
class ExtractedPatientData(_CandidateGroup):
    # Identity
    first_name: Optional[CandidateField] = None
    last_name: Optional[CandidateField] = None
    date_of_birth: Optional[CandidateField] = None
    gender: Optional[CandidateField] = None

    # Contact
    phone: Optional[CandidateField] = None
    email: Optional[CandidateField] = None

    # Address
    address_line1: Optional[CandidateField] = None
    address_line2: Optional[CandidateField] = None
    city: Optional[CandidateField] = None
    state: Optional[CandidateField] = None
    zip: Optional[CandidateField] = None

    # Insurance
    insurance_provider: Optional[CandidateField] = None
    insurance_id: Optional[CandidateField] = None

    # Emergency contact
    emergency_contact_name: Optional[CandidateField] = None
    emergency_contact_phone: Optional[CandidateField] = None


@dataclass
class ExtractedReferralData(_CandidateGroup):
    referring_physician: Optional[CandidateField] = None
    referring_facility: Optional[CandidateField] = None
    reason_for_referral: Optional[CandidateField] = None
    referral_date: Optional[CandidateField] = None


@dataclass
class ExtractedLabData:
    lab_name: Optional[CandidateField] = None
    test_date: Optional[CandidateField] = None
    test_results: List[LabResultRow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.lab_name:
            data["lab_name"] = self.lab_name.to_dict()
        if self.test_date:
            data["test_date"] = self.test_date.to_dict()
        data["test_results"] = [row.to_dict() for row in self.test_results]
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExtractedLabData":
        data = data or {}
        return cls(
            lab_name=CandidateField.from_dict(data["lab_name"]) if data.get("lab_name") else None,
            test_date=CandidateField.from_dict(data["test_date"]) if data.get("test_date") else None,
            test_results=[LabResultRow.from_dict(row) for row in data.get("test_results", [])],
        )


@dataclass
class ExtractionBundle:
    """
    Everything one extraction run produced for a document.

    referral_data / lab_data are None when the document type did not
    call for them.
    """
    patient_data: ExtractedPatientData = field(default_factory=ExtractedPatientData)
    referral_data: Optional[ExtractedReferralData] = None
    lab_data: Optional[ExtractedLabData] = None
    method: ExtractionMethod = ExtractionMethod.REGEX
    confidence: Optional[float] = None  # set when the AI extractor supplied it

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "method": self.method.value,
            "patient_data": self.patient_data.to_dict(),
            "referral_data": self.referral_data.to_dict() if self.referral_data is not None else None,
            "lab_data": self.lab_data.to_dict() if self.lab_data is not None else None,
        }
        if self.confidence is not None:
            data["confidence"] = self.confidence
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExtractionBundle":
        data = data or {}
        return cls(
            patient_data=ExtractedPatientData.from_dict(data.get("patient_data")),
            referral_data=(
                ExtractedReferralData.from_dict(data["referral_data"])
                if data.get("referral_data") is not None else None
            ),
            lab_data=(
                ExtractedLabData.from_dict(data["lab_data"])
                if data.get("lab_data") is not None else None
            ),
            method=ExtractionMethod(data.get("method", ExtractionMethod.REGEX.value)),
            confidence=data.get("confidence"),
        )
