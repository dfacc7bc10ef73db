# ============================================================================
# src/document_intake/core/context/extracted_value.py
# ============================================================================
"""
Single extracted field representation
- Value as found (after normalization)
- Fixed pattern confidence
- Surrounding source text for the reviewer
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict

@dataclass(frozen=True)
class CandidateField:
    field_name: str
    value: str
    confidence: float = 0.0  # pattern weight, not a calibrated probability
    match_context: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CandidateField":
        return cls(
            field_name=data["field_name"],
            value=data["value"],
            confidence=float(data.get("confidence", 0.0)),
            match_context=data.get("match_context", ""),
        )


@dataclass(frozen=True)
class LabResultRow:
    test_name: str
    value: str
    unit: str = ""
    reference_range: str = ""
    abnormal: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LabResultRow":
        return cls(
            test_name=data["test_name"],
            value=data["value"],
            unit=data.get("unit", ""),
            reference_range=data.get("reference_range", ""),
            abnormal=bool(data.get("abnormal", False)),
        )
