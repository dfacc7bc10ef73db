# ============================================================================
# src/document_intake/matching/patient_matcher.py
# ============================================================================
"""
Patient Matching Engine

Maps an extracted identity onto the patient registry.

Score per active patient = sum of weights for the supplied fragments that
match exactly:
- last name (case-insensitive)   0.4
- first name (case-insensitive)  0.3
- date of birth (YYYY-MM-DD)     0.5

Fragments that weren't supplied neither add nor subtract. The best patient
at or above the threshold wins; on a tie the first registered wins.
So DOB alone (0.5) or first+last name (0.7) qualify, first name alone
(0.3) never does.
"""

import logging
from typing import Optional

from ..config import threshold_settings, ThresholdSettings
from ..core.context import MatchedPatient, PatientRecord
from ..core.patient_store import PatientStore


def _same_text(a: Optional[str], b: Optional[str]) -> bool:
    return a is not None and b is not None and a.strip().lower() == b.strip().lower()


class PatientMatchingEngine:

    def __init__(self, patients: PatientStore, settings: Optional[ThresholdSettings] = None):
        self.patients = patients
        self.settings = settings or threshold_settings
        self.logger = logging.getLogger(__name__)

    def score(
        self,
        patient: PatientRecord,
        first_name: Optional[str],
        last_name: Optional[str],
        date_of_birth: Optional[str],
    ) -> float:
        score = 0.0
        if last_name and _same_text(patient.last_name, last_name):
            score += self.settings.LAST_NAME_WEIGHT
        if first_name and _same_text(patient.first_name, first_name):
            score += self.settings.FIRST_NAME_WEIGHT
        if date_of_birth and patient.date_of_birth == date_of_birth.strip():
            score += self.settings.DOB_WEIGHT
        # Keep 0.3 + 0.4 == 0.7 exact for threshold comparisons
        return round(score, 6)

    def find_matching_patient(
        self,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        date_of_birth: Optional[str] = None,
    ) -> Optional[MatchedPatient]:
        """Best active patient scoring >= MATCH_THRESHOLD, or None."""
        if not first_name and not last_name and not date_of_birth:
            return None

        best: Optional[PatientRecord] = None
        best_score = 0.0
        for patient in self.patients.find_matching_candidates(first_name, last_name, date_of_birth):
            score = self.score(patient, first_name, last_name, date_of_birth)
            if score > best_score:
                best, best_score = patient, score

        if best is None or best_score < self.settings.MATCH_THRESHOLD:
            self.logger.info(f"No registry match (best score {best_score:.2f})")
            return None

        self.logger.info(f"Matched patient {best.id} with score {best_score:.2f}")
        return MatchedPatient(
            id=best.id,
            mrn=best.mrn,
            first_name=best.first_name,
            last_name=best.last_name,
            date_of_birth=best.date_of_birth,
            match_score=best_score,
        )
