# ============================================================================
# src/document_intake/core/referral_review.py
# ============================================================================
"""
Referral Review Workflow

After a referral scan is processed, a person decides what it means:
- created: a new patient is registered from the extracted identity
- added: the referral belongs to an existing patient
- skipped: nothing to do

Each referral is resolved exactly once.
"""

import logging
from typing import List, Optional

from .context import (
    PatientRecord,
    PatientUpdate,
    PendingReferral,
    ProcessingStatus,
    ReferralOcrResult,
    ResolutionStatus,
)
from .database import Database
from .patient_store import PatientStore
from .result_store import ResultStore
from ..utils.exceptions import OcrResultNotFoundError, PatientNotFoundError, ValidationError

logger = logging.getLogger(__name__)


class ReferralReviewWorkflow:

    def __init__(self, database: Database):
        self.db = database
        self.results = ResultStore(database)
        self.patients = PatientStore(database)

    def list_pending_referrals(self) -> List[PendingReferral]:
        """Processed referrals waiting for a decision, oldest first."""
        return self.results.list_pending_referrals()

    def create_patient_from_referral(
        self,
        ocr_result_id: str,
        resolved_by: str,
        overrides: Optional[PatientUpdate] = None,
    ) -> PatientRecord:
        """
        Register a patient from the referral's identity and resolve it as created.

        Starts from every patient field the run extracted (gender, email,
        address ...), then the stored identity columns, then overrides.

        overrides: reviewer-confirmed values that replace the extracted ones
        """
        with self.db.transaction() as conn:
            result = self._pending_referral(ocr_result_id, conn)

            values = {name: candidate.value for name, candidate in result.extraction().patient_data.items()}
            identity = {
                "first_name": result.patient_first_name,
                "last_name": result.patient_last_name,
                "date_of_birth": result.patient_dob,
                "phone": result.patient_phone,
            }
            values.update({k: v for k, v in identity.items() if v})
            if overrides is not None:
                values.update(overrides.columns())

            patient = self.patients.create(
                PatientUpdate.from_values({k: v for k, v in values.items() if v}),
                conn=conn,
            )
            self.results.resolve_referral(
                ocr_result_id, ResolutionStatus.CREATED, resolved_by, patient.id, conn=conn
            )

        logger.info(f"Referral {ocr_result_id} resolved as created: patient {patient.id} ({patient.mrn})")
        return patient

    def resolve_as_created(self, ocr_result_id: str, patient_id: str, resolved_by: str) -> ReferralOcrResult:
        """Mark as created for a patient that was registered separately."""
        return self._resolve(ocr_result_id, ResolutionStatus.CREATED, resolved_by, patient_id)

    def resolve_as_added(self, ocr_result_id: str, patient_id: str, resolved_by: str) -> ReferralOcrResult:
        """Attach the referral to an existing patient."""
        return self._resolve(ocr_result_id, ResolutionStatus.ADDED, resolved_by, patient_id)

    def resolve_as_skipped(self, ocr_result_id: str, resolved_by: str) -> ReferralOcrResult:
        return self._resolve(ocr_result_id, ResolutionStatus.SKIPPED, resolved_by, None)

    def _resolve(
        self,
        ocr_result_id: str,
        status: ResolutionStatus,
        resolved_by: str,
        patient_id: Optional[str],
    ) -> ReferralOcrResult:
        with self.db.transaction() as conn:
            self._pending_referral(ocr_result_id, conn)
            if patient_id is not None and self.patients.find_by_id(patient_id, conn=conn) is None:
                raise PatientNotFoundError(f"Patient {patient_id} not found")

            self.results.resolve_referral(ocr_result_id, status, resolved_by, patient_id, conn=conn)
            resolved = self.results.get_result(ocr_result_id, conn=conn)

        logger.info(f"Referral {ocr_result_id} resolved as {status.value}")
        return resolved

    def _pending_referral(self, ocr_result_id: str, conn) -> ReferralOcrResult:
        result = self.results.get_result(ocr_result_id, conn=conn)
        if not isinstance(result, ReferralOcrResult):
            raise OcrResultNotFoundError(f"Referral result {ocr_result_id} not found")
        if result.processing_status != ProcessingStatus.COMPLETED:
            raise ValidationError("Referral processing not completed")
        if result.resolution_status != ResolutionStatus.PENDING:
            raise ValidationError(f"Referral already resolved as {result.resolution_status.value}")
        return result
