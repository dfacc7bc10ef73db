# ============================================================================
# src/document_intake/core/field_review.py
# ============================================================================
"""
Field Review Workflow

Human review of extracted fields:
- apply_fields: write the selected values to the patient and mark them
  applied, all in one transaction
- reject_fields: mark each selected field rejected, one by one

Field mappings only ever move pending -> applied or pending -> rejected.
Extracted names outside PatientUpdate never reach the patient record.
"""

import logging
from typing import List, Optional, Sequence

from .context import FieldMapping, FieldStatus, PatientRecord, PatientUpdate, ProcessingStatus
from .database import Database
from .patient_store import PatientStore
from .result_store import ResultStore
from ..utils.exceptions import (
    OcrResultNotFoundError,
    PatientNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class FieldReviewWorkflow:

    def __init__(self, database: Database):
        self.db = database
        self.results = ResultStore(database)
        self.patients = PatientStore(database)

    def apply_fields(
        self,
        ocr_result_id: str,
        field_ids: Sequence[str],
        applied_by: Optional[str] = None,
    ) -> PatientRecord:
        """
        Apply the selected field mappings to their patient.

        All selected mappings must belong to the result and be pending.
        Either the patient update and every status change commit together
        or nothing changes.

        Returns:
            The updated patient record

        Raises:
            ValidationError: empty selection, result not completed, or
                ids that don't resolve to pending mappings
            OcrResultNotFoundError: unknown result
            PatientNotFoundError: the mappings' patient doesn't exist
        """
        field_ids = list(dict.fromkeys(field_ids or []))
        if not field_ids:
            raise ValidationError("field_ids is required")

        with self.db.transaction() as conn:
            result = self.results.get_result(ocr_result_id, conn=conn)
            if result is None:
                raise OcrResultNotFoundError(f"OCR result {ocr_result_id} not found")
            if result.processing_status != ProcessingStatus.COMPLETED:
                raise ValidationError("OCR processing not completed")

            selected = self.results.get_mappings(ocr_result_id, field_ids, conn=conn)
            self._check_selection(field_ids, selected)

            patient_ids = {m.patient_id for m in selected}
            if len(patient_ids) != 1:
                raise ValidationError("Selected fields belong to different patients")
            patient_id = patient_ids.pop()
            if patient_id is None:
                raise PatientNotFoundError("Selected fields are not linked to a patient")

            update = PatientUpdate.from_values({m.field_name: m.extracted_value for m in selected})
            patient = self.patients.update(patient_id, update, conn=conn)

            moved = self.results.set_mapping_status(field_ids, FieldStatus.APPLIED, applied_by, conn=conn)
            if moved != len(field_ids):
                raise ValidationError("Selected fields changed during apply")

        logger.info(
            f"Applied {len(field_ids)} fields to patient {patient_id} "
            f"({', '.join(sorted(update.columns())) or 'no writable fields'})"
        )
        return patient

    def reject_fields(
        self,
        ocr_result_id: str,
        field_ids: Sequence[str],
        rejected_by: Optional[str] = None,
    ) -> List[FieldMapping]:
        """
        Reject each selected pending mapping independently.

        Ids that don't resolve to pending mappings of this result are
        skipped; at least one must resolve.

        Returns:
            The mappings that were rejected
        """
        field_ids = list(dict.fromkeys(field_ids or []))
        if not field_ids:
            raise ValidationError("field_ids is required")

        if self.results.get_result(ocr_result_id) is None:
            raise OcrResultNotFoundError(f"OCR result {ocr_result_id} not found")

        candidates = [
            m for m in self.results.get_mappings(ocr_result_id, field_ids)
            if m.status == FieldStatus.PENDING
        ]
        if not candidates:
            raise ValidationError("No valid field IDs provided")

        rejected = []
        for mapping in candidates:
            if self.results.set_mapping_status([mapping.id], FieldStatus.REJECTED, rejected_by):
                rejected.append(mapping)

        logger.info(f"Rejected {len(rejected)} fields on OCR result {ocr_result_id}")
        return rejected

    @staticmethod
    def _check_selection(field_ids: Sequence[str], selected: Sequence[FieldMapping]):
        found = {m.id: m for m in selected}
        missing = [field_id for field_id in field_ids if field_id not in found]
        if missing:
            raise ValidationError(f"Unknown field IDs for this result: {', '.join(missing)}")

        settled = [m.id for m in selected if m.status != FieldStatus.PENDING]
        if settled:
            raise ValidationError(f"Fields already applied or rejected: {', '.join(settled)}")
