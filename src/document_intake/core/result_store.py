# ============================================================================
# src/document_intake/core/result_store.py
# ============================================================================
"""
Result Store

Persistence for the OCR workflow:
- documents and referral scans (the sources)
- ocr_results, including the atomic begin_processing() claim
- field_mappings and their pending -> applied/rejected transitions
- referral resolution

Status transitions are guarded in SQL (WHERE status = ...) so a stale
reader can never move a record backwards.
"""

import json
import sqlite3
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .context import (
    DocumentRecord,
    ReferralScan,
    OcrResult,
    ReferralOcrResult,
    FieldMapping,
    MatchedPatient,
    PendingReferral,
    ProcessingStatus,
    FieldStatus,
    ResolutionStatus,
    SourceKind,
)
from .database import Database, utc_now
from ..utils.exceptions import ProcessingInProgressError

logger = logging.getLogger(__name__)

# Referral-only columns of ocr_results
REFERRAL_COLUMNS = (
    "patient_first_name",
    "patient_last_name",
    "patient_dob",
    "patient_phone",
    "referring_physician",
    "referring_facility",
    "reason_for_referral",
    "matched_patient_id",
    "match_confidence",
)

_BASE_RESULT_COLUMNS = (
    "id", "source_kind", "source_id", "raw_text", "confidence_score", "document_type",
    "extracted_data", "processing_status", "error_message", "processed_at", "claim_id",
    "created_at", "updated_at",
)


def _row_to_result(row: sqlite3.Row) -> OcrResult:
    data = dict(row)
    base = {name: data[name] for name in _BASE_RESULT_COLUMNS}
    base["source_kind"] = SourceKind(base["source_kind"])
    base["processing_status"] = ProcessingStatus(base["processing_status"])
    base["extracted_data"] = json.loads(base["extracted_data"]) if base["extracted_data"] else None

    if base["source_kind"] == SourceKind.DOCUMENT:
        return OcrResult(**base)

    return ReferralOcrResult(
        **base,
        **{name: data[name] for name in REFERRAL_COLUMNS},
        resolution_status=ResolutionStatus(data["resolution_status"]),
        resolved_patient_id=data["resolved_patient_id"],
        resolved_by=data["resolved_by"],
        resolved_at=data["resolved_at"],
    )


def _row_to_mapping(row: sqlite3.Row) -> FieldMapping:
    data = dict(row)
    data["status"] = FieldStatus(data["status"])
    return FieldMapping(**data)


def _row_to_scan(row: sqlite3.Row) -> ReferralScan:
    data = dict(row)
    data["processing_status"] = ProcessingStatus(data["processing_status"])
    return ReferralScan(**data)


class ResultStore:

    def __init__(self, database: Database):
        self.db = database

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------
    def create_document(
        self,
        patient_id: str,
        filename: str,
        original_name: str,
        mime_type: str,
    ) -> DocumentRecord:
        document = DocumentRecord(
            id=str(uuid.uuid4()),
            patient_id=patient_id,
            filename=filename,
            original_name=original_name,
            mime_type=mime_type,
            created_at=utc_now(),
        )
        with self.db.session() as c:
            c.execute(
                "INSERT INTO documents (id, patient_id, filename, original_name, mime_type, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (document.id, patient_id, filename, original_name, mime_type, document.created_at),
            )
        return document

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        with self.db.session() as c:
            row = c.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
        return DocumentRecord(**dict(row)) if row else None

    def create_referral_scan(
        self,
        uploaded_by: str,
        filename: str,
        original_name: str,
        mime_type: Optional[str] = None,
        file_size: Optional[int] = None,
    ) -> ReferralScan:
        now = utc_now()
        scan = ReferralScan(
            id=str(uuid.uuid4()),
            uploaded_by=uploaded_by,
            filename=filename,
            original_name=original_name,
            mime_type=mime_type,
            file_size=file_size,
            created_at=now,
            updated_at=now,
        )
        with self.db.session() as c:
            c.execute(
                "INSERT INTO referral_scans "
                "(id, uploaded_by, filename, original_name, mime_type, file_size, processing_status, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (scan.id, uploaded_by, filename, original_name, mime_type, file_size,
                 scan.processing_status.value, now, now),
            )
        return scan

    def get_referral_scan(self, scan_id: str) -> Optional[ReferralScan]:
        with self.db.session() as c:
            row = c.execute("SELECT * FROM referral_scans WHERE id = ?", (scan_id,)).fetchone()
        return _row_to_scan(row) if row else None

    def set_referral_scan_status(
        self,
        scan_id: str,
        status: ProcessingStatus,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        with self.db.session(conn) as c:
            c.execute(
                "UPDATE referral_scans SET processing_status = ?, updated_at = ? WHERE id = ?",
                (status.value, utc_now(), scan_id),
            )

    # ------------------------------------------------------------------
    # OCR results
    # ------------------------------------------------------------------
    def begin_processing(
        self,
        source_kind: SourceKind,
        source_id: str,
        stale_after_seconds: int = 0,
    ) -> OcrResult:
        """
        Claim the source for a processing run.

        Creates the result in `processing`, or moves an existing
        non-processing result back to `processing`, in one statement. A
        result already `processing` is only re-claimed once its last update
        is older than stale_after_seconds (0 = never).

        Every claim gets a fresh claim_id. Writes on behalf of a run pass
        it back, so a run whose claim was taken over can no longer touch
        the row.

        Raises:
            ProcessingInProgressError: another run holds the source
        """
        now = utc_now()
        if stale_after_seconds > 0:
            stale_before = (
                datetime.now(timezone.utc) - timedelta(seconds=stale_after_seconds)
            ).isoformat(timespec="microseconds")
        else:
            stale_before = ""  # no timestamp sorts before ""

        with self.db.session() as c:
            cur = c.execute(
                """
                INSERT INTO ocr_results
                    (id, source_kind, source_id, processing_status, claim_id, created_at, updated_at)
                VALUES (?, ?, ?, 'processing', ?, ?, ?)
                ON CONFLICT (source_kind, source_id) DO UPDATE SET
                    processing_status = 'processing',
                    claim_id = excluded.claim_id,
                    error_message = NULL,
                    processed_at = NULL,
                    updated_at = excluded.updated_at
                WHERE ocr_results.processing_status != 'processing'
                   OR ocr_results.updated_at < ?
                """,
                (str(uuid.uuid4()), source_kind.value, source_id, str(uuid.uuid4()), now, now, stale_before),
            )
            if cur.rowcount == 0:
                raise ProcessingInProgressError(source_kind.value, source_id)

            row = c.execute(
                "SELECT * FROM ocr_results WHERE source_kind = ? AND source_id = ?",
                (source_kind.value, source_id),
            ).fetchone()

        result = _row_to_result(row)
        logger.info(f"Processing started for {source_kind.value} {source_id} (result {result.id})")
        return result

    def touch(self, result_id: str, claim_id: str) -> bool:
        """
        Heartbeat for a live run: bump updated_at so the claim doesn't go stale.

        False when the claim is gone (taken over, or the run already finished).
        """
        with self.db.session() as c:
            cur = c.execute(
                "UPDATE ocr_results SET updated_at = ? "
                "WHERE id = ? AND claim_id = ? AND processing_status = 'processing'",
                (utc_now(), result_id, claim_id),
            )
            return cur.rowcount > 0

    def mark_completed(
        self,
        result_id: str,
        claim_id: str,
        raw_text: str,
        confidence_score: Optional[float],
        document_type: Optional[str],
        extracted_data: Dict[str, Any],
        referral_fields: Optional[Dict[str, Any]] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """processing -> completed with the run's output. False if the claim no longer holds."""
        columns: Dict[str, Any] = {
            "raw_text": raw_text,
            "confidence_score": confidence_score,
            "document_type": document_type,
            "extracted_data": json.dumps(extracted_data, default=str),
            "processing_status": ProcessingStatus.COMPLETED.value,
            "error_message": None,
        }
        for name, value in (referral_fields or {}).items():
            if name not in REFERRAL_COLUMNS:
                raise ValueError(f"Unknown referral column: {name}")
            columns[name] = value

        now = utc_now()
        assignments = ", ".join(f"{name} = ?" for name in columns)
        with self.db.session(conn) as c:
            cur = c.execute(
                f"UPDATE ocr_results SET {assignments}, processed_at = ?, updated_at = ? "
                "WHERE id = ? AND claim_id = ? AND processing_status = 'processing'",
                [*columns.values(), now, now, result_id, claim_id],
            )
            return cur.rowcount > 0

    def mark_failed(
        self,
        result_id: str,
        claim_id: str,
        error_message: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """processing -> failed. False if the claim no longer holds."""
        now = utc_now()
        with self.db.session(conn) as c:
            cur = c.execute(
                "UPDATE ocr_results SET processing_status = 'failed', error_message = ?, "
                "processed_at = ?, updated_at = ? "
                "WHERE id = ? AND claim_id = ? AND processing_status = 'processing'",
                (error_message, now, now, result_id, claim_id),
            )
            return cur.rowcount > 0

    def get_result(self, result_id: str, conn: Optional[sqlite3.Connection] = None) -> Optional[OcrResult]:
        with self.db.session(conn) as c:
            row = c.execute("SELECT * FROM ocr_results WHERE id = ?", (result_id,)).fetchone()
        return _row_to_result(row) if row else None

    def get_result_for_source(self, source_kind: SourceKind, source_id: str) -> Optional[OcrResult]:
        with self.db.session() as c:
            row = c.execute(
                "SELECT * FROM ocr_results WHERE source_kind = ? AND source_id = ?",
                (source_kind.value, source_id),
            ).fetchone()
        return _row_to_result(row) if row else None

    # ------------------------------------------------------------------
    # Field mappings
    # ------------------------------------------------------------------
    def replace_pending_mappings(
        self,
        result_id: str,
        claim_id: str,
        mappings: Iterable[FieldMapping],
        conn: Optional[sqlite3.Connection] = None,
    ) -> List[FieldMapping]:
        """
        Swap the result's still-pending mappings for a new set.

        Applied and rejected mappings from earlier runs are kept. Nothing is
        written (and [] returned) when claim_id is no longer the result's
        current claim.
        """
        mappings = list(mappings)
        with self.db.session(conn) as c:
            owner = c.execute(
                "SELECT 1 FROM ocr_results WHERE id = ? AND claim_id = ?",
                (result_id, claim_id),
            ).fetchone()
            if owner is None:
                logger.warning(f"Skipping field mappings for result {result_id}: claim superseded")
                return []

            c.execute(
                "DELETE FROM field_mappings WHERE ocr_result_id = ? AND status = 'pending'",
                (result_id,),
            )
            c.executemany(
                "INSERT INTO field_mappings "
                "(id, ocr_result_id, patient_id, field_name, extracted_value, original_value, "
                " confidence_score, status, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (m.id, result_id, m.patient_id, m.field_name, m.extracted_value,
                     m.original_value, m.confidence_score, m.status.value, m.created_at or utc_now())
                    for m in mappings
                ],
            )
        return mappings

    def list_mappings(self, result_id: str, conn: Optional[sqlite3.Connection] = None) -> List[FieldMapping]:
        with self.db.session(conn) as c:
            rows = c.execute(
                "SELECT * FROM field_mappings WHERE ocr_result_id = ? ORDER BY field_name",
                (result_id,),
            ).fetchall()
        return [_row_to_mapping(row) for row in rows]

    def get_mappings(
        self,
        result_id: str,
        mapping_ids: Sequence[str],
        conn: Optional[sqlite3.Connection] = None,
    ) -> List[FieldMapping]:
        """Mappings with these ids that belong to the result."""
        if not mapping_ids:
            return []
        placeholders = ", ".join("?" for _ in mapping_ids)
        with self.db.session(conn) as c:
            rows = c.execute(
                f"SELECT * FROM field_mappings WHERE ocr_result_id = ? AND id IN ({placeholders})",
                [result_id, *mapping_ids],
            ).fetchall()
        return [_row_to_mapping(row) for row in rows]

    def set_mapping_status(
        self,
        mapping_ids: Sequence[str],
        status: FieldStatus,
        actor: Optional[str] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        """pending -> applied/rejected. Returns how many mappings moved."""
        if status == FieldStatus.PENDING:
            raise ValueError("Mappings cannot be moved back to pending")
        if not mapping_ids:
            return 0

        applied_at = utc_now() if status == FieldStatus.APPLIED else None
        placeholders = ", ".join("?" for _ in mapping_ids)
        with self.db.session(conn) as c:
            cur = c.execute(
                f"UPDATE field_mappings SET status = ?, applied_at = ?, applied_by = ? "
                f"WHERE status = 'pending' AND id IN ({placeholders})",
                [status.value, applied_at, actor, *mapping_ids],
            )
            return cur.rowcount

    # ------------------------------------------------------------------
    # Referral resolution
    # ------------------------------------------------------------------
    def list_pending_referrals(self) -> List[PendingReferral]:
        """Completed, unresolved referral results, oldest first."""
        with self.db.session() as c:
            rows = c.execute(
                """
                SELECT ocr.*,
                       rs.filename AS scan_filename,
                       rs.original_name AS scan_original_name,
                       rs.processing_status AS scan_status,
                       p.id AS p_id, p.mrn AS p_mrn,
                       p.first_name AS p_first_name, p.last_name AS p_last_name,
                       p.date_of_birth AS p_date_of_birth
                FROM ocr_results ocr
                JOIN referral_scans rs ON rs.id = ocr.source_id
                LEFT JOIN patients p ON p.id = ocr.matched_patient_id
                WHERE ocr.source_kind = 'referral_scan'
                  AND ocr.resolution_status = 'pending'
                  AND rs.processing_status = 'completed'
                ORDER BY ocr.created_at ASC
                """
            ).fetchall()

        pending = []
        for row in rows:
            matched = None
            if row["p_id"] is not None:
                matched = MatchedPatient(
                    id=row["p_id"],
                    mrn=row["p_mrn"],
                    first_name=row["p_first_name"],
                    last_name=row["p_last_name"],
                    date_of_birth=row["p_date_of_birth"],
                    match_score=row["match_confidence"] or 0.0,
                )
            pending.append(PendingReferral(
                result=_row_to_result(row),
                filename=row["scan_filename"],
                original_name=row["scan_original_name"],
                scan_status=ProcessingStatus(row["scan_status"]),
                matched_patient=matched,
            ))
        return pending

    def resolve_referral(
        self,
        result_id: str,
        status: ResolutionStatus,
        resolved_by: str,
        patient_id: Optional[str] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """pending -> created/added/skipped. False if already resolved."""
        if status == ResolutionStatus.PENDING:
            raise ValueError("Referrals cannot be moved back to pending")
        now = utc_now()
        with self.db.session(conn) as c:
            cur = c.execute(
                "UPDATE ocr_results SET resolution_status = ?, resolved_patient_id = ?, "
                "resolved_by = ?, resolved_at = ?, updated_at = ? "
                "WHERE id = ? AND source_kind = 'referral_scan' AND resolution_status = 'pending'",
                (status.value, patient_id, resolved_by, now, now, result_id),
            )
            return cur.rowcount > 0
