# ============================================================================
# src/document_intake/core/patient_store.py
# ============================================================================
"""
Patient Store

Read/write access to the patient registry:
- create (with a fresh MRN)
- find_by_id
- find_matching_candidates (active patients sharing a name or DOB)
- update (allow-listed columns only)

Every method takes an optional connection so it can join a caller's
transaction.
"""

import sqlite3
import logging
import uuid
from typing import List, Optional

from .context import PatientRecord, PatientUpdate
from .database import Database, utc_now
from ..utils.exceptions import PatientNotFoundError, ValidationError

logger = logging.getLogger(__name__)

MRN_PREFIX = "MRN"
FIRST_MRN_NUMBER = 1001


def _row_to_patient(row: sqlite3.Row) -> PatientRecord:
    data = dict(row)
    data["active"] = bool(data["active"])
    return PatientRecord(**data)


class PatientStore:

    def __init__(self, database: Database):
        self.db = database

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    def create(self, values: PatientUpdate, conn: Optional[sqlite3.Connection] = None) -> PatientRecord:
        """
        Register a new patient.

        first_name, last_name and date_of_birth are required. The MRN is
        allocated inside the same transaction as the insert.

        Raises:
            ValidationError: a required field is missing
        """
        columns = values.columns()
        missing = [name for name in ("first_name", "last_name", "date_of_birth") if not columns.get(name)]
        if missing:
            raise ValidationError(f"Cannot create patient, missing: {', '.join(missing)}")

        if conn is None:
            with self.db.transaction() as tx:
                return self.create(values, conn=tx)

        patient_id = str(uuid.uuid4())
        now = utc_now()
        record = dict(columns, id=patient_id, mrn=self.next_mrn(conn), created_at=now, updated_at=now)

        names = list(record)
        conn.execute(
            f"INSERT INTO patients ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})",
            [record[name] for name in names],
        )
        logger.info(f"Created patient {patient_id} ({record['mrn']})")
        return self.find_by_id(patient_id, conn=conn)

    def update(
        self,
        patient_id: str,
        values: PatientUpdate,
        conn: Optional[sqlite3.Connection] = None,
    ) -> PatientRecord:
        """
        Write the set fields of a PatientUpdate.

        Raises:
            PatientNotFoundError: no patient with this id
        """
        with self.db.session(conn) as c:
            if not values.is_empty():
                columns = values.columns()
                assignments = ", ".join(f"{name} = ?" for name in columns)
                cur = c.execute(
                    f"UPDATE patients SET {assignments}, updated_at = ? WHERE id = ?",
                    [*columns.values(), utc_now(), patient_id],
                )
                if cur.rowcount == 0:
                    raise PatientNotFoundError(f"Patient {patient_id} not found")

            patient = self.find_by_id(patient_id, conn=c)
            if patient is None:
                raise PatientNotFoundError(f"Patient {patient_id} not found")
            return patient

    def set_active(self, patient_id: str, active: bool) -> None:
        with self.db.session() as c:
            c.execute(
                "UPDATE patients SET active = ?, updated_at = ? WHERE id = ?",
                (1 if active else 0, utc_now(), patient_id),
            )

    def next_mrn(self, conn: sqlite3.Connection) -> str:
        """MRN + 6 digits, one above the highest issued, starting at MRN001001."""
        row = conn.execute(
            "SELECT MAX(CAST(SUBSTR(mrn, ?) AS INTEGER)) FROM patients WHERE mrn LIKE ?",
            (len(MRN_PREFIX) + 1, f"{MRN_PREFIX}%"),
        ).fetchone()
        highest = row[0]
        next_number = highest + 1 if highest else FIRST_MRN_NUMBER
        return f"{MRN_PREFIX}{next_number:06d}"

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def find_by_id(self, patient_id: str, conn: Optional[sqlite3.Connection] = None) -> Optional[PatientRecord]:
        with self.db.session(conn) as c:
            row = c.execute("SELECT * FROM patients WHERE id = ?", (patient_id,)).fetchone()
        return _row_to_patient(row) if row else None

    def find_matching_candidates(
        self,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        date_of_birth: Optional[str] = None,
    ) -> List[PatientRecord]:
        """
        Active patients sharing at least one supplied identity fragment.

        Names compare case-insensitively; DOB compares as YYYY-MM-DD text.
        Oldest registrations first.
        """
        conditions, params = [], []
        if last_name:
            conditions.append("LOWER(last_name) = LOWER(?)")
            params.append(last_name)
        if first_name:
            conditions.append("LOWER(first_name) = LOWER(?)")
            params.append(first_name)
        if date_of_birth:
            conditions.append("date_of_birth = ?")
            params.append(date_of_birth)
        if not conditions:
            return []

        with self.db.session() as c:
            rows = c.execute(
                f"SELECT * FROM patients WHERE active = 1 AND ({' OR '.join(conditions)}) "
                "ORDER BY created_at ASC, rowid ASC",
                params,
            ).fetchall()
        return [_row_to_patient(row) for row in rows]
