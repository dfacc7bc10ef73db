# ============================================================================
# src/document_intake/core/database.py
# ============================================================================
"""
SQLite Database

One file holds the registry and the OCR workflow state:
- patients
- documents (uploaded patient documents)
- referral_scans
- ocr_results (one row per source document or referral scan)
- field_mappings

Raw sqlite3, JSON text for structured columns. Connections run in
autocommit mode; multi-statement work goes through transaction(), which
takes the write lock up front (BEGIN IMMEDIATE) so it serializes against
other processes sharing the file.
"""

import sqlite3
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from ..config.base_config import base_settings

logger = logging.getLogger(__name__)


def utc_now() -> str:
    # Fixed-width ISO timestamps so string comparison orders them
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS patients (
        id                      TEXT PRIMARY KEY,
        mrn                     TEXT NOT NULL UNIQUE,
        first_name              TEXT NOT NULL,
        last_name               TEXT NOT NULL,
        date_of_birth           TEXT NOT NULL,
        gender                  TEXT,
        email                   TEXT,
        phone                   TEXT,
        address_line1           TEXT,
        address_line2           TEXT,
        city                    TEXT,
        state                   TEXT,
        zip                     TEXT,
        emergency_contact_name  TEXT,
        emergency_contact_phone TEXT,
        insurance_provider      TEXT,
        insurance_id            TEXT,
        notes                   TEXT,
        active                  INTEGER NOT NULL DEFAULT 1,
        created_at              TEXT NOT NULL,
        updated_at              TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        id              TEXT PRIMARY KEY,
        patient_id      TEXT NOT NULL,
        filename        TEXT NOT NULL,
        original_name   TEXT NOT NULL,
        mime_type       TEXT NOT NULL,
        created_at      TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS referral_scans (
        id                  TEXT PRIMARY KEY,
        uploaded_by         TEXT NOT NULL,
        filename            TEXT NOT NULL,
        original_name       TEXT NOT NULL,
        mime_type           TEXT,
        file_size           INTEGER,
        processing_status   TEXT NOT NULL DEFAULT 'pending',
        created_at          TEXT NOT NULL,
        updated_at          TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ocr_results (
        id                  TEXT PRIMARY KEY,
        source_kind         TEXT NOT NULL,
        source_id           TEXT NOT NULL,
        raw_text            TEXT,
        confidence_score    REAL,
        document_type       TEXT,
        -- ExtractionBundle as JSON
        extracted_data      TEXT,
        processing_status   TEXT NOT NULL DEFAULT 'pending',
        error_message       TEXT,
        processed_at        TEXT,
        -- Token of the run that currently owns the row
        claim_id            TEXT,
        -- Referral scans only
        patient_first_name  TEXT,
        patient_last_name   TEXT,
        patient_dob         TEXT,
        patient_phone       TEXT,
        referring_physician TEXT,
        referring_facility  TEXT,
        reason_for_referral TEXT,
        matched_patient_id  TEXT,
        match_confidence    REAL,
        resolution_status   TEXT NOT NULL DEFAULT 'pending',
        resolved_patient_id TEXT,
        resolved_by         TEXT,
        resolved_at         TEXT,
        created_at          TEXT NOT NULL,
        updated_at          TEXT NOT NULL,
        UNIQUE (source_kind, source_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS field_mappings (
        id                  TEXT PRIMARY KEY,
        ocr_result_id       TEXT NOT NULL REFERENCES ocr_results(id),
        patient_id          TEXT,
        field_name          TEXT NOT NULL,
        extracted_value     TEXT NOT NULL,
        original_value      TEXT,
        confidence_score    REAL,
        status              TEXT NOT NULL DEFAULT 'pending',
        applied_at          TEXT,
        applied_by          TEXT,
        created_at          TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_patients_last_name ON patients (LOWER(last_name))",
    "CREATE INDEX IF NOT EXISTS idx_patients_dob ON patients (date_of_birth)",
    "CREATE INDEX IF NOT EXISTS idx_ocr_results_status ON ocr_results (processing_status)",
    "CREATE INDEX IF NOT EXISTS idx_field_mappings_result ON field_mappings (ocr_result_id)",
]


class Database:
    """
    Connection factory and schema owner for the intake database.

    Stores take a Database and an optional open connection per call; pass
    the connection from transaction() to make several store calls atomic.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or base_settings.DATABASE_PATH)
        self._init_database()

    def _init_database(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self.connect()
        try:
            # WAL lets readers poll while a run writes
            conn.execute("PRAGMA journal_mode=WAL")
            for statement in SCHEMA:
                conn.execute(statement)
        finally:
            conn.close()
        logger.info(f"Intake database initialized: {self.db_path}")

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """All-or-nothing block; rolls back on any exception."""
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextmanager
    def session(self, conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
        """Reuse the caller's connection, or open a short-lived one."""
        if conn is not None:
            yield conn
            return
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()
