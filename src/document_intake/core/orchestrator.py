# ============================================================================
# src/document_intake/core/orchestrator.py
# ============================================================================
"""
Document Processing Orchestrator

Owns the OCR lifecycle of one source (a patient document or a referral
scan):

    none/pending/completed/failed --trigger--> processing --run--> completed | failed

Flow of a run:
1. Resolve the backing file (missing -> failed, fixed message)
2. OCR -> text, engine confidence, document-type guess
3. AI extractor first when configured; regex extraction when it is
   absent, errors, or finds no name
4. Documents: persist + one field mapping per extracted patient field
   Referral scans: match against the registry, persist, mark scan

Triggering claims the source with an atomic check-and-set in the
database, then schedules the run as a background task and returns at
once. Callers poll the result (or await wait_for()).

A run refreshes its claim before each step and writes nothing once a
newer trigger has re-claimed the result.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .context import (
    DocumentRecord,
    ReferralScan,
    OcrResult,
    FieldMapping,
    ExtractionBundle,
    ExtractionMethod,
    PatientRecord,
    ProcessingStatus,
    SourceKind,
)
from .database import Database
from .patient_store import PatientStore
from .result_store import ResultStore
from ..config import base_settings, processing_settings, ProcessingSettings
from ..constants import DocumentType
from ..extractors.ai_extractor import AIExtractor, create_ai_extractor
from ..extractors.field_extractor import FieldExtractionEngine
from ..extractors.ocr_engine import OcrEngine, OcrOutput
from ..matching import PatientMatchingEngine
from ..utils.exceptions import (
    DocumentNotFoundError,
    ReferralScanNotFoundError,
    OcrResultNotFoundError,
    ProcessingSupersededError,
    SourceFileMissingError,
    ValidationError,
)
from ..utils.logging import LogAdapter

logger = logging.getLogger(__name__)

MISSING_FILE_MESSAGE = "File not found on server. Files may have been lost during deployment."

SourceKey = Tuple[SourceKind, str]


class DocumentProcessingOrchestrator:
    """
    Coordinates OCR, extraction, matching and persistence.

    Collaborators are injected; anything left out is built from settings.
    ai_extractor=None means no AI pass (use from_settings() to honor
    AI_EXTRACTION_ENABLED).
    """

    def __init__(
        self,
        database: Database,
        ocr_engine: Optional[OcrEngine] = None,
        field_extractor: Optional[FieldExtractionEngine] = None,
        ai_extractor: Optional[AIExtractor] = None,
        matcher: Optional[PatientMatchingEngine] = None,
        uploads_dir: Optional[Path] = None,
        referral_uploads_dir: Optional[Path] = None,
        settings: Optional[ProcessingSettings] = None,
    ):
        self.db = database
        self.results = ResultStore(database)
        self.patients = PatientStore(database)

        self.ocr_engine = ocr_engine or OcrEngine()
        self.field_extractor = field_extractor or FieldExtractionEngine()
        self.ai_extractor = ai_extractor
        self.matcher = matcher or PatientMatchingEngine(self.patients)

        self.uploads_dir = Path(uploads_dir or base_settings.UPLOADS_DIR)
        self.referral_uploads_dir = Path(referral_uploads_dir or base_settings.REFERRAL_UPLOADS_DIR)
        self.settings = settings or processing_settings

        self._semaphore: Optional[asyncio.Semaphore] = None
        self._tasks: Dict[SourceKey, asyncio.Task] = {}
        self._running: Set[asyncio.Task] = set()
        self.logger = logger

        self.logger.info(
            f"Orchestrator initialized (AI extraction {'on' if ai_extractor else 'off'}, "
            f"max {self.settings.MAX_CONCURRENT_JOBS} concurrent runs)"
        )

    @classmethod
    def from_settings(cls, database: Optional[Database] = None) -> "DocumentProcessingOrchestrator":
        return cls(database or Database(), ai_extractor=create_ai_extractor())

    # ========================================================================
    # DOCUMENTS
    # ========================================================================

    def register_document(
        self,
        patient_id: str,
        filename: str,
        original_name: Optional[str] = None,
        mime_type: str = "application/pdf",
    ) -> DocumentRecord:
        """Record an uploaded file (relative to uploads_dir) for a patient."""
        return self.results.create_document(patient_id, filename, original_name or filename, mime_type)

    async def trigger_processing(self, document_id: str) -> OcrResult:
        """
        Start OCR for a document and return immediately.

        Returns the result in `processing`.

        Raises:
            DocumentNotFoundError: unknown document
            ProcessingInProgressError: a run already holds this document
        """
        document = await asyncio.to_thread(self.results.get_document, document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        result = await asyncio.to_thread(
            self.results.begin_processing,
            SourceKind.DOCUMENT,
            document_id,
            self.settings.PROCESSING_STALE_AFTER_SECONDS,
        )
        self._spawn((SourceKind.DOCUMENT, document_id), self._run_document(result, document))
        return result

    async def get_result_for_document(self, document_id: str) -> OcrResult:
        """
        Raises:
            DocumentNotFoundError / OcrResultNotFoundError
        """
        document = await asyncio.to_thread(self.results.get_document, document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        result = await asyncio.to_thread(self.results.get_result_for_source, SourceKind.DOCUMENT, document_id)
        if result is None:
            raise OcrResultNotFoundError(f"No OCR result found for document {document_id}")
        return result

    async def get_extracted_fields(self, document_id: str) -> Tuple[OcrResult, List[FieldMapping]]:
        """
        The completed result and its field mappings.

        Raises:
            ValidationError: processing has not completed
        """
        result = await self.get_result_for_document(document_id)
        if result.processing_status != ProcessingStatus.COMPLETED:
            raise ValidationError(
                f"OCR processing not completed (status: {result.processing_status.value})"
            )
        mappings = await asyncio.to_thread(self.results.list_mappings, result.id)
        return result, mappings

    async def _run_document(self, result: OcrResult, document: DocumentRecord):
        log = LogAdapter(self.logger, {"source_kind": "document", "source_id": document.id, "result_id": result.id})

        async with self._run_slots():
            try:
                await self._heartbeat(result)
                file_path = self.uploads_dir / document.filename
                ocr = await self._ocr(file_path, document.mime_type)

                await self._heartbeat(result)
                bundle = await self._extract(ocr.text, ocr.document_type)

                await self._heartbeat(result)
                patient = await asyncio.to_thread(self.patients.find_by_id, document.patient_id)
                mappings = self._build_mappings(result.id, document.patient_id, bundle, patient)

                completed = await asyncio.to_thread(self._complete_document, result, ocr, bundle, mappings)
                if not completed:
                    raise ProcessingSupersededError(f"Result {result.id} was re-claimed before completion")
                log.info(
                    f"OCR completed for document {document.id}: {ocr.document_type.value}, "
                    f"{len(mappings)} fields via {bundle.method.value}"
                )

            except ProcessingSupersededError as e:
                log.warning(f"Abandoning run for document {document.id}: {e}")
            except Exception as e:
                log.error(f"OCR processing failed for document {document.id}: {e}", exc_info=True)
                await asyncio.to_thread(
                    self.results.mark_failed, result.id, result.claim_id, str(e) or type(e).__name__
                )

    def _complete_document(
        self,
        result: OcrResult,
        ocr: OcrOutput,
        bundle: ExtractionBundle,
        mappings: List[FieldMapping],
    ) -> bool:
        with self.db.transaction() as conn:
            completed = self.results.mark_completed(
                result.id,
                result.claim_id,
                raw_text=ocr.text,
                confidence_score=self._confidence(ocr, bundle),
                document_type=ocr.document_type.value,
                extracted_data=bundle.to_dict(),
                conn=conn,
            )
            if completed:
                self.results.replace_pending_mappings(result.id, result.claim_id, mappings, conn=conn)
        return completed

    def _build_mappings(
        self,
        result_id: str,
        patient_id: str,
        bundle: ExtractionBundle,
        patient: Optional[PatientRecord],
    ) -> List[FieldMapping]:
        """One pending mapping per extracted patient field, with the live value for comparison."""
        return [
            FieldMapping(
                id=str(uuid.uuid4()),
                ocr_result_id=result_id,
                patient_id=patient_id,
                field_name=field_name,
                extracted_value=candidate.value,
                original_value=patient.value_of(field_name) if patient else None,
                confidence_score=candidate.confidence,
            )
            for field_name, candidate in bundle.patient_data.items()
        ]

    # ========================================================================
    # REFERRAL SCANS
    # ========================================================================

    async def submit_referral_scan(
        self,
        uploaded_by: str,
        filename: str,
        original_name: Optional[str] = None,
        mime_type: Optional[str] = None,
        file_size: Optional[int] = None,
    ) -> ReferralScan:
        """Record an uploaded referral letter and start processing it."""
        scan = await asyncio.to_thread(
            self.results.create_referral_scan,
            uploaded_by, filename, original_name or filename, mime_type, file_size,
        )
        await self.trigger_referral_processing(scan.id)
        return scan

    async def trigger_referral_processing(self, scan_id: str) -> OcrResult:
        """
        Raises:
            ReferralScanNotFoundError: unknown scan
            ProcessingInProgressError: a run already holds this scan
        """
        scan = await asyncio.to_thread(self.results.get_referral_scan, scan_id)
        if scan is None:
            raise ReferralScanNotFoundError(f"Referral scan {scan_id} not found")

        result = await asyncio.to_thread(
            self.results.begin_processing,
            SourceKind.REFERRAL_SCAN,
            scan_id,
            self.settings.PROCESSING_STALE_AFTER_SECONDS,
        )
        await asyncio.to_thread(self.results.set_referral_scan_status, scan_id, ProcessingStatus.PROCESSING)
        self._spawn((SourceKind.REFERRAL_SCAN, scan_id), self._run_referral(result, scan))
        return result

    async def get_result_for_referral_scan(self, scan_id: str) -> OcrResult:
        result = await asyncio.to_thread(self.results.get_result_for_source, SourceKind.REFERRAL_SCAN, scan_id)
        if result is None:
            raise OcrResultNotFoundError(f"No OCR result found for referral scan {scan_id}")
        return result

    async def _run_referral(self, result: OcrResult, scan: ReferralScan):
        log = LogAdapter(self.logger, {"source_kind": "referral_scan", "source_id": scan.id, "result_id": result.id})

        async with self._run_slots():
            try:
                await self._heartbeat(result)
                file_path = self.referral_uploads_dir / scan.filename
                ocr = await self._ocr(file_path, scan.mime_type)

                # Referral scans always get referral extraction, whatever the guess
                await self._heartbeat(result)
                bundle = await self._extract(ocr.text, DocumentType.REFERRAL)
                patient_data = bundle.patient_data
                referral_data = bundle.referral_data

                first_name = patient_data.value_of("first_name")
                last_name = patient_data.value_of("last_name")
                dob = patient_data.value_of("date_of_birth")

                await self._heartbeat(result)
                matched = await asyncio.to_thread(self.matcher.find_matching_patient, first_name, last_name, dob)

                referral_fields = {
                    "patient_first_name": first_name,
                    "patient_last_name": last_name,
                    "patient_dob": dob,
                    "patient_phone": patient_data.value_of("phone"),
                    "referring_physician": referral_data.value_of("referring_physician") if referral_data else None,
                    "referring_facility": referral_data.value_of("referring_facility") if referral_data else None,
                    "reason_for_referral": referral_data.value_of("reason_for_referral") if referral_data else None,
                    "matched_patient_id": matched.id if matched else None,
                    "match_confidence": matched.match_score if matched else None,
                }

                completed = await asyncio.to_thread(
                    self._complete_referral, result, scan.id, ocr, bundle, referral_fields
                )
                if not completed:
                    raise ProcessingSupersededError(f"Result {result.id} was re-claimed before completion")
                log.info(
                    f"Referral scan {scan.id} processed via {bundle.method.value}; "
                    f"{'matched ' + matched.mrn if matched else 'no registry match'}"
                )

            except ProcessingSupersededError as e:
                log.warning(f"Abandoning run for referral scan {scan.id}: {e}")
            except Exception as e:
                log.error(f"Referral processing failed for scan {scan.id}: {e}", exc_info=True)
                await asyncio.to_thread(self._fail_referral, result, scan.id, str(e) or type(e).__name__)

    def _complete_referral(
        self,
        result: OcrResult,
        scan_id: str,
        ocr: OcrOutput,
        bundle: ExtractionBundle,
        referral_fields: Dict[str, object],
    ) -> bool:
        """Result and scan move to completed together, or not at all."""
        with self.db.transaction() as conn:
            completed = self.results.mark_completed(
                result.id,
                result.claim_id,
                raw_text=ocr.text,
                confidence_score=self._confidence(ocr, bundle),
                document_type=ocr.document_type.value,
                extracted_data=bundle.to_dict(),
                referral_fields=referral_fields,
                conn=conn,
            )
            if completed:
                self.results.set_referral_scan_status(scan_id, ProcessingStatus.COMPLETED, conn=conn)
        return completed

    def _fail_referral(self, result: OcrResult, scan_id: str, error_message: str):
        with self.db.transaction() as conn:
            if self.results.mark_failed(result.id, result.claim_id, error_message, conn=conn):
                self.results.set_referral_scan_status(scan_id, ProcessingStatus.FAILED, conn=conn)

    # ========================================================================
    # SHARED STEPS
    # ========================================================================

    def _run_slots(self) -> asyncio.Semaphore:
        # Built on first use so it belongs to the loop the runs execute on
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.settings.MAX_CONCURRENT_JOBS)
        return self._semaphore

    async def _heartbeat(self, result: OcrResult):
        """Refresh the claim before each step; stop if a newer run took it over."""
        if not await asyncio.to_thread(self.results.touch, result.id, result.claim_id):
            raise ProcessingSupersededError(f"Result {result.id} was re-claimed by a newer run")

    async def _ocr(self, file_path: Path, mime_type: Optional[str]) -> OcrOutput:
        if not file_path.exists():
            raise SourceFileMissingError(MISSING_FILE_MESSAGE)
        return await asyncio.to_thread(self.ocr_engine.process, file_path, mime_type)

    async def _extract(self, text: str, document_type: DocumentType) -> ExtractionBundle:
        """AI extraction when available and useful, regex otherwise."""
        if self.ai_extractor is not None:
            try:
                ai_result = await self.ai_extractor.extract(text)
                if ai_result.confidence > 0 and ai_result.has_identity:
                    bundle = ai_result.to_bundle(document_type)
                    if document_type == DocumentType.LAB_RESULT:
                        # The model isn't asked for lab panels
                        bundle.lab_data = self.field_extractor.extract_lab_data(text)
                    return bundle
                self.logger.warning("AI extraction found no patient name, falling back to regex")
            except Exception as e:
                self.logger.warning(f"AI extraction failed, falling back to regex: {e}")

        return await asyncio.to_thread(self.field_extractor.extract_all, text, document_type)

    @staticmethod
    def _confidence(ocr: OcrOutput, bundle: ExtractionBundle) -> float:
        if bundle.method == ExtractionMethod.AI and bundle.confidence is not None:
            return bundle.confidence
        return ocr.confidence

    # ========================================================================
    # BACKGROUND TASKS
    # ========================================================================

    def _spawn(self, key: SourceKey, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks[key] = task
        self._running.add(task)

        def _forget(finished: asyncio.Task):
            self._running.discard(finished)
            if self._tasks.get(key) is finished:
                del self._tasks[key]

        task.add_done_callback(_forget)
        return task

    async def wait_for(self, source_kind: SourceKind, source_id: str) -> Optional[OcrResult]:
        """Await this process's in-flight run for the source (if any), then return the stored result."""
        task = self._tasks.get((source_kind, source_id))
        if task is not None:
            await asyncio.shield(task)
        return await asyncio.to_thread(self.results.get_result_for_source, source_kind, source_id)

    async def drain(self):
        """Wait for every in-flight run started by this orchestrator, superseded ones included."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def close(self):
        await self.drain()
        if self.ai_extractor is not None:
            await self.ai_extractor.close()
