#!/usr/bin/env python3
"""
Document Intake command line

Usage:
    document-intake init-db
    document-intake extract letter.txt --type referral
    document-intake process scan.pdf --patient-id <id>
    document-intake process-referral referral.pdf --uploaded-by <user>
"""

import argparse
import asyncio
import json
import mimetypes
import sys
from pathlib import Path

from .config import base_settings, logging_settings
from .core import Database
from .core.context import SourceKind
from .core.orchestrator import DocumentProcessingOrchestrator
from .constants import DocumentType
from .extractors import FieldExtractionEngine
from .utils.exceptions import DocumentIntakeError
from .utils.logging import setup_logging


def _mime_type(path: Path) -> str:
    return mimetypes.guess_type(path.name)[0] or "application/octet-stream"


def cmd_init_db(args) -> int:
    base_settings.create_directories()
    db = Database(args.db)
    print(f"Database ready: {db.db_path}")
    return 0


def cmd_extract(args) -> int:
    text = Path(args.text_file).read_text(encoding="utf-8")
    bundle = FieldExtractionEngine().extract_all(text, args.type)
    print(json.dumps(bundle.to_dict(), indent=2))
    return 0


async def _process(args, kind: SourceKind) -> dict:
    path = Path(args.file).resolve()
    orchestrator = DocumentProcessingOrchestrator.from_settings(Database(args.db))
    try:
        if kind == SourceKind.DOCUMENT:
            document = orchestrator.register_document(
                args.patient_id, str(path), path.name, _mime_type(path)
            )
            await orchestrator.trigger_processing(document.id)
            source_id = document.id
        else:
            scan = await orchestrator.submit_referral_scan(
                args.uploaded_by, str(path), path.name, _mime_type(path), path.stat().st_size
            )
            source_id = scan.id

        result = await orchestrator.wait_for(kind, source_id)
        output = result.to_dict()
        if kind == SourceKind.DOCUMENT:
            output["field_mappings"] = [m.to_dict() for m in orchestrator.results.list_mappings(result.id)]
        return output
    finally:
        await orchestrator.close()


def cmd_process(args) -> int:
    output = asyncio.run(_process(args, SourceKind.DOCUMENT))
    print(json.dumps(output, indent=2, default=str))
    return 0 if output["processing_status"] == "completed" else 1


def cmd_process_referral(args) -> int:
    output = asyncio.run(_process(args, SourceKind.REFERRAL_SCAN))
    print(json.dumps(output, indent=2, default=str))
    return 0 if output["processing_status"] == "completed" else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="document-intake",
        description="OCR field extraction and patient matching for clinical documents",
    )
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path (default: DATABASE_PATH)")
    parser.add_argument("--log-level", default=logging_settings.LOG_LEVEL, help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create the database and data directories")
    init_db.set_defaults(func=cmd_init_db)

    extract = subparsers.add_parser("extract", help="Run rule-based extraction on a text file")
    extract.add_argument("text_file", help="OCR text file")
    extract.add_argument(
        "--type",
        choices=[t.value for t in DocumentType],
        default=DocumentType.UNKNOWN.value,
        help="Document type (decides referral/lab extraction)",
    )
    extract.set_defaults(func=cmd_extract)

    process = subparsers.add_parser("process", help="OCR a patient document and create field mappings")
    process.add_argument("file", help="PDF or image")
    process.add_argument("--patient-id", required=True, help="Owning patient")
    process.set_defaults(func=cmd_process)

    referral = subparsers.add_parser("process-referral", help="OCR a referral letter and match the patient")
    referral.add_argument("file", help="PDF or image")
    referral.add_argument("--uploaded-by", default="cli", help="Uploader recorded on the scan")
    referral.set_defaults(func=cmd_process_referral)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        setup_logging(
            level=args.log_level,
            log_file=logging_settings.LOG_FILE,
            format_json=logging_settings.LOG_JSON,
        )
        return args.func(args)
    except DocumentIntakeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
