#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.db import SessionLocal
from app.logging_utils import setup_json_logging
from app.services.scan_imports import import_scan_log, import_scan_summary_csv
from app.settings import get_settings


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import a fingerprint scanner export into attendance_scans.")
    parser.add_argument("path", type=Path, help="scanner .dat export or summary .csv file")
    parser.add_argument("--format", choices=("dat", "csv"), default="dat")
    parser.add_argument("--source", default=None, help="import source label (defaults to SCAN_IMPORT_SOURCE)")
    parser.add_argument("--encoding", default="utf-8-sig")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_json_logging(get_settings().log_level)
    content = args.path.read_text(encoding=args.encoding)

    db = SessionLocal()
    try:
        if args.format == "csv":
            summary = import_scan_summary_csv(db, content)
        else:
            summary = import_scan_log(db, content, import_source=args.source)
    finally:
        db.close()

    print(json.dumps(asdict(summary), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
