from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import ApiError
from app.models import AttendanceScan
from app.services.scan_aggregator import DailyScanSet, aggregate_punch_events, decode_scan_times, merge_scan_times
from app.services.scan_parser import (
    PunchSummary,
    ScanParseResult,
    parse_scan_log,
    parse_scan_summary_csv,
    summarize_punch_events,
    summary_rows_to_punch_events,
    validate_scan_summary_rows,
)
from app.settings import get_settings

logger = logging.getLogger("app.scan_import")

SUMMARY_CSV_SOURCE = "summary_csv"


@dataclass(frozen=True, slots=True)
class ImportSummary:
    import_batch_id: str
    import_source: str
    lines_read: int
    events_parsed: int
    malformed_lines_skipped: int
    unparseable_punches_skipped: int
    day_sets: int
    rows_created: int
    rows_updated: int


@dataclass(frozen=True, slots=True)
class ScanPreview:
    parse_result: ScanParseResult
    employees: list[PunchSummary]


def new_import_batch_id() -> str:
    return uuid.uuid4().hex


def _ensure_import_size(content: str) -> None:
    limit = get_settings().max_import_bytes
    if len(content.encode("utf-8")) > limit:
        raise ApiError(
            status_code=413,
            code="IMPORT_TOO_LARGE",
            message=f"Import content exceeds {limit} bytes.",
        )


def persist_day_sets(
    db: Session,
    day_sets: Sequence[DailyScanSet],
    *,
    import_source: str,
    import_batch_id: str,
) -> tuple[int, int]:
    """Upsert one row per (employee_code, date); re-imports merge time sets."""
    if not day_sets:
        return 0, 0

    codes = {item.employee_code for item in day_sets}
    first_day = min(item.calendar_date for item in day_sets)
    last_day = max(item.calendar_date for item in day_sets)
    existing_rows = db.scalars(
        select(AttendanceScan).where(
            AttendanceScan.employee_code.in_(codes),
            AttendanceScan.scan_date >= first_day,
            AttendanceScan.scan_date <= last_day,
        )
    ).all()
    existing = {(row.employee_code, row.scan_date): row for row in existing_rows}

    now_utc = datetime.now(timezone.utc)
    created = 0
    updated = 0
    for day_set in day_sets:
        row = existing.get((day_set.employee_code, day_set.calendar_date))
        if row is None:
            row = AttendanceScan(
                employee_code=day_set.employee_code,
                scan_date=day_set.calendar_date,
                scan_times=day_set.times_json(),
                scan_count=day_set.scan_count,
                import_source=import_source,
                import_batch_id=import_batch_id,
                imported_at=now_utc,
            )
            db.add(row)
            existing[(day_set.employee_code, day_set.calendar_date)] = row
            created += 1
            continue

        merged = merge_scan_times(decode_scan_times(row.scan_times), day_set.times)
        row.scan_times = merged
        row.scan_count = len(merged)
        row.import_source = import_source
        row.import_batch_id = import_batch_id
        row.imported_at = now_utc
        updated += 1

    db.commit()
    return created, updated


def import_scan_log(
    db: Session,
    content: str,
    *,
    import_source: str | None = None,
    import_batch_id: str | None = None,
) -> ImportSummary:
    _ensure_import_size(content)
    source = (import_source or "").strip() or get_settings().scan_import_source
    batch_id = import_batch_id or new_import_batch_id()

    parsed = parse_scan_log(content)
    aggregated = aggregate_punch_events(parsed.events, import_batch_id=batch_id)
    created, updated = persist_day_sets(
        db,
        aggregated.day_sets,
        import_source=source,
        import_batch_id=batch_id,
    )

    summary = ImportSummary(
        import_batch_id=batch_id,
        import_source=source,
        lines_read=parsed.lines_read,
        events_parsed=len(parsed.events),
        malformed_lines_skipped=parsed.skipped_lines,
        unparseable_punches_skipped=aggregated.skipped_events,
        day_sets=len(aggregated.day_sets),
        rows_created=created,
        rows_updated=updated,
    )
    logger.info(
        "scan_import_completed",
        extra={
            "import_batch_id": batch_id,
            "import_source": source,
            "events_parsed": summary.events_parsed,
            "day_sets": summary.day_sets,
            "rows_created": created,
            "rows_updated": updated,
        },
    )
    return summary


def import_scan_summary_csv(
    db: Session,
    content: str,
    *,
    import_batch_id: str | None = None,
) -> ImportSummary:
    _ensure_import_size(content)
    rows = parse_scan_summary_csv(content)
    errors = validate_scan_summary_rows(rows)
    if errors:
        raise ApiError(
            status_code=422,
            code="SCAN_SUMMARY_INVALID",
            message="Scan summary CSV is invalid.",
            details={"errors": errors},
        )

    batch_id = import_batch_id or new_import_batch_id()
    events = summary_rows_to_punch_events(rows)
    aggregated = aggregate_punch_events(events, import_batch_id=batch_id)
    created, updated = persist_day_sets(
        db,
        aggregated.day_sets,
        import_source=SUMMARY_CSV_SOURCE,
        import_batch_id=batch_id,
    )
    logger.info(
        "scan_summary_import_completed",
        extra={"import_batch_id": batch_id, "rows": len(rows), "rows_created": created, "rows_updated": updated},
    )
    return ImportSummary(
        import_batch_id=batch_id,
        import_source=SUMMARY_CSV_SOURCE,
        lines_read=len(rows),
        events_parsed=len(events),
        malformed_lines_skipped=0,
        unparseable_punches_skipped=aggregated.skipped_events,
        day_sets=len(aggregated.day_sets),
        rows_created=created,
        rows_updated=updated,
    )


def preview_scan_log(content: str) -> ScanPreview:
    _ensure_import_size(content)
    parsed = parse_scan_log(content)
    return ScanPreview(parse_result=parsed, employees=summarize_punch_events(parsed.events))
