from __future__ import annotations

import csv
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from io import StringIO

logger = logging.getLogger("app.scan_import")

_BYTE_ORDER_MARK = "\ufeff"
_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MIN_PUNCH_FIELDS = 3


@dataclass(frozen=True, slots=True)
class PunchEvent:
    employee_code: str
    calendar_date: str
    clock_time: str
    status: str | None = None
    verification_mode: str | None = None
    work_code: str | None = None
    reserved: str | None = None

    @property
    def timestamp(self) -> str:
        return f"{self.calendar_date} {self.clock_time}".strip()


@dataclass(frozen=True, slots=True)
class ScanParseResult:
    events: list[PunchEvent]
    lines_read: int
    skipped_line_numbers: list[int] = field(default_factory=list)

    @property
    def skipped_lines(self) -> int:
        return len(self.skipped_line_numbers)


@dataclass(frozen=True, slots=True)
class PunchSummary:
    employee_code: str
    scans: int


@dataclass(frozen=True, slots=True)
class ScanSummaryRow:
    employee_code: str
    employee_name: str
    department: str
    scan_date: str
    scan_count: int
    scans: str

    @property
    def scan_times(self) -> list[str]:
        return [item.strip() for item in self.scans.split(",") if item.strip()]


def _strip_byte_order_mark(content: str) -> str:
    if content.startswith(_BYTE_ORDER_MARK):
        return content[len(_BYTE_ORDER_MARK):]
    return content


def parse_scan_log(content: str) -> ScanParseResult:
    """Parse a fingerprint scanner ``.dat`` export.

    Each non-blank line holds whitespace separated fields::

        employeeCode date time [status] [verifyMode] [workCode] [reserved]

    Lines with fewer than three fields are skipped and only counted. Field
    contents are not validated here, the aggregator decides what is usable.
    """
    events: list[PunchEvent] = []
    skipped: list[int] = []
    lines_read = 0

    for line_number, raw_line in enumerate(_strip_byte_order_mark(content).splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue
        lines_read += 1
        parts = line.split()
        if len(parts) < MIN_PUNCH_FIELDS:
            skipped.append(line_number)
            continue

        optional = parts[3:7] + [None] * (4 - len(parts[3:7]))
        events.append(
            PunchEvent(
                employee_code=parts[0],
                calendar_date=parts[1],
                clock_time=parts[2],
                status=optional[0],
                verification_mode=optional[1],
                work_code=optional[2],
                reserved=optional[3],
            )
        )

    if skipped:
        logger.warning(
            "scan_log_malformed_lines_skipped",
            extra={"skipped_lines": len(skipped), "first_skipped_line": skipped[0]},
        )
    return ScanParseResult(events=events, lines_read=lines_read, skipped_line_numbers=skipped)


def parse_punch_events(content: str) -> list[PunchEvent]:
    return parse_scan_log(content).events


def summarize_punch_events(events: list[PunchEvent]) -> list[PunchSummary]:
    counts = Counter(event.employee_code for event in events)
    return [PunchSummary(employee_code=code, scans=scans) for code, scans in counts.items()]


def parse_scan_summary_csv(content: str) -> list[ScanSummaryRow]:
    """Read the legacy per-day summary CSV: code,name,department,date,count,"t1,t2,..."."""
    rows: list[ScanSummaryRow] = []
    reader = csv.reader(StringIO(_strip_byte_order_mark(content)))
    for raw_row in reader:
        if len(raw_row) < 6:
            continue
        try:
            scan_count = int((raw_row[4] or "0").strip())
        except ValueError:
            scan_count = 0
        row = ScanSummaryRow(
            employee_code=raw_row[0].strip(),
            employee_name=raw_row[1].strip(),
            department=raw_row[2].strip(),
            scan_date=raw_row[3].strip(),
            scan_count=scan_count,
            scans=raw_row[5].strip(),
        )
        if row.employee_code and row.scan_date:
            rows.append(row)
    return rows


def validate_scan_summary_rows(rows: list[ScanSummaryRow]) -> list[str]:
    errors: list[str] = []
    if not rows:
        errors.append("CSV file contains no rows")
        return errors

    for index, row in enumerate(rows, start=1):
        if not row.employee_code:
            errors.append(f"Row {index}: employee code is missing")
        if not row.scan_date:
            errors.append(f"Row {index}: date is missing")
        elif not _ISO_DATE_PATTERN.match(row.scan_date):
            errors.append(f"Row {index}: date must use YYYY-MM-DD")
        if row.scan_count <= 0:
            errors.append(f"Row {index}: scan count must be greater than 0")
        if not row.scans:
            errors.append(f"Row {index}: scan times are missing")
        elif len(row.scans.split(",")) != row.scan_count:
            errors.append(f"Row {index}: number of scan times does not match scan count")
    return errors


def summary_rows_to_punch_events(rows: list[ScanSummaryRow]) -> list[PunchEvent]:
    return [
        PunchEvent(employee_code=row.employee_code, calendar_date=row.scan_date, clock_time=clock_time)
        for row in rows
        for clock_time in row.scan_times
    ]
