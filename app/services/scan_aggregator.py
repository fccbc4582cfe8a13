from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime

from app.services.clock_time import normalize_clock_time
from app.services.scan_parser import PunchEvent

logger = logging.getLogger("app.scan_import")

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y")


@dataclass(frozen=True, slots=True)
class DailyScanSet:
    employee_code: str
    calendar_date: date
    times: tuple[str, ...]
    import_batch_id: str | None = None

    @property
    def scan_count(self) -> int:
        return len(self.times)

    def times_json(self) -> list[str]:
        return list(self.times)


@dataclass(frozen=True, slots=True)
class AggregationResult:
    day_sets: list[DailyScanSet]
    skipped_events: int


def parse_calendar_date(value: str) -> date | None:
    raw = (value or "").strip()
    for date_format in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, date_format).date()
        except ValueError:
            continue
    return None


def distinct_sorted_times(values: Iterable[str]) -> list[str]:
    # Zero padded HH:MM strings sort chronologically.
    normalized = {item for item in (normalize_clock_time(value) for value in values) if item is not None}
    return sorted(normalized)


def aggregate_punch_events(
    events: Iterable[PunchEvent],
    *,
    import_batch_id: str | None = None,
) -> AggregationResult:
    grouped: dict[tuple[str, date], set[str]] = defaultdict(set)
    skipped_events = 0

    for event in events:
        day_value = parse_calendar_date(event.calendar_date)
        clock_time = normalize_clock_time(event.clock_time)
        if day_value is None or clock_time is None or not event.employee_code:
            skipped_events += 1
            continue
        grouped[(event.employee_code, day_value)].add(clock_time)

    if skipped_events:
        logger.warning("punch_events_unparseable_skipped", extra={"skipped_events": skipped_events})

    day_sets = [
        DailyScanSet(
            employee_code=employee_code,
            calendar_date=day_value,
            times=tuple(sorted(times)),
            import_batch_id=import_batch_id,
        )
        for (employee_code, day_value), times in sorted(grouped.items())
    ]
    return AggregationResult(day_sets=day_sets, skipped_events=skipped_events)


def merge_scan_times(existing: Iterable[str], incoming: Iterable[str]) -> list[str]:
    return distinct_sorted_times([*existing, *incoming])


def decode_scan_times(raw: object) -> list[str]:
    """Read a persisted time list, tolerating JSON text and stray values."""
    values: object = raw
    if isinstance(raw, str):
        try:
            values = json.loads(raw)
        except ValueError:
            logger.warning("scan_times_decode_failed")
            return []
    if not isinstance(values, list):
        return []
    return distinct_sorted_times(str(item) for item in values)
