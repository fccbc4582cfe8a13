from __future__ import annotations

import unittest
from datetime import date

from app.services.scan_aggregator import (
    aggregate_punch_events,
    decode_scan_times,
    merge_scan_times,
    parse_calendar_date,
)
from app.services.scan_parser import (
    PunchEvent,
    parse_scan_log,
    parse_scan_summary_csv,
    summarize_punch_events,
    summary_rows_to_punch_events,
    validate_scan_summary_rows,
)


class ScanLogParserTests(unittest.TestCase):
    def test_parse_scan_log_reads_optional_fields_and_skips_short_lines(self) -> None:
        content = (
            "\ufeff1001 2026-03-02 08:05:12 0 1 0 0\n"
            "\n"
            "1001 2026-03-02\n"
            "1002   2026-03-02   17:00:00\n"
        )

        result = parse_scan_log(content)

        self.assertEqual(result.lines_read, 3)
        self.assertEqual(result.skipped_line_numbers, [3])
        self.assertEqual(result.skipped_lines, 1)
        self.assertEqual(len(result.events), 2)
        first = result.events[0]
        self.assertEqual(first.employee_code, "1001")
        self.assertEqual(first.timestamp, "2026-03-02 08:05:12")
        self.assertEqual(first.status, "0")
        self.assertEqual(first.reserved, "0")
        self.assertIsNone(result.events[1].verification_mode)

    def test_summarize_punch_events_counts_per_employee(self) -> None:
        events = parse_scan_log("A 2026-03-02 08:00\nA 2026-03-02 17:00\nB 2026-03-02 09:00\n").events

        summary = {item.employee_code: item.scans for item in summarize_punch_events(events)}

        self.assertEqual(summary, {"A": 2, "B": 1})


class ScanSummaryCsvTests(unittest.TestCase):
    def test_parse_and_validate_summary_rows(self) -> None:
        content = '1001,Ayse,Sales,2026-03-02,2,"08:00,17:00"\nshort,row\n'

        rows = parse_scan_summary_csv(content)

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].scan_times, ["08:00", "17:00"])
        self.assertEqual(validate_scan_summary_rows(rows), [])
        events = summary_rows_to_punch_events(rows)
        self.assertEqual([item.clock_time for item in events], ["08:00", "17:00"])

    def test_validate_summary_rows_reports_every_problem(self) -> None:
        rows = parse_scan_summary_csv('1001,Ayse,Sales,02.03.2026,3,"08:00,17:00"\n1002,Can,Ops,2026-03-02,0,\n')

        errors = validate_scan_summary_rows(rows)

        self.assertIn("Row 1: date must use YYYY-MM-DD", errors)
        self.assertIn("Row 1: number of scan times does not match scan count", errors)
        self.assertIn("Row 2: scan count must be greater than 0", errors)
        self.assertIn("Row 2: scan times are missing", errors)

    def test_validate_summary_rows_rejects_empty_file(self) -> None:
        self.assertEqual(validate_scan_summary_rows([]), ["CSV file contains no rows"])


class ScanAggregatorTests(unittest.TestCase):
    def test_aggregate_dedupes_sorts_and_truncates_seconds(self) -> None:
        events = [
            PunchEvent(employee_code="1001", calendar_date="2026-03-02", clock_time="17:00:59"),
            PunchEvent(employee_code="1001", calendar_date="2026-03-02", clock_time="8:05:10"),
            PunchEvent(employee_code="1001", calendar_date="2026-03-02", clock_time="08:05:40"),
            PunchEvent(employee_code="1001", calendar_date="2026/03/03", clock_time="09:00"),
        ]

        result = aggregate_punch_events(events, import_batch_id="batch-1")

        self.assertEqual(result.skipped_events, 0)
        self.assertEqual(len(result.day_sets), 2)
        first = result.day_sets[0]
        self.assertEqual(first.calendar_date, date(2026, 3, 2))
        self.assertEqual(first.times, ("08:05", "17:00"))
        self.assertEqual(first.scan_count, 2)
        self.assertEqual(first.import_batch_id, "batch-1")
        self.assertEqual(result.day_sets[1].calendar_date, date(2026, 3, 3))

    def test_aggregate_ignores_event_order_and_repeats(self) -> None:
        events = [
            PunchEvent(employee_code="1002", calendar_date="2026-03-02", clock_time="13:00"),
            PunchEvent(employee_code="1001", calendar_date="2026-03-02", clock_time="17:10"),
            PunchEvent(employee_code="1001", calendar_date="2026-03-02", clock_time="08:05"),
            PunchEvent(employee_code="1002", calendar_date="2026-03-02", clock_time="07:55"),
            PunchEvent(employee_code="1001", calendar_date="2026-03-02", clock_time="12:00"),
            PunchEvent(employee_code="1001", calendar_date="2026-03-03", clock_time="08:00"),
        ]
        shuffled = [events[4], events[0], events[5], events[2], events[2], events[1], events[3], events[4], events[1]]

        expected = aggregate_punch_events(events)
        result = aggregate_punch_events(shuffled)

        self.assertEqual(
            [(item.employee_code, item.calendar_date, item.times, item.scan_count) for item in result.day_sets],
            [(item.employee_code, item.calendar_date, item.times, item.scan_count) for item in expected.day_sets],
        )
        self.assertEqual(result.day_sets[0].times, ("08:05", "12:00", "17:10"))
        self.assertEqual(result.day_sets[0].scan_count, 3)

    def test_aggregate_skips_unparseable_events(self) -> None:
        events = [
            PunchEvent(employee_code="1001", calendar_date="not-a-date", clock_time="08:00"),
            PunchEvent(employee_code="1001", calendar_date="2026-03-02", clock_time="25:00"),
            PunchEvent(employee_code="", calendar_date="2026-03-02", clock_time="08:00"),
            PunchEvent(employee_code="1001", calendar_date="2026-03-02", clock_time="08:00"),
        ]

        result = aggregate_punch_events(events)

        self.assertEqual(result.skipped_events, 3)
        self.assertEqual([item.times for item in result.day_sets], [("08:00",)])

    def test_parse_calendar_date_formats(self) -> None:
        self.assertEqual(parse_calendar_date("02/03/2026"), date(2026, 3, 2))
        self.assertIsNone(parse_calendar_date("2026-13-01"))

    def test_merge_and_decode_scan_times(self) -> None:
        self.assertEqual(merge_scan_times(["08:00", "17:00"], ["12:00", "08:00:30"]), ["08:00", "12:00", "17:00"])
        self.assertEqual(decode_scan_times('["17:00", "08:00"]'), ["08:00", "17:00"])
        self.assertEqual(decode_scan_times("{broken"), [])
        self.assertEqual(decode_scan_times(None), [])


if __name__ == "__main__":
    unittest.main()
