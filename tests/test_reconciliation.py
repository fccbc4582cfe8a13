from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from unittest.mock import patch

from app.models import (
    WEEKDAY_ORDER,
    AttendanceAdjustment,
    AttendanceScan,
    AttendanceStatus,
    Employee,
    ScopeLevel,
)
from app.services.reconciliation import (
    AdjustmentSnapshot,
    build_work_calculation_report,
    reconcile_day,
    reconcile_scan_sets,
    summarize_reconciled_days,
)
from app.services.scan_aggregator import DailyScanSet
from app.services.scope_resolver import EmployeeOrg, ScopeAssignment
from app.services.shift_config import ShiftCatalog
from app.services.shift_templates import BreakRule, DailyShiftTemplate, ShiftDefinition, WeeklyShiftTemplate

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)


def _office_shift(shift_id: int = 1, *, grace_minutes: int = 0) -> ShiftDefinition:
    lunch = BreakRule.fixed(start_time="12:00", end_time="13:00")
    template = WeeklyShiftTemplate(
        name="Office",
        days=tuple(
            DailyShiftTemplate(day=day, start_time="08:00", end_time="17:00", break_rules=(lunch,))
            for day in WEEKDAY_ORDER
        ),
    )
    return ShiftDefinition(id=shift_id, template=template, grace_minutes=grace_minutes)


SHIFTS = {1: _office_shift()}
ASSIGNMENTS = [ScopeAssignment(shift_id=1, level=ScopeLevel.BRANCH, branch_id=10)]
EMPLOYEE = EmployeeOrg(employee_code="1001", employee_id=1, zone_id=1, branch_id=10, department_id=100)
UNASSIGNED = EmployeeOrg(employee_code="2001", employee_id=2, branch_id=99)


def _snapshot(status: AttendanceStatus, **kwargs) -> AdjustmentSnapshot:  # type: ignore[no-untyped-def]
    return AdjustmentSnapshot(
        status=status,
        adjusted_by="supervisor",
        adjusted_at=datetime(2026, 3, 5, 9, 0, tzinfo=timezone.utc),
        **kwargs,
    )


class DeriveStatusTests(unittest.TestCase):
    def _day(self, employee: EmployeeOrg, times: list[str], **kwargs):  # type: ignore[no-untyped-def]
        return reconcile_day(employee, MONDAY, times, shifts=SHIFTS, assignments=ASSIGNMENTS, **kwargs)

    def test_complete_day_is_present(self) -> None:
        day = self._day(EMPLOYEE, ["08:05", "12:00", "13:00", "17:10"])

        self.assertEqual(day.derived_status, AttendanceStatus.PRESENT)
        self.assertFalse(day.needs_manual_input)
        self.assertEqual(day.shift.id if day.shift else None, 1)
        self.assertEqual(day.work.net_working_minutes, 425)
        self.assertEqual(day.authoritative_source, "DERIVED")
        self.assertEqual(day.late_minutes, 5)

    def test_shift_without_punches_is_absent(self) -> None:
        day = self._day(EMPLOYEE, [])

        self.assertEqual(day.status, AttendanceStatus.ABSENT)
        self.assertTrue(day.needs_manual_input)

    def test_missing_check_out_needs_manual_input(self) -> None:
        day = self._day(EMPLOYEE, ["08:00"])

        self.assertEqual(day.status, AttendanceStatus.PRESENT)
        self.assertTrue(day.needs_manual_input)
        self.assertTrue(day.work.missing_check_out)

    def test_no_shift_without_punches_is_day_off(self) -> None:
        day = self._day(UNASSIGNED, [])

        self.assertEqual(day.status, AttendanceStatus.DAY_OFF)
        self.assertFalse(day.needs_manual_input)
        self.assertFalse(day.work.shift_applies)

    def test_no_shift_with_punches_needs_manual_input(self) -> None:
        day = self._day(UNASSIGNED, ["09:00", "18:00"])

        self.assertEqual(day.status, AttendanceStatus.PRESENT)
        self.assertTrue(day.needs_manual_input)
        self.assertIsNone(day.shift)


class AdjustmentOverlayTests(unittest.TestCase):
    def test_adjustment_overrides_effective_values_only(self) -> None:
        adjustment = _snapshot(AttendanceStatus.LEAVE, notes="doctor visit")

        day = reconcile_day(
            EMPLOYEE,
            MONDAY,
            ["08:30", "17:00"],
            shifts=SHIFTS,
            assignments=ASSIGNMENTS,
            adjustment=adjustment,
        )

        self.assertEqual(day.status, AttendanceStatus.LEAVE)
        self.assertEqual(day.derived_status, AttendanceStatus.PRESENT)
        self.assertEqual(day.authoritative_source, "ADJUSTMENT")
        self.assertFalse(day.is_late)
        self.assertEqual(day.late_minutes, 0)
        self.assertEqual(day.work.shift_late_minutes, 30)
        self.assertEqual(day.notes, "doctor visit")

    def test_adjustment_late_minutes_apply_only_when_flagged(self) -> None:
        day = reconcile_day(
            EMPLOYEE,
            MONDAY,
            ["08:00", "17:00"],
            shifts=SHIFTS,
            assignments=ASSIGNMENTS,
            adjustment=_snapshot(AttendanceStatus.PRESENT, is_late=True, late_minutes=12),
        )

        self.assertTrue(day.is_late)
        self.assertEqual(day.late_minutes, 12)

    def test_reconcile_scan_sets_matches_overlays_by_employee_and_date(self) -> None:
        day_sets = [
            DailyScanSet(employee_code="1001", calendar_date=MONDAY, times=("08:00", "17:00"), import_batch_id="b1"),
            DailyScanSet(employee_code="1001", calendar_date=TUESDAY, times=("08:00", "17:00")),
            DailyScanSet(employee_code="9999", calendar_date=MONDAY, times=("08:00",)),
        ]
        overlays = {(1, TUESDAY): _snapshot(AttendanceStatus.HOLIDAY)}

        days = reconcile_scan_sets(
            day_sets,
            employees={"1001": EMPLOYEE},
            shifts=SHIFTS,
            assignments=ASSIGNMENTS,
            adjustments=overlays,
        )

        self.assertEqual([day.status for day in days], [AttendanceStatus.PRESENT, AttendanceStatus.HOLIDAY, AttendanceStatus.PRESENT])
        self.assertEqual(days[0].import_batch_id, "b1")
        self.assertIsNone(days[2].employee.employee_id)
        self.assertIsNone(days[2].shift)

        summary = summarize_reconciled_days(days)
        self.assertEqual(summary.total_adjusted, 1)
        self.assertEqual(summary.total_needs_manual_input, 1)
        self.assertEqual(summary.total_missing_check_out, 0)
        self.assertEqual(summary.total_missing_break, 1)
        self.assertEqual(summary.total_working_minutes, 480)
        self.assertEqual(summary.total_working_hours, 8.0)
        self.assertEqual(summary.status_counts, {"HOLIDAY": 1, "PRESENT": 2})


class _ScalarRows:
    def __init__(self, rows):
        self._rows = rows

    def all(self):
        return self._rows


class _FakeReportDB:
    def __init__(self, *, scans, adjustments, employees):  # type: ignore[no-untyped-def]
        self._results = [scans, adjustments, employees]

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        return _ScalarRows(self._results.pop(0))


class WorkCalculationReportTests(unittest.TestCase):
    def setUp(self) -> None:
        self.employee = Employee(
            id=1,
            employee_code="1001",
            full_name="Ayse Demir",
            zone_id=1,
            branch_id=10,
            department_id=100,
            is_active=True,
        )
        self.scan = AttendanceScan(
            id=1,
            employee_code="1001",
            scan_date=MONDAY,
            scan_times=["08:05", "12:00", "13:00", "17:10"],
            scan_count=4,
            import_source="fingerprint_dat",
            import_batch_id="batch-1",
        )
        self.adjustment = AttendanceAdjustment(
            id=5,
            employee_id=1,
            day_date=TUESDAY,
            status=AttendanceStatus.DAY_OFF,
            notes=None,
            is_late=False,
            late_minutes=0,
            shift_id=None,
            adjusted_by="supervisor",
            adjusted_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        )

    def _build(self, *, search: str | None = None):  # type: ignore[no-untyped-def]
        fake_db = _FakeReportDB(scans=[self.scan], adjustments=[self.adjustment], employees=[self.employee])
        catalog = ShiftCatalog(shifts=SHIFTS, assignments=ASSIGNMENTS)
        with patch("app.services.reconciliation.load_shift_catalog", return_value=catalog):
            return build_work_calculation_report(
                fake_db,  # type: ignore[arg-type]
                start_date=MONDAY,
                end_date=TUESDAY,
                search=search,
            )

    def test_report_includes_adjustment_only_days(self) -> None:
        report = self._build()

        self.assertEqual([day.calendar_date for day in report.days], [MONDAY, TUESDAY])
        monday, tuesday = report.days
        self.assertEqual(monday.work.net_working_minutes, 425)
        self.assertEqual(monday.import_batch_id, "batch-1")
        self.assertEqual(tuesday.scan_times, ())
        self.assertEqual(tuesday.status, AttendanceStatus.DAY_OFF)
        self.assertEqual(tuesday.derived_status, AttendanceStatus.ABSENT)
        self.assertEqual(tuesday.adjustment.id if tuesday.adjustment else None, 5)
        self.assertEqual(report.summary.total_adjusted, 1)
        self.assertIs(report.employees_by_code["1001"], self.employee)

    def _build_for(self, *, scans, adjustments, start_date=MONDAY, end_date=MONDAY, employees=None):  # type: ignore[no-untyped-def]
        fake_db = _FakeReportDB(
            scans=scans,
            adjustments=adjustments,
            employees=[self.employee] if employees is None else employees,
        )
        catalog = ShiftCatalog(shifts=SHIFTS, assignments=ASSIGNMENTS)
        with patch("app.services.reconciliation.load_shift_catalog", return_value=catalog):
            return build_work_calculation_report(
                fake_db,  # type: ignore[arg-type]
                start_date=start_date,
                end_date=end_date,
            )

    def test_adjusted_day_is_not_counted_as_needing_review(self) -> None:
        report = self._build_for(scans=[], adjustments=[self.adjustment], start_date=TUESDAY, end_date=TUESDAY)

        self.assertEqual(len(report.days), 1)
        day = report.days[0]
        self.assertTrue(day.needs_manual_input)
        self.assertTrue(day.work.missing_check_in)
        self.assertFalse(day.awaiting_review)
        self.assertEqual(report.summary.total_needs_manual_input, 0)
        self.assertEqual(report.summary.total_missing_check_in, 0)
        self.assertEqual(report.summary.total_missing_check_out, 0)
        self.assertEqual(report.summary.total_working_minutes, 0)
        self.assertEqual(report.summary.total_adjusted, 1)

    def test_scheduled_employee_without_scans_is_reported_absent(self) -> None:
        report = self._build_for(scans=[], adjustments=[])

        self.assertEqual(len(report.days), 1)
        day = report.days[0]
        self.assertEqual(day.employee.employee_code, "1001")
        self.assertEqual(day.calendar_date, MONDAY)
        self.assertEqual(day.scan_times, ())
        self.assertEqual(day.status, AttendanceStatus.ABSENT)
        self.assertTrue(day.needs_manual_input)
        self.assertEqual(report.summary.total_needs_manual_input, 1)
        self.assertEqual(report.summary.status_counts, {"ABSENT": 1})

    def test_unscheduled_or_inactive_employees_get_no_absent_rows(self) -> None:
        outside = Employee(id=2, employee_code="2001", full_name="Can Yilmaz", branch_id=99, is_active=True)
        self.employee.is_active = False

        report = self._build_for(scans=[], adjustments=[], employees=[self.employee, outside])

        self.assertEqual(report.days, [])

    def test_search_filters_by_name(self) -> None:
        self.assertEqual(len(self._build(search="  ayse ").days), 2)
        self.assertEqual(self._build(search="nobody").days, [])


if __name__ == "__main__":
    unittest.main()
