from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from io import BytesIO

from openpyxl import load_workbook

from app.models import WEEKDAY_ORDER, AttendanceStatus, Employee, ScopeLevel
from app.services.exports import RECORD_HEADERS, build_work_calculation_xlsx_bytes
from app.services.reconciliation import (
    AdjustmentSnapshot,
    WorkCalculationReport,
    reconcile_day,
    summarize_reconciled_days,
)
from app.services.scope_resolver import EmployeeOrg, ScopeAssignment
from app.services.shift_templates import BreakRule, DailyShiftTemplate, ShiftDefinition, WeeklyShiftTemplate


def _report() -> WorkCalculationReport:
    lunch = BreakRule.fixed(start_time="12:00", end_time="13:00")
    shift = ShiftDefinition(
        id=1,
        template=WeeklyShiftTemplate(
            name="Office",
            days=tuple(
                DailyShiftTemplate(day=day, start_time="08:00", end_time="17:00", break_rules=(lunch,))
                for day in WEEKDAY_ORDER
            ),
        ),
    )
    assignments = [ScopeAssignment(shift_id=1, level=ScopeLevel.BRANCH, branch_id=10)]
    employee = EmployeeOrg(employee_code="1001", employee_id=1, branch_id=10)
    days = [
        reconcile_day(
            employee,
            date(2026, 3, 2),
            ["08:05", "12:00", "13:00", "17:10"],
            shifts={1: shift},
            assignments=assignments,
        ),
        reconcile_day(
            employee,
            date(2026, 3, 3),
            [],
            shifts={1: shift},
            assignments=assignments,
            adjustment=AdjustmentSnapshot(
                status=AttendanceStatus.LEAVE,
                adjusted_by="supervisor",
                adjusted_at=datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc),
                notes="annual leave",
            ),
        ),
    ]
    return WorkCalculationReport(
        start_date=date(2026, 3, 2),
        end_date=date(2026, 3, 3),
        days=days,
        employees_by_code={"1001": Employee(id=1, employee_code="1001", full_name="Ayse Demir")},
        summary=summarize_reconciled_days(days),
        generated_at=datetime(2026, 3, 4, 8, 0, tzinfo=timezone.utc),
    )


class WorkCalculationExportTests(unittest.TestCase):
    def test_workbook_contains_records_and_summary(self) -> None:
        payload = build_work_calculation_xlsx_bytes(_report())

        workbook = load_workbook(BytesIO(payload))
        self.assertEqual(workbook.sheetnames, ["Work Calculation", "Summary"])

        sheet = workbook["Work Calculation"]
        self.assertEqual(sheet["A1"].value, "Work Calculation Report")
        self.assertEqual(sheet["A2"].value, "Start Date")
        self.assertEqual(sheet["B2"].value, "2026-03-02")
        header = [cell.value for cell in sheet[6]]
        self.assertEqual(header, RECORD_HEADERS)

        first = dict(zip(RECORD_HEADERS, [cell.value for cell in sheet[7]]))
        self.assertEqual(first["Employee Name"], "Ayse Demir")
        self.assertEqual(first["Check In"], "08:05")
        self.assertEqual(first["Shift Late"], 5)
        self.assertEqual(first["Overtime"], 10)
        self.assertEqual(first["Net Working"], "07:05")
        self.assertEqual(first["Source"], "DERIVED")
        self.assertEqual(first["Flags"], "-")

        second = dict(zip(RECORD_HEADERS, [cell.value for cell in sheet[8]]))
        self.assertEqual(second["Derived Status"], "ABSENT")
        self.assertEqual(second["Status"], "LEAVE")
        self.assertEqual(second["Source"], "ADJUSTMENT")
        self.assertEqual(second["Adjusted By"], "supervisor")
        self.assertEqual(second["Notes"], "annual leave")
        self.assertIn("NEEDS_MANUAL_INPUT", second["Flags"])

        summary = {row[0]: row[1] for row in workbook["Summary"].iter_rows(min_row=2, values_only=True)}
        self.assertEqual(summary["Records"], 2)
        self.assertEqual(summary["Adjusted"], 1)
        self.assertEqual(summary["Status LEAVE"], 1)
        self.assertEqual(summary["Status PRESENT"], 1)


if __name__ == "__main__":
    unittest.main()
