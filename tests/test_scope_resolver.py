from __future__ import annotations

import unittest

from app.models import WEEKDAY_ORDER, DayOfWeek, ScopeLevel
from app.services.scope_resolver import (
    EmployeeOrg,
    ScopeAssignment,
    find_scope_conflicts,
    resolve_employees_for_scope,
    resolve_shift_for_employee_day,
    resolve_shift_id_for_employee,
)
from app.services.shift_templates import DailyShiftTemplate, ShiftDefinition, WeeklyShiftTemplate


def _shift(shift_id: int, *, is_active: bool = True, days: tuple[DayOfWeek, ...] = WEEKDAY_ORDER) -> ShiftDefinition:
    template = WeeklyShiftTemplate(
        name=f"Shift {shift_id}",
        days=tuple(DailyShiftTemplate(day=day, start_time="08:00", end_time="17:00") for day in days),
    )
    return ShiftDefinition(id=shift_id, template=template, is_active=is_active)


EMPLOYEE = EmployeeOrg(employee_code="1001", employee_id=1, zone_id=1, branch_id=10, department_id=100)


class ScopeResolverTests(unittest.TestCase):
    def test_department_beats_branch_beats_zone(self) -> None:
        assignments = [
            ScopeAssignment(shift_id=1, level=ScopeLevel.ZONE, zone_id=1),
            ScopeAssignment(shift_id=2, level=ScopeLevel.BRANCH, branch_id=10),
            ScopeAssignment(shift_id=3, level=ScopeLevel.DEPARTMENT, branch_id=10, department_id=100),
        ]

        self.assertEqual(resolve_shift_id_for_employee(EMPLOYEE, assignments), (3, ScopeLevel.DEPARTMENT))
        self.assertEqual(resolve_shift_id_for_employee(EMPLOYEE, assignments[:2]), (2, ScopeLevel.BRANCH))
        self.assertEqual(resolve_shift_id_for_employee(EMPLOYEE, assignments[:1]), (1, ScopeLevel.ZONE))

    def test_department_scope_requires_matching_branch(self) -> None:
        assignments = [ScopeAssignment(shift_id=3, level=ScopeLevel.DEPARTMENT, branch_id=11, department_id=100)]

        self.assertIsNone(resolve_shift_id_for_employee(EMPLOYEE, assignments))

    def test_tie_at_same_level_picks_lowest_shift_id(self) -> None:
        assignments = [
            ScopeAssignment(shift_id=7, level=ScopeLevel.BRANCH, branch_id=10),
            ScopeAssignment(shift_id=4, level=ScopeLevel.BRANCH, branch_id=10),
        ]

        with self.assertLogs("app.reconciliation", level="WARNING") as logs:
            resolved = resolve_shift_id_for_employee(EMPLOYEE, assignments)

        self.assertEqual(resolved, (4, ScopeLevel.BRANCH))
        self.assertTrue(any("scope_resolution_tie" in line for line in logs.output))

    def test_inactive_shift_is_ignored(self) -> None:
        shifts = {1: _shift(1), 2: _shift(2, is_active=False)}
        assignments = [
            ScopeAssignment(shift_id=1, level=ScopeLevel.ZONE, zone_id=1),
            ScopeAssignment(shift_id=2, level=ScopeLevel.DEPARTMENT, branch_id=10, department_id=100),
        ]

        resolved = resolve_shift_for_employee_day(
            EMPLOYEE,
            DayOfWeek.MON,
            shifts=shifts,
            assignments=assignments,
        )

        self.assertIsNotNone(resolved)
        assert resolved is not None
        self.assertEqual(resolved.shift.id, 1)
        self.assertEqual(resolved.level, ScopeLevel.ZONE)
        self.assertEqual(resolved.day.day, DayOfWeek.MON)

    def test_weekday_without_template_resolves_to_none(self) -> None:
        shifts = {1: _shift(1, days=(DayOfWeek.MON,))}
        assignments = [ScopeAssignment(shift_id=1, level=ScopeLevel.ZONE, zone_id=1)]

        self.assertIsNone(
            resolve_shift_for_employee_day(EMPLOYEE, DayOfWeek.SUN, shifts=shifts, assignments=assignments)
        )
        self.assertIsNone(resolve_shift_for_employee_day(None, DayOfWeek.MON, shifts=shifts, assignments=assignments))

    def test_resolve_employees_and_conflicts(self) -> None:
        other = EmployeeOrg(employee_code="1002", zone_id=2, branch_id=20)
        assignment = ScopeAssignment(shift_id=1, level=ScopeLevel.ZONE, zone_id=1)

        self.assertEqual(resolve_employees_for_scope([EMPLOYEE, other], assignment), [EMPLOYEE])

        conflicts = find_scope_conflicts(
            [
                assignment,
                ScopeAssignment(shift_id=2, level=ScopeLevel.ZONE, zone_id=1),
                ScopeAssignment(shift_id=2, level=ScopeLevel.BRANCH, branch_id=10),
            ]
        )
        self.assertEqual(len(conflicts), 1)
        self.assertIn("ZONE scope", conflicts[0])
        self.assertIn("[1, 2]", conflicts[0])


if __name__ == "__main__":
    unittest.main()
