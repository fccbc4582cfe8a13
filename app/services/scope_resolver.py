from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from app.models import DayOfWeek, ScopeLevel
from app.services.shift_templates import DailyShiftTemplate, ShiftDefinition

logger = logging.getLogger("app.reconciliation")

_LEVEL_PRIORITY: dict[ScopeLevel, int] = {
    ScopeLevel.DEPARTMENT: 300,
    ScopeLevel.BRANCH: 200,
    ScopeLevel.ZONE: 100,
}


@dataclass(frozen=True, slots=True)
class EmployeeOrg:
    employee_code: str
    employee_id: int | None = None
    zone_id: int | None = None
    branch_id: int | None = None
    department_id: int | None = None


@dataclass(frozen=True, slots=True)
class ScopeAssignment:
    shift_id: int
    level: ScopeLevel
    zone_id: int | None = None
    branch_id: int | None = None
    department_id: int | None = None

    @property
    def target(self) -> tuple[ScopeLevel, int | None, int | None, int | None]:
        if self.level == ScopeLevel.ZONE:
            return (self.level, self.zone_id, None, None)
        if self.level == ScopeLevel.BRANCH:
            return (self.level, None, self.branch_id, None)
        return (self.level, None, self.branch_id, self.department_id)


@dataclass(frozen=True, slots=True)
class ResolvedShiftDay:
    shift: ShiftDefinition
    day: DailyShiftTemplate
    level: ScopeLevel


def assignment_matches_employee(assignment: ScopeAssignment, employee: EmployeeOrg) -> bool:
    if assignment.level == ScopeLevel.ZONE:
        return employee.zone_id is not None and employee.zone_id == assignment.zone_id
    if assignment.level == ScopeLevel.BRANCH:
        return employee.branch_id is not None and employee.branch_id == assignment.branch_id
    if assignment.level == ScopeLevel.DEPARTMENT:
        return (
            employee.branch_id is not None
            and employee.department_id is not None
            and employee.branch_id == assignment.branch_id
            and employee.department_id == assignment.department_id
        )
    return False


def resolve_employees_for_scope(
    employees: Iterable[EmployeeOrg],
    assignment: ScopeAssignment,
) -> list[EmployeeOrg]:
    return [employee for employee in employees if assignment_matches_employee(assignment, employee)]


def find_scope_conflicts(assignments: Iterable[ScopeAssignment]) -> list[str]:
    """Targets bound to more than one shift at the same level."""
    shifts_by_target: dict[tuple, set[int]] = defaultdict(set)
    for assignment in assignments:
        shifts_by_target[assignment.target].add(assignment.shift_id)

    conflicts: list[str] = []
    for target, shift_ids in shifts_by_target.items():
        if len(shift_ids) > 1:
            level, zone_id, branch_id, department_id = target
            conflicts.append(
                f"{level.value} scope (zone={zone_id}, branch={branch_id}, department={department_id}) "
                f"is assigned to shifts {sorted(shift_ids)}"
            )
    return conflicts


def resolve_shift_id_for_employee(
    employee: EmployeeOrg,
    assignments: Iterable[ScopeAssignment],
) -> tuple[int, ScopeLevel] | None:
    """Pick the single applicable shift: DEPARTMENT beats BRANCH beats ZONE.

    A tie inside the most specific level is a configuration conflict; it is
    resolved by the lowest shift id and logged.
    """
    applicable = [item for item in assignments if assignment_matches_employee(item, employee)]
    if not applicable:
        return None

    applicable.sort(key=lambda item: (-_LEVEL_PRIORITY[item.level], item.shift_id))
    best = applicable[0]
    tied_shift_ids = {
        item.shift_id
        for item in applicable
        if item.level == best.level
    }
    if len(tied_shift_ids) > 1:
        logger.warning(
            "scope_resolution_tie",
            extra={
                "employee_code": employee.employee_code,
                "level": best.level.value,
                "shift_ids": sorted(tied_shift_ids),
                "selected_shift_id": best.shift_id,
            },
        )
    return best.shift_id, best.level


def resolve_shift_for_employee_day(
    employee: EmployeeOrg | None,
    weekday: DayOfWeek,
    *,
    shifts: Mapping[int, ShiftDefinition],
    assignments: Iterable[ScopeAssignment],
) -> ResolvedShiftDay | None:
    if employee is None:
        return None
    active_assignments = [
        item
        for item in assignments
        if item.shift_id in shifts and shifts[item.shift_id].is_active
    ]
    resolved = resolve_shift_id_for_employee(employee, active_assignments)
    if resolved is None:
        return None

    shift_id, level = resolved
    shift = shifts[shift_id]
    day = shift.day_for(weekday)
    if day is None:
        return None
    return ResolvedShiftDay(shift=shift, day=day, level=level)
