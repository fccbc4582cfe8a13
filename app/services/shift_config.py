from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.errors import ApiError, ScopeAssignmentInvalidError, ShiftTemplateInvalidError
from app.models import (
    Branch,
    BreakRuleType,
    DayOfWeek,
    Department,
    ScopeLevel,
    Shift,
    ShiftBreakRule,
    ShiftDay,
    ShiftScopeAssignment,
    Zone,
)
from app.schemas import ScopeAssignmentPayload, ShiftUpsertRequest
from app.services.clock_time import clock_from_time, time_from_clock
from app.services.scope_resolver import EmployeeOrg, ScopeAssignment, resolve_employees_for_scope
from app.services.shift_templates import (
    BreakRule,
    DailyShiftTemplate,
    ShiftDefinition,
    WeeklyShiftTemplate,
    ensure_valid_weekly_template,
    validate_weekly_template,
)
from app.settings import get_settings

logger = logging.getLogger("app.shift_config")


@dataclass(frozen=True, slots=True)
class ShiftCatalog:
    shifts: dict[int, ShiftDefinition]
    assignments: list[ScopeAssignment]


@dataclass(frozen=True, slots=True)
class ScopeSimulation:
    assignment: ScopeAssignment
    employee_codes: list[str]


def _parse_weekday(raw: str | None) -> DayOfWeek | None:
    normalized = (raw or "").strip().upper()
    try:
        return DayOfWeek(normalized)
    except ValueError:
        return None


def _normalize_break_rule(rule_payload, day: DayOfWeek, index: int, errors: list[str]) -> BreakRule | None:
    row = index + 1
    if rule_payload.type is None:
        errors.append(f"{day.value} break {row}: break type is required")
        return None
    if not rule_payload.start_time or not rule_payload.end_time:
        errors.append(f"{day.value} break {row}: break window start and end are required")
        return None

    if rule_payload.type == BreakRuleType.DURATION:
        if rule_payload.minutes is None:
            errors.append(f"{day.value} break {row}: break minutes are required")
            return None
        return BreakRule.duration(
            minutes=rule_payload.minutes,
            start_time=rule_payload.start_time,
            end_time=rule_payload.end_time,
        )
    return BreakRule.fixed(start_time=rule_payload.start_time, end_time=rule_payload.end_time)


def build_weekly_template(payload: ShiftUpsertRequest) -> tuple[WeeklyShiftTemplate, list[str]]:
    """Convert a payload into a template plus every problem found along the way."""
    errors: list[str] = []
    if not payload.days:
        errors.append("At least one working day must be defined")

    days: list[DailyShiftTemplate] = []
    for day_index, day_payload in enumerate(payload.days, start=1):
        weekday = _parse_weekday(day_payload.day)
        if weekday is None:
            errors.append(f"Day entry {day_index}: unknown weekday {day_payload.day!r}")
            continue
        if not day_payload.start_time or not day_payload.end_time:
            errors.append(f"{weekday.value}: start and end time are required")
            continue
        break_rules = [
            rule
            for rule in (
                _normalize_break_rule(rule_payload, weekday, rule_index, errors)
                for rule_index, rule_payload in enumerate(day_payload.break_rules)
            )
            if rule is not None
        ]
        days.append(
            DailyShiftTemplate(
                day=weekday,
                start_time=day_payload.start_time,
                end_time=day_payload.end_time,
                break_rules=tuple(break_rules),
            )
        )

    template = WeeklyShiftTemplate(name=payload.name.strip() or "Shift Template", days=tuple(days))
    errors.extend(validate_weekly_template(template))
    return template, errors


def normalize_weekly_template(payload: ShiftUpsertRequest) -> WeeklyShiftTemplate:
    template, errors = build_weekly_template(payload)
    if errors:
        raise ShiftTemplateInvalidError(errors)
    return template


def normalize_scope_payloads(
    payloads: Iterable[ScopeAssignmentPayload],
    *,
    shift_id: int = 0,
) -> list[ScopeAssignment]:
    normalized: list[ScopeAssignment] = []
    seen: set[tuple] = set()
    for index, payload in enumerate(payloads, start=1):
        if payload.level is None:
            raise ScopeAssignmentInvalidError(f"Scope entry {index}: level is required")

        if payload.level == ScopeLevel.ZONE:
            if payload.zone_id is None:
                raise ScopeAssignmentInvalidError(f"Scope entry {index}: zone is required")
            assignment = ScopeAssignment(shift_id=shift_id, level=payload.level, zone_id=payload.zone_id)
        elif payload.level == ScopeLevel.BRANCH:
            if payload.branch_id is None:
                raise ScopeAssignmentInvalidError(f"Scope entry {index}: branch is required")
            assignment = ScopeAssignment(shift_id=shift_id, level=payload.level, branch_id=payload.branch_id)
        else:
            if payload.branch_id is None or payload.department_id is None:
                raise ScopeAssignmentInvalidError(f"Scope entry {index}: branch and department are required")
            assignment = ScopeAssignment(
                shift_id=shift_id,
                level=payload.level,
                branch_id=payload.branch_id,
                department_id=payload.department_id,
            )

        if assignment.target in seen:
            raise ScopeAssignmentInvalidError(f"Scope entry {index}: duplicate scope assignment")
        seen.add(assignment.target)
        normalized.append(assignment)
    return normalized


def validate_scope_targets(db: Session, assignments: list[ScopeAssignment]) -> None:
    zone_ids = {item.zone_id for item in assignments if item.zone_id is not None}
    branch_ids = {item.branch_id for item in assignments if item.branch_id is not None}
    department_ids = {item.department_id for item in assignments if item.department_id is not None}

    zones = {zone.id for zone in db.scalars(select(Zone).where(Zone.id.in_(zone_ids))).all()} if zone_ids else set()
    branches = (
        {branch.id for branch in db.scalars(select(Branch).where(Branch.id.in_(branch_ids))).all()}
        if branch_ids
        else set()
    )
    departments = (
        {
            department.id: department
            for department in db.scalars(select(Department).where(Department.id.in_(department_ids))).all()
        }
        if department_ids
        else {}
    )

    for index, assignment in enumerate(assignments, start=1):
        if assignment.level == ScopeLevel.ZONE and assignment.zone_id not in zones:
            raise ScopeAssignmentInvalidError(
                f"Scope entry {index}: zone not found",
                status_code=404,
                code="SCOPE_TARGET_NOT_FOUND",
            )
        if assignment.level == ScopeLevel.BRANCH and assignment.branch_id not in branches:
            raise ScopeAssignmentInvalidError(
                f"Scope entry {index}: branch not found",
                status_code=404,
                code="SCOPE_TARGET_NOT_FOUND",
            )
        if assignment.level == ScopeLevel.DEPARTMENT:
            department = departments.get(assignment.department_id)
            if assignment.branch_id not in branches or department is None:
                raise ScopeAssignmentInvalidError(
                    f"Scope entry {index}: branch or department not found",
                    status_code=404,
                    code="SCOPE_TARGET_NOT_FOUND",
                )
            if department.branch_id != assignment.branch_id:
                raise ScopeAssignmentInvalidError(
                    f"Scope entry {index}: department does not belong to the selected branch"
                )


def ensure_no_scope_conflicts(
    db: Session,
    assignments: list[ScopeAssignment],
    *,
    shift_id: int | None,
) -> None:
    """Reject targets already claimed by another active shift at the same level."""
    for index, assignment in enumerate(assignments, start=1):
        stmt = (
            select(ShiftScopeAssignment)
            .join(Shift, Shift.id == ShiftScopeAssignment.shift_id)
            .where(
                Shift.is_active.is_(True),
                ShiftScopeAssignment.level == assignment.level,
                ShiftScopeAssignment.zone_id.is_(None)
                if assignment.zone_id is None
                else ShiftScopeAssignment.zone_id == assignment.zone_id,
                ShiftScopeAssignment.branch_id.is_(None)
                if assignment.branch_id is None
                else ShiftScopeAssignment.branch_id == assignment.branch_id,
                ShiftScopeAssignment.department_id.is_(None)
                if assignment.department_id is None
                else ShiftScopeAssignment.department_id == assignment.department_id,
            )
        )
        if shift_id is not None:
            stmt = stmt.where(ShiftScopeAssignment.shift_id != shift_id)
        existing = db.scalar(stmt)
        if existing is not None:
            raise ScopeAssignmentInvalidError(
                f"Scope entry {index}: already assigned to shift {existing.shift_id}",
                status_code=409,
                code="SCOPE_ASSIGNMENT_CONFLICT",
            )


def _build_shift_days(template: WeeklyShiftTemplate) -> list[ShiftDay]:
    return [
        ShiftDay(
            weekday=day.day,
            start_time_local=time_from_clock(day.start_time),
            end_time_local=time_from_clock(day.end_time),
            break_rules=[
                ShiftBreakRule(
                    type=rule.type,
                    minutes=rule.minutes if rule.type == BreakRuleType.DURATION else None,
                    start_time_local=time_from_clock(rule.start_time),
                    end_time_local=time_from_clock(rule.end_time),
                    sort_order=order,
                )
                for order, rule in enumerate(day.break_rules)
            ],
        )
        for day in template.days
    ]


def _build_scope_rows(assignments: list[ScopeAssignment]) -> list[ShiftScopeAssignment]:
    return [
        ShiftScopeAssignment(
            level=item.level,
            zone_id=item.zone_id,
            branch_id=item.branch_id,
            department_id=item.department_id,
        )
        for item in assignments
    ]


def _ensure_name_available(db: Session, name: str, *, shift_id: int | None) -> None:
    stmt = select(Shift).where(Shift.name == name)
    if shift_id is not None:
        stmt = stmt.where(Shift.id != shift_id)
    if db.scalar(stmt) is not None:
        raise ApiError(status_code=409, code="SHIFT_NAME_TAKEN", message="Shift name is already in use.")


def _prepare_shift_payload(
    db: Session,
    payload: ShiftUpsertRequest,
    *,
    shift_id: int | None,
) -> tuple[WeeklyShiftTemplate, list[ScopeAssignment]]:
    template = normalize_weekly_template(payload)
    assignments = normalize_scope_payloads(payload.scope_assignments, shift_id=shift_id or 0)
    validate_scope_targets(db, assignments)
    if payload.is_active:
        ensure_no_scope_conflicts(db, assignments, shift_id=shift_id)
    _ensure_name_available(db, template.name, shift_id=shift_id)
    return template, assignments


def _grace_minutes(payload: ShiftUpsertRequest) -> int:
    if payload.grace_minutes is None:
        return get_settings().default_grace_minutes
    return payload.grace_minutes


def _overtime_threshold_minutes(payload: ShiftUpsertRequest) -> int:
    if payload.overtime_threshold_minutes is None:
        return get_settings().default_overtime_threshold_minutes
    return payload.overtime_threshold_minutes


def create_shift(db: Session, payload: ShiftUpsertRequest) -> Shift:
    template, assignments = _prepare_shift_payload(db, payload, shift_id=None)
    shift = Shift(
        name=template.name,
        description=payload.description,
        is_active=payload.is_active,
        grace_minutes=_grace_minutes(payload),
        overtime_threshold_minutes=_overtime_threshold_minutes(payload),
        days=_build_shift_days(template),
        scope_assignments=_build_scope_rows(assignments),
    )
    db.add(shift)
    db.commit()
    db.refresh(shift)
    logger.info("shift_created", extra={"shift_id": shift.id, "shift_name": shift.name})
    return shift


def get_shift(db: Session, shift_id: int) -> Shift:
    shift = db.scalar(
        select(Shift)
        .options(
            selectinload(Shift.days).selectinload(ShiftDay.break_rules),
            selectinload(Shift.scope_assignments),
        )
        .where(Shift.id == shift_id)
    )
    if shift is None:
        raise ApiError(status_code=404, code="SHIFT_NOT_FOUND", message="Shift not found.")
    return shift


def update_shift(db: Session, shift_id: int, payload: ShiftUpsertRequest) -> Shift:
    shift = get_shift(db, shift_id)
    template, assignments = _prepare_shift_payload(db, payload, shift_id=shift_id)

    shift.days.clear()
    shift.scope_assignments.clear()
    db.flush()

    shift.name = template.name
    shift.description = payload.description
    shift.is_active = payload.is_active
    shift.grace_minutes = _grace_minutes(payload)
    shift.overtime_threshold_minutes = _overtime_threshold_minutes(payload)
    shift.days.extend(_build_shift_days(template))
    shift.scope_assignments.extend(_build_scope_rows(assignments))
    db.commit()
    db.refresh(shift)
    logger.info("shift_updated", extra={"shift_id": shift.id, "shift_name": shift.name})
    return shift


def deactivate_shift(db: Session, shift_id: int) -> Shift:
    shift = get_shift(db, shift_id)
    shift.is_active = False
    db.commit()
    db.refresh(shift)
    return shift


def list_shifts(db: Session, *, active_only: bool = False) -> list[Shift]:
    stmt = (
        select(Shift)
        .options(
            selectinload(Shift.days).selectinload(ShiftDay.break_rules),
            selectinload(Shift.scope_assignments),
        )
        .order_by(Shift.id.asc())
    )
    if active_only:
        stmt = stmt.where(Shift.is_active.is_(True))
    return list(db.scalars(stmt).all())


def shift_to_definition(shift: Shift) -> ShiftDefinition:
    days = tuple(
        DailyShiftTemplate(
            day=day.weekday,
            start_time=clock_from_time(day.start_time_local),
            end_time=clock_from_time(day.end_time_local),
            break_rules=tuple(
                BreakRule(
                    type=rule.type,
                    start_time=clock_from_time(rule.start_time_local),
                    end_time=clock_from_time(rule.end_time_local),
                    minutes=rule.minutes,
                )
                for rule in sorted(day.break_rules, key=lambda item: (item.sort_order, item.id or 0))
            ),
        )
        for day in shift.days
    )
    return ShiftDefinition(
        id=shift.id,
        template=WeeklyShiftTemplate(name=shift.name, days=days),
        grace_minutes=shift.grace_minutes or 0,
        overtime_threshold_minutes=shift.overtime_threshold_minutes or 0,
        is_active=shift.is_active,
        description=shift.description,
    )


def shift_scope_assignments(shift: Shift) -> list[ScopeAssignment]:
    return [
        ScopeAssignment(
            shift_id=shift.id,
            level=row.level,
            zone_id=row.zone_id,
            branch_id=row.branch_id,
            department_id=row.department_id,
        )
        for row in shift.scope_assignments
    ]


def load_shift_catalog(db: Session) -> ShiftCatalog:
    shifts = list_shifts(db, active_only=True)
    return ShiftCatalog(
        shifts={shift.id: shift_to_definition(shift) for shift in shifts},
        assignments=[assignment for shift in shifts for assignment in shift_scope_assignments(shift)],
    )


def simulate_scope_assignments(
    employees: list[EmployeeOrg],
    template: WeeklyShiftTemplate,
    assignments: list[ScopeAssignment],
) -> list[ScopeSimulation]:
    ensure_valid_weekly_template(template)
    return [
        ScopeSimulation(
            assignment=assignment,
            employee_codes=[employee.employee_code for employee in resolve_employees_for_scope(employees, assignment)],
        )
        for assignment in assignments
    ]
