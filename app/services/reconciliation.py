from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Literal

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.models import AttendanceAdjustment, AttendanceScan, AttendanceStatus, DayOfWeek, Employee
from app.services.clock_time import minutes_to_hours
from app.services.scan_aggregator import DailyScanSet, decode_scan_times
from app.services.scan_clustering import PunchSlots, cluster_scan_times
from app.services.scope_resolver import (
    EmployeeOrg,
    ResolvedShiftDay,
    ScopeAssignment,
    resolve_shift_for_employee_day,
)
from app.services.shift_config import load_shift_catalog
from app.services.shift_templates import ShiftDefinition
from app.services.work_time import WorkTimeResult, calculate_work_time

logger = logging.getLogger("app.reconciliation")

AuthoritativeSource = Literal["DERIVED", "ADJUSTMENT"]


@dataclass(frozen=True, slots=True)
class AdjustmentSnapshot:
    status: AttendanceStatus
    adjusted_by: str
    adjusted_at: datetime
    notes: str | None = None
    is_late: bool = False
    late_minutes: int = 0
    shift_id: int | None = None
    id: int | None = None

    @classmethod
    def from_model(cls, row: AttendanceAdjustment) -> AdjustmentSnapshot:
        return cls(
            id=row.id,
            status=row.status,
            notes=row.notes,
            is_late=row.is_late,
            late_minutes=row.late_minutes or 0,
            shift_id=row.shift_id,
            adjusted_by=row.adjusted_by,
            adjusted_at=row.adjusted_at,
        )


@dataclass(frozen=True, slots=True)
class ReconciledDay:
    """One employee-day: derived metrics plus the optional supervisor override.

    The derived fields never change when an adjustment exists; the effective
    properties pick the adjustment values when one is attached.
    """

    employee: EmployeeOrg
    calendar_date: date
    scan_times: tuple[str, ...]
    slots: PunchSlots
    work: WorkTimeResult
    derived_status: AttendanceStatus
    needs_manual_input: bool
    resolved: ResolvedShiftDay | None = None
    import_batch_id: str | None = None
    adjustment: AdjustmentSnapshot | None = None

    @property
    def shift(self) -> ShiftDefinition | None:
        return self.resolved.shift if self.resolved is not None else None

    @property
    def is_adjusted(self) -> bool:
        return self.adjustment is not None

    @property
    def authoritative_source(self) -> AuthoritativeSource:
        return "ADJUSTMENT" if self.adjustment is not None else "DERIVED"

    @property
    def status(self) -> AttendanceStatus:
        return self.adjustment.status if self.adjustment is not None else self.derived_status

    @property
    def is_late(self) -> bool:
        return self.adjustment.is_late if self.adjustment is not None else self.work.is_late

    @property
    def late_minutes(self) -> int:
        if self.adjustment is not None:
            return self.adjustment.late_minutes if self.adjustment.is_late else 0
        return self.work.total_late_minutes

    @property
    def notes(self) -> str | None:
        return self.adjustment.notes if self.adjustment is not None else None

    @property
    def awaiting_review(self) -> bool:
        """Derived "needs manual input" until a supervisor adjustment settles the day."""
        return self.needs_manual_input and self.adjustment is None

    @property
    def working_minutes(self) -> int:
        if self.adjustment is not None and self.adjustment.status != AttendanceStatus.PRESENT:
            return 0
        return self.work.net_working_minutes


@dataclass(frozen=True, slots=True)
class ReconciliationSummary:
    total_late: int = 0
    total_break_exceeded: int = 0
    total_missing_check_in: int = 0
    total_missing_check_out: int = 0
    total_missing_break: int = 0
    total_overtime: int = 0
    total_needs_manual_input: int = 0
    total_adjusted: int = 0
    total_working_minutes: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)

    @property
    def total_working_hours(self) -> float:
        return minutes_to_hours(self.total_working_minutes)


@dataclass(slots=True)
class WorkCalculationReport:
    start_date: date
    end_date: date
    days: list[ReconciledDay]
    employees_by_code: dict[str, Employee]
    summary: ReconciliationSummary
    generated_at: datetime


def derive_status(resolved: ResolvedShiftDay | None, slots: PunchSlots) -> tuple[AttendanceStatus, bool]:
    """Status and "needs manual input" flag before any supervisor override."""
    if resolved is None:
        if slots.has_any_punch:
            return AttendanceStatus.PRESENT, True
        return AttendanceStatus.DAY_OFF, False
    if not slots.has_any_punch:
        return AttendanceStatus.ABSENT, True
    if slots.check_in is None or slots.check_out is None:
        return AttendanceStatus.PRESENT, True
    return AttendanceStatus.PRESENT, False


def reconcile_day(
    employee: EmployeeOrg,
    calendar_date: date,
    scan_times: Sequence[str],
    *,
    shifts: Mapping[int, ShiftDefinition],
    assignments: Iterable[ScopeAssignment],
    adjustment: AdjustmentSnapshot | None = None,
    import_batch_id: str | None = None,
) -> ReconciledDay:
    resolved = resolve_shift_for_employee_day(
        employee,
        DayOfWeek.from_date(calendar_date),
        shifts=shifts,
        assignments=assignments,
    )
    shift_day = resolved.day if resolved is not None else None
    slots = cluster_scan_times(scan_times, shift_day)
    work = calculate_work_time(
        shift_day,
        slots,
        grace_minutes=resolved.shift.grace_minutes if resolved is not None else 0,
        overtime_threshold_minutes=resolved.shift.overtime_threshold_minutes if resolved is not None else 0,
    )
    derived_status, needs_manual_input = derive_status(resolved, slots)
    return ReconciledDay(
        employee=employee,
        calendar_date=calendar_date,
        scan_times=tuple(scan_times),
        slots=slots,
        work=work,
        derived_status=derived_status,
        needs_manual_input=needs_manual_input,
        resolved=resolved,
        import_batch_id=import_batch_id,
        adjustment=adjustment,
    )


def reconcile_scan_sets(
    day_sets: Iterable[DailyScanSet],
    *,
    employees: Mapping[str, EmployeeOrg],
    shifts: Mapping[int, ShiftDefinition],
    assignments: Sequence[ScopeAssignment],
    adjustments: Mapping[tuple[int, date], AdjustmentSnapshot] | None = None,
) -> list[ReconciledDay]:
    """Reconcile every scan set; codes without an employee get no shift."""
    overlays = adjustments or {}
    results: list[ReconciledDay] = []
    for day_set in day_sets:
        employee = employees.get(day_set.employee_code) or EmployeeOrg(employee_code=day_set.employee_code)
        adjustment = None
        if employee.employee_id is not None:
            adjustment = overlays.get((employee.employee_id, day_set.calendar_date))
        results.append(
            reconcile_day(
                employee,
                day_set.calendar_date,
                day_set.times,
                shifts=shifts,
                assignments=assignments,
                adjustment=adjustment,
                import_batch_id=day_set.import_batch_id,
            )
        )
    return results


def summarize_reconciled_days(days: Iterable[ReconciledDay]) -> ReconciliationSummary:
    status_counts: Counter[str] = Counter()
    totals = Counter()
    for day in days:
        status_counts[day.status.value] += 1
        totals["late"] += int(day.is_late)
        totals["break_exceeded"] += int(day.work.break_exceeded_minutes > 0)
        totals["overtime"] += int(day.work.overtime_minutes > 0)
        totals["needs_manual_input"] += int(day.awaiting_review)
        totals["adjusted"] += int(day.is_adjusted)
        totals["working_minutes"] += day.working_minutes
        # Adjusted days keep their derived punch flags on the record only.
        if day.is_adjusted:
            continue
        totals["missing_check_in"] += int(day.work.missing_check_in)
        totals["missing_check_out"] += int(day.work.missing_check_out)
        totals["missing_break"] += int(day.work.missing_break)

    return ReconciliationSummary(
        total_late=totals["late"],
        total_break_exceeded=totals["break_exceeded"],
        total_missing_check_in=totals["missing_check_in"],
        total_missing_check_out=totals["missing_check_out"],
        total_missing_break=totals["missing_break"],
        total_overtime=totals["overtime"],
        total_needs_manual_input=totals["needs_manual_input"],
        total_adjusted=totals["adjusted"],
        total_working_minutes=totals["working_minutes"],
        status_counts=dict(sorted(status_counts.items())),
    )


def employee_org(employee: Employee) -> EmployeeOrg:
    return EmployeeOrg(
        employee_code=employee.employee_code,
        employee_id=employee.id,
        zone_id=employee.zone_id,
        branch_id=employee.branch_id,
        department_id=employee.department_id,
    )


def _matches_search(keyword: str, employee_code: str, employee: Employee | None) -> bool:
    if keyword in employee_code.casefold():
        return True
    return employee is not None and keyword in (employee.full_name or "").casefold()


def _scheduled_days_without_scans(
    employees: Iterable[Employee],
    *,
    start_date: date,
    end_date: date,
    covered: set[tuple[int, date]],
    shifts: Mapping[int, ShiftDefinition],
    assignments: Sequence[ScopeAssignment],
) -> list[DailyScanSet]:
    """Empty scan sets for active employees whose shift applies but who never punched."""
    missing: list[DailyScanSet] = []
    for employee in employees:
        if not employee.is_active:
            continue
        org = employee_org(employee)
        for offset in range((end_date - start_date).days + 1):
            day_date = start_date + timedelta(days=offset)
            if (employee.id, day_date) in covered:
                continue
            resolved = resolve_shift_for_employee_day(
                org,
                DayOfWeek.from_date(day_date),
                shifts=shifts,
                assignments=assignments,
            )
            if resolved is None:
                continue
            missing.append(DailyScanSet(employee_code=employee.employee_code, calendar_date=day_date, times=()))
    return missing


def build_work_calculation_report(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    search: str | None = None,
) -> WorkCalculationReport:
    scans = list(
        db.scalars(
            select(AttendanceScan)
            .where(AttendanceScan.scan_date >= start_date, AttendanceScan.scan_date <= end_date)
            .order_by(AttendanceScan.employee_code.asc(), AttendanceScan.scan_date.asc())
        ).all()
    )
    adjustment_rows = list(
        db.scalars(
            select(AttendanceAdjustment).where(
                AttendanceAdjustment.day_date >= start_date,
                AttendanceAdjustment.day_date <= end_date,
            )
        ).all()
    )

    employee_ids = {row.employee_id for row in adjustment_rows}
    scan_codes = {scan.employee_code for scan in scans}
    employees = list(
        db.scalars(
            select(Employee).where(
                or_(
                    Employee.is_active.is_(True),
                    Employee.employee_code.in_(scan_codes),
                    Employee.id.in_(employee_ids),
                )
            )
        ).all()
    )

    employees_by_code = {employee.employee_code: employee for employee in employees}
    employees_by_id = {employee.id: employee for employee in employees}
    orgs_by_code = {code: employee_org(employee) for code, employee in employees_by_code.items()}
    adjustments = {
        (row.employee_id, row.day_date): AdjustmentSnapshot.from_model(row)
        for row in adjustment_rows
    }

    day_sets = [
        DailyScanSet(
            employee_code=scan.employee_code,
            calendar_date=scan.scan_date,
            times=tuple(decode_scan_times(scan.scan_times)),
            import_batch_id=scan.import_batch_id,
        )
        for scan in scans
    ]
    covered = {
        (orgs_by_code[day_set.employee_code].employee_id, day_set.calendar_date)
        for day_set in day_sets
        if day_set.employee_code in orgs_by_code
    }
    for employee_id, day_date in sorted(adjustments):
        employee = employees_by_id.get(employee_id)
        if employee is None or (employee_id, day_date) in covered:
            continue
        day_sets.append(DailyScanSet(employee_code=employee.employee_code, calendar_date=day_date, times=()))
        covered.add((employee_id, day_date))

    catalog = load_shift_catalog(db)
    day_sets.extend(
        _scheduled_days_without_scans(
            employees,
            start_date=start_date,
            end_date=end_date,
            covered=covered,
            shifts=catalog.shifts,
            assignments=catalog.assignments,
        )
    )

    keyword = (search or "").strip().casefold()
    if keyword:
        day_sets = [
            day_set
            for day_set in day_sets
            if _matches_search(keyword, day_set.employee_code, employees_by_code.get(day_set.employee_code))
        ]
    day_sets.sort(key=lambda item: (item.employee_code, item.calendar_date))

    days = reconcile_scan_sets(
        day_sets,
        employees=orgs_by_code,
        shifts=catalog.shifts,
        assignments=catalog.assignments,
        adjustments=adjustments,
    )
    summary = summarize_reconciled_days(days)
    logger.info(
        "work_calculation_built",
        extra={
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "records": len(days),
            "adjusted": summary.total_adjusted,
        },
    )
    return WorkCalculationReport(
        start_date=start_date,
        end_date=end_date,
        days=days,
        employees_by_code=employees_by_code,
        summary=summary,
        generated_at=datetime.now(timezone.utc),
    )
