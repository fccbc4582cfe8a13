from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Collection, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import AdjustmentTargetNotFoundError, AdjustmentValidationError, ApiError
from app.models import AttendanceAdjustment, AttendanceStatus, DayOfWeek, Employee, Shift
from app.settings import get_settings

logger = logging.getLogger("app.adjustments")

BULK_ALLOWED_STATUSES: frozenset[AttendanceStatus] = frozenset({AttendanceStatus.DAY_OFF, AttendanceStatus.HOLIDAY})


@dataclass(frozen=True, slots=True)
class DayOffSelection:
    employee_id: int
    weekdays: frozenset[DayOfWeek] = frozenset()


@dataclass(frozen=True, slots=True)
class BulkAdjustmentFailure:
    employee_id: int
    day_date: date
    code: str
    message: str


@dataclass(slots=True)
class BulkAdjustmentResult:
    applied: list[AttendanceAdjustment] = field(default_factory=list)
    failures: list[BulkAdjustmentFailure] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return len(self.applied)

    @property
    def applied_by_employee(self) -> dict[int, int]:
        return dict(Counter(item.employee_id for item in self.applied))


def _iter_dates(start_date: date, end_date: date):
    cursor = start_date
    while cursor <= end_date:
        yield cursor
        cursor += timedelta(days=1)


def plan_day_off_dates(
    start_date: date,
    end_date: date,
    *,
    status: AttendanceStatus,
    weekdays: Collection[DayOfWeek] = (),
) -> list[date]:
    """Dates a bulk assignment writes for one employee.

    HOLIDAY covers every date of the range; DAY_OFF only the dates falling on
    one of the selected weekdays.
    """
    if status == AttendanceStatus.HOLIDAY:
        return list(_iter_dates(start_date, end_date))
    selected = set(weekdays)
    return [day for day in _iter_dates(start_date, end_date) if DayOfWeek.from_date(day) in selected]


def validate_bulk_day_off(
    selections: Sequence[DayOffSelection],
    *,
    start_date: date,
    end_date: date,
    status: AttendanceStatus,
    max_days: int | None = None,
) -> list[str]:
    errors: list[str] = []
    if not selections:
        errors.append("At least one employee must be selected")
    if end_date < start_date:
        errors.append("end_date must be on or after start_date")
    else:
        limit = max_days if max_days is not None else get_settings().bulk_adjustment_max_days
        span = (end_date - start_date).days + 1
        if span > limit:
            errors.append(f"Date range spans {span} days; the limit is {limit}")
    if status not in BULK_ALLOWED_STATUSES:
        errors.append(f"Bulk assignment only supports DAY_OFF or HOLIDAY, got {status.value}")

    seen: set[int] = set()
    for selection in selections:
        if selection.employee_id in seen:
            errors.append(f"Employee {selection.employee_id} is selected more than once")
        seen.add(selection.employee_id)
        if status == AttendanceStatus.DAY_OFF and not selection.weekdays:
            errors.append(f"Employee {selection.employee_id} has no weekdays selected")
    return errors


def _find_adjustment_for_update(db: Session, employee_id: int, day_date: date) -> AttendanceAdjustment | None:
    return db.scalar(
        select(AttendanceAdjustment)
        .where(
            AttendanceAdjustment.employee_id == employee_id,
            AttendanceAdjustment.day_date == day_date,
        )
        .with_for_update()
    )


def _write_fields(
    adjustment: AttendanceAdjustment,
    *,
    status: AttendanceStatus,
    notes: str | None,
    is_late: bool,
    late_minutes: int,
    shift_id: int | None,
    adjusted_by: str,
) -> None:
    adjustment.status = status
    adjustment.notes = notes
    adjustment.is_late = is_late
    adjustment.late_minutes = late_minutes if is_late else 0
    adjustment.shift_id = shift_id
    adjustment.adjusted_by = adjusted_by
    adjustment.adjusted_at = datetime.now(timezone.utc)


def apply_adjustment(
    db: Session,
    *,
    employee_id: int,
    day_date: date,
    status: AttendanceStatus,
    adjusted_by: str,
    notes: str | None = None,
    is_late: bool = False,
    late_minutes: int = 0,
    shift_id: int | None = None,
) -> AttendanceAdjustment:
    """Upsert the override for (employee_id, day_date); the last write wins.

    Every field is replaced, so a second call never accumulates notes or late
    minutes from the first one.
    """
    actor = (adjusted_by or "").strip()
    if not actor:
        raise AdjustmentValidationError("adjusted_by is required.")
    if late_minutes < 0:
        raise AdjustmentValidationError("late_minutes must be zero or greater.")
    if late_minutes and not is_late:
        raise AdjustmentValidationError("late_minutes requires is_late=true.")

    if db.get(Employee, employee_id) is None:
        raise AdjustmentTargetNotFoundError("Employee not found.", employee_id=employee_id)
    if shift_id is not None and db.get(Shift, shift_id) is None:
        raise AdjustmentTargetNotFoundError("Shift not found.", employee_id=employee_id)

    fields = {
        "status": status,
        "notes": notes,
        "is_late": is_late,
        "late_minutes": late_minutes,
        "shift_id": shift_id,
        "adjusted_by": actor,
    }

    adjustment = _find_adjustment_for_update(db, employee_id, day_date)
    created = adjustment is None
    if adjustment is None:
        adjustment = AttendanceAdjustment(employee_id=employee_id, day_date=day_date)
        db.add(adjustment)
    _write_fields(adjustment, **fields)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent writer inserted the same key first; apply on top of it.
        db.rollback()
        adjustment = _find_adjustment_for_update(db, employee_id, day_date)
        if adjustment is None:
            raise
        created = False
        _write_fields(adjustment, **fields)
        db.commit()
    db.refresh(adjustment)

    logger.info(
        "adjustment_applied",
        extra={
            "employee_id": employee_id,
            "day_date": day_date.isoformat(),
            "status": status.value,
            "adjusted_by": actor,
            "was_created": created,
        },
    )
    return adjustment


def bulk_assign_day_off(
    db: Session,
    *,
    selections: Sequence[DayOffSelection],
    start_date: date,
    end_date: date,
    adjusted_by: str,
    status: AttendanceStatus = AttendanceStatus.DAY_OFF,
    notes: str | None = None,
) -> BulkAdjustmentResult:
    errors = validate_bulk_day_off(selections, start_date=start_date, end_date=end_date, status=status)
    if errors:
        raise AdjustmentValidationError("Bulk day-off request is invalid.", errors=errors)

    result = BulkAdjustmentResult()
    for selection in selections:
        for day_date in plan_day_off_dates(start_date, end_date, status=status, weekdays=selection.weekdays):
            try:
                adjustment = apply_adjustment(
                    db,
                    employee_id=selection.employee_id,
                    day_date=day_date,
                    status=status,
                    notes=notes,
                    adjusted_by=adjusted_by,
                )
            except ApiError as exc:
                result.failures.append(
                    BulkAdjustmentFailure(
                        employee_id=selection.employee_id,
                        day_date=day_date,
                        code=exc.code,
                        message=exc.message,
                    )
                )
                continue
            result.applied.append(adjustment)

    logger.info(
        "bulk_adjustment_completed",
        extra={
            "status": status.value,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "applied_count": result.applied_count,
            "failure_count": len(result.failures),
        },
    )
    return result


def list_adjustments(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    employee_id: int | None = None,
) -> list[AttendanceAdjustment]:
    stmt = select(AttendanceAdjustment).where(
        AttendanceAdjustment.day_date >= start_date,
        AttendanceAdjustment.day_date <= end_date,
    )
    if employee_id is not None:
        stmt = stmt.where(AttendanceAdjustment.employee_id == employee_id)
    stmt = stmt.order_by(
        AttendanceAdjustment.employee_id.asc(),
        AttendanceAdjustment.day_date.asc(),
        AttendanceAdjustment.id.asc(),
    )
    return list(db.scalars(stmt).all())


def delete_adjustment(db: Session, adjustment_id: int) -> AttendanceAdjustment:
    adjustment = db.get(AttendanceAdjustment, adjustment_id)
    if adjustment is None:
        raise ApiError(status_code=404, code="ADJUSTMENT_NOT_FOUND", message="Adjustment not found.")
    db.delete(adjustment)
    db.commit()
    logger.info(
        "adjustment_deleted",
        extra={"adjustment_id": adjustment_id, "employee_id": adjustment.employee_id},
    )
    return adjustment
