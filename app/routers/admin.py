from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.audit import log_audit
from app.db import get_db
from app.errors import ApiError
from app.models import WEEKDAY_ORDER, AttendanceAdjustment, Shift
from app.schemas import (
    AdjustmentRead,
    AdjustmentUpsertRequest,
    BreakRuleRead,
    BulkAdjustmentFailureRead,
    BulkDayOffRequest,
    BulkDayOffResponse,
    ScopeAssignmentRead,
    ShiftDayRead,
    ShiftRead,
    ShiftSimulationItem,
    ShiftSimulationRequest,
    ShiftUpsertRequest,
    ShiftValidationResponse,
)
from app.security import require_admin_permission
from app.services.adjustments import (
    DayOffSelection,
    apply_adjustment,
    bulk_assign_day_off,
    delete_adjustment,
    list_adjustments,
)
from app.services.clock_time import clock_from_time
from app.services.scope_resolver import EmployeeOrg
from app.services.shift_config import (
    build_weekly_template,
    create_shift,
    deactivate_shift,
    get_shift,
    list_shifts,
    normalize_scope_payloads,
    normalize_weekly_template,
    simulate_scope_assignments,
    update_shift,
)

router = APIRouter(tags=["admin"])


def _actor(claims: dict[str, Any]) -> str:
    return str(claims.get("username") or claims.get("sub") or "admin")


def _to_shift_read(shift: Shift) -> ShiftRead:
    days = sorted(shift.days, key=lambda item: WEEKDAY_ORDER.index(item.weekday))
    return ShiftRead(
        id=shift.id,
        name=shift.name,
        description=shift.description,
        is_active=shift.is_active,
        grace_minutes=shift.grace_minutes,
        overtime_threshold_minutes=shift.overtime_threshold_minutes,
        days=[
            ShiftDayRead(
                day=day.weekday,
                start_time=clock_from_time(day.start_time_local),
                end_time=clock_from_time(day.end_time_local),
                break_rules=[
                    BreakRuleRead(
                        type=rule.type,
                        minutes=rule.minutes,
                        start_time=clock_from_time(rule.start_time_local),
                        end_time=clock_from_time(rule.end_time_local),
                    )
                    for rule in day.break_rules
                ],
            )
            for day in days
        ],
        scope_assignments=[
            ScopeAssignmentRead(
                id=item.id,
                level=item.level,
                zone_id=item.zone_id,
                branch_id=item.branch_id,
                department_id=item.department_id,
            )
            for item in shift.scope_assignments
        ],
        created_at=shift.created_at,
        updated_at=shift.updated_at,
    )


def _to_adjustment_read(adjustment: AttendanceAdjustment) -> AdjustmentRead:
    return AdjustmentRead.model_validate(adjustment)


@router.get(
    "/api/admin/shifts",
    response_model=list[ShiftRead],
    dependencies=[Depends(require_admin_permission("shifts"))],
)
def list_shifts_endpoint(
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[ShiftRead]:
    return [_to_shift_read(item) for item in list_shifts(db, active_only=active_only)]


@router.post("/api/admin/shifts", response_model=ShiftRead, status_code=201)
def create_shift_endpoint(
    payload: ShiftUpsertRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("shifts", write=True)),
    db: Session = Depends(get_db),
) -> ShiftRead:
    shift = create_shift(db, payload)
    log_audit(
        db,
        actor_id=_actor(claims),
        action="SHIFT_CREATED",
        entity_type="shift",
        entity_id=str(shift.id),
        details={"name": shift.name, "scope_count": len(shift.scope_assignments)},
        request=request,
    )
    return _to_shift_read(shift)


@router.post(
    "/api/admin/shifts/validate",
    response_model=ShiftValidationResponse,
    dependencies=[Depends(require_admin_permission("shifts"))],
)
def validate_shift_endpoint(payload: ShiftUpsertRequest) -> ShiftValidationResponse:
    _, errors = build_weekly_template(payload)
    try:
        normalize_scope_payloads(payload.scope_assignments)
    except ApiError as exc:
        errors.append(exc.message)
    return ShiftValidationResponse(valid=not errors, errors=errors)


@router.post(
    "/api/admin/shifts/simulate",
    response_model=list[ShiftSimulationItem],
    dependencies=[Depends(require_admin_permission("shifts"))],
)
def simulate_shift_endpoint(payload: ShiftSimulationRequest) -> list[ShiftSimulationItem]:
    template = normalize_weekly_template(payload.shift)
    assignments = normalize_scope_payloads(payload.shift.scope_assignments)
    employees = [
        EmployeeOrg(
            employee_code=item.employee_code,
            zone_id=item.zone_id,
            branch_id=item.branch_id,
            department_id=item.department_id,
        )
        for item in payload.employees
    ]
    return [
        ShiftSimulationItem(
            scope=ScopeAssignmentRead(
                level=item.assignment.level,
                zone_id=item.assignment.zone_id,
                branch_id=item.assignment.branch_id,
                department_id=item.assignment.department_id,
            ),
            employee_codes=item.employee_codes,
        )
        for item in simulate_scope_assignments(employees, template, assignments)
    ]


@router.get(
    "/api/admin/shifts/{shift_id}",
    response_model=ShiftRead,
    dependencies=[Depends(require_admin_permission("shifts"))],
)
def get_shift_endpoint(shift_id: int, db: Session = Depends(get_db)) -> ShiftRead:
    return _to_shift_read(get_shift(db, shift_id))


@router.put("/api/admin/shifts/{shift_id}", response_model=ShiftRead)
def update_shift_endpoint(
    shift_id: int,
    payload: ShiftUpsertRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("shifts", write=True)),
    db: Session = Depends(get_db),
) -> ShiftRead:
    shift = update_shift(db, shift_id, payload)
    log_audit(
        db,
        actor_id=_actor(claims),
        action="SHIFT_UPDATED",
        entity_type="shift",
        entity_id=str(shift.id),
        details={"name": shift.name, "is_active": shift.is_active},
        request=request,
    )
    return _to_shift_read(shift)


@router.delete("/api/admin/shifts/{shift_id}", response_model=ShiftRead)
def deactivate_shift_endpoint(
    shift_id: int,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("shifts", write=True)),
    db: Session = Depends(get_db),
) -> ShiftRead:
    shift = deactivate_shift(db, shift_id)
    log_audit(
        db,
        actor_id=_actor(claims),
        action="SHIFT_DEACTIVATED",
        entity_type="shift",
        entity_id=str(shift.id),
        request=request,
    )
    return _to_shift_read(shift)


@router.put("/api/admin/adjustments", response_model=AdjustmentRead)
def upsert_adjustment_endpoint(
    payload: AdjustmentUpsertRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("adjustments", write=True)),
    db: Session = Depends(get_db),
) -> AdjustmentRead:
    adjustment = apply_adjustment(
        db,
        employee_id=payload.employee_id,
        day_date=payload.day_date,
        status=payload.status,
        notes=payload.notes,
        is_late=payload.is_late,
        late_minutes=payload.late_minutes,
        adjusted_by=payload.adjusted_by,
        shift_id=payload.shift_id,
    )
    log_audit(
        db,
        actor_id=_actor(claims),
        action="ADJUSTMENT_APPLIED",
        entity_type="attendance_adjustment",
        entity_id=str(adjustment.id),
        details={
            "employee_id": adjustment.employee_id,
            "day_date": adjustment.day_date.isoformat(),
            "status": adjustment.status.value,
            "adjusted_by": adjustment.adjusted_by,
        },
        request=request,
    )
    return _to_adjustment_read(adjustment)


@router.get(
    "/api/admin/adjustments",
    response_model=list[AdjustmentRead],
    dependencies=[Depends(require_admin_permission("adjustments"))],
)
def list_adjustments_endpoint(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> list[AdjustmentRead]:
    if end_date < start_date:
        raise ApiError(status_code=422, code="INVALID_DATE_RANGE", message="end_date must be on or after start_date.")
    rows = list_adjustments(db, start_date=start_date, end_date=end_date, employee_id=employee_id)
    return [_to_adjustment_read(item) for item in rows]


@router.delete("/api/admin/adjustments/{adjustment_id}", response_model=AdjustmentRead)
def delete_adjustment_endpoint(
    adjustment_id: int,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("adjustments", write=True)),
    db: Session = Depends(get_db),
) -> AdjustmentRead:
    adjustment = delete_adjustment(db, adjustment_id)
    log_audit(
        db,
        actor_id=_actor(claims),
        action="ADJUSTMENT_DELETED",
        entity_type="attendance_adjustment",
        entity_id=str(adjustment_id),
        details={"employee_id": adjustment.employee_id, "day_date": adjustment.day_date.isoformat()},
        request=request,
    )
    return _to_adjustment_read(adjustment)


@router.post("/api/admin/adjustments/bulk-day-off", response_model=BulkDayOffResponse)
def bulk_day_off_endpoint(
    payload: BulkDayOffRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("adjustments", write=True)),
    db: Session = Depends(get_db),
) -> BulkDayOffResponse:
    result = bulk_assign_day_off(
        db,
        selections=[
            DayOffSelection(employee_id=item.employee_id, weekdays=frozenset(item.weekdays))
            for item in payload.employees
        ],
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=payload.status,
        notes=payload.notes,
        adjusted_by=payload.adjusted_by,
    )
    log_audit(
        db,
        actor_id=_actor(claims),
        action="ADJUSTMENT_BULK_DAY_OFF",
        success=not result.failures,
        entity_type="attendance_adjustment",
        details={
            "status": payload.status.value,
            "start_date": payload.start_date.isoformat(),
            "end_date": payload.end_date.isoformat(),
            "applied_count": result.applied_count,
            "failure_count": len(result.failures),
        },
        request=request,
    )
    return BulkDayOffResponse(
        applied_count=result.applied_count,
        applied_by_employee=result.applied_by_employee,
        failures=[
            BulkAdjustmentFailureRead(
                employee_id=item.employee_id,
                day_date=item.day_date,
                code=item.code,
                message=item.message,
            )
            for item in result.failures
        ],
    )
