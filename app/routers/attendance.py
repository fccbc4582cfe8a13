from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from app.audit import log_audit
from app.db import get_db
from app.errors import ApiError
from app.models import Employee
from app.schemas import (
    AdjustmentOverlayRead,
    PunchSummaryRead,
    ScanContentRequest,
    ScanImportRequest,
    ScanImportResponse,
    ScanPreviewResponse,
    WorkCalculationIndicators,
    WorkCalculationRecord,
    WorkCalculationResponse,
)
from app.security import require_admin_permission
from app.services.exports import build_work_calculation_xlsx_bytes
from app.services.reconciliation import ReconciledDay, WorkCalculationReport, build_work_calculation_report
from app.services.scan_imports import ImportSummary, import_scan_log, import_scan_summary_csv, preview_scan_log

router = APIRouter(tags=["attendance"])
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _actor(claims: dict[str, Any]) -> str:
    return str(claims.get("username") or claims.get("sub") or "admin")


def _to_import_response(summary: ImportSummary) -> ScanImportResponse:
    return ScanImportResponse(
        import_batch_id=summary.import_batch_id,
        import_source=summary.import_source,
        lines_read=summary.lines_read,
        events_parsed=summary.events_parsed,
        malformed_lines_skipped=summary.malformed_lines_skipped,
        unparseable_punches_skipped=summary.unparseable_punches_skipped,
        day_sets=summary.day_sets,
        rows_created=summary.rows_created,
        rows_updated=summary.rows_updated,
    )


def _to_work_calculation_record(day: ReconciledDay, employee: Employee | None) -> WorkCalculationRecord:
    shift_day = day.resolved.day if day.resolved is not None else None
    adjustment = day.adjustment
    return WorkCalculationRecord(
        employee_code=day.employee.employee_code,
        employee_id=day.employee.employee_id,
        employee_name=employee.full_name if employee is not None else None,
        zone_id=day.employee.zone_id,
        branch_id=day.employee.branch_id,
        department_id=day.employee.department_id,
        day_date=day.calendar_date,
        shift_id=day.shift.id if day.shift is not None else None,
        shift_name=day.shift.name if day.shift is not None else None,
        shift_start=shift_day.start_time if shift_day is not None else None,
        shift_end=shift_day.end_time if shift_day is not None else None,
        check_in=day.slots.check_in,
        break_out=day.slots.break_out,
        break_in=day.slots.break_in,
        check_out=day.slots.check_out,
        scan_count=len(day.scan_times),
        scan_times=list(day.scan_times),
        unclassified_times=list(day.slots.unclassified_times),
        import_batch_id=day.import_batch_id,
        shift_late_minutes=day.work.shift_late_minutes,
        break_late_minutes=day.work.break_late_minutes,
        late_minutes=day.late_minutes,
        break_exceeded_minutes=day.work.break_exceeded_minutes,
        break_deficit_minutes=day.work.break_deficit_minutes,
        overtime_minutes=day.work.overtime_minutes,
        early_leave_minutes=day.work.early_leave_minutes,
        working_minutes=day.work.net_working_minutes,
        missing_check_in=day.work.missing_check_in,
        missing_check_out=day.work.missing_check_out,
        missing_break=day.work.missing_break,
        needs_manual_input=day.needs_manual_input,
        derived_status=day.derived_status,
        status=day.status,
        is_late=day.is_late,
        authoritative_source=day.authoritative_source,
        adjustment=(
            AdjustmentOverlayRead(
                status=adjustment.status,
                notes=adjustment.notes,
                is_late=adjustment.is_late,
                late_minutes=adjustment.late_minutes,
                shift_id=adjustment.shift_id,
                adjusted_by=adjustment.adjusted_by,
                adjusted_at=adjustment.adjusted_at,
            )
            if adjustment is not None
            else None
        ),
    )


def _to_work_calculation_response(report: WorkCalculationReport) -> WorkCalculationResponse:
    summary = report.summary
    records = [
        _to_work_calculation_record(day, report.employees_by_code.get(day.employee.employee_code))
        for day in report.days
    ]
    return WorkCalculationResponse(
        start_date=report.start_date,
        end_date=report.end_date,
        records=records,
        indicators=WorkCalculationIndicators(
            total_late=summary.total_late,
            total_break_exceeded=summary.total_break_exceeded,
            total_missing_check_in=summary.total_missing_check_in,
            total_missing_check_out=summary.total_missing_check_out,
            total_missing_break=summary.total_missing_break,
            total_overtime=summary.total_overtime,
            total_needs_manual_input=summary.total_needs_manual_input,
            total_adjusted=summary.total_adjusted,
            total_working_hours=summary.total_working_hours,
            status_counts=summary.status_counts,
        ),
        total_records=len(records),
        generated_at=report.generated_at,
    )


def _ensure_date_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ApiError(status_code=422, code="INVALID_DATE_RANGE", message="end_date must be on or after start_date.")


@router.post("/api/admin/scans/import", response_model=ScanImportResponse)
def import_scans_endpoint(
    payload: ScanImportRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("scans", write=True)),
    db: Session = Depends(get_db),
) -> ScanImportResponse:
    summary = import_scan_log(db, payload.content, import_source=payload.import_source)
    log_audit(
        db,
        actor_id=_actor(claims),
        action="SCAN_LOG_IMPORTED",
        entity_type="attendance_scan_batch",
        entity_id=summary.import_batch_id,
        details={"day_sets": summary.day_sets, "rows_created": summary.rows_created, "rows_updated": summary.rows_updated},
        request=request,
    )
    return _to_import_response(summary)


@router.post("/api/admin/scans/import-csv", response_model=ScanImportResponse)
def import_scan_summary_endpoint(
    payload: ScanContentRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("scans", write=True)),
    db: Session = Depends(get_db),
) -> ScanImportResponse:
    summary = import_scan_summary_csv(db, payload.content)
    log_audit(
        db,
        actor_id=_actor(claims),
        action="SCAN_SUMMARY_IMPORTED",
        entity_type="attendance_scan_batch",
        entity_id=summary.import_batch_id,
        details={"day_sets": summary.day_sets, "rows_created": summary.rows_created, "rows_updated": summary.rows_updated},
        request=request,
    )
    return _to_import_response(summary)


@router.post(
    "/api/admin/scans/preview",
    response_model=ScanPreviewResponse,
    dependencies=[Depends(require_admin_permission("scans"))],
)
def preview_scans_endpoint(payload: ScanContentRequest) -> ScanPreviewResponse:
    preview = preview_scan_log(payload.content)
    return ScanPreviewResponse(
        lines_read=preview.parse_result.lines_read,
        events_parsed=len(preview.parse_result.events),
        malformed_lines_skipped=preview.parse_result.skipped_lines,
        employees=[PunchSummaryRead(employee_code=item.employee_code, scans=item.scans) for item in preview.employees],
    )


@router.get(
    "/api/admin/work-calculation",
    response_model=WorkCalculationResponse,
    dependencies=[Depends(require_admin_permission("work_calculation"))],
)
def work_calculation_endpoint(
    start_date: date = Query(...),
    end_date: date = Query(...),
    search: str | None = Query(default=None, max_length=100),
    db: Session = Depends(get_db),
) -> WorkCalculationResponse:
    _ensure_date_range(start_date, end_date)
    report = build_work_calculation_report(db, start_date=start_date, end_date=end_date, search=search)
    return _to_work_calculation_response(report)


@router.get("/api/admin/work-calculation/export")
def export_work_calculation_endpoint(
    request: Request,
    start_date: date = Query(...),
    end_date: date = Query(...),
    search: str | None = Query(default=None, max_length=100),
    claims: dict[str, Any] = Depends(require_admin_permission("work_calculation")),
    db: Session = Depends(get_db),
) -> Response:
    _ensure_date_range(start_date, end_date)
    report = build_work_calculation_report(db, start_date=start_date, end_date=end_date, search=search)
    payload = build_work_calculation_xlsx_bytes(report)
    log_audit(
        db,
        actor_id=_actor(claims),
        action="WORK_CALCULATION_EXPORT_XLSX",
        entity_type="export",
        entity_id="work_calculation",
        details={
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "records": len(report.days),
        },
        request=request,
    )
    filename = f"work-calculation-{start_date.isoformat()}-{end_date.isoformat()}.xlsx"
    return Response(
        content=payload,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
