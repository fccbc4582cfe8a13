from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models import AttendanceStatus, BreakRuleType, DayOfWeek, ScopeLevel


class BreakRulePayload(BaseModel):
    type: BreakRuleType | None = None
    minutes: int | None = None
    start_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    end_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")


class ShiftDayPayload(BaseModel):
    day: str | None = None
    start_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    end_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    break_rules: list[BreakRulePayload] = Field(default_factory=list)


class ScopeAssignmentPayload(BaseModel):
    level: ScopeLevel | None = None
    zone_id: int | None = Field(default=None, ge=1)
    branch_id: int | None = Field(default=None, ge=1)
    department_id: int | None = Field(default=None, ge=1)


class ShiftUpsertRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    is_active: bool = True
    grace_minutes: int | None = Field(default=None, ge=0)
    overtime_threshold_minutes: int | None = Field(default=None, ge=0)
    days: list[ShiftDayPayload] = Field(default_factory=list)
    scope_assignments: list[ScopeAssignmentPayload] = Field(default_factory=list)


class BreakRuleRead(BaseModel):
    type: BreakRuleType
    minutes: int | None = None
    start_time: str
    end_time: str


class ShiftDayRead(BaseModel):
    day: DayOfWeek
    start_time: str
    end_time: str
    break_rules: list[BreakRuleRead]


class ScopeAssignmentRead(BaseModel):
    id: int | None = None
    level: ScopeLevel
    zone_id: int | None = None
    branch_id: int | None = None
    department_id: int | None = None


class ShiftRead(BaseModel):
    id: int
    name: str
    description: str | None
    is_active: bool
    grace_minutes: int
    overtime_threshold_minutes: int
    days: list[ShiftDayRead]
    scope_assignments: list[ScopeAssignmentRead]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ShiftValidationResponse(BaseModel):
    valid: bool
    errors: list[str]


class EmployeeOrgPayload(BaseModel):
    employee_code: str = Field(min_length=1, max_length=50)
    zone_id: int | None = None
    branch_id: int | None = None
    department_id: int | None = None


class ShiftSimulationRequest(BaseModel):
    shift: ShiftUpsertRequest
    employees: list[EmployeeOrgPayload]


class ShiftSimulationItem(BaseModel):
    scope: ScopeAssignmentRead
    employee_codes: list[str]


class ScanImportRequest(BaseModel):
    content: str = Field(min_length=1)
    import_source: str | None = Field(default=None, max_length=50)


class ScanContentRequest(BaseModel):
    content: str = Field(min_length=1)


class ScanImportResponse(BaseModel):
    import_batch_id: str
    import_source: str
    lines_read: int
    events_parsed: int
    malformed_lines_skipped: int
    unparseable_punches_skipped: int
    day_sets: int
    rows_created: int
    rows_updated: int


class PunchSummaryRead(BaseModel):
    employee_code: str
    scans: int


class ScanPreviewResponse(BaseModel):
    lines_read: int
    events_parsed: int
    malformed_lines_skipped: int
    employees: list[PunchSummaryRead]


class AdjustmentUpsertRequest(BaseModel):
    employee_id: int = Field(ge=1)
    day_date: date
    status: AttendanceStatus
    notes: str | None = Field(default=None, max_length=1000)
    is_late: bool = False
    late_minutes: int = Field(default=0, ge=0)
    adjusted_by: str = Field(min_length=1, max_length=255)
    shift_id: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _validate_lateness(self) -> "AdjustmentUpsertRequest":
        if not self.is_late and self.late_minutes:
            raise ValueError("late_minutes requires is_late=true.")
        return self


class AdjustmentRead(BaseModel):
    id: int
    employee_id: int
    day_date: date
    status: AttendanceStatus
    notes: str | None
    is_late: bool
    late_minutes: int
    shift_id: int | None
    adjusted_by: str
    adjusted_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BulkDayOffEmployee(BaseModel):
    employee_id: int = Field(ge=1)
    weekdays: list[DayOfWeek] = Field(default_factory=list)


class BulkDayOffRequest(BaseModel):
    employees: list[BulkDayOffEmployee] = Field(min_length=1)
    start_date: date
    end_date: date
    status: AttendanceStatus = AttendanceStatus.DAY_OFF
    notes: str | None = Field(default=None, max_length=1000)
    adjusted_by: str = Field(min_length=1, max_length=255)


class BulkAdjustmentFailureRead(BaseModel):
    employee_id: int
    day_date: date
    code: str
    message: str


class BulkDayOffResponse(BaseModel):
    applied_count: int
    applied_by_employee: dict[int, int]
    failures: list[BulkAdjustmentFailureRead]


class AdjustmentOverlayRead(BaseModel):
    status: AttendanceStatus
    notes: str | None
    is_late: bool
    late_minutes: int
    shift_id: int | None
    adjusted_by: str
    adjusted_at: datetime


class WorkCalculationRecord(BaseModel):
    employee_code: str
    employee_id: int | None
    employee_name: str | None
    zone_id: int | None
    branch_id: int | None
    department_id: int | None
    day_date: date
    shift_id: int | None
    shift_name: str | None
    shift_start: str | None
    shift_end: str | None
    check_in: str | None
    break_out: str | None
    break_in: str | None
    check_out: str | None
    scan_count: int
    scan_times: list[str]
    unclassified_times: list[str]
    import_batch_id: str | None
    shift_late_minutes: int
    break_late_minutes: int
    late_minutes: int
    break_exceeded_minutes: int
    break_deficit_minutes: int
    overtime_minutes: int
    early_leave_minutes: int
    working_minutes: int
    missing_check_in: bool
    missing_check_out: bool
    missing_break: bool
    needs_manual_input: bool
    derived_status: AttendanceStatus
    status: AttendanceStatus
    is_late: bool
    authoritative_source: Literal["DERIVED", "ADJUSTMENT"]
    adjustment: AdjustmentOverlayRead | None = None


class WorkCalculationIndicators(BaseModel):
    total_late: int
    total_break_exceeded: int
    total_missing_check_in: int
    total_missing_check_out: int
    total_missing_break: int
    total_overtime: int
    total_needs_manual_input: int
    total_adjusted: int
    total_working_hours: float
    status_counts: dict[str, int]


class WorkCalculationResponse(BaseModel):
    start_date: date
    end_date: date
    records: list[WorkCalculationRecord]
    indicators: WorkCalculationIndicators
    total_records: int
    generated_at: datetime
