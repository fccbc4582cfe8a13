from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from app.models import AttendanceStatus
from app.services.clock_time import format_clock_minutes
from app.services.reconciliation import ReconciledDay, WorkCalculationReport

RECORD_HEADERS = [
    "Date",
    "Employee Code",
    "Employee Name",
    "Shift",
    "Shift Start",
    "Shift End",
    "Check In",
    "Break Out",
    "Break In",
    "Check Out",
    "Scans",
    "Shift Late",
    "Break Late",
    "Total Late",
    "Break Exceeded",
    "Break Deficit",
    "Overtime",
    "Early Leave",
    "Net Working",
    "Derived Status",
    "Status",
    "Source",
    "Adjusted By",
    "Notes",
    "Flags",
]

HEADER_FILL = PatternFill(fill_type="solid", fgColor="0B4F73")
META_LABEL_FILL = PatternFill(fill_type="solid", fgColor="EAF4F9")
META_VALUE_FILL = PatternFill(fill_type="solid", fgColor="F8FCFF")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="F7FBFE")
WARNING_FILL = PatternFill(fill_type="solid", fgColor="FFF3CD")
ALERT_FILL = PatternFill(fill_type="solid", fgColor="FDE2E4")
SUCCESS_FILL = PatternFill(fill_type="solid", fgColor="E6F4EA")
SUMMARY_FILL = PatternFill(fill_type="solid", fgColor="E9F1F7")

HEADER_FONT = Font(bold=True, color="FFFFFF")
BOLD_FONT = Font(bold=True, color="0F172A")
TITLE_FONT = Font(bold=True, color="0B4F73", size=14)
MUTED_FONT = Font(color="334155")

THIN_SIDE = Side(style="thin", color="D5E2EC")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)

_WARNING_STATUSES = {
    AttendanceStatus.ABSENT.value,
    AttendanceStatus.LEAVE.value,
    AttendanceStatus.PENDING_LEAVE.value,
}


def _to_excel_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _minutes_to_hhmm(minutes: int) -> str:
    return format_clock_minutes(max(0, int(minutes)))


def _style_header(ws: Worksheet, row: int = 1) -> None:
    for cell in ws[row]:
        if cell.value is None:
            continue
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER


def _auto_width(ws: Worksheet) -> None:
    for column_cells in ws.iter_cols(min_row=1, max_row=ws.max_row, min_col=1, max_col=ws.max_column):
        max_len = 0
        col_letter = get_column_letter(column_cells[0].column)
        for cell in column_cells:
            if cell.coordinate in ws.merged_cells:
                continue
            value = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(value))
        ws.column_dimensions[col_letter].width = min(max_len + 2, 45)


def _merge_title(ws: Worksheet, row: int, text: str, *, width: int) -> None:
    ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=width)
    cell = ws.cell(row=row, column=1, value=text)
    cell.font = TITLE_FONT
    cell.alignment = Alignment(horizontal="left", vertical="center")


def _style_label_value_rows(ws: Worksheet, *, start_row: int, end_row: int, label_fill: PatternFill) -> None:
    for row_idx in range(start_row, end_row + 1):
        label_cell = ws.cell(row=row_idx, column=1)
        value_cell = ws.cell(row=row_idx, column=2)
        label_cell.font = BOLD_FONT
        label_cell.fill = label_fill
        label_cell.border = THIN_BORDER
        value_cell.font = MUTED_FONT
        value_cell.fill = META_VALUE_FILL
        value_cell.border = THIN_BORDER
        value_cell.alignment = Alignment(horizontal="left", vertical="center")


def _flag_names(day: ReconciledDay) -> str:
    flags = []
    if day.work.missing_check_in:
        flags.append("MISSING_CHECK_IN")
    if day.work.missing_check_out:
        flags.append("MISSING_CHECK_OUT")
    if day.work.missing_break:
        flags.append("MISSING_BREAK")
    if day.needs_manual_input:
        flags.append("NEEDS_MANUAL_INPUT")
    if day.slots.unclassified_times:
        flags.append("UNCLASSIFIED_PUNCHES")
    return ", ".join(flags) if flags else "-"


def _record_row(day: ReconciledDay, employee_name: str | None) -> list[object]:
    shift_day = day.resolved.day if day.resolved is not None else None
    work = day.work
    return [
        day.calendar_date.isoformat(),
        day.employee.employee_code,
        employee_name or "-",
        day.shift.name if day.shift is not None else "-",
        shift_day.start_time if shift_day is not None else "-",
        shift_day.end_time if shift_day is not None else "-",
        day.slots.check_in or "-",
        day.slots.break_out or "-",
        day.slots.break_in or "-",
        day.slots.check_out or "-",
        len(day.scan_times),
        work.shift_late_minutes,
        work.break_late_minutes,
        day.late_minutes,
        work.break_exceeded_minutes,
        work.break_deficit_minutes,
        work.overtime_minutes,
        work.early_leave_minutes,
        _minutes_to_hhmm(work.net_working_minutes),
        day.derived_status.value,
        day.status.value,
        day.authoritative_source,
        day.adjustment.adjusted_by if day.adjustment is not None else "-",
        day.notes or "-",
        _flag_names(day),
    ]


def _style_record_rows(ws: Worksheet, *, header_row: int, data_start_row: int, data_end_row: int) -> None:
    ws.freeze_panes = f"A{header_row + 1}"
    if data_end_row < data_start_row:
        return

    ws.auto_filter.ref = f"A{header_row}:{get_column_letter(len(RECORD_HEADERS))}{data_end_row}"
    status_col = RECORD_HEADERS.index("Status") + 1
    flags_col = RECORD_HEADERS.index("Flags") + 1
    overtime_col = RECORD_HEADERS.index("Overtime") + 1

    for row_idx in range(data_start_row, data_end_row + 1):
        status_value = ws.cell(row=row_idx, column=status_col).value
        if status_value in _WARNING_STATUSES:
            row_fill = WARNING_FILL
        elif row_idx % 2 == 0:
            row_fill = ZEBRA_FILL
        else:
            row_fill = PatternFill(fill_type=None)

        for col_idx in range(1, len(RECORD_HEADERS) + 1):
            cell = ws.cell(row=row_idx, column=col_idx)
            cell.border = THIN_BORDER
            if row_fill.fill_type:
                cell.fill = row_fill
            horizontal = "center" if isinstance(cell.value, (int, float)) else "left"
            cell.alignment = Alignment(horizontal=horizontal, vertical="center")

        flag_cell = ws.cell(row=row_idx, column=flags_col)
        if flag_cell.value not in {None, "", "-"}:
            flag_cell.fill = ALERT_FILL
            flag_cell.font = Font(bold=True, color="9F1239")

        overtime_cell = ws.cell(row=row_idx, column=overtime_col)
        if overtime_cell.value not in {None, 0}:
            overtime_cell.fill = SUCCESS_FILL
            overtime_cell.font = Font(bold=True, color="166534")


def _build_records_sheet(ws: Worksheet, report: WorkCalculationReport) -> None:
    ws.title = "Work Calculation"
    _merge_title(ws, 1, "Work Calculation Report", width=len(RECORD_HEADERS))
    ws.append(["Start Date", report.start_date.isoformat()])
    ws.append(["End Date", report.end_date.isoformat()])
    ws.append(["Generated At", _to_excel_datetime(report.generated_at)])
    _style_label_value_rows(ws, start_row=2, end_row=4, label_fill=META_LABEL_FILL)
    ws.append([])

    ws.append(RECORD_HEADERS)
    header_row = ws.max_row
    _style_header(ws, header_row)

    for day in report.days:
        employee = report.employees_by_code.get(day.employee.employee_code)
        ws.append(_record_row(day, employee.full_name if employee is not None else None))

    _style_record_rows(ws, header_row=header_row, data_start_row=header_row + 1, data_end_row=ws.max_row)
    _auto_width(ws)


def _build_summary_sheet(ws: Worksheet, report: WorkCalculationReport) -> None:
    summary = report.summary
    ws.append(["Indicator", "Value"])
    _style_header(ws, 1)
    rows: list[tuple[str, object]] = [
        ("Records", len(report.days)),
        ("Late", summary.total_late),
        ("Break Exceeded", summary.total_break_exceeded),
        ("Missing Check In", summary.total_missing_check_in),
        ("Missing Check Out", summary.total_missing_check_out),
        ("Missing Break", summary.total_missing_break),
        ("Overtime", summary.total_overtime),
        ("Needs Manual Input", summary.total_needs_manual_input),
        ("Adjusted", summary.total_adjusted),
        ("Total Working Hours", summary.total_working_hours),
    ]
    rows.extend((f"Status {name}", count) for name, count in summary.status_counts.items())
    for label, value in rows:
        ws.append([label, value])
    _style_label_value_rows(ws, start_row=2, end_row=ws.max_row, label_fill=SUMMARY_FILL)
    _auto_width(ws)


def build_work_calculation_xlsx_bytes(report: WorkCalculationReport) -> bytes:
    wb = Workbook()
    _build_records_sheet(wb.active, report)
    _build_summary_sheet(wb.create_sheet("Summary"), report)

    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()
