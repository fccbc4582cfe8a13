from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("app.schema_guard")


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "employees": {"id", "employee_code", "zone_id", "branch_id", "department_id"},
    "shifts": {"id", "name", "grace_minutes", "overtime_threshold_minutes", "is_active"},
    "shift_days": {"id", "shift_id", "weekday", "start_time_local", "end_time_local"},
    "shift_break_rules": {"id", "shift_day_id", "type", "minutes", "start_time_local", "end_time_local"},
    "shift_scope_assignments": {"id", "shift_id", "level", "zone_id", "branch_id", "department_id"},
    "attendance_scans": {"id", "employee_code", "scan_date", "scan_times", "scan_count", "import_batch_id"},
    "attendance_adjustments": {"id", "employee_id", "day_date", "status", "adjusted_by", "adjusted_at"},
    "alembic_version": {"version_num"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "day_of_week": {"MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"},
    "break_rule_type": {"DURATION", "FIXED"},
    "scope_level": {"ZONE", "BRANCH", "DEPARTMENT"},
    "attendance_status": {"PRESENT", "ABSENT", "LEAVE", "PENDING_LEAVE", "HOLIDAY", "DAY_OFF"},
}


def _column_issues(inspector) -> list[str]:  # type: ignore[no-untyped-def]
    issues: list[str] = []
    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except SQLAlchemyError as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")
    return issues


def _enum_labels(inspector, warnings: list[str]) -> dict[str, set[str]]:  # type: ignore[no-untyped-def]
    try:
        enums = inspector.get_enums() or []
    except (SQLAlchemyError, NotImplementedError) as exc:
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        return {}

    labels_by_name: dict[str, set[str]] = {}
    for enum_item in enums:
        name = str(enum_item.get("name") or "").strip()
        labels = enum_item.get("labels")
        if name and isinstance(labels, list):
            labels_by_name[name] = {str(label) for label in labels}
    return labels_by_name


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)

    issues = _column_issues(inspector)
    labels_by_name = _enum_labels(inspector, warnings)
    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        if enum_name not in labels_by_name:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing_values = sorted(item for item in required_values if item not in labels_by_name[enum_name])
        if missing_values:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")

    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    except SQLAlchemyError as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")
    else:
        if not (str(row).strip() if row is not None else ""):
            issues.append("ALEMBIC_VERSION_EMPTY")

    result = SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
    if not result.ok:
        logger.error("schema_guard_failed", extra=result.to_dict())
    return result
