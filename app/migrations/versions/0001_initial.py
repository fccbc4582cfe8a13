"""Initial time attendance schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

day_of_week = postgresql.ENUM(
    "MON",
    "TUE",
    "WED",
    "THU",
    "FRI",
    "SAT",
    "SUN",
    name="day_of_week",
    create_type=False,
)
break_rule_type = postgresql.ENUM("DURATION", "FIXED", name="break_rule_type", create_type=False)
scope_level = postgresql.ENUM("ZONE", "BRANCH", "DEPARTMENT", name="scope_level", create_type=False)
attendance_status = postgresql.ENUM(
    "PRESENT",
    "ABSENT",
    "LEAVE",
    "PENDING_LEAVE",
    "HOLIDAY",
    "DAY_OFF",
    name="attendance_status",
    create_type=False,
)
audit_actor_type = postgresql.ENUM("ADMIN", "SYSTEM", name="audit_actor_type", create_type=False)

_ENUMS = (day_of_week, break_rule_type, scope_level, attendance_status, audit_actor_type)


def _created_at_column(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in _ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.UniqueConstraint("code", name="uq_zones_code"),
    )

    op.create_table(
        "branches",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("zone_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["zone_id"], ["zones.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("code", name="uq_branches_code"),
    )
    op.create_index("ix_branches_zone_id", "branches", ["zone_id"])

    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_departments_branch_id", "departments", ["branch_id"])

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_code", sa.String(length=50), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("zone_id", sa.Integer(), nullable=True),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        sa.Column("department_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.ForeignKeyConstraint(["zone_id"], ["zones.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_employees_employee_code", "employees", ["employee_code"], unique=True)
    op.create_index("ix_employees_zone_id", "employees", ["zone_id"])
    op.create_index("ix_employees_branch_id", "employees", ["branch_id"])
    op.create_index("ix_employees_department_id", "employees", ["department_id"])

    op.create_table(
        "shifts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("grace_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("overtime_threshold_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at_column("created_at"),
        _created_at_column("updated_at"),
        sa.UniqueConstraint("name", name="uq_shifts_name"),
    )

    op.create_table(
        "shift_days",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=False),
        sa.Column("weekday", day_of_week, nullable=False),
        sa.Column("start_time_local", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time_local", sa.Time(timezone=False), nullable=False),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("shift_id", "weekday", name="uq_shift_days_shift_weekday"),
    )
    op.create_index("ix_shift_days_shift_id", "shift_days", ["shift_id"])

    op.create_table(
        "shift_break_rules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("shift_day_id", sa.Integer(), nullable=False),
        sa.Column("type", break_rule_type, nullable=False),
        sa.Column("minutes", sa.Integer(), nullable=True),
        sa.Column("start_time_local", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time_local", sa.Time(timezone=False), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["shift_day_id"], ["shift_days.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "type <> 'DURATION' OR (minutes IS NOT NULL AND minutes > 0)",
            name="ck_shift_break_rules_duration_minutes",
        ),
    )
    op.create_index("ix_shift_break_rules_shift_day_id", "shift_break_rules", ["shift_day_id"])

    op.create_table(
        "shift_scope_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=False),
        sa.Column("level", scope_level, nullable=False),
        sa.Column("zone_id", sa.Integer(), nullable=True),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        sa.Column("department_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["zone_id"], ["zones.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_shift_scope_assignments_shift_id", "shift_scope_assignments", ["shift_id"])
    op.create_index("ix_shift_scope_assignments_zone_id", "shift_scope_assignments", ["zone_id"])
    op.create_index("ix_shift_scope_assignments_branch_id", "shift_scope_assignments", ["branch_id"])
    op.create_index("ix_shift_scope_assignments_department_id", "shift_scope_assignments", ["department_id"])

    op.create_table(
        "attendance_scans",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_code", sa.String(length=50), nullable=False),
        sa.Column("scan_date", sa.Date(), nullable=False),
        sa.Column(
            "scan_times",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("scan_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("import_source", sa.String(length=50), nullable=False),
        sa.Column("import_batch_id", sa.String(length=64), nullable=False),
        _created_at_column("imported_at"),
        sa.UniqueConstraint("employee_code", "scan_date", name="uq_attendance_scans_employee_code_date"),
    )
    op.create_index("ix_attendance_scans_employee_code", "attendance_scans", ["employee_code"])
    op.create_index("ix_attendance_scans_scan_date", "attendance_scans", ["scan_date"])
    op.create_index("ix_attendance_scans_import_batch_id", "attendance_scans", ["import_batch_id"])

    op.create_table(
        "attendance_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("is_late", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("late_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("shift_id", sa.Integer(), nullable=True),
        sa.Column("adjusted_by", sa.String(length=255), nullable=False),
        sa.Column("adjusted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_attendance_adjustments_employee_day"),
    )
    op.create_index("ix_attendance_adjustments_employee_id", "attendance_adjustments", ["employee_id"])
    op.create_index("ix_attendance_adjustments_day_date", "attendance_adjustments", ["day_date"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _created_at_column("ts_utc"),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("attendance_adjustments")
    op.drop_table("attendance_scans")
    op.drop_table("shift_scope_assignments")
    op.drop_table("shift_break_rules")
    op.drop_table("shift_days")
    op.drop_table("shifts")
    op.drop_table("employees")
    op.drop_table("departments")
    op.drop_table("branches")
    op.drop_table("zones")

    bind = op.get_bind()
    for enum_type in reversed(_ENUMS):
        enum_type.drop(bind, checkfirst=True)
