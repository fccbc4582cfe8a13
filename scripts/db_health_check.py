#!/usr/bin/env python
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, text


EXPECTED_HEAD = "0001_initial"
REQUIRED_TABLES = (
    "zones",
    "branches",
    "departments",
    "employees",
    "shifts",
    "shift_days",
    "shift_break_rules",
    "shift_scope_assignments",
    "attendance_scans",
    "attendance_adjustments",
    "audit_logs",
)


def load_env_if_exists() -> None:
    env_file = Path(".env")
    if not env_file.exists():
        return
    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def run() -> dict:
    load_env_if_exists()
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL not found (.env or env vars).")

    engine = create_engine(database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append({"name": name, "status": status, "details": details})

    with engine.connect() as conn:
        tables = set(
            conn.execute(
                text(
                    """
                    select table_name
                    from information_schema.tables
                    where table_schema='public'
                    """
                )
            ).scalars()
        )

        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        missing_tables = [table for table in REQUIRED_TABLES if table not in tables]
        add("missing_tables", "fail" if missing_tables else "ok", {"missing": missing_tables})
        if missing_tables:
            return report

        scope_conflicts = conn.execute(
            text(
                """
                select a.level, a.zone_id, a.branch_id, a.department_id, array_agg(distinct a.shift_id)
                from shift_scope_assignments a
                join shifts s on s.id = a.shift_id
                where s.is_active = true
                group by a.level, a.zone_id, a.branch_id, a.department_id
                having count(distinct a.shift_id) > 1
                """
            )
        ).fetchall()
        add(
            "active_scope_conflicts",
            "fail" if scope_conflicts else "ok",
            {"rows": [[str(item) for item in row] for row in scope_conflicts]},
        )

        unmatched_codes = conn.execute(
            text(
                """
                select distinct s.employee_code
                from attendance_scans s
                left join employees e on e.employee_code = s.employee_code
                where e.id is null
                limit 20
                """
            )
        ).scalars().all()
        add(
            "scan_codes_without_employee",
            "warn" if unmatched_codes else "ok",
            {"sample_codes": list(unmatched_codes)},
        )

        count_mismatches = conn.execute(
            text(
                """
                select id
                from attendance_scans
                where jsonb_array_length(scan_times) <> scan_count
                limit 20
                """
            )
        ).scalars().all()
        add(
            "scan_count_mismatch",
            "fail" if count_mismatches else "ok",
            {"sample_ids": list(count_mismatches)},
        )

        inconsistent_late = conn.execute(
            text(
                """
                select id
                from attendance_adjustments
                where is_late = false and late_minutes <> 0
                limit 20
                """
            )
        ).scalars().all()
        add(
            "adjustment_late_minutes_without_flag",
            "fail" if inconsistent_late else "ok",
            {"sample_ids": list(inconsistent_late)},
        )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
