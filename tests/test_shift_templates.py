from __future__ import annotations

import unittest

from app.errors import ShiftTemplateInvalidError
from app.models import WEEKDAY_ORDER, BreakRuleType, DayOfWeek
from app.services.shift_templates import (
    BreakRule,
    DailyShiftTemplate,
    WeeklyShiftTemplate,
    ensure_valid_weekly_template,
    validate_daily_shift,
    validate_weekly_template,
)


def _office_day(day: DayOfWeek, *rules: BreakRule) -> DailyShiftTemplate:
    return DailyShiftTemplate(day=day, start_time="08:00", end_time="17:00", break_rules=rules)


def _office_week(*rules: BreakRule) -> WeeklyShiftTemplate:
    return WeeklyShiftTemplate(name="Office", days=tuple(_office_day(day, *rules) for day in WEEKDAY_ORDER))


class BreakRuleTests(unittest.TestCase):
    def test_allowed_minutes_per_rule_type(self) -> None:
        fixed = BreakRule.fixed(start_time="12:00", end_time="13:00")
        duration = BreakRule.duration(minutes=45, start_time="12:00", end_time="15:00")

        self.assertEqual(fixed.type, BreakRuleType.FIXED)
        self.assertEqual(fixed.allowed_minutes, 60)
        self.assertEqual(duration.allowed_minutes, 45)
        self.assertTrue(duration.contains("15:00"))
        self.assertFalse(duration.contains("15:01"))

    def test_configured_break_minutes_sums_rules(self) -> None:
        day = _office_day(
            DayOfWeek.MON,
            BreakRule.fixed(start_time="10:00", end_time="10:15"),
            BreakRule.duration(minutes=30, start_time="12:00", end_time="14:00"),
        )
        self.assertEqual(day.total_minutes, 540)
        self.assertEqual(day.configured_break_minutes, 45)
        self.assertTrue(day.is_break_time("10:05"))
        self.assertFalse(day.is_break_time("11:00"))


class TemplateValidationTests(unittest.TestCase):
    def test_full_week_with_fixed_break_is_valid(self) -> None:
        template = _office_week(BreakRule.fixed(start_time="12:00", end_time="13:00"))

        self.assertEqual(validate_weekly_template(template), [])
        self.assertIs(ensure_valid_weekly_template(template), template)

    def test_missing_and_duplicate_days_are_reported(self) -> None:
        template = WeeklyShiftTemplate(
            name="Partial",
            days=(_office_day(DayOfWeek.MON), _office_day(DayOfWeek.MON), _office_day(DayOfWeek.TUE)),
        )

        errors = validate_weekly_template(template)

        self.assertIn("MON: day is defined more than once", errors)
        self.assertIn("Template must define all 7 days, missing: WED, THU, FRI, SAT, SUN", errors)

    def test_inverted_day_is_rejected(self) -> None:
        day = DailyShiftTemplate(day=DayOfWeek.FRI, start_time="17:00", end_time="08:00")

        self.assertEqual(validate_daily_shift(day), ["FRI: end time must be after start time"])

    def test_duration_rule_problems_are_collected(self) -> None:
        day = _office_day(
            DayOfWeek.WED,
            BreakRule.duration(minutes=90, start_time="16:30", end_time="17:30"),
        )

        errors = validate_daily_shift(day)

        self.assertIn("WED break 1: allowed break window falls outside working hours", errors)
        self.assertIn("WED break 1: allowed break window is shorter than the break minutes", errors)

    def test_duration_longer_than_day_is_rejected(self) -> None:
        day = _office_day(DayOfWeek.THU, BreakRule.duration(minutes=540, start_time="08:00", end_time="17:00"))

        errors = validate_daily_shift(day)

        self.assertIn("THU break 1: break minutes must be positive and shorter than the working day", errors)

    def test_fixed_break_outside_day_is_rejected(self) -> None:
        day = _office_day(DayOfWeek.SAT, BreakRule.fixed(start_time="07:30", end_time="08:30"))

        self.assertEqual(
            validate_daily_shift(day),
            ["SAT break 1: fixed break window falls outside working hours"],
        )

    def test_ensure_valid_raises_with_all_errors(self) -> None:
        template = WeeklyShiftTemplate(name="Empty", days=())

        with self.assertRaises(ShiftTemplateInvalidError) as ctx:
            ensure_valid_weekly_template(template)

        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(ctx.exception.code, "SHIFT_TEMPLATE_INVALID")
        self.assertEqual(len(ctx.exception.errors), 1)


if __name__ == "__main__":
    unittest.main()
