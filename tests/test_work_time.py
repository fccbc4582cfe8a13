from __future__ import annotations

import unittest

from app.models import DayOfWeek
from app.services.scan_clustering import BreakPunchPair, cluster_scan_times
from app.services.shift_templates import BreakRule, DailyShiftTemplate
from app.services.work_time import calculate_work_time, evaluate_break

FIXED_LUNCH = BreakRule.fixed(start_time="12:00", end_time="13:00")
MONDAY = DailyShiftTemplate(day=DayOfWeek.MON, start_time="08:00", end_time="17:00", break_rules=(FIXED_LUNCH,))


class ScanClusteringTests(unittest.TestCase):
    def test_zero_one_and_two_punches(self) -> None:
        self.assertFalse(cluster_scan_times([], MONDAY).has_any_punch)

        single = cluster_scan_times(["08:02"], MONDAY)
        self.assertEqual(single.check_in, "08:02")
        self.assertIsNone(single.check_out)

        pair = cluster_scan_times(["17:00", "08:00", "08:00"], MONDAY)
        self.assertEqual((pair.check_in, pair.check_out), ("08:00", "17:00"))
        self.assertEqual(pair.break_pairs, ())

    def test_three_punches_use_break_window(self) -> None:
        inside = cluster_scan_times(["08:00", "12:10", "17:00"], MONDAY)
        self.assertEqual(inside.break_out, "12:10")
        self.assertIsNone(inside.break_in)
        self.assertEqual(inside.unclassified_times, ())

        outside = cluster_scan_times(["08:00", "10:00", "17:00"], MONDAY)
        self.assertIsNone(outside.break_out)
        self.assertEqual(outside.unclassified_times, ("10:00",))

        without_shift = cluster_scan_times(["08:00", "12:10", "17:00"])
        self.assertEqual(without_shift.unclassified_times, ("12:10",))

    def test_four_punches_fill_every_slot(self) -> None:
        slots = cluster_scan_times(["08:05", "12:00", "13:00", "17:10"], MONDAY)

        self.assertEqual(slots.check_in, "08:05")
        self.assertEqual(slots.break_out, "12:00")
        self.assertEqual(slots.break_in, "13:00")
        self.assertEqual(slots.check_out, "17:10")
        self.assertEqual(slots.break_pairs, (BreakPunchPair("12:00", "13:00"),))

    def test_extra_interior_punches_stay_unclassified(self) -> None:
        slots = cluster_scan_times(["08:00", "12:00", "12:55", "15:00", "15:10", "17:00"], MONDAY)

        self.assertEqual(slots.break_pairs, (BreakPunchPair("12:00", "12:55"),))
        self.assertEqual(slots.unclassified_times, ("15:00", "15:10"))

    def test_one_pair_per_break_rule(self) -> None:
        day = DailyShiftTemplate(
            day=DayOfWeek.TUE,
            start_time="08:00",
            end_time="17:00",
            break_rules=(
                BreakRule.fixed(start_time="10:00", end_time="10:15"),
                FIXED_LUNCH,
            ),
        )

        slots = cluster_scan_times(["08:00", "10:00", "10:15", "12:00", "13:00", "17:00"], day)

        self.assertEqual(len(slots.break_pairs), 2)
        self.assertEqual(slots.break_pairs[1], BreakPunchPair("12:00", "13:00"))
        self.assertEqual(slots.unclassified_times, ())

    def test_unreadable_times_are_kept_aside(self) -> None:
        slots = cluster_scan_times(["08:00", "bad", "17:00"], MONDAY)

        self.assertEqual((slots.check_in, slots.check_out), ("08:00", "17:00"))
        self.assertEqual(slots.unclassified_times, ("bad",))


class WorkTimeCalculationTests(unittest.TestCase):
    def test_full_day_with_fixed_break(self) -> None:
        slots = cluster_scan_times(["08:05", "12:00", "13:00", "17:10"], MONDAY)

        result = calculate_work_time(MONDAY, slots)

        self.assertTrue(result.shift_applies)
        self.assertEqual(result.shift_late_minutes, 5)
        self.assertEqual(result.break_late_minutes, 0)
        self.assertEqual(result.overtime_minutes, 10)
        self.assertEqual(result.early_leave_minutes, 0)
        self.assertEqual(result.gross_minutes, 485)
        self.assertEqual(result.net_working_minutes, 425)
        self.assertFalse(result.missing_break)
        self.assertTrue(result.is_late)

    def test_two_punches_mark_break_missing_and_deduct_configured_break(self) -> None:
        slots = cluster_scan_times(["08:00", "17:00"], MONDAY)

        result = calculate_work_time(MONDAY, slots)

        self.assertTrue(result.missing_break)
        self.assertEqual(result.break_late_minutes, 0)
        self.assertEqual(result.net_working_minutes, 480)
        self.assertFalse(result.is_late)

    def test_duration_break_outside_window_and_too_long(self) -> None:
        rule = BreakRule.duration(minutes=60, start_time="12:30", end_time="16:30")
        day = DailyShiftTemplate(day=DayOfWeek.MON, start_time="08:00", end_time="17:00", break_rules=(rule,))
        slots = cluster_scan_times(["08:00", "12:00", "13:10", "17:00"], day)

        result = calculate_work_time(day, slots)

        self.assertEqual(result.break_late_minutes, 30)
        self.assertEqual(result.break_exceeded_minutes, 10)
        self.assertEqual(result.break_deficit_minutes, 0)
        self.assertEqual(result.total_late_minutes, 30)

    def test_short_duration_break_records_deficit(self) -> None:
        rule = BreakRule.duration(minutes=60, start_time="12:00", end_time="14:00")

        evaluation = evaluate_break(rule, BreakPunchPair("12:10", "12:50"))

        self.assertEqual(evaluation.actual_minutes, 40)
        self.assertEqual(evaluation.deficit_minutes, 20)
        self.assertEqual(evaluation.late_minutes, 0)

    def test_fixed_break_returning_late(self) -> None:
        evaluation = evaluate_break(FIXED_LUNCH, BreakPunchPair("12:00", "13:20"))

        self.assertEqual(evaluation.late_minutes, 20)
        self.assertEqual(evaluation.exceeded_minutes, 0)

    def test_grace_and_overtime_threshold(self) -> None:
        slots = cluster_scan_times(["08:10", "17:20"], MONDAY)

        within_grace = calculate_work_time(MONDAY, slots, grace_minutes=10, overtime_threshold_minutes=30)
        self.assertEqual(within_grace.shift_late_minutes, 0)
        self.assertEqual(within_grace.overtime_minutes, 0)

        past_grace = calculate_work_time(MONDAY, slots, grace_minutes=5, overtime_threshold_minutes=15)
        self.assertEqual(past_grace.shift_late_minutes, 5)
        self.assertEqual(past_grace.overtime_minutes, 5)

    def test_early_leave_and_missing_check_out(self) -> None:
        early = calculate_work_time(MONDAY, cluster_scan_times(["08:00", "16:15"], MONDAY))
        self.assertEqual(early.early_leave_minutes, 45)
        self.assertEqual(early.overtime_minutes, 0)

        single = calculate_work_time(MONDAY, cluster_scan_times(["08:00"], MONDAY))
        self.assertTrue(single.missing_check_out)
        self.assertFalse(single.missing_check_in)
        self.assertEqual(single.net_working_minutes, 0)

    def test_no_shift_day_produces_empty_result(self) -> None:
        result = calculate_work_time(None, cluster_scan_times(["08:00", "17:00"]))

        self.assertFalse(result.shift_applies)
        self.assertEqual(result.net_working_minutes, 0)


if __name__ == "__main__":
    unittest.main()
