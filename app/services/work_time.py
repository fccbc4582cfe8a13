from __future__ import annotations

from dataclasses import dataclass

from app.models import BreakRuleType
from app.services.clock_time import parse_clock_minutes
from app.services.scan_clustering import BreakPunchPair, PunchSlots
from app.services.shift_templates import BreakRule, DailyShiftTemplate


@dataclass(frozen=True, slots=True)
class BreakEvaluation:
    rule_type: BreakRuleType
    break_out: str | None
    break_in: str | None
    actual_minutes: int | None
    late_minutes: int
    exceeded_minutes: int
    deficit_minutes: int

    @property
    def missing(self) -> bool:
        return self.actual_minutes is None


@dataclass(frozen=True, slots=True)
class WorkTimeResult:
    shift_applies: bool = False
    shift_late_minutes: int = 0
    break_late_minutes: int = 0
    break_exceeded_minutes: int = 0
    break_deficit_minutes: int = 0
    overtime_minutes: int = 0
    early_leave_minutes: int = 0
    gross_minutes: int = 0
    configured_break_minutes: int = 0
    net_working_minutes: int = 0
    missing_check_in: bool = False
    missing_check_out: bool = False
    missing_break: bool = False
    break_evaluations: tuple[BreakEvaluation, ...] = ()

    @property
    def total_late_minutes(self) -> int:
        return self.shift_late_minutes + self.break_late_minutes

    @property
    def is_late(self) -> bool:
        return self.total_late_minutes > 0


def evaluate_break(rule: BreakRule, pair: BreakPunchPair | None) -> BreakEvaluation:
    """Score one break against its rule.

    Window deviations (leaving before the window opens, returning after it
    closes) count as break lateness for both rule types. Duration rules also
    compare the actual length with the allowed minutes.
    """
    break_out = pair.break_out if pair is not None else None
    break_in = pair.break_in if pair is not None else None
    out_minutes = parse_clock_minutes(break_out)
    in_minutes = parse_clock_minutes(break_in)
    window_start = parse_clock_minutes(rule.start_time)
    window_end = parse_clock_minutes(rule.end_time)

    if out_minutes is None or in_minutes is None or window_start is None or window_end is None:
        return BreakEvaluation(
            rule_type=rule.type,
            break_out=break_out,
            break_in=break_in,
            actual_minutes=None,
            late_minutes=0,
            exceeded_minutes=0,
            deficit_minutes=0,
        )

    actual_minutes = max(0, in_minutes - out_minutes)
    late_minutes = 0
    if out_minutes < window_start:
        late_minutes += window_start - out_minutes
    if in_minutes > window_end:
        late_minutes += in_minutes - window_end

    exceeded_minutes = 0
    deficit_minutes = 0
    if rule.type == BreakRuleType.DURATION:
        allowed = rule.allowed_minutes
        if actual_minutes > allowed:
            exceeded_minutes = actual_minutes - allowed
        elif actual_minutes < allowed:
            deficit_minutes = allowed - actual_minutes

    return BreakEvaluation(
        rule_type=rule.type,
        break_out=break_out,
        break_in=break_in,
        actual_minutes=actual_minutes,
        late_minutes=late_minutes,
        exceeded_minutes=exceeded_minutes,
        deficit_minutes=deficit_minutes,
    )


def calculate_work_time(
    shift_day: DailyShiftTemplate | None,
    slots: PunchSlots,
    *,
    grace_minutes: int = 0,
    overtime_threshold_minutes: int = 0,
) -> WorkTimeResult:
    if shift_day is None:
        return WorkTimeResult()

    check_in = parse_clock_minutes(slots.check_in)
    check_out = parse_clock_minutes(slots.check_out)
    shift_start = parse_clock_minutes(shift_day.start_time)
    shift_end = parse_clock_minutes(shift_day.end_time)
    safe_grace = max(0, grace_minutes)

    shift_late_minutes = 0
    if check_in is not None and shift_start is not None:
        late_diff = check_in - shift_start
        if late_diff > safe_grace:
            shift_late_minutes = late_diff - safe_grace

    overtime_minutes = 0
    early_leave_minutes = 0
    if check_out is not None and shift_end is not None:
        overtime_minutes = max(0, check_out - (shift_end + max(0, overtime_threshold_minutes)))
        early_leave_minutes = max(0, shift_end - check_out)

    evaluations: list[BreakEvaluation] = []
    for index, rule in enumerate(shift_day.break_rules):
        pair = slots.break_pairs[index] if index < len(slots.break_pairs) else None
        evaluations.append(evaluate_break(rule, pair))

    configured_break_minutes = shift_day.configured_break_minutes
    gross_minutes = 0
    net_working_minutes = 0
    if check_in is not None and check_out is not None:
        gross_minutes = max(0, check_out - check_in)
        net_working_minutes = max(0, gross_minutes - configured_break_minutes)

    return WorkTimeResult(
        shift_applies=True,
        shift_late_minutes=shift_late_minutes,
        break_late_minutes=sum(item.late_minutes for item in evaluations),
        break_exceeded_minutes=sum(item.exceeded_minutes for item in evaluations),
        break_deficit_minutes=sum(item.deficit_minutes for item in evaluations),
        overtime_minutes=overtime_minutes,
        early_leave_minutes=early_leave_minutes,
        gross_minutes=gross_minutes,
        configured_break_minutes=configured_break_minutes,
        net_working_minutes=net_working_minutes,
        missing_check_in=slots.check_in is None,
        missing_check_out=slots.check_out is None,
        missing_break=any(item.missing for item in evaluations),
        break_evaluations=tuple(evaluations),
    )
