from __future__ import annotations

from dataclasses import dataclass, field

from app.errors import ShiftTemplateInvalidError
from app.models import WEEKDAY_ORDER, BreakRuleType, DayOfWeek
from app.services.clock_time import minutes_between, parse_clock_minutes


@dataclass(frozen=True, slots=True)
class BreakRule:
    """A break window inside one shift day.

    DURATION rules allow a break of ``minutes`` anywhere inside the window.
    FIXED rules expect the break to cover exactly the window.
    """

    type: BreakRuleType
    start_time: str
    end_time: str
    minutes: int | None = None

    @classmethod
    def duration(cls, *, minutes: int, start_time: str, end_time: str) -> BreakRule:
        return cls(type=BreakRuleType.DURATION, start_time=start_time, end_time=end_time, minutes=minutes)

    @classmethod
    def fixed(cls, *, start_time: str, end_time: str) -> BreakRule:
        return cls(type=BreakRuleType.FIXED, start_time=start_time, end_time=end_time)

    @property
    def window_minutes(self) -> int | None:
        return minutes_between(self.start_time, self.end_time)

    @property
    def allowed_minutes(self) -> int:
        if self.type == BreakRuleType.DURATION:
            return max(0, self.minutes or 0)
        return max(0, self.window_minutes or 0)

    def contains(self, clock_time: str) -> bool:
        value = parse_clock_minutes(clock_time)
        start = parse_clock_minutes(self.start_time)
        end = parse_clock_minutes(self.end_time)
        if value is None or start is None or end is None:
            return False
        return start <= value <= end


@dataclass(frozen=True, slots=True)
class DailyShiftTemplate:
    day: DayOfWeek
    start_time: str
    end_time: str
    break_rules: tuple[BreakRule, ...] = ()

    @property
    def total_minutes(self) -> int | None:
        return minutes_between(self.start_time, self.end_time)

    @property
    def configured_break_minutes(self) -> int:
        return sum(rule.allowed_minutes for rule in self.break_rules)

    def is_break_time(self, clock_time: str) -> bool:
        return any(rule.contains(clock_time) for rule in self.break_rules)


@dataclass(frozen=True, slots=True)
class WeeklyShiftTemplate:
    name: str
    days: tuple[DailyShiftTemplate, ...]

    def day_for(self, weekday: DayOfWeek) -> DailyShiftTemplate | None:
        for day in self.days:
            if day.day == weekday:
                return day
        return None


@dataclass(frozen=True, slots=True)
class ShiftDefinition:
    id: int
    template: WeeklyShiftTemplate
    grace_minutes: int = 0
    overtime_threshold_minutes: int = 0
    is_active: bool = True
    description: str | None = field(default=None, compare=False)

    @property
    def name(self) -> str:
        return self.template.name

    def day_for(self, weekday: DayOfWeek) -> DailyShiftTemplate | None:
        return self.template.day_for(weekday)


def _within_day(rule: BreakRule, template: DailyShiftTemplate) -> bool:
    rule_start = parse_clock_minutes(rule.start_time)
    rule_end = parse_clock_minutes(rule.end_time)
    day_start = parse_clock_minutes(template.start_time)
    day_end = parse_clock_minutes(template.end_time)
    if None in (rule_start, rule_end, day_start, day_end):
        return False
    return rule_start >= day_start and rule_end <= day_end


def validate_daily_shift(template: DailyShiftTemplate) -> list[str]:
    errors: list[str] = []
    day = template.day.value
    total_minutes = template.total_minutes
    if total_minutes is None:
        errors.append(f"{day}: start/end time must use HH:MM")
        total_minutes = 0
    elif total_minutes <= 0:
        errors.append(f"{day}: end time must be after start time")

    for index, rule in enumerate(template.break_rules, start=1):
        window_minutes = rule.window_minutes
        if window_minutes is None:
            errors.append(f"{day} break {index}: window start/end must use HH:MM")
            continue

        if rule.type == BreakRuleType.DURATION:
            minutes = rule.minutes or 0
            if minutes <= 0 or minutes >= total_minutes:
                errors.append(f"{day} break {index}: break minutes must be positive and shorter than the working day")
            if window_minutes <= 0:
                errors.append(f"{day} break {index}: allowed break window is empty or inverted")
            if not _within_day(rule, template):
                errors.append(f"{day} break {index}: allowed break window falls outside working hours")
            if window_minutes < minutes:
                errors.append(f"{day} break {index}: allowed break window is shorter than the break minutes")
        else:
            if window_minutes <= 0:
                errors.append(f"{day} break {index}: fixed break window is empty or inverted")
            if not _within_day(rule, template):
                errors.append(f"{day} break {index}: fixed break window falls outside working hours")

    return errors


def validate_weekly_template(template: WeeklyShiftTemplate) -> list[str]:
    """Collect every problem of a weekly template; an empty list means valid."""
    errors: list[str] = []
    seen: set[DayOfWeek] = set()
    duplicates: list[DayOfWeek] = []
    for day in template.days:
        if day.day in seen and day.day not in duplicates:
            duplicates.append(day.day)
        seen.add(day.day)

    for weekday in duplicates:
        errors.append(f"{weekday.value}: day is defined more than once")
    missing = [weekday.value for weekday in WEEKDAY_ORDER if weekday not in seen]
    if missing:
        errors.append(f"Template must define all 7 days, missing: {', '.join(missing)}")

    for day in template.days:
        errors.extend(validate_daily_shift(day))
    return errors


def ensure_valid_weekly_template(template: WeeklyShiftTemplate) -> WeeklyShiftTemplate:
    errors = validate_weekly_template(template)
    if errors:
        raise ShiftTemplateInvalidError(errors)
    return template
