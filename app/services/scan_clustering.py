from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from app.services.clock_time import normalize_clock_time
from app.services.shift_templates import DailyShiftTemplate


@dataclass(frozen=True, slots=True)
class BreakPunchPair:
    break_out: str | None
    break_in: str | None

    @property
    def complete(self) -> bool:
        return self.break_out is not None and self.break_in is not None


@dataclass(frozen=True, slots=True)
class PunchSlots:
    check_in: str | None = None
    break_out: str | None = None
    break_in: str | None = None
    check_out: str | None = None
    break_pairs: tuple[BreakPunchPair, ...] = ()
    unclassified_times: tuple[str, ...] = ()

    @property
    def has_any_punch(self) -> bool:
        return self.check_in is not None or self.check_out is not None


def _prepare_times(times: Sequence[str]) -> tuple[list[str], list[str]]:
    valid: set[str] = set()
    unreadable: list[str] = []
    for value in times:
        normalized = normalize_clock_time(value)
        if normalized is None:
            unreadable.append(value)
        else:
            valid.add(normalized)
    return sorted(valid), unreadable


def cluster_scan_times(
    times: Sequence[str],
    shift_day: DailyShiftTemplate | None = None,
) -> PunchSlots:
    """Map a day's distinct punch times onto check-in / break / check-out slots.

    First punch is check-in, last is check-out. With three punches the middle
    one is a break-out only when it lies inside a break window of the shift.
    With four or more, interior punches are paired in order, one pair per
    configured break rule (at least one pair); leftovers stay unclassified.
    """
    ordered, unreadable = _prepare_times(times)
    count = len(ordered)

    if count == 0:
        return PunchSlots(unclassified_times=tuple(unreadable))
    if count == 1:
        return PunchSlots(check_in=ordered[0], unclassified_times=tuple(unreadable))
    if count == 2:
        return PunchSlots(check_in=ordered[0], check_out=ordered[1], unclassified_times=tuple(unreadable))

    check_in, check_out = ordered[0], ordered[-1]
    interior = ordered[1:-1]

    if count == 3:
        middle = interior[0]
        if shift_day is not None and shift_day.is_break_time(middle):
            pair = BreakPunchPair(break_out=middle, break_in=None)
            return PunchSlots(
                check_in=check_in,
                break_out=middle,
                check_out=check_out,
                break_pairs=(pair,),
                unclassified_times=tuple(unreadable),
            )
        return PunchSlots(
            check_in=check_in,
            check_out=check_out,
            unclassified_times=(middle, *unreadable),
        )

    pair_count = max(1, len(shift_day.break_rules) if shift_day is not None else 0)
    pairs: list[BreakPunchPair] = []
    for index in range(pair_count):
        chunk = interior[index * 2:index * 2 + 2]
        if not chunk:
            break
        pairs.append(BreakPunchPair(break_out=chunk[0], break_in=chunk[1] if len(chunk) > 1 else None))
    leftovers = interior[pair_count * 2:]

    first = pairs[0]
    return PunchSlots(
        check_in=check_in,
        break_out=first.break_out,
        break_in=first.break_in,
        check_out=check_out,
        break_pairs=tuple(pairs),
        unclassified_times=(*leftovers, *unreadable),
    )
