from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence
from uuid import UUID

from ..config import get_settings
from .schedule_rules import (
    MonthlySchedule,
    PartsSchedule,
    PrnSchedule,
    SpecificSchedule,
    TimesSchedule,
    TypedScheduleRule,
    WEEKDAY_NAMES,
    WeeklySchedule,
)
from .time_utils import parse_time_string


@dataclass(frozen=True)
class DueDose:
    rule_id: UUID | None
    rule_order: int
    due_at: datetime
    dose: float
    dose_unit: str


@dataclass(frozen=True)
class PrnDecision:
    allowed: bool
    reason: str | None = None
    next_allowed_at: datetime | None = None


def _at(day: date, hhmm: str) -> datetime:
    hours, minutes = parse_time_string(hhmm)
    return datetime.combine(day, time(hours, minutes))


def is_rule_effective(rule: TypedScheduleRule, on: date) -> bool:
    if not rule.is_active:
        return False
    if rule.valid_from and on < rule.valid_from:
        return False
    if rule.valid_until and on > rule.valid_until:
        return False
    return True


def due_times_on(rule: TypedScheduleRule, on: date) -> list[datetime]:
    if not is_rule_effective(rule, on):
        return []

    schedule = rule.schedule
    if isinstance(schedule, PartsSchedule):
        part_times = get_settings().PART_OF_DAY_TIMES
        times = [_at(on, part_times[part.value]) for part in schedule.parts_of_day]
    elif isinstance(schedule, TimesSchedule):
        times = [_at(on, t) for t in schedule.exact_times]
    elif isinstance(schedule, WeeklySchedule):
        times = [_at(on, schedule.weekly_time)] if on.weekday() in schedule.weekdays else []
    elif isinstance(schedule, MonthlySchedule):
        times = [_at(on, schedule.monthly_time)] if on.day in schedule.days_of_month else []
    elif isinstance(schedule, SpecificSchedule):
        times = [dt for dt in schedule.specific_datetimes if dt.date() == on]
    else:
        times = []
    return sorted(set(times))


def due_doses_between(rules: Iterable[TypedScheduleRule], start: date, end: date) -> list[DueDose]:
    rules = list(rules)
    doses: list[DueDose] = []
    day = start
    while day <= end:
        for rule in rules:
            for due_at in due_times_on(rule, day):
                doses.append(
                    DueDose(
                        rule_id=rule.id,
                        rule_order=rule.rule_order,
                        due_at=due_at,
                        dose=rule.dose,
                        dose_unit=rule.dose_unit,
                    )
                )
        day += timedelta(days=1)
    doses.sort(key=lambda d: (d.due_at, d.rule_order))
    return doses


def can_take_prn(rule: TypedScheduleRule, taken: Sequence[datetime], at: datetime) -> PrnDecision:
    schedule = rule.schedule
    if not isinstance(schedule, PrnSchedule):
        return PrnDecision(False, "Rule is not an as-needed (PRN) rule")
    if not is_rule_effective(rule, at.date()):
        return PrnDecision(False, "Rule is not active on this date")

    history = sorted(dt for dt in taken if dt <= at)
    next_allowed: datetime | None = None
    reasons: list[str] = []

    if schedule.prn_max_doses_per_day is not None:
        same_day = [dt for dt in history if dt.date() == at.date()]
        if len(same_day) >= schedule.prn_max_doses_per_day:
            reasons.append(
                f"Maximum of {schedule.prn_max_doses_per_day} dose(s) per day already reached"
            )
            next_allowed = datetime.combine(at.date() + timedelta(days=1), time(0, 0))

    if schedule.prn_min_interval_hours is not None and history:
        earliest = history[-1] + timedelta(hours=schedule.prn_min_interval_hours)
        if at < earliest:
            reasons.append(
                f"Minimum interval of {schedule.prn_min_interval_hours:g}h "
                f"since last dose not reached"
            )
            next_allowed = max(next_allowed, earliest) if next_allowed else earliest

    if reasons:
        return PrnDecision(False, "; ".join(reasons), next_allowed)
    return PrnDecision(True)


def describe_rule(rule: TypedScheduleRule) -> str:
    dose = f"{rule.dose:g} {rule.dose_unit}"
    schedule = rule.schedule
    if isinstance(schedule, PartsSchedule):
        return f"{dose} - {', '.join(p.value.capitalize() for p in schedule.parts_of_day)}"
    if isinstance(schedule, TimesSchedule):
        return f"{dose} at {', '.join(schedule.exact_times)}"
    if isinstance(schedule, WeeklySchedule):
        days = ", ".join(WEEKDAY_NAMES[d][:3] for d in schedule.weekdays)
        return f"{dose} - {days} at {schedule.weekly_time}"
    if isinstance(schedule, MonthlySchedule):
        days = ", ".join(str(d) for d in schedule.days_of_month)
        return f"{dose} - Day {days} at {schedule.monthly_time}"
    if isinstance(schedule, SpecificSchedule):
        return f"{dose} - {len(schedule.specific_datetimes)} specific date(s)"
    return f"{dose} PRN - {schedule.prn_condition}"
