from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from ..config import get_settings
from .time_utils import (
    MINUTES_PER_DAY,
    create_time_string,
    duration_in_minutes,
    parse_time_string,
)

EVERY_DAY_MARKERS = ("tous les jours", "daily")
EVERY_DAY_SENTINEL = "*"
DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class CareItemLine:
    weekly_package_minutes: float
    quantity: int = 1

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CareItemLine":
        # Accepts both the flat form and the nested upstream form
        # {"long_term_care_item": {"weekly_package": 90}, "quantity": 2}.
        nested = data.get("long_term_care_item") or {}
        weekly = data.get("weekly_package_minutes", nested.get("weekly_package"))
        return cls(weekly_package_minutes=weekly or 0, quantity=data.get("quantity", 1))


@dataclass(frozen=True)
class Occurrence:
    name: str = ""
    value: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Occurrence":
        return cls(
            name=str(data.get("name") or data.get("str_name") or ""),
            value=str(data.get("value") or ""),
        )

    def means_every_day(self) -> bool:
        if self.name == EVERY_DAY_SENTINEL or self.value == EVERY_DAY_SENTINEL:
            return True
        name = self.name.lower()
        value = self.value.lower()
        return any(marker in name or marker in value for marker in EVERY_DAY_MARKERS)


@dataclass
class DurationMatch:
    matches: bool
    actual_duration: int
    expected_duration: float
    difference: float
    suggested_end_time: str | None


@dataclass
class DurationSummary:
    daily_duration: float
    days_per_week: int
    weekly_duration: float
    session_duration: int
    match: DurationMatch


def daily_duration(items: Iterable[CareItemLine]) -> float:
    total = 0.0
    for item in items:
        total += (item.weekly_package_minutes or 0) / DAYS_PER_WEEK * item.quantity
    return total


def actual_days_per_week(occurrences: Sequence[Occurrence] | int) -> int:
    """Days per week a care session happens.

    A single "tous les jours" / "daily" / "*" entry means seven days, not one.
    """
    if isinstance(occurrences, int):
        return occurrences
    if any(occ.means_every_day() for occ in occurrences):
        return DAYS_PER_WEEK
    return len(occurrences)


def actual_weekly_duration(
    items: Sequence[CareItemLine], occurrences: Sequence[Occurrence] | int
) -> float:
    return daily_duration(items) * actual_days_per_week(occurrences)


def planned_weekly_duration(items: Sequence[CareItemLine], occurrence_count: int) -> float:
    return daily_duration(items) * (occurrence_count / DAYS_PER_WEEK)


def suggested_end_time(
    start: str, items: Sequence[CareItemLine], occurrence_count: int = 1
) -> str | None:
    # occurrence_count is accepted for call-site compatibility; the daily
    # portion does not depend on it.
    if not start or not items:
        return None
    duration = daily_duration(items)
    if duration == 0:
        return None
    parsed = parse_time_string(start)
    if parsed is None:
        return None

    end_minutes = parsed[0] * 60 + parsed[1] + duration
    if end_minutes >= MINUTES_PER_DAY:
        return None
    end_minutes = int(end_minutes)
    return create_time_string(end_minutes // 60, end_minutes % 60)


def session_duration_match(
    start: str,
    end: str,
    items: Sequence[CareItemLine],
    tolerance_minutes: int | None = None,
) -> DurationMatch:
    if tolerance_minutes is None:
        tolerance_minutes = get_settings().DURATION_TOLERANCE_MINUTES
    actual = duration_in_minutes(start, end)
    expected = daily_duration(items)
    difference = actual - expected
    return DurationMatch(
        matches=abs(difference) <= tolerance_minutes,
        actual_duration=actual,
        expected_duration=expected,
        difference=difference,
        suggested_end_time=suggested_end_time(start, items, 1),
    )


def duration_summary(
    start: str,
    end: str,
    items: Sequence[CareItemLine],
    occurrences: Sequence[Occurrence] | int,
) -> DurationSummary:
    days = actual_days_per_week(occurrences)
    daily = daily_duration(items)
    return DurationSummary(
        daily_duration=daily,
        days_per_week=days,
        weekly_duration=daily * days,
        session_duration=duration_in_minutes(start, end),
        match=session_duration_match(start, end, items),
    )
