"""HH:MM helpers shared by the tour and care-plan engines.

Times cross the API boundary as zero-padded 24-hour ``HH:MM`` strings.
Normalisation is best effort: anything that cannot be parsed is passed
through so that validation, not formatting, reports it.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Any, Iterable, Mapping

STRICT_TIME_FORMAT_RE = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")
_LOOSE_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_PARTIAL_TIME_RE = re.compile(r"^(\d{1,2}):?(\d{0,2})$")
_PARSE_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")

TIME_FORMAT_EXAMPLES = ["07:00", "09:30", "14:15", "23:59"]
MINUTES_PER_DAY = 24 * 60


def _in_range(hours: int, minutes: int) -> bool:
    return 0 <= hours <= 23 and 0 <= minutes <= 59


def format_time_string(value: str | None) -> str:
    if not value:
        return ""
    clean = value.strip()
    if STRICT_TIME_FORMAT_RE.match(clean):
        return clean

    for pattern in (_LOOSE_TIME_RE, _PARTIAL_TIME_RE):
        match = pattern.match(clean)
        if not match:
            continue
        hours = int(match.group(1))
        minutes = int(match.group(2)) if match.group(2) else 0
        if _in_range(hours, minutes):
            return f"{hours:02d}:{minutes:02d}"

    return clean


def is_valid_time_format(value: str | None) -> bool:
    if not value or not isinstance(value, str):
        return False
    return STRICT_TIME_FORMAT_RE.match(value.strip()) is not None


def parse_time_string(value: str) -> tuple[int, int] | None:
    if not isinstance(value, str):
        return None
    match = _PARSE_TIME_RE.match(value)
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if not _in_range(hours, minutes):
        return None
    return hours, minutes


def create_time_string(hours: int, minutes: int) -> str:
    if not _in_range(hours, minutes):
        raise ValueError(f"Invalid time values: {hours}:{minutes}")
    return f"{hours:02d}:{minutes:02d}"


def date_to_time_string(value: datetime | time) -> str:
    return create_time_string(value.hour, value.minute)


def time_string_to_date(value: str, on: date | None = None) -> datetime | None:
    parsed = parse_time_string(value)
    if parsed is None:
        return None
    day = on or date.today()
    return datetime.combine(day, time(parsed[0], parsed[1]))


def to_minutes(value: str) -> int:
    """Minutes since midnight; raises ValueError for non ``HH:MM`` input."""
    parsed = parse_time_string(value)
    if parsed is None:
        raise ValueError(f"Invalid time string: {value!r}")
    return parsed[0] * 60 + parsed[1]


def minutes_to_time(total: int | float) -> str:
    # Values past midnight are rendered as-is (e.g. "24:15") and left for
    # validation to reject.
    total = int(total)
    return f"{total // 60:02d}:{total % 60:02d}"


def is_valid_time_range(start: str, end: str) -> bool:
    if parse_time_string(start) is None or parse_time_string(end) is None:
        return False
    return to_minutes(start) < to_minutes(end)


def duration_in_minutes(start: str, end: str) -> int:
    if parse_time_string(start) is None or parse_time_string(end) is None:
        return 0
    duration = to_minutes(end) - to_minutes(start)
    return duration if duration > 0 else 0


def format_minutes(value: float) -> str:
    rounded = round(value, 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.2f}"


def format_duration_display(total_minutes: float) -> str:
    if total_minutes == 0:
        return "0min"
    rounded = round(total_minutes, 2)
    hours = int(rounded // 60)
    minutes = round(rounded - hours * 60, 2)
    if hours == 0:
        return f"{format_minutes(minutes)}min"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {format_minutes(minutes)}min"


def time_format_error_message(field_name: str = "Time") -> str:
    return f"{field_name} must be in HH:MM format (e.g., {', '.join(TIME_FORMAT_EXAMPLES)})"


def normalize_time_value(value: Any) -> Any:
    if isinstance(value, (datetime, time)):
        return date_to_time_string(value)
    if isinstance(value, str) and "T" in value:
        try:
            return date_to_time_string(datetime.fromisoformat(value))
        except ValueError:
            return value.strip()
    if isinstance(value, str):
        return format_time_string(value)
    return value


def format_time_fields(data: Mapping[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    """Return a copy of ``data`` with every listed time field as ``HH:MM``."""
    result = dict(data)
    for field in fields:
        value = result.get(field)
        if value:
            result[field] = normalize_time_value(value)
    return result
