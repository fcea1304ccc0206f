"""Medication schedule rules.

A rule carries common dosing fields plus exactly one schedule payload, chosen
by ``schedule_kind``. The wire and storage form is flat (one optional column
per payload field); the typed form below is a discriminated union so that a
rule with two payloads cannot be built.

``validate_schedule_rule`` works on the flat form and never raises: it returns
a ``{field: message}`` map, empty when the rule is valid.
"""

from __future__ import annotations

import enum
import math
from datetime import date, datetime
from numbers import Real
from typing import Annotated, Any, Literal, Mapping, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import get_settings
from .time_utils import is_valid_time_format, time_format_error_message


class ScheduleKind(str, enum.Enum):
    PARTS = "parts"
    TIMES = "times"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    SPECIFIC = "specific"
    PRN = "prn"


class PartOfDay(str, enum.Enum):
    MORNING = "morning"
    NOON = "noon"
    EVENING = "evening"
    NIGHT = "night"


WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

KIND_FIELDS: dict[ScheduleKind, tuple[str, ...]] = {
    ScheduleKind.PARTS: ("parts_of_day",),
    ScheduleKind.TIMES: ("exact_times",),
    ScheduleKind.WEEKLY: ("weekdays", "weekly_time"),
    ScheduleKind.MONTHLY: ("days_of_month", "monthly_time"),
    ScheduleKind.SPECIFIC: ("specific_datetimes",),
    ScheduleKind.PRN: ("prn_condition", "prn_max_doses_per_day", "prn_min_interval_hours"),
}
PAYLOAD_FIELDS = tuple(field for fields in KIND_FIELDS.values() for field in fields)

PRN_MAX_INTERVAL_HOURS = 24 * 31
# Doses are planned in the patient's wall-clock time.
SPECIFIC_OFFSET_MESSAGE = "Each entry must be a local date and time without a UTC offset"


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class PartsSchedule(_Payload):
    kind: Literal["parts"] = "parts"
    parts_of_day: tuple[PartOfDay, ...]


class TimesSchedule(_Payload):
    kind: Literal["times"] = "times"
    exact_times: tuple[str, ...]


class WeeklySchedule(_Payload):
    kind: Literal["weekly"] = "weekly"
    weekdays: tuple[int, ...]
    weekly_time: str


class MonthlySchedule(_Payload):
    kind: Literal["monthly"] = "monthly"
    days_of_month: tuple[int, ...]
    monthly_time: str


class SpecificSchedule(_Payload):
    kind: Literal["specific"] = "specific"
    specific_datetimes: tuple[datetime, ...]

    @field_validator("specific_datetimes")
    @classmethod
    def _local_wall_time(cls, values: tuple[datetime, ...]) -> tuple[datetime, ...]:
        if any(value.tzinfo is not None for value in values):
            raise ValueError(SPECIFIC_OFFSET_MESSAGE)
        return values


class PrnSchedule(_Payload):
    kind: Literal["prn"] = "prn"
    prn_condition: str
    prn_max_doses_per_day: int | None = None
    prn_min_interval_hours: float | None = None


Schedule = Annotated[
    Union[
        PartsSchedule,
        TimesSchedule,
        WeeklySchedule,
        MonthlySchedule,
        SpecificSchedule,
        PrnSchedule,
    ],
    Field(discriminator="kind"),
]


class TypedScheduleRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID | None = None
    rule_order: int = 0
    is_active: bool = True
    dose: float
    dose_unit: str = "unit(s)"
    valid_from: date | None = None
    valid_until: date | None = None
    notes: str | None = None
    schedule: Schedule

    @property
    def kind(self) -> ScheduleKind:
        return ScheduleKind(self.schedule.kind)


class ScheduleRuleError(ValueError):
    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple, set)) and not value)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            return None
    return None


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _check_int_set(values: Any, low: int, high: int, label: str) -> str | None:
    if not isinstance(values, (list, tuple, set)) or not values:
        return f"Select at least one {label}"
    for value in values:
        if not _is_int(value) or not low <= value <= high:
            return f"Each {label} must be an integer between {low} and {high}"
    return None


def _check_time(value: Any, label: str) -> str | None:
    if _is_empty(value):
        return f"{label} is required"
    if not is_valid_time_format(value):
        return time_format_error_message(label)
    return None


def _validate_common(data: Mapping[str, Any], errors: dict[str, str]) -> None:
    dose = data.get("dose")
    if dose is None:
        errors["dose"] = "Dose is required"
    elif not _is_number(dose):
        errors["dose"] = "Dose must be a number"
    elif not math.isfinite(dose) or dose <= 0:
        errors["dose"] = "Dose must be greater than 0"

    dose_unit = data.get("dose_unit")
    if dose_unit is not None and not isinstance(dose_unit, str):
        errors["dose_unit"] = "Dose unit must be text"

    if "is_active" in data and data["is_active"] is not None and not isinstance(data["is_active"], bool):
        errors["is_active"] = "is_active must be true or false"

    rule_order = data.get("rule_order")
    if rule_order is not None and not _is_int(rule_order):
        errors["rule_order"] = "Rule order must be an integer"

    valid_from = data.get("valid_from")
    valid_until = data.get("valid_until")
    start = _as_date(valid_from) if not _is_empty(valid_from) else None
    end = _as_date(valid_until) if not _is_empty(valid_until) else None
    if not _is_empty(valid_from) and start is None:
        errors["valid_from"] = "Valid from must be a date (YYYY-MM-DD)"
    if not _is_empty(valid_until) and end is None:
        errors["valid_until"] = "Valid until must be a date (YYYY-MM-DD)"
    if start and end and end < start:
        errors["valid_until"] = "Valid until must be on or after valid from"


def _validate_payload(kind: ScheduleKind, data: Mapping[str, Any], errors: dict[str, str]) -> None:
    if kind is ScheduleKind.PARTS:
        parts = data.get("parts_of_day")
        allowed = {p.value for p in PartOfDay}
        if not isinstance(parts, (list, tuple, set)) or not parts:
            errors["parts_of_day"] = "Select at least one part of day"
        elif any(not isinstance(p, str) or p not in allowed for p in parts):
            errors["parts_of_day"] = f"Parts of day must be among {', '.join(sorted(allowed))}"

    elif kind is ScheduleKind.TIMES:
        times = data.get("exact_times")
        if not isinstance(times, (list, tuple)) or not times:
            errors["exact_times"] = "Add at least one time"
        elif not all(is_valid_time_format(t) for t in times):
            errors["exact_times"] = time_format_error_message("Each time")

    elif kind is ScheduleKind.WEEKLY:
        message = _check_int_set(data.get("weekdays"), 0, 6, "weekday")
        if message:
            errors["weekdays"] = message
        message = _check_time(data.get("weekly_time"), "Weekly time")
        if message:
            errors["weekly_time"] = message

    elif kind is ScheduleKind.MONTHLY:
        message = _check_int_set(data.get("days_of_month"), 1, 31, "day of month")
        if message:
            errors["days_of_month"] = message
        message = _check_time(data.get("monthly_time"), "Monthly time")
        if message:
            errors["monthly_time"] = message

    elif kind is ScheduleKind.SPECIFIC:
        values = data.get("specific_datetimes")
        if not isinstance(values, (list, tuple)) or not values:
            errors["specific_datetimes"] = "Add at least one date and time"
        else:
            parsed = [_as_datetime(v) for v in values]
            if any(dt is None for dt in parsed):
                errors["specific_datetimes"] = "Each entry must be an ISO-8601 datetime"
            elif any(dt.tzinfo is not None for dt in parsed):
                errors["specific_datetimes"] = SPECIFIC_OFFSET_MESSAGE

    elif kind is ScheduleKind.PRN:
        condition = data.get("prn_condition")
        if not isinstance(condition, str) or not condition.strip():
            errors["prn_condition"] = "A condition is required for as-needed dosing"
        max_doses = data.get("prn_max_doses_per_day")
        if max_doses is not None and (not _is_int(max_doses) or max_doses <= 0):
            errors["prn_max_doses_per_day"] = "Maximum doses per day must be a positive integer"
        interval = data.get("prn_min_interval_hours")
        if interval is not None:
            if not _is_number(interval) or not math.isfinite(interval) or interval <= 0:
                errors["prn_min_interval_hours"] = "Minimum interval must be a positive number of hours"
            elif interval > PRN_MAX_INTERVAL_HOURS:
                errors["prn_min_interval_hours"] = (
                    f"Minimum interval cannot exceed {PRN_MAX_INTERVAL_HOURS} hours"
                )


def validate_schedule_rule(data: Any) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not isinstance(data, Mapping):
        return {"__all__": "Schedule rule must be an object"}

    _validate_common(data, errors)

    raw_kind = data.get("schedule_kind")
    try:
        kind = ScheduleKind(raw_kind)
    except (TypeError, ValueError):
        errors["schedule_kind"] = (
            f"Schedule kind must be one of {', '.join(k.value for k in ScheduleKind)}"
        )
        return errors

    for field in PAYLOAD_FIELDS:
        if field not in KIND_FIELDS[kind] and not _is_empty(data.get(field)):
            errors[field] = f"Not allowed for '{kind.value}' schedules"

    _validate_payload(kind, data, errors)
    return errors


def _build_payload(kind: ScheduleKind, data: Mapping[str, Any]) -> Schedule:
    if kind is ScheduleKind.PARTS:
        order = list(PartOfDay)
        parts = sorted({PartOfDay(p) for p in data["parts_of_day"]}, key=order.index)
        return PartsSchedule(parts_of_day=tuple(parts))
    if kind is ScheduleKind.TIMES:
        return TimesSchedule(exact_times=tuple(t.strip() for t in data["exact_times"]))
    if kind is ScheduleKind.WEEKLY:
        return WeeklySchedule(
            weekdays=tuple(sorted(set(data["weekdays"]))),
            weekly_time=data["weekly_time"].strip(),
        )
    if kind is ScheduleKind.MONTHLY:
        return MonthlySchedule(
            days_of_month=tuple(sorted(set(data["days_of_month"]))),
            monthly_time=data["monthly_time"].strip(),
        )
    if kind is ScheduleKind.SPECIFIC:
        return SpecificSchedule(
            specific_datetimes=tuple(_as_datetime(v) for v in data["specific_datetimes"])
        )
    return PrnSchedule(
        prn_condition=data["prn_condition"].strip(),
        prn_max_doses_per_day=data.get("prn_max_doses_per_day"),
        prn_min_interval_hours=data.get("prn_min_interval_hours"),
    )


def build_schedule_rule(data: Mapping[str, Any]) -> TypedScheduleRule:
    """Validate a flat rule and return its typed form.

    Raises ScheduleRuleError carrying the field errors when invalid.
    """
    errors = validate_schedule_rule(data)
    if errors:
        raise ScheduleRuleError(errors)

    kind = ScheduleKind(data["schedule_kind"])
    return TypedScheduleRule(
        id=data.get("id"),
        rule_order=data.get("rule_order") or 0,
        is_active=data.get("is_active", True) is not False,
        dose=float(data["dose"]),
        dose_unit=data.get("dose_unit") or get_settings().DEFAULT_DOSE_UNIT,
        valid_from=_as_date(data.get("valid_from")),
        valid_until=_as_date(data.get("valid_until")),
        notes=data.get("notes"),
        schedule=_build_payload(kind, data),
    )


def rule_to_fields(rule: TypedScheduleRule) -> dict[str, Any]:
    """Flatten a typed rule into storage columns; foreign payload fields are None."""
    fields: dict[str, Any] = {
        "schedule_kind": rule.kind.value,
        "rule_order": rule.rule_order,
        "is_active": rule.is_active,
        "dose": rule.dose,
        "dose_unit": rule.dose_unit,
        "valid_from": rule.valid_from,
        "valid_until": rule.valid_until,
        "notes": rule.notes,
    }
    fields.update({name: None for name in PAYLOAD_FIELDS})

    payload = rule.schedule.model_dump(mode="json", exclude={"kind"})
    for name, value in payload.items():
        fields[name] = list(value) if isinstance(value, (list, tuple)) else value
    return fields


def rule_from_row(row: Any) -> TypedScheduleRule:
    data = {name: getattr(row, name) for name in PAYLOAD_FIELDS}
    data.update(
        id=row.id,
        schedule_kind=row.schedule_kind,
        rule_order=row.rule_order,
        is_active=row.is_active,
        dose=row.dose,
        dose_unit=row.dose_unit,
        valid_from=row.valid_from,
        valid_until=row.valid_until,
        notes=row.notes,
    )
    return build_schedule_rule(data)
