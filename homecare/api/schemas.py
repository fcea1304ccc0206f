from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ScheduleRuleRequest(StrictModel):
    # Values are checked by validate_schedule_rule.
    schedule_kind: Any = None
    rule_order: Any = None
    is_active: Any = None
    dose: Any = None
    dose_unit: Any = None
    valid_from: Any = None
    valid_until: Any = None
    notes: Optional[str] = None
    parts_of_day: Any = None
    exact_times: Any = None
    weekdays: Any = None
    weekly_time: Any = None
    days_of_month: Any = None
    monthly_time: Any = None
    specific_datetimes: Any = None
    prn_condition: Any = None
    prn_max_doses_per_day: Any = None
    prn_min_interval_hours: Any = None


class TimeChangeRequest(StrictModel):
    event_id: UUID
    time_start: str


class TravelSegmentPayload(StrictModel):
    from_event_id: UUID
    to_event_id: UUID
    duration_minutes: Optional[int] = None
    distance_km: Optional[float] = None


class TourTimelineRequest(StrictModel):
    time_changes: list[TimeChangeRequest] = []
    travel_segments: list[TravelSegmentPayload] = []
    default_travel_minutes: Optional[int] = None


class TourSaveRequest(StrictModel):
    time_changes: list[TimeChangeRequest] = []
    assign: list[UUID] = []
    remove: list[UUID] = []


class CareItemPayload(StrictModel):
    weekly_package_minutes: float = 0
    quantity: int = 1


class OccurrencePayload(StrictModel):
    name: str = ""
    value: str = ""


class DurationCheckRequest(StrictModel):
    care_plan_detail_id: Optional[UUID] = None
    time_start: Optional[str] = None
    time_end: Optional[str] = None
    care_items: list[CareItemPayload] = []
    occurrences: list[OccurrencePayload] = []
    days_per_week: Optional[int] = None
