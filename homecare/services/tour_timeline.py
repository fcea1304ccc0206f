"""Tour timeline construction, overlap detection and start-time suggestions.

All functions are pure. Events are taken with any staged time override
already merged in (see ``effective_events``); intervals are half-open
``[start, end)`` in minutes since midnight.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Hashable, Iterable, Mapping, Sequence

from ..config import get_settings
from .time_utils import minutes_to_time, to_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TourEvent:
    id: Hashable
    patient_id: int
    time_start: str
    time_end: str
    date: date | None = None
    tour_id: Hashable | None = None
    patient_name: str | None = None
    state: int = 1

    @classmethod
    def from_row(cls, row: Any) -> "TourEvent":
        return cls(
            id=row.id,
            patient_id=row.patient_id,
            time_start=row.time_start,
            time_end=row.time_end,
            date=row.date,
            tour_id=row.tour_id,
            patient_name=row.patient_name,
            state=row.state,
        )


@dataclass(frozen=True)
class TimeOverride:
    time_start: str
    time_end: str
    original_start: str
    original_end: str


@dataclass(frozen=True)
class EffectiveEvent:
    event: TourEvent
    time_start: str
    time_end: str
    has_pending_changes: bool = False

    @property
    def id(self) -> Hashable:
        return self.event.id

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.time_start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.time_end)

    @property
    def duration(self) -> int:
        return self.end_minutes - self.start_minutes


@dataclass(frozen=True)
class TravelSegment:
    from_event_id: Hashable
    to_event_id: Hashable
    duration_minutes: int | None = None
    distance_km: float | None = None


def _key(from_event_id: Hashable, to_event_id: Hashable) -> tuple[str, str]:
    return str(from_event_id), str(to_event_id)


class TravelLookup:
    """Directional travel durations with a fixed fallback for missing data.

    Event ids are compared as strings; remote segments always carry them
    that way.
    """

    def __init__(self, segments: Iterable[TravelSegment] = (), default_minutes: int | None = None):
        if default_minutes is None:
            default_minutes = get_settings().DEFAULT_TRAVEL_MINUTES
        self.default_minutes = default_minutes
        self._durations: dict[tuple[str, str], int] = {}
        for segment in segments:
            if segment.duration_minutes:
                self._durations[_key(segment.from_event_id, segment.to_event_id)] = segment.duration_minutes

    def duration(self, from_event_id: Hashable, to_event_id: Hashable) -> int:
        return self._durations.get(_key(from_event_id, to_event_id), self.default_minutes)

    def has_data(self, from_event_id: Hashable, to_event_id: Hashable) -> bool:
        return _key(from_event_id, to_event_id) in self._durations


class TimelineItemType(str, enum.Enum):
    EVENT = "event"
    TRAVEL = "travel"
    EMPTY = "empty"


@dataclass
class TimelineItem:
    type: TimelineItemType
    start: str
    end: str
    duration: int
    event_id: Hashable | None = None
    is_overlapping: bool = False
    has_pending_changes: bool = False
    overlapping_with: tuple = ()
    previous_event_id: Hashable | None = None
    next_event_id: Hashable | None = None
    can_remove: bool = False
    from_event_id: Hashable | None = None
    to_event_id: Hashable | None = None
    estimated_travel: bool = False


@dataclass(frozen=True)
class Overlap:
    event1_id: Hashable
    event2_id: Hashable
    overlap_start: str
    overlap_end: str
    overlap_duration: int


@dataclass(frozen=True)
class TimeAdjustment:
    event_id: Hashable
    original_start: str
    suggested_start: str
    travel_minutes: int
    reason: str


@dataclass
class TourAnalysis:
    timeline: list[TimelineItem]
    overlaps: list[Overlap]
    suggestions: list[TimeAdjustment]
    outside_tour_hours: list[Hashable] = field(default_factory=list)

    @property
    def has_overlaps(self) -> bool:
        return bool(self.overlaps)


def effective_events(
    events: Iterable[TourEvent], overrides: Mapping[Hashable, TimeOverride] | None = None
) -> list[EffectiveEvent]:
    overrides = overrides or {}
    merged: list[EffectiveEvent] = []
    for event in events:
        override = overrides.get(event.id)
        if override is None:
            merged.append(EffectiveEvent(event, event.time_start, event.time_end))
        else:
            merged.append(EffectiveEvent(event, override.time_start, override.time_end, True))
    return merged


def sort_by_start(events: Iterable[EffectiveEvent]) -> list[EffectiveEvent]:
    return sorted(events, key=lambda e: (e.start_minutes, e.end_minutes))


def shift_event(event: EffectiveEvent, new_start: str) -> TimeOverride:
    """Move an event to ``new_start`` keeping its current duration."""
    new_end = minutes_to_time(to_minutes(new_start) + event.duration)
    return TimeOverride(
        time_start=new_start,
        time_end=new_end,
        original_start=event.event.time_start,
        original_end=event.event.time_end,
    )


def detect_overlaps(events: Sequence[EffectiveEvent]) -> list[Overlap]:
    ordered = sort_by_start(events)
    overlaps: list[Overlap] = []
    for i, first in enumerate(ordered):
        for second in ordered[i + 1:]:
            start1, end1 = first.start_minutes, first.end_minutes
            start2, end2 = second.start_minutes, second.end_minutes
            if start1 < end2 and start2 < end1:
                overlap_start = max(start1, start2)
                overlap_end = min(end1, end2)
                overlaps.append(
                    Overlap(
                        event1_id=first.id,
                        event2_id=second.id,
                        overlap_start=minutes_to_time(overlap_start),
                        overlap_end=minutes_to_time(overlap_end),
                        overlap_duration=overlap_end - overlap_start,
                    )
                )
    return overlaps


def overlapping_event_ids(overlaps: Iterable[Overlap]) -> set[Hashable]:
    ids: set[Hashable] = set()
    for overlap in overlaps:
        ids.add(overlap.event1_id)
        ids.add(overlap.event2_id)
    return ids


def _overlap_partners(event_id: Hashable, overlaps: Sequence[Overlap]) -> tuple:
    partners = []
    for overlap in overlaps:
        if overlap.event1_id == event_id:
            partners.append(overlap.event2_id)
        elif overlap.event2_id == event_id:
            partners.append(overlap.event1_id)
    return tuple(partners)


def build_timeline(
    tour_start: str,
    tour_end: str,
    events: Sequence[EffectiveEvent],
    travel: TravelLookup | None = None,
    overlaps: Sequence[Overlap] | None = None,
) -> list[TimelineItem]:
    travel = travel or TravelLookup()
    ordered = sort_by_start(events)
    if overlaps is None:
        overlaps = detect_overlaps(ordered)
    flagged = overlapping_event_ids(overlaps)

    items: list[TimelineItem] = []
    cursor = to_minutes(tour_start)
    end_of_tour = to_minutes(tour_end)

    for index, event in enumerate(ordered):
        previous = ordered[index - 1] if index > 0 else None
        start, end = event.start_minutes, event.end_minutes

        if cursor < start:
            items.append(
                TimelineItem(
                    type=TimelineItemType.EMPTY,
                    start=minutes_to_time(cursor),
                    end=event.time_start,
                    duration=start - cursor,
                    previous_event_id=previous.id if previous else None,
                    next_event_id=event.id,
                    can_remove=previous is not None,
                )
            )

        items.append(
            TimelineItem(
                type=TimelineItemType.EVENT,
                start=event.time_start,
                end=event.time_end,
                duration=end - start,
                event_id=event.id,
                is_overlapping=event.id in flagged,
                has_pending_changes=event.has_pending_changes,
                overlapping_with=_overlap_partners(event.id, overlaps),
            )
        )
        cursor = max(cursor, end)

        if index == len(ordered) - 1:
            continue
        following = ordered[index + 1]
        next_start = following.start_minutes
        # Overlapping or back-to-back visits leave no room for a travel leg.
        if cursor >= next_start:
            continue

        travel_minutes = travel.duration(event.id, following.id)
        travel_end = cursor + travel_minutes
        items.append(
            TimelineItem(
                type=TimelineItemType.TRAVEL,
                start=minutes_to_time(cursor),
                end=minutes_to_time(travel_end),
                duration=travel_minutes,
                from_event_id=event.id,
                to_event_id=following.id,
                estimated_travel=not travel.has_data(event.id, following.id),
            )
        )
        if travel_end < next_start:
            items.append(
                TimelineItem(
                    type=TimelineItemType.EMPTY,
                    start=minutes_to_time(travel_end),
                    end=following.time_start,
                    duration=next_start - travel_end,
                    previous_event_id=event.id,
                    next_event_id=following.id,
                    can_remove=True,
                )
            )
        cursor = next_start

    if cursor < end_of_tour:
        items.append(
            TimelineItem(
                type=TimelineItemType.EMPTY,
                start=minutes_to_time(cursor),
                end=tour_end,
                duration=end_of_tour - cursor,
                previous_event_id=ordered[-1].id if ordered else None,
            )
        )
    return items


def suggest_time_adjustments(
    events: Sequence[EffectiveEvent], travel: TravelLookup | None = None
) -> list[TimeAdjustment]:
    """Suggest later starts so each visit follows its predecessor plus travel.

    Each event is compared with its predecessor as currently scheduled; the
    result is not transitive, re-run after applying suggestions.
    """
    travel = travel or TravelLookup()
    ordered = sort_by_start(events)
    adjustments: list[TimeAdjustment] = []
    for previous, current in zip(ordered, ordered[1:]):
        travel_minutes = travel.duration(previous.id, current.id)
        minimum_start = previous.end_minutes + travel_minutes
        if current.start_minutes < minimum_start:
            adjustments.append(
                TimeAdjustment(
                    event_id=current.id,
                    original_start=current.time_start,
                    suggested_start=minutes_to_time(minimum_start),
                    travel_minutes=travel_minutes,
                    reason=(
                        f"Overlap detected. Needs {travel_minutes} min travel time "
                        f"from previous event."
                    ),
                )
            )
    logger.debug("Computed %s time adjustment(s) for %s event(s)", len(adjustments), len(ordered))
    return adjustments


def events_outside_tour_hours(
    tour_start: str, tour_end: str, events: Iterable[EffectiveEvent]
) -> list[Hashable]:
    start, end = to_minutes(tour_start), to_minutes(tour_end)
    return [e.id for e in events if e.start_minutes < start or e.end_minutes > end]


def analyze_tour(
    tour_start: str,
    tour_end: str,
    events: Sequence[EffectiveEvent],
    travel: TravelLookup | None = None,
) -> TourAnalysis:
    travel = travel or TravelLookup()
    overlaps = detect_overlaps(events)
    return TourAnalysis(
        timeline=build_timeline(tour_start, tour_end, events, travel, overlaps),
        overlaps=overlaps,
        suggestions=suggest_time_adjustments(events, travel),
        outside_tour_hours=events_outside_tour_hours(tour_start, tour_end, events),
    )
