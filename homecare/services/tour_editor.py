"""Staged editing of a tour.

Assignments, removals and time changes are held in overlay maps until
``save``; every read goes through ``effective_events`` so the canonical
event list is never edited in place. ``cancel`` clears the overlays.

Saving persists each staged change with its own call, in order: time
changes, assignments, removals. The first failure stops the batch; calls
already made stay committed and the rest stay staged for a retry.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Hashable, Iterable, Sequence

from ..config import get_settings
from .care_api_client import CareApiClient, CareApiError, TourValidationResult
from .debounce import Debouncer
from .time_utils import format_time_string, is_valid_time_format, minutes_to_time
from .tour_timeline import (
    EffectiveEvent,
    Overlap,
    TimeAdjustment,
    TimelineItem,
    TimeOverride,
    TourAnalysis,
    TourEvent,
    TravelLookup,
    TravelSegment,
    analyze_tour,
    build_timeline,
    detect_overlaps,
    effective_events,
    shift_event,
    sort_by_start,
    suggest_time_adjustments,
)

logger = logging.getLogger(__name__)

TIME_CHANGE = "time_change"
ASSIGN = "assign"
REMOVE = "remove"


class SaveBlockedError(RuntimeError):
    def __init__(self, errors: list[dict[str, Any]]):
        super().__init__(f"Tour has {len(errors)} validation error(s)")
        self.errors = errors


@dataclass(frozen=True)
class SaveOperation:
    action: str
    event_id: Hashable
    fields: dict[str, Any]


@dataclass
class SaveReport:
    committed: list[SaveOperation] = field(default_factory=list)
    failed: SaveOperation | None = None
    error: str | None = None
    not_attempted: list[SaveOperation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed is None


@dataclass
class ValidationState:
    issued: int = 0
    applied: int = 0
    result: TourValidationResult | None = None
    error: str | None = None

    @property
    def blocks_save(self) -> bool:
        return self.result is not None and not self.result.is_valid


def plan_save_operations(
    tour_id: Hashable,
    time_changes: dict[Hashable, TimeOverride],
    to_assign: Iterable[Hashable],
    to_remove: Iterable[Hashable],
) -> list[SaveOperation]:
    operations = [
        SaveOperation(
            TIME_CHANGE,
            event_id,
            {"time_start": change.time_start, "time_end": change.time_end},
        )
        for event_id, change in time_changes.items()
    ]
    operations += [SaveOperation(ASSIGN, event_id, {"tour_id": tour_id}) for event_id in to_assign]
    operations += [SaveOperation(REMOVE, event_id, {"tour_id": None}) for event_id in to_remove]
    return operations


def build_tour_validation_payload(
    events: Sequence[EffectiveEvent],
    tour_start: str,
    tour_end: str,
    *,
    employee_id: int | None = None,
    tour_date: date | None = None,
    tour_name: str | None = None,
    addresses: dict[Hashable, str] | None = None,
) -> dict[str, Any]:
    addresses = addresses or {}
    payload_events = []
    for sequence, event in enumerate(sort_by_start(events), start=1):
        payload_events.append(
            {
                "id": str(event.id),
                "patient_id": event.event.patient_id,
                "patient_name": event.event.patient_name or "",
                "patient_address": addresses.get(event.id, ""),
                "time_start": event.time_start,
                "time_end": event.time_end,
                "duration_minutes": event.duration,
                "sequence": sequence,
                "state": event.event.state,
            }
        )
    return {
        "events": payload_events,
        "planned_start_time": tour_start,
        "planned_end_time": tour_end,
        "employee_id": employee_id,
        "tour_date": tour_date.isoformat() if tour_date else None,
        "tour_name": tour_name,
        "include_travel_calculation": True,
        "include_optimization_suggestions": True,
    }


class TourEditor:
    def __init__(
        self,
        tour_id: Hashable,
        assigned: Iterable[TourEvent],
        available: Iterable[TourEvent] = (),
        *,
        tour_start: str | None = None,
        tour_end: str | None = None,
        tour_date: date | None = None,
        tour_name: str | None = None,
        employee_id: int | None = None,
        travel: TravelLookup | None = None,
        client: CareApiClient | None = None,
        timer_factory=threading.Timer,
    ):
        settings = get_settings()
        self.tour_id = tour_id
        self.tour_start = tour_start or settings.DEFAULT_TOUR_START
        self.tour_end = tour_end or settings.DEFAULT_TOUR_END
        self.tour_date = tour_date
        self.tour_name = tour_name
        self.employee_id = employee_id
        self.client = client
        # Guards travel data and validation state; responses land on the timer thread.
        self._lock = threading.RLock()
        self._travel = travel or TravelLookup()

        self._assigned: dict[Hashable, TourEvent] = {}
        self._available: dict[Hashable, TourEvent] = {}
        self.to_assign: dict[Hashable, TourEvent] = {}
        self.to_remove: dict[Hashable, TourEvent] = {}
        self.time_changes: dict[Hashable, TimeOverride] = {}
        self._load(assigned, available)

        self.validation = ValidationState()
        self._debouncer = Debouncer(
            settings.VALIDATION_DEBOUNCE_MS / 1000, self._run_validation, timer_factory=timer_factory
        )

    def _load(self, assigned: Iterable[TourEvent], available: Iterable[TourEvent]) -> None:
        self._assigned = {event.id: event for event in assigned}
        self._available = {
            event.id: event for event in available if event.id not in self._assigned
        }

    # Reads

    @property
    def travel(self) -> TravelLookup:
        with self._lock:
            return self._travel

    @travel.setter
    def travel(self, lookup: TravelLookup) -> None:
        with self._lock:
            self._travel = lookup

    @property
    def has_pending_changes(self) -> bool:
        return bool(self.to_assign or self.to_remove or self.time_changes)

    def assigned_events(self) -> list[TourEvent]:
        events = [e for e in self._assigned.values() if e.id not in self.to_remove]
        return events + list(self.to_assign.values())

    def available_events(self) -> list[TourEvent]:
        events = [e for e in self._available.values() if e.id not in self.to_assign]
        return events + list(self.to_remove.values())

    def effective_events(self) -> list[EffectiveEvent]:
        return effective_events(self.assigned_events(), self.time_changes)

    def _effective(self, event_id: Hashable) -> EffectiveEvent:
        for event in self.effective_events():
            if event.id == event_id:
                return event
        raise KeyError(f"Event {event_id} is not assigned to tour {self.tour_id}")

    def timeline(self) -> list[TimelineItem]:
        return build_timeline(self.tour_start, self.tour_end, self.effective_events(), self.travel)

    def overlaps(self) -> list[Overlap]:
        return detect_overlaps(self.effective_events())

    def suggestions(self) -> list[TimeAdjustment]:
        return suggest_time_adjustments(self.effective_events(), self.travel)

    def analysis(self) -> TourAnalysis:
        return analyze_tour(self.tour_start, self.tour_end, self.effective_events(), self.travel)

    def validation_payload(self) -> dict[str, Any]:
        return build_tour_validation_payload(
            self.effective_events(),
            self.tour_start,
            self.tour_end,
            employee_id=self.employee_id,
            tour_date=self.tour_date,
            tour_name=self.tour_name,
        )

    # Staging

    def assign(self, event_id: Hashable) -> None:
        if event_id in self.to_remove:
            del self.to_remove[event_id]
        elif event_id in self._available:
            self.to_assign[event_id] = self._available[event_id]
        elif event_id not in self._assigned and event_id not in self.to_assign:
            raise KeyError(f"Unknown event {event_id}")
        self._changed()

    def unassign(self, event_id: Hashable) -> None:
        if event_id in self.to_assign:
            del self.to_assign[event_id]
        elif event_id in self._assigned:
            self.to_remove[event_id] = self._assigned[event_id]
        elif event_id not in self._available:
            raise KeyError(f"Unknown event {event_id}")
        self.time_changes.pop(event_id, None)
        self._changed()

    def adjust_time(self, event_id: Hashable, new_start: str) -> TimeOverride | None:
        """Stage a new start for an assigned event, keeping its duration.

        Returns the staged override, or None when the event is back at its
        original times.
        """
        start = format_time_string(new_start)
        if not is_valid_time_format(start):
            raise ValueError(f"Invalid start time: {new_start!r}")
        override = shift_event(self._effective(event_id), start)
        if not is_valid_time_format(override.time_end):
            raise ValueError(f"Event {event_id} would end after midnight")

        if (override.time_start, override.time_end) == (override.original_start, override.original_end):
            self.time_changes.pop(event_id, None)
            override = None
        else:
            self.time_changes[event_id] = override
        self._changed()
        return override

    def apply_suggestions(self) -> int:
        suggestions = self.suggestions()
        for suggestion in suggestions:
            self.adjust_time(suggestion.event_id, suggestion.suggested_start)
        return len(suggestions)

    def remove_gap(self, previous_id: Hashable, next_id: Hashable) -> TimeOverride | None:
        previous = self._effective(previous_id)
        travel_minutes = self.travel.duration(previous_id, next_id)
        return self.adjust_time(next_id, minutes_to_time(previous.end_minutes + travel_minutes))

    def set_travel_segments(self, segments: Iterable[TravelSegment]) -> None:
        with self._lock:
            self._travel = TravelLookup(segments, self._travel.default_minutes)

    def cancel(self) -> None:
        self.to_assign.clear()
        self.to_remove.clear()
        self.time_changes.clear()
        self._debouncer.cancel()

    def reload(self, assigned: Iterable[TourEvent], available: Iterable[TourEvent] = ()) -> None:
        self.cancel()
        self._load(assigned, available)

    # Validation

    def _changed(self) -> None:
        if self.client is not None:
            self.request_validation()

    def request_validation(self, client: CareApiClient | None = None) -> None:
        if client is not None:
            self.client = client
        self._debouncer(self.validation_payload())

    def flush_validation(self) -> bool:
        return self._debouncer.flush()

    def _run_validation(self, payload: dict[str, Any]) -> None:
        if self.client is None:
            return
        with self._lock:
            self.validation.issued += 1
            sequence = self.validation.issued
        try:
            result = self.client.validate_proposed_tour(payload)
        except CareApiError as exc:
            logger.warning("Tour %s validation request failed: %s", self.tour_id, exc)
            self.apply_validation_result(sequence, None, str(exc))
            return
        self.apply_validation_result(sequence, result)

    def apply_validation_result(
        self, sequence: int, result: TourValidationResult | None, error: str | None = None
    ) -> bool:
        with self._lock:
            if sequence <= self.validation.applied:
                logger.warning(
                    "Dropping stale validation response %s for tour %s (already at %s)",
                    sequence,
                    self.tour_id,
                    self.validation.applied,
                )
                return False
            self.validation.applied = sequence
            self.validation.error = error
            if result is not None:
                self.validation.result = result
                if result.travel_segments:
                    self.set_travel_segments(result.travel_segments)
            return True

    # Save

    def save(self, client: CareApiClient | None = None) -> SaveReport:
        client = client or self.client
        if client is None:
            raise RuntimeError("No care API client configured for saving")
        if self.client is not None and self._debouncer.pending:
            self._debouncer.flush()
        with self._lock:
            if self.validation.blocks_save:
                raise SaveBlockedError(self.validation.result.errors)
        self._debouncer.cancel()

        operations = plan_save_operations(
            self.tour_id, self.time_changes, list(self.to_assign), list(self.to_remove)
        )
        report = SaveReport()
        for index, operation in enumerate(operations):
            try:
                client.update_event(operation.event_id, operation.fields)
            except CareApiError as exc:
                logger.warning(
                    "Saving tour %s stopped at %s of event %s: %s",
                    self.tour_id,
                    operation.action,
                    operation.event_id,
                    exc,
                )
                report.failed = operation
                report.error = str(exc)
                report.not_attempted = operations[index + 1:]
                break
            self._mark_committed(operation)
            report.committed.append(operation)

        if report.ok and report.committed:
            self._update_tour_statistics(client)
        logger.info(
            "Saved tour %s: %s committed, %s not attempted",
            self.tour_id,
            len(report.committed),
            len(report.not_attempted) + (0 if report.ok else 1),
        )
        return report

    def _mark_committed(self, operation: SaveOperation) -> None:
        event_id = operation.event_id
        if operation.action == TIME_CHANGE:
            change = self.time_changes.pop(event_id)
            for pool in (self._assigned, self.to_assign):
                if event_id in pool:
                    pool[event_id] = replace(
                        pool[event_id], time_start=change.time_start, time_end=change.time_end
                    )
        elif operation.action == ASSIGN:
            event = self.to_assign.pop(event_id)
            self._available.pop(event_id, None)
            self._assigned[event_id] = replace(event, tour_id=self.tour_id)
        else:
            event = self.to_remove.pop(event_id)
            self._assigned.pop(event_id, None)
            self._available[event_id] = replace(event, tour_id=None)

    def _update_tour_statistics(self, client: CareApiClient) -> None:
        result = self.validation.result
        statistics = result.statistics if result else None
        if not statistics:
            return
        fields = {}
        if statistics.get("total_distance_km") is not None:
            fields["total_distance_km"] = statistics["total_distance_km"]
        if statistics.get("total_tour_duration_minutes") is not None:
            fields["estimated_duration_minutes"] = statistics["total_tour_duration_minutes"]
        if not fields:
            return
        try:
            client.update_tour(self.tour_id, fields)
        except CareApiError as exc:
            logger.warning("Could not update statistics of tour %s: %s", self.tour_id, exc)
