from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Hashable, Iterable

import requests

from ..config import get_settings
from .time_utils import format_time_fields
from .tour_timeline import TravelSegment

logger = logging.getLogger(__name__)

EVENT_TIME_FIELDS = ("time_start", "time_end", "real_start", "real_end")
RULE_TIME_FIELDS = ("weekly_time", "monthly_time")


class CareApiError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ProximityMatch:
    event_id: Hashable
    rank: int
    distance_km: float | None
    duration_minutes: int | None


@dataclass
class ProximityResult:
    closest_events: list[ProximityMatch]
    cache_hits: int = 0
    total_calculated: int = 0


@dataclass
class TourValidationResult:
    is_valid: bool
    errors: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[dict[str, Any]] = field(default_factory=list)
    statistics: dict[str, Any] | None = None
    optimization_suggestions: list[dict[str, Any]] = field(default_factory=list)
    travel_segments: list[TravelSegment] = field(default_factory=list)


class CareApiClient:
    def __init__(self, base_url: str | None = None, token: str | None = None) -> None:
        settings = get_settings()
        base_url = base_url if base_url is not None else settings.CARE_API_BASE_URL
        if not base_url:
            raise RuntimeError("CARE_API_BASE_URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.timeout = settings.CARE_API_TIMEOUT_SECONDS
        token = token if token is not None else settings.CARE_API_TOKEN
        self.headers: dict[str, str] = {"Accept": "application/json"}
        if token:
            self.headers["Authorization"] = token if token.startswith("Bearer ") else f"Bearer {token}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method, url, headers=self.headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            raise CareApiError(f"{method} {path} failed: {exc}") from exc
        if response.status_code >= 400:
            raise CareApiError(
                f"{method} {path} returned {response.status_code}", response.status_code
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Events and tours

    def list_events(
        self,
        on: date,
        time_start_gte: str | None = None,
        time_end_lte: str | None = None,
    ) -> list[dict[str, Any]]:
        params = {"date": on.isoformat(), "sort": "time_start", "order": "ASC"}
        if time_start_gte:
            params["time_start_gte"] = time_start_gte
        if time_end_lte:
            params["time_end_lte"] = time_end_lte
        return _unwrap_list(self._request("GET", "/events", params=params))

    def update_event(self, event_id: Hashable, fields: dict[str, Any]) -> dict[str, Any] | None:
        payload = format_time_fields(fields, EVENT_TIME_FIELDS)
        return self._request("PUT", f"/events/{event_id}", json=payload)

    def update_tour(self, tour_id: Hashable, fields: dict[str, Any]) -> dict[str, Any] | None:
        payload = format_time_fields(fields, ("time_start", "time_end"))
        return self._request("PUT", f"/tours/{tour_id}", json=payload)

    def get_travel_segments(self, event_ids: Iterable[Hashable]) -> list[TravelSegment]:
        data = self._request(
            "POST", "/tours/travel-segments", json={"event_ids": [str(i) for i in event_ids]}
        )
        return [_parse_segment(item) for item in _unwrap_list(data)]

    def calculate_proximity(
        self, source_event_id: Hashable, target_event_ids: Iterable[Hashable]
    ) -> ProximityResult:
        data = self._request(
            "POST",
            "/events/proximity",
            json={
                "source_event_id": str(source_event_id),
                "target_event_ids": [str(i) for i in target_event_ids],
            },
        ) or {}
        matches = [
            ProximityMatch(
                event_id=item.get("event_id"),
                rank=int(item.get("rank", 0)),
                distance_km=item.get("distance_km"),
                duration_minutes=item.get("duration_minutes"),
            )
            for item in data.get("closest_events") or []
        ]
        matches.sort(key=lambda m: m.rank)
        return ProximityResult(
            closest_events=matches,
            cache_hits=int(data.get("cache_hits") or 0),
            total_calculated=int(data.get("total_calculated") or 0),
        )

    def validate_proposed_tour(self, payload: dict[str, Any]) -> TourValidationResult:
        data = self._request("POST", "/tours/validate-proposed", json=payload) or {}
        return TourValidationResult(
            is_valid=bool(data.get("is_valid")),
            errors=list(data.get("validation_errors") or data.get("errors") or []),
            warnings=list(data.get("warnings") or []),
            statistics=data.get("statistics"),
            optimization_suggestions=list(data.get("optimization_suggestions") or []),
            travel_segments=[_parse_segment(item) for item in data.get("travel_segments") or []],
        )

    # Schedule rules

    def _rules_path(self, plan_id: Hashable, medication_id: Hashable) -> str:
        return f"/medication-plans/{plan_id}/medications/{medication_id}/schedule-rules"

    def create_schedule_rule(
        self, plan_id: Hashable, medication_id: Hashable, payload: dict[str, Any]
    ) -> dict[str, Any] | None:
        body = format_time_fields(payload, RULE_TIME_FIELDS)
        return self._request("POST", self._rules_path(plan_id, medication_id), json=body)

    def update_schedule_rule(
        self,
        plan_id: Hashable,
        medication_id: Hashable,
        rule_id: Hashable,
        payload: dict[str, Any],
    ) -> dict[str, Any] | None:
        body = format_time_fields(payload, RULE_TIME_FIELDS)
        return self._request(
            "PUT", f"{self._rules_path(plan_id, medication_id)}/{rule_id}", json=body
        )

    def delete_schedule_rule(
        self, plan_id: Hashable, medication_id: Hashable, rule_id: Hashable
    ) -> None:
        self._request("DELETE", f"{self._rules_path(plan_id, medication_id)}/{rule_id}")


def _parse_segment(item: dict[str, Any]) -> TravelSegment:
    return TravelSegment(
        from_event_id=item.get("from_event_id"),
        to_event_id=item.get("to_event_id"),
        duration_minutes=item.get("duration_minutes"),
        distance_km=item.get("distance_km"),
    )


def _unwrap_list(data: Any) -> list[dict[str, Any]]:
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("data", data.get("results", [data]))
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    return []
