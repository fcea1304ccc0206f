from datetime import date

import pytest
import requests

from homecare.services.care_api_client import CareApiClient, CareApiError


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else b"{}"

    def json(self):
        return self._payload


class RecordedCalls(list):
    responses: list


@pytest.fixture
def calls(monkeypatch):
    recorded = RecordedCalls()
    responses = []

    def fake_request(method, url, **kwargs):
        recorded.append((method, url, kwargs))
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(requests, "request", fake_request)
    recorded.responses = responses
    return recorded


@pytest.fixture
def api(calls):
    return CareApiClient(base_url="https://care.example.test/api/", token="abc")


def _queue(calls, *responses):
    calls.responses.extend(responses)


def test_requires_base_url(monkeypatch):
    from homecare.config import get_settings

    monkeypatch.setenv("CARE_API_BASE_URL", "")
    get_settings.cache_clear()
    with pytest.raises(RuntimeError):
        CareApiClient()
    get_settings.cache_clear()


def test_bearer_token_header(api):
    assert api.headers["Authorization"] == "Bearer abc"
    assert CareApiClient(base_url="https://x", token="Bearer xyz").headers["Authorization"] == "Bearer xyz"


def test_list_events_unwraps_data(api, calls):
    _queue(calls, FakeResponse(payload={"data": [{"id": 1}, {"id": 2}, "junk"]}))
    events = api.list_events(date(2026, 3, 2), time_start_gte="08:00")

    assert events == [{"id": 1}, {"id": 2}]
    method, url, kwargs = calls[0]
    assert (method, url) == ("GET", "https://care.example.test/api/events")
    assert kwargs["params"]["date"] == "2026-03-02"
    assert kwargs["params"]["time_start_gte"] == "08:00"
    assert "time_end_lte" not in kwargs["params"]


def test_update_event_normalises_time_fields(api, calls):
    _queue(calls, FakeResponse(payload={"id": 7}))
    api.update_event(7, {"time_start": "9:05", "time_end": "2026-03-02T10:00:00", "tour_id": 3})

    method, url, kwargs = calls[0]
    assert (method, url) == ("PUT", "https://care.example.test/api/events/7")
    assert kwargs["json"] == {"time_start": "09:05", "time_end": "10:00", "tour_id": 3}


def test_http_error_raises_care_api_error(api, calls):
    _queue(calls, FakeResponse(status_code=503, payload={"detail": "down"}))
    with pytest.raises(CareApiError) as exc_info:
        api.update_tour(1, {"total_distance_km": 3})
    assert exc_info.value.status_code == 503


def test_network_error_is_wrapped(api, calls):
    _queue(calls, requests.ConnectionError("refused"))
    with pytest.raises(CareApiError) as exc_info:
        api.list_events(date(2026, 3, 2))
    assert exc_info.value.status_code is None
    assert "refused" in str(exc_info.value)


def test_validate_proposed_tour_parses_response(api, calls):
    _queue(
        calls,
        FakeResponse(
            payload={
                "is_valid": False,
                "validation_errors": [{"message": "Overlap"}],
                "warnings": [{"message": "Long tour"}],
                "statistics": {"efficiency_score": 0.8, "total_distance_km": 12.0},
                "travel_segments": [
                    {"from_event_id": 1, "to_event_id": 2, "duration_minutes": 9, "distance_km": 3.1}
                ],
            }
        ),
    )
    result = api.validate_proposed_tour({"events": []})

    assert not result.is_valid
    assert result.errors == [{"message": "Overlap"}]
    assert result.warnings == [{"message": "Long tour"}]
    assert result.statistics["total_distance_km"] == 12.0
    assert result.travel_segments[0].duration_minutes == 9
    assert calls[0][0:2] == ("POST", "https://care.example.test/api/tours/validate-proposed")


def test_travel_segments_and_proximity(api, calls):
    _queue(
        calls,
        FakeResponse(payload=[{"from_event_id": "a", "to_event_id": "b", "duration_minutes": 12}]),
        FakeResponse(
            payload={
                "closest_events": [
                    {"event_id": "c", "rank": 2, "distance_km": 4.0, "duration_minutes": 8},
                    {"event_id": "b", "rank": 1, "distance_km": 1.5, "duration_minutes": 4},
                ],
                "cache_hits": 1,
                "total_calculated": 2,
            }
        ),
    )
    segments = api.get_travel_segments(["a", "b"])
    proximity = api.calculate_proximity("a", ["b", "c"])

    assert segments[0].duration_minutes == 12
    assert calls[0][2]["json"] == {"event_ids": ["a", "b"]}
    assert [m.event_id for m in proximity.closest_events] == ["b", "c"]
    assert proximity.cache_hits == 1


def test_schedule_rule_calls(api, calls):
    _queue(calls, FakeResponse(payload={"id": 5}), FakeResponse(payload={"id": 5}), FakeResponse(status_code=204))
    api.create_schedule_rule(1, 2, {"schedule_kind": "weekly", "weekly_time": "9:00"})
    api.update_schedule_rule(1, 2, 5, {"schedule_kind": "monthly", "monthly_time": "8:30"})
    assert api.delete_schedule_rule(1, 2, 5) is None

    assert [c[0] for c in calls] == ["POST", "PUT", "DELETE"]
    assert calls[0][1].endswith("/medication-plans/1/medications/2/schedule-rules")
    assert calls[0][2]["json"]["weekly_time"] == "09:00"
    assert calls[1][1].endswith("/schedule-rules/5")
    assert calls[1][2]["json"]["monthly_time"] == "08:30"
