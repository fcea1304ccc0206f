from homecare.services.tour_timeline import (
    TimelineItemType,
    TimeOverride,
    TourEvent,
    TravelLookup,
    TravelSegment,
    analyze_tour,
    build_timeline,
    detect_overlaps,
    effective_events,
    events_outside_tour_hours,
    shift_event,
    suggest_time_adjustments,
)


def _event(event_id, start, end, **extra):
    return TourEvent(id=event_id, patient_id=100, time_start=start, time_end=end, **extra)


def _effective(*events, overrides=None):
    return effective_events(events, overrides)


def _shape(items):
    return [(item.type.value, item.start, item.end) for item in items]


def test_overlapping_pair_is_flagged():
    overlaps = detect_overlaps(_effective(_event("a", "09:00", "10:00"), _event("b", "09:30", "10:30")))
    assert len(overlaps) == 1
    overlap = overlaps[0]
    assert (overlap.event1_id, overlap.event2_id) == ("a", "b")
    assert (overlap.overlap_start, overlap.overlap_end) == ("09:30", "10:00")
    assert overlap.overlap_duration == 30


def test_touching_events_do_not_overlap():
    assert detect_overlaps(_effective(_event("a", "09:00", "10:00"), _event("b", "10:00", "11:00"))) == []


def test_overlaps_found_for_every_pair():
    events = _effective(
        _event("a", "09:00", "12:00"),
        _event("b", "09:30", "10:00"),
        _event("c", "11:00", "11:30"),
    )
    pairs = {(o.event1_id, o.event2_id) for o in detect_overlaps(events)}
    assert pairs == {("a", "b"), ("a", "c")}


def test_overlaps_use_pending_overrides():
    a, b = _event("a", "09:00", "10:00"), _event("b", "11:00", "12:00")
    overrides = {"b": TimeOverride("09:45", "10:45", "11:00", "12:00")}
    overlaps = detect_overlaps(_effective(a, b, overrides=overrides))
    assert [(o.overlap_start, o.overlap_end) for o in overlaps] == [("09:45", "10:00")]


def test_single_event_timeline():
    items = build_timeline("08:00", "12:00", _effective(_event("a", "09:00", "09:30")))
    assert _shape(items) == [
        ("empty", "08:00", "09:00"),
        ("event", "09:00", "09:30"),
        ("empty", "09:30", "12:00"),
    ]
    assert not items[0].can_remove
    assert items[0].next_event_id == "a"


def test_timeline_with_travel_and_residual_gap():
    events = _effective(_event("a", "08:00", "09:00"), _event("b", "10:00", "10:30"))
    travel = TravelLookup([TravelSegment("a", "b", duration_minutes=20, distance_km=7.5)])
    items = build_timeline("08:00", "11:00", events, travel)

    assert _shape(items) == [
        ("event", "08:00", "09:00"),
        ("travel", "09:00", "09:20"),
        ("empty", "09:20", "10:00"),
        ("event", "10:00", "10:30"),
        ("empty", "10:30", "11:00"),
    ]
    travel_item, gap = items[1], items[2]
    assert (travel_item.from_event_id, travel_item.to_event_id) == ("a", "b")
    assert not travel_item.estimated_travel
    assert gap.can_remove
    assert (gap.previous_event_id, gap.next_event_id) == ("a", "b")


def test_missing_travel_data_defaults_to_fifteen_minutes():
    events = _effective(_event("a", "08:00", "09:00"), _event("b", "09:10", "09:40"))
    items = build_timeline("08:00", "09:40", events)

    assert _shape(items) == [
        ("event", "08:00", "09:00"),
        ("travel", "09:00", "09:15"),
        ("event", "09:10", "09:40"),
    ]
    assert items[1].duration == 15
    assert items[1].estimated_travel


def test_zero_duration_segment_falls_back_to_default():
    travel = TravelLookup([TravelSegment("a", "b", duration_minutes=0)], default_minutes=10)
    assert travel.duration("a", "b") == 10
    assert not travel.has_data("a", "b")


def test_travel_lookup_is_directional():
    travel = TravelLookup([TravelSegment("a", "b", duration_minutes=25)])
    assert travel.duration("a", "b") == 25
    assert travel.duration("b", "a") == 15


def test_overlapping_events_are_flagged_in_timeline():
    events = _effective(_event("a", "09:00", "10:00"), _event("b", "09:30", "10:30"))
    items = build_timeline("09:00", "10:30", events)

    assert [i.type for i in items] == [TimelineItemType.EVENT, TimelineItemType.EVENT]
    assert items[0].is_overlapping and items[1].is_overlapping
    assert items[0].overlapping_with == ("b",)


def test_timeline_is_sorted_by_effective_start():
    a, b = _event("a", "09:00", "09:30"), _event("b", "10:00", "10:30")
    overrides = {"b": TimeOverride("08:00", "08:30", "10:00", "10:30")}
    items = build_timeline("08:00", "12:00", _effective(a, b, overrides=overrides))
    events = [i for i in items if i.type is TimelineItemType.EVENT]
    assert [e.event_id for e in events] == ["b", "a"]
    assert events[0].has_pending_changes


def test_empty_tour_is_one_idle_block():
    assert _shape(build_timeline("08:00", "17:00", [])) == [("empty", "08:00", "17:00")]


def test_suggestion_respects_travel_buffer():
    events = _effective(_event("a", "09:00", "09:30"), _event("b", "09:40", "10:10"))
    suggestions = suggest_time_adjustments(events)

    assert len(suggestions) == 1
    suggestion = suggestions[0]
    assert suggestion.event_id == "b"
    assert suggestion.original_start == "09:40"
    assert suggestion.suggested_start == "09:45"
    assert "15 min travel" in suggestion.reason


def test_suggestions_are_not_transitive():
    events = _effective(
        _event("a", "09:00", "10:00"),
        _event("b", "10:00", "10:30"),
        _event("c", "10:50", "11:00"),
    )
    suggestions = suggest_time_adjustments(events)
    # c is compared with b as currently scheduled, not as it would be once moved.
    assert [s.event_id for s in suggestions] == ["b"]


def test_shift_event_preserves_duration():
    event = _effective(_event("a", "09:00", "09:45"))[0]
    override = shift_event(event, "10:10")
    assert (override.time_start, override.time_end) == ("10:10", "10:55")
    assert (override.original_start, override.original_end) == ("09:00", "09:45")


def test_events_outside_tour_hours():
    events = _effective(
        _event("early", "07:30", "08:15"),
        _event("inside", "09:00", "10:00"),
        _event("late", "16:45", "17:30"),
    )
    assert events_outside_tour_hours("08:00", "17:00", events) == ["early", "late"]


def test_analyze_tour_bundles_results():
    events = _effective(_event("a", "09:00", "10:00"), _event("b", "09:30", "10:30"))
    analysis = analyze_tour("08:00", "12:00", events)
    assert analysis.has_overlaps
    assert [s.suggested_start for s in analysis.suggestions] == ["10:15"]
    assert analysis.timeline[0].type is TimelineItemType.EMPTY


def test_travel_lookup_matches_ids_by_their_string_form():
    travel = TravelLookup([TravelSegment("1", "2", duration_minutes=5)])
    assert travel.duration(1, 2) == 5
    assert travel.has_data(1, 2)
    assert not travel.has_data(2, 1)
