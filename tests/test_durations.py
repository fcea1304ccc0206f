from hypothesis import given, strategies as st

from homecare.services.durations import (
    CareItemLine,
    Occurrence,
    actual_days_per_week,
    actual_weekly_duration,
    daily_duration,
    duration_summary,
    planned_weekly_duration,
    session_duration_match,
    suggested_end_time,
)

item_lines = st.lists(
    st.builds(
        CareItemLine,
        weekly_package_minutes=st.integers(min_value=0, max_value=3000),
        quantity=st.integers(min_value=1, max_value=5),
    ),
    max_size=6,
)
occurrence_lists = st.lists(
    st.builds(Occurrence, name=st.text(max_size=12), value=st.text(max_size=3)),
    max_size=7,
)


def test_empty_items_have_no_duration():
    assert daily_duration([]) == 0
    assert actual_weekly_duration([], [Occurrence("Lundi", "1")]) == 0
    assert actual_weekly_duration([], [Occurrence("Tous les jours", "*")]) == 0


def test_daily_duration_scales_by_quantity():
    items = [CareItemLine(70, 1), CareItemLine(140, 2)]
    assert daily_duration(items) == 10 + 40


def test_single_every_day_entry_means_seven_days():
    assert actual_days_per_week([Occurrence("Tous les jours", "")]) == 7
    assert actual_days_per_week([Occurrence("", "DAILY")]) == 7
    assert actual_days_per_week([Occurrence("*", "")]) == 7
    assert actual_days_per_week([Occurrence("Lundi", "1"), Occurrence("x", "*")]) == 7


def test_days_per_week_counts_plain_weekdays():
    occurrences = [Occurrence("Lundi", "1"), Occurrence("Mercredi", "3")]
    assert actual_days_per_week(occurrences) == 2
    assert actual_days_per_week([]) == 0
    assert actual_days_per_week(4) == 4


def test_occurrence_from_mapping_accepts_str_name():
    occurrence = Occurrence.from_mapping({"str_name": "tous les jours", "value": None})
    assert occurrence.means_every_day()


def test_care_item_from_nested_mapping():
    line = CareItemLine.from_mapping({"long_term_care_item": {"weekly_package": 90}, "quantity": 2})
    assert line == CareItemLine(90, 2)


@given(items=item_lines, occurrences=occurrence_lists)
def test_weekly_duration_is_daily_times_days(items, occurrences):
    assert actual_weekly_duration(items, occurrences) == (
        daily_duration(items) * actual_days_per_week(occurrences)
    )


def test_planned_weekly_duration():
    items = [CareItemLine(140, 1)]
    assert planned_weekly_duration(items, 7) == 20
    assert planned_weekly_duration(items, 0) == 0


def test_session_tolerance_boundaries():
    items = [CareItemLine(420, 1)]  # 60 minutes a day
    assert session_duration_match("08:00", "09:05", items).matches
    assert session_duration_match("08:00", "08:55", items).matches
    assert not session_duration_match("08:00", "09:06", items).matches
    assert not session_duration_match("08:00", "08:54", items).matches


def test_session_match_reports_signed_difference():
    result = session_duration_match("08:00", "08:30", [CareItemLine(420, 1)])
    assert result.actual_duration == 30
    assert result.expected_duration == 60
    assert result.difference == -30
    assert result.suggested_end_time == "09:00"


def test_suggested_end_time_never_wraps_midnight():
    items = [CareItemLine(630, 1)]  # 90 minutes a day
    assert suggested_end_time("23:00", items) is None
    assert suggested_end_time("22:30", items) is None
    assert suggested_end_time("22:29", items) == "23:59"


def test_suggested_end_time_needs_items_and_duration():
    assert suggested_end_time("08:00", []) is None
    assert suggested_end_time("08:00", [CareItemLine(0, 3)]) is None
    assert suggested_end_time("", [CareItemLine(70, 1)]) is None
    assert suggested_end_time("8h", [CareItemLine(70, 1)]) is None


def test_duration_summary_bundles_everything():
    summary = duration_summary(
        "08:00", "08:20", [CareItemLine(140, 1)], [Occurrence("Tous les jours", "*")]
    )
    assert summary.daily_duration == 20
    assert summary.days_per_week == 7
    assert summary.weekly_duration == 140
    assert summary.session_duration == 20
    assert summary.match.matches
