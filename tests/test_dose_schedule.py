from datetime import date, datetime
from uuid import uuid4

from homecare.services.dose_schedule import (
    can_take_prn,
    describe_rule,
    due_doses_between,
    due_times_on,
    is_rule_effective,
)
from homecare.services.schedule_rules import build_schedule_rule


def _rule(**fields):
    data = {"dose": 1}
    data.update(fields)
    return build_schedule_rule(data)


def test_rule_effective_window_is_inclusive():
    rule = _rule(schedule_kind="times", exact_times=["08:00"], valid_from="2026-03-01", valid_until="2026-03-31")
    assert not is_rule_effective(rule, date(2026, 2, 28))
    assert is_rule_effective(rule, date(2026, 3, 1))
    assert is_rule_effective(rule, date(2026, 3, 31))
    assert not is_rule_effective(rule, date(2026, 4, 1))


def test_inactive_rule_is_never_due():
    rule = _rule(schedule_kind="times", exact_times=["08:00"], is_active=False)
    assert due_times_on(rule, date(2026, 3, 2)) == []


def test_parts_of_day_use_configured_clock_times():
    rule = _rule(schedule_kind="parts", parts_of_day=["evening", "morning"])
    assert due_times_on(rule, date(2026, 3, 2)) == [
        datetime(2026, 3, 2, 8, 0),
        datetime(2026, 3, 2, 18, 0),
    ]


def test_part_of_day_times_follow_settings(monkeypatch):
    from homecare.config import get_settings

    monkeypatch.setenv(
        "PART_OF_DAY_TIMES", '{"morning": "06:30", "noon": "12:00", "evening": "18:00", "night": "22:00"}'
    )
    get_settings.cache_clear()
    try:
        rule = _rule(schedule_kind="parts", parts_of_day=["morning"])
        assert due_times_on(rule, date(2026, 3, 2)) == [datetime(2026, 3, 2, 6, 30)]
    finally:
        get_settings.cache_clear()


def test_exact_times_are_sorted_and_unique():
    rule = _rule(schedule_kind="times", exact_times=["20:00", "08:00", "08:00"])
    assert due_times_on(rule, date(2026, 3, 2)) == [
        datetime(2026, 3, 2, 8, 0),
        datetime(2026, 3, 2, 20, 0),
    ]


def test_weekly_fires_on_listed_weekdays():
    rule = _rule(schedule_kind="weekly", weekdays=[0, 2], weekly_time="09:00")
    monday, tuesday, wednesday = date(2026, 3, 2), date(2026, 3, 3), date(2026, 3, 4)
    assert due_times_on(rule, monday) == [datetime(2026, 3, 2, 9, 0)]
    assert due_times_on(rule, tuesday) == []
    assert due_times_on(rule, wednesday) == [datetime(2026, 3, 4, 9, 0)]


def test_monthly_skips_days_missing_from_month():
    rule = _rule(schedule_kind="monthly", days_of_month=[31], monthly_time="08:00")
    doses = due_doses_between([rule], date(2026, 1, 1), date(2026, 4, 30))
    assert [d.due_at.date() for d in doses] == [date(2026, 1, 31), date(2026, 3, 31)]


def test_specific_datetimes_only_on_their_day():
    rule = _rule(
        schedule_kind="specific",
        specific_datetimes=["2026-03-02T07:15:00", "2026-03-05T21:00:00"],
    )
    assert due_times_on(rule, date(2026, 3, 2)) == [datetime(2026, 3, 2, 7, 15)]
    assert due_times_on(rule, date(2026, 3, 3)) == []


def test_prn_has_no_scheduled_times():
    rule = _rule(schedule_kind="prn", prn_condition="pain")
    assert due_times_on(rule, date(2026, 3, 2)) == []


def test_due_doses_ordered_by_time_then_rule_order():
    first = _rule(id=uuid4(), rule_order=2, schedule_kind="times", exact_times=["08:00"])
    second = _rule(id=uuid4(), rule_order=1, schedule_kind="parts", parts_of_day=["morning", "noon"], dose_unit="mg")
    doses = due_doses_between([first, second], date(2026, 3, 2), date(2026, 3, 3))

    assert [(d.due_at, d.rule_order) for d in doses] == [
        (datetime(2026, 3, 2, 8, 0), 1),
        (datetime(2026, 3, 2, 8, 0), 2),
        (datetime(2026, 3, 2, 12, 0), 1),
        (datetime(2026, 3, 3, 8, 0), 1),
        (datetime(2026, 3, 3, 8, 0), 2),
        (datetime(2026, 3, 3, 12, 0), 1),
    ]
    assert doses[0].dose_unit == "mg"
    assert doses[0].rule_id == second.id


def test_prn_max_doses_per_day():
    rule = _rule(schedule_kind="prn", prn_condition="pain", prn_max_doses_per_day=2)
    taken = [datetime(2026, 3, 2, 8, 0), datetime(2026, 3, 2, 12, 0), datetime(2026, 3, 1, 22, 0)]

    decision = can_take_prn(rule, taken, datetime(2026, 3, 2, 18, 0))
    assert not decision.allowed
    assert decision.next_allowed_at == datetime(2026, 3, 3, 0, 0)
    assert can_take_prn(rule, taken[:1], datetime(2026, 3, 2, 18, 0)).allowed


def test_prn_min_interval():
    rule = _rule(schedule_kind="prn", prn_condition="pain", prn_min_interval_hours=6)
    taken = [datetime(2026, 3, 2, 8, 0)]

    decision = can_take_prn(rule, taken, datetime(2026, 3, 2, 13, 0))
    assert not decision.allowed
    assert decision.next_allowed_at == datetime(2026, 3, 2, 14, 0)
    assert can_take_prn(rule, taken, datetime(2026, 3, 2, 14, 0)).allowed


def test_prn_gate_rejects_scheduled_rules():
    rule = _rule(schedule_kind="times", exact_times=["08:00"])
    assert not can_take_prn(rule, [], datetime(2026, 3, 2, 9, 0)).allowed


def test_describe_rule():
    assert describe_rule(_rule(schedule_kind="weekly", weekdays=[2, 0], weekly_time="09:00")) == (
        "1 unit(s) - Mon, Wed at 09:00"
    )
    assert describe_rule(_rule(schedule_kind="parts", parts_of_day=["noon"], dose=0.5, dose_unit="mg")) == (
        "0.5 mg - Noon"
    )
    assert describe_rule(_rule(schedule_kind="prn", prn_condition="fever")) == "1 unit(s) PRN - fever"
    assert describe_rule(_rule(schedule_kind="monthly", days_of_month=[1, 15], monthly_time="08:00")) == (
        "1 unit(s) - Day 1, 15 at 08:00"
    )


def test_mixed_rules_on_one_medication_sort_together():
    rules = [
        _rule(schedule_kind="specific", specific_datetimes=["2026-04-01T08:30:00", "2026-04-01T06:00:00"]),
        _rule(schedule_kind="times", exact_times=["07:00"], rule_order=1),
    ]
    doses = due_doses_between(rules, date(2026, 4, 1), date(2026, 4, 1))
    assert [d.due_at.strftime("%H:%M") for d in doses] == ["06:00", "07:00", "08:30"]
    assert all(d.due_at.tzinfo is None for d in doses)


def test_prn_with_longest_allowed_interval():
    rule = _rule(schedule_kind="prn", prn_condition="migraine", prn_min_interval_hours=24 * 31)
    decision = can_take_prn(rule, [datetime(2026, 3, 1, 8, 0)], datetime(2026, 3, 15, 8, 0))
    assert not decision.allowed
    assert decision.next_allowed_at == datetime(2026, 4, 1, 8, 0)
