from datetime import date

import pytest

from models import TaskFields
from recurrence import matches
from series_planner import plan_occurrence_action


@pytest.fixture
def weekly(make_rule):
    return make_rule("weekly", date(2024, 1, 1), week_days=[1, 3, 5], timezone="UTC", title="Gym")


def edited(**kw):
    fields = {"title": "Gym (moved)", "start_hour": 18, "start_minute": 30, "duration": 90}
    fields.update(kw)
    return TaskFields(**fields)


def test_single_delete_excludes_only_that_day(weekly):
    plan = plan_occurrence_action(weekly, date(2024, 1, 8), "delete", "single")
    [staged] = plan.rule_puts
    assert staged.id == weekly.id
    assert staged.exclude_dates == [date(2024, 1, 8)]
    assert not matches(staged, date(2024, 1, 8))
    assert matches(staged, date(2024, 1, 10))
    assert plan.rule_deletes == []
    assert plan.new_task is None
    # The original rule object is untouched
    assert weekly.exclude_dates == []


def test_single_edit_adds_one_off_task(weekly):
    plan = plan_occurrence_action(
        weekly, date(2024, 1, 10), "edit", "single", edited=edited(), view_day=date(2024, 1, 10)
    )
    assert plan.rule_puts[0].exclude_dates == [date(2024, 1, 10)]
    assert plan.new_task_day == date(2024, 1, 10)
    assert plan.new_task.title == "Gym (moved)"
    assert plan.new_task.recurring_id is None
    assert (plan.new_task.start_hour, plan.new_task.start_minute, plan.new_task.duration) == (18, 30, 90)
    assert [e.event for e in plan.events] == ["excluded"]


def test_future_delete_truncates(weekly):
    plan = plan_occurrence_action(weekly, date(2024, 1, 10), "delete", "future")
    [staged] = plan.rule_puts
    assert staged.end_date == date(2024, 1, 9)
    assert matches(staged, date(2024, 1, 8))
    assert not matches(staged, date(2024, 1, 10))
    assert plan.rule_deletes == []


def test_future_delete_at_start_removes_rule(weekly):
    plan = plan_occurrence_action(weekly, date(2024, 1, 1), "delete", "future")
    assert plan.rule_deletes == [weekly.id]
    assert plan.rule_puts == []
    assert [e.event for e in plan.events] == ["deleted"]


def test_future_edit_at_start_still_creates_replacement(weekly):
    plan = plan_occurrence_action(weekly, date(2024, 1, 1), "edit", "future", edited=edited())
    assert plan.rule_deletes == [weekly.id]
    [replacement] = plan.rule_puts
    assert replacement.id != weekly.id
    assert replacement.start_date == date(2024, 1, 1)
    assert replacement.kind == "weekly"
    assert replacement.week_days == [1, 3, 5]
    assert replacement.template.title == "Gym (moved)"
    assert matches(replacement, date(2024, 1, 1))


def test_future_edit_splits_series_and_carries_end_date(make_rule):
    rule = make_rule(
        "daily", date(2024, 1, 1), end_date=date(2024, 3, 31), timezone="UTC",
        exclude_dates=[date(2024, 1, 5), date(2024, 2, 1)],
    )
    plan = plan_occurrence_action(rule, date(2024, 1, 10), "edit", "future", edited=edited(title="Later"))
    truncated, replacement = plan.rule_puts
    assert truncated.id == rule.id
    assert truncated.end_date == date(2024, 1, 9)
    assert truncated.exclude_dates == [date(2024, 1, 5)]
    assert replacement.start_date == date(2024, 1, 10)
    assert replacement.end_date == date(2024, 3, 31)
    assert replacement.exclude_dates == [date(2024, 2, 1)]
    assert replacement.timezone == "UTC"
    assert replacement.template.title == "Later"
    assert [e.event for e in plan.events] == ["truncated", "created"]


def test_future_edit_keeps_custom_cadence(make_rule):
    rule = make_rule("custom", date(2024, 1, 1), interval=3, timezone="UTC")
    plan = plan_occurrence_action(rule, date(2024, 1, 7), "edit", "future", edited=edited())
    replacement = plan.rule_puts[-1]
    assert replacement.interval == 3
    assert matches(replacement, date(2024, 1, 10))
    assert not matches(replacement, date(2024, 1, 8))


def test_future_edit_in_other_zone_stores_rule_zone_time(make_rule):
    rule = make_rule("daily", date(2024, 7, 1), timezone="Asia/Tokyo", start_hour=9)
    # Seen at 20:00 on 2024-07-10 in New York; moved to 21:00 there
    plan = plan_occurrence_action(
        rule, date(2024, 7, 11), "edit", "future",
        edited=edited(start_hour=21, start_minute=0),
        view_day=date(2024, 7, 10), viewer_zone="America/New_York",
    )
    replacement = plan.rule_puts[-1]
    assert replacement.start_date == date(2024, 7, 11)
    assert (replacement.template.start_hour, replacement.template.start_minute) == (10, 0)


def test_rejects_day_without_occurrence(weekly):
    with pytest.raises(ValueError):
        plan_occurrence_action(weekly, date(2024, 1, 9), "delete", "single")


def test_rejects_bad_action_scope_and_missing_edit(weekly):
    with pytest.raises(ValueError):
        plan_occurrence_action(weekly, date(2024, 1, 8), "move", "single")
    with pytest.raises(ValueError):
        plan_occurrence_action(weekly, date(2024, 1, 8), "delete", "all")
    with pytest.raises(ValueError):
        plan_occurrence_action(weekly, date(2024, 1, 8), "edit", "single")


def test_edited_fields_are_snapped_to_the_grid(weekly):
    plan = plan_occurrence_action(weekly, date(2024, 1, 10), "edit", "single", edited=edited(start_minute=17, duration=45))
    assert (plan.new_task.start_hour, plan.new_task.start_minute, plan.new_task.duration) == (18, 30, 60)
    plan = plan_occurrence_action(weekly, date(2024, 1, 10), "edit", "future", edited=edited(start_minute=17, duration=45))
    template = plan.rule_puts[-1].template
    assert (template.start_hour, template.start_minute, template.duration) == (18, 30, 60)


def test_future_edit_into_quarter_hour_zone_is_snapped(make_rule):
    # 09:00 in Kathmandu (UTC+5:45) is 12:15 in Tokyo
    rule = make_rule("daily", date(2024, 7, 1), timezone="Asia/Kathmandu", start_hour=9)
    plan = plan_occurrence_action(
        rule, date(2024, 7, 5), "edit", "future",
        edited=edited(start_hour=13, start_minute=0),
        view_day=date(2024, 7, 5), viewer_zone="Asia/Tokyo",
    )
    # 13:00 Tokyo reads 09:45 in Kathmandu, which snaps up to 10:00
    template = plan.rule_puts[-1].template
    assert (template.start_hour, template.start_minute) == (10, 0)


def test_single_edit_without_view_day_uses_viewer_day(make_rule):
    # Tokyo 09:00 on 2024-07-02 is shown in New York on 2024-07-01 at 20:00
    rule = make_rule("daily", date(2024, 7, 1), timezone="Asia/Tokyo", start_hour=9)
    plan = plan_occurrence_action(
        rule, date(2024, 7, 2), "edit", "single",
        edited=edited(start_hour=21, start_minute=0), viewer_zone="America/New_York",
    )
    assert plan.rule_puts[0].exclude_dates == [date(2024, 7, 2)]
    assert plan.new_task_day == date(2024, 7, 1)
    assert plan.new_task.start_hour == 21


def test_future_edit_without_view_day_projects_from_viewer_day(make_rule):
    rule = make_rule("daily", date(2024, 7, 1), timezone="Asia/Tokyo", start_hour=9)
    plan = plan_occurrence_action(
        rule, date(2024, 7, 11), "edit", "future",
        edited=edited(start_hour=21, start_minute=0), viewer_zone="America/New_York",
    )
    template = plan.rule_puts[-1].template
    assert (template.start_hour, template.start_minute) == (10, 0)
