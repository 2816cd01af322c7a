from datetime import date

import pytest

from errors import UnknownTimezone
from materializer import materialize, occurrence_id


def test_tokyo_daily_shows_previous_evening_in_new_york(make_rule):
    rule = make_rule("daily", date(2024, 7, 1), timezone="Asia/Tokyo", title="Tokyo Morning Meeting")
    [occ] = materialize([rule], date(2024, 7, 10), "America/New_York")
    assert (occ.start_hour, occ.start_minute) == (20, 0)
    # Produced by the Tokyo day after the viewed day
    assert occ.occurrence_date == date(2024, 7, 11)
    assert occ.recurring_id == rule.id
    assert occ.recurring_config == rule
    assert occ.title == "Tokyo Morning Meeting"
    assert occ.duration == 60


def test_first_tokyo_day_lands_before_rule_start_in_new_york(make_rule):
    rule = make_rule("daily", date(2024, 7, 1), timezone="Asia/Tokyo")
    [occ] = materialize([rule], date(2024, 6, 30), "America/New_York")
    assert occ.occurrence_date == date(2024, 7, 1)
    assert (occ.start_hour, occ.start_minute) == (20, 0)
    assert materialize([rule], date(2024, 6, 29), "America/New_York") == []


def test_same_zone_keeps_template_time(make_rule):
    rule = make_rule("daily", date(2024, 1, 1), timezone="Europe/Paris", start_hour=7, start_minute=30)
    [occ] = materialize([rule], date(2024, 1, 5), "Europe/Paris")
    assert (occ.start_hour, occ.start_minute) == (7, 30)
    assert occ.occurrence_date == date(2024, 1, 5)


def test_rule_without_timezone_follows_viewer(make_rule):
    rule = make_rule("daily", date(2024, 1, 1), start_hour=9)
    [occ] = materialize([rule], date(2024, 1, 5), "Asia/Tokyo")
    assert occ.start_hour == 9
    [occ] = materialize([rule], date(2024, 1, 5), "America/New_York")
    assert occ.start_hour == 9


def test_daily_rule_across_dst_in_utc_view(make_rule):
    rule = make_rule("daily", date(2024, 3, 1), timezone="America/New_York", start_hour=9)
    assert materialize([rule], date(2024, 3, 9), "UTC")[0].start_hour == 14
    assert materialize([rule], date(2024, 3, 11), "UTC")[0].start_hour == 13


def test_weekly_rule_shifts_weekday_for_viewer(make_rule):
    # Monday 09:00 in Tokyo is Sunday 20:00 in New York
    rule = make_rule("weekly", date(2024, 7, 1), week_days=[1], timezone="Asia/Tokyo")
    assert materialize([rule], date(2024, 7, 7), "America/New_York")[0].occurrence_date == date(2024, 7, 8)
    assert materialize([rule], date(2024, 7, 8), "America/New_York") == []


def test_excluded_day_is_not_materialized(make_rule):
    rule = make_rule("daily", date(2024, 1, 1), timezone="UTC", exclude_dates=[date(2024, 1, 3)])
    assert materialize([rule], date(2024, 1, 3), "UTC") == []
    assert len(materialize([rule], date(2024, 1, 4), "UTC")) == 1


def test_at_most_one_occurrence_per_rule_and_sorted(make_rule):
    late = make_rule("daily", date(2024, 1, 1), timezone="UTC", start_hour=18, title="Late")
    early = make_rule("daily", date(2024, 1, 1), timezone="UTC", start_hour=6, title="Early")
    out = materialize([late, early], date(2024, 1, 2), "UTC")
    assert [t.title for t in out] == ["Early", "Late"]


def test_occurrence_ids_are_stable(make_rule):
    rule = make_rule("daily", date(2024, 1, 1), timezone="Asia/Tokyo")
    a = materialize([rule], date(2024, 7, 10), "America/New_York")
    b = materialize([rule], date(2024, 7, 10), "America/New_York")
    assert a[0].id == b[0].id == occurrence_id(rule.id, date(2024, 7, 10), date(2024, 7, 11))


def test_unknown_rule_zone_fails_the_call(make_rule):
    good = make_rule("daily", date(2024, 1, 1), timezone="UTC")
    bad = make_rule("daily", date(2024, 1, 1), timezone="Atlantis/Capital")
    with pytest.raises(UnknownTimezone):
        materialize([good, bad], date(2024, 1, 2), "UTC")
