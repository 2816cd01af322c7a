"""
Occurrence materialization: which rule instances land on a viewed day in the viewer's zone.

A rule's occurrence on day X (in its own zone) can fall on X-1, X or X+1 once re-read in
another zone, so each rule is checked on the viewed day and its two neighbours.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from date_utils import format_time
from models import CalendarTask, RecurrenceRule
from recurrence import matches
from tz_projection import project

logger = logging.getLogger("materializer")

_DAY_OFFSETS = (-1, 0, 1)


def occurrence_id(rule_id: str, viewed_day: date, occurrence_day: date) -> str:
    """Stable id for one occurrence as seen on one viewed day."""
    return f"{rule_id}_{viewed_day.isoformat()}_{occurrence_day.isoformat()}"


def _occurrence_for(rule: RecurrenceRule, viewed_day: date, viewer_zone: str) -> CalendarTask | None:
    task_zone = rule.timezone or viewer_zone
    template = rule.template
    for offset in _DAY_OFFSETS:
        candidate = viewed_day + timedelta(days=offset)
        if not matches(rule, candidate):
            continue
        wall = datetime.combine(candidate, time(template.start_hour, template.start_minute))
        seen = project(wall, task_zone, viewer_zone)
        if seen.date() != viewed_day:
            continue
        # One fixed clock time per rule: the first offset that lands on the viewed day wins
        return CalendarTask(
            **template.model_dump(exclude={"start_hour", "start_minute"}),
            id=occurrence_id(rule.id, viewed_day, candidate),
            start_hour=seen.hour,
            start_minute=seen.minute,
            recurring_id=rule.id,
            recurring_config=rule,
            occurrence_date=candidate,
        )
    return None


def materialize(rules: list[RecurrenceRule], viewed_day: date, viewer_zone: str) -> list[CalendarTask]:
    """
    Return the occurrences of rules that land on viewed_day when viewed in viewer_zone,
    ordered by start time. Raises UnknownTimezone if any zone involved is unknown.
    """
    out: list[CalendarTask] = []
    for rule in rules:
        occ = _occurrence_for(rule, viewed_day, viewer_zone)
        if occ is None:
            continue
        logger.debug(
            "rule %s -> %s %s (from %s in %s)",
            rule.id, viewed_day, format_time(occ.start_hour, occ.start_minute),
            occ.occurrence_date, rule.timezone or viewer_zone,
        )
        out.append(occ)
    out.sort(key=lambda t: (t.start_hour, t.start_minute, t.title))
    return out
