"""
Recurrence rule matching: does a rule produce an occurrence on a given calendar day?
The day is expressed in the rule's own timezone; no zone handling happens here.
"""
from __future__ import annotations

from datetime import date

from date_utils import sunday_based_weekday
from errors import InvalidRule
from models import RecurrenceRule


def matches(rule: RecurrenceRule, day: date) -> bool:
    """
    True if rule has an occurrence on day.
    Never raises: rules that came back from storage with nonsense values (custom
    interval <= 0, weekly with no days) simply never match.
    """
    if day < rule.start_date:
        return False
    if rule.end_date is not None and day > rule.end_date:
        return False
    if day in rule.exclude_dates:
        return False
    kind = rule.kind
    if kind == "daily":
        return True
    if kind == "weekly":
        return sunday_based_weekday(day) in rule.week_days
    if kind == "monthly":
        # No month-end clamping: a rule anchored on the 31st skips 30-day months
        return day.day == rule.start_date.day
    if kind == "yearly":
        return day.month == rule.start_date.month and day.day == rule.start_date.day
    if kind == "custom":
        if not rule.interval or rule.interval <= 0:
            return False
        return (day - rule.start_date).days % rule.interval == 0
    return False


def validate_new_rule(rule: RecurrenceRule) -> RecurrenceRule:
    """Reject rule shapes that could never be intended. Raises InvalidRule."""
    if rule.kind == "custom" and (rule.interval is None or rule.interval < 1):
        raise InvalidRule("custom repeat needs an interval of at least 1 day")
    if rule.kind == "weekly":
        if not rule.week_days:
            raise InvalidRule("weekly repeat needs at least one weekday")
        if any(d < 0 or d > 6 for d in rule.week_days):
            raise InvalidRule("weekdays must be 0 (Sunday) to 6 (Saturday)")
    if rule.end_date is not None and rule.end_date < rule.start_date:
        raise InvalidRule("end date cannot be before start date")
    return rule
