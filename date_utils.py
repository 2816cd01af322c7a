"""
Calendar-day and time-grid helpers.
Day arithmetic here is zone-agnostic (plain datetime.date); only 'today' needs a zone.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta

from tz_projection import get_zone

# Already ISO date
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_RELATIVE = re.compile(r"^(today|tomorrow|yesterday)(?:([+-])(\d+))?$")

SLOT_MINUTES = 30
MINUTES_PER_DAY = 24 * 60

TASK_COLORS = [
    "#5E97F6",  # blue
    "#E67C73",  # red
    "#F6BF26",  # yellow
    "#33B679",  # green
    "#8E24AA",  # purple
    "#039BE5",  # light blue
    "#F4511E",  # orange
    "#616161",  # grey
    "#D81B60",  # pink
    "#0B8043",  # dark green
]


def parse_day(value: str | date) -> date:
    """Parse YYYY-MM-DD into a date. Raises ValueError on anything else."""
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not _ISO_DATE.match(raw):
        raise ValueError(f"Expected a YYYY-MM-DD date, got {value!r}")
    return date.fromisoformat(raw)


def today_in_tz(tz_name: str) -> date:
    return datetime.now(get_zone(tz_name)).date()


def resolve_date_expression(value: str | None, tz_name: str) -> str | None:
    """
    Resolve a day expression to YYYY-MM-DD.
    Supports ISO dates, "today", "tomorrow", "yesterday", each optionally with +N / -N
    (no spaces around +/-). Relative forms are evaluated in tz_name.
    Returns None for anything else.
    """
    if not value or not str(value).strip():
        return None
    raw = str(value).strip().lower()
    if _ISO_DATE.match(raw):
        return raw
    m = _RELATIVE.match(raw)
    if not m:
        return None
    base = {"today": 0, "tomorrow": 1, "yesterday": -1}[m.group(1)]
    if m.group(3):
        n = int(m.group(3))
        base += n if m.group(2) == "+" else -n
    return (today_in_tz(tz_name) + timedelta(days=base)).isoformat()


def sunday_based_weekday(d: date) -> int:
    """0=Sunday .. 6=Saturday (Python's weekday() is Monday=0)."""
    return (d.weekday() + 1) % 7


def week_start(d: date) -> date:
    """Monday of the week containing d."""
    return d - timedelta(days=d.weekday())


def week_days(start: date) -> list[date]:
    """Seven consecutive days starting at start."""
    return [start + timedelta(days=i) for i in range(7)]


def format_time(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def snap_to_grid(minutes: int) -> int:
    """Round a minute count to the nearest 30-minute slot boundary (halves round up)."""
    return (minutes + SLOT_MINUTES // 2) // SLOT_MINUTES * SLOT_MINUTES


def clamp_duration(start_hour: int, start_minute: int, duration: int) -> int:
    """Shorten duration so the task ends no later than 24:00."""
    start = start_hour * 60 + start_minute
    return min(duration, MINUTES_PER_DAY - start)
