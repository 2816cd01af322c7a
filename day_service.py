"""
Day service: what a viewer sees on a day, and edits to authored (non-recurring) tasks.

load_day merges the day's stored tasks with the occurrences materialized for the viewer's
zone; save_day strips occurrences again so only authored state is ever persisted.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from database import get_connection
from date_utils import week_days, week_start
from day_store import load_day_record, put_day_record, read_day_record, write_day_record
from materializer import materialize
from models import (
    CalendarTask,
    DayRecord,
    GoodThings,
    Improvements,
    RecurrenceRule,
    RepeatSettings,
    TaskFields,
    new_id,
    normalize_fields,
)
from rule_service import create_rule, list_rules
from tz_projection import get_zone

logger = logging.getLogger("day_service")


def load_day(day: date, viewer_zone: str) -> DayRecord:
    """
    Stored record for day plus the recurring occurrences that land on it in viewer_zone.
    Raises UnknownTimezone if viewer_zone (or a rule's zone) is unknown.
    """
    get_zone(viewer_zone)
    record = load_day_record(day)
    authored = [t for t in record.tasks if not t.is_occurrence]
    occurrences = materialize(list_rules(), day, viewer_zone)
    return record.model_copy(update={"tasks": authored + occurrences})


def load_week(day: date, viewer_zone: str) -> list[DayRecord]:
    """The Monday-to-Sunday week containing day."""
    return [load_day(d, viewer_zone) for d in week_days(week_start(day))]


def save_day(record: DayRecord) -> DayRecord:
    """Persist the authored part of record (materialized occurrences are dropped)."""
    authored = [t for t in record.tasks if t.recurring_id is None]
    dropped = len(record.tasks) - len(authored)
    if dropped:
        logger.debug("save_day %s: dropping %d materialized task(s)", record.day, dropped)
    stored = record.model_copy(update={"tasks": authored})
    put_day_record(stored)
    return stored


def create_task(
    day: date,
    fields: TaskFields,
    *,
    repeat: RepeatSettings | None = None,
    viewer_zone: str | None = None,
) -> CalendarTask | RecurrenceRule:
    """
    New task on day. With repeat settings this creates a recurring rule starting on day
    instead (its zone defaults to viewer_zone) and returns the rule.
    """
    fields = normalize_fields(fields)
    if repeat is not None:
        return create_rule(repeat.to_rule(day, fields), default_timezone=viewer_zone)
    task = CalendarTask(**fields.task_fields().model_dump(), id=new_id())
    record = load_day_record(day)
    save_day(record.model_copy(update={"tasks": [*record.tasks, task]}))
    return task


def update_task(
    day: date,
    task_id: str,
    fields: TaskFields,
    *,
    target_day: date | None = None,
) -> CalendarTask | None:
    """
    Replace an authored task's fields. With a different target_day the task moves there
    and gets a fresh id. Returns None if day has no such task.
    """
    fields = normalize_fields(fields)
    conn = get_connection()
    try:
        conn.execute("BEGIN IMMEDIATE")
        record = read_day_record(conn, day) or DayRecord.empty(day)
        if not any(t.id == task_id for t in record.tasks):
            return None
        if target_day is None or target_day == day:
            updated = CalendarTask(**fields.task_fields().model_dump(), id=task_id)
            tasks = [updated if t.id == task_id else t for t in record.tasks]
            write_day_record(conn, record.model_copy(update={"tasks": tasks}))
        else:
            updated = CalendarTask(**fields.task_fields().model_dump(), id=new_id())
            tasks = [t for t in record.tasks if t.id != task_id]
            write_day_record(conn, record.model_copy(update={"tasks": tasks}))
            target = read_day_record(conn, target_day) or DayRecord.empty(target_day)
            write_day_record(conn, target.model_copy(update={"tasks": [*target.tasks, updated]}))
            logger.info("Moved task %s from %s to %s as %s", task_id, day, target_day, updated.id)
        conn.commit()
        return updated
    finally:
        conn.close()


def delete_task(day: date, task_id: str) -> bool:
    record = load_day_record(day)
    kept = [t for t in record.tasks if t.id != task_id]
    if len(kept) == len(record.tasks):
        return False
    save_day(record.model_copy(update={"tasks": kept}))
    return True


def update_journal(
    day: date,
    *,
    good_things: dict[str, Any] | None = None,
    improvements: dict[str, Any] | None = None,
) -> DayRecord:
    """Update some of the day's good things / improvements; other fields stay as stored."""
    record = load_day_record(day)
    updates: dict[str, Any] = {}
    if good_things:
        merged = {**record.good_things.model_dump(), **good_things}
        updates["good_things"] = GoodThings.model_validate(merged)
    if improvements:
        merged = {**record.improvements.model_dump(), **improvements}
        updates["improvements"] = Improvements.model_validate(merged)
    if not updates:
        return record
    return save_day(record.model_copy(update=updates))
