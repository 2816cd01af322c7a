"""
Rule Store and series mutations.
All recurring rules live in one JSON array under the fixed 'recurring' key. Every write
re-reads the array, stages a complete new one and commits it in a single transaction.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date
from typing import Any

from pydantic import ValidationError

from database import RULES_KEY, get_connection, read_record, record_history, write_record
from date_utils import sunday_based_weekday
from day_store import read_day_record, write_day_record
from errors import MalformedStoredRecord, MutationFailed
from models import DayRecord, RecurrenceRule, TaskFields, normalize_fields
from recurrence import validate_new_rule
from series_planner import Action, MutationPlan, Scope, plan_occurrence_action
from tz_projection import get_zone

logger = logging.getLogger("rule_service")


def parse_rules(raw: str | None) -> tuple[list[RecurrenceRule], list[Any]]:
    """
    Parse the stored rule array. Returns (rules, unreadable entries).
    Unreadable entries are kept so a later write does not silently drop them.
    Raises MalformedStoredRecord if the payload is not a JSON array.
    """
    if raw is None:
        return [], []
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise MalformedStoredRecord(RULES_KEY, str(e)) from e
    if not isinstance(data, list):
        raise MalformedStoredRecord(RULES_KEY, "expected a JSON array")
    rules: list[RecurrenceRule] = []
    unreadable: list[Any] = []
    for item in data:
        try:
            rules.append(RecurrenceRule.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping unreadable recurring rule: %s", e)
            unreadable.append(item)
    return rules, unreadable


def _read_rules(conn: sqlite3.Connection) -> tuple[list[RecurrenceRule], list[Any]]:
    try:
        return parse_rules(read_record(conn, RULES_KEY))
    except MalformedStoredRecord as e:
        logger.warning("%s; treating as no rules", e)
        return [], []


def _write_rules(conn: sqlite3.Connection, rules: list[RecurrenceRule], unreadable: list[Any]) -> None:
    write_record(conn, RULES_KEY, [r.to_json_dict() for r in rules] + list(unreadable))


def list_rules() -> list[RecurrenceRule]:
    conn = get_connection()
    try:
        return _read_rules(conn)[0]
    finally:
        conn.close()


def get_rule(rule_id: str) -> RecurrenceRule | None:
    return next((r for r in list_rules() if r.id == rule_id), None)


def put_rule(rule: RecurrenceRule) -> RecurrenceRule:
    """Insert or replace a rule by id."""
    conn = get_connection()
    try:
        conn.execute("BEGIN IMMEDIATE")
        rules, unreadable = _read_rules(conn)
        existed = any(r.id == rule.id for r in rules)
        rules = [rule if r.id == rule.id else r for r in rules]
        if not existed:
            rules.append(rule)
        _write_rules(conn, rules, unreadable)
        record_history(conn, rule.id, "updated" if existed else "created", {"kind": rule.kind, "title": rule.template.title})
        conn.commit()
        return rule
    finally:
        conn.close()


def delete_rule(rule_id: str) -> bool:
    conn = get_connection()
    try:
        conn.execute("BEGIN IMMEDIATE")
        rules, unreadable = _read_rules(conn)
        kept = [r for r in rules if r.id != rule_id]
        if len(kept) == len(rules):
            return False
        _write_rules(conn, kept, unreadable)
        record_history(conn, rule_id, "deleted")
        conn.commit()
        return True
    finally:
        conn.close()


def create_rule(rule: RecurrenceRule, *, default_timezone: str | None = None) -> RecurrenceRule:
    """
    Validate and store a new rule. The template is snapped to the 30-minute grid.
    A rule without a timezone gets default_timezone (the viewer's zone at creation);
    a weekly rule without days repeats on its start weekday.
    Raises InvalidRule or UnknownTimezone.
    """
    updates: dict[str, Any] = {"template": normalize_fields(rule.template)}
    if not rule.timezone and default_timezone:
        updates["timezone"] = default_timezone
    if rule.kind == "weekly" and not rule.week_days:
        updates["week_days"] = [sunday_based_weekday(rule.start_date)]
    rule = rule.model_copy(update=updates)
    validate_new_rule(rule)
    if rule.timezone:
        get_zone(rule.timezone)
    logger.info("create_rule %s %s from %s in %s", rule.id, rule.kind, rule.start_date, rule.timezone)
    return put_rule(rule)


def apply_mutation(plan: MutationPlan) -> MutationPlan:
    """
    Apply a planned series mutation atomically: rule replacements, deletions and the
    optional one-off task are committed together or not at all.
    Raises MutationFailed (chained to the cause) if anything fails.
    """
    conn = get_connection()
    try:
        conn.execute("BEGIN IMMEDIATE")
        rules, unreadable = _read_rules(conn)
        puts = {r.id: r for r in plan.rule_puts}
        deletes = set(plan.rule_deletes)
        staged = [puts.pop(r.id, r) for r in rules if r.id not in deletes]
        staged.extend(puts.values())
        _write_rules(conn, staged, unreadable)
        if plan.new_task is not None:
            day = plan.new_task_day
            record = read_day_record(conn, day) or DayRecord.empty(day)
            record = record.model_copy(update={"tasks": [*record.tasks, plan.new_task]})
            write_day_record(conn, record)
        for ev in plan.events:
            record_history(conn, ev.subject_id, ev.event, ev.payload)
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.exception("Series mutation failed; nothing applied")
        raise MutationFailed(f"Could not apply series change: {e}") from e
    finally:
        conn.close()
    logger.info(
        "Applied series change: %d rule write(s), %d delete(s), one-off task=%s",
        len(plan.rule_puts), len(plan.rule_deletes), plan.new_task is not None,
    )
    return plan


def act_on_occurrence(
    rule_id: str,
    occurrence_date: date,
    action: Action,
    scope: Scope,
    *,
    edited: TaskFields | None = None,
    view_day: date | None = None,
    viewer_zone: str | None = None,
) -> MutationPlan | None:
    """Plan and apply an edit/delete of one occurrence. Returns None if the rule does not exist."""
    rule = get_rule(rule_id)
    if rule is None:
        return None
    plan = plan_occurrence_action(
        rule, occurrence_date, action, scope,
        edited=edited, view_day=view_day, viewer_zone=viewer_zone,
    )
    return apply_mutation(plan)
