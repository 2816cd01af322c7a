"""
Series mutations: turn "edit/delete this occurrence" or "... this and all future"
into rule changes. Planning is pure; rule_service.apply_mutation performs the writes.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Literal

from pydantic import BaseModel, Field

from models import CalendarTask, RecurrenceRule, TaskFields, new_id, normalize_fields
from recurrence import matches
from tz_projection import project

Action = Literal["edit", "delete"]
Scope = Literal["single", "future"]
ACTIONS = frozenset({"edit", "delete"})
SCOPES = frozenset({"single", "future"})


class HistoryEvent(BaseModel):
    subject_id: str
    event: str
    payload: dict[str, Any] | None = None


class MutationPlan(BaseModel):
    """Staged full records to write together; nothing here has been persisted."""

    rule_puts: list[RecurrenceRule] = Field(default_factory=list)
    rule_deletes: list[str] = Field(default_factory=list)
    new_task: CalendarTask | None = None
    new_task_day: date | None = None
    events: list[HistoryEvent] = Field(default_factory=list)


def _rule_zone_template(
    rule: RecurrenceRule,
    edited: TaskFields,
    view_day: date,
    viewer_zone: str | None,
) -> TaskFields:
    """
    Edited clock time is in the viewer's zone; templates hold the rule's zone.
    A quarter-hour zone offset can land off the grid, so the projected time is snapped again.
    """
    template = edited.task_fields()
    if not viewer_zone or not rule.timezone or viewer_zone == rule.timezone:
        return template
    wall = datetime.combine(view_day, time(edited.start_hour, edited.start_minute))
    back = project(wall, viewer_zone, rule.timezone)
    return normalize_fields(template.model_copy(update={"start_hour": back.hour, "start_minute": back.minute}))


def _viewed_day(rule: RecurrenceRule, occurrence_date: date, viewer_zone: str | None) -> date:
    """The viewer's day the occurrence was shown on (what materialize would place it on)."""
    if not viewer_zone or not rule.timezone or viewer_zone == rule.timezone:
        return occurrence_date
    wall = datetime.combine(occurrence_date, time(rule.template.start_hour, rule.template.start_minute))
    return project(wall, rule.timezone, viewer_zone).date()


def _plan_single(rule, occurrence_date, action, edited, view_day) -> MutationPlan:
    excludes = sorted(set(rule.exclude_dates) | {occurrence_date})
    plan = MutationPlan(
        rule_puts=[rule.model_copy(update={"exclude_dates": excludes}, deep=True)],
        events=[HistoryEvent(subject_id=rule.id, event="excluded", payload={"date": occurrence_date.isoformat()})],
    )
    if action == "edit":
        # A plain one-off task on the day it was edited; it has no link back to the rule
        plan.new_task = CalendarTask(**edited.task_fields().model_dump(), id=new_id())
        plan.new_task_day = view_day
    return plan


def _plan_future(rule, occurrence_date, action, edited, view_day, viewer_zone) -> MutationPlan:
    plan = MutationPlan()
    new_end = occurrence_date - timedelta(days=1)
    if new_end < rule.start_date:
        plan.rule_deletes.append(rule.id)
        plan.events.append(HistoryEvent(subject_id=rule.id, event="deleted", payload={"from": occurrence_date.isoformat()}))
    else:
        truncated = rule.model_copy(
            update={"end_date": new_end, "exclude_dates": [d for d in rule.exclude_dates if d <= new_end]},
            deep=True,
        )
        plan.rule_puts.append(truncated)
        plan.events.append(HistoryEvent(subject_id=rule.id, event="truncated", payload={"endDate": new_end.isoformat()}))
    if action == "edit":
        replacement = RecurrenceRule(
            id=new_id(),
            kind=rule.kind,
            interval=rule.interval,
            week_days=list(rule.week_days),
            start_date=occurrence_date,
            end_date=rule.end_date,
            exclude_dates=[d for d in rule.exclude_dates if d >= occurrence_date],
            timezone=rule.timezone,
            template=_rule_zone_template(rule, edited, view_day, viewer_zone),
        )
        plan.rule_puts.append(replacement)
        plan.events.append(
            HistoryEvent(
                subject_id=replacement.id,
                event="created",
                payload={"startDate": occurrence_date.isoformat(), "splitFrom": rule.id},
            )
        )
    return plan


def plan_occurrence_action(
    rule: RecurrenceRule,
    occurrence_date: date,
    action: Action,
    scope: Scope,
    *,
    edited: TaskFields | None = None,
    view_day: date | None = None,
    viewer_zone: str | None = None,
) -> MutationPlan:
    """
    Plan the rule changes for acting on the occurrence of rule on occurrence_date
    (a day in the rule's own zone).

    single: exclude that day; an edit also adds a one-off task on view_day.
    future: end the rule the day before; an edit also starts a new rule on that day with
    the edited fields. Truncating at or before the rule's start deletes the rule.

    Edited fields are snapped to the 30-minute grid. Without view_day, the occurrence's
    day as seen in viewer_zone is used.

    Raises ValueError for unknown action/scope, a missing edit payload, or a day the rule
    does not occur on.
    """
    if action not in ACTIONS:
        raise ValueError(f"action must be one of {sorted(ACTIONS)}")
    if scope not in SCOPES:
        raise ValueError(f"scope must be one of {sorted(SCOPES)}")
    if action == "edit" and edited is None:
        raise ValueError("edit requires the edited task fields")
    if not matches(rule, occurrence_date):
        raise ValueError(f"Rule {rule.id} has no occurrence on {occurrence_date.isoformat()}")
    if edited is not None:
        edited = normalize_fields(edited)
    view_day = view_day or _viewed_day(rule, occurrence_date, viewer_zone)
    if scope == "single":
        return _plan_single(rule, occurrence_date, action, edited, view_day)
    return _plan_future(rule, occurrence_date, action, edited, view_day, viewer_zone)
