"""HTTP API for daily-calendar: days, authored tasks, recurring rules and occurrence edits."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from config import load as load_config
from database import get_history
from date_utils import parse_day, resolve_date_expression
from day_service import create_task, delete_task, load_day, load_week, save_day, update_journal, update_task
from errors import InvalidRule, MutationFailed, UnknownTimezone
from models import CamelModel, DayRecord, RecurrenceRule, RepeatSettings, TaskFields
from rule_service import act_on_occurrence, create_rule, delete_rule, get_rule, list_rules
from series_planner import MutationPlan, Scope
from tz_projection import LOCAL, resolve_zone_name

app = FastAPI(title="Daily Calendar", version="1.0")
logger = logging.getLogger("daily_calendar.api")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """When config.debug is True, log API request method and path."""
    debug = load_config().debug
    if debug:
        qs = request.url.query
        logger.warning("[API] %s %s%s", request.method, request.url.path, "?" + qs if qs else "")
    response = await call_next(request)
    if debug:
        logger.warning("[API] %s %s -> %s", request.method, request.url.path, response.status_code)
    return response


@app.exception_handler(UnknownTimezone)
@app.exception_handler(InvalidRule)
async def _bad_request(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(MutationFailed)
async def _mutation_failed(request: Request, exc: MutationFailed) -> JSONResponse:
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# --- API schemas ---


class ConfigUpdate(BaseModel):
    debug: bool = False
    web_ui_port: int = Field(8082, ge=1, le=65535)
    database_path: str = ""
    user_timezone: str = LOCAL
    available_timezones: list[str] = Field(default_factory=list)


class NewTaskBody(TaskFields):
    repeat: RepeatSettings | None = None


class UpdateTaskBody(TaskFields):
    target_date: date | None = None


class OccurrenceEditBody(TaskFields):
    scope: Scope
    view_date: date | None = None


class JournalBody(CamelModel):
    good_things: dict[str, str] | None = None
    improvements: dict[str, str] | None = None


def _viewer_zone(tz: str | None) -> str:
    return resolve_zone_name(tz, load_config().user_timezone)


def _day(value: str, zone: str) -> date:
    """Path day: YYYY-MM-DD or a relative expression (today, tomorrow+1) in the viewer's zone."""
    resolved = resolve_date_expression(value, zone)
    if resolved is None:
        raise HTTPException(status_code=400, detail=f"Not a day: {value!r}")
    try:
        return parse_day(resolved)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _plan_summary(plan: MutationPlan) -> dict[str, Any]:
    return {
        "rules": [r.to_json_dict() for r in plan.rule_puts],
        "deletedRules": list(plan.rule_deletes),
        "newTask": plan.new_task.to_json_dict() if plan.new_task else None,
        "newTaskDate": plan.new_task_day.isoformat() if plan.new_task_day else None,
    }


# --- Config ---


@app.get("/api/config", response_model=ConfigUpdate)
def get_config() -> ConfigUpdate:
    c = load_config()
    return ConfigUpdate(
        debug=c.debug,
        web_ui_port=c.web_ui_port,
        database_path=c.database_path or "",
        user_timezone=c.user_timezone or LOCAL,
        available_timezones=list(c.available_timezones),
    )


@app.put("/api/config")
def put_config(body: ConfigUpdate) -> dict[str, str]:
    # Reject a zone that could never be resolved before it is persisted
    resolve_zone_name(body.user_timezone)
    c = load_config()
    c.debug = body.debug
    c.web_ui_port = body.web_ui_port
    c.database_path = body.database_path or ""
    c.user_timezone = body.user_timezone or LOCAL
    if body.available_timezones:
        c.available_timezones = body.available_timezones
    c.save()
    return {"status": "saved"}


@app.get("/api/timezones")
def api_timezones() -> dict[str, Any]:
    c = load_config()
    return {
        "local": resolve_zone_name(LOCAL, c.user_timezone),
        "zones": [LOCAL, *c.available_timezones],
    }


# --- Days ---


@app.get("/api/days/{day}")
def api_get_day(day: str, tz: str | None = None):
    zone = _viewer_zone(tz)
    return load_day(_day(day, zone), zone).to_json_dict()


@app.put("/api/days/{day}")
def api_put_day(day: str, body: dict, tz: str | None = None):
    d = _day(day, _viewer_zone(tz))
    try:
        record = DayRecord.model_validate({**body, "date": d.isoformat()})
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return save_day(record).to_json_dict()


@app.patch("/api/days/{day}/journal")
def api_update_journal(day: str, body: JournalBody, tz: str | None = None):
    d = _day(day, _viewer_zone(tz))
    return update_journal(d, good_things=body.good_things, improvements=body.improvements).to_json_dict()


@app.get("/api/weeks/{day}")
def api_get_week(day: str, tz: str | None = None):
    zone = _viewer_zone(tz)
    return [r.to_json_dict() for r in load_week(_day(day, zone), zone)]


@app.post("/api/days/{day}/tasks")
def api_create_task(day: str, body: NewTaskBody, tz: str | None = None):
    zone = _viewer_zone(tz)
    created = create_task(_day(day, zone), body.task_fields(), repeat=body.repeat, viewer_zone=zone)
    kind = "rule" if isinstance(created, RecurrenceRule) else "task"
    return {"kind": kind, kind: created.to_json_dict()}


@app.put("/api/days/{day}/tasks/{task_id}")
def api_update_task(day: str, task_id: str, body: UpdateTaskBody, tz: str | None = None):
    d = _day(day, _viewer_zone(tz))
    t = update_task(d, task_id, body.task_fields(), target_day=body.target_date)
    if t is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return t.to_json_dict()


@app.delete("/api/days/{day}/tasks/{task_id}")
def api_delete_task(day: str, task_id: str, tz: str | None = None):
    if not delete_task(_day(day, _viewer_zone(tz)), task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "deleted"}


# --- Recurring rules ---


@app.get("/api/rules")
def api_list_rules():
    return [r.to_json_dict() for r in list_rules()]


@app.post("/api/rules")
def api_create_rule(body: RecurrenceRule, tz: str | None = None):
    return create_rule(body, default_timezone=_viewer_zone(tz)).to_json_dict()


@app.get("/api/rules/{rule_id}")
def api_get_rule(rule_id: str):
    r = get_rule(rule_id)
    if r is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return r.to_json_dict()


@app.delete("/api/rules/{rule_id}")
def api_delete_rule(rule_id: str):
    if not delete_rule(rule_id):
        raise HTTPException(status_code=404, detail="Rule not found")
    return {"status": "deleted"}


@app.get("/api/rules/{rule_id}/history")
def api_rule_history(rule_id: str, limit: int = 100):
    return get_history(rule_id, limit=min(limit, 1000))


@app.put("/api/rules/{rule_id}/occurrences/{occurrence_date}")
def api_edit_occurrence(rule_id: str, occurrence_date: str, body: OccurrenceEditBody, tz: str | None = None):
    """Edit one occurrence (scope=single) or it and all later ones (scope=future)."""
    zone = _viewer_zone(tz)
    try:
        plan = act_on_occurrence(
            rule_id, parse_day(occurrence_date), "edit", body.scope,
            edited=body.task_fields(), view_day=body.view_date, viewer_zone=zone,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if plan is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return _plan_summary(plan)


@app.delete("/api/rules/{rule_id}/occurrences/{occurrence_date}")
def api_delete_occurrence(rule_id: str, occurrence_date: str, scope: Scope = "single"):
    """Delete one occurrence (scope=single) or it and all later ones (scope=future)."""
    try:
        plan = act_on_occurrence(rule_id, parse_day(occurrence_date), "delete", scope)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if plan is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return _plan_summary(plan)
