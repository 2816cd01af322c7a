"""
Data model: tasks, recurrence rules and day records.
Python attributes are snake_case; the persisted/JSON shape is camelCase (startHour, excludeDates, goodThings).
"""
from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from ulid import ULID

from date_utils import MINUTES_PER_DAY, SLOT_MINUTES, TASK_COLORS, clamp_duration, snap_to_grid

RepeatKind = Literal["daily", "weekly", "monthly", "yearly", "custom"]
REPEAT_KINDS: tuple[str, ...] = ("daily", "weekly", "monthly", "yearly", "custom")


def new_id() -> str:
    return str(ULID())


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Persisted/JSON shape: camelCase keys, unset optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TaskFields(CamelModel):
    """Display fields shared by stored tasks, occurrences and rule templates."""

    title: str
    start_hour: int = Field(ge=0, le=23)
    start_minute: int = Field(default=0, ge=0, le=59)
    duration: int = Field(default=60, gt=0, description="Minutes")
    color: str = TASK_COLORS[0]
    location: str | None = None
    notes: str | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title is required")
        return v

    @field_validator("location", "notes")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def task_fields(self) -> TaskFields:
        """Just the display fields, as a fresh TaskFields."""
        return TaskFields.model_validate(self.model_dump(include=set(TaskFields.model_fields)))


def normalize_fields(fields: TaskFields) -> TaskFields:
    """Snap start and duration to the 30-minute grid; never run past 24:00."""
    start = snap_to_grid(fields.start_hour * 60 + fields.start_minute)
    start = min(start, MINUTES_PER_DAY - SLOT_MINUTES)
    duration = max(SLOT_MINUTES, snap_to_grid(fields.duration))
    hour, minute = divmod(start, 60)
    return fields.model_copy(
        update={"start_hour": hour, "start_minute": minute, "duration": clamp_duration(hour, minute, duration)}
    )


class RecurrenceRule(CamelModel):
    """
    A repeating task. Dates, weekdays and the template's clock time are all
    interpreted in `timezone` (the authoring zone).
    """

    id: str = Field(default_factory=new_id)
    kind: RepeatKind = Field(validation_alias=AliasChoices("kind", "type"))
    interval: int | None = None  # custom only: every N days
    week_days: list[int] = Field(default_factory=list)  # weekly only: 0=Sunday .. 6=Saturday
    start_date: date
    end_date: date | None = None
    exclude_dates: list[date] = Field(default_factory=list)
    timezone: str | None = None
    template: TaskFields

    @field_validator("exclude_dates")
    @classmethod
    def _dedupe_excludes(cls, v: list[date]) -> list[date]:
        return sorted(set(v))

    @field_validator("timezone")
    @classmethod
    def _blank_zone(cls, v: str | None) -> str | None:
        return (v or "").strip() or None


class RepeatSettings(CamelModel):
    """Repeat choice made when a task is created; becomes a RecurrenceRule starting that day."""

    kind: RepeatKind = Field(validation_alias=AliasChoices("kind", "type"))
    interval: int | None = None
    week_days: list[int] = Field(default_factory=list)
    end_date: date | None = None
    timezone: str | None = None

    def to_rule(self, start_date: date, template: TaskFields) -> RecurrenceRule:
        return RecurrenceRule(
            kind=self.kind,
            interval=self.interval,
            week_days=list(self.week_days),
            start_date=start_date,
            end_date=self.end_date,
            timezone=self.timezone,
            template=template.task_fields(),
        )


class CalendarTask(TaskFields):
    """A task on a day: authored (stored) or materialized from a rule (recurring_id set)."""

    id: str = Field(default_factory=new_id)
    recurring_id: str | None = None
    recurring_config: RecurrenceRule | None = None
    occurrence_date: date | None = None  # the rule-zone day that produced this occurrence

    @property
    def is_occurrence(self) -> bool:
        return self.recurring_id is not None


class GoodThings(CamelModel):
    thing1: str = ""
    thing2: str = ""
    thing3: str = ""


class Improvements(CamelModel):
    item1: str = ""
    item2: str = ""
    item3: str = ""


class DayRecord(CamelModel):
    """Everything stored for one calendar day."""

    day: date = Field(alias="date")
    tasks: list[CalendarTask] = Field(default_factory=list)
    good_things: GoodThings = Field(default_factory=GoodThings)
    improvements: Improvements = Field(default_factory=Improvements)

    @model_validator(mode="before")
    @classmethod
    def _migrate_single_improvement(cls, data: Any) -> Any:
        """Old records kept one `improvement` string; move it into improvements.item1."""
        if isinstance(data, dict) and not data.get("improvements"):
            legacy = data.get("improvement")
            data = {k: v for k, v in data.items() if k != "improvement"}
            data["improvements"] = {"item1": legacy or "", "item2": "", "item3": ""}
        return data

    @classmethod
    def empty(cls, day: date) -> DayRecord:
        return cls(day=day)
