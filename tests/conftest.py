"""Shared fixtures: every test gets its own SQLite file and config.json."""
from __future__ import annotations

from datetime import date

import pytest

import config
import database
from models import RecurrenceRule, TaskFields


@pytest.fixture(autouse=True)
def tmp_db(tmp_path, monkeypatch):
    db_path = tmp_path / "calendar.db"
    monkeypatch.setattr(database, "get_db_path", lambda: db_path)
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.json")
    return db_path


@pytest.fixture
def make_rule():
    def _make(kind="daily", start=date(2024, 1, 1), **kw):
        template = kw.pop("template", None) or TaskFields(
            title=kw.pop("title", "Standup"),
            start_hour=kw.pop("start_hour", 9),
            start_minute=kw.pop("start_minute", 0),
            duration=kw.pop("duration", 60),
        )
        return RecurrenceRule(kind=kind, start_date=start, template=template, **kw)

    return _make
