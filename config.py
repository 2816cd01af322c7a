"""Configuration load/save for daily-calendar."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

CONFIG_PATH = Path(__file__).resolve().parent / "config.json"

# Curated viewer zones offered next to "local"
DEFAULT_TIMEZONES = [
    "Asia/Shanghai",
    "Asia/Tokyo",
    "America/New_York",
    "America/Los_Angeles",
    "Europe/London",
    "Europe/Paris",
    "Australia/Sydney",
    "UTC",
]


class AppConfig(BaseModel):
    """Persisted application configuration."""

    debug: bool = Field(default=False, description="Log every API request")
    web_ui_port: int = Field(default=8082, ge=1, le=65535, description="Port for the HTTP API")
    database_path: str = Field(default="", description="Path to SQLite database file; empty = project dir / daily_calendar.db")
    user_timezone: str = Field(default="local", description="IANA timezone used as the viewer's 'local' zone; 'local' = host zone")
    available_timezones: list[str] = Field(default_factory=lambda: list(DEFAULT_TIMEZONES), description="Zones offered by the viewer zone selector")

    def to_save_dict(self) -> dict[str, Any]:
        return self.model_dump()

    @classmethod
    def load(cls) -> "AppConfig":
        if not CONFIG_PATH.exists():
            return cls()
        raw = json.loads(CONFIG_PATH.read_text())
        return cls.model_validate(raw)

    def save(self) -> None:
        CONFIG_PATH.write_text(json.dumps(self.to_save_dict(), indent=2))


def load() -> AppConfig:
    """Load config from disk. Convenience alias for AppConfig.load()."""
    return AppConfig.load()
