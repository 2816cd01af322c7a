"""
SQLite database initialization and connection for daily-calendar.
Self-bootstrapping: creates DB file, tables and indexes on first run.
Every record (one per calendar day, plus the recurring-rule list) is a JSON
payload in a key/value table; writers replace whole payloads inside a transaction.
"""
from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Default DB path: project directory
_DEFAULT_DB_PATH = Path(__file__).resolve().parent / "daily_calendar.db"

# Wait up to this many seconds for locks
_CONNECT_TIMEOUT = 30.0

# Fixed key of the recurring-rule list; never collides with a YYYY-MM-DD day key
RULES_KEY = "recurring"

_SCHEMA = """
-- Primary table: records
-- key: YYYY-MM-DD for day records, 'recurring' for the rule list
-- payload: JSON document (day record object or array of rules)
CREATE TABLE IF NOT EXISTS records (
    key TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- History log for record events (rule created / excluded / truncated / deleted)
CREATE TABLE IF NOT EXISTS record_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    event TEXT NOT NULL,
    payload TEXT
);

CREATE INDEX IF NOT EXISTS idx_record_history_subject ON record_history(subject_id);
CREATE INDEX IF NOT EXISTS idx_record_history_timestamp ON record_history(timestamp);
"""


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def get_db_path() -> Path:
    """Return the database file path (from config if available)."""
    try:
        from config import load as load_config
        c = load_config()
        path = getattr(c, "database_path", None)
        if path:
            return Path(path)
    except (OSError, ValueError):
        pass
    return _DEFAULT_DB_PATH


def init_database(path: Path | None = None) -> Path:
    """
    Ensure the database exists and is initialized. Creates file and all tables/indexes.
    Returns the path to the database file.
    """
    db_path = path or get_db_path()
    db_path = db_path.resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), timeout=_CONNECT_TIMEOUT)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.executescript(_SCHEMA)
    conn.commit()
    conn.close()
    return db_path


def get_connection(path: Path | None = None) -> sqlite3.Connection:
    """Return a connection to the database. Initializes the schema if needed."""
    db_path = path or get_db_path()
    init_database(db_path)
    conn = sqlite3.connect(str(db_path), timeout=_CONNECT_TIMEOUT)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


def read_record(conn: sqlite3.Connection, key: str) -> str | None:
    """Return the raw JSON payload stored under key, or None."""
    row = conn.execute("SELECT payload FROM records WHERE key = ?", (key,)).fetchone()
    return row["payload"] if row else None


def write_record(conn: sqlite3.Connection, key: str, payload: Any) -> None:
    """Replace the payload stored under key. Caller commits."""
    now = _now_iso()
    conn.execute(
        """INSERT INTO records (key, payload, created_at, updated_at) VALUES (?, ?, ?, ?)
           ON CONFLICT(key) DO UPDATE SET payload = excluded.payload, updated_at = excluded.updated_at""",
        (key, json.dumps(payload, ensure_ascii=False), now, now),
    )


def record_history(conn: sqlite3.Connection, subject_id: str, event: str, payload: Any = None) -> None:
    conn.execute(
        "INSERT INTO record_history (subject_id, timestamp, event, payload) VALUES (?, ?, ?, ?)",
        (subject_id, _now_iso(), event, json.dumps(payload) if payload is not None else None),
    )


def get_history(subject_id: str, limit: int = 100) -> list[dict[str, Any]]:
    """Return history events for a rule or day (newest first)."""
    conn = get_connection()
    try:
        rows = conn.execute(
            "SELECT id, subject_id, timestamp, event, payload FROM record_history WHERE subject_id = ? ORDER BY id DESC LIMIT ?",
            (subject_id, limit),
        ).fetchall()
        out = []
        for r in rows:
            d = dict(r)
            if d.get("payload"):
                try:
                    d["payload"] = json.loads(d["payload"])
                except (TypeError, json.JSONDecodeError):
                    pass
            out.append(d)
        return out
    finally:
        conn.close()


def migrate() -> Path:
    """Run database init. Use this to migrate manually: python -m database"""
    return init_database()


if __name__ == "__main__":
    p = migrate()
    print("Database migrated:", p)
