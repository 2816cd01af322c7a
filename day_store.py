"""
Day Store: one stored record per calendar day, keyed by YYYY-MM-DD.
A record that no longer parses is replaced by an empty day rather than failing the caller.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date

from pydantic import ValidationError

from database import get_connection, read_record, write_record
from errors import MalformedStoredRecord
from models import DayRecord

logger = logging.getLogger("day_store")


def parse_day_record(day: date, raw: str) -> DayRecord:
    """Parse a stored payload for day. Raises MalformedStoredRecord."""
    key = day.isoformat()
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise MalformedStoredRecord(key, str(e)) from e
    if not isinstance(data, dict):
        raise MalformedStoredRecord(key, "expected a JSON object")
    # The key is authoritative for which day this is
    data["date"] = key
    try:
        return DayRecord.model_validate(data)
    except ValidationError as e:
        raise MalformedStoredRecord(key, str(e)) from e


def read_day_record(conn: sqlite3.Connection, day: date) -> DayRecord | None:
    raw = read_record(conn, day.isoformat())
    if raw is None:
        return None
    try:
        return parse_day_record(day, raw)
    except MalformedStoredRecord as e:
        logger.warning("%s; using an empty day", e)
        return DayRecord.empty(day)


def write_day_record(conn: sqlite3.Connection, record: DayRecord) -> None:
    """Stage the full record. Caller commits."""
    write_record(conn, record.day.isoformat(), record.to_json_dict())


def get_day_record(day: date) -> DayRecord | None:
    """Return the stored record for day, or None if nothing was ever saved."""
    conn = get_connection()
    try:
        return read_day_record(conn, day)
    finally:
        conn.close()


def load_day_record(day: date) -> DayRecord:
    """Stored record for day, or an empty one."""
    return get_day_record(day) or DayRecord.empty(day)


def put_day_record(record: DayRecord) -> None:
    conn = get_connection()
    try:
        write_day_record(conn, record)
        conn.commit()
    finally:
        conn.close()
