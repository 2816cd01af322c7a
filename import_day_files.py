#!/usr/bin/env python3
"""
Import data saved by the desktop app (one JSON file per day plus recurring.json).

Reads every YYYY-MM-DD.json in the data directory and stores it as that day's record;
recurring.json (an array of repeat rules) is imported rule by rule. Old records with a
single `improvement` field are migrated by the server on read.

Uses the daily-calendar HTTP API. Set DAILY_CALENDAR_API_URL or pass it:
  python import_day_files.py <data_dir> [base_url] [timezone]

The timezone (IANA name) is given to rules that were saved without one; default "local".
"""

from __future__ import annotations

import json
import os
import re
import sys
from pathlib import Path

import httpx

DEFAULT_API_URL = "http://127.0.0.1:8082"
DAY_FILE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\.json$")
RULES_FILE = "recurring.json"


def get_args() -> tuple[Path, str, str]:
    if len(sys.argv) < 2:
        print("Usage: python import_day_files.py <data_dir> [base_url] [timezone]", file=sys.stderr)
        sys.exit(1)
    data_dir = Path(sys.argv[1]).expanduser()
    url = os.environ.get("DAILY_CALENDAR_API_URL", DEFAULT_API_URL)
    if len(sys.argv) >= 3 and sys.argv[2].strip():
        url = sys.argv[2]
    tz = sys.argv[3] if len(sys.argv) >= 4 and sys.argv[3].strip() else "local"
    if not data_dir.is_dir():
        print(f"Not a directory: {data_dir}", file=sys.stderr)
        sys.exit(1)
    return data_dir, url.strip().rstrip("/"), tz


def list_day_files(data_dir: Path) -> list[tuple[str, Path]]:
    """(day, path) for every YYYY-MM-DD.json file, oldest first."""
    out = []
    for f in data_dir.iterdir():
        m = DAY_FILE_RE.match(f.name)
        if m and f.is_file():
            out.append((m.group(1), f))
    return sorted(out)


def read_json(path: Path):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path.name}: {e}") from e


def import_day(client: httpx.Client, base_url: str, day: str, path: Path) -> None:
    data = read_json(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} does not hold a day object")
    # Legacy files may carry materialized occurrences; the server drops them anyway
    r = client.put(f"{base_url}/api/days/{day}", json=data)
    r.raise_for_status()


def import_rules(client: httpx.Client, base_url: str, path: Path, tz: str) -> tuple[int, int]:
    """Returns (imported, total)."""
    data = read_json(path)
    if not isinstance(data, list):
        raise ValueError(f"{path.name} does not hold a list of rules")
    ok = 0
    for rule in data:
        rule_id = rule.get("id", "?") if isinstance(rule, dict) else "?"
        r = client.post(f"{base_url}/api/rules", params={"tz": tz}, json=rule)
        if r.status_code >= 400:
            print(f"  Rule {rule_id} rejected ({r.status_code}): {r.text}")
            continue
        ok += 1
    return ok, len(data)


def main():
    data_dir, base_url, tz = get_args()
    files = list_day_files(data_dir)
    print(f"Importing {len(files)} day file(s) from {data_dir} into {base_url} ...")
    ok = 0
    with httpx.Client(timeout=30.0) as client:
        for day, path in files:
            try:
                import_day(client, base_url, day, path)
                ok += 1
            except (httpx.HTTPError, ValueError, OSError) as e:
                print(f"  Error {path.name}: {e}")
        print(f"Days: {ok}/{len(files)} imported.")
        rules_path = data_dir / RULES_FILE
        if rules_path.is_file():
            try:
                imported, total = import_rules(client, base_url, rules_path, tz)
                print(f"Rules: {imported}/{total} imported.")
            except (httpx.HTTPError, ValueError, OSError) as e:
                print(f"  Error {RULES_FILE}: {e}")


if __name__ == "__main__":
    main()
