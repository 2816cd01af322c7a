#!/usr/bin/env python3
"""
Main entrypoint: bootstrap the database and serve the HTTP API.
Run with: python run.py
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure app loggers (daily_calendar.api, day_service, rule_service) emit to the same stream as uvicorn
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,
)

# Project root
ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT))

from config import load as load_config
from database import init_database


def main() -> None:
    db_path = init_database()
    logging.getLogger("daily_calendar").info("Using database %s", db_path)

    import uvicorn
    config = load_config()
    uvicorn.run(
        "web_app:app",
        host="127.0.0.1",
        port=config.web_ui_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
