from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional


ROOT = Path(__file__).resolve().parents[1]


def current_environment() -> str:
    return (os.getenv("TIMETABLE_ENV") or "development").lower().strip()


def setup_logging(*, environment: Optional[str] = None, logs_dir: Optional[Path] = None) -> None:
    """Configure application logging.

    - Dev: console logs, DEBUG level.
    - Prod: console + rotating file logs (`logs/timetable.log`), INFO level.

    Environment comes from `TIMETABLE_ENV` when not passed explicitly.
    Safe to call multiple times (won't double-add handlers).
    """

    root = logging.getLogger()
    if root.handlers:
        return

    env = (environment or current_environment()).lower().strip()
    level = logging.INFO if env == "production" else logging.DEBUG

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    handlers: list[logging.Handler] = []

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    handlers.append(console)

    if env == "production":
        target = Path(logs_dir) if logs_dir is not None else ROOT / "logs"
        target.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            target / "timetable.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers)

    # Streamlit's file watcher and matplotlib's font manager are chatty at DEBUG.
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
