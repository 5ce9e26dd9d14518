"""SQLite database connection + schema initialization.

- SQLite file stored locally (persists between restarts)
- schema created on first run
- foreign keys enabled

Both the Streamlit UI and the command-line generator import this module.

"""

from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_DB_FILENAME = "timetable.db"


@dataclass(frozen=True)
class DBConfig:
    """Database configuration for the app."""

    db_path: Path


def default_db_path() -> Path:
    """Resolve DB path.

    Uses `TIME_TABLE_DB` env var if set, else stores under `ui/database/`.
    """

    override = os.getenv("TIME_TABLE_DB")
    if override:
        return Path(override).expanduser().resolve()

    # Keep DB next to this file for portability
    return (Path(__file__).resolve().parent / DEFAULT_DB_FILENAME).resolve()


def get_connection(config: Optional[DBConfig] = None) -> sqlite3.Connection:
    """Create a SQLite connection with sane defaults."""

    db_path = (config.db_path if config else default_db_path())
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row

    # Ensure FK constraints are enforced
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create all required tables if they do not exist."""

    conn.executescript(
        """
        -- Single settings row. Periods in lunch_break / short_breaks are 1-indexed.
        CREATE TABLE IF NOT EXISTS settings (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            periods_per_day INTEGER NOT NULL DEFAULT 8 CHECK (periods_per_day BETWEEN 1 AND 16),
            working_days TEXT NOT NULL DEFAULT '["Monday","Tuesday","Wednesday","Thursday","Friday"]',
            start_time TEXT NOT NULL DEFAULT '09:00',
            end_time TEXT NOT NULL DEFAULT '16:00',
            class_duration INTEGER NOT NULL DEFAULT 50,
            lunch_break TEXT NOT NULL DEFAULT '{"enabled": true, "period": 4, "duration": 30}',
            short_breaks TEXT NOT NULL DEFAULT '[]',
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS teachers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT UNIQUE
        );

        CREATE TABLE IF NOT EXISTS subjects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            code TEXT NOT NULL UNIQUE,
            hours_per_week INTEGER NOT NULL DEFAULT 4 CHECK (hours_per_week >= 1),
            semester INTEGER NOT NULL DEFAULT 1 CHECK (semester >= 1),
            is_lab INTEGER NOT NULL DEFAULT 0 CHECK (is_lab IN (0,1)),
            teacher_id INTEGER,
            FOREIGN KEY (teacher_id) REFERENCES teachers(id) ON DELETE SET NULL
        );

        -- One row per (subject, teacher, class section), created lazily by the generator
        CREATE TABLE IF NOT EXISTS subject_assignments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            subject_id INTEGER NOT NULL,
            teacher_id INTEGER NOT NULL,
            class_name TEXT NOT NULL,
            hours_per_week INTEGER NOT NULL,
            FOREIGN KEY (subject_id) REFERENCES subjects(id) ON DELETE CASCADE,
            FOREIGN KEY (teacher_id) REFERENCES teachers(id) ON DELETE CASCADE
        );

        CREATE UNIQUE INDEX IF NOT EXISTS uq_subject_teacher_class
        ON subject_assignments(subject_id, teacher_id, class_name);

        -- period is 0-indexed (displayed as period + 1)
        CREATE TABLE IF NOT EXISTS timetable_slots (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            assignment_id INTEGER NOT NULL,
            day TEXT NOT NULL,
            period INTEGER NOT NULL CHECK (period >= 0),
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (assignment_id) REFERENCES subject_assignments(id) ON DELETE CASCADE
        );

        CREATE UNIQUE INDEX IF NOT EXISTS uq_day_period_assignment
        ON timetable_slots(day, period, assignment_id);

        CREATE INDEX IF NOT EXISTS idx_slots_assignment ON timetable_slots(assignment_id);

        -- Generation run metadata (input hash + outcome summary)
        CREATE TABLE IF NOT EXISTS generation_runs (
            run_id TEXT PRIMARY KEY,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            input_hash TEXT NOT NULL,
            seed INTEGER NOT NULL,
            options_json TEXT NOT NULL DEFAULT '{}',
            total_slots INTEGER NOT NULL DEFAULT 0,
            failed_json TEXT NOT NULL DEFAULT '[]'
        );
        """
    )

    conn.execute("INSERT OR IGNORE INTO settings (id) VALUES (1)")

    # --- Lightweight migrations (SQLite)
    # If an older DB exists, it may be missing newly added columns.
    settings_cols = {r[1] for r in conn.execute("PRAGMA table_info(settings)").fetchall()}
    if "class_duration" not in settings_cols:
        conn.execute("ALTER TABLE settings ADD COLUMN class_duration INTEGER NOT NULL DEFAULT 50")
    if "short_breaks" not in settings_cols:
        conn.execute("ALTER TABLE settings ADD COLUMN short_breaks TEXT NOT NULL DEFAULT '[]'")

    teacher_cols = {r[1] for r in conn.execute("PRAGMA table_info(teachers)").fetchall()}
    if "email" not in teacher_cols:
        conn.execute("ALTER TABLE teachers ADD COLUMN email TEXT")
    conn.commit()


class db_session:
    """Context manager that opens a connection and ensures schema exists.

    Commits on a clean exit and rolls back on any exception.
    """

    def __init__(self, config: Optional[DBConfig] = None):
        self._config = config
        self._conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> sqlite3.Connection:
        self._conn = get_connection(self._config)
        init_db(self._conn)
        return self._conn

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._conn is not None
        if exc_type is None:
            self._conn.commit()
        else:
            self._conn.rollback()
        self._conn.close()
        self._conn = None
