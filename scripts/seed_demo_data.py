"""Seed a timetable database with demo teachers and subjects.

Two semesters, a handful of teachers, one lab per semester. Enough to see
every lab strategy and the regular spreading in action.

Usage:
    python scripts/seed_demo_data.py [--db path/to/timetable.db]

"""

from __future__ import annotations

import argparse
import sqlite3
import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH when running as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ui.database import crud
from ui.database.db import DBConfig, db_session


DEMO_TEACHERS = [
    ("Anita Rao", "anita.rao@example.edu"),
    ("Bala Murugan", "bala.murugan@example.edu"),
    ("Chitra Devi", "chitra.devi@example.edu"),
    ("Dinesh Kumar", "dinesh.kumar@example.edu"),
    ("Esther Paul", "esther.paul@example.edu"),
]

# (code, name, hours_per_week, semester, is_lab, teacher index)
DEMO_SUBJECTS = [
    ("MA301", "Discrete Mathematics", 4, 3, False, 0),
    ("CS301", "Data Structures", 4, 3, False, 1),
    ("CS302", "Digital Logic", 3, 3, False, 2),
    ("HS301", "Professional Ethics", 2, 3, False, 4),
    ("CS3L1", "Data Structures Lab", 4, 3, True, 1),
    ("CS501", "Operating Systems", 4, 5, False, 3),
    ("CS502", "Computer Networks", 4, 5, False, 2),
    ("CS503", "Theory of Computation", 3, 5, False, 0),
    ("CS5L1", "Networks Lab", 3, 5, True, 2),
]


def seed_demo_data(conn: sqlite3.Connection) -> None:
    teacher_ids = [crud.upsert_teacher(conn, name=name, email=email) for name, email in DEMO_TEACHERS]
    for code, name, hours, semester, is_lab, t_idx in DEMO_SUBJECTS:
        crud.upsert_subject(
            conn,
            code=code,
            name=name,
            hours_per_week=hours,
            semester=semester,
            is_lab=is_lab,
            teacher_id=teacher_ids[t_idx],
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo teachers and subjects.")
    parser.add_argument("--db", help="SQLite file (default: TIME_TABLE_DB or ui/database/timetable.db)")
    args = parser.parse_args()

    config = DBConfig(db_path=Path(args.db).expanduser().resolve()) if args.db else None
    with db_session(config) as conn:
        if crud.list_subjects(conn):
            print("Database already has subjects; nothing to seed.")
            return
        seed_demo_data(conn)
        print(f"Seeded {len(DEMO_TEACHERS)} teachers and {len(DEMO_SUBJECTS)} subjects.")


if __name__ == "__main__":
    main()
