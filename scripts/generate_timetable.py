"""Generate (or clear) the weekly class timetable from the command line.

Usage:
    python scripts/generate_timetable.py --seed 7
    python scripts/generate_timetable.py --semester 3 --force-lab-slots
    python scripts/generate_timetable.py --dry-run
    python scripts/generate_timetable.py --clear

Exit code is 1 when the run is rolled back (configuration or storage error)
or, with `--strict`, when any subject could not be fully placed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

# Ensure project root is on PYTHONPATH when running as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modules.class_scheduler import SlotBooking
from modules.errors import GenerationError
from modules.generator import GenerationOptions, InMemoryTimetableStore, TimetableGenerator, clear_all
from modules.verification import find_broken_lab_sessions, find_overbooked_assignments, find_teacher_double_bookings
from ui.database import crud
from ui.database.db import DBConfig, db_session
from ui.database.store import SqliteTimetableStore, generate_and_record
from utils.log_config import setup_logging

logger = logging.getLogger("scripts.generate_timetable")


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the weekly class timetable.")
    parser.add_argument("--db", help="SQLite file (default: TIME_TABLE_DB or ui/database/timetable.db)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible timetable")
    parser.add_argument("--sections", default="A,B", help="Comma-separated section labels (default: A,B)")
    parser.add_argument(
        "--semester", type=int, action="append", help="Only regenerate this semester (repeatable)"
    )
    parser.add_argument("--force-lab-slots", action="store_true", help="Try fixed lab days before other strategies")
    parser.add_argument("--dry-run", action="store_true", help="Generate in memory and print; do not write the DB")
    parser.add_argument("--clear", action="store_true", help="Delete every timetable slot and exit")
    parser.add_argument("--strict", action="store_true", help="Exit 1 if any subject could not be placed")
    parser.add_argument("--env", default=None, help="Logging environment (development|production)")
    return parser.parse_args(argv)


def _options(args: argparse.Namespace) -> GenerationOptions:
    sections = tuple(s.strip() for s in str(args.sections).split(",") if s.strip())
    return GenerationOptions(
        sections=sections or ("A", "B"),
        seed=args.seed,
        force_lab_slots=bool(args.force_lab_slots),
        semesters=tuple(args.semester) if args.semester else None,
    )


def dry_run_store(conn) -> InMemoryTimetableStore:
    """In-memory copy of the database, stored timetable included."""

    source = SqliteTimetableStore(conn)
    assignments = {
        (int(a["subject_id"]), int(a["teacher_id"]), str(a["class_name"])): (int(a["id"]), int(a["hours_per_week"]))
        for a in crud.list_assignments(conn)
    }
    return InMemoryTimetableStore(
        settings=source.load_settings(),
        teachers=source.load_teachers(),
        subjects=source.load_subjects(),
        assignments=assignments,
        slots=[SlotBooking(aid, day, period) for aid, day, period in crud.list_slots(conn)],
    )


def _dry_run(conn, options: GenerationOptions) -> int:
    gen = TimetableGenerator(dry_run_store(conn), options)
    result = gen.run()

    for cname, tt in gen.timetables.items():
        df = pd.DataFrame(tt.rows(), columns=[str(i) for i in range(1, tt.periods_per_day + 1)])
        df.insert(0, "DAY", list(tt.working_days))
        print(f"\n=== {cname} (dry run) ===")
        print(df.to_string(index=False))

    print(f"\nseed={result.seed} slots={result.total_slots_created} failed={len(result.failed_subjects)}")
    return len(result.failed_subjects)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    setup_logging(environment=args.env)
    options = _options(args)
    config = DBConfig(db_path=Path(args.db).expanduser().resolve()) if args.db else None

    try:
        with db_session(config) as conn:
            if args.clear:
                removed = clear_all(SqliteTimetableStore(conn))
                print(f"Cleared {removed} timetable slots.")
                return 0

            if args.dry_run:
                failed = _dry_run(conn, options)
                return 1 if (args.strict and failed) else 0

            result, run_id, _input_hash = generate_and_record(conn, options)
            rows = crud.list_timetable_rows(conn)
    except GenerationError as exc:
        print(f"Timetable generation failed: {exc}", file=sys.stderr)
        return 1

    print(f"\n=== Run {run_id} (seed={result.seed}) ===")
    print(f"Sections: {', '.join(result.class_names) or '-'}")
    print(f"Slots created: {result.total_slots_created}")
    for o in result.failed_subjects:
        print(f"  FAILED {o.class_name} {o.subject_name}: {o.reason}")

    problems = {
        "teacher double bookings": find_teacher_double_bookings(rows),
        "broken lab sessions": find_broken_lab_sessions(rows),
        "overbooked assignments": find_overbooked_assignments(rows),
    }
    for name, found in problems.items():
        if found:
            logger.error("Verification: %s %s", len(found), name)
            print(f"  CHECK {name}: {found}")

    if any(problems.values()):
        return 1
    return 1 if (args.strict and result.failed_subjects) else 0


if __name__ == "__main__":
    sys.exit(main())
