"""SQLite-backed `TimetableStore` used by the UI and the command-line generator."""

from __future__ import annotations

import sqlite3
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from modules.class_scheduler import SlotBooking, Subject, Teacher
from modules.errors import StorageError
from modules.generator import GenerationOptions, GenerationResult, generate_timetable

from ui.database import crud
from ui.utils.id_generator import new_run_id
from ui.utils.schedule_cache import compute_generation_input_hash


class SqliteTimetableStore:
    """Wraps one open connection; the generator owns commit/rollback.

    Every `sqlite3.Error` surfaces as `StorageError` so the generator rolls the
    run back the same way regardless of which statement failed.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _call(self, what: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except sqlite3.Error as exc:
            raise StorageError(f"{what} failed: {exc}") from exc

    def load_settings(self) -> Optional[Mapping[str, Any]]:
        return self._call("Loading settings", crud.get_settings, self.conn)

    def load_teachers(self) -> List[Teacher]:
        rows = self._call("Loading teachers", crud.list_teachers, self.conn)
        return [Teacher(teacher_id=int(r["id"]), name=str(r["name"]), email=r.get("email")) for r in rows]

    def load_subjects(self) -> List[Subject]:
        rows = self._call("Loading subjects", crud.list_subjects, self.conn)
        return [
            Subject(
                subject_id=int(r["id"]),
                name=str(r["name"]),
                code=str(r["code"]),
                hours_per_week=int(r["hours_per_week"]),
                semester=int(r["semester"]),
                is_lab=bool(r["is_lab"]),
                teacher_id=int(r["teacher_id"]) if r.get("teacher_id") is not None else None,
            )
            for r in rows
        ]

    def load_teacher_bookings(self, exclude_classes: Sequence[str]) -> List[Tuple[int, str, int]]:
        return self._call("Loading teacher bookings", crud.teacher_bookings, self.conn, exclude_classes)

    def clear_slots(self, class_names: Optional[Sequence[str]] = None) -> int:
        return self._call("Clearing timetable slots", crud.clear_slots, self.conn, class_names)

    def find_or_create_assignment(self, subject_id: int, teacher_id: int, class_name: str, hours_per_week: int) -> int:
        return self._call(
            "Creating subject assignment",
            crud.find_or_create_assignment,
            self.conn,
            subject_id=subject_id,
            teacher_id=teacher_id,
            class_name=class_name,
            hours_per_week=hours_per_week,
        )

    def insert_slots(self, slots: Sequence[SlotBooking]) -> int:
        return self._call(
            "Inserting timetable slots",
            crud.insert_slots,
            self.conn,
            [(s.assignment_id, s.day, s.period) for s in slots],
        )

    def commit(self) -> None:
        self._call("Commit", self.conn.commit)

    def rollback(self) -> None:
        self._call("Rollback", self.conn.rollback)


def generation_input_hash(conn: sqlite3.Connection, options: GenerationOptions) -> str:
    return compute_generation_input_hash(
        settings_row=crud.get_settings(conn),
        teachers=crud.list_teachers(conn),
        subjects=crud.list_subjects(conn),
        run_settings={
            "sections": list(options.sections),
            "seed": options.seed,
            "force_lab_slots": bool(options.force_lab_slots),
            "semesters": list(options.semesters) if options.semesters is not None else None,
        },
    )


def generate_and_record(conn: sqlite3.Connection, options: GenerationOptions) -> Tuple[GenerationResult, str, str]:
    """Run the generator on `conn` and store a generation_runs record.

    Returns (result, run_id, input_hash). Generation errors propagate after the
    generator has rolled the run back; no run record is written for them.
    """

    input_hash = generation_input_hash(conn, options)
    result = generate_timetable(SqliteTimetableStore(conn), options)

    run_id = new_run_id()
    crud.record_generation_run(
        conn,
        run_id=run_id,
        input_hash=input_hash,
        seed=result.seed,
        options={
            "sections": list(options.sections),
            "force_lab_slots": bool(options.force_lab_slots),
            "semesters": list(options.semesters) if options.semesters is not None else None,
        },
        total_slots=result.total_slots_created,
        failed=[
            {"subject_id": o.subject_id, "subject_name": o.subject_name, "class_name": o.class_name, "reason": o.reason}
            for o in result.failed_subjects
        ],
    )
    conn.commit()
    return result, run_id, input_hash
