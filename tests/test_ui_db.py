import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import json
import sqlite3

import pytest

from modules.errors import StorageError
from modules.generator import GenerationOptions, clear_all
from modules.schedule_settings import ScheduleSettings
from modules.verification import find_broken_lab_sessions, find_overbooked_assignments, find_teacher_double_bookings
from scripts.seed_demo_data import seed_demo_data
from ui.database import crud
from ui.database.db import db_session
from ui.database.store import SqliteTimetableStore, generate_and_record, generation_input_hash


@pytest.fixture
def isolated_db(tmp_path, monkeypatch):
    db_path = tmp_path / "timetable.db"
    monkeypatch.setenv("TIME_TABLE_DB", str(db_path))
    return db_path


def test_schema_has_default_settings(isolated_db):
    with db_session() as conn:
        row = crud.get_settings(conn)

    settings = ScheduleSettings.from_row(row)
    assert settings.periods_per_day == 8
    assert settings.working_days == ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
    assert [b.period for b in settings.break_slots()] == [3]


def test_update_settings_validates_and_persists(isolated_db):
    with db_session() as conn:
        crud.update_settings(
            conn,
            periods_per_day=6,
            working_days=["Monday", "Wednesday", "Friday"],
            lunch_break={"enabled": True, "period": 3, "duration": 40},
            short_breaks=[{"enabled": True, "period": 1, "duration": 10}],
        )
        row = crud.get_settings(conn)
        with pytest.raises(ValueError):
            crud.update_settings(conn, periods_per_day=6, working_days=["Monday"], lunch_break={"enabled": True, "period": 7})
        with pytest.raises(ValueError):
            crud.update_settings(conn, periods_per_day=6, working_days=["Monday", "Monday"])

    assert json.loads(row["working_days"]) == ["Monday", "Wednesday", "Friday"]
    s = ScheduleSettings.from_row(row)
    assert [b.period for b in s.break_slots()] == [2, 0]

    with db_session() as conn:
        crud.reset_settings(conn)
        assert ScheduleSettings.from_row(crud.get_settings(conn)).periods_per_day == 8


def test_teacher_and_subject_crud(isolated_db):
    with db_session() as conn:
        tid = crud.upsert_teacher(conn, name="Alice", email="alice@example.edu")
        sid = crud.upsert_subject(conn, code="SUB1", name="Test", hours_per_week=3, semester=1, teacher_id=tid)
        again = crud.upsert_subject(conn, code="SUB1", name="Renamed", hours_per_week=2, semester=1, teacher_id=tid)
        subjects = crud.list_subjects(conn)

        assert sid == again
        assert [(s["name"], s["hours_per_week"], s["teacher_name"]) for s in subjects] == [("Renamed", 2, "Alice")]

        with pytest.raises(ValueError):
            crud.upsert_subject(conn, code="", name="x", hours_per_week=1, semester=1)
        with pytest.raises(ValueError):
            crud.upsert_teacher(conn, name="  ")

        crud.delete_teacher(conn, tid)
        assert crud.list_subjects(conn)[0]["teacher_id"] is None
        crud.delete_subject(conn, sid)
        assert crud.list_subjects(conn) == []


def test_assignment_and_slot_helpers(isolated_db):
    with db_session() as conn:
        tid = crud.upsert_teacher(conn, name="Bob")
        sid = crud.upsert_subject(conn, code="S", name="S", hours_per_week=2, semester=2, teacher_id=tid)
        aid = crud.find_or_create_assignment(conn, subject_id=sid, teacher_id=tid, class_name="2A", hours_per_week=2)
        assert crud.find_or_create_assignment(conn, subject_id=sid, teacher_id=tid, class_name="2A", hours_per_week=2) == aid

        assert crud.insert_slots(conn, [(aid, "Monday", 0), (aid, "Monday", 0), (aid, "Tuesday", 5)]) == 2
        assert crud.teacher_bookings(conn) == [(tid, "Monday", 0), (tid, "Tuesday", 5)]
        assert crud.teacher_bookings(conn, ["2A"]) == []

        rows = crud.list_timetable_rows(conn, class_name="2A")
        assert [(r["day"], r["period"], r["subject_code"]) for r in rows] == [("Monday", 0, "S"), ("Tuesday", 5, "S")]

        stats = crud.timetable_stats(conn, ["Monday", "Tuesday", "Wednesday"])
        assert stats == {"total": 2, "by_day": {"Monday": 1, "Tuesday": 1, "Wednesday": 0}, "by_type": {"regular": 2, "lab": 0}}

        assert crud.clear_slots(conn, ["9Z"]) == 0
        assert crud.clear_slots(conn, ["2A"]) == 2


def test_generate_and_record_on_demo_data(isolated_db):
    with db_session() as conn:
        seed_demo_data(conn)
        result, run_id, input_hash = generate_and_record(conn, GenerationOptions(seed=7))
        rows = crud.list_timetable_rows(conn)
        last = crud.latest_generation_run(conn)
        stats = crud.timetable_stats(conn, ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"])

    assert result.succeeded
    assert result.failed_subjects == []
    assert result.class_names == ("3A", "3B", "5A", "5B")
    assert len(rows) == result.total_slots_created == stats["total"]
    assert find_teacher_double_bookings(rows) == []
    assert find_broken_lab_sessions(rows) == []
    assert find_overbooked_assignments(rows) == []
    assert {r["class_name"] for r in rows} == {"3A", "3B", "5A", "5B"}

    assert last["run_id"] == run_id
    assert last["input_hash"] == input_hash
    assert last["seed"] == 7
    assert last["failed"] == []


def test_regeneration_with_same_seed_is_idempotent(isolated_db):
    with db_session() as conn:
        seed_demo_data(conn)
        generate_and_record(conn, GenerationOptions(seed=21))
        first = [(r["class_name"], r["subject_code"], r["day"], r["period"]) for r in crud.list_timetable_rows(conn)]
        h1 = generation_input_hash(conn, GenerationOptions(seed=21))
        generate_and_record(conn, GenerationOptions(seed=21))
        second = [(r["class_name"], r["subject_code"], r["day"], r["period"]) for r in crud.list_timetable_rows(conn)]
        h2 = generation_input_hash(conn, GenerationOptions(seed=21))
        runs = crud.list_generation_runs(conn)

    assert first == second
    assert h1 == h2
    assert len(runs) == 2


def test_clear_all_on_sqlite(isolated_db):
    with db_session() as conn:
        seed_demo_data(conn)
        generate_and_record(conn, GenerationOptions(seed=4))
        removed = clear_all(SqliteTimetableStore(conn))
        assert removed > 0
        assert crud.list_timetable_rows(conn) == []


def test_sqlite_errors_surface_as_storage_error(isolated_db):
    conn = sqlite3.connect(str(isolated_db))
    conn.row_factory = sqlite3.Row
    store = SqliteTimetableStore(conn)
    conn.close()

    with pytest.raises(StorageError):
        store.load_teachers()
