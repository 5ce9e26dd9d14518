import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modules.generator import GenerationOptions, TimetableGenerator
from scripts.generate_timetable import dry_run_store, main
from scripts.seed_demo_data import seed_demo_data
from ui.database import crud
from ui.database.db import DBConfig, db_session


def _seeded_db(tmp_path, monkeypatch):
    db_path = tmp_path / "timetable.db"
    monkeypatch.setenv("TIME_TABLE_DB", str(db_path))
    with db_session(DBConfig(db_path=db_path)) as conn:
        seed_demo_data(conn)
    return db_path


def test_cli_generates_and_records_a_run(tmp_path, monkeypatch, capsys):
    db_path = _seeded_db(tmp_path, monkeypatch)

    assert main(["--db", str(db_path), "--seed", "7", "--strict"]) == 0

    out = capsys.readouterr().out
    assert "seed=7" in out
    with db_session(DBConfig(db_path=db_path)) as conn:
        assert crud.latest_generation_run(conn)["seed"] == 7
        assert crud.list_class_names(conn) == ["3A", "3B", "5A", "5B"]


def test_cli_dry_run_leaves_the_database_alone(tmp_path, monkeypatch, capsys):
    db_path = _seeded_db(tmp_path, monkeypatch)

    assert main(["--db", str(db_path), "--seed", "3", "--dry-run", "--sections", "A"]) == 0

    out = capsys.readouterr().out
    assert "=== 3A (dry run) ===" in out
    assert "3B" not in out
    with db_session(DBConfig(db_path=db_path)) as conn:
        assert crud.list_timetable_rows(conn) == []
        assert crud.latest_generation_run(conn) is None


def test_cli_clear(tmp_path, monkeypatch, capsys):
    db_path = _seeded_db(tmp_path, monkeypatch)
    main(["--db", str(db_path), "--seed", "1"])

    assert main(["--db", str(db_path), "--clear"]) == 0
    assert "Cleared" in capsys.readouterr().out
    with db_session(DBConfig(db_path=db_path)) as conn:
        assert crud.list_timetable_rows(conn) == []


def test_cli_reports_configuration_errors(tmp_path, monkeypatch, capsys):
    db_path = _seeded_db(tmp_path, monkeypatch)
    with db_session(DBConfig(db_path=db_path)) as conn:
        conn.execute("DELETE FROM settings")
        # init_db re-inserts the default row; the trigger removes it again
        conn.execute("CREATE TRIGGER no_settings AFTER INSERT ON settings BEGIN DELETE FROM settings; END")

    assert main(["--db", str(db_path), "--seed", "1"]) == 1
    assert "Settings not found" in capsys.readouterr().err


def test_scoped_dry_run_matches_the_real_scoped_run(tmp_path, monkeypatch):
    db_path = _seeded_db(tmp_path, monkeypatch)
    assert main(["--db", str(db_path), "--seed", "1"]) == 0

    options = GenerationOptions(seed=5, semesters=(3,))
    with db_session(DBConfig(db_path=db_path)) as conn:
        store = dry_run_store(conn)
        assert len(store.slots) == len(crud.list_timetable_rows(conn))
    TimetableGenerator(store, options).run()
    owners = {aid: (sid, cname) for (sid, _tid, cname), (aid, _h) in store.assignments.items()}
    preview = sorted(
        (owners[s.assignment_id][0], owners[s.assignment_id][1], s.day, s.period)
        for s in store.slots
        if owners[s.assignment_id][1].startswith("3")
    )

    assert main(["--db", str(db_path), "--seed", "5", "--semester", "3"]) == 0
    with db_session(DBConfig(db_path=db_path)) as conn:
        stored = sorted(
            (r["subject_id"], r["class_name"], r["day"], r["period"])
            for r in crud.list_timetable_rows(conn, semester=3)
        )

    assert preview
    assert preview == stored
