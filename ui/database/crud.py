"""CRUD operations for the Streamlit UI and the generator store.

All DB access is centralized here so pages and the generator stay clean.

We use simple `sqlite3` + parameterized queries. Validation failures raise
`ValueError` with the same messages the forms show.

"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ui.utils.validators import (
    require_non_empty,
    validate_break_period,
    validate_positive_int,
    validate_unique,
)


# -----------------
# Helper utilities
# -----------------


def _rows(conn: sqlite3.Connection, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    cur = conn.execute(query, params)
    return [dict(r) for r in cur.fetchall()]


def _row(conn: sqlite3.Connection, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
    cur = conn.execute(query, params)
    r = cur.fetchone()
    return dict(r) if r is not None else None


def _check(result: Tuple[bool, str]) -> None:
    ok, msg = result
    if not ok:
        raise ValueError(msg)


def _placeholders(n: int) -> str:
    return ",".join("?" for _ in range(n))


# -----------------
# Scheduling settings
# -----------------


def get_settings(conn: sqlite3.Connection) -> Optional[Dict[str, Any]]:
    """Raw settings row (JSON columns left as stored), or None if missing."""

    return _row(conn, "SELECT * FROM settings WHERE id=1")


def update_settings(
    conn: sqlite3.Connection,
    *,
    periods_per_day: int,
    working_days: List[str],
    lunch_break: Optional[Dict[str, Any]] = None,
    short_breaks: Optional[List[Dict[str, Any]]] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    class_duration: Optional[int] = None,
) -> None:
    _check(validate_positive_int(periods_per_day, "Periods per day", 1, 16))
    days = [d.strip() for d in working_days if d and d.strip()]
    _check(require_non_empty(",".join(days), "Working days"))
    _check(validate_unique(days, "Working days"))

    breaks = ([lunch_break] if lunch_break else []) + list(short_breaks or [])
    for b in breaks:
        if b.get("enabled"):
            _check(validate_break_period(b.get("period"), int(periods_per_day)))

    current = get_settings(conn) or {}
    conn.execute(
        """
        UPDATE settings
        SET periods_per_day=?,
            working_days=?,
            lunch_break=?,
            short_breaks=?,
            start_time=?,
            end_time=?,
            class_duration=?,
            updated_at=datetime('now')
        WHERE id=1
        """,
        (
            int(periods_per_day),
            json.dumps(days),
            json.dumps(lunch_break or {"enabled": False, "period": 1, "duration": None}),
            json.dumps(list(short_breaks or [])),
            start_time or current.get("start_time") or "09:00",
            end_time or current.get("end_time") or "16:00",
            int(class_duration or current.get("class_duration") or 50),
        ),
    )


def reset_settings(conn: sqlite3.Connection) -> None:
    """Restore the default settings row."""

    conn.execute("DELETE FROM settings WHERE id=1")
    conn.execute("INSERT INTO settings (id) VALUES (1)")


# --------
# Teachers
# --------


def list_teachers(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    return _rows(conn, "SELECT * FROM teachers ORDER BY id")


def upsert_teacher(
    conn: sqlite3.Connection,
    *,
    name: str,
    email: Optional[str] = None,
    teacher_id: Optional[int] = None,
) -> int:
    _check(require_non_empty(name, "Teacher name"))
    if teacher_id is None:
        cur = conn.execute("INSERT INTO teachers (name, email) VALUES (?, ?)", (name.strip(), email))
        return int(cur.lastrowid)
    conn.execute(
        """
        INSERT INTO teachers (id, name, email)
        VALUES (?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET name=excluded.name, email=excluded.email
        """,
        (teacher_id, name.strip(), email),
    )
    return int(teacher_id)


def delete_teacher(conn: sqlite3.Connection, teacher_id: int) -> None:
    conn.execute("DELETE FROM teachers WHERE id=?", (teacher_id,))


# --------
# Subjects
# --------


def list_subjects(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    return _rows(
        conn,
        """
        SELECT s.*, t.name AS teacher_name
        FROM subjects s
        LEFT JOIN teachers t ON s.teacher_id = t.id
        ORDER BY s.semester, s.is_lab DESC, s.hours_per_week DESC, s.id
        """,
    )


def upsert_subject(
    conn: sqlite3.Connection,
    *,
    code: str,
    name: str,
    hours_per_week: int,
    semester: int,
    is_lab: bool = False,
    teacher_id: Optional[int] = None,
) -> int:
    _check(require_non_empty(code, "Subject code"))
    _check(require_non_empty(name, "Subject name"))
    _check(validate_positive_int(hours_per_week, "Hours per week", 1, 40))
    _check(validate_positive_int(semester, "Semester", 1, 12))
    conn.execute(
        """
        INSERT INTO subjects (code, name, hours_per_week, semester, is_lab, teacher_id)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(code) DO UPDATE SET
            name=excluded.name,
            hours_per_week=excluded.hours_per_week,
            semester=excluded.semester,
            is_lab=excluded.is_lab,
            teacher_id=excluded.teacher_id
        """,
        (code.strip(), name.strip(), int(hours_per_week), int(semester), 1 if is_lab else 0, teacher_id),
    )
    r = _row(conn, "SELECT id FROM subjects WHERE code=?", (code.strip(),))
    assert r is not None
    return int(r["id"])


def delete_subject(conn: sqlite3.Connection, subject_id: int) -> None:
    conn.execute("DELETE FROM subjects WHERE id=?", (subject_id,))


# -----------------
# Assignments + slots (generator persistence)
# -----------------


def find_or_create_assignment(
    conn: sqlite3.Connection,
    *,
    subject_id: int,
    teacher_id: int,
    class_name: str,
    hours_per_week: int,
) -> int:
    existing = _row(
        conn,
        "SELECT id FROM subject_assignments WHERE subject_id=? AND teacher_id=? AND class_name=?",
        (subject_id, teacher_id, class_name),
    )
    if existing is not None:
        return int(existing["id"])

    cur = conn.execute(
        "INSERT INTO subject_assignments (subject_id, teacher_id, class_name, hours_per_week) VALUES (?, ?, ?, ?)",
        (subject_id, teacher_id, class_name, hours_per_week),
    )
    return int(cur.lastrowid)


def insert_slots(conn: sqlite3.Connection, slots: Iterable[Tuple[int, str, int]]) -> int:
    """Insert (assignment_id, day, period) rows; duplicates are ignored.

    Returns the number of rows actually inserted.
    """

    inserted = 0
    for assignment_id, day, period in slots:
        cur = conn.execute(
            "INSERT OR IGNORE INTO timetable_slots (assignment_id, day, period) VALUES (?, ?, ?)",
            (assignment_id, day, period),
        )
        inserted += cur.rowcount
    return inserted


def list_assignments(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    return _rows(
        conn,
        "SELECT id, subject_id, teacher_id, class_name, hours_per_week FROM subject_assignments ORDER BY id",
    )


def list_slots(conn: sqlite3.Connection) -> List[Tuple[int, str, int]]:
    """Every stored (assignment_id, day, period), in insertion order."""

    rows = _rows(conn, "SELECT assignment_id, day, period FROM timetable_slots ORDER BY id")
    return [(int(r["assignment_id"]), str(r["day"]), int(r["period"])) for r in rows]


def clear_slots(conn: sqlite3.Connection, class_names: Optional[Sequence[str]] = None) -> int:
    """Delete slots for the given class sections (all slots when None)."""

    if class_names is None:
        cur = conn.execute("DELETE FROM timetable_slots")
        return int(cur.rowcount)

    names = list(class_names)
    if not names:
        return 0
    cur = conn.execute(
        f"""
        DELETE FROM timetable_slots
        WHERE assignment_id IN (
            SELECT id FROM subject_assignments WHERE class_name IN ({_placeholders(len(names))})
        )
        """,
        names,
    )
    return int(cur.rowcount)


def teacher_bookings(conn: sqlite3.Connection, exclude_classes: Sequence[str] = ()) -> List[Tuple[int, str, int]]:
    """(teacher_id, day, period) for every slot outside `exclude_classes`."""

    names = list(exclude_classes)
    query = """
        SELECT sa.teacher_id, ts.day, ts.period
        FROM timetable_slots ts
        JOIN subject_assignments sa ON ts.assignment_id = sa.id
    """
    if names:
        query += f" WHERE sa.class_name NOT IN ({_placeholders(len(names))})"
    query += " ORDER BY ts.id"
    return [(int(r["teacher_id"]), str(r["day"]), int(r["period"])) for r in _rows(conn, query, names)]


# -----------------
# Timetable views
# -----------------


def list_timetable_rows(
    conn: sqlite3.Connection,
    *,
    semester: Optional[int] = None,
    class_name: Optional[str] = None,
    teacher_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Joined slot rows (slot + assignment + subject + teacher)."""

    where: List[str] = []
    params: List[Any] = []
    if semester is not None:
        where.append("s.semester = ?")
        params.append(int(semester))
    if class_name is not None:
        where.append("sa.class_name = ?")
        params.append(class_name)
    if teacher_id is not None:
        where.append("sa.teacher_id = ?")
        params.append(int(teacher_id))

    query = """
        SELECT ts.id AS slot_id, ts.assignment_id, ts.day, ts.period,
               sa.class_name, sa.teacher_id, sa.subject_id,
               s.name AS subject_name, s.code AS subject_code, s.is_lab,
               s.semester, s.hours_per_week, t.name AS teacher_name
        FROM timetable_slots ts
        JOIN subject_assignments sa ON ts.assignment_id = sa.id
        JOIN subjects s ON sa.subject_id = s.id
        JOIN teachers t ON sa.teacher_id = t.id
    """
    if where:
        query += " WHERE " + " AND ".join(where)
    query += " ORDER BY sa.class_name, ts.day, ts.period"

    rows = _rows(conn, query, params)
    for r in rows:
        r["is_lab"] = bool(r["is_lab"])
    return rows


def list_class_names(conn: sqlite3.Connection) -> List[str]:
    return [
        str(r["class_name"])
        for r in _rows(
            conn,
            """
            SELECT DISTINCT sa.class_name
            FROM subject_assignments sa
            JOIN timetable_slots ts ON ts.assignment_id = sa.id
            ORDER BY sa.class_name
            """,
        )
    ]


def timetable_stats(conn: sqlite3.Connection, working_days: Sequence[str] = ()) -> Dict[str, Any]:
    """Dashboard numbers: total slots, slots per day (working-day order), lab vs regular."""

    total = _row(conn, "SELECT COUNT(*) AS n FROM timetable_slots")
    by_day_rows = _rows(conn, "SELECT day, COUNT(*) AS n FROM timetable_slots GROUP BY day")
    by_type_rows = _rows(
        conn,
        """
        SELECT s.is_lab, COUNT(*) AS n
        FROM timetable_slots ts
        JOIN subject_assignments sa ON ts.assignment_id = sa.id
        JOIN subjects s ON sa.subject_id = s.id
        GROUP BY s.is_lab
        """,
    )

    by_day: Dict[str, int] = {d: 0 for d in working_days}
    for r in by_day_rows:
        by_day[str(r["day"])] = int(r["n"])

    by_type = {"regular": 0, "lab": 0}
    for r in by_type_rows:
        by_type["lab" if int(r["is_lab"]) == 1 else "regular"] = int(r["n"])

    return {"total": int(total["n"]) if total else 0, "by_day": by_day, "by_type": by_type}


# -----------------
# Generation runs
# -----------------


def record_generation_run(
    conn: sqlite3.Connection,
    *,
    run_id: str,
    input_hash: str,
    seed: int,
    options: Mapping[str, Any],
    total_slots: int,
    failed: List[Dict[str, Any]],
) -> None:
    conn.execute(
        """
        INSERT INTO generation_runs (run_id, input_hash, seed, options_json, total_slots, failed_json)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (run_id, input_hash, int(seed), json.dumps(dict(options), default=list), int(total_slots), json.dumps(failed)),
    )


def _decode_run(r: Dict[str, Any]) -> Dict[str, Any]:
    r["options"] = json.loads(r.get("options_json") or "{}")
    r["failed"] = json.loads(r.get("failed_json") or "[]")
    return r


def latest_generation_run(conn: sqlite3.Connection) -> Optional[Dict[str, Any]]:
    r = _row(conn, "SELECT * FROM generation_runs ORDER BY created_at DESC, rowid DESC LIMIT 1")
    return _decode_run(r) if r is not None else None


def list_generation_runs(conn: sqlite3.Connection, limit: int = 20) -> List[Dict[str, Any]]:
    rows = _rows(conn, "SELECT * FROM generation_runs ORDER BY created_at DESC, rowid DESC LIMIT ?", (int(limit),))
    return [_decode_run(r) for r in rows]
