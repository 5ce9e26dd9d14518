import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from modules.class_scheduler import Subject, Teacher
from modules.errors import ConfigurationError, StorageError
from modules.generator import (
    GenerationOptions,
    InMemoryTimetableStore,
    RunState,
    TimetableGenerator,
    clear_all,
    generate_timetable,
)
from modules.verification import (
    find_broken_lab_sessions,
    find_overbooked_assignments,
    find_teacher_double_bookings,
)


SETTINGS = {
    "periods_per_day": 8,
    "working_days": '["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]',
    "lunch_break": '{"enabled": true, "period": 4, "duration": 30}',
    "short_breaks": "[]",
}

TEACHERS = [Teacher(1, "Anita"), Teacher(2, "Bala"), Teacher(3, "Chitra")]

SUBJECTS = [
    Subject(1, "Discrete Mathematics", "MA301", 4, 3, False, 1),
    Subject(2, "Data Structures", "CS301", 4, 3, False, 2),
    Subject(3, "Data Structures Lab", "CS3L1", 4, 3, True, 2),
    Subject(4, "Operating Systems", "CS501", 4, 5, False, 3),
    Subject(5, "Networks Lab", "CS5L1", 3, 5, True, 3),
    Subject(6, "Ethics", "HS301", 2, 3, False, None),
]


def _store(**kw):
    return InMemoryTimetableStore(settings=kw.get("settings", SETTINGS), teachers=TEACHERS, subjects=kw.get("subjects", SUBJECTS))


def _rows(store):
    """Joined rows in the shape `crud.list_timetable_rows` returns."""

    by_id = {s.subject_id: s for s in store.subjects}
    meta = {aid: (sid, tid, cname) for (sid, tid, cname), (aid, _h) in store.assignments.items()}
    rows = []
    for slot in store.slots:
        sid, tid, cname = meta[slot.assignment_id]
        subj = by_id[sid]
        rows.append(
            {
                "assignment_id": slot.assignment_id,
                "day": slot.day,
                "period": slot.period,
                "class_name": cname,
                "subject_id": sid,
                "subject_name": subj.name,
                "is_lab": subj.is_lab,
                "hours_per_week": subj.hours_per_week,
                "teacher_id": tid,
                "teacher_name": "",
            }
        )
    return rows


def _slot_keys(store):
    meta = {aid: key for key, (aid, _h) in store.assignments.items()}
    return sorted((meta[s.assignment_id], s.day, s.period) for s in store.slots)


def test_generation_commits_and_reports_each_section():
    store = _store()
    result = generate_timetable(store, GenerationOptions(seed=7))

    assert result.state == RunState.COMMITTED
    assert result.succeeded
    assert result.seed == 7
    assert result.class_names == ("3A", "3B", "5A", "5B")
    assert store.commits == 1
    assert result.total_slots_created == len(store.slots)

    # MA301 4 + CS301 4 + CS3L1 4 per semester-3 section, CS501 4 + CS5L1 4 per semester-5 section
    assert len(store.slots) == 2 * 12 + 2 * 8


def test_generated_timetable_respects_hard_constraints():
    store = _store()
    generate_timetable(store, GenerationOptions(seed=11))
    rows = _rows(store)

    assert find_teacher_double_bookings(rows) == []
    assert find_broken_lab_sessions(rows) == []
    assert find_overbooked_assignments(rows) == []
    assert all(r["period"] != 3 for r in rows)  # lunch at period 4
    assert len({(r["class_name"], r["day"], r["period"]) for r in rows}) == len(rows)


def test_subject_without_teacher_fails_in_every_section_but_run_commits():
    store = _store()
    result = generate_timetable(store, GenerationOptions(seed=1))

    assert result.per_subject_results[6] is False
    assert all(ok for sid, ok in result.per_subject_results.items() if sid != 6)
    failed = {(o.class_name, o.subject_id) for o in result.failed_subjects}
    assert failed == {("3A", 6), ("3B", 6)}
    assert result.state == RunState.COMMITTED


def test_same_seed_gives_the_same_timetable():
    a, b = _store(), _store()
    generate_timetable(a, GenerationOptions(seed=42))
    generate_timetable(b, GenerationOptions(seed=42))
    assert _slot_keys(a) == _slot_keys(b)


def test_regenerating_replaces_instead_of_appending():
    store = _store()
    first = generate_timetable(store, GenerationOptions(seed=5))
    before = _slot_keys(store)
    second = generate_timetable(store, GenerationOptions(seed=5))

    assert _slot_keys(store) == before
    assert first.total_slots_created == second.total_slots_created == len(store.slots)
    assert len(store.assignments) == len({k for k, _d, _p in before})


def test_semester_scope_keeps_other_classes_and_their_teachers_busy():
    # Bala teaches in both semesters so the scoped run must respect semester 3's bookings
    subjects = SUBJECTS + [Subject(7, "Compilers", "CS502", 5, 5, False, 2)]
    store = _store(subjects=subjects)
    generate_timetable(store, GenerationOptions(seed=3))
    sem3 = [k for k in _slot_keys(store) if k[0][2].startswith("3")]

    result = generate_timetable(store, GenerationOptions(seed=99, semesters=(5,)))

    assert result.class_names == ("5A", "5B")
    assert [k for k in _slot_keys(store) if k[0][2].startswith("3")] == sem3
    assert find_teacher_double_bookings(_rows(store)) == []


def test_missing_settings_rolls_back():
    store = _store(settings=None)
    gen = TimetableGenerator(store, GenerationOptions(seed=1))

    with pytest.raises(ConfigurationError):
        gen.run()

    assert gen.state == RunState.ROLLED_BACK
    assert store.rollbacks == 1
    assert store.commits == 0


class _FailingStore(InMemoryTimetableStore):
    def __init__(self, *, fail_after, **kw):
        super().__init__(**kw)
        self.fail_after = fail_after
        self.calls = 0

    def insert_slots(self, slots):
        self.calls += 1
        if self.calls > self.fail_after:
            raise StorageError("disk full")
        return super().insert_slots(slots)


def test_storage_error_restores_the_previous_timetable():
    store = _FailingStore(fail_after=10_000, settings=SETTINGS, teachers=TEACHERS, subjects=SUBJECTS)
    generate_timetable(store, GenerationOptions(seed=8))
    committed = _slot_keys(store)

    store.fail_after = store.calls + 3
    gen = TimetableGenerator(store, GenerationOptions(seed=9))
    with pytest.raises(StorageError):
        gen.run()

    assert gen.state == RunState.ROLLED_BACK
    assert store.rollbacks == 1
    assert _slot_keys(store) == committed


def test_clear_all_removes_every_slot():
    store = _store()
    generate_timetable(store, GenerationOptions(seed=2))
    removed = clear_all(store)

    assert removed > 0
    assert store.slots == []
    assert store.commits == 2


def test_random_seed_is_reported_when_not_given():
    result = generate_timetable(_store(), GenerationOptions())
    assert isinstance(result.seed, int)


def test_full_run_drops_slots_of_classes_no_longer_in_scope():
    store = _store(subjects=[Subject(1, "Discrete Mathematics", "MA301", 5, 3, False, 1)])
    generate_timetable(store, GenerationOptions(seed=1))

    # the subject moves to semester 4; 3A/3B must not keep Anita's old periods
    store.subjects = [Subject(1, "Discrete Mathematics", "MA301", 5, 4, False, 1)]
    result = generate_timetable(store, GenerationOptions(seed=1))
    rows = _rows(store)

    assert result.per_subject_results == {1: True}
    assert sorted({r["class_name"] for r in rows}) == ["4A", "4B"]
    assert len(rows) == 10
    assert find_teacher_double_bookings(rows) == []


def test_full_run_drops_sections_that_were_removed():
    store = _store()
    generate_timetable(store, GenerationOptions(seed=4, sections=("A", "B", "C")))
    generate_timetable(store, GenerationOptions(seed=4, sections=("A",)))

    assert {r["class_name"] for r in _rows(store)} == {"3A", "5A"}


def test_seeded_store_books_stored_slots_and_restores_them_on_rollback():
    source = _store()
    generate_timetable(source, GenerationOptions(seed=6))
    store = InMemoryTimetableStore(
        settings=None, teachers=TEACHERS, subjects=SUBJECTS, assignments=source.assignments, slots=source.slots
    )

    bookings = store.load_teacher_bookings(["5A", "5B"])
    assert len(bookings) == len([r for r in _rows(source) if r["class_name"].startswith("3")])
    assert all(tid in (1, 2) for tid, _day, _period in bookings)

    with pytest.raises(ConfigurationError):
        generate_timetable(store, GenerationOptions(seed=6))
    assert _slot_keys(store) == _slot_keys(source)


def test_default_options_are_not_shared_between_runs():
    a = TimetableGenerator(_store())
    b = TimetableGenerator(_store())

    assert a.options == b.options
    assert a.options is not b.options
    assert a.options.forced_lab_days is not b.options.forced_lab_days
