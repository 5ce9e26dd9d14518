import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ui.utils.id_generator import new_run_id
from ui.utils.schedule_cache import compute_generation_input_hash
from ui.utils.validators import validate_break_period, validate_positive_int, validate_unique


SETTINGS_ROW = {"periods_per_day": 8, "working_days": '["Monday"]', "lunch_break": "{}", "short_breaks": "[]", "updated_at": "x"}
TEACHERS = [{"id": 2, "name": "B"}, {"id": 1, "name": "A"}]
SUBJECTS = [
    {"id": 2, "code": "S2", "hours_per_week": 3, "semester": 1, "is_lab": 0, "teacher_id": 1},
    {"id": 1, "code": "S1", "hours_per_week": 4, "semester": 1, "is_lab": 1, "teacher_id": 2},
]


def _hash(**kw):
    args = {"settings_row": SETTINGS_ROW, "teachers": TEACHERS, "subjects": SUBJECTS, "run_settings": {"seed": 1}}
    args.update(kw)
    return compute_generation_input_hash(**args)


def test_input_hash_ignores_row_order_and_timestamps():
    assert _hash() == _hash(
        teachers=list(reversed(TEACHERS)),
        subjects=list(reversed(SUBJECTS)),
        settings_row={**SETTINGS_ROW, "updated_at": "y"},
    )


def test_input_hash_changes_with_data_or_options():
    base = _hash()
    changed = [dict(s) for s in SUBJECTS]
    changed[0]["hours_per_week"] = 5
    assert _hash(subjects=changed) != base
    assert _hash(run_settings={"seed": 2}) != base
    assert _hash(settings_row={**SETTINGS_ROW, "periods_per_day": 7}) != base


def test_run_ids_are_short_and_unique():
    a, b = new_run_id(), new_run_id()
    assert a != b
    assert a.startswith("RUN-") and len(a) == 16


def test_validators():
    assert validate_positive_int(0, "Hours")[0] is False
    assert validate_positive_int(3, "Hours", 1, 4) == (True, "")
    assert validate_unique(["Mon", "Mon "], "Days")[0] is False
    assert validate_break_period(1, 8) == (True, "")
    assert validate_break_period(9, 8)[0] is False
    assert validate_break_period("x", 8)[0] is False
