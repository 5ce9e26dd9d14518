from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Iterable, Mapping, Optional


def _stable_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=list)


def compute_generation_input_hash(
    *,
    settings_row: Optional[Mapping[str, Any]],
    teachers: Iterable[Mapping[str, Any]],
    subjects: Iterable[Mapping[str, Any]],
    run_settings: Optional[Dict[str, Any]] = None,
) -> str:
    """Compute a stable hash for a timetable generation run.

    Goal: same DB data + same run parameters => same hash.
    If either changes, hash changes. Only the fields that affect placement
    are included (timestamps are ignored).
    """

    s = dict(settings_row or {})
    payload: Dict[str, Any] = {
        "settings": {
            "periods_per_day": s.get("periods_per_day"),
            "working_days": s.get("working_days"),
            "lunch_break": s.get("lunch_break"),
            "short_breaks": s.get("short_breaks"),
        },
        "teachers": sorted(int(t["id"]) for t in teachers),
        "subjects": [
            {
                "id": int(sub["id"]),
                "code": str(sub.get("code") or ""),
                "hours_per_week": int(sub.get("hours_per_week") or 0),
                "semester": int(sub.get("semester") or 0),
                "is_lab": bool(sub.get("is_lab")),
                "teacher_id": sub.get("teacher_id"),
            }
            for sub in sorted(subjects, key=lambda x: int(x["id"]))
        ],
        "run_settings": run_settings or {},
    }

    return hashlib.sha256(_stable_json(payload).encode("utf-8")).hexdigest()
