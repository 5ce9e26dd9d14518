"""Post-generation checks over persisted timetable rows.

`rows` are the joined slot rows returned by `crud.list_timetable_rows` (or any
mapping with the same keys): assignment_id, day, period, class_name,
subject_id, subject_name, is_lab, hours_per_week, teacher_id, teacher_name.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Tuple


def expected_slot_count(*, is_lab: bool, hours_per_week: int) -> int:
    """Slots a fully placed subject occupies in one section."""

    if is_lab:
        return 2 * int(math.ceil(int(hours_per_week) / 2))
    return int(hours_per_week)


def find_teacher_double_bookings(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """(teacher, day, period) triples referenced by more than one slot."""

    seen: Dict[Tuple[int, str, int], List[str]] = {}
    for r in rows:
        key = (int(r["teacher_id"]), str(r["day"]), int(r["period"]))
        seen.setdefault(key, []).append(str(r.get("class_name") or ""))

    return [
        {"teacher_id": tid, "day": day, "period": period, "class_names": sorted(classes)}
        for (tid, day, period), classes in sorted(seen.items())
        if len(classes) > 1
    ]


def _pairs_cover(periods: List[int]) -> bool:
    ps = sorted(periods)
    if len(ps) % 2:
        return False
    return all(ps[i] + 1 == ps[i + 1] for i in range(0, len(ps), 2))


def find_broken_lab_sessions(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Lab (assignment, day) groups whose periods are not consecutive pairs."""

    groups: Dict[Tuple[int, str], Dict[str, Any]] = {}
    for r in rows:
        if not bool(r.get("is_lab")):
            continue
        key = (int(r["assignment_id"]), str(r["day"]))
        g = groups.setdefault(key, {"class_name": r.get("class_name"), "periods": []})
        g["periods"].append(int(r["period"]))

    return [
        {"assignment_id": aid, "day": day, "class_name": g["class_name"], "periods": sorted(g["periods"])}
        for (aid, day), g in sorted(groups.items())
        if not _pairs_cover(g["periods"])
    ]


def find_overbooked_assignments(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Assignments holding more slots than their subject's weekly load allows."""

    counts: Dict[int, Dict[str, Any]] = {}
    for r in rows:
        aid = int(r["assignment_id"])
        c = counts.setdefault(
            aid,
            {
                "assignment_id": aid,
                "class_name": r.get("class_name"),
                "subject_id": r.get("subject_id"),
                "expected": expected_slot_count(is_lab=bool(r.get("is_lab")), hours_per_week=int(r["hours_per_week"])),
                "actual": 0,
            },
        )
        c["actual"] += 1
    return [c for _aid, c in sorted(counts.items()) if c["actual"] > c["expected"]]


def lab_scheduling_summary(rows: Iterable[Mapping[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Lab sessions grouped by class: one entry per (subject, day) block.

    Periods in the summary are displayed 1-indexed.
    """

    blocks: Dict[Tuple[str, int, str], Dict[str, Any]] = {}
    for r in rows:
        if not bool(r.get("is_lab")):
            continue
        key = (str(r.get("class_name")), int(r["assignment_id"]), str(r["day"]))
        b = blocks.setdefault(
            key,
            {
                "subject_name": r.get("subject_name"),
                "teacher_name": r.get("teacher_name"),
                "day": r["day"],
                "periods": [],
            },
        )
        b["periods"].append(int(r["period"]) + 1)

    out: Dict[str, List[Dict[str, Any]]] = {}
    for (cname, _aid, _day), b in sorted(blocks.items()):
        b["periods"] = sorted(b["periods"])
        out.setdefault(cname, []).append(b)
    return out
