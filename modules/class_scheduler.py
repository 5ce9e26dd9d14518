"""Weekly class timetable placement.

This module places subjects into a weekly (day x period) grid for one class
section at a time, while a single teacher availability grid is shared by all
sections of a generation run.

It is a greedy, single-pass engine (no search / backtracking):

1. breaks are stamped into the section timetable first and never move
2. lab subjects are placed as double periods using an ordered list of
   strategies (forced slot -> last periods -> any pair -> after lunch)
3. regular subjects are placed one period at a time, spread across days

Hard constraints
----------------
- a timetable cell holds a break, one subject placement, or nothing
- a teacher cannot be booked twice at the same (day, period) in any section
- a lab session always occupies two consecutive periods on the same day

Soft constraints
----------------
- try to put regular subjects on different days
- labs prefer the end of the day, then any pair, then after lunch

Day order is randomised with an injected `random.Random`, so a fixed seed gives
a reproducible timetable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

import logging
import math
import random

from .errors import SlotOccupiedError
from .schedule_settings import ScheduleSettings

logger = logging.getLogger(__name__)


# ----------------------------
# Data models
# ----------------------------


@dataclass(frozen=True)
class Teacher:
    teacher_id: int
    name: str
    email: Optional[str] = None


@dataclass(frozen=True)
class Subject:
    subject_id: int
    name: str
    code: str
    hours_per_week: int
    semester: int
    is_lab: bool = False
    teacher_id: Optional[int] = None


@dataclass(frozen=True)
class BreakMarker:
    label: str
    kind: str = "short"  # lunch | short


@dataclass(frozen=True)
class Placement:
    subject_id: int
    subject_code: str
    subject_name: str
    teacher_id: int
    is_double_period: bool = False


Cell = Union[None, BreakMarker, Placement]


@dataclass(frozen=True)
class SlotBooking:
    """One persisted (day, period) booking for an assignment."""

    assignment_id: int
    day: str
    period: int  # 0-indexed


@dataclass(frozen=True)
class PlacementOutcome:
    subject_id: int
    subject_name: str
    class_name: str
    is_lab: bool
    placed: bool
    slots_created: int = 0
    reason: Optional[str] = None


def class_name_for(semester: int, section: str) -> str:
    """Storage key for a class section, e.g. (3, "A") -> "3A"."""

    return f"{semester}{section}"


def same_day(a: str, b: str) -> bool:
    """Compare day names loosely: "Tue" matches "Tuesday", case-insensitive."""

    a = str(a).strip().casefold()
    b = str(b).strip().casefold()
    return a == b or (len(a) >= 3 and len(b) >= 3 and a[:3] == b[:3])


def match_days(wanted: Iterable[str], working_days: Sequence[str]) -> List[str]:
    """Working-day names matching `wanted`, in `wanted` order, without duplicates."""

    out: List[str] = []
    for w in wanted:
        for d in working_days:
            if same_day(w, d) and d not in out:
                out.append(d)
                break
    return out


# ----------------------------
# Teacher availability (global per run)
# ----------------------------


class TeacherAvailabilityGrid:
    """Per-teacher, per-day, per-period availability shared by the whole run.

    All cells start free. A cell is only marked busy through `book()`, which the
    placers call together with writing a slot, so "busy" always has a matching
    booking.
    """

    def __init__(self, teacher_ids: Iterable[int], working_days: Sequence[str], periods_per_day: int):
        self._days = tuple(working_days)
        self._periods = int(periods_per_day)
        self._free: Dict[int, Dict[str, List[bool]]] = {}
        for tid in teacher_ids:
            self._ensure(tid)

    def _ensure(self, teacher_id: int) -> Dict[str, List[bool]]:
        row = self._free.get(teacher_id)
        if row is None:
            row = {d: [True] * self._periods for d in self._days}
            self._free[teacher_id] = row
        return row

    def is_free(self, teacher_id: int, day: str, period: int) -> bool:
        if not 0 <= period < self._periods or day not in self._days:
            return False
        row = self._free.get(teacher_id)
        if row is None:
            return True
        return row[day][period]

    def is_free_pair(self, teacher_id: int, day: str, period: int) -> bool:
        return self.is_free(teacher_id, day, period) and self.is_free(teacher_id, day, period + 1)

    def book(self, teacher_id: int, day: str, period: int) -> None:
        row = self._ensure(teacher_id)
        if not row[day][period]:
            raise SlotOccupiedError(f"Teacher {teacher_id} already booked on {day}, period {period + 1}")
        row[day][period] = False

    def release(self, teacher_id: int, day: str, period: int) -> None:
        self._ensure(teacher_id)[day][period] = True

    def busy_slots(self, teacher_id: int) -> List[Tuple[str, int]]:
        row = self._free.get(teacher_id) or {}
        return [(d, p) for d in self._days for p, free in enumerate(row.get(d, [])) if not free]


# ----------------------------
# Section timetable (fresh per section)
# ----------------------------


class SectionTimetable:
    """Day x period grid for one class section."""

    def __init__(self, class_name: str, working_days: Sequence[str], periods_per_day: int):
        self.class_name = class_name
        self.working_days: Tuple[str, ...] = tuple(working_days)
        self.periods_per_day = int(periods_per_day)
        self._cells: Dict[str, List[Cell]] = {d: [None] * self.periods_per_day for d in self.working_days}

    def cell(self, day: str, period: int) -> Cell:
        return self._cells[day][period]

    def is_empty(self, day: str, period: int) -> bool:
        if not 0 <= period < self.periods_per_day:
            return False
        return self._cells[day][period] is None

    def is_empty_pair(self, day: str, period: int) -> bool:
        return self.is_empty(day, period) and self.is_empty(day, period + 1)

    def is_break(self, day: str, period: int) -> bool:
        return isinstance(self._cells[day][period], BreakMarker)

    def place_break(self, day: str, period: int, marker: BreakMarker) -> bool:
        """Stamp a break; returns False if the cell already holds something."""

        if self._cells[day][period] is not None:
            return False
        self._cells[day][period] = marker
        return True

    def place(self, day: str, period: int, placement: Placement) -> None:
        current = self._cells[day][period]
        if current is not None:
            raise SlotOccupiedError(f"{self.class_name}: {day} period {period + 1} is not empty ({current!r})")
        self._cells[day][period] = placement

    def remove(self, day: str, period: int) -> None:
        if self.is_break(day, period):
            raise SlotOccupiedError(f"{self.class_name}: breaks cannot be removed ({day} period {period + 1})")
        self._cells[day][period] = None

    def count_subject(self, day: str, subject_id: int) -> int:
        return sum(1 for c in self._cells[day] if isinstance(c, Placement) and c.subject_id == subject_id)

    def lunch_period(self) -> Optional[int]:
        """0-indexed lunch period on the first working day, if a lunch break was placed."""

        if not self.working_days:
            return None
        for p, c in enumerate(self._cells[self.working_days[0]]):
            if isinstance(c, BreakMarker) and c.kind == "lunch":
                return p
        return None

    def rows(self) -> List[List[str]]:
        """Table (rows=days, cols=periods) of 'CODE', break labels or ''."""

        table: List[List[str]] = []
        for d in self.working_days:
            row = []
            for c in self._cells[d]:
                if isinstance(c, BreakMarker):
                    row.append(c.label)
                elif isinstance(c, Placement):
                    row.append(c.subject_code)
                else:
                    row.append("")
            table.append(row)
        return table


# ----------------------------
# Breaks
# ----------------------------


def place_breaks(timetable: SectionTimetable, settings: ScheduleSettings) -> List[BreakMarker]:
    """Stamp every enabled break into every working day of `timetable`.

    Returns the markers that were placed (one per break, not per day).
    If two breaks share a period the first one (lunch) keeps the cell.
    """

    placed: List[BreakMarker] = []
    for b in settings.break_slots():
        if b.period >= timetable.periods_per_day:
            continue
        marker = BreakMarker(label=b.label, kind=b.kind)
        stamped = False
        for day in timetable.working_days:
            stamped = timetable.place_break(day, b.period, marker) or stamped
        if stamped:
            placed.append(marker)
        else:
            logger.debug("%s at period %s overlaps another break; skipped", b.label, b.period + 1)
    return placed


# ----------------------------
# Persistence boundary used by the placers
# ----------------------------


class SlotSink(Protocol):
    def find_or_create_assignment(self, subject_id: int, teacher_id: int, class_name: str, hours_per_week: int) -> int:  # pragma: no cover
        """Return the id of the (subject, teacher, class) assignment, creating it if needed."""

    def insert_slots(self, slots: Sequence[SlotBooking]) -> int:  # pragma: no cover
        """Insert slots, ignoring duplicates; return the number inserted."""


def _placement_for(subject: Subject, *, double: bool) -> Placement:
    return Placement(
        subject_id=subject.subject_id,
        subject_code=subject.code,
        subject_name=subject.name,
        teacher_id=int(subject.teacher_id),
        is_double_period=double,
    )


def _failed(subject: Subject, class_name: str, reason: str, slots_created: int = 0) -> PlacementOutcome:
    return PlacementOutcome(
        subject_id=subject.subject_id,
        subject_name=subject.name,
        class_name=class_name,
        is_lab=subject.is_lab,
        placed=False,
        slots_created=slots_created,
        reason=reason,
    )


# ----------------------------
# Labs
# ----------------------------


DEFAULT_FORCED_LAB_DAYS: Mapping[str, Tuple[str, ...]] = {
    "A": ("Tuesday", "Thursday"),
    "B": ("Monday", "Wednesday"),
}

DEFAULT_AFTER_LUNCH_PRIORITY_DAYS: Mapping[str, Tuple[str, ...]] = {
    "A": ("Tuesday", "Thursday"),
    "B": ("Monday", "Wednesday", "Friday"),
}


@dataclass
class LabPlacer:
    """Places double-period lab sessions for one section.

    Strategies are tried in fixed order for every session:
    forced slot (only when `force_slots`), last two periods of a day,
    any consecutive free pair, then after lunch.
    """

    grid: TeacherAvailabilityGrid
    sink: SlotSink
    rng: random.Random
    section: str
    force_slots: bool = False
    forced_days: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_FORCED_LAB_DAYS))
    after_lunch_priority_days: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_AFTER_LUNCH_PRIORITY_DAYS)
    )

    def _slot_ok(self, tt: SectionTimetable, teacher_id: int, day: str, period: int) -> bool:
        return tt.is_empty_pair(day, period) and self.grid.is_free_pair(teacher_id, day, period)

    def _shuffled_days(self, tt: SectionTimetable) -> List[str]:
        days = list(tt.working_days)
        self.rng.shuffle(days)
        return days

    # --- strategies: each returns (day, first_period) or None

    def _forced_slot(self, tt: SectionTimetable, teacher_id: int, lab_index: int, session: int) -> Optional[Tuple[str, int]]:
        if not self.force_slots:
            return None
        days = match_days(self.forced_days.get(self.section, ()), tt.working_days)
        if not days or tt.periods_per_day < 2:
            return None
        day = days[(lab_index + session) % len(days)]
        period = tt.periods_per_day - 2
        if self._slot_ok(tt, teacher_id, day, period):
            return day, period
        logger.debug("%s: forced lab slot %s periods %s-%s unavailable", tt.class_name, day, period + 1, period + 2)
        return None

    def _last_periods(self, tt: SectionTimetable, teacher_id: int) -> Optional[Tuple[str, int]]:
        period = tt.periods_per_day - 2
        if period < 0:
            return None
        for day in self._shuffled_days(tt):
            if self._slot_ok(tt, teacher_id, day, period):
                return day, period
        return None

    def _any_pair(self, tt: SectionTimetable, teacher_id: int) -> Optional[Tuple[str, int]]:
        for day in self._shuffled_days(tt):
            for period in range(tt.periods_per_day - 1):
                if self._slot_ok(tt, teacher_id, day, period):
                    return day, period
        return None

    def _after_lunch_days(self, tt: SectionTimetable) -> List[str]:
        priority = match_days(self.after_lunch_priority_days.get(self.section, ()), tt.working_days)
        return priority + [d for d in tt.working_days if d not in priority]

    def _after_lunch(self, tt: SectionTimetable, teacher_id: int) -> Optional[Tuple[str, int]]:
        lunch = tt.lunch_period()
        if lunch is None:
            lunch = tt.periods_per_day // 2 - 1
        days = self._after_lunch_days(tt)

        first = lunch + 1
        for day in days:
            if self._slot_ok(tt, teacher_id, day, first):
                return day, first
        for day in days:
            for period in range(first, tt.periods_per_day - 1):
                if self._slot_ok(tt, teacher_id, day, period):
                    return day, period
        return None

    def find_session_slot(
        self, tt: SectionTimetable, subject: Subject, *, lab_index: int = 0, session: int = 0
    ) -> Optional[Tuple[str, int, str]]:
        """First (day, period, strategy) that fits one double period, or None."""

        tid = int(subject.teacher_id)
        strategies = (
            ("forced", lambda: self._forced_slot(tt, tid, lab_index, session)),
            ("last_periods", lambda: self._last_periods(tt, tid)),
            ("any_pair", lambda: self._any_pair(tt, tid)),
            ("after_lunch", lambda: self._after_lunch(tt, tid)),
        )
        for name, attempt in strategies:
            found = attempt()
            if found is not None:
                return found[0], found[1], name
            logger.debug("%s: %s strategy found no slot for %s", tt.class_name, name, subject.code)
        return None

    def place(self, tt: SectionTimetable, subject: Subject, *, lab_index: int = 0) -> PlacementOutcome:
        if subject.teacher_id is None:
            logger.warning("Lab subject %s has no assigned teacher; skipping", subject.name)
            return _failed(subject, tt.class_name, "no teacher assigned")

        sessions_needed = int(math.ceil(int(subject.hours_per_week) / 2))
        tid = int(subject.teacher_id)
        placement = _placement_for(subject, double=True)

        # Book tentatively; nothing is persisted until every session has a slot.
        booked: List[Tuple[str, int]] = []
        for session in range(sessions_needed):
            found = self.find_session_slot(tt, subject, lab_index=lab_index, session=session)
            if found is None:
                for day, period in booked:
                    for p in (period, period + 1):
                        tt.remove(day, p)
                        self.grid.release(tid, day, p)
                logger.warning(
                    "Could not schedule lab %s for %s: no slot for session %s/%s",
                    subject.name,
                    tt.class_name,
                    session + 1,
                    sessions_needed,
                )
                return _failed(subject, tt.class_name, f"no free double period for session {session + 1}")

            day, period, strategy = found
            for p in (period, period + 1):
                tt.place(day, p, placement)
                self.grid.book(tid, day, p)
            booked.append((day, period))
            logger.debug(
                "%s: lab %s session %s -> %s periods %s-%s (%s)",
                tt.class_name,
                subject.code,
                session + 1,
                day,
                period + 1,
                period + 2,
                strategy,
            )

        assignment_id = self.sink.find_or_create_assignment(
            subject.subject_id, tid, tt.class_name, int(subject.hours_per_week)
        )
        created = 0
        for day, period in booked:
            created += self.sink.insert_slots(
                [SlotBooking(assignment_id, day, period), SlotBooking(assignment_id, day, period + 1)]
            )

        return PlacementOutcome(
            subject_id=subject.subject_id,
            subject_name=subject.name,
            class_name=tt.class_name,
            is_lab=True,
            placed=True,
            slots_created=created,
        )


# ----------------------------
# Regular subjects
# ----------------------------


@dataclass
class RegularPlacer:
    """Places single-period sessions, preferring one period per day."""

    grid: TeacherAvailabilityGrid
    sink: SlotSink
    rng: random.Random

    def _place_one(self, tt: SectionTimetable, subject: Subject, remaining: int, *, spread: bool) -> Optional[Tuple[str, int]]:
        days = list(tt.working_days)
        self.rng.shuffle(days)
        if spread:
            # fewest periods of this subject first, shuffle order kept within ties
            days.sort(key=lambda d: tt.count_subject(d, subject.subject_id))
        tid = int(subject.teacher_id)
        for day in days:
            if spread and remaining > 1 and tt.count_subject(day, subject.subject_id) >= 1:
                continue
            for period in range(tt.periods_per_day):
                if tt.is_empty(day, period) and self.grid.is_free(tid, day, period):
                    return day, period
        return None

    def place(self, tt: SectionTimetable, subject: Subject) -> PlacementOutcome:
        if subject.teacher_id is None:
            logger.warning("Subject %s has no assigned teacher; skipping", subject.name)
            return _failed(subject, tt.class_name, "no teacher assigned")

        hours = int(subject.hours_per_week)
        tid = int(subject.teacher_id)
        placement = _placement_for(subject, double=False)
        assignment_id: Optional[int] = None
        scheduled = 0
        created = 0

        while scheduled < hours:
            remaining = hours - scheduled
            found = self._place_one(tt, subject, remaining, spread=True)
            if found is None:
                # Spreading is a preference: relax it before giving up.
                found = self._place_one(tt, subject, remaining, spread=False)
            if found is None:
                logger.warning(
                    "Could not schedule all periods for %s in %s (%s/%s placed)",
                    subject.name,
                    tt.class_name,
                    scheduled,
                    hours,
                )
                return _failed(subject, tt.class_name, f"only {scheduled}/{hours} periods placed", created)

            day, period = found
            tt.place(day, period, placement)
            self.grid.book(tid, day, period)
            if assignment_id is None:
                assignment_id = self.sink.find_or_create_assignment(subject.subject_id, tid, tt.class_name, hours)
            created += self.sink.insert_slots([SlotBooking(assignment_id, day, period)])
            scheduled += 1

        return PlacementOutcome(
            subject_id=subject.subject_id,
            subject_name=subject.name,
            class_name=tt.class_name,
            is_lab=False,
            placed=True,
            slots_created=created,
        )

