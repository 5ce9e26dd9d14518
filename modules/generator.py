"""Timetable generation run: settings -> grid -> per-section placement -> commit.

One run regenerates every (semester, section) in scope inside a single storage
transaction. The teacher availability grid is created once and shared by all
sections, so sections are processed strictly in order (semester ascending, then
section label order) and earlier sections constrain later ones.

Run states
----------
IDLE -> SETTINGS_LOADED -> GRID_INITIALIZED
     -> (per section) BREAKS_PLACED -> LABS_PLACED -> REGULARS_PLACED
     -> COMMITTED | ROLLED_BACK

A run commits even when some subjects could not be placed; failures are
returned in the result. Only configuration or storage errors roll back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import logging
import random

from .class_scheduler import (
    DEFAULT_AFTER_LUNCH_PRIORITY_DAYS,
    DEFAULT_FORCED_LAB_DAYS,
    LabPlacer,
    PlacementOutcome,
    RegularPlacer,
    SectionTimetable,
    SlotBooking,
    Subject,
    Teacher,
    TeacherAvailabilityGrid,
    class_name_for,
    place_breaks,
)
from .errors import ConfigurationError, GenerationError, StorageError
from .schedule_settings import ScheduleSettings

logger = logging.getLogger(__name__)


DEFAULT_SECTIONS: Tuple[str, ...] = ("A", "B")


class RunState(str, Enum):
    IDLE = "idle"
    SETTINGS_LOADED = "settings_loaded"
    GRID_INITIALIZED = "grid_initialized"
    BREAKS_PLACED = "breaks_placed"
    LABS_PLACED = "labs_placed"
    REGULARS_PLACED = "regulars_placed"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class GenerationOptions:
    sections: Tuple[str, ...] = DEFAULT_SECTIONS
    # None => non-deterministic; the seed actually used is reported in the result.
    seed: Optional[int] = None
    force_lab_slots: bool = False
    forced_lab_days: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_FORCED_LAB_DAYS))
    after_lunch_priority_days: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_AFTER_LUNCH_PRIORITY_DAYS)
    )
    # None => every semester that has subjects.
    semesters: Optional[Tuple[int, ...]] = None


@dataclass(frozen=True)
class GenerationResult:
    per_subject_results: Dict[int, bool]
    outcomes: List[PlacementOutcome]
    total_slots_created: int
    state: RunState
    seed: int
    class_names: Tuple[str, ...] = ()

    @property
    def failed_subjects(self) -> List[PlacementOutcome]:
        return [o for o in self.outcomes if not o.placed]

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.COMMITTED


# ----------------------------
# Storage protocol
# ----------------------------


class TimetableStore(Protocol):
    """Persistence boundary for one generation run (one transaction)."""

    def load_settings(self) -> Optional[Mapping[str, Any]]:  # pragma: no cover
        ...

    def load_teachers(self) -> List[Teacher]:  # pragma: no cover
        ...

    def load_subjects(self) -> List[Subject]:  # pragma: no cover
        ...

    def load_teacher_bookings(self, exclude_classes: Sequence[str]) -> List[Tuple[int, str, int]]:  # pragma: no cover
        """(teacher_id, day, period) for slots of classes NOT in `exclude_classes`."""

    def clear_slots(self, class_names: Optional[Sequence[str]] = None) -> int:  # pragma: no cover
        """Delete slots for the given classes (all slots when None)."""

    def find_or_create_assignment(self, subject_id: int, teacher_id: int, class_name: str, hours_per_week: int) -> int:  # pragma: no cover
        ...

    def insert_slots(self, slots: Sequence[SlotBooking]) -> int:  # pragma: no cover
        ...

    def commit(self) -> None:  # pragma: no cover
        ...

    def rollback(self) -> None:  # pragma: no cover
        ...


class InMemoryTimetableStore:
    """Store kept entirely in memory. Used for dry runs and tests.

    Rollback restores the slot/assignment state captured at the last commit.
    """

    def __init__(
        self,
        *,
        settings: Optional[Mapping[str, Any]] = None,
        teachers: Iterable[Teacher] = (),
        subjects: Iterable[Subject] = (),
        assignments: Optional[Mapping[Tuple[int, int, str], Tuple[int, int]]] = None,
        slots: Iterable[SlotBooking] = (),
    ):
        self.settings = dict(settings) if settings is not None else None
        self.teachers: List[Teacher] = list(teachers)
        self.subjects: List[Subject] = list(subjects)
        # (subject_id, teacher_id, class_name) -> (assignment_id, hours_per_week)
        self.assignments: Dict[Tuple[int, int, str], Tuple[int, int]] = dict(assignments or {})
        self.slots: List[SlotBooking] = list(slots)
        self.commits = 0
        self.rollbacks = 0
        self._snapshot: Tuple[Dict[Tuple[int, int, str], Tuple[int, int]], List[SlotBooking]] = (
            dict(self.assignments),
            list(self.slots),
        )

    def load_settings(self) -> Optional[Mapping[str, Any]]:
        return self.settings

    def load_teachers(self) -> List[Teacher]:
        return list(self.teachers)

    def load_subjects(self) -> List[Subject]:
        return list(self.subjects)

    def _owners(self) -> Dict[int, Tuple[int, str]]:
        """assignment_id -> (teacher_id, class_name)"""

        return {aid: (tid, cname) for (_sid, tid, cname), (aid, _h) in self.assignments.items()}

    def load_teacher_bookings(self, exclude_classes: Sequence[str]) -> List[Tuple[int, str, int]]:
        excluded = set(exclude_classes)
        owners = self._owners()
        out: List[Tuple[int, str, int]] = []
        for s in self.slots:
            owner = owners.get(s.assignment_id)
            if owner is None or owner[1] in excluded:
                continue
            out.append((owner[0], s.day, s.period))
        return out

    def clear_slots(self, class_names: Optional[Sequence[str]] = None) -> int:
        before = len(self.slots)
        if class_names is None:
            self.slots = []
        else:
            names = set(class_names)
            owners = self._owners()
            self.slots = [
                s for s in self.slots if owners.get(s.assignment_id, (None, None))[1] not in names
            ]
        return before - len(self.slots)

    def find_or_create_assignment(self, subject_id: int, teacher_id: int, class_name: str, hours_per_week: int) -> int:
        key = (int(subject_id), int(teacher_id), str(class_name))
        existing = self.assignments.get(key)
        if existing is not None:
            return existing[0]
        aid = max((a for a, _h in self.assignments.values()), default=0) + 1
        self.assignments[key] = (aid, int(hours_per_week))
        return aid

    def insert_slots(self, slots: Sequence[SlotBooking]) -> int:
        existing = {(s.assignment_id, s.day, s.period) for s in self.slots}
        inserted = 0
        for s in slots:
            k = (s.assignment_id, s.day, s.period)
            if k in existing:
                continue
            existing.add(k)
            self.slots.append(s)
            inserted += 1
        return inserted

    def commit(self) -> None:
        self.commits += 1
        self._snapshot = (dict(self.assignments), list(self.slots))

    def rollback(self) -> None:
        self.rollbacks += 1
        self.assignments = dict(self._snapshot[0])
        self.slots = list(self._snapshot[1])


# ----------------------------
# Orchestrator
# ----------------------------


def _subject_order(s: Subject) -> Tuple[int, int, int, int]:
    # labs first, then larger weekly load first
    return (int(s.semester), 0 if s.is_lab else 1, -int(s.hours_per_week), int(s.subject_id))


def group_subjects_by_semester(subjects: Iterable[Subject]) -> Dict[int, List[Subject]]:
    out: Dict[int, List[Subject]] = {}
    for s in sorted(subjects, key=_subject_order):
        out.setdefault(int(s.semester), []).append(s)
    return out


class TimetableGenerator:
    """Runs one generation over a `TimetableStore`."""

    def __init__(self, store: TimetableStore, options: Optional[GenerationOptions] = None):
        self.store = store
        self.options = options if options is not None else GenerationOptions()
        self.state = RunState.IDLE
        self.settings: Optional[ScheduleSettings] = None
        self.grid: Optional[TeacherAvailabilityGrid] = None
        self.timetables: Dict[str, SectionTimetable] = {}

    def _transition(self, state: RunState, detail: str = "") -> None:
        self.state = state
        logger.debug("Generation state -> %s %s", state.value, detail)

    def _load(self) -> Tuple[ScheduleSettings, List[Teacher], Dict[int, List[Subject]]]:
        settings = ScheduleSettings.from_row(self.store.load_settings())
        self.settings = settings
        self._transition(RunState.SETTINGS_LOADED)
        logger.info(
            "Loaded settings: %s working days (%s), %s periods per day",
            len(settings.working_days),
            ", ".join(settings.working_days),
            settings.periods_per_day,
        )

        teachers = self.store.load_teachers()
        by_semester = group_subjects_by_semester(self.store.load_subjects())
        if self.options.semesters is not None:
            wanted = {int(x) for x in self.options.semesters}
            by_semester = {sem: subs for sem, subs in by_semester.items() if sem in wanted}
        logger.info(
            "Loaded %s teachers, %s subjects across semesters %s",
            len(teachers),
            sum(len(v) for v in by_semester.values()),
            sorted(by_semester.keys()),
        )
        return settings, teachers, by_semester

    def _init_grid(self, settings: ScheduleSettings, teachers: List[Teacher], class_names: List[str]) -> TeacherAvailabilityGrid:
        grid = TeacherAvailabilityGrid(
            (t.teacher_id for t in teachers), settings.working_days, settings.periods_per_day
        )
        if self.options.semesters is not None:
            # Classes outside this run keep their slots; their teachers stay busy.
            kept = 0
            for tid, day, period in self.store.load_teacher_bookings(class_names):
                if grid.is_free(tid, day, period):
                    grid.book(tid, day, period)
                    kept += 1
            logger.info("Pre-booked %s teacher periods held by classes outside this run", kept)
        self.grid = grid
        self._transition(RunState.GRID_INITIALIZED)
        return grid

    def _run_section(
        self,
        settings: ScheduleSettings,
        grid: TeacherAvailabilityGrid,
        rng: random.Random,
        semester: int,
        section: str,
        subjects: List[Subject],
    ) -> List[PlacementOutcome]:
        cname = class_name_for(semester, section)
        tt = SectionTimetable(cname, settings.working_days, settings.periods_per_day)
        self.timetables[cname] = tt

        breaks = place_breaks(tt, settings)
        self._transition(RunState.BREAKS_PLACED, cname)
        logger.debug("%s: placed %s breaks", cname, len(breaks))

        outcomes: List[PlacementOutcome] = []
        labs = [s for s in subjects if s.is_lab]
        regulars = [s for s in subjects if not s.is_lab]

        lab_placer = LabPlacer(
            grid=grid,
            sink=self.store,
            rng=rng,
            section=section,
            force_slots=self.options.force_lab_slots,
            forced_days=self.options.forced_lab_days,
            after_lunch_priority_days=self.options.after_lunch_priority_days,
        )
        for i, subject in enumerate(labs):
            outcomes.append(lab_placer.place(tt, subject, lab_index=i))
        self._transition(RunState.LABS_PLACED, cname)

        regular_placer = RegularPlacer(grid=grid, sink=self.store, rng=rng)
        for subject in regulars:
            outcomes.append(regular_placer.place(tt, subject))
        self._transition(RunState.REGULARS_PLACED, cname)

        placed = sum(1 for o in outcomes if o.placed)
        logger.info("%s: placed %s/%s subjects (%s labs)", cname, placed, len(outcomes), len(labs))
        return outcomes

    def run(self) -> GenerationResult:
        seed = self.options.seed if self.options.seed is not None else random.SystemRandom().randrange(2**31)
        rng = random.Random(seed)
        logger.info("Starting timetable generation (seed=%s)", seed)

        outcomes: List[PlacementOutcome] = []
        try:
            settings, teachers, by_semester = self._load()
            class_names = [
                class_name_for(sem, sec) for sem in sorted(by_semester) for sec in self.options.sections
            ]
            grid = self._init_grid(settings, teachers, class_names)
            if self.options.semesters is None:
                # full run: no stored slot may outlive it, whatever class it belongs to
                removed = self.store.clear_slots(None)
                logger.info("Cleared %s stored slots before a full run", removed)

            for semester in sorted(by_semester):
                subjects = by_semester[semester]
                for section in self.options.sections:
                    self.store.clear_slots([class_name_for(semester, section)])
                    outcomes.extend(self._run_section(settings, grid, rng, semester, section, subjects))

            self.store.commit()
        except Exception as exc:
            self._rollback()
            logger.error("Timetable generation failed, run rolled back: %s", exc)
            raise

        self._transition(RunState.COMMITTED)
        per_subject: Dict[int, bool] = {}
        for o in outcomes:
            per_subject[o.subject_id] = per_subject.get(o.subject_id, True) and o.placed
        total = sum(o.slots_created for o in outcomes)
        failed = [o for o in outcomes if not o.placed]
        logger.info(
            "Timetable generation committed: %s slots, %s/%s subject placements failed",
            total,
            len(failed),
            len(outcomes),
        )
        return GenerationResult(
            per_subject_results=per_subject,
            outcomes=outcomes,
            total_slots_created=total,
            state=self.state,
            seed=seed,
            class_names=tuple(class_names),
        )

    def _rollback(self) -> None:
        try:
            self.store.rollback()
        finally:
            self._transition(RunState.ROLLED_BACK)


def generate_timetable(store: TimetableStore, options: Optional[GenerationOptions] = None) -> GenerationResult:
    """Regenerate the timetable for every section in scope and commit it."""

    return TimetableGenerator(store, options).run()


def clear_all(store: TimetableStore) -> int:
    """Delete every timetable slot and commit. Returns the number of slots removed."""

    try:
        removed = store.clear_slots(None)
        store.commit()
    except Exception:
        store.rollback()
        raise
    logger.info("Cleared %s timetable slots", removed)
    return removed


__all__ = [
    "ConfigurationError",
    "GenerationError",
    "GenerationOptions",
    "GenerationResult",
    "InMemoryTimetableStore",
    "RunState",
    "StorageError",
    "TimetableGenerator",
    "TimetableStore",
    "clear_all",
    "generate_timetable",
    "group_subjects_by_semester",
]
