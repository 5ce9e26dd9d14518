"""Timetable generation modules (settings, placement, orchestration, checks)."""

from .class_scheduler import (
	BreakMarker,
	LabPlacer,
	Placement,
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

from .errors import ConfigurationError, GenerationError, SlotOccupiedError, StorageError

from .generator import (
	GenerationOptions,
	GenerationResult,
	InMemoryTimetableStore,
	RunState,
	TimetableGenerator,
	TimetableStore,
	clear_all,
	generate_timetable,
)

from .schedule_settings import BreakConfig, BreakSlot, ScheduleSettings, parse_working_days

__all__ = [
	"BreakMarker",
	"LabPlacer",
	"Placement",
	"PlacementOutcome",
	"RegularPlacer",
	"SectionTimetable",
	"SlotBooking",
	"Subject",
	"Teacher",
	"TeacherAvailabilityGrid",
	"class_name_for",
	"place_breaks",
	"ConfigurationError",
	"GenerationError",
	"SlotOccupiedError",
	"StorageError",
	"GenerationOptions",
	"GenerationResult",
	"InMemoryTimetableStore",
	"RunState",
	"TimetableGenerator",
	"TimetableStore",
	"clear_all",
	"generate_timetable",
	"BreakConfig",
	"BreakSlot",
	"ScheduleSettings",
	"parse_working_days",
]
