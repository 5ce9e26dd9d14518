"""Exception hierarchy for timetable generation.

Placement failures (no teacher, no free slot) are *not* exceptions; they are
reported as outcomes. Only configuration and storage problems abort a run.
"""

from __future__ import annotations


class GenerationError(RuntimeError):
    """Base class for errors that abort a generation run."""


class ConfigurationError(GenerationError):
    """Raised when scheduling settings are missing or unusable."""


class StorageError(GenerationError):
    """Raised when the persistence layer fails (connection loss, constraint violation)."""


class SlotOccupiedError(ValueError):
    """Raised when something tries to write into a non-empty timetable cell."""
