"""Scheduling settings: working days, periods per day and breaks.

Settings are stored loosely (JSON columns written by different clients over
time), so every field is parsed permissively:

- working days may be a list, a JSON string or a comma-separated string
- lunch break / short breaks may be a dict/list or a JSON string

Unparsable values fall back to documented defaults instead of failing the run.
Only a missing settings row or an unusable period count is fatal.

Period convention
-----------------
Break periods are configured 1-indexed (period 1 = first period of the day).
They are converted exactly once, in `ScheduleSettings.break_slots()`, to the
0-indexed offsets used by the timetable grid and by stored slots.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_WORKING_DAYS: Tuple[str, ...] = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
DEFAULT_PERIODS_PER_DAY = 8

LUNCH_LABEL = "Lunch Break"
SHORT_BREAK_LABEL = "Break"


@dataclass(frozen=True)
class BreakConfig:
    enabled: bool
    period: int  # 1-indexed, as configured
    duration: Optional[int] = None  # minutes; informational only


@dataclass(frozen=True)
class BreakSlot:
    period: int  # 0-indexed offset into the day
    label: str
    kind: str  # lunch | short
    duration: Optional[int] = None


def _maybe_json(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        return json.loads(raw)
    return raw


def parse_working_days(raw: Any) -> Tuple[str, ...]:
    """Parse working days from a list, JSON string or comma-separated string.

    Falls back to a Monday-Friday week on anything unusable.
    """

    days: List[str] = []
    try:
        if isinstance(raw, (list, tuple)):
            days = [str(d).strip() for d in raw]
        elif isinstance(raw, str):
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = raw.split(",")
            if isinstance(parsed, str):
                parsed = parsed.split(",")
            if not isinstance(parsed, list):
                raise TypeError(f"unsupported working days value: {parsed!r}")
            days = [str(d).strip() for d in parsed]
        else:
            raise TypeError(f"unsupported working days type: {type(raw).__name__}")
    except (TypeError, ValueError) as exc:
        logger.warning("Could not parse working days (%s); using default weekdays", exc)
        return DEFAULT_WORKING_DAYS

    days = [d for d in days if d]
    if not days:
        logger.warning("Working days are empty; using default weekdays")
        return DEFAULT_WORKING_DAYS

    # Keep first occurrence of duplicated names; order matters for display.
    seen = set()
    unique: List[str] = []
    for d in days:
        if d not in seen:
            seen.add(d)
            unique.append(d)
    return tuple(unique)


def _break_from_mapping(item: Mapping[str, Any]) -> BreakConfig:
    duration = item.get("duration")
    return BreakConfig(
        enabled=bool(item.get("enabled", False)),
        period=int(item["period"]),
        duration=int(duration) if duration is not None else None,
    )


def parse_lunch_break(raw: Any) -> Optional[BreakConfig]:
    if raw is None or raw == "":
        return None
    try:
        data = _maybe_json(raw)
        if not isinstance(data, Mapping):
            raise TypeError("lunch break must be an object")
        return _break_from_mapping(data)
    except (TypeError, ValueError, KeyError) as exc:
        logger.warning("Could not parse lunch break settings (%s); skipping", exc)
        return None


def parse_short_breaks(raw: Any) -> Tuple[BreakConfig, ...]:
    if raw is None or raw == "":
        return ()
    try:
        data = _maybe_json(raw)
        if not isinstance(data, list):
            raise TypeError("short breaks must be a list")
        return tuple(_break_from_mapping(item) for item in data)
    except (TypeError, ValueError, KeyError) as exc:
        logger.warning("Could not parse short breaks settings (%s); skipping", exc)
        return ()


def _first_present(row: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in row and row[k] is not None:
            return row[k]
    return None


@dataclass(frozen=True)
class ScheduleSettings:
    working_days: Tuple[str, ...] = DEFAULT_WORKING_DAYS
    periods_per_day: int = DEFAULT_PERIODS_PER_DAY
    lunch_break: Optional[BreakConfig] = None
    short_breaks: Tuple[BreakConfig, ...] = ()

    @classmethod
    def from_row(cls, row: Optional[Mapping[str, Any]]) -> "ScheduleSettings":
        """Build settings from a stored settings row.

        Accepts snake_case column names as well as the camelCase keys used by
        older clients (`periodsPerDay`, `workingDays`, ...).
        """

        if row is None:
            raise ConfigurationError("Settings not found")

        raw_periods = _first_present(row, "periods_per_day", "periodsPerDay")
        try:
            periods = int(raw_periods)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid periods per day: {raw_periods!r}") from exc
        if periods < 1:
            raise ConfigurationError(f"Periods per day must be >= 1, got {periods}")

        return cls(
            working_days=parse_working_days(_first_present(row, "working_days", "workingDays")),
            periods_per_day=periods,
            lunch_break=parse_lunch_break(_first_present(row, "lunch_break", "lunchBreak")),
            short_breaks=parse_short_breaks(_first_present(row, "short_breaks", "shortBreaks")),
        )

    def break_slots(self) -> List[BreakSlot]:
        """Enabled breaks as 0-indexed slots; lunch first, then short breaks in order."""

        out: List[BreakSlot] = []
        configured: List[Tuple[BreakConfig, str, str]] = []
        if self.lunch_break is not None:
            configured.append((self.lunch_break, LUNCH_LABEL, "lunch"))
        for b in self.short_breaks:
            configured.append((b, SHORT_BREAK_LABEL, "short"))

        for cfg, label, kind in configured:
            if not cfg.enabled:
                continue
            idx = int(cfg.period) - 1
            if idx < 0 or idx >= self.periods_per_day:
                logger.warning(
                    "%s at period %s is outside 1..%s; skipping", label, cfg.period, self.periods_per_day
                )
                continue
            out.append(BreakSlot(period=idx, label=label, kind=kind, duration=cfg.duration))
        return out
