"""Validation helpers for Streamlit forms and CRUD writes."""

from __future__ import annotations

from typing import Any, Iterable, Tuple


def require_non_empty(value: str, field: str) -> Tuple[bool, str]:
    if not value or not value.strip():
        return False, f"{field} cannot be empty"
    return True, ""


def validate_positive_int(value: int, field: str, min_value: int = 1, max_value: int | None = None) -> Tuple[bool, str]:
    if value is None:
        return False, f"{field} is required"
    if value < min_value:
        return False, f"{field} must be >= {min_value}"
    if max_value is not None and value > max_value:
        return False, f"{field} must be <= {max_value}"
    return True, ""


def validate_unique(values: Iterable[str], field: str) -> Tuple[bool, str]:
    vals = [v.strip() for v in values if v and v.strip()]
    if len(vals) != len(set(vals)):
        return False, f"{field} contains duplicates"
    return True, ""


def validate_break_period(period: Any, periods_per_day: int) -> Tuple[bool, str]:
    """Break periods are 1-indexed and must fall inside the school day."""

    if period is None:
        return False, "Break period is required"
    try:
        p = int(period)
    except (TypeError, ValueError):
        return False, f"Break period must be a number, got {period!r}"
    if p < 1 or p > int(periods_per_day):
        return False, f"Break period must be between 1 and {int(periods_per_day)}"
    return True, ""
