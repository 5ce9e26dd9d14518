"""Academic Settings page (working days, periods, lunch and short breaks)."""

from __future__ import annotations

import sys
from pathlib import Path

import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs pages
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modules.errors import ConfigurationError
from modules.schedule_settings import DEFAULT_WORKING_DAYS, ScheduleSettings
from ui.database.db import db_session
from ui.database import crud


ALL_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _parse_periods(text: str) -> list[int]:
    if not text.strip():
        return []
    return [int(x.strip()) for x in text.split(",") if x.strip()]


def main() -> None:
    st.title("Academic Settings")

    with db_session() as conn:
        row = crud.get_settings(conn)

    try:
        current = ScheduleSettings.from_row(row)
    except ConfigurationError as exc:
        st.warning(f"Stored settings are unusable ({exc}); showing defaults.")
        current = ScheduleSettings()

    lunch = current.lunch_break
    short_periods = [b.period for b in current.short_breaks if b.enabled]

    with st.form("academic_settings_form"):
        c1, c2 = st.columns(2)
        periods_per_day = c1.number_input(
            "Periods per day", min_value=1, max_value=16, value=int(current.periods_per_day)
        )
        working_days = c2.multiselect(
            "Working days",
            options=ALL_DAYS + [d for d in current.working_days if d not in ALL_DAYS],
            default=list(current.working_days) or list(DEFAULT_WORKING_DAYS),
        )

        st.subheader("Lunch break")
        c3, c4, c5 = st.columns(3)
        lunch_enabled = c3.checkbox("Enabled", value=bool(lunch.enabled) if lunch else True)
        lunch_period = c4.number_input(
            "Period (1 = first period)",
            min_value=1,
            max_value=16,
            value=int(lunch.period) if lunch else 4,
        )
        lunch_duration = c5.number_input(
            "Duration (minutes)", min_value=0, max_value=120, value=int((lunch.duration if lunch else None) or 30)
        )

        st.subheader("Short breaks")
        short_text = st.text_input(
            "Periods (comma-separated, 1-indexed)",
            value=", ".join(str(p) for p in short_periods),
            help="Each listed period is blocked on every working day. Lunch wins if both use the same period.",
        )

        submitted = st.form_submit_button("Save Settings")

    c_reset, _ = st.columns([1, 4])
    if c_reset.button("Reset to defaults"):
        with db_session() as conn:
            crud.reset_settings(conn)
        st.success("Settings reset to defaults.")
        st.rerun()

    if not submitted:
        return

    ordered_days = [d for d in ALL_DAYS if d in working_days] + [d for d in working_days if d not in ALL_DAYS]

    try:
        parsed_short = _parse_periods(short_text)
    except ValueError:
        st.error("Short break periods must be integers")
        return

    try:
        with db_session() as conn:
            crud.update_settings(
                conn,
                periods_per_day=int(periods_per_day),
                working_days=ordered_days,
                lunch_break={"enabled": bool(lunch_enabled), "period": int(lunch_period), "duration": int(lunch_duration)},
                short_breaks=[{"enabled": True, "period": p, "duration": None} for p in sorted(set(parsed_short))],
            )
    except ValueError as exc:
        st.error(str(exc))
        return

    st.success("Academic settings saved. Regenerate the timetable to apply them.")


if __name__ == "__main__":
    main()
