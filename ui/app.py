"""Main Streamlit app entrypoint.

Run:
    streamlit run ui/app.py

"""

from __future__ import annotations

import sys
from pathlib import Path

import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs this file
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modules.errors import ConfigurationError
from modules.schedule_settings import ScheduleSettings
from ui.database import crud
from ui.database.db import db_session
from utils.log_config import setup_logging
from utils.timetable_export import stats_frames


st.set_page_config(
    page_title="Weekly Timetable Generator",
    page_icon="🗓️",
    layout="wide",
)


def _inject_css() -> None:
    st.markdown(
        """
        <style>
        .block-container { padding-top: 1.2rem; }
        div[data-testid="stMetric"] { background: #0b1220; border: 1px solid rgba(255,255,255,0.08); padding: 12px; border-radius: 12px; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def main() -> None:
    setup_logging()
    _inject_css()

    st.sidebar.title("Timetable")
    st.sidebar.caption("Greedy weekly timetable generation")

    with db_session() as conn:
        teachers = crud.list_teachers(conn)
        subjects = crud.list_subjects(conn)
        settings_row = crud.get_settings(conn)
        try:
            working_days = list(ScheduleSettings.from_row(settings_row).working_days)
        except ConfigurationError as exc:
            st.error(f"Settings are invalid: {exc}")
            working_days = []
        stats = crud.timetable_stats(conn, working_days)
        last_run = crud.latest_generation_run(conn)

    st.title("Dashboard")

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Teachers", len(teachers))
    c2.metric("Subjects", len(subjects))
    c3.metric("Lab subjects", sum(1 for s in subjects if int(s.get("is_lab") or 0) == 1))
    c4.metric("Timetable slots", stats["total"])

    frames = stats_frames(stats)
    l, r = st.columns(2)
    l.subheader("Slots per day")
    l.bar_chart(frames["by_day"].set_index("day"))
    r.subheader("Lab vs regular")
    r.dataframe(frames["by_type"], use_container_width=True, hide_index=True)

    st.divider()
    if last_run:
        st.caption(
            f"Last run {last_run['run_id']} at {last_run['created_at']} "
            f"(seed {last_run['seed']}): {last_run['total_slots']} slots, {len(last_run['failed'])} failed placements"
        )
    st.info("Set up Academic Settings first, then Teachers & Subjects, then generate on the Timetable page.")


if __name__ == "__main__":
    main()
