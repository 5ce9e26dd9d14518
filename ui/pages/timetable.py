"""Class Timetable page (generate / clear / view / download)."""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modules.errors import ConfigurationError, GenerationError
from modules.generator import DEFAULT_SECTIONS, GenerationOptions, clear_all
from modules.schedule_settings import ScheduleSettings
from modules.verification import (
    find_broken_lab_sessions,
    find_overbooked_assignments,
    find_teacher_double_bookings,
    lab_scheduling_summary,
)
from ui.database import crud
from ui.database.db import db_session
from ui.database.store import SqliteTimetableStore, generate_and_record, generation_input_hash
from utils.log_config import setup_logging
from utils.timetable_export import (
    df_to_markdown,
    df_to_png_bytes,
    ImageExportOptions,
    section_timetable_df,
    teacher_timetable_df,
    timetable_workbook_bytes,
    timetable_zip_bytes,
)


def _controls() -> tuple[GenerationOptions, bool, bool, bool]:
    st.session_state.setdefault("tt_seed", 42)

    c1, c2, c3 = st.columns(3)
    sections_text = c1.text_input("Sections", value=", ".join(DEFAULT_SECTIONS))
    fixed_seed = c2.checkbox("Fixed seed (reproducible)", value=True)
    seed = c3.number_input("Seed", min_value=0, value=int(st.session_state["tt_seed"]), disabled=not fixed_seed)

    c4, c5 = st.columns(2)
    force_lab_slots = c4.checkbox(
        "Force lab slots",
        value=False,
        help="Try fixed lab days first (A: Tue/Thu, B: Mon/Wed, last two periods). Skipped if the slot is taken.",
    )
    semesters_text = c5.text_input("Only semesters (optional)", value="", help="e.g. 3, 5. Other classes keep their slots.")

    skip_unchanged = st.checkbox(
        "Skip when inputs are unchanged",
        value=True,
        help="With a fixed seed, identical data + options give the identical timetable as the last run.",
    )

    sections = tuple(s.strip() for s in sections_text.split(",") if s.strip()) or DEFAULT_SECTIONS
    try:
        semesters = tuple(int(x) for x in semesters_text.split(",") if x.strip()) or None
    except ValueError:
        st.error("Semesters must be integers")
        semesters = None

    options = GenerationOptions(
        sections=sections,
        seed=int(seed) if fixed_seed else None,
        force_lab_slots=bool(force_lab_slots),
        semesters=semesters,
    )

    b1, b2, _ = st.columns([1, 1, 3])
    run = b1.button("Generate Timetable", type="primary")
    clear = b2.button("Clear Timetable", type="secondary")
    return options, bool(skip_unchanged and fixed_seed), run, clear


def _generate(options: GenerationOptions, skip_unchanged: bool) -> None:
    with db_session() as conn:
        if skip_unchanged:
            last = crud.latest_generation_run(conn)
            if last and last["input_hash"] == generation_input_hash(conn, options) and crud.list_class_names(conn):
                st.info(f"Inputs unchanged since run {last['run_id']}; keeping the existing timetable.")
                return

        try:
            with st.spinner("Generating timetable..."):
                result, run_id, _h = generate_and_record(conn, options)
        except ConfigurationError as exc:
            st.error(f"Settings problem, nothing was changed: {exc}")
            return
        except GenerationError as exc:
            st.error(f"Generation failed and was rolled back: {exc}")
            return

    st.success(f"Run {run_id}: {result.total_slots_created} slots created (seed {result.seed}).")
    if result.failed_subjects:
        st.warning("Some subjects could not be fully placed:")
        st.dataframe(
            pd.DataFrame(
                [{"class": o.class_name, "subject": o.subject_name, "lab": o.is_lab, "reason": o.reason} for o in result.failed_subjects]
            ),
            use_container_width=True,
            hide_index=True,
        )


def _verification(rows: list[dict]) -> None:
    with st.expander("Checks"):
        doubles = find_teacher_double_bookings(rows)
        broken = find_broken_lab_sessions(rows)
        over = find_overbooked_assignments(rows)
        if not (doubles or broken or over):
            st.success("No teacher double bookings, broken lab sessions or overbooked subjects.")
        for label, found in [("Teacher double bookings", doubles), ("Broken lab sessions", broken), ("Overbooked", over)]:
            if found:
                st.error(label)
                st.dataframe(pd.DataFrame(found), use_container_width=True)

        st.caption("Lab sessions (periods shown 1-indexed)")
        for cname, blocks in lab_scheduling_summary(rows).items():
            st.markdown(f"**{cname}**")
            st.dataframe(pd.DataFrame(blocks), use_container_width=True, hide_index=True)


def main() -> None:
    setup_logging()
    st.title("Class Timetable")

    options, skip_unchanged, run, clear = _controls()

    if clear:
        with db_session() as conn:
            removed = clear_all(SqliteTimetableStore(conn))
        st.success(f"Cleared {removed} timetable slots.")
    if run:
        _generate(options, skip_unchanged)

    with db_session() as conn:
        try:
            settings = ScheduleSettings.from_row(crud.get_settings(conn))
        except ConfigurationError as exc:
            st.error(f"Settings are invalid: {exc}")
            return
        rows = crud.list_timetable_rows(conn)
        class_names = crud.list_class_names(conn)
        teachers = crud.list_teachers(conn)

    if not rows:
        st.info("No timetable yet. Generate one above.")
        return

    st.divider()
    view = st.radio("View", options=["By class", "By teacher"], horizontal=True)
    if view == "By class":
        cname = st.selectbox("Class section", options=class_names)
        df = section_timetable_df(settings=settings, rows=rows, class_name=cname)
        title = f"Class {cname}"
    else:
        labels = {f"{t['name']} ({t['id']})": int(t["id"]) for t in teachers}
        who = st.selectbox("Teacher", options=list(labels))
        df = teacher_timetable_df(settings=settings, rows=rows, teacher_id=labels[who])
        title = f"Timetable - {who}"

    st.dataframe(df, use_container_width=True, hide_index=True)

    d1, d2, d3, d4 = st.columns(4)
    d1.download_button(
        "Download Excel",
        data=timetable_workbook_bytes(settings=settings, rows=rows, teachers=teachers),
        file_name="timetable.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
    d2.download_button(
        "Download ZIP",
        data=timetable_zip_bytes(settings=settings, rows=rows, teachers=teachers),
        file_name="timetable.zip",
        mime="application/zip",
    )
    d3.download_button(
        "Download PNG",
        data=df_to_png_bytes(df, options=ImageExportOptions(title=title)),
        file_name="timetable.png",
        mime="image/png",
    )
    d4.download_button(
        "Download Markdown",
        data=df_to_markdown(df).encode("utf-8"),
        file_name="timetable.md",
        mime="text/markdown",
    )

    _verification(rows)


if __name__ == "__main__":
    main()
