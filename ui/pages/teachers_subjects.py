"""Teachers & Subjects page (CRUD).

Subjects carry their weekly hours, semester, lab flag and assigned teacher;
the generator places each subject for every section of its semester.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ui.database.db import db_session
from ui.database import crud


def _teachers_tab(teachers: list[dict]) -> None:
    with st.form("teacher_form", clear_on_submit=True):
        c1, c2 = st.columns(2)
        name = c1.text_input("Name", placeholder="e.g., Anita Rao")
        email = c2.text_input("Email (optional)")
        submitted = st.form_submit_button("Add teacher")

    if submitted:
        try:
            with db_session() as conn:
                crud.upsert_teacher(conn, name=name, email=email.strip() or None)
        except ValueError as exc:
            st.error(str(exc))
        else:
            st.success("Teacher saved.")
            st.rerun()

    if not teachers:
        st.info("No teachers yet.")
        return

    st.dataframe(pd.DataFrame(teachers), use_container_width=True, hide_index=True)
    labels = {f"{t['id']} - {t['name']}": int(t["id"]) for t in teachers}
    victim = st.selectbox("Delete teacher", options=["(none)"] + list(labels))
    if victim != "(none)" and st.button("Delete selected teacher"):
        with db_session() as conn:
            crud.delete_teacher(conn, labels[victim])
        st.success("Teacher deleted; their subjects are now unassigned.")
        st.rerun()


def _subjects_tab(subjects: list[dict], teachers: list[dict]) -> None:
    teacher_labels = {"(unassigned)": None}
    teacher_labels.update({f"{t['id']} - {t['name']}": int(t["id"]) for t in teachers})

    with st.form("subject_form"):
        c1, c2 = st.columns([1, 2])
        code = c1.text_input("Code", placeholder="e.g., CS301", help="Saving an existing code updates it.")
        name = c2.text_input("Name", placeholder="e.g., Data Structures")
        c3, c4, c5, c6 = st.columns(4)
        hours = c3.number_input("Hours per week", min_value=1, max_value=40, value=4)
        semester = c4.number_input("Semester", min_value=1, max_value=12, value=1)
        is_lab = c5.checkbox("Lab (double periods)")
        teacher = c6.selectbox("Teacher", options=list(teacher_labels))
        submitted = st.form_submit_button("Save subject")

    if submitted:
        try:
            with db_session() as conn:
                crud.upsert_subject(
                    conn,
                    code=code,
                    name=name,
                    hours_per_week=int(hours),
                    semester=int(semester),
                    is_lab=bool(is_lab),
                    teacher_id=teacher_labels[teacher],
                )
        except ValueError as exc:
            st.error(str(exc))
        else:
            st.success("Subject saved.")
            st.rerun()

    if not subjects:
        st.info("No subjects yet.")
        return

    df = pd.DataFrame(subjects)
    df["is_lab"] = df["is_lab"].astype(bool)
    st.dataframe(
        df[["id", "code", "name", "semester", "hours_per_week", "is_lab", "teacher_name"]],
        use_container_width=True,
        hide_index=True,
    )
    unassigned = [s["code"] for s in subjects if s.get("teacher_id") is None]
    if unassigned:
        st.warning(f"Subjects without a teacher are skipped during generation: {', '.join(unassigned)}")

    codes = {s["code"]: int(s["id"]) for s in subjects}
    victim = st.selectbox("Delete subject", options=["(none)"] + list(codes))
    if victim != "(none)" and st.button("Delete selected subject"):
        with db_session() as conn:
            crud.delete_subject(conn, codes[victim])
        st.success("Subject deleted.")
        st.rerun()


def main() -> None:
    st.title("Teachers & Subjects")

    with db_session() as conn:
        teachers = crud.list_teachers(conn)
        subjects = crud.list_subjects(conn)

    tab_teachers, tab_subjects = st.tabs(["Teachers", "Subjects"])
    with tab_teachers:
        _teachers_tab(teachers)
    with tab_subjects:
        _subjects_tab(subjects, teachers)


if __name__ == "__main__":
    main()
