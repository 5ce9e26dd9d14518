from __future__ import annotations

import io
import sys
import zipfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pandas as pd
from openpyxl import load_workbook

from modules.schedule_settings import BreakConfig, ScheduleSettings
from utils.timetable_export import (
    df_to_markdown,
    section_timetable_df,
    stats_frames,
    subject_load_df,
    teacher_timetable_df,
    timetable_workbook_bytes,
    timetable_zip_bytes,
)


SETTINGS = ScheduleSettings(
    working_days=("Monday", "Tuesday"),
    periods_per_day=4,
    lunch_break=BreakConfig(enabled=True, period=3),
    short_breaks=(BreakConfig(enabled=True, period=3), BreakConfig(enabled=True, period=1)),
)


def _row(class_name, day, period, code, *, teacher_id=1, is_lab=False):
    return {
        "assignment_id": 1,
        "class_name": class_name,
        "day": day,
        "period": period,
        "subject_code": code,
        "subject_name": code.title(),
        "is_lab": is_lab,
        "hours_per_week": 2,
        "teacher_id": teacher_id,
        "teacher_name": "Anita",
    }


ROWS = [
    _row("3A", "Monday", 1, "OS"),
    _row("3A", "Tuesday", 3, "NET", is_lab=True),
    _row("3B", "Monday", 3, "OS"),
    _row("3A", "Saturday", 1, "OS"),  # not a working day; ignored
]


def test_section_timetable_df_shows_breaks_and_subjects() -> None:
    df = section_timetable_df(settings=SETTINGS, rows=ROWS, class_name="3A")

    assert list(df.columns) == ["DAY", "1", "2", "3", "4"]
    assert list(df["DAY"]) == ["Monday", "Tuesday"]
    monday = df.iloc[0].tolist()
    assert monday == ["Monday", "Break", "OS (Anita)", "Lunch Break", ""]
    assert df.iloc[1]["4"] == "NET (Anita) [Lab]"


def test_teacher_timetable_df_names_the_class() -> None:
    df = teacher_timetable_df(settings=SETTINGS, rows=ROWS, teacher_id=1)
    assert df.iloc[0]["2"] == "OS - 3A"
    assert df.iloc[0]["4"] == "OS - 3B"


def test_workbook_has_one_sheet_per_class_and_teacher() -> None:
    data = timetable_workbook_bytes(
        settings=SETTINGS, rows=ROWS, teachers=[{"id": 1, "name": "Anita"}, {"id": 2, "name": "Idle"}]
    )
    wb = load_workbook(io.BytesIO(data))
    assert wb.sheetnames == ["Subject Load", "Class-3A", "Class-3B", "Staff-1-Anita"]


def test_zip_contains_workbook_and_csvs() -> None:
    data = timetable_zip_bytes(settings=SETTINGS, rows=ROWS, teachers=[{"id": 1, "name": "Anita"}])
    names = set(zipfile.ZipFile(io.BytesIO(data)).namelist())
    assert {"timetable.xlsx", "tables/timetable_slots.csv", "timetables/classes/3A.csv"} <= names


def test_subject_load_counts_placed_periods() -> None:
    df = subject_load_df(ROWS)
    os_3a = df[(df["class_name"] == "3A") & (df["subject_code"] == "OS")]
    assert int(os_3a["placed"].iloc[0]) == 2
    assert subject_load_df([]).empty


def test_stats_frames() -> None:
    frames = stats_frames({"total": 3, "by_day": {"Monday": 2, "Tuesday": 1}, "by_type": {"regular": 3, "lab": 0}})
    assert frames["by_day"]["slots"].sum() == 3
    assert list(frames["by_type"]["type"]) == ["regular", "lab"]


def test_df_to_markdown_basic() -> None:
    df = pd.DataFrame([["A", "B|C"], ["D", "E"]], columns=["Col1", "Col2"])
    md = df_to_markdown(df)
    assert "| Col1 | Col2 |" in md
    assert "| A | B\\|C |" in md
