from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from modules.schedule_settings import ScheduleSettings


Row = Mapping[str, Any]


def _safe_sheet_name(name: str) -> str:
    """Excel sheet names: max 31 chars, cannot contain: `: \\ / ? * [ ]`."""

    out = str(name or "Sheet")
    for b in [":", "\\", "/", "?", "*", "[", "]"]:
        out = out.replace(b, "-")
    out = out.strip() or "Sheet"
    return out[:31]


def _blank_table(settings: ScheduleSettings) -> List[List[str]]:
    """(days x periods) table with break labels already stamped in."""

    table = [[""] * settings.periods_per_day for _ in settings.working_days]
    for b in settings.break_slots():
        for row in table:
            # lunch comes first in break_slots() and keeps a shared period
            if not row[b.period]:
                row[b.period] = b.label
    return table


def _fill_table(settings: ScheduleSettings, rows: Iterable[Row], cell_text: Callable[[Row], str]) -> List[List[str]]:
    table = _blank_table(settings)
    day_idx = {d: i for i, d in enumerate(settings.working_days)}
    for r in rows:
        d = day_idx.get(str(r["day"]))
        p = int(r["period"])
        if d is None or not 0 <= p < settings.periods_per_day:
            continue
        table[d][p] = cell_text(r)
    return table


def _timetable_df_from_table(*, day_names: List[str], periods_per_day: int, table: List[List[str]]) -> pd.DataFrame:
    """Convert a (days x periods) table into a spreadsheet-style DataFrame (periods shown 1-indexed)."""

    df = pd.DataFrame(table, columns=[str(i) for i in range(1, int(periods_per_day) + 1)])
    df.insert(0, "DAY", day_names)
    return df


def _section_cell(r: Row) -> str:
    text = f"{r['subject_code']} ({r['teacher_name']})"
    return f"{text} [Lab]" if bool(r.get("is_lab")) else text


def _teacher_cell(r: Row) -> str:
    return f"{r['subject_code']} - {r['class_name']}"


def section_timetable_df(*, settings: ScheduleSettings, rows: Iterable[Row], class_name: str) -> pd.DataFrame:
    """Per-section timetable (days x periods) from joined slot rows."""

    mine = [r for r in rows if str(r["class_name"]) == str(class_name)]
    table = _fill_table(settings, mine, _section_cell)
    return _timetable_df_from_table(
        day_names=list(settings.working_days), periods_per_day=settings.periods_per_day, table=table
    )


def teacher_timetable_df(*, settings: ScheduleSettings, rows: Iterable[Row], teacher_id: int) -> pd.DataFrame:
    """Individual teacher timetable; each cell names the subject and class section."""

    mine = [r for r in rows if int(r["teacher_id"]) == int(teacher_id)]
    table = _fill_table(settings, mine, _teacher_cell)
    return _timetable_df_from_table(
        day_names=list(settings.working_days), periods_per_day=settings.periods_per_day, table=table
    )


def slot_level_df(rows: Iterable[Row]) -> pd.DataFrame:
    out = [
        {
            "class_name": r["class_name"],
            "day": r["day"],
            "period": int(r["period"]) + 1,
            "subject_code": r["subject_code"],
            "subject_name": r["subject_name"],
            "is_lab": bool(r.get("is_lab")),
            "teacher": r["teacher_name"],
        }
        for r in rows
    ]
    return pd.DataFrame(out, columns=["class_name", "day", "period", "subject_code", "subject_name", "is_lab", "teacher"])


def subject_load_df(rows: Iterable[Row]) -> pd.DataFrame:
    """Placed periods per (class, subject) next to the subject's weekly hours."""

    df = pd.DataFrame(list(rows))
    if df.empty:
        return pd.DataFrame(columns=["class_name", "subject_code", "hours_per_week", "placed"])
    g = (
        df.groupby(["class_name", "subject_code", "hours_per_week"], dropna=False)
        .size()
        .reset_index(name="placed")
        .sort_values(["class_name", "subject_code"])
    )
    return g


def timetable_workbook_bytes(
    *,
    settings: ScheduleSettings,
    rows: List[Row],
    teachers: List[Mapping[str, Any]],
) -> bytes:
    """Multi-sheet Excel workbook: load summary, one sheet per section, one per teacher."""

    # Pandas uses openpyxl to write .xlsx by default.
    out = io.BytesIO()
    class_names = sorted({str(r["class_name"]) for r in rows})

    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        subject_load_df(rows).to_excel(writer, sheet_name=_safe_sheet_name("Subject Load"), index=False)

        for cname in class_names:
            df = section_timetable_df(settings=settings, rows=rows, class_name=cname)
            header_df = pd.DataFrame([["CLASS", cname]], columns=["Field", "Value"])
            sheet = _safe_sheet_name(f"Class-{cname}")
            header_df.to_excel(writer, sheet_name=sheet, index=False, startrow=0)
            df.to_excel(writer, sheet_name=sheet, index=False, startrow=len(header_df) + 2)

        for t in sorted(teachers, key=lambda x: int(x["id"])):
            tid = int(t["id"])
            if not any(int(r["teacher_id"]) == tid for r in rows):
                continue
            df = teacher_timetable_df(settings=settings, rows=rows, teacher_id=tid)
            header_df = pd.DataFrame(
                [["TEACHER ID", tid], ["NAME", t.get("name", "")], ["EMAIL", t.get("email")]],
                columns=["Field", "Value"],
            )
            sheet = _safe_sheet_name(f"Staff-{tid}-{t.get('name', '')}")
            header_df.to_excel(writer, sheet_name=sheet, index=False, startrow=0)
            df.to_excel(writer, sheet_name=sheet, index=False, startrow=len(header_df) + 2)

    return out.getvalue()


def timetable_zip_bytes(
    *,
    settings: ScheduleSettings,
    rows: List[Row],
    teachers: List[Mapping[str, Any]],
) -> bytes:
    """ZIP with the workbook, a slot-level CSV and one CSV per class section."""

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as z:
        z.writestr("timetable.xlsx", timetable_workbook_bytes(settings=settings, rows=rows, teachers=teachers))
        z.writestr("tables/timetable_slots.csv", slot_level_df(rows).to_csv(index=False).encode("utf-8"))
        for cname in sorted({str(r["class_name"]) for r in rows}):
            df = section_timetable_df(settings=settings, rows=rows, class_name=cname)
            z.writestr(f"timetables/classes/{cname}.csv", df.to_csv(index=False).encode("utf-8"))
    return buf.getvalue()


@dataclass(frozen=True)
class ImageExportOptions:
    title: Optional[str] = None
    font_size: int = 9
    cell_height: float = 0.4
    cell_width: float = 1.4


def df_to_markdown(df: pd.DataFrame) -> str:
    """Convert DataFrame to a GitHub-flavored Markdown table."""

    # DataFrame.to_markdown needs tabulate; a table this simple is rendered by hand.
    cols = list(df.columns)
    rows = df.astype(str).values.tolist()

    def esc(s: str) -> str:
        return str(s).replace("\n", " ").replace("|", "\\|")

    lines = ["| " + " | ".join(esc(c) for c in cols) + " |", "| " + " | ".join(["---"] * len(cols)) + " |"]
    lines.extend("| " + " | ".join(esc(v) for v in r) + " |" for r in rows)
    return "\n".join(lines) + "\n"


def df_to_png_bytes(df: pd.DataFrame, *, options: ImageExportOptions = ImageExportOptions()) -> bytes:
    """Render a timetable DataFrame as a PNG image (bytes) with matplotlib's table artist."""

    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    nrows, ncols = df.shape
    fig, ax = plt.subplots(
        figsize=(max(6.0, options.cell_width * (ncols + 1)), max(2.0, options.cell_height * (nrows + 2)))
    )
    ax.axis("off")
    if options.title:
        ax.set_title(options.title, fontsize=options.font_size + 2, pad=12)

    tbl = ax.table(cellText=df.values, colLabels=list(df.columns), cellLoc="center", loc="center")
    tbl.auto_set_font_size(False)
    tbl.set_fontsize(options.font_size)
    tbl.scale(1.0, 1.4)

    for (r, _c), cell in tbl.get_celld().items():
        cell.set_linewidth(0.6)
        if r == 0:
            cell.set_facecolor("#f0f2f6")
            cell.set_text_props(weight="bold")

    buf = io.BytesIO()
    fig.tight_layout()
    fig.savefig(buf, format="png", dpi=200, bbox_inches="tight")
    plt.close(fig)
    return buf.getvalue()


def stats_frames(stats: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    """Dashboard tables from `crud.timetable_stats` output."""

    by_day = pd.DataFrame(list(stats.get("by_day", {}).items()), columns=["day", "slots"])
    by_type = pd.DataFrame(list(stats.get("by_type", {}).items()), columns=["type", "slots"])
    return {"by_day": by_day, "by_type": by_type}
