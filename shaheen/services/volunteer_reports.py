"""Volunteer chilla reports: attendance is credited to whoever tracked the event."""
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

import pandas as pd
from openpyxl.styles import Font

from shaheen.models.chilla import ChillaPeriod
from shaheen.models.volunteer import Volunteer
from shaheen.services.attendance_window import (
    AttendanceWindowEngine,
    WindowSummary,
    bucket_days,
    by_tracker,
    group_by_subject,
)
from shaheen.services.excel import (
    CENTER,
    GREEN,
    RED,
    SUMMARY_FILL,
    column_cells,
    high_attendance_style,
    mean2,
    open_writer,
    paint,
    percent_style,
    solid,
    write_frame,
)
from shaheen.services.loaders import events_for_windows, volunteers_by_id
from shaheen.services.local_time import iter_days
from shaheen.services.reports import tier_breakdown, window_filename
from shaheen.store.base import Store

logger = logging.getLogger(__name__)

DETAIL_IDENTITY = ["Volunteer Name", "Hafiz?", "User ID", "Masjid", "Cluster"]


def yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def volunteer_summaries(
    period: ChillaPeriod,
    volunteers: Mapping[str, Volunteer],
    grouped: Mapping[str, list],
    engine: AttendanceWindowEngine,
) -> dict[str, WindowSummary]:
    return engine.summarize_all(period, grouped, volunteers)


def days_worked_overall(grouped: Mapping[str, list], offset_minutes: int) -> dict[str, int]:
    """Distinct local days each volunteer tracked attendance, across every window."""
    return {uid: len(bucket_days(times, None, offset_minutes)) for uid, times in grouped.items()}


def volunteer_row(volunteer: Volunteer, summary: WindowSummary) -> dict[str, Any]:
    return {
        "Volunteer User ID": volunteer.user_id,
        "Volunteer Name": volunteer.name,
        "Hafiz?": yes_no(volunteer.is_hafiz),
        "Email": volunteer.email,
        "Phone": volunteer.phone,
        "Masjid": volunteer.masjid,
        "Cluster": volunteer.cluster,
        "Total Days (This Period)": summary.total_days,
        "Days Worked": summary.days_present,
        "Days Absent": summary.days_absent,
        "Total Records Taken": summary.total_records_taken,
        "Avg Records/Day": summary.avg_records_per_day,
        "Attendance % (This Period)": summary.attendance_percentage,
    }


def _by_percentage(rows: list[dict], pct_col: str, name_col: str) -> list[dict]:
    return sorted(rows, key=lambda r: (-r[pct_col], r[name_col].casefold()))


def volunteer_chilla_frame(
    volunteers: Mapping[str, Volunteer],
    summaries: Mapping[str, WindowSummary],
    overall_days: Mapping[str, int],
) -> pd.DataFrame:
    rows = [
        {**volunteer_row(v, summaries[uid]), "Total Days (All Chillas)": overall_days.get(uid, 0)}
        for uid, v in volunteers.items()
    ]
    return pd.DataFrame(_by_percentage(rows, "Attendance % (This Period)", "Volunteer Name"))


def daily_activity_frame(
    period: ChillaPeriod,
    volunteers: Mapping[str, Volunteer],
    summaries: Mapping[str, WindowSummary],
) -> pd.DataFrame:
    """Calendar view: ``P (n)`` with the day's record count, or ``A``."""
    days = list(iter_days(period.start, period.end))
    rows = []
    for uid, v in volunteers.items():
        counts = summaries[uid].day_counts
        row = {"Volunteer Name": v.name, "Hafiz?": yes_no(v.is_hafiz), "User ID": uid, "Masjid": v.masjid, "Cluster": v.cluster}
        for d in days:
            n = counts.get(d, 0)
            row[d.isoformat()] = f"P ({n})" if n else "A"
        rows.append(row)
    return pd.DataFrame(rows, columns=[*DETAIL_IDENTITY, *(d.isoformat() for d in days)])


def volunteer_metrics(period: ChillaPeriod, summaries: Iterable[WindowSummary]) -> pd.DataFrame:
    summaries = list(summaries)
    records = sum(s.total_records_taken for s in summaries)
    metrics: list[tuple[str, Any]] = [
        (f"Volunteers in {period.name} Category", len(summaries)),
        ("Total Days in This Period", summaries[0].total_days if summaries else 0),
        ("Period Covered", f"{period.start.isoformat()} to {period.end.isoformat()}"),
        ("Average Attendance % (This Period)", mean2([s.attendance_percentage for s in summaries])),
        ("Total Records Taken (This Period)", records),
        ("Avg Records per Volunteer", mean2([records / len(summaries)]) if summaries else 0.0),
        ("Eligible Volunteers", sum(1 for s in summaries if s.eligible)),
        ("", ""),
    ]
    for label, count in tier_breakdown(summaries).items():
        metrics.append((label.replace("(No Show)", "(This Period)"), count))
    return pd.DataFrame(metrics, columns=["Metric", "Value"])


async def export_volunteer_chilla_reports(
    store: Store,
    windows: list[ChillaPeriod],
    engine: AttendanceWindowEngine,
    out_dir: Path,
) -> list[Path]:
    """One workbook per window: every volunteer, summary statistics, daily activity."""
    volunteers = await volunteers_by_id(store)
    if not volunteers:
        logger.warning("No volunteers found")
        return []
    events = await events_for_windows(store, windows, engine.offset_minutes)
    grouped = {uid: t for uid, t in group_by_subject(events, by_tracker).items() if uid in volunteers}
    overall = days_worked_overall(grouped, engine.offset_minutes)

    paths = []
    for period in windows:
        summaries = volunteer_summaries(period, volunteers, grouped, engine)
        df = volunteer_chilla_frame(volunteers, summaries, overall)
        detail = daily_activity_frame(period, volunteers, summaries)

        path = out_dir / window_filename(period, prefix="volunteer_")
        with open_writer(path) as writer:
            ws = write_frame(writer, df, period.name, [35, 25, 10, 30, 18, 25, 10, 20, 15, 12, 20, 18, 22, 22])
            for cell in column_cells(ws, df.columns.get_loc("Attendance % (This Period)") + 1):
                cell.number_format = "0.00"
                paint(cell, percent_style(float(cell.value)))
            write_frame(writer, volunteer_metrics(period, summaries.values()), "Summary Statistics", [40, 15])
            ws = write_frame(writer, detail, "Daily Activity Details", [25, 10, 35, 25, 10, *[12] * (len(detail.columns) - 5)])
            for row in ws.iter_rows(min_row=2, min_col=len(DETAIL_IDENTITY) + 1, max_row=ws.max_row):
                for cell in row:
                    cell.alignment = CENTER
                    paint(cell, RED if cell.value == "A" else GREEN)
        logger.info("%s volunteer report created: %s (%d volunteers)", period.name, path, len(df))
        paths.append(path)
    return paths


def high_attendance_rows(
    volunteers: Mapping[str, Volunteer], summaries: Mapping[str, WindowSummary]
) -> list[dict]:
    rows = []
    for uid, v in volunteers.items():
        summary = summaries[uid]
        if not summary.eligible:
            continue
        row = volunteer_row(v, summary)
        rows.append(
            {
                "Volunteer Name": row["Volunteer Name"],
                "Hafiz?": row["Hafiz?"],
                "Email": row["Email"],
                "Phone": row["Phone"],
                "Masjid": row["Masjid"],
                "Cluster": row["Cluster"],
                "Attendance %": summary.attendance_percentage,
                "Days Worked": summary.days_present,
                "Days Absent": summary.days_absent,
                "Total Days": summary.total_days,
                "Total Records": summary.total_records_taken,
                "Avg Records/Day": summary.avg_records_per_day,
                "User ID": uid,
            }
        )
    rows = _by_percentage(rows, "Attendance %", "Volunteer Name")
    return [{"S.No": i, **row} for i, row in enumerate(rows, start=1)]


def _append_summary(ws, period: ChillaPeriod, rows: list[dict], total_days: int, threshold: float) -> None:
    pcts = [r["Attendance %"] for r in rows]
    first = ws.max_row + 2
    ws.append([])
    label = f"{threshold:g}-100%"
    for name, value in [
        ("Summary:", ""),
        ("Period:", f"{period.start.isoformat()} to {period.end.isoformat()}"),
        ("Total Days:", total_days),
        (f"Total Volunteers ({label}):", len(rows)),
        ("100% Attendance:", sum(1 for p in pcts if p >= 100)),
        ("90-99% Attendance:", sum(1 for p in pcts if 90 <= p < 100)),
        ("80-89% Attendance:", sum(1 for p in pcts if 80 <= p < 90)),
        ("70-79% Attendance:", sum(1 for p in pcts if 70 <= p < 80)),
        ("Average Attendance:", f"{mean2(pcts):.2f}%"),
    ]:
        ws.append([name, value])
    for row in ws.iter_rows(min_row=first, max_row=ws.max_row, max_col=2):
        for cell in row:
            cell.font = Font(bold=True)
        row[0].fill = solid(SUMMARY_FILL)


async def export_high_attendance(
    store: Store,
    windows: list[ChillaPeriod],
    engine: AttendanceWindowEngine,
    out_dir: Path,
) -> Path:
    """Single workbook, one sheet per window, volunteers at or above the eligibility threshold."""
    volunteers = await volunteers_by_id(store)
    events = await events_for_windows(store, windows, engine.offset_minutes)
    grouped = {uid: t for uid, t in group_by_subject(events, by_tracker).items() if uid in volunteers}

    threshold = engine.threshold_percent
    path = out_dir / f"High_Attendance_Volunteers_{threshold:g}_to_100_Percent.xlsx"
    total = 0
    columns = [
        "S.No", "Volunteer Name", "Hafiz?", "Email", "Phone", "Masjid", "Cluster", "Attendance %",
        "Days Worked", "Days Absent", "Total Days", "Total Records", "Avg Records/Day", "User ID",
    ]
    with open_writer(path) as writer:
        for period in windows:
            summaries = volunteer_summaries(period, volunteers, grouped, engine)
            rows = high_attendance_rows(volunteers, summaries)
            logger.info("%s: %d volunteers with %g-100%% attendance", period.name, len(rows), threshold)
            ws = write_frame(
                writer,
                pd.DataFrame(rows, columns=columns),
                period.name,
                [8, 25, 10, 30, 18, 25, 10, 15, 15, 12, 12, 15, 18, 35],
            )
            for cell in column_cells(ws, columns.index("Attendance %") + 1):
                cell.number_format = "0.00"
                paint(cell, high_attendance_style(float(cell.value)))
            total_days = engine.summarize(period, ()).total_days
            _append_summary(ws, period, rows, total_days, threshold)
            total += len(rows)
    logger.info("High attendance report generated: %s (%d volunteers)", path, total)
    return path
