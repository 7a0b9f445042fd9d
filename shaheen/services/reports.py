"""Student-facing Excel exports: attendance matrix, chilla reports, certificates, winners."""
from datetime import date
import logging
from pathlib import Path
import re
from typing import Any, Iterable, Mapping, Optional

import pandas as pd
from openpyxl.styles import Font

from shaheen.errors import InvalidTimestamp
from shaheen.models.chilla import ChillaPeriod
from shaheen.services.attendance_window import (
    AttendanceTier,
    AttendanceWindowEngine,
    WindowSummary,
    by_student,
    group_by_subject,
)
from shaheen.services.excel import (
    CENTER,
    column_cells,
    mean2,
    open_writer,
    paint,
    percent_style,
    solid,
    write_frame,
)
from shaheen.services.loaders import (
    certificates_by_student,
    events_between,
    events_for_windows,
    students_by_id,
    students_for,
)
from shaheen.services.local_time import IST_OFFSET_MINUTES, format_local, iter_days, local_date, today_local
from shaheen.services.normalize import (
    as_text,
    first_present,
    location_of,
    location_sort_key,
    masjid_display,
    title_case,
)
from shaheen.store.base import KEY_FIELD, USERS, VOLUNTEER_WINNERS, WINNERS, Store

logger = logging.getLogger(__name__)

MATRIX_PRESENT = "FF92D050"
MATRIX_ABSENT = "FFFF6B6B"
MATRIX_IDENTITY = ["Student ID", "Name", "Guardian Name", "Guardian Number", "Class", "Masjid", "Cluster"]

UNKNOWN = "Unknown"


def cluster_sort_key(cluster: Any) -> tuple:
    """Numeric clusters in numeric order, then text clusters, "Unknown" last."""
    text = as_text(cluster)
    if not text or text == UNKNOWN:
        return (2, 0, "")
    if text.isdigit():
        return (0, int(text), text)
    return (1, 0, text.casefold())


def window_filename(period: ChillaPeriod, prefix: str = "") -> str:
    return f"{prefix}{period.slug}_attendance_{period.start:%d%b%y}_{period.end:%d%b%y}.xlsx"


def _event_day(event: Mapping, offset_minutes: int) -> Optional[date]:
    try:
        return local_date(event.get("attendance_time"), offset_minutes)
    except InvalidTimestamp as e:
        logger.warning("Skipping attendance %s: %s", event.get(KEY_FIELD), e)
        return None


def _date_text(value: Any, offset_minutes: int = IST_OFFSET_MINUTES) -> str:
    if value is None or value == "":
        return ""
    try:
        return format_local(value, "%Y-%m-%d", offset_minutes)
    except InvalidTimestamp:
        return as_text(value)


# --- Attendance matrix -------------------------------------------------------


def attendance_matrix_frame(
    events: Iterable[Mapping],
    students: Mapping[str, Optional[Mapping]],
    start: date,
    end: date,
    offset_minutes: int = IST_OFFSET_MINUTES,
) -> pd.DataFrame:
    """One row per student seen in ``events``: identity columns, P/A per day, total."""
    day_keys = [d.isoformat() for d in iter_days(start, end)]
    rows: dict[str, dict] = {}
    present: dict[str, set] = {}
    for event in events:
        student_id = as_text(event.get("studentId"))
        if not student_id:
            continue
        day = _event_day(event, offset_minutes)
        if day is None:
            continue
        if student_id not in rows:
            student = students.get(student_id) or {}
            _, masjid, cluster = location_of(event, student)
            rows[student_id] = {
                "Student ID": student_id,
                "Name": title_case(as_text(first_present(event, ("name",)) or student.get("name"))),
                "Guardian Name": title_case(as_text(student.get("guardianName"))),
                "Guardian Number": as_text(event.get("guardianNumber") or student.get("guardianNumber")),
                "Class": as_text(event.get("class") or student.get("class")),
                "Masjid": title_case(masjid) or "Unknown Masjid",
                "Cluster": cluster,
            }
            present[student_id] = set()
        if start <= day <= end:
            present[student_id].add(day.isoformat())

    ordered = sorted(rows.values(), key=lambda r: location_sort_key(r["Cluster"], r["Masjid"], r["Name"]))
    records = []
    for row in ordered:
        days = present[row["Student ID"]]
        records.append(
            {**row, **{k: "P" if k in days else "A" for k in day_keys}, "Total Present": len(days)}
        )
    return pd.DataFrame(records, columns=[*MATRIX_IDENTITY, *day_keys, "Total Present"])


async def export_attendance_matrix(
    store: Store,
    start: date,
    end: date,
    out_dir: Path,
    offset_minutes: int = IST_OFFSET_MINUTES,
    sheet_name: str = "Special Program Attendance",
) -> Optional[Path]:
    events = await events_between(store, start, end, offset_minutes)
    if not events:
        logger.warning("No attendance found in the given window")
        return None
    student_ids = list(dict.fromkeys(as_text(e.get("studentId")) for e in events if e.get("studentId")))
    students = await students_for(store, student_ids)
    df = attendance_matrix_frame(events, students, start, end, offset_minutes)

    day_count = len(df.columns) - len(MATRIX_IDENTITY) - 1
    path = out_dir / f"student_attendance_styled_{start.isoformat()}_to_{end.isoformat()}.xlsx"
    with open_writer(path) as writer:
        ws = write_frame(writer, df, sheet_name, [20, 22, 22, 18, 10, 38, 10, *[12] * day_count, 14], header_fill=None)
        ws.freeze_panes = "H2"
        first_day_col = len(MATRIX_IDENTITY) + 1
        for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
            row[6].alignment = CENTER
            for cell in row[first_day_col - 1 : first_day_col - 1 + day_count]:
                cell.alignment = CENTER
                cell.font = Font(bold=True)
                cell.fill = solid(MATRIX_PRESENT if cell.value == "P" else MATRIX_ABSENT)
            total = row[first_day_col - 1 + day_count]
            total.alignment = CENTER
            total.font = Font(bold=True)
    logger.info("Attendance matrix exported: %s (%d students, %d date columns)", path, len(df), day_count)
    return path


# --- Student chilla reports --------------------------------------------------


def tier_breakdown(summaries: Iterable[WindowSummary]) -> dict[str, int]:
    summaries = list(summaries)
    tiers = [s.tier for s in summaries]
    return {
        "100% Attendance": tiers.count(AttendanceTier.PERFECT),
        "80-99% Attendance": tiers.count(AttendanceTier.EXCELLENT) + tiers.count(AttendanceTier.GOOD),
        "50-79% Attendance": tiers.count(AttendanceTier.FAIR) + tiers.count(AttendanceTier.LOW),
        "Below 50% Attendance": tiers.count(AttendanceTier.POOR),
        "0% Attendance (No Show)": sum(1 for s in summaries if s.days_present == 0),
    }


def _subjects_from_events(events: Iterable[Mapping]) -> dict[str, dict]:
    """Student stand-ins built from the first event of each student."""
    subjects: dict[str, dict] = {}
    for event in events:
        student_id = as_text(event.get("studentId"))
        if student_id and student_id not in subjects:
            subjects[student_id] = {
                KEY_FIELD: student_id,
                "name": event.get("name"),
                "guardianNumber": event.get("guardianNumber"),
                "masjid_details": event.get("masjid_details"),
            }
    return subjects


def student_chilla_frame(
    period: ChillaPeriod,
    students: Mapping[str, Mapping],
    events: Iterable[Mapping],
    engine: AttendanceWindowEngine,
) -> tuple[pd.DataFrame, list[WindowSummary]]:
    by_id = engine.summarize_all(period, group_by_subject(events, by_student), students)
    rows = []
    for student_id, student in students.items():
        summary = by_id[student_id]
        masjid_id, masjid_name, cluster = location_of(student)
        rows.append(
            {
                "Student ID": student_id,
                "Name": as_text(student.get("name")) or UNKNOWN,
                "Guardian Number": as_text(student.get("guardianNumber")),
                "Masjid Name": masjid_name,
                "Masjid ID": masjid_id,
                "Cluster Number": cluster,
                "Total Days": summary.total_days,
                "Days Attended": summary.days_present,
                "Days Absent": summary.days_absent,
                "Attendance %": summary.attendance_percentage,
                "Eligible": "Yes" if summary.eligible else "No",
            }
        )
    rows.sort(key=lambda r: location_sort_key(r["Cluster Number"], r["Masjid Name"], r["Name"]))
    columns = [
        "Student ID", "Name", "Guardian Number", "Masjid Name", "Masjid ID", "Cluster Number",
        "Total Days", "Days Attended", "Days Absent", "Attendance %", "Eligible",
    ]
    return pd.DataFrame(rows, columns=columns), list(by_id.values())


def cluster_summary_frame(df: pd.DataFrame, cluster_col: str, pct_col: str, count_label: str) -> pd.DataFrame:
    clusters: dict[str, list[float]] = {}
    for cluster, pct in zip(df[cluster_col], df[pct_col]):
        clusters.setdefault(as_text(cluster) or UNKNOWN, []).append(float(pct))
    rows = [
        {cluster_col: cluster, count_label: len(values), "Average Attendance %": mean2(values)}
        for cluster, values in sorted(clusters.items(), key=lambda item: cluster_sort_key(item[0]))
    ]
    return pd.DataFrame(rows, columns=[cluster_col, count_label, "Average Attendance %"])


def _metrics_frame(metrics: list[tuple[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(metrics, columns=["Metric", "Value"])


def _paint_percentages(ws, col: int) -> None:
    for cell in column_cells(ws, col):
        if cell.value is None:
            continue
        cell.number_format = "0.00"
        paint(cell, percent_style(float(cell.value)))


async def export_student_chilla_reports(
    store: Store,
    windows: list[ChillaPeriod],
    engine: AttendanceWindowEngine,
    out_dir: Path,
) -> list[Path]:
    """One workbook per window: per-student sheet, summary statistics, cluster summary."""
    students = await students_by_id(store)
    events = await events_for_windows(store, windows, engine.offset_minutes)
    if not students:
        logger.info("No student documents, extracting students from attendance records")
        students = _subjects_from_events(events)

    paths = []
    for period in windows:
        df, summaries = student_chilla_frame(period, students, events, engine)
        total_days = summaries[0].total_days if summaries else 0
        avg = mean2([s.attendance_percentage for s in summaries])
        metrics = [
            ("Total Students", len(summaries)),
            ("Total Days in Period", total_days),
            ("Average Attendance %", avg),
            ("Eligible Students", sum(1 for s in summaries if s.eligible)),
            ("", ""),
            *tier_breakdown(summaries).items(),
        ]

        path = out_dir / window_filename(period)
        with open_writer(path) as writer:
            ws = write_frame(writer, df, period.name, [40, 25, 18, 30, 30, 15, 12, 15, 12, 15, 10])
            _paint_percentages(ws, df.columns.get_loc("Attendance %") + 1)
            write_frame(writer, _metrics_frame(metrics), "Summary Statistics", [35, 15])
            write_frame(
                writer,
                cluster_summary_frame(df, "Cluster Number", "Attendance %", "Total Students"),
                "Cluster Summary",
                [20, 18, 20],
            )
        logger.info(
            "%s report created: %s (students: %d, average attendance: %.2f%%)",
            period.name,
            path,
            len(summaries),
            avg,
        )
        paths.append(path)
    return paths


# --- Certificates by count ---------------------------------------------------


def certificate_holders(
    certificates: Mapping[str, list[Mapping]], offset_minutes: int = IST_OFFSET_MINUTES
) -> list[dict]:
    """Per student: identity from the first certificate, sorted completion dates."""
    holders = []
    for student_id, certs in certificates.items():
        first = certs[0]
        masjid_id, masjid_name, cluster = location_of(*certs)
        holders.append(
            {
                "studentId": student_id,
                "name": as_text(first.get("name")),
                "dob": _date_text(first.get("dob"), offset_minutes),
                "guardianNumber": as_text(first.get("guardianNumber")),
                "masjidName": masjid_name,
                "masjidId": masjid_id,
                "clusterNumber": cluster,
                "dates": sorted(_date_text(c.get("time"), offset_minutes) for c in certs),
            }
        )
    holders.sort(key=lambda h: location_sort_key(h["clusterNumber"], h["masjidName"], h["name"]))
    return holders


def count_by_cluster(holders: list[dict]) -> pd.DataFrame:
    counts: dict[str, int] = {}
    for h in holders:
        key = h["clusterNumber"] or UNKNOWN
        counts[key] = counts.get(key, 0) + 1
    rows = [{"Cluster": c, "Students": n} for c, n in sorted(counts.items(), key=lambda i: cluster_sort_key(i[0]))]
    rows.append({"Cluster": "TOTAL", "Students": len(holders)})
    return pd.DataFrame(rows, columns=["Cluster", "Students"])


def count_by_masjid(holders: list[dict]) -> pd.DataFrame:
    masjids: dict[str, dict] = {}
    for h in holders:
        key = h["masjidId"] or UNKNOWN
        entry = masjids.setdefault(
            key,
            {
                "Masjid Name": h["masjidName"] or UNKNOWN,
                "Masjid Cluster": h["clusterNumber"] or UNKNOWN,
                "Masjid ID": key,
                "Students": 0,
            },
        )
        entry["Students"] += 1
    rows = sorted(masjids.values(), key=lambda m: (m["Masjid Name"] == UNKNOWN, m["Masjid Name"].casefold()))
    rows.append(
        {
            "Masjid Name": "TOTAL",
            "Masjid Cluster": "",
            "Masjid ID": f"{len(masjids)} Masjids",
            "Students": len(holders),
        }
    )
    return pd.DataFrame(rows, columns=["Masjid Name", "Masjid Cluster", "Masjid ID", "Students"])


def holders_frame(holders: list[dict]) -> pd.DataFrame:
    rows = []
    for h in holders:
        row = {k: v for k, v in h.items() if k != "dates"}
        for i, completed_on in enumerate(h["dates"], start=1):
            row[f"chillaCompletedOn_{i}"] = completed_on
        rows.append(row)
    return pd.DataFrame(rows)


async def export_certificates_by_count(
    store: Store, out_dir: Path, offset_minutes: int = IST_OFFSET_MINUTES
) -> dict[int, Path]:
    """One workbook per exact certificate count."""
    certificates = await certificates_by_student(store)
    if not certificates:
        logger.warning("No certificates found")
        return {}
    by_count: dict[int, list[dict]] = {}
    for holder in certificate_holders(certificates, offset_minutes):
        by_count.setdefault(len(holder["dates"]), []).append(holder)

    paths = {}
    for count in sorted(by_count):
        holders = by_count[count]
        logger.info("%d certificate(s): %d students", count, len(holders))
        path = out_dir / f"students_{count}_certificate{'s' if count > 1 else ''}.xlsx"
        with open_writer(path) as writer:
            write_frame(writer, holders_frame(holders), "Students", header_fill=None)
            write_frame(writer, count_by_cluster(holders), "Count by Cluster", header_fill=None)
            write_frame(writer, count_by_masjid(holders), "Count by Masjid", header_fill=None)
        logger.info("Saved: %s", path)
        paths[count] = path
    return paths


# --- Winners -----------------------------------------------------------------


def winners_frame(winners: Iterable[Mapping], certificates: Mapping[str, list[Mapping]]) -> pd.DataFrame:
    """Winners with their count of certificates outside the special program."""
    rows = []
    for winner in winners:
        student_id = as_text(winner.get("id"))
        regular = [c for c in certificates.get(student_id, []) if c.get("special_program") is not True]
        rows.append(
            {
                "Name": title_case(re.sub(r"\s+", " ", as_text(winner.get("name")))),
                "GuardianName": title_case(as_text(winner.get("guardianName"))),
                "GuardianNumber": as_text(winner.get("guardianNumber")) or "N/A",
                "StudentId": student_id,
                "ClusterNumber": as_text(winner.get("clusterNumber")),
                "MasjidName": title_case(as_text(winner.get("masjidName"))),
                "Prize": winner.get("prize"),
                "CertificatesCount": len(regular),
            }
        )
    columns = [
        "Name", "GuardianName", "GuardianNumber", "StudentId",
        "ClusterNumber", "MasjidName", "Prize", "CertificatesCount",
    ]
    return pd.DataFrame(rows, columns=columns)


async def export_winners(store: Store, out_dir: Path) -> Optional[Path]:
    winners = await store.query(WINNERS)
    if not winners:
        logger.warning("No winners data found")
        return None
    certificates = await certificates_by_student(store)
    logger.info("Fetched certificates for %d students", len(certificates))
    df = winners_frame(winners, certificates)
    path = out_dir / "winners_data.xlsx"
    with open_writer(path) as writer:
        write_frame(writer, df, "Winners", header_fill=None)
    logger.info("Winners data saved to: %s (%d records)", path, len(df))
    return path


def volunteer_winner_row(user: Optional[Mapping]) -> dict:
    if user is None:
        return {"Name": UNKNOWN, "Phone Number": "", "Masjid Name": "Unknown Masjid", "Cluster Number": ""}
    _, masjid, cluster = location_of(user)
    return {
        "Name": title_case(as_text(first_present(user, ("name", "displayName"), "Unnamed"))),
        "Phone Number": as_text(first_present(user, ("phone_number", "phone", "phoneNumber"), "")),
        "Masjid Name": title_case(masjid or masjid_display(user)) or "Unknown Masjid",
        "Cluster Number": cluster,
    }


async def export_volunteer_winners(store: Store, out_dir: Path, today: Optional[date] = None) -> Optional[Path]:
    winners = await store.query(VOLUNTEER_WINNERS, [("type", "==", "volunteer")])
    if not winners:
        logger.warning("No volunteer winners found")
        return None
    missing = [w[KEY_FIELD] for w in winners if not w.get("id")]
    if missing:
        logger.warning("%s docs missing field 'id': %s", VOLUNTEER_WINNERS, missing[:10])
    user_ids = list(dict.fromkeys(as_text(w["id"]) for w in winners if w.get("id")))
    users = await store.get_many(USERS, user_ids)
    df = pd.DataFrame(
        [volunteer_winner_row(u) for u in users],
        columns=["Name", "Phone Number", "Masjid Name", "Cluster Number"],
    )
    path = out_dir / f"volunteer_winners_{(today or today_local()).isoformat()}.xlsx"
    with open_writer(path) as writer:
        write_frame(writer, df, "Volunteer Winners", [28, 20, 28, 16], header_fill=None)
    logger.info("Volunteer winners exported to: %s (%d rows)", path, len(df))
    return path


# --- Daily views -------------------------------------------------------------


async def export_todays_attendance(
    store: Store, out_dir: Path, day: Optional[date] = None, offset_minutes: int = IST_OFFSET_MINUTES
) -> Optional[Path]:
    day = day or today_local(offset_minutes)
    events = await events_between(store, day, day, offset_minutes)
    if not events:
        logger.info("No attendance records found for %s", day)
        return None
    rows = []
    for event in events:
        _, masjid, cluster = location_of(event)
        rows.append({"Name": as_text(event.get("name")), "Masjid": masjid, "Cluster": cluster})
    path = out_dir / f"attendance_{day.isoformat()}.xlsx"
    with open_writer(path) as writer:
        write_frame(writer, pd.DataFrame(rows, columns=["Name", "Masjid", "Cluster"]), "Today Attendance", header_fill=None)
    logger.info("Attendance exported to: %s", path)
    return path


def attendance_calendar_frame(
    events: Iterable[Mapping], start: date, end: date, offset_minutes: int = IST_OFFSET_MINUTES
) -> pd.DataFrame:
    """Every day in [start, end] with the local time of attendance, or absent."""
    times: dict[date, str] = {}
    for event in events:
        day = _event_day(event, offset_minutes)
        if day is None:
            continue
        times[day] = format_local(event["attendance_time"], "%I:%M %p", offset_minutes)
    rows = [
        {"Date": d.isoformat(), "Time": times.get(d, ""), "Status": "P" if d in times else "A"}
        for d in iter_days(start, end)
    ]
    return pd.DataFrame(rows, columns=["Date", "Time", "Status"])


async def export_student_calendar(
    store: Store,
    student_id: str,
    start: date,
    out_dir: Path,
    end: Optional[date] = None,
    offset_minutes: int = IST_OFFSET_MINUTES,
) -> Path:
    end = end or today_local(offset_minutes)
    events = await events_between(store, start, end, offset_minutes, [("studentId", "==", student_id)])
    df = attendance_calendar_frame(events, start, end, offset_minutes)
    path = out_dir / f"attendance_calendar_{student_id}.xlsx"
    with open_writer(path) as writer:
        ws = write_frame(writer, df, "Attendance", [15, 15, 10], header_fill=None)
        for cell in column_cells(ws, 3):
            if cell.value == "P":
                cell.fill = solid("00FF00")
                cell.font = Font(bold=True)
            else:
                cell.fill = solid("FF0000")
                cell.font = Font(bold=True, color="FFFFFF")
    logger.info("Attendance calendar created: %s", path)
    return path
