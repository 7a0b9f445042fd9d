from datetime import date, datetime, timezone

from openpyxl import load_workbook
import pytest

from shaheen.models.attendance import attendance_key
from shaheen.services import reports
from shaheen.services.attendance_window import AttendanceWindowEngine
from shaheen.store.base import ATTENDANCE, CERTIFICATES, STUDENTS, USERS, VOLUNTEER_WINNERS, WINNERS


def at(day: date, hour: int = 0, minute: int = 30) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def add_attendance(store, student_id, student, days):
    col = store.collections.setdefault(ATTENDANCE, {})
    for day in days:
        col[attendance_key(student_id, day)] = {
            "studentId": student_id,
            "attendance_time": at(day),
            "name": student["name"],
            "guardianNumber": student.get("guardianNumber"),
            "class": student.get("class"),
            "masjid_details": student["masjid_details"],
            "tracked_by": {"userId": "vol-1", "name": "Hafiz Salim"},
        }


@pytest.fixture
def attended(seeded_store):
    students = seeded_store.collections[STUDENTS]
    aug = [date(2025, 8, d) for d in range(1, 11)]
    add_attendance(seeded_store, "stu-1", students["stu-1"], aug[:8])
    add_attendance(seeded_store, "stu-2", students["stu-2"], aug[:3])
    return seeded_store


def fill_of(cell) -> str:
    return cell.fill.fgColor.rgb


def values(ws, min_row=2):
    return [["" if c.value is None else c.value for c in r] for r in ws.iter_rows(min_row=min_row)]


def test_cluster_sort_key():
    clusters = ["10", "Unknown", "2", "B", ""]
    assert sorted(clusters, key=reports.cluster_sort_key) == ["2", "10", "B", "Unknown", ""]


def test_window_filename(period):
    assert reports.window_filename(period, "volunteer_") == "volunteer_1st_chilla_attendance_01Aug25_10Aug25.xlsx"


def test_matrix_frame_sorted_by_location(attended):
    events = attended.collections[ATTENDANCE].values()
    df = reports.attendance_matrix_frame(
        events, attended.collections[STUDENTS], date(2025, 8, 1), date(2025, 8, 5)
    )
    assert list(df["Student ID"]) == ["stu-2", "stu-1"]
    assert list(df.columns[-6:]) == ["2025-08-01", "2025-08-02", "2025-08-03", "2025-08-04", "2025-08-05", "Total Present"]
    row = df.iloc[0]
    assert row["Name"] == "Zaid Ahmed"
    assert row["2025-08-03"] == "P"
    assert row["2025-08-04"] == "A"
    assert row["Total Present"] == 3


async def test_export_attendance_matrix(attended, tmp_path):
    path = await reports.export_attendance_matrix(attended, date(2025, 8, 1), date(2025, 8, 5), tmp_path)
    ws = load_workbook(path)["Special Program Attendance"]
    assert ws.freeze_panes == "H2"
    assert ws["H1"].value == "2025-08-01"
    assert ws["H1"].alignment.vertical == "center"
    assert ws["H2"].value == "P"
    assert fill_of(ws["H2"]).endswith("92D050")
    assert ws["K2"].value == "A"
    assert fill_of(ws["K2"]).endswith("FF6B6B")


async def test_export_attendance_matrix_without_events(seeded_store, tmp_path):
    assert await reports.export_attendance_matrix(seeded_store, date(2025, 8, 1), date(2025, 8, 5), tmp_path) is None


async def test_student_chilla_report(attended, period, tmp_path):
    [path] = await reports.export_student_chilla_reports(attended, [period], AttendanceWindowEngine(), tmp_path)
    assert path.name == "1st_chilla_attendance_01Aug25_10Aug25.xlsx"
    wb = load_workbook(path)
    assert wb.sheetnames == ["1st Chilla", "Summary Statistics", "Cluster Summary"]

    ws = wb["1st Chilla"]
    header = [c.value for c in ws[1]]
    pct_col = header.index("Attendance %")
    rows = [[c.value for c in r] for r in ws.iter_rows(min_row=2)]
    assert [r[0] for r in rows] == ["stu-2", "stu-1"]
    assert rows[1][pct_col] == 80
    assert rows[1][header.index("Eligible")] == "Yes"
    assert rows[0][header.index("Eligible")] == "No"
    assert fill_of(ws.cell(row=3, column=pct_col + 1)).endswith("C6EFCE")
    assert fill_of(ws.cell(row=2, column=pct_col + 1)).endswith("FFC7CE")

    metrics = {r[0].value: r[1].value for r in wb["Summary Statistics"].iter_rows(min_row=2) if r[0].value}
    assert metrics["Total Students"] == 2
    assert metrics["Eligible Students"] == 1
    assert metrics["Average Attendance %"] == 55
    assert metrics["80-99% Attendance"] == 1
    assert metrics["Below 50% Attendance"] == 1

    clusters = [[c.value for c in r] for r in wb["Cluster Summary"].iter_rows(min_row=2)]
    assert clusters == [["1", 1, 30], ["3", 1, 80]]


async def test_certificates_by_count(seeded_store, tmp_path):
    details = seeded_store.collections[STUDENTS]["stu-1"]["masjid_details"]
    seeded_store.collections[CERTIFICATES] = {
        "stu-1_cycle2": {"studentId": "stu-1", "name": "ayaan khan", "masjid_details": details, "time": at(date(2025, 10, 20))},
        "stu-1_cycle1": {"studentId": "stu-1", "name": "ayaan khan", "masjid_details": details, "time": at(date(2025, 9, 9))},
        "stu-2_cycle1": {"studentId": "stu-2", "name": "zaid ahmed", "time": at(date(2025, 9, 9), 20)},
        "orphan": {"name": "nobody"},
    }

    paths = await reports.export_certificates_by_count(seeded_store, tmp_path)

    assert sorted(paths) == [1, 2]
    assert paths[1].name == "students_1_certificate.xlsx"
    assert paths[2].name == "students_2_certificates.xlsx"
    wb = load_workbook(paths[2])
    assert wb.sheetnames == ["Students", "Count by Cluster", "Count by Masjid"]
    header = [c.value for c in wb["Students"][1]]
    row = [c.value for c in wb["Students"][2]]
    assert row[header.index("chillaCompletedOn_1")] == "2025-09-09"
    assert row[header.index("chillaCompletedOn_2")] == "2025-10-20"

    # 20:00 UTC on 9 September completes on 10 September in IST
    single = load_workbook(paths[1])
    header = [c.value for c in single["Students"][1]]
    assert [c.value for c in single["Students"][2]][header.index("chillaCompletedOn_1")] == "2025-09-10"
    assert values(single["Count by Masjid"]) == [["Unknown", "Unknown", "Unknown", 1], ["TOTAL", "", "1 Masjids", 1]]


def test_count_by_cluster_total_row():
    holders = [{"clusterNumber": "2"}, {"clusterNumber": "10"}, {"clusterNumber": "2"}, {"clusterNumber": ""}]
    df = reports.count_by_cluster(holders)
    assert df.values.tolist() == [["2", 2], ["10", 1], ["Unknown", 1], ["TOTAL", 4]]


async def test_export_winners(store, tmp_path):
    store.collections[WINNERS] = {
        "w1": {"id": "stu-1", "name": "ayaan   KHAN", "prize": "Cycle"},
    }
    store.collections[CERTIFICATES] = {
        "c1": {"studentId": "stu-1", "time": at(date(2025, 9, 9))},
        "c2": {"studentId": "stu-1", "time": at(date(2025, 10, 20)), "special_program": True},
    }
    path = await reports.export_winners(store, tmp_path)
    ws = load_workbook(path)["Winners"]
    header = [c.value for c in ws[1]]
    row = dict(zip(header, (c.value for c in ws[2])))
    assert row["Name"] == "Ayaan Khan"
    assert row["GuardianNumber"] == "N/A"
    assert row["CertificatesCount"] == 1


async def test_export_volunteer_winners(store, tmp_path):
    store.collections[VOLUNTEER_WINNERS] = {
        "a": {"id": "vol-1", "type": "volunteer"},
        "b": {"id": "missing", "type": "volunteer"},
        "c": {"id": "stu-9", "type": "student"},
    }
    store.collections[USERS] = {
        "vol-1": {"name": "hafiz salim", "phone_number": "99", "assignedMasjid": {"masjidName": "noor masjid"}},
    }
    path = await reports.export_volunteer_winners(store, tmp_path, today=date(2025, 12, 1))
    assert path.name == "volunteer_winners_2025-12-01.xlsx"
    rows = values(load_workbook(path)["Volunteer Winners"])
    assert rows == [["Hafiz Salim", "99", "Noor Masjid", ""], ["Unknown", "", "Unknown Masjid", ""]]


async def test_todays_attendance(attended, tmp_path):
    path = await reports.export_todays_attendance(attended, tmp_path, day=date(2025, 8, 2))
    rows = [[c.value for c in r] for r in load_workbook(path)["Today Attendance"].iter_rows(min_row=2)]
    assert sorted(r[0] for r in rows) == ["ayaan khan", "zaid ahmed"]
    assert await reports.export_todays_attendance(attended, tmp_path, day=date(2025, 8, 20)) is None


async def test_student_calendar(attended, tmp_path):
    path = await reports.export_student_calendar(
        attended, "stu-2", date(2025, 8, 2), tmp_path, end=date(2025, 8, 4)
    )
    ws = load_workbook(path)["Attendance"]
    assert values(ws) == [["2025-08-02", "06:00 AM", "P"], ["2025-08-03", "06:00 AM", "P"], ["2025-08-04", "", "A"]]
    assert fill_of(ws["C2"]).endswith("00FF00")
    assert fill_of(ws["C4"]).endswith("FF0000")


def test_calendar_frame_covers_every_day():
    df = reports.attendance_calendar_frame([], date(2025, 8, 1), date(2025, 8, 3))
    assert list(df["Status"]) == ["A", "A", "A"]
