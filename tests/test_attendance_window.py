from datetime import date, datetime, timedelta, timezone

import pytest

from shaheen.models.chilla import ChillaPeriod
from shaheen.services.attendance_window import (
    AttendanceTier,
    AttendanceWindowEngine,
    attendance_percentage,
    bucket_days,
    by_student,
    by_tracker,
    classify,
    group_by_subject,
    is_eligible,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_bucketing_uses_local_day():
    # 20:00 UTC is 01:30 IST the next morning
    counts = bucket_days([utc(2025, 8, 1, 20, 0), utc(2025, 8, 1, 18, 29)])
    assert counts == {date(2025, 8, 2): 1, date(2025, 8, 1): 1}


def test_bucketing_accepts_strings_and_naive_datetimes():
    counts = bucket_days(["2025-08-01T01:00:00Z", datetime(2025, 8, 1, 2, 0)])
    assert counts == {date(2025, 8, 1): 2}


def test_invalid_timestamps_are_skipped(period):
    summary = AttendanceWindowEngine().summarize(period, [None, "not a time", object(), utc(2025, 8, 3, 1)])
    assert summary.days_present == 1
    assert summary.total_records_taken == 1


def test_records_outside_window_are_ignored(period):
    summary = AttendanceWindowEngine().summarize(period, [utc(2025, 7, 31, 12), utc(2025, 8, 11, 1)])
    assert summary.days_present == 0
    assert summary.attendance_percentage == 0.0
    assert summary.tier == AttendanceTier.POOR


def test_summary_counts_days_not_records(period):
    times = [utc(2025, 8, 1, 1), utc(2025, 8, 1, 2), utc(2025, 8, 1, 3), *(utc(2025, 8, d, 1) for d in range(2, 8))]
    summary = AttendanceWindowEngine().summarize(period, times)
    assert summary.total_days == 10
    assert summary.days_present == 7
    assert summary.days_absent == 3
    assert summary.total_records_taken == 9
    assert summary.avg_records_per_day == 1.29
    assert summary.attendance_percentage == 70.0
    assert summary.tier == AttendanceTier.FAIR
    assert summary.eligible
    assert summary.is_present(date(2025, 8, 1))
    assert not summary.is_present(date(2025, 8, 9))


def test_threshold_is_configurable(period):
    times = [utc(2025, 8, d, 1) for d in range(1, 8)]
    assert not AttendanceWindowEngine(threshold_percent=75).summarize(period, times).eligible


@pytest.mark.parametrize(
    "present, total, pct",
    [(0, 40, 0.0), (40, 40, 100.0), (1, 3, 33.33), (2, 3, 66.67), (1, 8, 12.5), (5, 0, 0.0)],
)
def test_attendance_percentage(present, total, pct):
    assert attendance_percentage(present, total) == pct


def test_percentage_rounds_half_up():
    # 0.125 -> 0.13, 0.5625 -> 0.56
    assert attendance_percentage(1, 800) == 0.13
    assert attendance_percentage(9, 1600) == 0.56


@pytest.mark.parametrize(
    "pct, tier",
    [
        (100.0, AttendanceTier.PERFECT),
        (99.99, AttendanceTier.EXCELLENT),
        (90.0, AttendanceTier.EXCELLENT),
        (89.99, AttendanceTier.GOOD),
        (80.0, AttendanceTier.GOOD),
        (70.0, AttendanceTier.FAIR),
        (69.99, AttendanceTier.LOW),
        (50.0, AttendanceTier.LOW),
        (49.99, AttendanceTier.POOR),
        (0.0, AttendanceTier.POOR),
    ],
)
def test_classify(pct, tier):
    assert classify(pct) == tier


def test_eligibility_boundary():
    assert is_eligible(70.0)
    assert not is_eligible(69.99)


def test_empty_window():
    period = ChillaPeriod(name="Backwards", start=date(2025, 8, 10), end=date(2025, 8, 1))
    summary = AttendanceWindowEngine().summarize(period, [])
    assert summary.total_days == 0
    assert summary.attendance_percentage == 0.0
    assert not summary.eligible


def test_group_by_subject():
    events = [
        {"studentId": "a", "attendance_time": 1, "tracked_by": {"userId": "v1"}},
        {"studentId": "b", "attendance_time": 2, "tracked_by": {"userId": "v1"}},
        {"studentId": "a", "attendance_time": 3},
        {"attendance_time": 4},
    ]
    assert group_by_subject(events, by_student) == {"a": [1, 3], "b": [2]}
    assert group_by_subject(events, by_tracker) == {"v1": [1, 2]}


def test_summarize_all_covers_known_subjects_only(period):
    grouped = {"a": [utc(2025, 8, 1, 1)], "system": [utc(2025, 8, 2, 1)]}
    summaries = AttendanceWindowEngine().summarize_all(period, grouped, subjects=["b", "a"])
    assert list(summaries) == ["b", "a"]
    assert summaries["b"].days_present == 0
    assert summaries["a"].days_present == 1


@pytest.mark.parametrize(
    "distinct_days, pct, tier, eligible",
    [
        (28, 70.0, AttendanceTier.FAIR, True),
        (27, 67.5, AttendanceTier.LOW, False),
    ],
)
def test_first_chilla_eligibility_boundary(distinct_days, pct, tier, eligible):
    chilla = ChillaPeriod(name="1st Chilla", start=date(2025, 8, 1), end=date(2025, 9, 9))
    days = [date(2025, 8, 1) + timedelta(days=i) for i in range(distinct_days)]
    times = [utc(d.year, d.month, d.day, 0, 30) for d in days]
    # a second record on the first day counts as a record, not a day
    times.append(utc(2025, 8, 1, 3, 0))

    summary = AttendanceWindowEngine().summarize(chilla, times)

    assert summary.total_days == 40
    assert summary.days_present == distinct_days
    assert summary.total_records_taken == distinct_days + 1
    assert summary.days_absent == 40 - distinct_days
    assert summary.attendance_percentage == pct
    assert summary.tier == tier
    assert summary.eligible is eligible
