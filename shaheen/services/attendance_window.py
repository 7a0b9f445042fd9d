"""Chilla-window attendance: per-day presence, percentage, tier and eligibility.

Everything here is pure: no store access, safe to call repeatedly over
independent subjects.
"""
from collections import Counter
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from shaheen.errors import InvalidTimestamp
from shaheen.models.chilla import ChillaPeriod
from shaheen.services.local_time import IST_OFFSET_MINUTES, days_between_inclusive, local_date
from shaheen.store.base import lookup

logger = logging.getLogger(__name__)

DEFAULT_ELIGIBILITY_THRESHOLD = 70.0


class AttendanceTier(str, Enum):
    PERFECT = "100"
    EXCELLENT = "90-99"
    GOOD = "80-89"
    FAIR = "70-79"
    LOW = "50-69"
    POOR = "0-49"


# evaluated high-to-low; first lower bound reached wins
_TIER_FLOORS = (
    (Decimal("90"), AttendanceTier.EXCELLENT),
    (Decimal("80"), AttendanceTier.GOOD),
    (Decimal("70"), AttendanceTier.FAIR),
    (Decimal("50"), AttendanceTier.LOW),
)


class WindowSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    period_name: str
    total_days: int
    days_present: int
    days_absent: int
    total_records_taken: int
    avg_records_per_day: float
    attendance_percentage: float
    tier: AttendanceTier
    eligible: bool
    day_counts: dict[date, int]

    def is_present(self, day: date) -> bool:
        return self.day_counts.get(day, 0) > 0


def _round2(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def attendance_percentage(days_present: int, total_days: int) -> float:
    if total_days <= 0:
        return 0.0
    return float(_round2(Decimal(days_present) * 100 / Decimal(total_days)))


def classify(percentage: float) -> AttendanceTier:
    pct = Decimal(str(percentage))
    if pct >= 100:
        return AttendanceTier.PERFECT
    for floor, tier in _TIER_FLOORS:
        if pct >= floor:
            return tier
    return AttendanceTier.POOR


def is_eligible(percentage: float, threshold: float = DEFAULT_ELIGIBILITY_THRESHOLD) -> bool:
    return Decimal(str(percentage)) >= Decimal(str(threshold))


def bucket_days(
    timestamps: Iterable[Any],
    period: Optional[ChillaPeriod] = None,
    offset_minutes: int = IST_OFFSET_MINUTES,
) -> Counter:
    """Records per local day. Invalid timestamps are logged and skipped."""
    counts: Counter = Counter()
    for value in timestamps:
        try:
            day = local_date(value, offset_minutes)
        except InvalidTimestamp as e:
            logger.warning("Skipping attendance record: %s", e)
            continue
        if period is None or period.contains(day):
            counts[day] += 1
    return counts


def group_by_subject(
    events: Iterable[Mapping],
    key: Callable[[Mapping], Optional[str]],
    time_field: str = "attendance_time",
) -> dict[str, list]:
    """Raw timestamps per subject; events without a subject are dropped."""
    grouped: dict[str, list] = {}
    for event in events:
        subject = key(event)
        if not subject:
            continue
        grouped.setdefault(str(subject), []).append(event.get(time_field))
    return grouped


def by_student(event: Mapping) -> Optional[str]:
    return event.get("studentId")


def by_tracker(event: Mapping) -> Optional[str]:
    return lookup(dict(event), "tracked_by.userId")


class AttendanceWindowEngine:
    def __init__(
        self,
        threshold_percent: float = DEFAULT_ELIGIBILITY_THRESHOLD,
        offset_minutes: int = IST_OFFSET_MINUTES,
    ):
        self.threshold_percent = threshold_percent
        self.offset_minutes = offset_minutes

    def summarize(self, period: ChillaPeriod, timestamps: Iterable[Any]) -> WindowSummary:
        total_days = days_between_inclusive(period.start, period.end)
        counts = bucket_days(timestamps, period, self.offset_minutes)
        days_present = len(counts)
        records = sum(counts.values())
        pct = attendance_percentage(days_present, total_days)
        avg = float(_round2(Decimal(records) / Decimal(days_present))) if days_present else 0.0
        return WindowSummary(
            period_name=period.name,
            total_days=total_days,
            days_present=days_present,
            days_absent=max(total_days - days_present, 0),
            total_records_taken=records,
            avg_records_per_day=avg,
            attendance_percentage=pct,
            tier=classify(pct),
            eligible=is_eligible(pct, self.threshold_percent),
            day_counts=dict(sorted(counts.items())),
        )

    def summarize_all(
        self, period: ChillaPeriod, grouped: Mapping[str, Iterable[Any]], subjects: Iterable[str]
    ) -> dict[str, WindowSummary]:
        """Summary for each known subject, in ``subjects`` order.

        Subjects without records get a zero-attendance summary; grouped
        records of unknown subjects are ignored.
        """
        return {sid: self.summarize(period, grouped.get(sid, ())) for sid in subjects}
