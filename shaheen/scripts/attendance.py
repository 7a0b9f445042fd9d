"""Attendance and reference-data maintenance scripts."""
from datetime import datetime, timezone
import logging
from typing import Optional

from shaheen.config import settings
from shaheen.scripts._runner import UsageError, parse_ids, require, required, run_script
from shaheen.services.attendance import AttendanceRecorder
from shaheen.services.masjid_import import import_masjids
from shaheen.services.streak import StreakEngine
from shaheen.store.base import Store

logger = logging.getLogger(__name__)


def _recorder(store: Store) -> AttendanceRecorder:
    streaks = StreakEngine(store, modulo=settings.modulo, max_attempts=settings.streak_max_attempts)
    return AttendanceRecorder(store, streaks, settings.timezone_offset_minutes)


async def _import_masjids(store: Store, arg: Optional[str]) -> None:
    await import_masjids(store, require(arg, "excel-file"))


async def _record(store: Store, arg: Optional[str]) -> None:
    await _recorder(store).record(require(arg, "student-id"), datetime.now(timezone.utc))


async def _bulk_add(store: Store, arg: Optional[str]) -> None:
    if settings.bulk_start_date is None or settings.bulk_end_date is None:
        raise UsageError("Set SHAHEEN_BULK_START_DATE and SHAHEEN_BULK_END_DATE")
    if settings.bulk_end_date < settings.bulk_start_date:
        raise UsageError("SHAHEEN_BULK_END_DATE is before SHAHEEN_BULK_START_DATE")
    await _recorder(store).bulk_add_attendance(parse_ids(arg), settings.bulk_start_date, settings.bulk_end_date)


async def _delete(store: Store, arg: Optional[str]) -> None:
    ids = parse_ids(arg)
    logger.info("Deleting attendance and resetting streak for %d students", len(ids))
    await _recorder(store).delete_attendance(ids)
    logger.info("Attendance cleanup and streak reset completed")


async def _refresh_streak(store: Store, arg: Optional[str]) -> None:
    engine = StreakEngine(store, modulo=settings.modulo, max_attempts=settings.streak_max_attempts)
    decision = await engine.refresh(require(arg, "student-id"))
    if decision is None:
        logger.info("Streak already up to date")


def import_masjids_main(argv=None) -> int:
    return run_script(_import_masjids, "shaheen-import-masjids <excel-file>", argv, check=required("excel-file"))


def record_attendance_main(argv=None) -> int:
    return run_script(_record, "shaheen-record-attendance <student-id>", argv, check=required("student-id"))


def bulk_attendance_main(argv=None) -> int:
    return run_script(_bulk_add, "shaheen-bulk-attendance <id,id,...>", argv, check=parse_ids)


def delete_attendance_main(argv=None) -> int:
    return run_script(_delete, "shaheen-delete-attendance <id,id,...>", argv, check=parse_ids)


def refresh_streak_main(argv=None) -> int:
    return run_script(_refresh_streak, "shaheen-refresh-streak <student-id>", argv, check=required("student-id"))
