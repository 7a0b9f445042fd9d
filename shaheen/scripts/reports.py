"""Excel report scripts. Output goes to ``settings.output_dir``."""
from pathlib import Path
from typing import Optional

from shaheen.config import settings
from shaheen.scripts._runner import (
    UsageError,
    optional,
    parse_date,
    parse_range,
    require,
    required,
    run_script,
    window_engine,
)
from shaheen.services import reports, volunteer_reports
from shaheen.store.base import Store


def _out() -> Path:
    return Path(settings.output_dir)


def _windows(name: Optional[str]):
    if not name:
        return settings.windows
    try:
        return [settings.window(name)]
    except KeyError as e:
        raise UsageError(str(e.args[0])) from e


async def _matrix(store: Store, arg: Optional[str]) -> None:
    if arg:
        start, end = parse_range(arg)
    else:
        first = settings.windows[0]
        start, end = first.start, first.end
    await reports.export_attendance_matrix(store, start, end, _out(), settings.timezone_offset_minutes)


async def _chilla(store: Store, arg: Optional[str]) -> None:
    await reports.export_student_chilla_reports(store, _windows(arg), window_engine(), _out())


async def _volunteer_chilla(store: Store, arg: Optional[str]) -> None:
    await volunteer_reports.export_volunteer_chilla_reports(store, _windows(arg), window_engine(), _out())


async def _high_attendance(store: Store, arg: Optional[str]) -> None:
    await volunteer_reports.export_high_attendance(store, settings.windows, window_engine(), _out())


async def _certificates_excel(store: Store, arg: Optional[str]) -> None:
    await reports.export_certificates_by_count(store, _out(), settings.timezone_offset_minutes)


async def _winners(store: Store, arg: Optional[str]) -> None:
    await reports.export_winners(store, _out())


async def _volunteer_winners(store: Store, arg: Optional[str]) -> None:
    await reports.export_volunteer_winners(store, _out())


async def _today(store: Store, arg: Optional[str]) -> None:
    day = parse_date(arg) if arg else None
    await reports.export_todays_attendance(store, _out(), day, settings.timezone_offset_minutes)


async def _calendar(store: Store, arg: Optional[str]) -> None:
    await reports.export_student_calendar(
        store,
        require(arg, "student-id"),
        settings.audit_start_date,
        _out(),
        offset_minutes=settings.timezone_offset_minutes,
    )


def attendance_matrix_main(argv=None) -> int:
    return run_script(_matrix, "shaheen-attendance-matrix [START:END]", argv, check=optional(parse_range))


def chilla_reports_main(argv=None) -> int:
    return run_script(_chilla, "shaheen-chilla-reports [window-name]", argv, check=_windows)


def volunteer_chilla_reports_main(argv=None) -> int:
    return run_script(_volunteer_chilla, "shaheen-volunteer-reports [window-name]", argv, check=_windows)


def high_attendance_main(argv=None) -> int:
    return run_script(_high_attendance, "shaheen-high-attendance", argv)


def certificates_excel_main(argv=None) -> int:
    return run_script(_certificates_excel, "shaheen-certificates-excel", argv)


def winners_main(argv=None) -> int:
    return run_script(_winners, "shaheen-winners", argv)


def volunteer_winners_main(argv=None) -> int:
    return run_script(_volunteer_winners, "shaheen-volunteer-winners", argv)


def todays_attendance_main(argv=None) -> int:
    return run_script(_today, "shaheen-todays-attendance [YYYY-MM-DD]", argv, check=optional(parse_date))


def attendance_calendar_main(argv=None) -> int:
    return run_script(_calendar, "shaheen-attendance-calendar <student-id>", argv, check=required("student-id"))
