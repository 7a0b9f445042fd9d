"""Shared script lifecycle: logging, store startup/shutdown, exit codes."""
import asyncio
from datetime import date
import logging
import sys
from typing import Any, Awaitable, Callable, Optional, Sequence

from shaheen.config import Settings, settings
from shaheen.db import db_shutdown, db_startup
from shaheen.errors import ConfigurationError
from shaheen.services.attendance_window import AttendanceWindowEngine
from shaheen.store.base import Store

logger = logging.getLogger(__name__)

Task = Callable[[Store, Optional[str]], Awaitable[None]]
Check = Callable[[Optional[str]], Any]


class UsageError(ValueError):
    """Bad command-line argument."""


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def window_engine(config: Settings = settings) -> AttendanceWindowEngine:
    return AttendanceWindowEngine(config.eligibility_threshold_percent, config.timezone_offset_minutes)


def parse_date(text: str) -> date:
    try:
        return date.fromisoformat(text.strip())
    except ValueError as e:
        raise UsageError(f"Invalid date {text!r}, expected YYYY-MM-DD") from e


def parse_range(text: str) -> tuple[date, date]:
    """``START:END`` (inclusive local dates)."""
    start, sep, end = text.partition(":")
    if not sep:
        raise UsageError(f"Invalid range {text!r}, expected START:END")
    first, last = parse_date(start), parse_date(end)
    if last < first:
        raise UsageError(f"Range {text!r} ends before it starts")
    return first, last


def parse_ids(text: Optional[str]) -> list[str]:
    ids = [part.strip() for part in (text or "").split(",") if part.strip()]
    if not ids:
        raise UsageError("Expected a comma-separated list of ids")
    return ids


def require(arg: Optional[str], name: str) -> str:
    if not arg:
        raise UsageError(f"Missing argument: {name}")
    return arg


def required(name: str) -> Check:
    return lambda arg: require(arg, name)


def optional(parse: Callable[[str], Any]) -> Check:
    return lambda arg: parse(arg) if arg else None


async def _run(task: Task, arg: Optional[str], config: Settings) -> None:
    store = await db_startup(config)
    try:
        await task(store, arg)
    finally:
        await db_shutdown()


def run_script(
    task: Task,
    usage: str,
    argv: Optional[Sequence[str]] = None,
    config: Settings = settings,
    check: Optional[Check] = None,
) -> int:
    """Run one task with zero or one positional argument; 0 on success, 1 on failure.

    ``check`` validates the argument before the store is opened.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    configure_logging(config.log_level)
    if len(args) > 1:
        logger.error("Usage: %s", usage)
        return 1
    arg = args[0] if args else None
    try:
        if check is not None:
            check(arg)
        asyncio.run(_run(task, arg, config))
    except UsageError as e:
        logger.error("%s\nUsage: %s", e, usage)
        return 1
    except ConfigurationError as e:
        logger.error("Setup failed: %s", e)
        return 1
    except Exception:
        logger.exception("Script failed")
        return 1
    return 0
