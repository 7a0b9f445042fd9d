"""Fixed-offset (IST) calendar helpers. No DST: the offset never changes."""
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterator

from shaheen.errors import InvalidTimestamp

IST_OFFSET_MINUTES = 330


def local_tz(offset_minutes: int = IST_OFFSET_MINUTES) -> timezone:
    return timezone(timedelta(minutes=offset_minutes))


def to_utc(value: Any) -> datetime:
    """Coerce a stored timestamp to an aware UTC datetime.

    Naive datetimes are UTC instants (both backends store UTC). Also accepts
    ISO-8601 strings and epoch seconds; anything else is an InvalidTimestamp.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidTimestamp(value) from e
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            dt = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidTimestamp(value, "out of range") from e
    elif value is None:
        raise InvalidTimestamp(value, "missing")
    else:
        raise InvalidTimestamp(value, f"unsupported type {type(value).__name__}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_date(value: Any, offset_minutes: int = IST_OFFSET_MINUTES) -> date:
    """Local calendar day of an instant."""
    return to_utc(value).astimezone(local_tz(offset_minutes)).date()


def local_midnight(day: date, offset_minutes: int = IST_OFFSET_MINUTES) -> datetime:
    """Start of a local day as an aware UTC instant."""
    return datetime.combine(day, time.min, tzinfo=local_tz(offset_minutes)).astimezone(timezone.utc)


def local_range(start: date, end: date, offset_minutes: int = IST_OFFSET_MINUTES) -> tuple[datetime, datetime]:
    """[start 00:00, day after end 00:00) in UTC, for `>=` / `<` range queries."""
    return local_midnight(start, offset_minutes), local_midnight(end + timedelta(days=1), offset_minutes)


def days_between_inclusive(start: date, end: date) -> int:
    if end < start:
        return 0
    return (end - start).days + 1


def iter_days(start: date, end: date) -> Iterator[date]:
    for i in range(days_between_inclusive(start, end)):
        yield start + timedelta(days=i)


def today_local(offset_minutes: int = IST_OFFSET_MINUTES) -> date:
    return datetime.now(local_tz(offset_minutes)).date()


def format_local(value: Any, fmt: str = "%d-%m-%Y", offset_minutes: int = IST_OFFSET_MINUTES) -> str:
    return to_utc(value).astimezone(local_tz(offset_minutes)).strftime(fmt)
