"""Volunteer audit: who a volunteer marked present, and when (IST)."""
from datetime import date
import logging

from shaheen.errors import InvalidTimestamp
from shaheen.services.local_time import IST_OFFSET_MINUTES, format_local, local_midnight
from shaheen.services.normalize import as_text, first_present
from shaheen.store.base import ATTENDANCE, KEY_FIELD, USERS, Store

logger = logging.getLogger(__name__)


async def find_volunteers(store: Store, fragment: str) -> list[tuple[str, str]]:
    """(user id, name) of every user whose name contains ``fragment``, case-insensitive."""
    needle = fragment.strip().casefold()
    if not needle:
        return []
    matches = []
    for doc in await store.query(USERS):
        name = as_text(first_present(doc, ("name", "displayName")))
        if name and needle in name.casefold():
            matches.append((doc[KEY_FIELD], name))
    matches.sort(key=lambda m: m[1].casefold())
    return matches


async def volunteer_attendance_log(
    store: Store, user_id: str, since: date, offset_minutes: int = IST_OFFSET_MINUTES
) -> list[dict]:
    """Events tracked by ``user_id`` from ``since`` onwards, newest first."""
    events = await store.query(
        ATTENDANCE,
        [("tracked_by.userId", "==", user_id), ("attendance_time", ">=", local_midnight(since, offset_minutes))],
        order_by="attendance_time",
        descending=True,
    )
    log = []
    for event in events:
        try:
            when = format_local(event.get("attendance_time"), "%d/%m/%Y, %I:%M:%S %p", offset_minutes)
        except InvalidTimestamp as e:
            logger.warning("Attendance %s: %s", event.get(KEY_FIELD), e)
            when = "Invalid Date"
        student_id = as_text(event.get("studentId"))
        log.append(
            {
                "time": when,
                "student_id": student_id,
                "student_name": as_text(event.get("name")) or f"Unknown ID ({student_id})",
            }
        )
    return log
