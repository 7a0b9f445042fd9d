"""Read-only store queries shared by the report, export and audit projections."""
from datetime import date
import logging
from typing import Iterable, Optional

from shaheen.models.chilla import ChillaPeriod
from shaheen.models.volunteer import Volunteer
from shaheen.services.local_time import IST_OFFSET_MINUTES, local_range
from shaheen.services.normalize import volunteer_from_user
from shaheen.store.base import ATTENDANCE, CERTIFICATES, KEY_FIELD, STUDENTS, USERS, Store

logger = logging.getLogger(__name__)


async def events_between(
    store: Store,
    start: date,
    end: date,
    offset_minutes: int = IST_OFFSET_MINUTES,
    extra_filters: Iterable = (),
) -> list[dict]:
    """Attendance events whose local day falls in [start, end]."""
    lo, hi = local_range(start, end, offset_minutes)
    filters = [*extra_filters, ("attendance_time", ">=", lo), ("attendance_time", "<", hi)]
    events = await store.query(ATTENDANCE, filters, order_by="attendance_time")
    logger.info("Fetched %d attendance records from %s to %s", len(events), start, end)
    return events


async def events_for_windows(
    store: Store, windows: list[ChillaPeriod], offset_minutes: int = IST_OFFSET_MINUTES
) -> list[dict]:
    """One query spanning every window; callers bucket per window."""
    if not windows:
        return []
    start = min(w.start for w in windows)
    end = max(w.end for w in windows)
    return await events_between(store, start, end, offset_minutes)


async def students_by_id(store: Store) -> dict[str, dict]:
    docs = await store.query(STUDENTS)
    logger.info("Found %d students", len(docs))
    return {doc[KEY_FIELD]: doc for doc in docs}


async def students_for(store: Store, student_ids: list[str]) -> dict[str, Optional[dict]]:
    docs = await store.get_many(STUDENTS, student_ids)
    return dict(zip(student_ids, docs))


async def volunteers_by_id(store: Store) -> dict[str, Volunteer]:
    """Every `Users` document as a volunteer, keyed by user id."""
    docs = await store.query(USERS)
    volunteers = {doc[KEY_FIELD]: volunteer_from_user(doc[KEY_FIELD], doc) for doc in docs}
    logger.info("Found %d volunteers in %s collection", len(volunteers), USERS)
    return volunteers


async def certificates_by_student(store: Store) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {}
    for doc in await store.query(CERTIFICATES):
        student_id = doc.get("studentId")
        if not student_id:
            logger.warning("Certificate %s has no studentId, skipping", doc.get(KEY_FIELD))
            continue
        grouped.setdefault(student_id, []).append(doc)
    return grouped
