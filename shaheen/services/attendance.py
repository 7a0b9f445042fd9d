"""Recording, backfilling and deleting attendance events."""
from datetime import date, datetime, time, timezone
import logging
import random
from typing import Iterable, Optional

from shaheen.errors import NotFound
from shaheen.models.attendance import AttendanceEvent, TrackedBy, attendance_key
from shaheen.services.local_time import IST_OFFSET_MINUTES, iter_days, local_date, local_tz, to_utc
from shaheen.services.streak import StreakEngine
from shaheen.store.base import ATTENDANCE, STUDENTS, Store

logger = logging.getLogger(__name__)


def event_from_student(student_id: str, student: dict, when: datetime) -> AttendanceEvent:
    """Attendance event with the student's details denormalized onto it."""
    volunteer = student.get("volunteer") or {}
    details = student.get("masjid_details")
    return AttendanceEvent(
        student_id=student_id,
        attendance_time=to_utc(when),
        name=student.get("name"),
        display_name=student.get("name"),
        class_name=student.get("class"),
        section=student.get("section"),
        school=student.get("school_name"),
        guardian_number=student.get("guardianNumber"),
        masjid_details=details if isinstance(details, dict) else None,
        tracked_by=TrackedBy(
            user_id=volunteer.get("volunteerId") or TrackedBy().user_id,
            name=volunteer.get("volunteerName") or TrackedBy().name,
        ),
    )


def random_morning_time(day: date, rng: random.Random, offset_minutes: int = IST_OFFSET_MINUTES) -> datetime:
    """A random instant between 05:00 and 06:00 local time on ``day``."""
    local = datetime.combine(day, time(5, rng.randrange(60), rng.randrange(60)), tzinfo=local_tz(offset_minutes))
    return local.astimezone(timezone.utc)


class AttendanceRecorder:
    def __init__(
        self,
        store: Store,
        streaks: Optional[StreakEngine] = None,
        offset_minutes: int = IST_OFFSET_MINUTES,
    ):
        self.store = store
        self.streaks = streaks or StreakEngine(store)
        self.offset_minutes = offset_minutes

    async def record(self, student_id: str, when: datetime) -> bool:
        """Record one attendance and refresh the streak. False if the day was already recorded.

        The streak is refreshed either way, so redelivering an attendance whose
        streak update failed completes that update.
        """
        student = await self.store.get(STUDENTS, student_id)
        if student is None:
            raise NotFound(STUDENTS, student_id)
        day = local_date(when, self.offset_minutes)
        key = attendance_key(student_id, day)
        event = event_from_student(student_id, student, when)
        created = await self.store.create(ATTENDANCE, key, event.to_document())
        if created:
            logger.info("Attendance added for %s on %s", student_id, day.isoformat())
        else:
            logger.info("Skipping %s, attendance already exists for %s", student_id, day.isoformat())
        await self.streaks.refresh(student_id)
        return created

    async def bulk_add_attendance(
        self,
        student_ids: Iterable[str],
        start: date,
        end: date,
        rng: Optional[random.Random] = None,
    ) -> int:
        """Backfill one event per student per day in [start, end]; returns events created.

        Each day gets one random time between 05:00 and 06:00 shared by all
        students. Per-student failures are logged and the loop continues.
        """
        rng = rng or random.Random()
        student_ids = list(student_ids)
        logger.info(
            "Starting bulk attendance for %d students from %s to %s", len(student_ids), start, end
        )
        created = 0
        for day in iter_days(start, end):
            when = random_morning_time(day, rng, self.offset_minutes)
            for student_id in student_ids:
                try:
                    if await self.record(student_id, when):
                        created += 1
                except Exception:
                    logger.exception("Error for student %s on %s", student_id, day.isoformat())
        logger.info("Bulk attendance for range completed: %d records added", created)
        return created

    async def delete_attendance(self, student_ids: Iterable[str]) -> dict[str, int]:
        """Delete every event of the given students and reset their streaks.

        Returns deleted event counts per student that was processed.
        """
        deleted: dict[str, int] = {}
        for student_id in student_ids:
            try:
                count = await self.store.delete_where(ATTENDANCE, [("studentId", "==", student_id)])
                if count:
                    logger.info("Deleted %d attendance records for %s", count, student_id)
                else:
                    logger.warning("No attendance found for %s", student_id)
                await self.store.update(
                    STUDENTS,
                    student_id,
                    {
                        "streak": 0,
                        "streak_count": 0,
                        "streak_last_modified": datetime.now(timezone.utc),
                    },
                )
                logger.info("Streak reset to 0 for %s", student_id)
                deleted[student_id] = count
            except Exception:
                logger.exception("Error cleaning student %s", student_id)
        return deleted

