"""Student attendance streaks: position inside the current 40-day cycle.

The streak is a pure function of the attendance total (``total % modulo``).
Each time the total reaches a positive multiple of ``modulo`` a certificate is
issued for that cycle and the streak resets to 0. A total that jumps past a
multiple (for example after a failed write) still issues the skipped cycle.

Writes are guarded by ``streak_count`` (the total last applied): re-applying
the same total is a no-op, and a concurrent writer that moved the count makes
the conditional write fail, so the engine re-reads and tries again.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Optional

from shaheen.errors import NoAttendanceRecords, NotFound, WriteConflict
from shaheen.services.certificates import CertificateIssuer
from shaheen.services.local_time import to_utc
from shaheen.store.base import ATTENDANCE, STUDENTS, Store

logger = logging.getLogger(__name__)

DEFAULT_MODULO = 40


@dataclass(frozen=True)
class StreakDecision:
    streak: int
    completed: bool
    cycle: Optional[int] = None


def compute_streak(total_count: int, modulo: int = DEFAULT_MODULO) -> StreakDecision:
    if total_count < 0:
        raise ValueError(f"Attendance total cannot be negative: {total_count}")
    if modulo < 1:
        raise ValueError(f"Modulo must be positive: {modulo}")
    remainder = total_count % modulo
    if remainder == 0 and total_count > 0:
        return StreakDecision(streak=0, completed=True, cycle=total_count // modulo)
    return StreakDecision(streak=remainder, completed=False)


class StreakEngine:
    def __init__(
        self,
        store: Store,
        issuer: Optional[CertificateIssuer] = None,
        modulo: int = DEFAULT_MODULO,
        max_attempts: int = 3,
    ):
        self.store = store
        self.issuer = issuer or CertificateIssuer(store)
        self.modulo = modulo
        self.max_attempts = max(1, max_attempts)

    def pending_cycles(self, applied: Optional[int], total_count: int) -> list[int]:
        """Cycles completed between the applied total and ``total_count``.

        With no applied total only a completion at ``total_count`` itself
        counts; earlier cycles are not issued retroactively.
        """
        if applied is None:
            decision = compute_streak(total_count, self.modulo)
            return [decision.cycle] if decision.completed else []
        return list(range(applied // self.modulo + 1, total_count // self.modulo + 1))

    async def _completion_times(self, student_id: str, cycles: list[int]) -> dict[int, datetime]:
        """Instant of the attendance that completed each cycle (the 40th, 80th, ...)."""
        events = await self.store.query(
            ATTENDANCE,
            [("studentId", "==", student_id)],
            order_by="attendance_time",
            limit=max(cycles) * self.modulo,
        )
        if not events:
            raise NoAttendanceRecords(student_id)
        times = {}
        for cycle in cycles:
            event = events[min(cycle * self.modulo, len(events)) - 1]
            times[cycle] = to_utc(event.get("attendance_time"))
        return times

    async def apply(self, student_id: str, total_count: int) -> Optional[StreakDecision]:
        """Apply an attendance total to the student's streak.

        Returns the decision, or None when this total (or a later one) was
        already applied.
        """
        decision = compute_streak(total_count, self.modulo)
        for attempt in range(1, self.max_attempts + 1):
            student = await self.store.get(STUDENTS, student_id)
            if student is None:
                raise NotFound(STUDENTS, student_id)
            applied = student.get("streak_count")
            if applied is not None and applied >= total_count:
                logger.debug("Streak for %s already at total %s, skipping", student_id, applied)
                return None

            cycles = self.pending_cycles(applied, total_count)
            if cycles:
                # Issued before the streak write: a failed write leaves streak_count
                # behind, so the next apply issues any cycle still missing.
                completed_at = await self._completion_times(student_id, cycles)
                for cycle in cycles:
                    await self.issuer.issue_student_certificate(student, completed_at[cycle], cycle)

            changes = {
                "streak": decision.streak,
                "streak_last_modified": datetime.now(timezone.utc),
                "streak_count": total_count,
            }
            if await self.store.update_if(STUDENTS, student_id, {"streak_count": applied}, changes):
                if decision.completed:
                    logger.info(
                        "Streak reached %d for %s. Certificate issued and streak reset",
                        self.modulo,
                        student_id,
                    )
                else:
                    logger.info("Updated streak to %d for %s", decision.streak, student_id)
                return decision
            logger.warning(
                "Concurrent streak update for %s (attempt %d/%d), retrying",
                student_id,
                attempt,
                self.max_attempts,
            )
        raise WriteConflict(STUDENTS, student_id, self.max_attempts)

    async def refresh(self, student_id: str) -> Optional[StreakDecision]:
        """Recount the student's attendance and apply the total."""
        total = await self.store.count(ATTENDANCE, [("studentId", "==", student_id)])
        return await self.apply(student_id, total)
