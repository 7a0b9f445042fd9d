from datetime import date, datetime, timedelta, timezone

import pytest

from shaheen.errors import NoAttendanceRecords, NotFound, WriteConflict
from shaheen.models.attendance import attendance_key
from shaheen.services.certificates import student_certificate_key
from shaheen.services.streak import StreakDecision, StreakEngine, compute_streak
from shaheen.store.base import ATTENDANCE, CERTIFICATES, STUDENTS

from conftest import InMemoryStore


def add_events(store, student_id, count, first=date(2025, 8, 1)):
    for i in range(count):
        day = first + timedelta(days=i)
        store.collections.setdefault(ATTENDANCE, {})[attendance_key(student_id, day)] = {
            "studentId": student_id,
            "attendance_time": datetime(day.year, day.month, day.day, 0, 15, tzinfo=timezone.utc),
        }


@pytest.mark.parametrize(
    "total, expected",
    [
        (0, StreakDecision(0, False)),
        (1, StreakDecision(1, False)),
        (39, StreakDecision(39, False)),
        (40, StreakDecision(0, True, 1)),
        (41, StreakDecision(1, False)),
        (80, StreakDecision(0, True, 2)),
    ],
)
def test_compute_streak(total, expected):
    assert compute_streak(total) == expected


def test_compute_streak_rejects_bad_input():
    with pytest.raises(ValueError):
        compute_streak(-1)
    with pytest.raises(ValueError):
        compute_streak(5, modulo=0)


async def test_apply_updates_streak(seeded_store):
    engine = StreakEngine(seeded_store)
    decision = await engine.apply("stu-1", 7)
    assert decision == StreakDecision(7, False)
    student = seeded_store.collections[STUDENTS]["stu-1"]
    assert student["streak"] == 7
    assert student["streak_count"] == 7
    assert student["streak_last_modified"] is not None
    assert CERTIFICATES not in seeded_store.collections


async def test_completion_issues_certificate_and_resets(seeded_store):
    add_events(seeded_store, "stu-1", 40)
    engine = StreakEngine(seeded_store)

    decision = await engine.refresh("stu-1")

    assert decision.completed and decision.cycle == 1
    assert seeded_store.collections[STUDENTS]["stu-1"]["streak"] == 0
    cert = seeded_store.collections[CERTIFICATES][student_certificate_key("stu-1", 1)]
    assert cert["studentId"] == "stu-1"
    assert cert["cycle"] == 1
    # completion date is the latest attendance, not the issuance time
    assert cert["time"] == datetime(2025, 9, 9, 0, 15, tzinfo=timezone.utc)
    assert cert["masjid_details"]["masjidName"] == "Masjid-e-Noor"


async def test_second_cycle_gets_its_own_certificate(seeded_store):
    add_events(seeded_store, "stu-1", 80)
    engine = StreakEngine(seeded_store)
    await engine.apply("stu-1", 40)
    await engine.apply("stu-1", 80)
    assert set(seeded_store.collections[CERTIFICATES]) == {"stu-1_cycle1", "stu-1_cycle2"}


async def test_reapplying_same_total_is_noop(seeded_store):
    add_events(seeded_store, "stu-1", 40)
    engine = StreakEngine(seeded_store)
    assert await engine.refresh("stu-1") is not None
    before = dict(seeded_store.collections[STUDENTS]["stu-1"])

    assert await engine.refresh("stu-1") is None
    assert seeded_store.collections[STUDENTS]["stu-1"] == before
    assert len(seeded_store.collections[CERTIFICATES]) == 1


async def test_stale_total_is_ignored(seeded_store):
    engine = StreakEngine(seeded_store)
    await engine.apply("stu-1", 12)
    assert await engine.apply("stu-1", 11) is None
    assert seeded_store.collections[STUDENTS]["stu-1"]["streak"] == 12


async def test_existing_certificate_is_not_overwritten(seeded_store):
    add_events(seeded_store, "stu-1", 40)
    seeded_store.collections[CERTIFICATES] = {"stu-1_cycle1": {"studentId": "stu-1", "name": "original"}}
    engine = StreakEngine(seeded_store)

    decision = await engine.refresh("stu-1")

    assert decision.completed
    assert seeded_store.collections[CERTIFICATES]["stu-1_cycle1"]["name"] == "original"
    assert seeded_store.collections[STUDENTS]["stu-1"]["streak"] == 0


async def test_completion_without_events_raises(seeded_store):
    engine = StreakEngine(seeded_store)
    with pytest.raises(NoAttendanceRecords):
        await engine.apply("stu-1", 40)
    assert "streak_count" not in seeded_store.collections[STUDENTS]["stu-1"]


async def test_missing_student_raises(store):
    with pytest.raises(NotFound):
        await StreakEngine(store).apply("nobody", 3)


class RacingStore(InMemoryStore):
    """Another writer bumps the student between our read and conditional write."""

    def __init__(self, races: int):
        super().__init__()
        self.races = races

    async def update_if(self, collection, key, expected, changes):
        if self.races:
            self.races -= 1
            self.collections[collection][key]["streak_count"] = (
                self.collections[collection][key].get("streak_count") or 0
            ) + 1
        return await super().update_if(collection, key, expected, changes)


async def test_conflict_is_retried(make_student):
    store = RacingStore(races=1)
    store.collections[STUDENTS] = {"stu-1": make_student()}
    decision = await StreakEngine(store).apply("stu-1", 5)
    assert decision == StreakDecision(5, False)
    assert store.collections[STUDENTS]["stu-1"]["streak_count"] == 5


async def test_persistent_conflict_raises(make_student):
    store = RacingStore(races=10)
    store.collections[STUDENTS] = {"stu-1": make_student()}
    with pytest.raises(WriteConflict) as exc:
        await StreakEngine(store, max_attempts=2).apply("stu-1", 35)
    assert exc.value.attempts == 2


@pytest.mark.parametrize(
    "applied, total, cycles",
    [(None, 40, [1]), (None, 85, []), (None, 80, [2]), (39, 41, [1]), (40, 41, []), (39, 120, [1, 2, 3])],
)
def test_pending_cycles(store, applied, total, cycles):
    assert StreakEngine(store).pending_cycles(applied, total) == cycles


async def test_total_jumping_past_completion_still_issues(seeded_store):
    add_events(seeded_store, "stu-1", 41)
    engine = StreakEngine(seeded_store)
    await engine.apply("stu-1", 39)

    decision = await engine.apply("stu-1", 41)

    assert decision == StreakDecision(1, False)
    cert = seeded_store.collections[CERTIFICATES]["stu-1_cycle1"]
    # dated by the 40th attendance, not the latest one
    assert cert["time"] == datetime(2025, 9, 9, 0, 15, tzinfo=timezone.utc)
    assert seeded_store.collections[STUDENTS]["stu-1"]["streak_count"] == 41
