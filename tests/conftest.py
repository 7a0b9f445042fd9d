import copy
from datetime import date
from typing import Iterable, Optional, Sequence

import pytest

from shaheen.errors import NotFound
from shaheen.models.chilla import ChillaPeriod
from shaheen.store.base import KEY_FIELD, STUDENTS, lookup, validate_filters

_OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
    "in": lambda a, b: a in b,
}


class InMemoryStore:
    """Dict-backed store with the same read/write contract as the real backends."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}
        self.closed = False

    def _col(self, collection: str) -> dict[str, dict]:
        return self.collections.setdefault(collection, {})

    @staticmethod
    def _out(key: str, data: dict) -> dict:
        doc = copy.deepcopy(data)
        doc[KEY_FIELD] = key
        return doc

    @staticmethod
    def _clean(data: dict) -> dict:
        return {k: copy.deepcopy(v) for k, v in data.items() if k != KEY_FIELD}

    def _matching(self, collection: str, filters: Iterable) -> list[tuple[str, dict]]:
        filters = validate_filters(filters)
        return [
            (key, data)
            for key, data in self._col(collection).items()
            if all(_OPS[op](lookup(data, field), value) for field, op, value in filters)
        ]

    async def get(self, collection: str, key: str) -> Optional[dict]:
        data = self._col(collection).get(key)
        return None if data is None else self._out(key, data)

    async def get_many(self, collection: str, keys: Sequence[str]) -> list[Optional[dict]]:
        return [await self.get(collection, key) for key in keys]

    async def query(self, collection, filters=(), order_by=None, descending=False, limit=None) -> list[dict]:
        docs = self._matching(collection, filters)
        if order_by:
            docs.sort(key=lambda kv: (lookup(kv[1], order_by) is None, lookup(kv[1], order_by)), reverse=descending)
        if limit is not None:
            docs = docs[:limit]
        return [self._out(key, data) for key, data in docs]

    async def count(self, collection: str, filters=()) -> int:
        return len(self._matching(collection, filters))

    async def create(self, collection: str, key: str, data: dict) -> bool:
        col = self._col(collection)
        if key in col:
            return False
        col[key] = self._clean(data)
        return True

    async def set(self, collection: str, key: str, data: dict) -> None:
        self._col(collection)[key] = self._clean(data)

    async def set_many(self, collection: str, docs: dict[str, dict]) -> None:
        for key, data in docs.items():
            await self.set(collection, key, data)

    async def update(self, collection: str, key: str, changes: dict) -> None:
        col = self._col(collection)
        if key not in col:
            raise NotFound(collection, key)
        col[key].update(self._clean(changes))

    async def update_if(self, collection: str, key: str, expected: dict, changes: dict) -> bool:
        col = self._col(collection)
        if key not in col:
            raise NotFound(collection, key)
        if any(col[key].get(field) != value for field, value in expected.items()):
            return False
        col[key].update(self._clean(changes))
        return True

    async def delete_where(self, collection: str, filters) -> int:
        matched = self._matching(collection, filters)
        for key, _ in matched:
            del self._col(collection)[key]
        return len(matched)

    async def close(self) -> None:
        self.closed = True


def student_doc(name: str = "ayaan khan", cluster: int = 3, masjid: str = "Masjid-e-Noor", **extra) -> dict:
    doc = {
        "name": name,
        "guardianName": "imran khan",
        "guardianNumber": "9876543210",
        "class": "6",
        "masjid_details": {"masjidId": f"m-{masjid.lower()}", "masjidName": masjid, "clusterNumber": cluster},
        "volunteer": {"volunteerId": "vol-1", "volunteerName": "Hafiz Salim"},
        "streak": 0,
    }
    doc.update(extra)
    return doc


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def seeded_store(store):
    store.collections[STUDENTS] = {
        "stu-1": student_doc(),
        "stu-2": student_doc("zaid ahmed", cluster=1, masjid="Jamia Masjid"),
    }
    return store


@pytest.fixture
def period():
    return ChillaPeriod(name="1st Chilla", start=date(2025, 8, 1), end=date(2025, 8, 10))


@pytest.fixture
def make_student():
    return student_doc
