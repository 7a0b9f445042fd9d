"""Document store capability used by the core.

Documents are plain dicts. Reads return the document key under ``KEY_FIELD``;
writes never store it. Filters are ``(field_path, op, value)`` triples where
``field_path`` may be dotted (``"tracked_by.userId"``).
"""
from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol, Sequence

Filter = tuple[str, str, Any]

KEY_FIELD = "_key"

FILTER_OPS = ("==", "!=", "<", "<=", ">", ">=", "in")

# Collection names in the live database
STUDENTS = "students"
ATTENDANCE = "Attendance"
CERTIFICATES = "certificates"
VOLUNTEER_CERTIFICATES = "volunteer_certificates"
USERS = "Users"
MASJID = "Masjid"
WINNERS = "winners"
VOLUNTEER_WINNERS = "winners_volunteers"


class Store(Protocol):
    async def get(self, collection: str, key: str) -> Optional[dict]:
        ...

    async def get_many(self, collection: str, keys: Sequence[str]) -> list[Optional[dict]]:
        """Documents in the order of ``keys``; None where missing."""
        ...

    async def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        ...

    async def count(self, collection: str, filters: Iterable[Filter] = ()) -> int:
        ...

    async def create(self, collection: str, key: str, data: dict) -> bool:
        """Create if absent. False (nothing written) when the key exists."""
        ...

    async def set(self, collection: str, key: str, data: dict) -> None:
        ...

    async def set_many(self, collection: str, docs: dict[str, dict]) -> None:
        """Batched overwrite of several documents."""
        ...

    async def update(self, collection: str, key: str, changes: dict) -> None:
        """Merge ``changes``; raises NotFound when the document is missing."""
        ...

    async def update_if(self, collection: str, key: str, expected: dict, changes: dict) -> bool:
        """Apply ``changes`` only while every ``expected`` field still holds its value.

        A missing field compares equal to None. Returns False when the
        precondition failed; raises NotFound when the document is missing.
        """
        ...

    async def delete_where(self, collection: str, filters: Iterable[Filter]) -> int:
        ...

    async def close(self) -> None:
        ...


def validate_filters(filters: Iterable[Filter]) -> list[Filter]:
    out = []
    for field, op, value in filters:
        if op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter operator {op!r} on {field}")
        out.append((field, op, value))
    return out


def lookup(data: dict, field_path: str) -> Any:
    """Resolve a dotted field path; None when any segment is missing."""
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value
