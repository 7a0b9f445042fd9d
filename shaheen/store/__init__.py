"""Document store capability and its backends."""
from shaheen.store.base import (
    ATTENDANCE,
    CERTIFICATES,
    KEY_FIELD,
    MASJID,
    STUDENTS,
    USERS,
    VOLUNTEER_CERTIFICATES,
    VOLUNTEER_WINNERS,
    WINNERS,
    Filter,
    Store,
    lookup,
)

__all__ = [
    "ATTENDANCE",
    "CERTIFICATES",
    "KEY_FIELD",
    "MASJID",
    "STUDENTS",
    "USERS",
    "VOLUNTEER_CERTIFICATES",
    "VOLUNTEER_WINNERS",
    "WINNERS",
    "Filter",
    "Store",
    "lookup",
]
