"""Canonical views over documents whose fields come in several shapes.

Every alternate source field is an explicit, ordered fallback list: the first
non-blank value wins.
"""
import re
from typing import Any, Iterable, Mapping, Optional

from shaheen.models.volunteer import Volunteer

MULTIPLE_MASJIDS = "multiple masjids"
MULTIPLE_CLUSTERS = "multiple clusters"

# Masjid import columns, in priority order
MASJID_ID_COLUMNS = ("Document ID", "documentid", "documentId")
MASJID_NAME_COLUMNS = ("Name", "name")
MASJID_CLUSTER_COLUMNS = ("Cluster Number", "clusternumber", "clusterNumber")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and value != value:  # NaN from pandas
        return True
    return isinstance(value, str) and not value.strip()


def first_present(data: Optional[Mapping], keys: Iterable[str], default: Any = None) -> Any:
    if not data:
        return default
    for key in keys:
        value = data.get(key)
        if not is_blank(value):
            return value
    return default


def as_text(value: Any) -> str:
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def title_case(text: Optional[str]) -> str:
    """Lower-case, then upper-case the first character of every word."""
    if not text:
        return ""
    return re.sub(r"\b\w", lambda m: m.group().upper(), text.lower())


def safe_filename(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", text, flags=re.IGNORECASE).lower()


def _collapse(values: list[str], multiple: str) -> str:
    unique = list(dict.fromkeys(values))
    if len(unique) > 1:
        return multiple
    return unique[0] if unique else ""


def _names(entries: list) -> list[str]:
    return [as_text(m.get("masjidName")) for m in entries if isinstance(m, dict) and as_text(m.get("masjidName"))]


def _clusters(entries: list) -> list[str]:
    return [as_text(m.get("clusterNumber")) for m in entries if isinstance(m, dict) and as_text(m.get("clusterNumber"))]


def masjid_display(data: Mapping) -> str:
    """Masjid label for a volunteer: masjidDetails (list, then object), managedMasjids, assignedMasjid."""
    details = data.get("masjidDetails")
    if isinstance(details, list) and _names(details):
        names = _names(details)
        return MULTIPLE_MASJIDS if len(names) > 1 else names[0]
    if isinstance(details, dict) and as_text(details.get("masjidName")):
        return as_text(details["masjidName"])
    managed = data.get("managedMasjids")
    if isinstance(managed, list) and _names(managed):
        names = _names(managed)
        return MULTIPLE_MASJIDS if len(names) > 1 else names[0]
    assigned = data.get("assignedMasjid")
    if isinstance(assigned, dict):
        return as_text(assigned.get("masjidName"))
    return ""


def cluster_display(data: Mapping) -> str:
    """Cluster label for a volunteer, same fallback order as masjid_display."""
    details = data.get("masjidDetails")
    if isinstance(details, list) and _clusters(details):
        return _collapse(_clusters(details), MULTIPLE_CLUSTERS)
    if isinstance(details, dict) and as_text(details.get("clusterNumber")):
        return as_text(details["clusterNumber"])
    managed = data.get("managedMasjids")
    if isinstance(managed, list) and _clusters(managed):
        return _collapse(_clusters(managed), MULTIPLE_CLUSTERS)
    assigned = data.get("assignedMasjid")
    if isinstance(assigned, dict):
        return as_text(assigned.get("clusterNumber"))
    return ""


def is_hafiz(data: Mapping) -> bool:
    name = as_text(first_present(data, ("name", "displayName"), ""))
    if "hafiz" in name.lower():
        return True
    if data.get("isHafiz") is True or data.get("isHafiz") == "true":
        return True
    return data.get("role") == "hafiz"


def volunteer_from_user(user_id: str, data: Mapping) -> Volunteer:
    return Volunteer(
        user_id=user_id,
        name=as_text(first_present(data, ("name", "displayName"), "Unknown")),
        email=as_text(data.get("email")),
        phone=as_text(first_present(data, ("phone", "phoneNumber", "phone_number"), "")),
        role=as_text(data.get("role")) or "volunteer",
        masjid=masjid_display(data),
        cluster=cluster_display(data),
        is_hafiz=is_hafiz(data),
    )


def _masjid_details(doc: Optional[Mapping]) -> Mapping:
    details = (doc or {}).get("masjid_details")
    if isinstance(details, list):
        details = details[0] if details else None
    return details if isinstance(details, dict) else {}


def location_of(*docs: Optional[Mapping]) -> tuple[str, str, str]:
    """(masjid id, masjid name, cluster) from the first document carrying each field.

    Typical call: ``location_of(event, student)`` so the event snapshot wins.
    """
    masjid_id = masjid_name = cluster = ""
    for doc in docs:
        details = _masjid_details(doc)
        masjid_id = masjid_id or as_text(details.get("masjidId"))
        masjid_name = masjid_name or as_text(details.get("masjidName"))
        cluster = cluster or as_text(details.get("clusterNumber"))
    return masjid_id, masjid_name, cluster


def location_sort_key(cluster: str, masjid: str, name: str) -> tuple[str, str, str]:
    """Cluster, then masjid name, then subject name; case-insensitive."""
    return (cluster or "").casefold(), (masjid or "").casefold(), (name or "").casefold()


def masjid_from_row(row: Mapping) -> Optional[tuple[str, str, Any]]:
    """(document id, name, cluster number) from an import row, or None if incomplete."""
    document_id = first_present(row, MASJID_ID_COLUMNS)
    name = first_present(row, MASJID_NAME_COLUMNS)
    cluster = first_present(row, MASJID_CLUSTER_COLUMNS)
    if is_blank(document_id) or is_blank(name) or is_blank(cluster):
        return None
    if isinstance(cluster, float) and cluster.is_integer():
        cluster = int(cluster)
    return as_text(document_id), as_text(name), cluster
