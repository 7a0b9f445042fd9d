"""Pydantic document models."""
from shaheen.models.attendance import AttendanceEvent, TrackedBy, attendance_key, SYSTEM_USER_ID
from shaheen.models.certificate import CertificateRecord, VolunteerCertificateRecord
from shaheen.models.chilla import ChillaPeriod
from shaheen.models.masjid import Masjid, MasjidDetails
from shaheen.models.student import Student, VolunteerRef
from shaheen.models.volunteer import Volunteer

__all__ = [
    "AttendanceEvent",
    "TrackedBy",
    "attendance_key",
    "SYSTEM_USER_ID",
    "CertificateRecord",
    "VolunteerCertificateRecord",
    "ChillaPeriod",
    "Masjid",
    "MasjidDetails",
    "Student",
    "VolunteerRef",
    "Volunteer",
]
