"""Idempotent certificate issuance: one record per deterministic key, never overwritten."""
from datetime import datetime, timezone
import logging
from typing import Any, Mapping

from shaheen.errors import DuplicateWrite
from shaheen.models.certificate import CertificateRecord, VolunteerCertificateRecord
from shaheen.models.chilla import ChillaPeriod
from shaheen.models.volunteer import Volunteer
from shaheen.services.attendance_window import WindowSummary
from shaheen.store.base import CERTIFICATES, KEY_FIELD, VOLUNTEER_CERTIFICATES, Store

logger = logging.getLogger(__name__)


def student_certificate_key(student_id: str, cycle: int) -> str:
    return f"{student_id}_cycle{cycle}"


def volunteer_certificate_key(user_id: str, period: ChillaPeriod) -> str:
    return f"{user_id}_{period.slug}"


class CertificateIssuer:
    def __init__(self, store: Store):
        self.store = store

    async def issue(self, collection: str, key: str, record: dict) -> bool:
        """Create the record unless the key exists. False means it was already issued."""
        created = await self.store.create(collection, key, record)
        if not created:
            logger.info("Skipping certificate: %s", DuplicateWrite(collection, key))
        return created

    async def issue_student_certificate(
        self, student: Mapping[str, Any], triggering_time: datetime, cycle: int
    ) -> bool:
        student_id = student[KEY_FIELD]
        details = student.get("masjid_details")
        record = CertificateRecord(
            student_id=student_id,
            name=student.get("name") or "",
            guardian_number=student.get("guardianNumber"),
            masjid_details=details if isinstance(details, dict) else None,
            dob=student.get("dob"),
            time=triggering_time,
            special_program=bool(student.get("special_program_eligible", False)),
            cycle=cycle,
            issued_at=datetime.now(timezone.utc),
        )
        created = await self.issue(CERTIFICATES, student_certificate_key(student_id, cycle), record.to_document())
        if created:
            logger.info("Certificate issued for student %s (cycle %d)", student_id, cycle)
        return created

    async def issue_volunteer_certificate(
        self, volunteer: Volunteer, period: ChillaPeriod, summary: WindowSummary
    ) -> bool:
        """Issue a chilla certificate for an eligible volunteer; ineligible summaries are refused."""
        if not summary.eligible:
            raise ValueError(
                f"Volunteer {volunteer.user_id} is not eligible for {period.name} "
                f"({summary.attendance_percentage:.2f}%)"
            )
        record = VolunteerCertificateRecord(
            user_id=volunteer.user_id,
            name=volunteer.name,
            masjid=volunteer.masjid,
            cluster=volunteer.cluster,
            period=period.name,
            attendance_percentage=summary.attendance_percentage,
            days_present=summary.days_present,
            total_days=summary.total_days,
            issued_at=datetime.now(timezone.utc),
        )
        return await self.issue(
            VOLUNTEER_CERTIFICATES, volunteer_certificate_key(volunteer.user_id, period), record.to_document()
        )
