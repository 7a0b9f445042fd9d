"""Certificate records: one per completed streak cycle or eligible chilla period."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shaheen.models.masjid import MasjidDetails


class CertificateRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    student_id: str = Field(alias="studentId")
    name: str = ""
    guardian_number: Optional[str] = Field(default=None, alias="guardianNumber")
    masjid_details: Optional[MasjidDetails] = None
    dob: Optional[Any] = None
    # the triggering attendance instant, not the issuance time
    time: datetime
    special_program: bool = False
    cycle: Optional[int] = None
    issued_at: datetime

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class VolunteerCertificateRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    name: str
    masjid: str = ""
    cluster: str = ""
    period: str
    attendance_percentage: float = Field(alias="attendancePercentage")
    days_present: int = Field(alias="daysPresent")
    total_days: int = Field(alias="totalDays")
    issued_at: datetime

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
