from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shaheen.models.masjid import MasjidDetails

SYSTEM_USER_ID = "system"


class TrackedBy(BaseModel):
    """Who recorded the attendance (a volunteer, or the system sentinel)."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(default=SYSTEM_USER_ID, alias="userId")
    name: str = "Unknown"


class AttendanceEvent(BaseModel):
    """One attendance record, with the student's details denormalized onto it."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    student_id: str = Field(alias="studentId")
    attendance_time: datetime
    name: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    class_name: Optional[str] = Field(default=None, alias="class")
    section: Optional[str] = None
    school: Optional[str] = None
    guardian_number: Optional[str] = Field(default=None, alias="guardianNumber")
    masjid_details: Optional[MasjidDetails] = None
    tracked_by: TrackedBy = Field(default_factory=TrackedBy)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def attendance_key(student_id: str, day: date) -> str:
    """Deterministic document key: at most one event per student per local day."""
    return f"{student_id}_{day.isoformat()}"
