"""Student document: identity, guardian, masjid, and streak state."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shaheen.models.masjid import MasjidDetails


class VolunteerRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    volunteer_id: Optional[str] = Field(default=None, alias="volunteerId")
    volunteer_name: Optional[str] = Field(default=None, alias="volunteerName")


class Student(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    guardian_name: Optional[str] = Field(default=None, alias="guardianName")
    guardian_number: Optional[str] = Field(default=None, alias="guardianNumber")
    class_name: Optional[str] = Field(default=None, alias="class")
    section: Optional[str] = None
    school_name: Optional[str] = None
    dob: Optional[Any] = None
    masjid_details: Optional[MasjidDetails] = None
    volunteer: Optional[VolunteerRef] = None
    special_program_eligible: bool = False

    streak: int = 0
    streak_last_modified: Optional[datetime] = None
    # attendance total last applied to the streak; None on legacy documents
    streak_count: Optional[int] = None
