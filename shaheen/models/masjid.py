"""Masjid reference data (the affiliated location of students and volunteers)."""
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class MasjidDetails(BaseModel):
    """Denormalized masjid snapshot stored on students, events and certificates."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    masjid_id: Optional[str] = Field(default=None, alias="masjidId")
    masjid_name: Optional[str] = Field(default=None, alias="masjidName")
    cluster_number: Optional[Union[int, str]] = Field(default=None, alias="clusterNumber")


class Masjid(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    cluster_number: Union[int, str] = Field(alias="clusterNumber")

    def to_document(self) -> dict:
        return {"name": self.name, "clusterNumber": self.cluster_number}
