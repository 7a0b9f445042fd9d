from datetime import date
import re

from pydantic import BaseModel


class ChillaPeriod(BaseModel):
    """Named attendance window; start and end are inclusive local (IST) dates."""
    name: str
    start: date
    end: date

    @property
    def slug(self) -> str:
        return re.sub(r"[^a-z0-9]+", "_", self.name.strip().lower()).strip("_") or "period"

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end
