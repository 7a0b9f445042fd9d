"""Toolkit configuration using Pydantic Settings."""
from datetime import date
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shaheen.models.chilla import ChillaPeriod


def _default_windows() -> list[ChillaPeriod]:
    return [
        ChillaPeriod(name="1st Chilla", start=date(2025, 8, 1), end=date(2025, 9, 9)),
        ChillaPeriod(name="2nd Chilla", start=date(2025, 9, 10), end=date(2025, 10, 19)),
        ChillaPeriod(name="3rd Chilla", start=date(2025, 10, 20), end=date(2025, 11, 28)),
    ]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="SHAHEEN_", extra="ignore"
    )

    # App
    app_name: str = "Shaheen Namaz"
    log_level: str = "INFO"

    # Document store
    store_backend: Literal["firestore", "mongodb"] = "firestore"
    firebase_credentials_path: str = ""  # service account JSON
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "shaheen_namaz"

    # Streak / eligibility
    modulo: int = 40  # one chilla = 40 attendance days
    timezone_offset_minutes: int = 330  # IST, fixed UTC+5:30
    windows: list[ChillaPeriod] = Field(default_factory=_default_windows)
    eligibility_threshold_percent: float = 70.0
    streak_max_attempts: int = 3

    # Output / rendering
    output_dir: str = "output"
    certificate_templates_dir: str = "templates/certificates"  # cluster_NN_certificate.jpg
    volunteer_template_path: str = "templates/volunteer/certificate.jpg"
    certificate_font_path: str = "fonts/Montserrat-SemiBoldItalic.ttf"

    # Script inputs
    bulk_start_date: Optional[date] = None
    bulk_end_date: Optional[date] = None
    audit_start_date: date = date(2025, 8, 1)

    @model_validator(mode="after")
    def _validate_windows(self):
        if self.modulo < 1:
            raise ValueError("MODULO must be a positive integer")
        names = [w.name for w in self.windows]
        if len(set(names)) != len(names):
            raise ValueError(f"Chilla window names must be unique: {names}")
        ordered = sorted(self.windows, key=lambda w: w.start)
        for w in ordered:
            if w.end < w.start:
                raise ValueError(f"Chilla window {w.name!r} ends before it starts")
        for prev, nxt in zip(ordered, ordered[1:]):
            if nxt.start <= prev.end:
                raise ValueError(f"Chilla windows {prev.name!r} and {nxt.name!r} overlap")
        return self

    def window(self, name: str) -> ChillaPeriod:
        for w in self.windows:
            if w.name.casefold() == name.casefold():
                return w
        raise KeyError(f"Unknown chilla window: {name}")


settings = Settings()
