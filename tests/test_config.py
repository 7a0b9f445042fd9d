from datetime import date

from pydantic import ValidationError
import pytest

from shaheen.config import Settings
from shaheen.models.chilla import ChillaPeriod


def chilla(name, start, end):
    return ChillaPeriod(name=name, start=start, end=end)


def test_defaults():
    config = Settings(_env_file=None)
    assert config.modulo == 40
    assert config.timezone_offset_minutes == 330
    assert [w.name for w in config.windows] == ["1st Chilla", "2nd Chilla", "3rd Chilla"]
    assert config.window("2ND CHILLA").start == date(2025, 9, 10)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SHAHEEN_MODULO", "10")
    monkeypatch.setenv("SHAHEEN_STORE_BACKEND", "mongodb")
    monkeypatch.setenv("SHAHEEN_BULK_START_DATE", "2025-08-01")
    config = Settings(_env_file=None)
    assert config.modulo == 10
    assert config.store_backend == "mongodb"
    assert config.bulk_start_date == date(2025, 8, 1)


def test_unknown_window():
    with pytest.raises(KeyError):
        Settings(_env_file=None).window("4th Chilla")


def test_rejects_non_positive_modulo():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, modulo=0)


def test_rejects_overlapping_windows():
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            windows=[
                chilla("A", date(2025, 8, 1), date(2025, 8, 10)),
                chilla("B", date(2025, 8, 10), date(2025, 8, 20)),
            ],
        )


def test_rejects_duplicate_and_inverted_windows():
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            windows=[chilla("A", date(2025, 8, 1), date(2025, 8, 2)), chilla("A", date(2025, 9, 1), date(2025, 9, 2))],
        )
    with pytest.raises(ValidationError):
        Settings(_env_file=None, windows=[chilla("A", date(2025, 8, 5), date(2025, 8, 1))])
