"""
Tests for `api/settings.py`.

Covers contract rules:
- STORE_BACKEND, BOOKING_HORIZON_DAYS and LOG_LEVEL are read from the environment.
- Backend names and log levels are normalized; unknown backends and
  non-integer horizons are refused at startup.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from api.settings import Settings
from domain.offer import DEFAULT_BOOKING_HORIZON_DAYS


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("STORE_BACKEND", "BOOKING_HORIZON_DAYS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.store_backend == "memory"
    assert settings.booking_horizon_days == DEFAULT_BOOKING_HORIZON_DAYS
    assert settings.log_level == "INFO"


def test_reads_and_normalizes_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORE_BACKEND", " Supabase ")
    monkeypatch.setenv("BOOKING_HORIZON_DAYS", "30")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.store_backend == "supabase"
    assert settings.booking_horizon_days == 30
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "name, value",
    [
        ("STORE_BACKEND", "redis"),
        ("BOOKING_HORIZON_DAYS", "ninety"),
    ],
)
def test_invalid_values_are_refused(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
