from __future__ import annotations

import pytest

from src.config.settings import Settings, validate_settings
from src.utils.timezone import generate_business_hours_time_slots, is_valid_timezone


@pytest.mark.smoke
def test_settings_validation_flags_bad_values():
    settings = Settings(
        database_url="sqlite:///nope.db",
        sqlite_db_path="data/bettermeet.db",
        log_level="INFO",
        base_url="localhost",
        cors_origins=(),
        default_timezone="UTC",
    )
    errors = validate_settings(settings)
    assert "BASE_URL must include scheme, e.g. http://" in errors
    assert "DATABASE_URL must start with postgres:// or postgresql://" in errors


@pytest.mark.smoke
def test_timezone_basics():
    assert is_valid_timezone("UTC")
    assert not is_valid_timezone("Not/AZone")
    assert len(generate_business_hours_time_slots(["2025-03-10"], "UTC")) == 17
