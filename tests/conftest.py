from __future__ import annotations

import os
import sqlite3
from collections.abc import Generator
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.config.settings import Settings
from src.db.sqlite_client import get_connection, init_schema
from src.polls.repository import create_poll
from src.polls.validation import CreatePollRequest


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Generator[sqlite3.Connection, None, None]:
    os.environ.pop("DATABASE_URL", None)
    db_path = str(tmp_path / "test.db")
    conn = get_connection(db_path)
    init_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def future_dates() -> list[str]:
    start = date.today() + timedelta(days=7)
    return [(start + timedelta(days=offset)).isoformat() for offset in range(2)]


@pytest.fixture
def poll_payload(future_dates: list[str]) -> dict[str, Any]:
    return {
        "title": "Team Sync",
        "description": "Weekly planning",
        "organizerTimezone": "America/New_York",
        "dates": future_dates,
        "timeSlots": [
            {"date": future_dates[0], "startTime": "09:00", "endTime": "10:00"},
            {"date": future_dates[0], "startTime": "14:00", "endTime": "15:00"},
            {"date": future_dates[1], "startTime": "10:00", "endTime": "11:00"},
        ],
    }


@pytest.fixture
def sample_poll(sqlite_db, poll_payload) -> dict[str, Any]:
    return create_poll(sqlite_db, CreatePollRequest.model_validate(poll_payload))


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url="",
        sqlite_db_path=str(tmp_path / "api.db"),
        log_level="INFO",
        base_url="http://testserver",
        cors_origins=(),
        default_timezone="UTC",
        ui_url="http://ui.test",
    )


@pytest.fixture
def api_client(sqlite_db, test_settings) -> Generator[TestClient, None, None]:
    app = create_app(settings=test_settings, conn=sqlite_db)
    with TestClient(app) as client:
        yield client
