from __future__ import annotations

from src.utils.health import readiness


class _BrokenConnection:
    def execute(self, sql: str) -> None:
        raise RuntimeError("database is locked")


def test_readiness_ok_with_sqlite(sqlite_db):
    status = readiness(sqlite_db)
    assert status["ok"] is True
    assert status["dependencies"]["database"] == "ready"


def test_readiness_fails_without_connection():
    status = readiness(None)
    assert status["ok"] is False
    assert "error" in status["dependencies"]["database"]


def test_readiness_fails_when_database_raises():
    status = readiness(_BrokenConnection())
    assert status["ok"] is False
    assert status["dependencies"]["database"] == "error: database is locked"
