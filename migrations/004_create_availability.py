from __future__ import annotations

from typing import Any

from src.db.sqlite_client import execute_statements, is_postgres


def up(conn: Any) -> None:
    timestamp = "TIMESTAMPTZ" if is_postgres(conn) else "TEXT"
    execute_statements(
        conn,
        [
            f"""
            CREATE TABLE IF NOT EXISTS availability (
                id TEXT PRIMARY KEY,
                participant_id TEXT NOT NULL REFERENCES participants(id) ON DELETE CASCADE,
                time_slot_id TEXT NOT NULL REFERENCES time_slots(id) ON DELETE CASCADE,
                is_available INTEGER NOT NULL CHECK(is_available IN (0,1)),
                created_at {timestamp} NOT NULL,
                UNIQUE(participant_id, time_slot_id)
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_availability_participant ON availability(participant_id)",
            "CREATE INDEX IF NOT EXISTS idx_availability_time_slot ON availability(time_slot_id)",
        ],
    )


def down(conn: Any) -> None:
    execute_statements(conn, ["DROP TABLE IF EXISTS availability"])
