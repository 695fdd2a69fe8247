from __future__ import annotations

from typing import Any

from src.db.sqlite_client import execute_statements, is_postgres


def up(conn: Any) -> None:
    postgres = is_postgres(conn)
    day = "DATE" if postgres else "TEXT"
    timestamp = "TIMESTAMPTZ" if postgres else "TEXT"
    execute_statements(
        conn,
        [
            f"""
            CREATE TABLE IF NOT EXISTS time_slots (
                id TEXT PRIMARY KEY,
                poll_id TEXT NOT NULL REFERENCES polls(id) ON DELETE CASCADE,
                date {day} NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                created_at {timestamp} NOT NULL,
                UNIQUE(poll_id, date, start_time, end_time)
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_time_slots_poll ON time_slots(poll_id)",
        ],
    )


def down(conn: Any) -> None:
    execute_statements(conn, ["DROP TABLE IF EXISTS time_slots"])
