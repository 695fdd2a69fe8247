from __future__ import annotations

from typing import Any

from src.db.sqlite_client import execute_statements, is_postgres


def up(conn: Any) -> None:
    timestamp = "TIMESTAMPTZ" if is_postgres(conn) else "TEXT"
    execute_statements(
        conn,
        [
            f"""
            CREATE TABLE IF NOT EXISTS polls (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT,
                organizer_timezone TEXT NOT NULL,
                created_at {timestamp} NOT NULL,
                updated_at {timestamp} NOT NULL
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_polls_created_at ON polls(created_at)",
        ],
    )


def down(conn: Any) -> None:
    execute_statements(conn, ["DROP TABLE IF EXISTS polls"])
