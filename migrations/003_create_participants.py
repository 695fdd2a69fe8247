from __future__ import annotations

from typing import Any

from src.db.sqlite_client import execute_statements, is_postgres


def up(conn: Any) -> None:
    timestamp = "TIMESTAMPTZ" if is_postgres(conn) else "TEXT"
    execute_statements(
        conn,
        [
            f"""
            CREATE TABLE IF NOT EXISTS participants (
                id TEXT PRIMARY KEY,
                poll_id TEXT NOT NULL REFERENCES polls(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                email TEXT,
                email_normalized TEXT,
                timezone TEXT NOT NULL,
                created_at {timestamp} NOT NULL
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_participants_poll ON participants(poll_id)",
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_participants_poll_email
                ON participants(poll_id, email_normalized) WHERE email_normalized IS NOT NULL
            """,
        ],
    )


def down(conn: Any) -> None:
    execute_statements(conn, ["DROP TABLE IF EXISTS participants"])
