from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS polls (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    organizer_timezone TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_polls_created_at ON polls(created_at);

CREATE TABLE IF NOT EXISTS time_slots (
    id TEXT PRIMARY KEY,
    poll_id TEXT NOT NULL REFERENCES polls(id) ON DELETE CASCADE,
    date TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE(poll_id, date, start_time, end_time)
);

CREATE INDEX IF NOT EXISTS idx_time_slots_poll ON time_slots(poll_id);

CREATE TABLE IF NOT EXISTS participants (
    id TEXT PRIMARY KEY,
    poll_id TEXT NOT NULL REFERENCES polls(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    email TEXT,
    email_normalized TEXT,
    timezone TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_participants_poll ON participants(poll_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_participants_poll_email
    ON participants(poll_id, email_normalized) WHERE email_normalized IS NOT NULL;

CREATE TABLE IF NOT EXISTS availability (
    id TEXT PRIMARY KEY,
    participant_id TEXT NOT NULL REFERENCES participants(id) ON DELETE CASCADE,
    time_slot_id TEXT NOT NULL REFERENCES time_slots(id) ON DELETE CASCADE,
    is_available INTEGER NOT NULL CHECK(is_available IN (0,1)),
    created_at TEXT NOT NULL,
    UNIQUE(participant_id, time_slot_id)
);

CREATE INDEX IF NOT EXISTS idx_availability_participant ON availability(participant_id);
CREATE INDEX IF NOT EXISTS idx_availability_time_slot ON availability(time_slot_id);
"""

POSTGRES_SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS polls (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        organizer_timezone TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_polls_created_at ON polls(created_at)",
    """
    CREATE TABLE IF NOT EXISTS time_slots (
        id TEXT PRIMARY KEY,
        poll_id TEXT NOT NULL REFERENCES polls(id) ON DELETE CASCADE,
        date DATE NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        UNIQUE(poll_id, date, start_time, end_time)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_time_slots_poll ON time_slots(poll_id)",
    """
    CREATE TABLE IF NOT EXISTS participants (
        id TEXT PRIMARY KEY,
        poll_id TEXT NOT NULL REFERENCES polls(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        email TEXT,
        email_normalized TEXT,
        timezone TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_participants_poll ON participants(poll_id)",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_participants_poll_email
        ON participants(poll_id, email_normalized) WHERE email_normalized IS NOT NULL
    """,
    """
    CREATE TABLE IF NOT EXISTS availability (
        id TEXT PRIMARY KEY,
        participant_id TEXT NOT NULL REFERENCES participants(id) ON DELETE CASCADE,
        time_slot_id TEXT NOT NULL REFERENCES time_slots(id) ON DELETE CASCADE,
        is_available INTEGER NOT NULL CHECK(is_available IN (0,1)),
        created_at TIMESTAMPTZ NOT NULL,
        UNIQUE(participant_id, time_slot_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_availability_participant ON availability(participant_id)",
    "CREATE INDEX IF NOT EXISTS idx_availability_time_slot ON availability(time_slot_id)",
]

POLL_UPDATABLE_COLUMNS = ("title", "description")
PARTICIPANT_UPDATABLE_COLUMNS = ("name", "email", "email_normalized", "timezone")


def is_postgres(conn: Any) -> bool:
    return conn.__class__.__module__.startswith("psycopg")


def _adapt_sql(conn: Any, sql: str) -> str:
    return sql.replace("?", "%s") if is_postgres(conn) else sql


def _execute(conn: Any, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Any:
    if is_postgres(conn):
        cur = conn.cursor()
        cur.execute(_adapt_sql(conn, sql), tuple(params))
        return cur
    return conn.execute(_adapt_sql(conn, sql), tuple(params))


def _executemany(conn: Any, sql: str, params_seq: list[tuple[Any, ...]]) -> Any:
    if is_postgres(conn):
        cur = conn.cursor()
        cur.executemany(_adapt_sql(conn, sql), params_seq)
        return cur
    return conn.executemany(_adapt_sql(conn, sql), params_seq)


def row_to_dict(row: Any) -> dict[str, Any]:
    data = row if isinstance(row, dict) else dict(row)
    return {
        key: value.isoformat() if isinstance(value, (datetime, date)) else value
        for key, value in data.items()
    }


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def normalize_email(email: str | None) -> str | None:
    if email is None or not email.strip():
        return None
    return email.strip().lower()


def is_unique_violation(exc: BaseException) -> bool:
    if isinstance(exc, sqlite3.IntegrityError):
        return "UNIQUE" in str(exc).upper()
    return getattr(exc, "sqlstate", None) == "23505"


def get_connection(db_path: str, database_url: str = "") -> Any:
    """Postgres when ``database_url`` is set, otherwise SQLite at ``db_path``."""
    database_url = database_url.strip()
    if database_url:
        from psycopg import connect
        from psycopg.rows import dict_row

        return connect(database_url, row_factory=dict_row, autocommit=False)

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def execute_statements(conn: Any, statements: list[str]) -> None:
    """Run DDL statements one by one on either backend, then commit."""
    cur = conn.cursor() if is_postgres(conn) else conn
    for statement in statements:
        cur.execute(statement)
    conn.commit()


def init_schema(conn: Any) -> None:
    if is_postgres(conn):
        execute_statements(conn, POSTGRES_SCHEMA_STATEMENTS)
    else:
        conn.executescript(SQLITE_SCHEMA)
        conn.commit()


@contextmanager
def transaction(conn: Any) -> Iterator[Any]:
    """Commit on success, roll back and re-raise on any error."""
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def _update_columns(
    conn: Any, table: str, row_id: str, fields: dict[str, Any], allowed: tuple[str, ...]
) -> int:
    columns = [name for name in allowed if name in fields]
    if not columns:
        row = _execute(conn, f"SELECT id FROM {table} WHERE id = ?", [row_id]).fetchone()
        return 1 if row else 0
    assignments = ", ".join(f"{name} = ?" for name in columns)
    params = [fields[name] for name in columns]
    if table == "polls":
        assignments += ", updated_at = ?"
        params.append(utc_now_iso())
    cur = _execute(conn, f"UPDATE {table} SET {assignments} WHERE id = ?", [*params, row_id])
    return int(cur.rowcount)


# --- polls ---


def insert_poll(
    conn: Any, title: str, description: str | None, organizer_timezone: str
) -> str:
    poll_id = new_id()
    now = utc_now_iso()
    _execute(
        conn,
        """
        INSERT INTO polls (id, title, description, organizer_timezone, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        [poll_id, title, description, organizer_timezone, now, now],
    )
    return poll_id


def get_poll_row(conn: Any, poll_id: str) -> dict[str, Any] | None:
    row = _execute(conn, "SELECT * FROM polls WHERE id = ?", [poll_id]).fetchone()
    return row_to_dict(row) if row else None


def get_poll_rows_created_between(conn: Any, start: str, end: str) -> list[dict[str, Any]]:
    rows = _execute(
        conn,
        "SELECT * FROM polls WHERE created_at >= ? AND created_at <= ? ORDER BY created_at DESC",
        [start, end],
    ).fetchall()
    return [row_to_dict(row) for row in rows]


def update_poll_row(conn: Any, poll_id: str, fields: dict[str, Any]) -> int:
    return _update_columns(conn, "polls", poll_id, fields, POLL_UPDATABLE_COLUMNS)


def delete_poll_row(conn: Any, poll_id: str) -> int:
    cur = _execute(conn, "DELETE FROM polls WHERE id = ?", [poll_id])
    return int(cur.rowcount)


def delete_all_polls(conn: Any) -> None:
    for table in ("availability", "participants", "time_slots", "polls"):
        _execute(conn, f"DELETE FROM {table}")


# --- time slots ---


def insert_time_slots(
    conn: Any, poll_id: str, slots: list[tuple[str, str, str]]
) -> list[str]:
    now = utc_now_iso()
    rows = [(new_id(), poll_id, d, s, e, now) for d, s, e in slots]
    _executemany(
        conn,
        """
        INSERT INTO time_slots (id, poll_id, date, start_time, end_time, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        rows,
    )
    return [row[0] for row in rows]


def get_time_slots(conn: Any, poll_id: str) -> list[dict[str, Any]]:
    rows = _execute(
        conn,
        "SELECT * FROM time_slots WHERE poll_id = ? ORDER BY date ASC, start_time ASC",
        [poll_id],
    ).fetchall()
    return [row_to_dict(row) for row in rows]


# --- participants ---


def insert_participant(
    conn: Any, poll_id: str, name: str, email: str | None, timezone: str
) -> str:
    participant_id = new_id()
    _execute(
        conn,
        """
        INSERT INTO participants (id, poll_id, name, email, email_normalized, timezone, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [participant_id, poll_id, name, email, normalize_email(email), timezone, utc_now_iso()],
    )
    return participant_id


def find_participant_by_email(conn: Any, poll_id: str, email: str) -> dict[str, Any] | None:
    row = _execute(
        conn,
        "SELECT * FROM participants WHERE poll_id = ? AND email_normalized = ?",
        [poll_id, normalize_email(email)],
    ).fetchone()
    return row_to_dict(row) if row else None


def get_participant_row(conn: Any, participant_id: str) -> dict[str, Any] | None:
    row = _execute(conn, "SELECT * FROM participants WHERE id = ?", [participant_id]).fetchone()
    return row_to_dict(row) if row else None


def get_participant_rows(conn: Any, poll_id: str) -> list[dict[str, Any]]:
    rows = _execute(
        conn,
        "SELECT * FROM participants WHERE poll_id = ? ORDER BY created_at ASC",
        [poll_id],
    ).fetchall()
    return [row_to_dict(row) for row in rows]


def update_participant_row(conn: Any, participant_id: str, fields: dict[str, Any]) -> int:
    if "email" in fields:
        fields = {**fields, "email_normalized": normalize_email(fields["email"])}
    return _update_columns(
        conn, "participants", participant_id, fields, PARTICIPANT_UPDATABLE_COLUMNS
    )


def delete_participant_row(conn: Any, participant_id: str) -> int:
    cur = _execute(conn, "DELETE FROM participants WHERE id = ?", [participant_id])
    return int(cur.rowcount)


# --- availability ---


def insert_availability(
    conn: Any, participant_id: str, entries: list[tuple[str, bool]]
) -> None:
    now = utc_now_iso()
    _executemany(
        conn,
        """
        INSERT INTO availability (id, participant_id, time_slot_id, is_available, created_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        [
            (new_id(), participant_id, time_slot_id, 1 if is_available else 0, now)
            for time_slot_id, is_available in entries
        ],
    )


def delete_availability(conn: Any, participant_id: str) -> None:
    _execute(conn, "DELETE FROM availability WHERE participant_id = ?", [participant_id])


def _availability_from_row(row: Any) -> dict[str, Any]:
    data = row_to_dict(row)
    data["is_available"] = bool(data["is_available"])
    return data


def get_participant_availability(conn: Any, participant_id: str) -> list[dict[str, Any]]:
    rows = _execute(
        conn,
        "SELECT * FROM availability WHERE participant_id = ? ORDER BY created_at ASC",
        [participant_id],
    ).fetchall()
    return [_availability_from_row(row) for row in rows]


def get_poll_availability(conn: Any, poll_id: str) -> list[dict[str, Any]]:
    rows = _execute(
        conn,
        """
        SELECT a.*
        FROM availability a
        JOIN participants p ON a.participant_id = p.id
        WHERE p.poll_id = ?
        ORDER BY a.created_at ASC
        """,
        [poll_id],
    ).fetchall()
    return [_availability_from_row(row) for row in rows]


def get_poll_slot_ids(conn: Any, poll_id: str) -> set[str]:
    rows = _execute(conn, "SELECT id FROM time_slots WHERE poll_id = ?", [poll_id]).fetchall()
    return {str(row_to_dict(row)["id"]) for row in rows}
