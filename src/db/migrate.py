from __future__ import annotations

import argparse
import importlib
import logging
import pkgutil
from pathlib import Path

from dotenv import load_dotenv

from src.config.settings import configure_logging, load_settings
from src.db.sqlite_client import get_connection, is_postgres

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


def ensure_migrations_table(conn: object) -> None:
    if is_postgres(conn):
        cur = conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS _migrations (
                id BIGSERIAL PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
    else:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS _migrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                applied_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )
    conn.commit()


def applied_migration_names(conn: object) -> set[str]:
    cur = conn.cursor() if is_postgres(conn) else conn
    rows = cur.execute("SELECT name FROM _migrations").fetchall()
    return {row["name"] if isinstance(row, dict) else row[0] for row in rows}


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> list[str]:
    modules = [
        name for _, name, _ in pkgutil.iter_modules([str(directory)]) if name[0:3].isdigit()
    ]
    return sorted(modules)


def apply_migrations(conn: object) -> list[str]:
    """Apply pending migrations in order; return the names applied in this call."""
    ensure_migrations_table(conn)
    already = applied_migration_names(conn)
    applied: list[str] = []
    for module_name in discover_migrations():
        if module_name in already:
            continue
        mod = importlib.import_module(f"migrations.{module_name}")
        mod.up(conn)
        cur = conn.cursor() if is_postgres(conn) else conn
        if is_postgres(conn):
            cur.execute("INSERT INTO _migrations(name) VALUES (%s)", (module_name,))
        else:
            cur.execute("INSERT INTO _migrations(name) VALUES (?)", (module_name,))
        conn.commit()
        logger.info("[MIGRATE] applied %s", module_name)
        applied.append(module_name)
    return applied


def apply_all(db_path: str, database_url: str = "") -> list[str]:
    conn = get_connection(db_path, database_url)
    try:
        return apply_migrations(conn)
    finally:
        conn.close()


def main() -> None:
    load_dotenv()
    settings = load_settings()
    configure_logging(settings.log_level)
    parser = argparse.ArgumentParser(
        description="Apply pending BetterMeet schema migrations (Postgres when DATABASE_URL is set)."
    )
    parser.add_argument("--db-path", default=settings.sqlite_db_path)
    args = parser.parse_args()
    applied = apply_all(args.db_path, settings.database_url)
    logger.info("[MIGRATE] %d migration(s) applied", len(applied))


if __name__ == "__main__":
    main()
