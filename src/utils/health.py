from __future__ import annotations

from typing import Any


def liveness() -> dict[str, Any]:
    return {"ok": True}


def _database_ready(conn: Any) -> str:
    try:
        if hasattr(conn, "execute"):
            conn.execute("SELECT 1").fetchone()
        else:
            cur = conn.cursor()
            cur.execute("SELECT 1")
            cur.fetchone()
        return "ready"
    except Exception as exc:
        return f"error: {exc}"


def readiness(conn: Any | None) -> dict[str, Any]:
    dependencies = {
        "database": "error: unavailable" if conn is None else _database_ready(conn),
    }
    return {"ok": dependencies["database"] == "ready", "dependencies": dependencies}
