"""FastAPI application factory.

Run with ``uvicorn src.api.app:create_app --factory``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlencode
from typing import Any

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from src.api.deps import get_conn
from src.api.error_handlers import register_exception_handlers
from src.api.routes import participants, polls, timezones
from src.config.settings import (
    Settings,
    configure_logging,
    ensure_runtime_dirs,
    load_settings,
    validate_settings,
)
from src.db.sqlite_client import get_connection, init_schema
from src.polls.repository import get_poll_by_id_or_raise
from src.utils.health import liveness, readiness

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, conn: Any | None = None) -> FastAPI:
    """Build the API; a provided ``conn`` is used as is and never closed by the app."""
    if settings is None:
        load_dotenv()
        settings = load_settings()
    configure_logging(settings.log_level)
    errors = validate_settings(settings)
    if errors:
        raise RuntimeError("Invalid configuration: " + "; ".join(errors))

    owns_conn = conn is None
    if conn is None:
        ensure_runtime_dirs(settings)
        conn = get_connection(settings.sqlite_db_path, settings.database_url)
        init_schema(conn)
        logger.info("[API] database ready")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_conn:
            conn.close()

    app = FastAPI(title="BetterMeet", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.conn = conn
    app.state.db_lock = threading.Lock()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(polls.router, prefix="/api", tags=["polls"])
    app.include_router(participants.router, prefix="/api", tags=["participants"])
    app.include_router(timezones.router, prefix="/api", tags=["timezones"])

    @app.get("/health")
    def health() -> dict[str, Any]:
        return liveness()

    @app.get("/ready")
    def ready(db: Any = Depends(get_conn)) -> JSONResponse:
        report = readiness(db)
        return JSONResponse(status_code=200 if report["ok"] else 503, content=report)

    @app.get("/poll/{poll_id}", include_in_schema=False)
    def open_shared_poll(poll_id: str, db: Any = Depends(get_conn)) -> RedirectResponse:
        """Share links land here and continue to the poll page of the UI."""
        get_poll_by_id_or_raise(db, poll_id)
        return RedirectResponse(f"{settings.ui_url.rstrip('/')}/?{urlencode({'poll': poll_id})}")

    return app
