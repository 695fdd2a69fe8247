from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from fastapi import Request

from src.config.settings import Settings


def get_conn(request: Request) -> Iterator[Any]:
    """Yield the app's connection; requests are serialized on it."""
    with request.app.state.db_lock:
        yield request.app.state.conn


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
