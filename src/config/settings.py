from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from src.utils.timezone import is_valid_timezone


def _get_list_env(name: str, default: str = "") -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str
    sqlite_db_path: str
    log_level: str
    base_url: str
    cors_origins: tuple[str, ...]
    default_timezone: str
    ui_url: str = "http://localhost:8501"


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "").strip(),
        sqlite_db_path=os.getenv("SQLITE_DB_PATH", "data/bettermeet.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        base_url=os.getenv("BASE_URL", "http://localhost:8000").rstrip("/"),
        cors_origins=_get_list_env(
            "CORS_ORIGINS", "http://localhost:8501,http://127.0.0.1:8501"
        ),
        default_timezone=os.getenv("DEFAULT_TIMEZONE", "UTC").strip(),
        ui_url=os.getenv("UI_URL", "http://localhost:8501").rstrip("/"),
    )


def validate_settings(settings: Settings) -> list[str]:
    errors: list[str] = []
    if not settings.base_url:
        errors.append("BASE_URL is required")
    if "://" not in settings.base_url:
        errors.append("BASE_URL must include scheme, e.g. http://")
    if "://" not in settings.ui_url:
        errors.append("UI_URL must include scheme, e.g. http://")
    if not settings.database_url and not settings.sqlite_db_path.strip():
        errors.append("SQLITE_DB_PATH is required when DATABASE_URL is not set")
    if settings.database_url and not settings.database_url.startswith(
        ("postgres://", "postgresql://")
    ):
        errors.append("DATABASE_URL must start with postgres:// or postgresql://")
    if settings.log_level not in logging.getLevelNamesMapping():
        errors.append(f"LOG_LEVEL {settings.log_level!r} is not a logging level")
    if not is_valid_timezone(settings.default_timezone):
        errors.append(f"DEFAULT_TIMEZONE {settings.default_timezone!r} is not a valid timezone")
    return errors


def ensure_runtime_dirs(settings: Settings) -> None:
    if not settings.database_url:
        Path(settings.sqlite_db_path).parent.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    root.setLevel(level)
