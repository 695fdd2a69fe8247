from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Query

from src.utils.timezone import detect_user_timezone, get_timezone_offset_string, search_timezones

router = APIRouter()


@router.get("/timezones")
def search_timezones_route(
    q: str = Query(""), limit: int = Query(10, ge=1, le=100)
) -> dict[str, Any]:
    return {"timezones": [asdict(option) for option in search_timezones(q, limit)]}


@router.get("/timezones/detect")
def detect_timezone_route() -> dict[str, str]:
    """Timezone of the server host; clients normally send their own."""
    timezone = detect_user_timezone()
    return {"timezone": timezone, "offset": get_timezone_offset_string(timezone)}
