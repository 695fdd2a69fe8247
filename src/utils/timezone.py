"""Timezone helpers for poll time slots.

A time slot is a plain dict with ``date`` (YYYY-MM-DD), ``start_time`` and
``end_time`` (HH:MM, 24h). Conversion reads those values as wall-clock time in
the source zone and re-renders the same instant as wall-clock time in the
target zone. Keys other than the three above (``id`` for stored slots) are
carried through untouched.

Business hours are fixed at 09:00-17:00 local time.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, available_timezones

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

BUSINESS_HOURS_START_MINUTES = 9 * 60
BUSINESS_HOURS_END_MINUTES = 17 * 60
SLOT_MINUTES = 30
# 09:00, 09:30, ... 17:00 (17 start times, the 17:00 start is inside the inclusive window).
BUSINESS_HOURS_START_TIMES = tuple(
    f"{minutes // 60:02d}:{minutes % 60:02d}"
    for minutes in range(
        BUSINESS_HOURS_START_MINUTES, BUSINESS_HOURS_END_MINUTES + 1, SLOT_MINUTES
    )
)

LOCALTIME_PATH = Path("/etc/localtime")

# One representative zone per whole-hour UTC offset (east positive).
OFFSET_TIMEZONES: dict[int, str] = {
    -12: "Pacific/Kwajalein",
    -11: "Pacific/Midway",
    -10: "Pacific/Honolulu",
    -9: "America/Anchorage",
    -8: "America/Los_Angeles",
    -7: "America/Denver",
    -6: "America/Chicago",
    -5: "America/New_York",
    -4: "America/Halifax",
    -3: "America/Sao_Paulo",
    -2: "Atlantic/South_Georgia",
    -1: "Atlantic/Azores",
    0: "Europe/London",
    1: "Europe/Paris",
    2: "Europe/Berlin",
    3: "Europe/Moscow",
    4: "Asia/Dubai",
    5: "Asia/Karachi",
    6: "Asia/Dhaka",
    7: "Asia/Bangkok",
    8: "Asia/Shanghai",
    9: "Asia/Tokyo",
    10: "Australia/Sydney",
    11: "Pacific/Norfolk",
    12: "Pacific/Fiji",
}

COMMON_TIMEZONES = (
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Toronto",
    "America/Vancouver",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Europe/Rome",
    "Europe/Madrid",
    "Asia/Tokyo",
    "Asia/Shanghai",
    "Asia/Kolkata",
    "Asia/Dubai",
    "Australia/Sydney",
    "Australia/Melbourne",
    "Pacific/Auckland",
    "UTC",
)

# Used when the zoneinfo database cannot be enumerated.
FALLBACK_TIMEZONES = (
    "UTC",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Asia/Tokyo",
    "Asia/Shanghai",
    "Australia/Sydney",
)

_CONVERSION_ERRORS = (ValueError, TypeError, KeyError, OverflowError)


@dataclass(frozen=True)
class TimezoneOption:
    value: str
    label: str
    offset: str
    region: str


def is_valid_timezone(name: str) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
    except Exception:
        return False
    return True


def _zone_from_localtime(path: Path = LOCALTIME_PATH) -> str | None:
    """Return the zone name /etc/localtime links to, e.g. 'Europe/Paris'."""
    try:
        target = path.resolve(strict=True)
    except OSError:
        return None
    parts = target.parts
    if "zoneinfo" not in parts:
        return None
    idx = len(parts) - 1 - parts[::-1].index("zoneinfo")
    return "/".join(parts[idx + 1 :]) or None


def _local_utc_offset_minutes() -> int:
    offset = datetime.now().astimezone().utcoffset() or timedelta(0)
    return int(offset.total_seconds() // 60)


def _timezone_from_offset(offset_minutes: int) -> str | None:
    if offset_minutes % 60:
        return None
    return OFFSET_TIMEZONES.get(offset_minutes // 60)


def detect_user_timezone() -> str:
    """Best-effort IANA name of the local timezone.

    Order: TZ environment variable, the /etc/localtime link, a representative
    zone for the local whole-hour UTC offset, and finally 'UTC'.
    """
    for candidate in (os.getenv("TZ", "").strip().lstrip(":"), _zone_from_localtime()):
        if candidate and is_valid_timezone(candidate):
            return candidate
    try:
        zone = _timezone_from_offset(_local_utc_offset_minutes())
    except (OSError, OverflowError, ValueError) as exc:
        logger.warning("[TIMEZONE] offset based detection failed: %s", exc)
        zone = None
    return zone or "UTC"


def _parse_wall_clock(value: datetime | str) -> datetime:
    return value if isinstance(value, datetime) else date_parser.isoparse(value)


def convert_timezone(value: datetime | str, from_timezone: str, to_timezone: str) -> datetime:
    """Re-express wall-clock ``value`` in ``from_timezone`` as naive wall-clock time in ``to_timezone``."""
    source = ZoneInfo(from_timezone)
    wall = _parse_wall_clock(value)
    if wall.tzinfo is not None:
        wall = wall.astimezone(source).replace(tzinfo=None)
    instant = wall.replace(tzinfo=source).astimezone(UTC)
    return instant.astimezone(ZoneInfo(to_timezone)).replace(tzinfo=None)


def _convert_slot(slot: dict[str, Any], from_timezone: str, to_timezone: str) -> dict[str, Any]:
    try:
        start = convert_timezone(f"{slot['date']}T{slot['start_time']}", from_timezone, to_timezone)
        end = convert_timezone(f"{slot['date']}T{slot['end_time']}", from_timezone, to_timezone)
    except _CONVERSION_ERRORS as exc:
        logger.error(
            "[TIMEZONE] could not convert slot %s %s from %s to %s: %s",
            slot.get("date"),
            slot.get("start_time"),
            from_timezone,
            to_timezone,
            exc,
        )
        return {**slot, "original_date": slot.get("date")}
    return {
        **slot,
        "date": start.strftime("%Y-%m-%d"),
        "start_time": start.strftime("%H:%M"),
        "end_time": end.strftime("%H:%M"),
        "original_date": slot["date"],
    }


def convert_time_slots(
    time_slots: list[dict[str, Any]], from_timezone: str, to_timezone: str
) -> list[dict[str, Any]]:
    """Convert slots between zones, tagging each with its pre-conversion ``original_date``.

    A slot that cannot be converted is returned with its original values.
    """
    if from_timezone == to_timezone:
        return [{**slot, "original_date": slot["date"]} for slot in time_slots]
    return [_convert_slot(slot, from_timezone, to_timezone) for slot in time_slots]


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    return f"{value // 60:02d}:{value % 60:02d}"


def generate_business_hours_time_slots(dates: list[str], timezone: str) -> list[dict[str, Any]]:
    """Half-hour slots starting 09:00 through 17:00 for each date.

    Values are wall-clock times in ``timezone``; they do not depend on the zone.
    """
    slots: list[dict[str, Any]] = []
    for day in dates:
        for start_time in BUSINESS_HOURS_START_TIMES:
            start = datetime.strptime(f"{day} {start_time}", "%Y-%m-%d %H:%M")
            end = start + timedelta(minutes=SLOT_MINUTES)
            slots.append({"date": day, "start_time": start_time, "end_time": end.strftime("%H:%M")})
    return slots


def _starts_in_business_hours(slot: dict[str, Any]) -> bool:
    try:
        minutes = time_to_minutes(str(slot.get("start_time", "")))
    except ValueError:
        return False
    return BUSINESS_HOURS_START_MINUTES <= minutes <= BUSINESS_HOURS_END_MINUTES


def filter_to_business_hours(
    converted_slots: list[dict[str, Any]], timezone: str = "UTC"
) -> list[dict[str, Any]]:
    """Keep slots starting within 09:00-17:00 inclusive.

    When every slot falls outside business hours, a full business-hours set is
    generated for the converted dates instead of returning nothing.
    """
    filtered = [slot for slot in converted_slots if _starts_in_business_hours(slot)]
    if not filtered and converted_slots:
        unique_dates = sorted({str(slot["date"]) for slot in converted_slots})
        logger.info(
            "[TIMEZONE] no slots inside business hours in %s, generating %d day(s) of defaults",
            timezone,
            len(unique_dates),
        )
        return generate_business_hours_time_slots(unique_dates, timezone)
    return filtered


def convert_business_hours_time_slots(
    time_slots: list[dict[str, Any]], from_timezone: str, to_timezone: str
) -> list[dict[str, Any]]:
    converted = convert_time_slots(time_slots, from_timezone, to_timezone)
    return filter_to_business_hours(converted, to_timezone)


def _as_aware(value: datetime | str) -> datetime:
    parsed = _parse_wall_clock(value)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def format_in_timezone(
    value: datetime | str, timezone: str, fmt: str = "%Y-%m-%d %H:%M:%S %Z"
) -> str:
    """Render an instant in ``timezone``. Naive values are treated as UTC."""
    return _as_aware(value).astimezone(ZoneInfo(timezone)).strftime(fmt)


def format_time_for_display(value: datetime | str, timezone: str, hour12: bool = True) -> str:
    local = _as_aware(value).astimezone(ZoneInfo(timezone))
    if not hour12:
        return local.strftime("%H:%M")
    return local.strftime("%I:%M %p").lstrip("0")


def format_date_for_display(value: datetime | str, timezone: str) -> str:
    local = _as_aware(value).astimezone(ZoneInfo(timezone))
    return f"{local:%a}, {local:%b} {local.day}"


def get_timezone_offset_string(timezone: str, at: datetime | None = None) -> str:
    """Offset of ``timezone`` at ``at`` (default now) as '+HH:MM' / '-HH:MM'.

    Zones behind UTC render with '+', zones ahead with '-'. Invalid zones
    render '+00:00'.
    """
    if not is_valid_timezone(timezone):
        logger.warning("[TIMEZONE] offset requested for invalid timezone %r", timezone)
        return "+00:00"
    moment = at or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    offset = moment.astimezone(ZoneInfo(timezone)).utcoffset() or timedelta(0)
    offset_minutes = int(offset.total_seconds() // 60)
    sign = "+" if offset_minutes <= 0 else "-"
    hours, minutes = divmod(abs(offset_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def _timezone_option(name: str, at: datetime) -> TimezoneOption:
    offset = get_timezone_offset_string(name, at)
    parts = name.split("/")
    city = parts[-1].replace("_", " ") or name
    label = city
    if len(parts) > 2:
        label = f"{parts[1].replace('_', ' ')} - {city}"
    return TimezoneOption(value=name, label=f"{label} ({offset})", offset=offset, region=parts[0])


def get_all_timezones() -> list[TimezoneOption]:
    now = datetime.now(UTC)
    names = sorted(available_timezones()) or list(FALLBACK_TIMEZONES)
    if "UTC" not in names:
        names.insert(0, "UTC")
    options = [_timezone_option(name, now) for name in names]
    return sorted(options, key=lambda option: (option.offset, option.label))


def get_common_timezones() -> list[TimezoneOption]:
    by_value = {option.value: option for option in get_all_timezones()}
    return [by_value[name] for name in COMMON_TIMEZONES if name in by_value]


def search_timezones(query: str, limit: int = 10) -> list[TimezoneOption]:
    if not query.strip():
        return get_common_timezones()[:limit]
    term = query.strip().lower()
    matches = [
        option
        for option in get_all_timezones()
        if term in option.label.lower()
        or term in option.value.lower()
        or term in option.region.lower()
    ]
    return matches[:limit]
