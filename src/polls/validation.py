"""Request schemas for poll creation, voting and participant updates.

Wire payloads are camelCase; attributes are snake_case. Failures are reported
as field-path keyed messages, e.g. ``{"timeSlots.0.endTime": "End time must be
after start time"}``.
"""

from __future__ import annotations

import re
from datetime import date

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from src.utils.timezone import is_valid_timezone, time_to_minutes

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SLOT_KEY_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})-(\d{1,2}:\d{2})$")

MAX_TITLE_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 1000
MAX_NAME_LENGTH = 255
MAX_EMAIL_LENGTH = 255
MAX_DATES = 30
MAX_TIME_SLOTS = 100


def parse_date(value: str) -> date | None:
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def normalize_time(value: str) -> str:
    """Return zero-padded HH:MM or raise ValueError."""
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError("Time must be in HH:MM format")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def parse_slot_key(key: str) -> tuple[str, str]:
    """Split a slot key 'YYYY-MM-DD-HH:MM' into (date, start_time)."""
    match = SLOT_KEY_PATTERN.match(key.strip()) if isinstance(key, str) else None
    if not match or parse_date(match.group(1)) is None:
        raise ValueError(f"Invalid slot key: {key!r}")
    return match.group(1), normalize_time(match.group(2))


def _check_timezone(value: str) -> str:
    if not is_valid_timezone(value):
        raise ValueError("Invalid timezone")
    return value


def _check_title(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError("Title is required")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise ValueError("Title must be less than 255 characters")
    return cleaned


def _check_description(value: str | None) -> str | None:
    if value is not None and len(value) > MAX_DESCRIPTION_LENGTH:
        raise ValueError("Description must be less than 1000 characters")
    return value


def _check_name(value: str) -> str:
    cleaned = " ".join(value.strip().split())
    if not cleaned:
        raise ValueError("Name is required")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValueError("Name must be less than 255 characters")
    return cleaned


def _check_email(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    cleaned = value.strip()
    if len(cleaned) > MAX_EMAIL_LENGTH:
        raise ValueError("Email must be less than 255 characters")
    try:
        validate_email(cleaned, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError("Invalid email format") from exc
    return cleaned


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TimeSlotInput(_CamelModel):
    date: str
    start_time: str
    end_time: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if parse_date(v) is None:
            raise ValueError("Invalid date format")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return normalize_time(v)

    @field_validator("end_time")
    @classmethod
    def validate_end_after_start(cls, v: str, info: ValidationInfo) -> str:
        start = info.data.get("start_time")
        if start is not None and time_to_minutes(v) <= time_to_minutes(start):
            raise ValueError("End time must be after start time")
        return v


class CreatePollRequest(_CamelModel):
    title: str
    description: str | None = None
    organizer_timezone: str
    dates: list[str]
    time_slots: list[TimeSlotInput]

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _check_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return _check_description(v)

    @field_validator("organizer_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return _check_timezone(v)

    @field_validator("dates")
    @classmethod
    def validate_dates(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one date is required")
        if len(v) > MAX_DATES:
            raise ValueError("Maximum 30 dates allowed")
        today = date.today()
        for value in v:
            parsed = parse_date(value)
            if parsed is None:
                raise ValueError(f"Invalid date format: {value}")
            if parsed <= today:
                raise ValueError(f"Date must be in the future: {value}")
        return v

    @field_validator("time_slots")
    @classmethod
    def validate_time_slots(cls, v: list[TimeSlotInput]) -> list[TimeSlotInput]:
        if not v:
            raise ValueError("At least one time slot is required")
        if len(v) > MAX_TIME_SLOTS:
            raise ValueError("Maximum 100 time slots allowed")
        return v


class UpdatePollRequest(_CamelModel):
    title: str | None = None
    description: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return None if v is None else _check_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return _check_description(v)


class AvailabilityInput(_CamelModel):
    time_slot_id: str
    is_available: bool

    @field_validator("time_slot_id")
    @classmethod
    def validate_time_slot_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Invalid time slot ID")
        return v.strip()


def _check_availability(v: list[AvailabilityInput]) -> list[AvailabilityInput]:
    if not v:
        raise ValueError("At least one availability response is required")
    return v


class SubmitResponseRequest(_CamelModel):
    participant_name: str
    participant_email: str | None = None
    participant_timezone: str
    availability: list[AvailabilityInput]

    @field_validator("participant_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("participant_email")
    @classmethod
    def validate_email_field(cls, v: str | None) -> str | None:
        return _check_email(v)

    @field_validator("participant_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return _check_timezone(v)

    @field_validator("availability")
    @classmethod
    def validate_availability(cls, v: list[AvailabilityInput]) -> list[AvailabilityInput]:
        return _check_availability(v)


class VoteRequest(_CamelModel):
    """Body of POST /api/polls/{id}/vote."""

    name: str
    email: str | None = None
    timezone: str
    selected_slots: list[str] = []


class UpdateParticipantRequest(_CamelModel):
    name: str | None = None
    email: str | None = None
    timezone: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return None if v is None else _check_name(v)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str | None) -> str | None:
        return _check_email(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        return None if v is None else _check_timezone(v)


class UpdateAvailabilityRequest(_CamelModel):
    availability: list[AvailabilityInput]

    @field_validator("availability")
    @classmethod
    def validate_availability(cls, v: list[AvailabilityInput]) -> list[AvailabilityInput]:
        return _check_availability(v)


class DateRangeQuery(_CamelModel):
    start_date: str
    end_date: str

    @field_validator("start_date", "end_date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if parse_date(v[:10]) is None:
            raise ValueError("Invalid date")
        return v

    @field_validator("end_date")
    @classmethod
    def validate_order(cls, v: str, info: ValidationInfo) -> str:
        start = info.data.get("start_date")
        if start is not None and v[:10] < start[:10]:
            raise ValueError("End date must be after or equal to start date")
        return v


def validation_details(exc: ValidationError) -> dict[str, str]:
    """Flatten pydantic errors into {'field.path': 'message'}; first message per path wins."""
    details: dict[str, str] = {}
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ()))
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        details.setdefault(path, message)
    return details
