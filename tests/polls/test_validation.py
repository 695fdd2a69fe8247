from __future__ import annotations

from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from src.polls.validation import (
    CreatePollRequest,
    DateRangeQuery,
    SubmitResponseRequest,
    UpdateParticipantRequest,
    UpdatePollRequest,
    normalize_time,
    parse_slot_key,
    validation_details,
)


def _details(exc_info: pytest.ExceptionInfo[ValidationError]) -> dict[str, str]:
    return validation_details(exc_info.value)


def test_create_poll_request_accepts_camel_case_payload(poll_payload):
    request = CreatePollRequest.model_validate(poll_payload)
    assert request.title == "Team Sync"
    assert request.organizer_timezone == "America/New_York"
    assert request.time_slots[0].start_time == "09:00"


def test_create_poll_request_trims_title_and_pads_times(poll_payload):
    poll_payload["title"] = "  Padded  "
    poll_payload["timeSlots"][0]["startTime"] = "9:00"
    request = CreatePollRequest.model_validate(poll_payload)
    assert request.title == "Padded"
    assert request.time_slots[0].start_time == "09:00"


def test_end_time_must_follow_start_time(poll_payload):
    poll_payload["timeSlots"][0]["endTime"] = "08:30"
    with pytest.raises(ValidationError) as exc_info:
        CreatePollRequest.model_validate(poll_payload)
    assert _details(exc_info) == {"timeSlots.0.endTime": "End time must be after start time"}


@pytest.mark.parametrize(
    "field, value, path, message",
    [
        ("title", "   ", "title", "Title is required"),
        ("title", "x" * 256, "title", "Title must be less than 255 characters"),
        ("description", "x" * 1001, "description", "Description must be less than 1000 characters"),
        ("organizerTimezone", "Mars/Olympus", "organizerTimezone", "Invalid timezone"),
        ("dates", [], "dates", "At least one date is required"),
        ("timeSlots", [], "timeSlots", "At least one time slot is required"),
    ],
)
def test_create_poll_request_field_errors(poll_payload, field, value, path, message):
    poll_payload[field] = value
    with pytest.raises(ValidationError) as exc_info:
        CreatePollRequest.model_validate(poll_payload)
    assert _details(exc_info)[path] == message


def test_dates_must_be_in_the_future(poll_payload):
    poll_payload["dates"] = [date.today().isoformat()]
    with pytest.raises(ValidationError) as exc_info:
        CreatePollRequest.model_validate(poll_payload)
    assert _details(exc_info)["dates"].startswith("Date must be in the future")


def test_dates_must_be_real_calendar_dates(poll_payload):
    poll_payload["dates"] = ["2031-02-30"]
    with pytest.raises(ValidationError) as exc_info:
        CreatePollRequest.model_validate(poll_payload)
    assert _details(exc_info)["dates"] == "Invalid date format: 2031-02-30"


def test_too_many_dates_and_slots_are_rejected(poll_payload):
    start = date.today() + timedelta(days=1)
    poll_payload["dates"] = [(start + timedelta(days=i)).isoformat() for i in range(31)]
    poll_payload["timeSlots"] = poll_payload["timeSlots"][:1] * 101
    with pytest.raises(ValidationError) as exc_info:
        CreatePollRequest.model_validate(poll_payload)
    details = _details(exc_info)
    assert details["dates"] == "Maximum 30 dates allowed"
    assert details["timeSlots"] == "Maximum 100 time slots allowed"


def test_update_poll_request_allows_partial_fields():
    request = UpdatePollRequest.model_validate({"description": None})
    assert request.model_dump(exclude_unset=True) == {"description": None}


def test_submit_response_request_validates_email_and_availability():
    with pytest.raises(ValidationError) as exc_info:
        SubmitResponseRequest.model_validate(
            {
                "participantName": "Ana",
                "participantEmail": "not-an-email",
                "participantTimezone": "UTC",
                "availability": [],
            }
        )
    details = _details(exc_info)
    assert details["participantEmail"] == "Invalid email format"
    assert details["availability"] == "At least one availability response is required"


def test_submit_response_request_blank_email_is_none():
    request = SubmitResponseRequest.model_validate(
        {
            "participantName": "  Ana   Lopez ",
            "participantEmail": "  ",
            "participantTimezone": "UTC",
            "availability": [{"timeSlotId": "slot-1", "isAvailable": True}],
        }
    )
    assert request.participant_name == "Ana Lopez"
    assert request.participant_email is None


def test_update_participant_request_rejects_bad_timezone():
    with pytest.raises(ValidationError) as exc_info:
        UpdateParticipantRequest.model_validate({"timezone": "Nowhere/Land"})
    assert _details(exc_info) == {"timezone": "Invalid timezone"}


def test_date_range_query_requires_order():
    with pytest.raises(ValidationError) as exc_info:
        DateRangeQuery.model_validate({"startDate": "2025-02-01", "endDate": "2025-01-01"})
    assert _details(exc_info) == {"endDate": "End date must be after or equal to start date"}


def test_normalize_time():
    assert normalize_time("7:05") == "07:05"
    with pytest.raises(ValueError, match="HH:MM"):
        normalize_time("24:00")


def test_parse_slot_key():
    assert parse_slot_key("2025-03-10-9:30") == ("2025-03-10", "09:30")
    assert parse_slot_key("2025-03-10-14:00") == ("2025-03-10", "14:00")
    for bad in ("2025-03-10", "2025-13-40-10:00", "2025-03-10-25:00", ""):
        with pytest.raises(ValueError):
            parse_slot_key(bad)
