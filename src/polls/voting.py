"""Vote submission from slot keys and the participant-local poll view.

Participants see slots in their own timezone and vote with keys of the form
``"YYYY-MM-DD-HH:MM"``. Availability is always stored against the
organizer's time slot ids, so keys are resolved back to organizer slots here.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from src.polls.errors import ApiError, ErrorCode
from src.polls.participants import create_participant_with_availability
from src.polls.repository import get_poll_by_id_or_raise
from src.polls.validation import (
    SubmitResponseRequest,
    VoteRequest,
    parse_slot_key,
    validation_details,
)
from src.utils.timezone import (
    convert_business_hours_time_slots,
    convert_timezone,
    is_valid_timezone,
)

logger = logging.getLogger(__name__)

_VOTE_FIELDS = {
    "participantName": "name",
    "participantEmail": "email",
    "participantTimezone": "timezone",
    "availability": "selectedSlots",
}


def slot_key(slot: dict[str, Any]) -> str:
    return f"{slot['date']}-{slot['start_time']}"


def _organizer_key(day: str, start_time: str, from_timezone: str, to_timezone: str) -> str | None:
    try:
        local = convert_timezone(f"{day}T{start_time}", from_timezone, to_timezone)
    except (ValueError, KeyError, OverflowError):
        return None
    return local.strftime("%Y-%m-%d-%H:%M")


def resolve_slot_keys(
    poll: dict[str, Any], selected_slots: list[str], participant_timezone: str
) -> list[str]:
    """Map slot keys to organizer time slot ids, preserving order without duplicates.

    Keys from a participant in another timezone are read as participant-local
    time and must convert back to an organizer slot. Generated business-hours
    slots have no organizer slot behind them and are rejected.
    """
    organizer_timezone = poll["organizer_timezone"]
    by_key = {slot_key(slot): slot["id"] for slot in poll["time_slots"]}
    converts = participant_timezone != organizer_timezone and is_valid_timezone(
        participant_timezone
    )

    resolved: list[str] = []
    unresolved: list[str] = []
    for key in selected_slots:
        try:
            day, start_time = parse_slot_key(key)
        except ValueError:
            unresolved.append(str(key))
            continue
        if converts:
            organizer_key = _organizer_key(day, start_time, participant_timezone, organizer_timezone)
            slot_id = by_key.get(organizer_key) if organizer_key else None
        else:
            slot_id = by_key.get(f"{day}-{start_time}")
        if slot_id is None:
            unresolved.append(str(key))
        elif slot_id not in resolved:
            resolved.append(slot_id)

    if unresolved:
        raise ApiError(
            400,
            ErrorCode.INVALID_AVAILABILITY,
            "Selected time slots do not belong to this poll",
            details={"selectedSlots": ", ".join(unresolved)},
        )
    return resolved


def _submission(vote: VoteRequest, slot_ids: list[str]) -> SubmitResponseRequest:
    try:
        return SubmitResponseRequest.model_validate(
            {
                "participantName": vote.name,
                "participantEmail": vote.email,
                "participantTimezone": vote.timezone,
                "availability": [
                    {"timeSlotId": slot_id, "isAvailable": True} for slot_id in slot_ids
                ],
            }
        )
    except ValidationError as exc:
        details = {}
        for path, message in validation_details(exc).items():
            head, _, rest = path.partition(".")
            field = _VOTE_FIELDS.get(head, head)
            details[f"{field}.{rest}" if rest else field] = message
        raise ApiError(400, ErrorCode.VALIDATION_ERROR, details=details) from exc


def submit_vote(conn: Any, poll_id: str, vote: VoteRequest) -> dict[str, Any]:
    """Record a participant and mark every selected slot as available."""
    poll = get_poll_by_id_or_raise(conn, poll_id)
    if not is_valid_timezone(vote.timezone):
        raise ApiError(400, ErrorCode.VALIDATION_ERROR, details={"timezone": "Invalid timezone"})
    slot_ids = resolve_slot_keys(poll, vote.selected_slots, vote.timezone)
    participant = create_participant_with_availability(conn, poll_id, _submission(vote, slot_ids))
    logger.info("[VOTE] %d slot(s) recorded for poll %s", len(slot_ids), poll_id)
    return participant


def localize_poll_slots(poll: dict[str, Any], timezone: str | None = None) -> list[dict[str, Any]]:
    """Slots as a participant in ``timezone`` should see them.

    Without a timezone, or in the organizer's own, slots are returned as
    stored. Otherwise they are converted and limited to business hours; a
    generated business-hours slot gets a synthetic ``{poll_id}-{date}-{start}`` id.
    """
    slots = [
        {
            "id": slot["id"],
            "date": slot["date"],
            "start_time": slot["start_time"],
            "end_time": slot["end_time"],
        }
        for slot in poll["time_slots"]
    ]
    if not timezone or timezone == poll["organizer_timezone"]:
        return slots
    localized = convert_business_hours_time_slots(slots, poll["organizer_timezone"], timezone)
    return [
        {
            "id": slot.get("id") or f"{poll['id']}-{slot['date']}-{slot['start_time']}",
            "date": slot["date"],
            "start_time": slot["start_time"],
            "end_time": slot["end_time"],
        }
        for slot in localized
    ]
