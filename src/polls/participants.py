from __future__ import annotations

import logging
from typing import Any

from src.db.sqlite_client import (
    delete_availability,
    delete_participant_row,
    find_participant_by_email,
    get_participant_availability,
    get_participant_row,
    get_participant_rows,
    get_poll_row,
    get_poll_slot_ids,
    insert_availability,
    insert_participant,
    is_unique_violation,
    transaction,
    update_participant_row,
)
from src.polls.errors import ApiError, ErrorCode
from src.polls.repository import translate_database_errors
from src.polls.validation import (
    AvailabilityInput,
    SubmitResponseRequest,
    UpdateParticipantRequest,
)

logger = logging.getLogger(__name__)


def _public(row: dict[str, Any], availability: list[dict[str, Any]]) -> dict[str, Any]:
    participant = {key: value for key, value in row.items() if key != "email_normalized"}
    participant["availability"] = availability
    return participant


def _collapse_availability(
    availability: list[AvailabilityInput], valid_slot_ids: set[str]
) -> list[tuple[str, bool]]:
    """Last answer per slot wins; unknown slot ids reject the whole submission."""
    entries: dict[str, bool] = {}
    unknown = []
    for item in availability:
        if item.time_slot_id not in valid_slot_ids:
            unknown.append(item.time_slot_id)
            continue
        entries[item.time_slot_id] = item.is_available
    if unknown:
        raise ApiError(
            400,
            ErrorCode.INVALID_AVAILABILITY,
            "Availability references time slots outside this poll",
            details={"availability": ", ".join(unknown)},
        )
    return list(entries.items())


def _duplicate_error() -> ApiError:
    return ApiError(409, ErrorCode.DUPLICATE_PARTICIPANT)


def create_participant_with_availability(
    conn: Any, poll_id: str, data: SubmitResponseRequest
) -> dict[str, Any]:
    """Insert the participant and their availability rows atomically."""
    with translate_database_errors("create participant"):
        if get_poll_row(conn, poll_id) is None:
            raise ApiError(404, ErrorCode.POLL_NOT_FOUND)
        entries = _collapse_availability(data.availability, get_poll_slot_ids(conn, poll_id))
        try:
            with transaction(conn):
                if data.participant_email and find_participant_by_email(
                    conn, poll_id, data.participant_email
                ):
                    raise _duplicate_error()
                participant_id = insert_participant(
                    conn,
                    poll_id=poll_id,
                    name=data.participant_name,
                    email=data.participant_email,
                    timezone=data.participant_timezone,
                )
                insert_availability(conn, participant_id, entries)
        except ApiError:
            raise
        except Exception as exc:
            if is_unique_violation(exc):
                raise _duplicate_error() from exc
            raise
        logger.info(
            "[VOTE] participant %s joined poll %s with %d response(s)",
            participant_id,
            poll_id,
            len(entries),
        )
        return get_participant_by_id_or_raise(conn, participant_id)


def get_participant_by_id(conn: Any, participant_id: str) -> dict[str, Any] | None:
    with translate_database_errors("fetch participant"):
        row = get_participant_row(conn, participant_id)
        if row is None:
            return None
        return _public(row, get_participant_availability(conn, participant_id))


def get_participant_by_id_or_raise(conn: Any, participant_id: str) -> dict[str, Any]:
    participant = get_participant_by_id(conn, participant_id)
    if participant is None:
        raise ApiError(404, ErrorCode.PARTICIPANT_NOT_FOUND)
    return participant


def update_participant_availability(
    conn: Any, participant_id: str, availability: list[AvailabilityInput]
) -> dict[str, Any]:
    """Replace every availability row of the participant."""
    with translate_database_errors("update availability"):
        row = get_participant_row(conn, participant_id)
        if row is None:
            raise ApiError(404, ErrorCode.PARTICIPANT_NOT_FOUND)
        entries = _collapse_availability(availability, get_poll_slot_ids(conn, row["poll_id"]))
        with transaction(conn):
            delete_availability(conn, participant_id)
            insert_availability(conn, participant_id, entries)
    return get_participant_by_id_or_raise(conn, participant_id)


def update_participant(
    conn: Any, participant_id: str, data: UpdateParticipantRequest
) -> dict[str, Any]:
    fields = {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key == "email"
    }
    with translate_database_errors("update participant"):
        row = get_participant_row(conn, participant_id)
        if row is None:
            raise ApiError(404, ErrorCode.PARTICIPANT_NOT_FOUND)
        new_email = fields.get("email")
        if new_email:
            existing = find_participant_by_email(conn, row["poll_id"], new_email)
            if existing and existing["id"] != participant_id:
                raise _duplicate_error()
        try:
            with transaction(conn):
                update_participant_row(conn, participant_id, fields)
        except Exception as exc:
            if is_unique_violation(exc):
                raise _duplicate_error() from exc
            raise
    return get_participant_by_id_or_raise(conn, participant_id)


def delete_participant(conn: Any, participant_id: str) -> None:
    with translate_database_errors("delete participant"):
        with transaction(conn):
            deleted = delete_participant_row(conn, participant_id)
        if not deleted:
            raise ApiError(404, ErrorCode.PARTICIPANT_NOT_FOUND)


def get_participants_by_poll_id(conn: Any, poll_id: str) -> list[dict[str, Any]]:
    with translate_database_errors("fetch participants"):
        return [
            _public(row, get_participant_availability(conn, row["id"]))
            for row in get_participant_rows(conn, poll_id)
        ]


def participant_exists_by_email(conn: Any, poll_id: str, email: str) -> bool:
    if not email or not email.strip():
        return False
    with translate_database_errors("check participant email"):
        return find_participant_by_email(conn, poll_id, email) is not None


def get_participant_stats(conn: Any, participant_id: str) -> dict[str, Any]:
    participant = get_participant_by_id_or_raise(conn, participant_id)
    with translate_database_errors("fetch participant stats"):
        total_time_slots = len(get_poll_slot_ids(conn, participant["poll_id"]))
    availability = participant["availability"]
    available = sum(1 for entry in availability if entry["is_available"])
    return {
        "total_time_slots": total_time_slots,
        "responded_time_slots": len(availability),
        "available_time_slots": available,
        "unavailable_time_slots": len(availability) - available,
        "response_rate": len(availability) / total_time_slots * 100 if total_time_slots else 0.0,
    }
