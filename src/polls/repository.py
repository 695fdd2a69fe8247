from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any

from src.db.sqlite_client import (
    delete_poll_row,
    get_participant_rows,
    get_poll_availability,
    get_poll_row,
    get_poll_rows_created_between,
    get_time_slots,
    insert_poll,
    insert_time_slots,
    transaction,
    update_poll_row,
)
from src.polls.errors import ApiError, ErrorCode
from src.polls.validation import CreatePollRequest, UpdatePollRequest

logger = logging.getLogger(__name__)


def _is_database_error(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.Error) or exc.__class__.__module__.startswith("psycopg")


@contextmanager
def translate_database_errors(action: str) -> Iterator[None]:
    """Re-raise driver errors as a 500 DATABASE_ERROR; ApiErrors pass through."""
    try:
        yield
    except ApiError:
        raise
    except Exception as exc:
        if not _is_database_error(exc):
            raise
        logger.error("[DB] failed to %s: %s", action, exc)
        raise ApiError(500, ErrorCode.DATABASE_ERROR, f"Failed to {action}") from exc


def _public_participant(row: dict[str, Any], availability: list[dict[str, Any]]) -> dict[str, Any]:
    participant = {key: value for key, value in row.items() if key != "email_normalized"}
    participant["availability"] = availability
    return participant


def _load_relations(conn: Any, poll: dict[str, Any]) -> dict[str, Any]:
    by_participant: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for entry in get_poll_availability(conn, poll["id"]):
        by_participant[entry["participant_id"]].append(entry)
    return {
        **poll,
        "time_slots": get_time_slots(conn, poll["id"]),
        "participants": [
            _public_participant(row, by_participant.get(row["id"], []))
            for row in get_participant_rows(conn, poll["id"])
        ],
    }


def _unique_slots(data: CreatePollRequest) -> list[tuple[str, str, str]]:
    seen: dict[tuple[str, str, str], None] = {}
    for slot in data.time_slots:
        seen.setdefault((slot.date, slot.start_time, slot.end_time), None)
    return list(seen)


def create_poll(conn: Any, data: CreatePollRequest) -> dict[str, Any]:
    """Create the poll and its time slots in one transaction."""
    with translate_database_errors("create poll"):
        with transaction(conn):
            poll_id = insert_poll(
                conn,
                title=data.title,
                description=data.description or None,
                organizer_timezone=data.organizer_timezone,
            )
            insert_time_slots(conn, poll_id, _unique_slots(data))
        poll = get_poll_row(conn, poll_id)
        if poll is None:
            raise ApiError(500, ErrorCode.DATABASE_ERROR, "Failed to create poll")
        logger.info(
            "[POLLS] created poll %s with %d slot(s) in %s",
            poll_id,
            len(data.time_slots),
            data.organizer_timezone,
        )
        return _load_relations(conn, poll)


def get_poll_by_id(conn: Any, poll_id: str) -> dict[str, Any] | None:
    with translate_database_errors("fetch poll"):
        poll = get_poll_row(conn, poll_id)
        if poll is None:
            return None
        return _load_relations(conn, poll)


def get_poll_by_id_or_raise(conn: Any, poll_id: str) -> dict[str, Any]:
    poll = get_poll_by_id(conn, poll_id)
    if poll is None:
        raise ApiError(404, ErrorCode.POLL_NOT_FOUND)
    return poll


def update_poll(conn: Any, poll_id: str, data: UpdatePollRequest) -> dict[str, Any]:
    fields = data.model_dump(exclude_unset=True)
    if fields.get("title") is None:
        fields.pop("title", None)
    with translate_database_errors("update poll"):
        with transaction(conn):
            updated = update_poll_row(conn, poll_id, fields)
        if not updated:
            raise ApiError(404, ErrorCode.POLL_NOT_FOUND)
    return get_poll_by_id_or_raise(conn, poll_id)


def delete_poll(conn: Any, poll_id: str) -> None:
    with translate_database_errors("delete poll"):
        with transaction(conn):
            deleted = delete_poll_row(conn, poll_id)
        if not deleted:
            raise ApiError(404, ErrorCode.POLL_NOT_FOUND)
    logger.info("[POLLS] deleted poll %s", poll_id)


def _range_bound(value: str | date | datetime, end: bool) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    text = value.isoformat() if isinstance(value, date) else str(value)
    if len(text) == 10:
        return f"{text}T23:59:59.999999+00:00" if end else f"{text}T00:00:00+00:00"
    return text


def get_polls_by_date_range(
    conn: Any, start: str | date | datetime, end: str | date | datetime
) -> list[dict[str, Any]]:
    """Polls created between ``start`` and ``end`` inclusive, newest first."""
    with translate_database_errors("fetch polls"):
        rows = get_poll_rows_created_between(
            conn, _range_bound(start, end=False), _range_bound(end, end=True)
        )
        return [_load_relations(conn, row) for row in rows]


def get_poll_stats(conn: Any, poll_id: str) -> dict[str, Any]:
    poll = get_poll_by_id_or_raise(conn, poll_id)
    participants = poll["participants"]
    total_time_slots = len(poll["time_slots"])
    total_participants = len(participants)
    total_responses = sum(len(p["availability"]) for p in participants)

    availability_by_time_slot = []
    for slot in poll["time_slots"]:
        available_count = sum(
            1
            for participant in participants
            if any(
                entry["time_slot_id"] == slot["id"] and entry["is_available"]
                for entry in participant["availability"]
            )
        )
        availability_by_time_slot.append(
            {
                "time_slot_id": slot["id"],
                "date": slot["date"],
                "start_time": slot["start_time"],
                "end_time": slot["end_time"],
                "available_count": available_count,
                "availability_percentage": (
                    available_count / total_participants * 100 if total_participants else 0.0
                ),
            }
        )

    possible_responses = total_time_slots * total_participants
    return {
        "total_time_slots": total_time_slots,
        "total_participants": total_participants,
        "total_responses": total_responses,
        "availability_by_time_slot": availability_by_time_slot,
        "response_rate": total_responses / possible_responses * 100 if possible_responses else 0.0,
    }


def get_share_url(base_url: str, poll_id: str) -> str:
    return f"{base_url.rstrip('/')}/poll/{poll_id}"
