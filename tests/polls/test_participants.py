from __future__ import annotations

import sqlite3

import pytest

from src.polls.errors import ApiError, ErrorCode
from src.polls.participants import (
    create_participant_with_availability,
    delete_participant,
    get_participant_by_id,
    get_participant_by_id_or_raise,
    get_participant_stats,
    get_participants_by_poll_id,
    participant_exists_by_email,
    update_participant,
    update_participant_availability,
)
from src.polls.validation import (
    AvailabilityInput,
    SubmitResponseRequest,
    UpdateParticipantRequest,
)


def _submission(slot_ids, name="Ana", email=None, available=True):
    return SubmitResponseRequest.model_validate(
        {
            "participantName": name,
            "participantEmail": email,
            "participantTimezone": "Europe/Madrid",
            "availability": [{"timeSlotId": s, "isAvailable": available} for s in slot_ids],
        }
    )


@pytest.fixture
def slot_ids(sample_poll):
    return [slot["id"] for slot in sample_poll["time_slots"]]


def test_create_participant_with_availability(sqlite_db, sample_poll, slot_ids):
    participant = create_participant_with_availability(
        sqlite_db, sample_poll["id"], _submission(slot_ids[:2], email="ana@example.com")
    )
    assert participant["name"] == "Ana"
    assert participant["email"] == "ana@example.com"
    assert participant["timezone"] == "Europe/Madrid"
    assert sorted(a["time_slot_id"] for a in participant["availability"]) == sorted(slot_ids[:2])
    assert get_participant_by_id(sqlite_db, participant["id"]) == participant


def test_duplicate_slot_ids_collapse_to_last_answer(sqlite_db, sample_poll, slot_ids):
    data = SubmitResponseRequest.model_validate(
        {
            "participantName": "Ana",
            "participantTimezone": "UTC",
            "availability": [
                {"timeSlotId": slot_ids[0], "isAvailable": True},
                {"timeSlotId": slot_ids[0], "isAvailable": False},
            ],
        }
    )
    participant = create_participant_with_availability(sqlite_db, sample_poll["id"], data)
    assert [(a["time_slot_id"], a["is_available"]) for a in participant["availability"]] == [
        (slot_ids[0], False)
    ]


def test_duplicate_email_in_same_poll_is_rejected(sqlite_db, sample_poll, slot_ids):
    create_participant_with_availability(
        sqlite_db, sample_poll["id"], _submission(slot_ids, email="ana@example.com")
    )
    with pytest.raises(ApiError) as exc_info:
        create_participant_with_availability(
            sqlite_db, sample_poll["id"], _submission(slot_ids, name="Other", email="ANA@example.com")
        )
    assert exc_info.value.status_code == 409
    assert exc_info.value.code == ErrorCode.DUPLICATE_PARTICIPANT
    assert len(get_participants_by_poll_id(sqlite_db, sample_poll["id"])) == 1


def test_unique_index_violation_maps_to_duplicate(sqlite_db, sample_poll, slot_ids, mocker):
    create_participant_with_availability(
        sqlite_db, sample_poll["id"], _submission(slot_ids, email="ana@example.com")
    )
    mocker.patch("src.polls.participants.find_participant_by_email", return_value=None)
    with pytest.raises(ApiError) as exc_info:
        create_participant_with_availability(
            sqlite_db, sample_poll["id"], _submission(slot_ids, email="ana@example.com")
        )
    assert exc_info.value.code == ErrorCode.DUPLICATE_PARTICIPANT


def test_participants_without_email_are_not_duplicates(sqlite_db, sample_poll, slot_ids):
    create_participant_with_availability(sqlite_db, sample_poll["id"], _submission(slot_ids))
    create_participant_with_availability(sqlite_db, sample_poll["id"], _submission(slot_ids))
    assert len(get_participants_by_poll_id(sqlite_db, sample_poll["id"])) == 2


def test_unknown_poll_and_foreign_slots(sqlite_db, sample_poll, slot_ids):
    with pytest.raises(ApiError) as exc_info:
        create_participant_with_availability(sqlite_db, "missing", _submission(slot_ids))
    assert exc_info.value.code == ErrorCode.POLL_NOT_FOUND

    with pytest.raises(ApiError) as exc_info:
        create_participant_with_availability(
            sqlite_db, sample_poll["id"], _submission(["not-a-slot"])
        )
    assert exc_info.value.status_code == 400
    assert exc_info.value.code == ErrorCode.INVALID_AVAILABILITY


def test_failed_availability_insert_rolls_back_participant(sqlite_db, sample_poll, slot_ids, mocker):
    mocker.patch(
        "src.polls.participants.insert_availability",
        side_effect=sqlite3.OperationalError("database is locked"),
    )
    with pytest.raises(ApiError) as exc_info:
        create_participant_with_availability(sqlite_db, sample_poll["id"], _submission(slot_ids))
    assert exc_info.value.code == ErrorCode.DATABASE_ERROR
    assert get_participants_by_poll_id(sqlite_db, sample_poll["id"]) == []


def test_update_participant_availability_replaces_rows(sqlite_db, sample_poll, slot_ids):
    participant = create_participant_with_availability(
        sqlite_db, sample_poll["id"], _submission(slot_ids)
    )
    updated = update_participant_availability(
        sqlite_db,
        participant["id"],
        [AvailabilityInput(time_slot_id=slot_ids[2], is_available=False)],
    )
    assert [(a["time_slot_id"], a["is_available"]) for a in updated["availability"]] == [
        (slot_ids[2], False)
    ]


def test_update_participant_fields(sqlite_db, sample_poll, slot_ids):
    participant = create_participant_with_availability(
        sqlite_db, sample_poll["id"], _submission(slot_ids, email="ana@example.com")
    )
    updated = update_participant(
        sqlite_db,
        participant["id"],
        UpdateParticipantRequest.model_validate({"name": "Ana B", "timezone": "Asia/Tokyo"}),
    )
    assert updated["name"] == "Ana B"
    assert updated["timezone"] == "Asia/Tokyo"
    assert updated["email"] == "ana@example.com"


def test_update_participant_email_conflict(sqlite_db, sample_poll, slot_ids):
    create_participant_with_availability(
        sqlite_db, sample_poll["id"], _submission(slot_ids, email="ana@example.com")
    )
    ben = create_participant_with_availability(
        sqlite_db, sample_poll["id"], _submission(slot_ids, name="Ben", email="ben@example.com")
    )
    with pytest.raises(ApiError) as exc_info:
        update_participant(
            sqlite_db, ben["id"], UpdateParticipantRequest(email="ana@example.com")
        )
    assert exc_info.value.code == ErrorCode.DUPLICATE_PARTICIPANT


def test_delete_participant(sqlite_db, sample_poll, slot_ids):
    participant = create_participant_with_availability(
        sqlite_db, sample_poll["id"], _submission(slot_ids)
    )
    delete_participant(sqlite_db, participant["id"])
    assert get_participant_by_id(sqlite_db, participant["id"]) is None
    with pytest.raises(ApiError) as exc_info:
        delete_participant(sqlite_db, participant["id"])
    assert exc_info.value.code == ErrorCode.PARTICIPANT_NOT_FOUND
    with pytest.raises(ApiError):
        get_participant_by_id_or_raise(sqlite_db, participant["id"])


def test_participant_exists_by_email(sqlite_db, sample_poll, slot_ids):
    create_participant_with_availability(
        sqlite_db, sample_poll["id"], _submission(slot_ids, email="ana@example.com")
    )
    assert participant_exists_by_email(sqlite_db, sample_poll["id"], " Ana@Example.com ") is True
    assert participant_exists_by_email(sqlite_db, sample_poll["id"], "ben@example.com") is False
    assert participant_exists_by_email(sqlite_db, sample_poll["id"], "") is False


def test_get_participant_stats(sqlite_db, sample_poll, slot_ids):
    data = SubmitResponseRequest.model_validate(
        {
            "participantName": "Ana",
            "participantTimezone": "UTC",
            "availability": [
                {"timeSlotId": slot_ids[0], "isAvailable": True},
                {"timeSlotId": slot_ids[1], "isAvailable": False},
            ],
        }
    )
    participant = create_participant_with_availability(sqlite_db, sample_poll["id"], data)
    stats = get_participant_stats(sqlite_db, participant["id"])
    assert stats["total_time_slots"] == 3
    assert stats["responded_time_slots"] == 2
    assert stats["available_time_slots"] == 1
    assert stats["unavailable_time_slots"] == 1
    assert stats["response_rate"] == pytest.approx(200 / 3)
