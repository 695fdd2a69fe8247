from __future__ import annotations

import pytest

from src.engine.availability import get_optimal_time_slots
from src.polls.repository import create_poll, get_poll_by_id, get_share_url
from src.polls.validation import CreatePollRequest, VoteRequest
from src.polls.voting import slot_key, submit_vote
from src.utils.invite_text import generate_invite


@pytest.mark.smoke
def test_critical_user_journey_module_level(sqlite_db, poll_payload):
    poll = create_poll(sqlite_db, CreatePollRequest.model_validate(poll_payload))
    first_slot = poll["time_slots"][0]
    for name in ("Ana", "Ben"):
        submit_vote(
            sqlite_db,
            poll["id"],
            VoteRequest(
                name=name, timezone=poll["organizer_timezone"], selected_slots=[slot_key(first_slot)]
            ),
        )
    loaded = get_poll_by_id(sqlite_db, poll["id"])
    best = get_optimal_time_slots(loaded, limit=1)
    invite = generate_invite(
        loaded["title"],
        get_share_url("https://bettermeet.example", poll["id"]),
        loaded["organizer_timezone"],
        best[0],
    )
    assert best[0]["time_slot_id"] == first_slot["id"]
    assert best[0]["availability_count"] == 2
    assert f"https://bettermeet.example/poll/{poll['id']}" in invite
    assert "2 available" in invite
