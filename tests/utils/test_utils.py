from __future__ import annotations

from src.utils.health import liveness
from src.utils.invite_text import generate_invite


def test_liveness_ok():
    assert liveness()["ok"] is True


def test_generate_invite_contains_url():
    text = generate_invite("Team Sync", "https://example.com/poll/1", "UTC")
    assert "https://example.com/poll/1" in text
    assert "Team Sync" in text
    assert "Current best time" not in text


def test_generate_invite_mentions_best_slot():
    best = {
        "date": "2025-01-15",
        "start_time": "09:00",
        "end_time": "10:00",
        "availability_count": 3,
    }
    text = generate_invite("Team Sync", "https://example.com/poll/1", "UTC", best)
    assert "Current best time: 2025-01-15 09:00-10:00 UTC (+00:00), 3 available" in text


def test_generate_invite_skips_slot_nobody_picked():
    best = {"date": "2025-01-15", "start_time": "09:00", "end_time": "10:00", "availability_count": 0}
    assert "Current best time" not in generate_invite("T", "u", "UTC", best)
