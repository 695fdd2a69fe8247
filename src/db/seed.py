from __future__ import annotations

import argparse
import logging
import random
from datetime import date, timedelta
from typing import Any

from dotenv import load_dotenv

from src.config.settings import configure_logging, load_settings
from src.db.sqlite_client import (
    delete_all_polls,
    get_connection,
    get_time_slots,
    insert_availability,
    insert_participant,
    insert_poll,
    insert_time_slots,
    init_schema,
    transaction,
)
from src.polls.repository import get_share_url

logger = logging.getLogger(__name__)


def _next_monday(today: date) -> date:
    return today + timedelta(days=7 - today.weekday())


def _seed_poll(
    conn: Any,
    rng: random.Random,
    title: str,
    description: str,
    organizer_timezone: str,
    slots: list[tuple[str, str, str]],
    participants: list[tuple[str, str | None, str, float]],
) -> dict[str, Any]:
    poll_id = insert_poll(conn, title, description, organizer_timezone)
    insert_time_slots(conn, poll_id, slots)
    slot_ids = [slot["id"] for slot in get_time_slots(conn, poll_id)]
    responses = 0
    for name, email, timezone, availability_rate in participants:
        participant_id = insert_participant(conn, poll_id, name, email, timezone)
        entries = [(slot_id, rng.random() < availability_rate) for slot_id in slot_ids]
        insert_availability(conn, participant_id, entries)
        responses += len(entries)
    return {
        "id": poll_id,
        "time_slots": len(slot_ids),
        "participants": len(participants),
        "responses": responses,
    }


def seed(conn: Any, today: date | None = None, rng_seed: int = 42) -> list[dict[str, Any]]:
    """Replace all polls with two sample polls for next week."""
    rng = random.Random(rng_seed)
    monday = _next_monday(today or date.today())
    week = [(monday + timedelta(days=offset)).isoformat() for offset in range(5)]

    standup_slots = [
        (day, start, end)
        for day in week
        for start, end in (("09:00", "11:00"), ("14:00", "16:00"))
    ]
    kickoff_slots = [
        (week[1], "10:00", "12:00"),
        (week[1], "15:00", "17:00"),
        (week[2], "09:00", "11:00"),
        (week[2], "13:00", "15:00"),
    ]

    with transaction(conn):
        delete_all_polls(conn)
        created = [
            _seed_poll(
                conn,
                rng,
                "Team Weekly Standup",
                "Weekly team standup meeting to discuss progress and blockers",
                "America/New_York",
                standup_slots,
                [
                    ("Alice Johnson", "alice@example.com", "America/New_York", 0.7),
                    ("Bob Smith", "bob@example.com", "America/Los_Angeles", 0.8),
                    ("Charlie Brown", None, "Europe/London", 0.5),
                ],
            ),
            _seed_poll(
                conn,
                rng,
                "Project Kickoff Meeting",
                "Initial meeting to discuss project requirements and timeline",
                "Europe/London",
                kickoff_slots,
                [
                    ("Diana Prince", "diana@example.com", "Europe/London", 0.75),
                    ("Ethan Hunt", "ethan@example.com", "Asia/Tokyo", 0.4),
                ],
            ),
        ]
    return created


def main() -> None:
    load_dotenv()
    settings = load_settings()
    configure_logging(settings.log_level)
    parser = argparse.ArgumentParser(description="Reset the database to two sample polls.")
    parser.add_argument("--db-path", default=settings.sqlite_db_path)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    conn = get_connection(args.db_path, settings.database_url)
    try:
        init_schema(conn)
        created = seed(conn, rng_seed=args.seed)
    finally:
        conn.close()
    for poll in created:
        logger.info(
            "[SEED] poll %s: %d slot(s), %d participant(s), %d response(s) %s",
            poll["id"],
            poll["time_slots"],
            poll["participants"],
            poll["responses"],
            get_share_url(settings.base_url, poll["id"]),
        )


if __name__ == "__main__":
    main()
