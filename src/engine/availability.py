from __future__ import annotations

from typing import Any


def _available_ids_by_slot(poll: dict[str, Any]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {slot["id"]: [] for slot in poll["time_slots"]}
    for participant in poll["participants"]:
        for entry in participant["availability"]:
            slot_ids = grouped.get(entry["time_slot_id"])
            if slot_ids is not None and entry["is_available"] and participant["id"] not in slot_ids:
                slot_ids.append(participant["id"])
    return grouped


def get_group_availability(poll: dict[str, Any]) -> dict[str, Any]:
    """Availability matrix of a loaded poll, one entry per organizer slot in slot order."""
    participants = poll["participants"]
    participant_count = max(len(participants), 1)
    grouped = _available_ids_by_slot(poll)
    return {
        "participant_count": len(participants),
        "slots": [
            {
                "time_slot_id": slot["id"],
                "date": slot["date"],
                "start_time": slot["start_time"],
                "end_time": slot["end_time"],
                "participant_ids": grouped[slot["id"]],
                "availability_count": len(grouped[slot["id"]]),
                "availability_percentage": len(grouped[slot["id"]]) / participant_count * 100
                if participants
                else 0.0,
            }
            for slot in poll["time_slots"]
        ],
    }


def get_optimal_time_slots(poll: dict[str, Any], limit: int = 5) -> list[dict[str, Any]]:
    """Slots with the most available participants; ties go to the earlier slot."""
    slots = get_group_availability(poll)["slots"]
    ranked = sorted(
        slots,
        key=lambda slot: (-slot["availability_count"], slot["date"], slot["start_time"]),
    )
    return ranked[: max(limit, 0)]
