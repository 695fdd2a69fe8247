from __future__ import annotations

from typing import Any

from src.utils.timezone import get_timezone_offset_string


def generate_invite(
    poll_title: str,
    share_url: str,
    organizer_timezone: str,
    best_slot: dict[str, Any] | None = None,
) -> str:
    lines = [
        f"You're invited to find a time for: {poll_title}",
        f"Add your availability here: {share_url}",
    ]
    if best_slot and best_slot.get("availability_count"):
        offset = get_timezone_offset_string(organizer_timezone)
        lines.append(
            f"Current best time: {best_slot['date']} {best_slot['start_time']}"
            f"-{best_slot['end_time']} {organizer_timezone} ({offset}), "
            f"{best_slot['availability_count']} available"
        )
    lines.append("Times are shown in your own timezone when you open the link.")
    return "\n".join(lines)
