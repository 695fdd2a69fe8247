from __future__ import annotations

from typing import Any

from pydantic.alias_generators import to_camel


def camelize(value: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase."""
    if isinstance(value, dict):
        return {to_camel(str(key)): camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [camelize(item) for item in value]
    return value


def poll_summary(poll: dict[str, Any], share_url: str) -> dict[str, Any]:
    return {
        "id": poll["id"],
        "title": poll["title"],
        "description": poll.get("description"),
        "organizerTimezone": poll["organizer_timezone"],
        "shareUrl": share_url,
        "createdAt": poll["created_at"],
    }


def poll_detail(poll: dict[str, Any], time_slots: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    """Full poll; ``time_slots`` replaces the stored slots when given (localized view)."""
    body = dict(poll)
    if time_slots is not None:
        body["time_slots"] = time_slots
    return camelize(body)
