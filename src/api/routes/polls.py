from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from src.api.deps import get_conn, get_settings
from src.api.serializers import camelize, poll_detail, poll_summary
from src.config.settings import Settings
from src.engine.availability import get_group_availability, get_optimal_time_slots
from src.polls.repository import (
    create_poll,
    delete_poll,
    get_poll_by_id_or_raise,
    get_poll_stats,
    get_polls_by_date_range,
    get_share_url,
    update_poll,
)
from src.polls.validation import CreatePollRequest, DateRangeQuery, UpdatePollRequest, VoteRequest
from src.polls.voting import localize_poll_slots, submit_vote

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/polls", status_code=201)
def create_poll_route(
    body: CreatePollRequest,
    conn: Any = Depends(get_conn),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    poll = create_poll(conn, body)
    return poll_summary(poll, get_share_url(settings.base_url, poll["id"]))


@router.get("/polls")
def list_polls_route(
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    conn: Any = Depends(get_conn),
) -> dict[str, Any]:
    query = DateRangeQuery.model_validate({"startDate": start_date, "endDate": end_date})
    polls = get_polls_by_date_range(conn, query.start_date, query.end_date)
    return {"polls": [poll_detail(poll) for poll in polls]}


@router.get("/polls/{poll_id}")
def get_poll_route(
    poll_id: str,
    timezone: str | None = Query(None),
    conn: Any = Depends(get_conn),
) -> dict[str, Any]:
    """Poll with slots in the viewer's ``timezone`` limited to business hours.

    Slots that cannot be converted, e.g. for an unknown zone, are shown as stored.
    """
    poll = get_poll_by_id_or_raise(conn, poll_id)
    if not timezone or timezone == poll["organizer_timezone"]:
        return poll_detail(poll)
    return poll_detail(poll, localize_poll_slots(poll, timezone))


@router.patch("/polls/{poll_id}")
def update_poll_route(
    poll_id: str, body: UpdatePollRequest, conn: Any = Depends(get_conn)
) -> dict[str, Any]:
    return poll_detail(update_poll(conn, poll_id, body))


@router.delete("/polls/{poll_id}", status_code=204)
def delete_poll_route(poll_id: str, conn: Any = Depends(get_conn)) -> Response:
    delete_poll(conn, poll_id)
    return Response(status_code=204)


@router.post("/polls/{poll_id}/vote")
def vote_route(poll_id: str, body: VoteRequest, conn: Any = Depends(get_conn)) -> dict[str, Any]:
    participant = submit_vote(conn, poll_id, body)
    return {
        "success": True,
        "participantId": participant["id"],
        "message": "Vote submitted successfully",
    }


@router.get("/polls/{poll_id}/results")
def results_route(
    poll_id: str,
    limit: int = Query(5, ge=1, le=100),
    conn: Any = Depends(get_conn),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    poll = get_poll_by_id_or_raise(conn, poll_id)
    group = get_group_availability(poll)
    return {
        "poll": poll_detail(poll),
        "shareUrl": get_share_url(settings.base_url, poll_id),
        "participantCount": group["participant_count"],
        "availability": camelize(group["slots"]),
        "optimalSlots": camelize(get_optimal_time_slots(poll, limit)),
    }


@router.get("/polls/{poll_id}/stats")
def stats_route(poll_id: str, conn: Any = Depends(get_conn)) -> dict[str, Any]:
    return camelize(get_poll_stats(conn, poll_id))
