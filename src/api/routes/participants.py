from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from src.api.deps import get_conn
from src.api.serializers import camelize
from src.polls.participants import (
    delete_participant,
    get_participant_by_id_or_raise,
    get_participant_stats,
    update_participant,
    update_participant_availability,
)
from src.polls.validation import UpdateAvailabilityRequest, UpdateParticipantRequest

router = APIRouter()


@router.get("/participants/{participant_id}")
def get_participant_route(participant_id: str, conn: Any = Depends(get_conn)) -> dict[str, Any]:
    return camelize(get_participant_by_id_or_raise(conn, participant_id))


@router.get("/participants/{participant_id}/stats")
def participant_stats_route(participant_id: str, conn: Any = Depends(get_conn)) -> dict[str, Any]:
    return camelize(get_participant_stats(conn, participant_id))


@router.patch("/participants/{participant_id}")
def update_participant_route(
    participant_id: str, body: UpdateParticipantRequest, conn: Any = Depends(get_conn)
) -> dict[str, Any]:
    return camelize(update_participant(conn, participant_id, body))


@router.put("/participants/{participant_id}/availability")
def replace_availability_route(
    participant_id: str, body: UpdateAvailabilityRequest, conn: Any = Depends(get_conn)
) -> dict[str, Any]:
    return camelize(update_participant_availability(conn, participant_id, body.availability))


@router.delete("/participants/{participant_id}", status_code=204)
def delete_participant_route(participant_id: str, conn: Any = Depends(get_conn)) -> Response:
    delete_participant(conn, participant_id)
    return Response(status_code=204)
