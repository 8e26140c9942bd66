"""Match route handlers (create on a booking, join)."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.api.auth_dependencies import require_player
from courtside.api.routes import service_error_to_http
from courtside.database.db import get_db_session
from courtside.models.schemas import CreateMatchRequest
from courtside.services import match_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/matches", status_code=201)
async def create_match(
    payload: CreateMatchRequest,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Turn one of the caller's bookings into a shared-cost match."""
    try:
        return await match_service.create_match(
            session,
            booking_id=payload.booking_id,
            created_by_id=user["id"],
            player_id=user["player_id"],
            is_public=payload.is_public,
            notes=payload.notes,
            invited_player_ids=payload.invited_player_ids,
        )
    except Exception as e:
        raise service_error_to_http(e, "creating match")


@router.post("/api/matches/{match_id}/join", status_code=201)
async def join_match(
    match_id: int,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Take a seat in a public open match."""
    try:
        return await match_service.join_match(session, match_id, user["player_id"])
    except Exception as e:
        raise service_error_to_http(e, "joining match")
