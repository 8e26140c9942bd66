"""Tournament result route handlers (club)."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.api.auth_dependencies import require_approved_club, require_club
from courtside.api.routes import service_error_to_http
from courtside.database.db import get_db_session
from courtside.models.schemas import ConfirmResultsRequest, SubmitResultsRequest
from courtside.services import tournament_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/tournaments/{tournament_id}/results")
async def submit_results(
    tournament_id: int,
    payload: SubmitResultsRequest,
    user: dict = Depends(require_club),
    session: AsyncSession = Depends(get_db_session),
):
    """Save draft standings for one category."""
    try:
        return await tournament_service.submit_tournament_results(
            session,
            tournament_id,
            payload.category_id,
            [entry.model_dump() for entry in payload.entries],
            club_id=user["club_id"],
        )
    except Exception as e:
        raise service_error_to_http(e, "submitting results")


@router.post("/api/tournaments/{tournament_id}/results/confirm")
async def confirm_results(
    tournament_id: int,
    payload: ConfirmResultsRequest,
    user: dict = Depends(require_approved_club),
    session: AsyncSession = Depends(get_db_session),
):
    """Confirm standings, award points and apply promotions."""
    try:
        return await tournament_service.confirm_tournament_results(
            session,
            tournament_id,
            payload.category_id,
            confirmed_by_id=user["id"],
            club_id=user["club_id"],
        )
    except Exception as e:
        raise service_error_to_http(e, "confirming results")
