"""Correction request route handlers (player side)."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.api.auth_dependencies import require_player
from courtside.api.routes import service_error_to_http
from courtside.database.db import get_db_session
from courtside.models.schemas import CreateCorrectionRequest
from courtside.services import correction_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/corrections", status_code=201)
async def create_correction(
    payload: CreateCorrectionRequest,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """File a correction request about results or points."""
    try:
        correction = await correction_service.create_correction_request(
            session,
            user_id=user["id"],
            player_id=user["player_id"],
            message=payload.message,
            club_id=payload.club_id,
        )
        return correction_service.correction_to_dict(correction)
    except Exception as e:
        raise service_error_to_http(e, "creating correction request")


@router.get("/api/corrections/me")
async def list_my_corrections(
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """The caller's own correction requests."""
    try:
        return await correction_service.list_user_corrections(session, user["id"])
    except Exception as e:
        raise service_error_to_http(e, "listing correction requests")
