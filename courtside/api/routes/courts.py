"""Court route handlers (public availability + club administration)."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.api.auth_dependencies import require_club
from courtside.api.routes import service_error_to_http
from courtside.database.db import get_db_session
from courtside.models.schemas import CreateBlockRequest, UpsertScheduleRequest
from courtside.services import availability_service

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/api/courts/{court_id}/availability")
async def get_court_availability(
    court_id: int,
    day: date = Query(..., alias="date", description="Calendar day (YYYY-MM-DD)"),
    session: AsyncSession = Depends(get_db_session),
):
    """Slots of one court for one day (public)."""
    try:
        court = await availability_service.get_court(session, court_id)
        if not court.is_active:
            return {"court_id": court_id, "date": day.isoformat(), "slots": []}
        slots = await availability_service.get_available_slots(session, court_id, day)
        return {"court_id": court_id, "date": day.isoformat(), "slots": slots}
    except Exception as e:
        raise service_error_to_http(e, "fetching court availability")


# ---------------------------------------------------------------------------
# Club administration
# ---------------------------------------------------------------------------


@router.get("/api/courts/{court_id}/schedule")
async def get_court_schedule(
    court_id: int,
    user: dict = Depends(require_club),
    session: AsyncSession = Depends(get_db_session),
):
    """Weekly schedule and upcoming blocks of one of the club's courts."""
    try:
        await availability_service.get_court(session, court_id, club_id=user["club_id"])
        return {
            "schedules": await availability_service.list_court_schedules(session, court_id),
            "blocks": await availability_service.list_upcoming_blocks(session, court_id),
        }
    except Exception as e:
        raise service_error_to_http(e, "fetching court schedule")


@router.put("/api/courts/{court_id}/schedule")
async def upsert_court_schedule(
    court_id: int,
    payload: UpsertScheduleRequest,
    user: dict = Depends(require_club),
    session: AsyncSession = Depends(get_db_session),
):
    """Create or replace weekly schedule entries."""
    try:
        await availability_service.get_court(session, court_id, club_id=user["club_id"])
        return await availability_service.upsert_court_schedules(
            session, court_id, [entry.model_dump() for entry in payload.schedules]
        )
    except Exception as e:
        raise service_error_to_http(e, "updating court schedule")


@router.post("/api/courts/{court_id}/blocks", status_code=201)
async def create_court_block(
    court_id: int,
    payload: CreateBlockRequest,
    user: dict = Depends(require_club),
    session: AsyncSession = Depends(get_db_session),
):
    """Block a court over an interval (maintenance, tournament, private use)."""
    try:
        await availability_service.get_court(session, court_id, club_id=user["club_id"])
        return await availability_service.create_court_block(
            session,
            court_id,
            payload.start_at,
            payload.end_at,
            block_type=payload.type,
            reason=payload.reason,
        )
    except Exception as e:
        raise service_error_to_http(e, "creating block")


@router.delete("/api/courts/blocks/{block_id}")
async def delete_court_block(
    block_id: int,
    user: dict = Depends(require_club),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a block."""
    try:
        await availability_service.delete_court_block(session, block_id, club_id=user["club_id"])
        return {"success": True}
    except Exception as e:
        raise service_error_to_http(e, "deleting block")


@router.delete("/api/courts/{court_id}")
async def deactivate_court(
    court_id: int,
    user: dict = Depends(require_club),
    session: AsyncSession = Depends(get_db_session),
):
    """Deactivate a court. Existing bookings are kept."""
    try:
        await availability_service.deactivate_court(session, court_id, club_id=user["club_id"])
        return {"success": True}
    except Exception as e:
        raise service_error_to_http(e, "deactivating court")
