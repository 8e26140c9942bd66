"""Booking route handlers (availability, reservation, cancellation)."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.api.auth_dependencies import get_current_user, require_club, require_player
from courtside.api.routes import limiter, service_error_to_http
from courtside.database.db import get_db_session
from courtside.models.schemas import CancelBookingRequest, CreateBookingRequest
from courtside.services import availability_service, booking_service, user_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/bookings/availability")
async def get_club_availability(
    club_id: int = Query(...),
    day: date = Query(..., alias="date", description="Calendar day (YYYY-MM-DD)"),
    session: AsyncSession = Depends(get_db_session),
):
    """Slots of every active court of a club for one day (public)."""
    try:
        courts = await availability_service.get_club_availability(session, club_id, day)
        return {"club_id": club_id, "date": day.isoformat(), "courts": courts}
    except Exception as e:
        raise service_error_to_http(e, "fetching availability")


@router.post("/api/bookings", status_code=201)
@limiter.limit("20/minute")
async def create_booking(
    request: Request,
    payload: CreateBookingRequest,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Reserve a court interval as a PENDING booking held for a few minutes.

    409 with code SLOT_TAKEN or SLOT_BLOCKED when the interval is unavailable.
    """
    try:
        court = await availability_service.get_court(session, payload.court_id)
        price = await availability_service.quote_slot_price(session, court.id, payload.start_at)
        booking = await booking_service.create_booking(
            session,
            court_id=court.id,
            club_id=court.club_id,
            created_by_id=user["id"],
            start_at=payload.start_at,
            end_at=payload.end_at,
            total_price=price,
        )
        return booking_service.booking_to_dict(booking)
    except Exception as e:
        raise service_error_to_http(e, "creating booking")


@router.post("/api/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    payload: Optional[CancelBookingRequest] = None,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Cancel a booking (its creator or the owning club)."""
    try:
        club = await user_service.get_club_for_user(session, user["id"])
        booking = await booking_service.cancel_booking(
            session,
            booking_id,
            actor_user_id=user["id"],
            actor_club_id=club.id if club else None,
            reason=payload.reason if payload else None,
        )
        return booking_service.booking_to_dict(booking)
    except Exception as e:
        raise service_error_to_http(e, "cancelling booking")


@router.get("/api/bookings/mine")
async def list_my_bookings(
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Bookings made by the current user, most recent first."""
    try:
        return await booking_service.list_bookings_for_user(session, user["id"])
    except Exception as e:
        raise service_error_to_http(e, "listing bookings")


@router.get("/api/bookings/club")
async def list_club_bookings(
    day: Optional[date] = Query(None, alias="date"),
    court_id: Optional[int] = None,
    user: dict = Depends(require_club),
    session: AsyncSession = Depends(get_db_session),
):
    """Bookings of the current club, optionally for one day and/or court."""
    try:
        return await booking_service.list_bookings_for_club(
            session, user["club_id"], day=day, court_id=court_id
        )
    except Exception as e:
        raise service_error_to_http(e, "listing club bookings")


@router.post("/api/bookings/{booking_id}/no-show")
async def mark_no_show(
    booking_id: int,
    user: dict = Depends(require_club),
    session: AsyncSession = Depends(get_db_session),
):
    """Club marks a confirmed booking as a no-show."""
    try:
        booking = await booking_service.mark_no_show(session, booking_id, user["club_id"])
        return booking_service.booking_to_dict(booking)
    except Exception as e:
        raise service_error_to_http(e, "marking no-show")
