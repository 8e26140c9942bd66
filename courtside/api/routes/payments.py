"""
Payment signal handlers.

The payment provider itself is external; these endpoints apply the state
transitions its notifications trigger (mock provider: the payer confirms).
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.api.auth_dependencies import get_current_user
from courtside.api.routes import service_error_to_http
from courtside.database.db import get_db_session
from courtside.services import booking_service, match_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/payments/bookings/{booking_id}/confirm")
async def confirm_booking_payment(
    booking_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Mark a pending booking as paid."""
    try:
        booking = await booking_service.get_booking(session, booking_id)
        if booking.created_by_id != user["id"]:
            raise PermissionError("Only the user who made the booking can pay for it")
        booking = await booking_service.confirm_booking(session, booking_id)
        return booking_service.booking_to_dict(booking)
    except Exception as e:
        raise service_error_to_http(e, "confirming booking payment")


@router.post("/api/payments/participants/{participant_id}/confirm")
async def confirm_participant_payment(
    participant_id: int,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Mark a match seat as paid."""
    try:
        return await match_service.confirm_participant_payment(session, participant_id)
    except Exception as e:
        raise service_error_to_http(e, "confirming seat payment")
