"""
Booking allocation service.

Grants exclusive court reservations. Every allocation first bumps the court's
``booking_revision`` so concurrent allocators for the same court queue on that
row; the overlap checks that follow therefore see everything committed before
them, and the insert commits in the same transaction.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    Court,
    CourtBlock,
)
from courtside.services.exceptions import (
    BookingNotFoundError,
    BookingStateError,
    CourtNotFoundError,
    InvalidBookingError,
    SlotBlockedError,
    SlotTakenError,
)
from courtside.utils.constants import BOOKING_HOLD_MINUTES
from courtside.utils.datetime_utils import ensure_utc, local_day_bounds, utcnow

logger = logging.getLogger(__name__)


def booking_to_dict(booking: Booking) -> Dict:
    """Serialize a Booking for API responses."""
    return {
        "id": booking.id,
        "court_id": booking.court_id,
        "club_id": booking.club_id,
        "created_by_id": booking.created_by_id,
        "start_at": booking.start_at.isoformat() if booking.start_at else None,
        "end_at": booking.end_at.isoformat() if booking.end_at else None,
        "total_price": booking.total_price,
        "status": booking.status.value if booking.status else None,
        "expires_at": booking.expires_at.isoformat() if booking.expires_at else None,
        "cancelled_at": booking.cancelled_at.isoformat() if booking.cancelled_at else None,
        "cancel_note": booking.cancel_note,
    }


async def _lock_court_timeline(session: AsyncSession, court_id: int) -> None:
    """
    Take the per-court write lock for the rest of the transaction.

    Raises:
        CourtNotFoundError: If the court is missing or inactive
    """
    result = await session.execute(
        update(Court)
        .where(and_(Court.id == court_id, Court.is_active == True))  # noqa: E712
        .values(booking_revision=Court.booking_revision + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise CourtNotFoundError(f"Court {court_id} not found or inactive")


async def find_overlapping_booking(
    session: AsyncSession, court_id: int, start_at: datetime, end_at: datetime
) -> Optional[Booking]:
    """First pending/confirmed booking on the court intersecting [start_at, end_at)."""
    result = await session.execute(
        select(Booking)
        .where(
            and_(
                Booking.court_id == court_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.start_at < end_at,
                Booking.end_at > start_at,
            )
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_overlapping_block(
    session: AsyncSession, court_id: int, start_at: datetime, end_at: datetime
) -> Optional[CourtBlock]:
    """First block on the court intersecting [start_at, end_at)."""
    result = await session.execute(
        select(CourtBlock)
        .where(
            and_(
                CourtBlock.court_id == court_id,
                CourtBlock.start_at < end_at,
                CourtBlock.end_at > start_at,
            )
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_booking(
    session: AsyncSession,
    *,
    court_id: int,
    club_id: int,
    created_by_id: int,
    start_at: datetime,
    end_at: datetime,
    total_price: int,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Atomically reserve [start_at, end_at) on a court as a PENDING booking.

    The session's transaction is committed on success and rolled back on any
    failure, so a conflict never leaves partial state behind.

    Args:
        session: Database session (must not have uncommitted work of its own)
        court_id: Court to reserve
        club_id: Club that owns the court
        created_by_id: User making the reservation
        start_at: Interval start (aware, or naive UTC)
        end_at: Interval end
        total_price: Price charged for the reservation
        now: Evaluation instant (defaults to utcnow())

    Returns:
        The committed Booking with status PENDING and a hold expiry

    Raises:
        InvalidBookingError: Empty interval or start in the past
        CourtNotFoundError: Court missing or inactive
        SlotTakenError: Overlaps an active booking
        SlotBlockedError: Overlaps a court block
    """
    now = ensure_utc(now) if now else utcnow()
    start_at = ensure_utc(start_at)
    end_at = ensure_utc(end_at)

    if end_at <= start_at:
        raise InvalidBookingError("End time must be after start time")
    if start_at < now:
        raise InvalidBookingError("Cannot book a slot in the past")

    try:
        await _lock_court_timeline(session, court_id)

        if await find_overlapping_booking(session, court_id, start_at, end_at):
            raise SlotTakenError()

        if await find_overlapping_block(session, court_id, start_at, end_at):
            raise SlotBlockedError()

        booking = Booking(
            court_id=court_id,
            club_id=club_id,
            created_by_id=created_by_id,
            start_at=start_at,
            end_at=end_at,
            total_price=total_price,
            status=BookingStatus.PENDING,
            expires_at=now + timedelta(minutes=BOOKING_HOLD_MINUTES),
        )
        session.add(booking)
        await session.flush()
        await session.commit()
    except IntegrityError as e:
        # Storage-level exclusion constraint (PostgreSQL) caught a race
        await session.rollback()
        logger.info(f"Exclusion constraint rejected booking on court {court_id}: {e.orig}")
        raise SlotTakenError() from e
    except Exception:
        await session.rollback()
        raise

    logger.info(
        f"Booking {booking.id} created on court {court_id} "
        f"[{start_at.isoformat()}, {end_at.isoformat()}) by user {created_by_id}"
    )
    return booking


async def get_booking(session: AsyncSession, booking_id: int) -> Booking:
    """
    Fetch a booking by id.

    Raises:
        BookingNotFoundError: If missing
    """
    result = await session.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFoundError(f"Booking {booking_id} not found")
    return booking


async def confirm_booking(session: AsyncSession, booking_id: int) -> Booking:
    """
    Apply a payment/approval signal: PENDING -> CONFIRMED.

    Confirming an already confirmed booking is a no-op so repeated provider
    notifications are harmless.

    Raises:
        BookingNotFoundError: If missing
        BookingStateError: If the booking expired or was cancelled
    """
    booking = await get_booking(session, booking_id)
    if booking.status == BookingStatus.CONFIRMED:
        return booking
    if booking.status != BookingStatus.PENDING:
        raise BookingStateError(
            f"Booking {booking_id} is {booking.status.value} and cannot be confirmed"
        )

    booking.status = BookingStatus.CONFIRMED
    booking.expires_at = None
    await session.flush()
    logger.info(f"Booking {booking_id} confirmed")
    return booking


async def cancel_booking(
    session: AsyncSession,
    booking_id: int,
    *,
    actor_user_id: int,
    actor_club_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> Booking:
    """
    Cancel a pending or confirmed booking.

    Only the user who created it or the owning club may cancel.

    Raises:
        BookingNotFoundError: If missing
        PermissionError: If the actor is neither creator nor owning club
        BookingStateError: If the booking is no longer active
    """
    booking = await get_booking(session, booking_id)

    is_creator = booking.created_by_id == actor_user_id
    is_club_owner = actor_club_id is not None and actor_club_id == booking.club_id
    if not is_creator and not is_club_owner:
        raise PermissionError("Not allowed to cancel this booking")

    if booking.status not in ACTIVE_BOOKING_STATUSES:
        raise BookingStateError("Only pending or confirmed bookings can be cancelled")

    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = utcnow()
    booking.cancel_note = reason or None
    booking.expires_at = None
    await session.flush()
    logger.info(f"Booking {booking_id} cancelled by user {actor_user_id}")
    return booking


async def mark_no_show(session: AsyncSession, booking_id: int, club_id: int) -> Booking:
    """Club marks a confirmed booking whose players never arrived."""
    booking = await get_booking(session, booking_id)
    if booking.club_id != club_id:
        raise PermissionError("Not allowed to modify this booking")
    if booking.status != BookingStatus.CONFIRMED:
        raise BookingStateError("Only confirmed bookings can be marked as no-show")
    booking.status = BookingStatus.NO_SHOW
    await session.flush()
    return booking


async def list_bookings_for_user(
    session: AsyncSession, user_id: int, limit: int = 50
) -> List[Dict]:
    """Most recent bookings made by a user."""
    result = await session.execute(
        select(Booking)
        .where(Booking.created_by_id == user_id)
        .order_by(Booking.start_at.desc())
        .limit(limit)
    )
    return [booking_to_dict(b) for b in result.scalars().all()]


async def list_bookings_for_club(
    session: AsyncSession,
    club_id: int,
    day: Optional[date] = None,
    court_id: Optional[int] = None,
    limit: int = 100,
) -> List[Dict]:
    """A club's bookings, optionally restricted to one local day and/or court."""
    query = select(Booking).where(Booking.club_id == club_id)
    if court_id is not None:
        query = query.where(Booking.court_id == court_id)
    if day is not None:
        day_start, day_end = local_day_bounds(day)
        query = query.where(and_(Booking.start_at >= day_start, Booking.start_at < day_end))

    result = await session.execute(query.order_by(Booking.start_at).limit(limit))
    return [booking_to_dict(b) for b in result.scalars().all()]
