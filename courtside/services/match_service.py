"""
Shared-cost matches built on top of a booking.

Each seat pays ceil(total_price / max_players). Joining takes the match row's
write lock (``seat_revision`` bump) before counting seats, the same way the
booking allocator locks a court, so two joins can never overfill a match.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.models import (
    ACTIVE_BOOKING_STATUSES,
    ACTIVE_PARTICIPANT_STATUSES,
    Booking,
    BookingStatus,
    Match,
    MatchParticipant,
    MatchStatus,
    ParticipantStatus,
)
from courtside.services.booking_service import get_booking
from courtside.services.exceptions import (
    BookingStateError,
    InvalidMatchError,
    MatchFullError,
    MatchNotFoundError,
    MatchStateError,
)
from courtside.utils.constants import DEFAULT_MATCH_MAX_PLAYERS, MATCH_PAYMENT_HOLD_MINUTES
from courtside.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def split_amount(total_price: int, max_players: int) -> int:
    """Per-seat share of a booking price, rounded up."""
    return math.ceil(total_price / max_players)


def participant_to_dict(participant: MatchParticipant) -> Dict:
    return {
        "id": participant.id,
        "match_id": participant.match_id,
        "player_id": participant.player_id,
        "status": participant.status.value,
        "split_amount": participant.split_amount,
        "expires_at": participant.expires_at.isoformat() if participant.expires_at else None,
        "joined_at": participant.joined_at.isoformat() if participant.joined_at else None,
        "paid_at": participant.paid_at.isoformat() if participant.paid_at else None,
    }


def match_to_dict(match: Match, participants: Iterable[MatchParticipant] = ()) -> Dict:
    return {
        "id": match.id,
        "booking_id": match.booking_id,
        "created_by_id": match.created_by_id,
        "is_public": match.is_public,
        "max_players": match.max_players,
        "status": match.status.value,
        "notes": match.notes,
        "participants": [participant_to_dict(p) for p in participants],
    }


async def create_match(
    session: AsyncSession,
    *,
    booking_id: int,
    created_by_id: int,
    player_id: int,
    is_public: bool = False,
    notes: Optional[str] = None,
    invited_player_ids: Optional[Iterable[int]] = None,
    max_players: int = DEFAULT_MATCH_MAX_PLAYERS,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Turn a booking into a match.

    The creator takes the first seat: CONFIRMED when the booking is already
    confirmed or free, otherwise PENDING_PAYMENT with a payment hold. Invited
    players hold a seat as INVITED.

    Args:
        session: Database session
        booking_id: Booking to build the match on
        created_by_id: User creating the match (must own the booking)
        player_id: Creator's player profile
        is_public: Whether anyone may join
        notes: Free text
        invited_player_ids: Players to invite
        max_players: Seat count
        now: Evaluation instant (defaults to utcnow())

    Returns:
        Match dict including participants

    Raises:
        BookingNotFoundError: Booking missing
        PermissionError: Booking belongs to someone else
        MatchStateError: Booking already has a match
        BookingStateError: Booking is no longer active
        InvalidMatchError: Invalid seat count or too many invitees
    """
    now = ensure_utc(now) if now else utcnow()
    booking = await get_booking(session, booking_id)

    if booking.created_by_id != created_by_id:
        raise PermissionError("Only the user who made the booking can create a match on it")

    existing = await session.execute(select(Match.id).where(Match.booking_id == booking_id))
    if existing.scalar_one_or_none() is not None:
        raise MatchStateError(f"Booking {booking_id} already has a match")

    if booking.status not in ACTIVE_BOOKING_STATUSES:
        raise BookingStateError(
            f"Cannot create a match for a {booking.status.value.lower()} booking"
        )

    if max_players < 2:
        raise InvalidMatchError("A match needs at least 2 players")

    invited = [pid for pid in dict.fromkeys(invited_player_ids or []) if pid != player_id]
    if 1 + len(invited) > max_players:
        raise InvalidMatchError(f"Cannot invite more than {max_players - 1} players")

    share = split_amount(booking.total_price, max_players)
    creator_confirmed = booking.status == BookingStatus.CONFIRMED or booking.total_price == 0

    match = Match(
        booking_id=booking_id,
        created_by_id=created_by_id,
        is_public=is_public,
        max_players=max_players,
        notes=notes,
        status=MatchStatus.FULL if 1 + len(invited) == max_players else MatchStatus.OPEN,
    )
    session.add(match)
    await session.flush()

    participants = [
        MatchParticipant(
            match_id=match.id,
            player_id=player_id,
            status=(
                ParticipantStatus.CONFIRMED
                if creator_confirmed
                else ParticipantStatus.PENDING_PAYMENT
            ),
            split_amount=share,
            joined_at=now,
            paid_at=now if creator_confirmed else None,
            expires_at=(
                None if creator_confirmed else now + timedelta(minutes=MATCH_PAYMENT_HOLD_MINUTES)
            ),
        )
    ]
    participants.extend(
        MatchParticipant(
            match_id=match.id,
            player_id=invited_id,
            status=ParticipantStatus.INVITED,
            split_amount=share,
        )
        for invited_id in invited
    )
    session.add_all(participants)
    await session.flush()

    logger.info(
        f"Match {match.id} created on booking {booking_id} by user {created_by_id} "
        f"({len(invited)} invited, split {share})"
    )
    return match_to_dict(match, participants)


async def _lock_match_seats(session: AsyncSession, match_id: int) -> None:
    """Take the per-match write lock for the rest of the transaction."""
    result = await session.execute(
        update(Match)
        .where(Match.id == match_id)
        .values(seat_revision=Match.seat_revision + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise MatchNotFoundError(f"Match {match_id} not found")


async def _count_active_seats(session: AsyncSession, match_id: int) -> int:
    result = await session.execute(
        select(func.count(MatchParticipant.id)).where(
            and_(
                MatchParticipant.match_id == match_id,
                MatchParticipant.status.in_(ACTIVE_PARTICIPANT_STATUSES),
            )
        )
    )
    return result.scalar() or 0


async def join_match(
    session: AsyncSession, match_id: int, player_id: int, now: Optional[datetime] = None
) -> Dict:
    """
    Take a seat in a public, open match.

    Commits on success and rolls back on any failure.

    Returns:
        The participant dict (PENDING_PAYMENT with a payment hold, or
        CONFIRMED when the seat is free)

    Raises:
        MatchNotFoundError: Match missing
        PermissionError: Match is private
        MatchStateError: Match not OPEN, or player already seated
        MatchFullError: No seats left
    """
    now = ensure_utc(now) if now else utcnow()

    try:
        await _lock_match_seats(session, match_id)

        result = await session.execute(
            select(Match, Booking.total_price)
            .join(Booking, Booking.id == Match.booking_id)
            .where(Match.id == match_id)
            .execution_options(populate_existing=True)
        )
        match, total_price = result.one()

        if not match.is_public:
            raise PermissionError("This match is private")
        if match.status == MatchStatus.FULL:
            raise MatchFullError("This match is already full")
        if match.status != MatchStatus.OPEN:
            raise MatchStateError(f"Match is {match.status.value}")

        existing_result = await session.execute(
            select(MatchParticipant).where(
                and_(
                    MatchParticipant.match_id == match_id,
                    MatchParticipant.player_id == player_id,
                )
            )
        )
        participant = existing_result.scalar_one_or_none()
        if participant is not None and participant.status in ACTIVE_PARTICIPANT_STATUSES:
            raise MatchStateError("Player is already in this match")

        active = await _count_active_seats(session, match_id)
        if active >= match.max_players:
            raise MatchFullError("This match is already full")

        share = split_amount(total_price, match.max_players)
        free = share == 0
        if participant is None:
            # (match, player) is unique, so an expired or cancelled seat is reused
            participant = MatchParticipant(match_id=match_id, player_id=player_id)
            session.add(participant)
        participant.status = ParticipantStatus.CONFIRMED if free else ParticipantStatus.PENDING_PAYMENT
        participant.split_amount = share
        participant.joined_at = now
        participant.paid_at = now if free else None
        participant.expires_at = (
            None if free else now + timedelta(minutes=MATCH_PAYMENT_HOLD_MINUTES)
        )

        if active + 1 >= match.max_players:
            match.status = MatchStatus.FULL

        await session.flush()
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise MatchStateError("Player is already in this match") from e
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Player {player_id} joined match {match_id} (seat {active + 1}/{match.max_players})")
    return participant_to_dict(participant)


async def confirm_participant_payment(
    session: AsyncSession, participant_id: int, now: Optional[datetime] = None
) -> Dict:
    """
    Apply a payment signal to one seat: INVITED/PENDING_PAYMENT -> CONFIRMED.

    When every seat of the match is confirmed, the underlying booking is
    confirmed too. Repeating the signal is a no-op.

    Raises:
        MatchNotFoundError: Participant missing
        MatchStateError: Seat expired or was cancelled
    """
    now = ensure_utc(now) if now else utcnow()
    result = await session.execute(
        select(MatchParticipant).where(MatchParticipant.id == participant_id)
    )
    participant = result.scalar_one_or_none()
    if participant is None:
        raise MatchNotFoundError(f"Match participant {participant_id} not found")

    if participant.status == ParticipantStatus.CONFIRMED:
        return participant_to_dict(participant)
    if participant.status not in (ParticipantStatus.INVITED, ParticipantStatus.PENDING_PAYMENT):
        raise MatchStateError(
            f"Seat is {participant.status.value} and can no longer be paid"
        )

    participant.status = ParticipantStatus.CONFIRMED
    participant.paid_at = now
    participant.expires_at = None
    await session.flush()

    match_result = await session.execute(
        select(Match, Booking)
        .join(Booking, Booking.id == Match.booking_id)
        .where(Match.id == participant.match_id)
    )
    match, booking = match_result.one()

    confirmed_result = await session.execute(
        select(func.count(MatchParticipant.id)).where(
            and_(
                MatchParticipant.match_id == match.id,
                MatchParticipant.status == ParticipantStatus.CONFIRMED,
            )
        )
    )
    confirmed = confirmed_result.scalar() or 0
    if confirmed >= match.max_players and booking.status == BookingStatus.PENDING:
        booking.status = BookingStatus.CONFIRMED
        booking.expires_at = None
        await session.flush()
        logger.info(f"All seats of match {match.id} paid; booking {booking.id} confirmed")

    logger.info(f"Payment confirmed for participant {participant_id} of match {match.id}")
    return participant_to_dict(participant)
