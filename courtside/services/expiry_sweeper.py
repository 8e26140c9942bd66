"""
Expiry sweeper: releases unconfirmed holds and escalates stale disputes.

Background worker with two cadences. The fast loop expires PENDING bookings
and PENDING_PAYMENT match seats whose hold ran out; the slow loop escalates
correction requests nobody answered within the SLA. Every statement only
matches rows still in their pre-transition state, so a sweep that runs twice
changes nothing the second time.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database import db
from courtside.database.models import (
    ACTIVE_PARTICIPANT_STATUSES,
    Booking,
    BookingStatus,
    CorrectionRequest,
    CorrectionStatus,
    Match,
    MatchParticipant,
    MatchStatus,
    ParticipantStatus,
)
from courtside.utils.constants import (
    CORRECTION_SLA_HOURS,
    ESCALATION_SWEEP_INTERVAL_SECONDS,
    EXPIRY_SWEEP_INTERVAL_SECONDS,
)
from courtside.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


async def expire_pending_bookings(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Move PENDING bookings whose hold expired to EXPIRED, freeing their slots.

    Returns:
        Number of bookings expired
    """
    now = ensure_utc(now) if now else utcnow()
    result = await session.execute(
        update(Booking)
        .where(
            and_(
                Booking.status == BookingStatus.PENDING,
                Booking.expires_at.is_not(None),
                Booking.expires_at <= now,
            )
        )
        .values(status=BookingStatus.EXPIRED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    count = result.rowcount or 0
    if count > 0:
        logger.info(f"Expired {count} pending booking(s)")
    return count


async def expire_pending_match_participants(
    session: AsyncSession, now: Optional[datetime] = None
) -> int:
    """
    Expire PENDING_PAYMENT seats past their payment hold.

    A FULL match that loses a seat this way goes back to OPEN.

    Returns:
        Number of participants expired
    """
    now = ensure_utc(now) if now else utcnow()
    stale_filter = and_(
        MatchParticipant.status == ParticipantStatus.PENDING_PAYMENT,
        MatchParticipant.expires_at.is_not(None),
        MatchParticipant.expires_at <= now,
    )

    match_ids_result = await session.execute(
        select(MatchParticipant.match_id).where(stale_filter).distinct()
    )
    match_ids: List[int] = list(match_ids_result.scalars().all())
    if not match_ids:
        return 0

    result = await session.execute(
        update(MatchParticipant)
        .where(stale_filter)
        .values(status=ParticipantStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    count = result.rowcount or 0

    active_counts = (
        select(func.count(MatchParticipant.id))
        .where(
            and_(
                MatchParticipant.match_id == Match.id,
                MatchParticipant.status.in_(ACTIVE_PARTICIPANT_STATUSES),
            )
        )
        .correlate(Match)
        .scalar_subquery()
    )
    reopened = await session.execute(
        update(Match)
        .where(
            and_(
                Match.id.in_(match_ids),
                Match.status == MatchStatus.FULL,
                active_counts < Match.max_players,
            )
        )
        .values(status=MatchStatus.OPEN)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    if count > 0:
        logger.info(
            f"Expired {count} unpaid match seat(s); reopened {reopened.rowcount or 0} match(es)"
        )
    return count


async def escalate_stale_corrections(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Flag PENDING correction requests older than the SLA for admin attention.

    Returns:
        Number of requests escalated
    """
    now = ensure_utc(now) if now else utcnow()
    cutoff = now - timedelta(hours=CORRECTION_SLA_HOURS)
    result = await session.execute(
        update(CorrectionRequest)
        .where(
            and_(
                CorrectionRequest.status == CorrectionStatus.PENDING,
                CorrectionRequest.escalated_to_admin == False,  # noqa: E712
                CorrectionRequest.created_at < cutoff,
            )
        )
        .values(escalated_to_admin=True, escalated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    count = result.rowcount or 0
    if count > 0:
        logger.info(f"Escalated {count} stale correction request(s) to admin")
    return count


class ExpirySweeper:
    """Background service running the expiry and escalation sweeps."""

    def __init__(
        self,
        expiry_interval: float = EXPIRY_SWEEP_INTERVAL_SECONDS,
        escalation_interval: float = ESCALATION_SWEEP_INTERVAL_SECONDS,
    ):
        self.expiry_interval = expiry_interval
        self.escalation_interval = escalation_interval
        self._tasks: List[asyncio.Task] = []
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Start both sweep loops."""
        if self.running:
            return
        self._stop_event.clear()
        self._tasks = [
            asyncio.create_task(self._loop(self.run_expiry_sweep, self.expiry_interval)),
            asyncio.create_task(
                self._loop(self.run_escalation_sweep, self.escalation_interval)
            ),
        ]
        logger.info(
            f"Expiry sweeper started (expiry every {self.expiry_interval}s, "
            f"escalation every {self.escalation_interval}s)"
        )

    def stop(self) -> None:
        """Stop both sweep loops."""
        self._stop_event.set()
        stopped = False
        for task in self._tasks:
            if not task.done():
                task.cancel()
                stopped = True
        self._tasks = []
        if stopped:
            logger.info("Expiry sweeper stopped")

    async def _loop(self, sweep: Callable[[], Awaitable[None]], interval: float) -> None:
        """Run ``sweep`` now and then every ``interval`` seconds until stopped."""
        while not self._stop_event.is_set():
            try:
                await sweep()
            except Exception as e:
                logger.error(f"Error in expiry sweeper ({sweep.__name__}): {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

    async def run_expiry_sweep(self) -> None:
        """
        Expire booking holds and unpaid match seats.

        Each sweep gets its own session; a failure in one is logged and the
        other still runs.
        """
        for sweep in (expire_pending_bookings, expire_pending_match_participants):
            try:
                async with db.AsyncSessionLocal() as session:
                    await sweep(session)
            except Exception as e:
                logger.error(f"Error in expiry sweeper ({sweep.__name__}): {e}", exc_info=True)

    async def run_escalation_sweep(self) -> None:
        """Escalate unanswered correction requests."""
        async with db.AsyncSessionLocal() as session:
            await escalate_stale_corrections(session)


# Global singleton
_expiry_sweeper = ExpirySweeper()


def get_expiry_sweeper() -> ExpirySweeper:
    """Get the global expiry sweeper instance."""
    return _expiry_sweeper
