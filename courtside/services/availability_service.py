"""
Court availability service: weekly schedules, blocks and bookable slots.

A court's day is cut into fixed-length slots from its weekly schedule entry;
a slot is unavailable when it overlaps an active booking, a block, or has
already started.
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.models import (
    ACTIVE_BOOKING_STATUSES,
    BlockType,
    Booking,
    Court,
    CourtBlock,
    CourtSchedule,
)
from courtside.services.exceptions import (
    BlockNotFoundError,
    CourtNotFoundError,
    InvalidScheduleError,
)
from courtside.utils.constants import (
    DEFAULT_SLOT_DURATION_MINUTES,
    MAX_SLOT_DURATION_MINUTES,
    MIN_SLOT_DURATION_MINUTES,
)
from courtside.utils.datetime_utils import (
    ensure_utc,
    format_hhmm,
    local_day_bounds,
    local_timezone,
    localize_wall_clock,
    minutes_since_midnight,
    utcnow,
)

logger = logging.getLogger(__name__)


def intervals_overlap(
    start: datetime, end: datetime, other_start: datetime, other_end: datetime
) -> bool:
    """Half-open interval intersection: [start, end) vs [other_start, other_end)."""
    return start < other_end and end > other_start


# ---------------------------------------------------------------------------
# Slot generation
# ---------------------------------------------------------------------------


def generate_slots(schedule: CourtSchedule, day: date, tz=None) -> List[Dict]:
    """
    Cut a day into contiguous slots according to a weekly schedule entry.

    A trailing partial slot (one that would end after close_time) is dropped.

    Args:
        schedule: The CourtSchedule for ``day``'s weekday
        day: Calendar date (in the schedule's timezone)
        tz: pytz timezone the HH:MM values are expressed in

    Returns:
        Ordered list of slot dicts, all marked available
    """
    tz = tz or local_timezone()
    open_minutes = minutes_since_midnight(schedule.open_time)
    close_minutes = minutes_since_midnight(schedule.close_time)
    duration = schedule.slot_duration

    slots = []
    if duration <= 0:
        return slots

    minute = open_minutes
    while minute + duration <= close_minutes:
        end_minute = minute + duration
        slots.append(
            {
                "start_time": format_hhmm(minute),
                "end_time": format_hhmm(end_minute),
                "start_at": localize_wall_clock(day, minute, tz),
                "end_at": localize_wall_clock(day, end_minute, tz),
                "available": True,
                "price": schedule.price_per_slot,
            }
        )
        minute = end_minute
    return slots


async def get_court_schedule_for_day(
    session: AsyncSession, court_id: int, day: date
) -> Optional[CourtSchedule]:
    """Weekly schedule entry for the court on ``day``'s weekday, if any."""
    result = await session.execute(
        select(CourtSchedule).where(
            and_(
                CourtSchedule.court_id == court_id,
                CourtSchedule.day_of_week == day.weekday(),
            )
        )
    )
    return result.scalar_one_or_none()


async def get_available_slots(
    session: AsyncSession,
    court_id: int,
    day: date,
    now: Optional[datetime] = None,
) -> List[Dict]:
    """
    Compute a court's slots for one day with their availability.

    Read-only and safe to call repeatedly. Pending bookings block their slot
    even if their hold has lapsed but not been swept yet.

    Args:
        session: Database session
        court_id: Court to evaluate
        day: Calendar date (in COURTSIDE_TIMEZONE)
        now: Evaluation instant (defaults to utcnow())

    Returns:
        Ordered list of {start_at, end_at, start_time, end_time, available, price};
        empty when the court has no schedule entry for that weekday.
    """
    schedule = await get_court_schedule_for_day(session, court_id, day)
    if schedule is None:
        return []

    tz = local_timezone()
    slots = generate_slots(schedule, day, tz)
    if not slots:
        return slots

    now = ensure_utc(now) if now else utcnow()
    day_start, day_end = local_day_bounds(day, tz)

    bookings_result = await session.execute(
        select(Booking.start_at, Booking.end_at).where(
            and_(
                Booking.court_id == court_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.start_at < day_end,
                Booking.end_at > day_start,
            )
        )
    )
    booked = bookings_result.all()

    blocks_result = await session.execute(
        select(CourtBlock.start_at, CourtBlock.end_at).where(
            and_(
                CourtBlock.court_id == court_id,
                CourtBlock.start_at < day_end,
                CourtBlock.end_at > day_start,
            )
        )
    )
    blocked = blocks_result.all()

    for slot in slots:
        if any(intervals_overlap(slot["start_at"], slot["end_at"], s, e) for s, e in booked):
            slot["available"] = False
        elif any(intervals_overlap(slot["start_at"], slot["end_at"], s, e) for s, e in blocked):
            slot["available"] = False
        elif slot["start_at"] < now:
            slot["available"] = False

    return slots


async def quote_slot_price(session: AsyncSession, court_id: int, start_at: datetime) -> int:
    """Price of a reservation starting at ``start_at``: the day's price_per_slot, or 0."""
    local_day = ensure_utc(start_at).astimezone(local_timezone()).date()
    schedule = await get_court_schedule_for_day(session, court_id, local_day)
    return schedule.price_per_slot if schedule else 0


async def get_club_availability(
    session: AsyncSession,
    club_id: int,
    day: date,
    now: Optional[datetime] = None,
) -> List[Dict]:
    """Slots for every active court of a club, ordered by court name."""
    result = await session.execute(
        select(Court)
        .where(and_(Court.club_id == club_id, Court.is_active == True))  # noqa: E712
        .order_by(Court.name)
    )
    courts = result.scalars().all()

    availability = []
    for court in courts:
        availability.append(
            {
                "court_id": court.id,
                "court_name": court.name,
                "surface": court.surface.value if court.surface else None,
                "is_indoor": court.is_indoor,
                "slots": await get_available_slots(session, court.id, day, now=now),
            }
        )
    return availability


# ---------------------------------------------------------------------------
# Court administration (club side)
# ---------------------------------------------------------------------------


async def get_court(
    session: AsyncSession, court_id: int, club_id: Optional[int] = None
) -> Court:
    """
    Fetch a court, optionally requiring it to belong to ``club_id``.

    Raises:
        CourtNotFoundError: If missing or owned by another club
    """
    query = select(Court).where(Court.id == court_id)
    if club_id is not None:
        query = query.where(Court.club_id == club_id)
    result = await session.execute(query)
    court = result.scalar_one_or_none()
    if court is None:
        raise CourtNotFoundError(f"Court {court_id} not found")
    return court


def _schedule_to_dict(schedule: CourtSchedule) -> Dict:
    return {
        "id": schedule.id,
        "court_id": schedule.court_id,
        "day_of_week": schedule.day_of_week,
        "open_time": schedule.open_time,
        "close_time": schedule.close_time,
        "slot_duration": schedule.slot_duration,
        "price_per_slot": schedule.price_per_slot,
    }


def _block_to_dict(block: CourtBlock) -> Dict:
    return {
        "id": block.id,
        "court_id": block.court_id,
        "type": block.type.value if block.type else None,
        "start_at": block.start_at.isoformat() if block.start_at else None,
        "end_at": block.end_at.isoformat() if block.end_at else None,
        "reason": block.reason,
    }


def _validate_schedule_entry(entry: Dict) -> Dict:
    """Normalize one weekly schedule entry, raising InvalidScheduleError."""
    day_of_week = entry.get("day_of_week")
    if not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
        raise InvalidScheduleError(f"day_of_week must be 0-6, got {day_of_week!r}")

    try:
        open_minutes = minutes_since_midnight(entry.get("open_time"))
        close_minutes = minutes_since_midnight(entry.get("close_time"))
    except ValueError as e:
        raise InvalidScheduleError(str(e)) from e
    if close_minutes <= open_minutes:
        raise InvalidScheduleError("close_time must be after open_time")

    slot_duration = entry.get("slot_duration")
    if slot_duration is None:
        slot_duration = DEFAULT_SLOT_DURATION_MINUTES
    if not MIN_SLOT_DURATION_MINUTES <= slot_duration <= MAX_SLOT_DURATION_MINUTES:
        raise InvalidScheduleError(
            f"slot_duration must be between {MIN_SLOT_DURATION_MINUTES} "
            f"and {MAX_SLOT_DURATION_MINUTES} minutes"
        )

    price_per_slot = entry.get("price_per_slot")
    if price_per_slot is None:
        price_per_slot = 0
    if price_per_slot < 0:
        raise InvalidScheduleError("price_per_slot cannot be negative")

    return {
        "day_of_week": day_of_week,
        "open_time": entry["open_time"],
        "close_time": entry["close_time"],
        "slot_duration": slot_duration,
        "price_per_slot": price_per_slot,
    }


async def upsert_court_schedules(
    session: AsyncSession, court_id: int, entries: List[Dict]
) -> List[Dict]:
    """
    Create or replace the weekly schedule entries for the given weekdays.

    Weekdays not mentioned in ``entries`` are left untouched.

    Args:
        session: Database session
        court_id: Court being configured
        entries: Dicts with day_of_week, open_time, close_time,
            slot_duration (optional), price_per_slot (optional)

    Returns:
        The court's full weekly schedule ordered by day_of_week
    """
    await get_court(session, court_id)
    normalized = [_validate_schedule_entry(entry) for entry in entries]

    result = await session.execute(
        select(CourtSchedule).where(CourtSchedule.court_id == court_id)
    )
    existing = {s.day_of_week: s for s in result.scalars().all()}

    for entry in normalized:
        schedule = existing.get(entry["day_of_week"])
        if schedule is None:
            schedule = CourtSchedule(court_id=court_id, **entry)
            session.add(schedule)
            existing[entry["day_of_week"]] = schedule
        else:
            schedule.open_time = entry["open_time"]
            schedule.close_time = entry["close_time"]
            schedule.slot_duration = entry["slot_duration"]
            schedule.price_per_slot = entry["price_per_slot"]

    await session.flush()
    logger.info(f"Updated {len(normalized)} schedule day(s) for court {court_id}")
    return [_schedule_to_dict(s) for s in sorted(existing.values(), key=lambda s: s.day_of_week)]


async def list_court_schedules(session: AsyncSession, court_id: int) -> List[Dict]:
    """Weekly schedule of a court ordered by day_of_week."""
    result = await session.execute(
        select(CourtSchedule)
        .where(CourtSchedule.court_id == court_id)
        .order_by(CourtSchedule.day_of_week)
    )
    return [_schedule_to_dict(s) for s in result.scalars().all()]


async def create_court_block(
    session: AsyncSession,
    court_id: int,
    start_at: datetime,
    end_at: datetime,
    block_type: BlockType = BlockType.MAINTENANCE,
    reason: Optional[str] = None,
) -> Dict:
    """Add an unavailability block to a court."""
    await get_court(session, court_id)
    start_at = ensure_utc(start_at)
    end_at = ensure_utc(end_at)
    if end_at <= start_at:
        raise InvalidScheduleError("Block end must be after its start")

    block = CourtBlock(
        court_id=court_id,
        type=block_type,
        start_at=start_at,
        end_at=end_at,
        reason=reason or None,
    )
    session.add(block)
    await session.flush()
    logger.info(f"Created {block_type.value} block {block.id} on court {court_id}")
    return _block_to_dict(block)


async def delete_court_block(
    session: AsyncSession, block_id: int, club_id: Optional[int] = None
) -> None:
    """
    Delete a block, optionally requiring its court to belong to ``club_id``.

    Raises:
        BlockNotFoundError: If missing or owned by another club
    """
    query = select(CourtBlock).join(Court, Court.id == CourtBlock.court_id).where(
        CourtBlock.id == block_id
    )
    if club_id is not None:
        query = query.where(Court.club_id == club_id)
    result = await session.execute(query)
    block = result.scalar_one_or_none()
    if block is None:
        raise BlockNotFoundError(f"Block {block_id} not found")

    await session.delete(block)
    await session.flush()


async def list_upcoming_blocks(
    session: AsyncSession, court_id: int, now: Optional[datetime] = None
) -> List[Dict]:
    """Blocks on a court that have not ended yet, earliest first."""
    now = ensure_utc(now) if now else utcnow()
    result = await session.execute(
        select(CourtBlock)
        .where(and_(CourtBlock.court_id == court_id, CourtBlock.end_at >= now))
        .order_by(CourtBlock.start_at)
    )
    return [_block_to_dict(b) for b in result.scalars().all()]


async def deactivate_court(
    session: AsyncSession, court_id: int, club_id: Optional[int] = None
) -> None:
    """Soft-delete a court; existing bookings keep referencing it."""
    court = await get_court(session, court_id, club_id=club_id)
    court.is_active = False
    await session.flush()
    logger.info(f"Deactivated court {court_id}")
