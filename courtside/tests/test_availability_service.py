"""
Tests for availability_service: slot generation, availability marking and
weekly schedule/block administration.
"""

import pytest
from datetime import timedelta

from courtside.database.models import (
    Booking,
    BookingStatus,
    Club,
    Court,
    CourtBlock,
    CourtSchedule,
)
from courtside.services import availability_service
from courtside.services.exceptions import (
    BlockNotFoundError,
    CourtNotFoundError,
    InvalidScheduleError,
)

from conftest import MONDAY, utc

BEFORE_MONDAY = utc(2030, 6, 1, 12, 0)


def _schedule(open_time="08:00", close_time="12:00", slot_duration=60, price=1000):
    return CourtSchedule(
        court_id=1,
        day_of_week=0,
        open_time=open_time,
        close_time=close_time,
        slot_duration=slot_duration,
        price_per_slot=price,
    )


async def _add_booking(db_session, court, start, end, status=BookingStatus.PENDING):
    club = await db_session.get(Club, court.club_id)
    booking = Booking(
        court_id=court.id,
        club_id=court.club_id,
        created_by_id=club.user_id,
        start_at=start,
        end_at=end,
        total_price=1000,
        status=status,
        expires_at=start - timedelta(hours=1) if status == BookingStatus.PENDING else None,
    )
    db_session.add(booking)
    await db_session.commit()
    return booking


# ============================================================================
# generate_slots
# ============================================================================


def test_generate_slots_cuts_day_into_contiguous_slots():
    slots = availability_service.generate_slots(_schedule(), MONDAY)

    assert [s["start_time"] for s in slots] == ["08:00", "09:00", "10:00", "11:00"]
    assert slots[-1]["end_time"] == "12:00"
    for slot in slots:
        assert slot["end_at"] - slot["start_at"] == timedelta(minutes=60)
        assert slot["available"] is True
        assert slot["price"] == 1000
    assert slots[0]["start_at"] == utc(2030, 6, 3, 8, 0)


def test_generate_slots_drops_trailing_partial_slot():
    slots = availability_service.generate_slots(_schedule(slot_duration=90), MONDAY)

    assert [(s["start_time"], s["end_time"]) for s in slots] == [
        ("08:00", "09:30"),
        ("09:30", "11:00"),
    ]


def test_generate_slots_window_shorter_than_duration():
    slots = availability_service.generate_slots(
        _schedule(open_time="08:00", close_time="08:45", slot_duration=60), MONDAY
    )
    assert slots == []


def test_intervals_overlap_is_half_open():
    a, b, c = utc(2030, 6, 3, 9), utc(2030, 6, 3, 10), utc(2030, 6, 3, 11)
    assert availability_service.intervals_overlap(a, c, b, c)
    assert not availability_service.intervals_overlap(a, b, b, c)
    assert not availability_service.intervals_overlap(b, c, a, b)


# ============================================================================
# get_available_slots
# ============================================================================


@pytest.mark.asyncio
async def test_pending_booking_marks_its_slot_unavailable(db_session, court):
    await _add_booking(db_session, court, utc(2030, 6, 3, 9), utc(2030, 6, 3, 10))

    slots = await availability_service.get_available_slots(
        db_session, court.id, MONDAY, now=BEFORE_MONDAY
    )

    assert len(slots) == 4
    assert [s["available"] for s in slots] == [True, False, True, True]
    assert slots[1]["start_time"] == "09:00"


@pytest.mark.asyncio
async def test_booking_spanning_two_slots_blocks_both(db_session, court):
    await _add_booking(
        db_session, court, utc(2030, 6, 3, 9, 30), utc(2030, 6, 3, 10, 30),
        status=BookingStatus.CONFIRMED,
    )

    slots = await availability_service.get_available_slots(
        db_session, court.id, MONDAY, now=BEFORE_MONDAY
    )

    assert [s["available"] for s in slots] == [True, False, False, True]


@pytest.mark.asyncio
async def test_inactive_bookings_do_not_block(db_session, court):
    await _add_booking(
        db_session, court, utc(2030, 6, 3, 8), utc(2030, 6, 3, 9), status=BookingStatus.CANCELLED
    )
    await _add_booking(
        db_session, court, utc(2030, 6, 3, 10), utc(2030, 6, 3, 11), status=BookingStatus.EXPIRED
    )

    slots = await availability_service.get_available_slots(
        db_session, court.id, MONDAY, now=BEFORE_MONDAY
    )

    assert all(s["available"] for s in slots)


@pytest.mark.asyncio
async def test_block_marks_overlapping_slots_unavailable(db_session, court):
    db_session.add(
        CourtBlock(
            court_id=court.id,
            start_at=utc(2030, 6, 3, 10),
            end_at=utc(2030, 6, 3, 12),
            reason="Resurfacing",
        )
    )
    await db_session.commit()

    slots = await availability_service.get_available_slots(
        db_session, court.id, MONDAY, now=BEFORE_MONDAY
    )

    assert [s["available"] for s in slots] == [True, True, False, False]


@pytest.mark.asyncio
async def test_started_slots_are_unavailable(db_session, court):
    slots = await availability_service.get_available_slots(
        db_session, court.id, MONDAY, now=utc(2030, 6, 3, 10, 15)
    )

    assert [s["available"] for s in slots] == [False, False, False, True]


@pytest.mark.asyncio
async def test_no_schedule_returns_empty(db_session, club):
    bare = Court(club_id=club.id, name="Sin horario")
    db_session.add(bare)
    await db_session.commit()

    slots = await availability_service.get_available_slots(
        db_session, bare.id, MONDAY, now=BEFORE_MONDAY
    )

    assert slots == []


@pytest.mark.asyncio
async def test_club_availability_lists_active_courts_only(db_session, club, court):
    db_session.add(Court(club_id=club.id, name="Cancha 2", is_active=False))
    await db_session.commit()

    courts = await availability_service.get_club_availability(
        db_session, club.id, MONDAY, now=BEFORE_MONDAY
    )

    assert [c["court_name"] for c in courts] == ["Cancha 1"]
    assert len(courts[0]["slots"]) == 4


@pytest.mark.asyncio
async def test_quote_slot_price_uses_day_schedule(db_session, club, court):
    assert await availability_service.quote_slot_price(
        db_session, court.id, utc(2030, 6, 3, 9)
    ) == 1000

    bare = Court(club_id=club.id, name="Sin horario")
    db_session.add(bare)
    await db_session.commit()
    assert await availability_service.quote_slot_price(
        db_session, bare.id, utc(2030, 6, 3, 9)
    ) == 0


# ============================================================================
# Schedule administration
# ============================================================================


@pytest.mark.asyncio
async def test_upsert_schedule_replaces_existing_day(db_session, court):
    schedules = await availability_service.upsert_court_schedules(
        db_session,
        court.id,
        [
            {
                "day_of_week": 0,
                "open_time": "18:00",
                "close_time": "23:00",
                "slot_duration": 90,
                "price_per_slot": 1500,
            }
        ],
    )
    await db_session.commit()

    assert len(schedules) == 7
    monday = schedules[0]
    assert monday["open_time"] == "18:00"
    assert monday["slot_duration"] == 90
    assert monday["price_per_slot"] == 1500

    slots = await availability_service.get_available_slots(
        db_session, court.id, MONDAY, now=BEFORE_MONDAY
    )
    assert [s["start_time"] for s in slots] == ["18:00", "19:30", "21:00"]


@pytest.mark.asyncio
async def test_upsert_schedule_adds_new_day(db_session, club):
    new_court = Court(club_id=club.id, name="Cancha 3")
    db_session.add(new_court)
    await db_session.commit()

    schedules = await availability_service.upsert_court_schedules(
        db_session,
        new_court.id,
        [{"day_of_week": 5, "open_time": "09:00", "close_time": "13:00"}],
    )

    assert len(schedules) == 1
    assert schedules[0]["slot_duration"] == 60
    assert schedules[0]["price_per_slot"] == 0


@pytest.mark.parametrize(
    "entry",
    [
        {"day_of_week": 7, "open_time": "08:00", "close_time": "12:00"},
        {"day_of_week": 0, "open_time": "8am", "close_time": "12:00"},
        {"day_of_week": 0, "open_time": "12:00", "close_time": "08:00"},
        {"day_of_week": 0, "open_time": "08:00", "close_time": "12:00", "slot_duration": 15},
        {"day_of_week": 0, "open_time": "08:00", "close_time": "12:00", "slot_duration": 0},
        {"day_of_week": 0, "open_time": "08:00", "close_time": "12:00", "price_per_slot": -1},
    ],
)
@pytest.mark.asyncio
async def test_upsert_schedule_rejects_invalid_entries(db_session, court, entry):
    with pytest.raises(InvalidScheduleError):
        await availability_service.upsert_court_schedules(db_session, court.id, [entry])


@pytest.mark.asyncio
async def test_upsert_schedule_unknown_court(db_session):
    with pytest.raises(CourtNotFoundError):
        await availability_service.upsert_court_schedules(
            db_session, 9999, [{"day_of_week": 0, "open_time": "08:00", "close_time": "12:00"}]
        )


@pytest.mark.asyncio
async def test_create_and_delete_block(db_session, court):
    block = await availability_service.create_court_block(
        db_session, court.id, utc(2030, 6, 3, 8), utc(2030, 6, 3, 9), reason="Clinic"
    )
    await db_session.commit()
    assert block["type"] == "MAINTENANCE"

    upcoming = await availability_service.list_upcoming_blocks(
        db_session, court.id, now=BEFORE_MONDAY
    )
    assert [b["id"] for b in upcoming] == [block["id"]]

    # Another club cannot delete it
    with pytest.raises(BlockNotFoundError):
        await availability_service.delete_court_block(db_session, block["id"], club_id=court.club_id + 1)

    await availability_service.delete_court_block(db_session, block["id"], club_id=court.club_id)
    await db_session.commit()
    assert await availability_service.list_upcoming_blocks(
        db_session, court.id, now=BEFORE_MONDAY
    ) == []


@pytest.mark.asyncio
async def test_create_block_rejects_empty_interval(db_session, court):
    with pytest.raises(InvalidScheduleError):
        await availability_service.create_court_block(
            db_session, court.id, utc(2030, 6, 3, 9), utc(2030, 6, 3, 9)
        )


@pytest.mark.asyncio
async def test_get_court_scoped_to_club(db_session, court):
    assert (await availability_service.get_court(db_session, court.id, club_id=court.club_id)).id == court.id
    with pytest.raises(CourtNotFoundError):
        await availability_service.get_court(db_session, court.id, club_id=court.club_id + 1)


@pytest.mark.asyncio
async def test_deactivate_court(db_session, court):
    await availability_service.deactivate_court(db_session, court.id, club_id=court.club_id)
    await db_session.commit()

    refreshed = await availability_service.get_court(db_session, court.id)
    assert refreshed.is_active is False

