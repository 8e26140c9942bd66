"""
Shared pytest configuration for courtside tests.

Defaults to a throwaway SQLite file (aiosqlite) so the suite runs anywhere;
point TEST_DATABASE_URL at a PostgreSQL test database to run it against the
production dialect.

SAFETY: This module REFUSES to run against any database whose name does not
contain the substring "test".  This prevents accidental wiping of the
development or production database when environment variables are missing
or misconfigured.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("COURTSIDE_TIMEZONE", "UTC")

import asyncio  # noqa: E402
from datetime import date, datetime  # noqa: E402

import pytest_asyncio  # noqa: E402
import pytz  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from courtside.database.db import Base  # noqa: E402
from courtside.database.models import (  # noqa: E402
    Category,
    Club,
    ClubStatus,
    Court,
    CourtSchedule,
    Player,
    User,
    UserRole,
)
from courtside.utils.constants import DEFAULT_CATEGORIES, DEFAULT_PROMOTION_THRESHOLDS  # noqa: E402


def _resolve_test_database_url() -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if the resolved URL does not point to a database
    whose name contains "test".
    """
    url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./courtside_test.db")

    # ── Safety gate: database name MUST contain "test" ──────────────────
    db_name = url.rsplit("/", 1)[-1].split("?")[0]  # strip query params
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Resolved URL: {url}\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database, e.g.:\n"
            f"    export TEST_DATABASE_URL=postgresql+asyncpg://.../{db_name}_test\n"
            f"{'=' * 70}"
        )

    return url


TEST_DATABASE_URL = _resolve_test_database_url()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine and point db.AsyncSessionLocal at it."""
    connect_args = {"timeout": 30} if TEST_DATABASE_URL.startswith("sqlite") else {}
    # NullPool: every session gets its own connection, like concurrent requests do
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=NullPool,
        connect_args=connect_args,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own sessions (the expiry sweeper) must hit the test database
    from courtside.database import db

    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local

    await asyncio.sleep(0.05)  # let pending connections finish
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    """Session maker bound to the test engine, for tests that need several sessions."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(test_engine, session_factory):
    """
    Create a test database session with automatic cleanup.
    Tables are emptied before each test to ensure clean state.
    """
    async with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())

    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


# ---------------------------------------------------------------------------
# Shared data fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def categories(db_session):
    """The default eight categories keyed by sort_order (1 = top tier)."""
    created = {}
    for name, sort_order in DEFAULT_CATEGORIES:
        category = Category(
            name=name,
            sort_order=sort_order,
            promotion_threshold=DEFAULT_PROMOTION_THRESHOLDS.get(sort_order),
        )
        db_session.add(category)
        created[sort_order] = category
    await db_session.commit()
    return created


@pytest_asyncio.fixture
async def club_owner(db_session):
    user = User(email="club@example.com", role=UserRole.CLUB)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def club(db_session, club_owner):
    club = Club(user_id=club_owner.id, name="Club Central", status=ClubStatus.APPROVED)
    db_session.add(club)
    await db_session.commit()
    return club


@pytest_asyncio.fixture
async def court(db_session, club):
    """An active court open every day 08:00-12:00, 60-minute slots at 1000."""
    court = Court(club_id=club.id, name="Cancha 1")
    db_session.add(court)
    await db_session.flush()
    for day_of_week in range(7):
        db_session.add(
            CourtSchedule(
                court_id=court.id,
                day_of_week=day_of_week,
                open_time="08:00",
                close_time="12:00",
                slot_duration=60,
                price_per_slot=1000,
            )
        )
    await db_session.commit()
    return court


@pytest_asyncio.fixture
async def player_user(db_session):
    user = User(email="player@example.com", role=UserRole.PLAYER)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def player(db_session, player_user, categories):
    """A player in the bottom category (8va)."""
    player = Player(
        user_id=player_user.id,
        first_name="Lucia",
        last_name="Gomez",
        gender="F",
        current_category_id=categories[8].id,
    )
    db_session.add(player)
    await db_session.commit()
    return player


def utc(*args) -> datetime:
    """Aware UTC datetime shorthand."""
    return datetime(*args, tzinfo=pytz.UTC)


# A Monday far enough ahead that its slots are never in the past
MONDAY = date(2030, 6, 3)
