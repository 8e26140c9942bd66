"""
SQLAlchemy ORM models for the Courtside booking and ranking system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator
from courtside.database.db import Base
from courtside.utils.datetime_utils import ensure_utc, utcnow


class UTCDateTime(TypeDecorator):
    """Timezone-aware DateTime that always round-trips as UTC.

    PostgreSQL keeps the offset itself; SQLite drops it, so values are
    normalized to UTC on the way in and re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return ensure_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return ensure_utc(value)


class UserRole(str, enum.Enum):
    """User role enum."""

    PLAYER = "PLAYER"
    CLUB = "CLUB"
    ADMIN = "ADMIN"


class ClubStatus(str, enum.Enum):
    """Club approval status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class CourtSurface(str, enum.Enum):
    """Court surface type."""

    SYNTHETIC_GRASS = "SYNTHETIC_GRASS"
    CEMENT = "CEMENT"
    GLASS = "GLASS"
    OTHER = "OTHER"


class BlockType(str, enum.Enum):
    """Reason category for a court unavailability block."""

    MAINTENANCE = "MAINTENANCE"
    TOURNAMENT = "TOURNAMENT"
    PRIVATE = "PRIVATE"


class BookingStatus(str, enum.Enum):
    """Booking status enum."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    NO_SHOW = "NO_SHOW"


# Statuses that hold a court's time slot
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class MatchStatus(str, enum.Enum):
    """Shared-cost match status."""

    OPEN = "OPEN"
    FULL = "FULL"
    CANCELLED = "CANCELLED"


class ParticipantStatus(str, enum.Enum):
    """Match participant status."""

    INVITED = "INVITED"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    NO_SHOW = "NO_SHOW"


# Statuses that occupy a seat in a match
ACTIVE_PARTICIPANT_STATUSES = (
    ParticipantStatus.INVITED,
    ParticipantStatus.PENDING_PAYMENT,
    ParticipantStatus.CONFIRMED,
)


class TournamentLevel(str, enum.Enum):
    """Tournament level; drives the points table."""

    LOCAL_250 = "LOCAL_250"
    REGIONAL_500 = "REGIONAL_500"
    OPEN_1000 = "OPEN_1000"


class TournamentStatus(str, enum.Enum):
    """Tournament status."""

    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    CONFIRMED = "CONFIRMED"


class ResultStatus(str, enum.Enum):
    """Tournament result status."""

    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"


class FinishPosition(str, enum.Enum):
    """Final placement of a player in a tournament category."""

    CHAMPION = "CHAMPION"
    FINALIST = "FINALIST"
    SEMIFINALIST = "SEMIFINALIST"
    QUARTERFINALIST = "QUARTERFINALIST"
    ROUND_OF_16 = "ROUND_OF_16"
    PARTICIPANT = "PARTICIPANT"


class CorrectionStatus(str, enum.Enum):
    """Correction request status."""

    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"


class User(Base):
    """Authenticated accounts (credentials live with the auth provider)."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True)
    role = Column(Enum(UserRole), default=UserRole.PLAYER, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    # Relationships
    players = relationship("Player", back_populates="user")
    club = relationship("Club", back_populates="owner", uselist=False)


class Category(Base):
    """Ranking tiers. Lower sort_order = higher tier (1 is the top)."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)
    sort_order = Column(Integer, nullable=False, unique=True)
    promotion_threshold = Column(
        Integer, nullable=True
    )  # Points needed to move up to sort_order - 1; NULL = no automatic promotion

    players = relationship("Player", back_populates="current_category")


class Locality(Base):
    """Towns and cities players are ranked within."""

    __tablename__ = "localities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    province = Column(String(100), nullable=True)

    players = relationship("Player", back_populates="locality")


class Player(Base):
    """Player profiles."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    gender = Column(String(20), nullable=True)
    current_category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    locality_id = Column(Integer, ForeignKey("localities.id"), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="players")
    current_category = relationship("Category", back_populates="players")
    locality = relationship("Locality", back_populates="players")
    point_movements = relationship("PointMovement", back_populates="player")

    @property
    def full_name(self) -> str:
        """First and last name joined."""
        return f"{self.first_name} {self.last_name}"

    __table_args__ = (
        Index("idx_players_category", "current_category_id"),
        Index("idx_players_locality", "locality_id"),
        Index("idx_players_user", "user_id"),
    )


class Club(Base):
    """Clubs that own courts and host tournaments."""

    __tablename__ = "clubs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    status = Column(Enum(ClubStatus), default=ClubStatus.PENDING, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    # Relationships
    owner = relationship("User", back_populates="club")
    courts = relationship("Court", back_populates="club")
    tournaments = relationship("Tournament", back_populates="club")


class Court(Base):
    """Bookable courts. Soft-deactivated, never deleted while bookings reference them."""

    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    name = Column(String(100), nullable=False)
    surface = Column(Enum(CourtSurface), default=CourtSurface.SYNTHETIC_GRASS, nullable=False)
    is_indoor = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    booking_revision = Column(
        Integer, default=0, nullable=False
    )  # Bumped by every allocation attempt; the UPDATE is the per-court write lock
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    # Relationships
    club = relationship("Club", back_populates="courts")
    schedules = relationship(
        "CourtSchedule", back_populates="court", cascade="all, delete-orphan"
    )
    blocks = relationship("CourtBlock", back_populates="court", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="court")

    __table_args__ = (
        Index("idx_courts_club", "club_id"),
        Index("idx_courts_is_active", "is_active"),
    )


class CourtSchedule(Base):
    """Weekly recurring opening hours for a court, one row per day of week."""

    __tablename__ = "court_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0-6, Monday=0
    open_time = Column(String(5), nullable=False)  # Time as string (HH:MM format)
    close_time = Column(String(5), nullable=False)  # Time as string (HH:MM format)
    slot_duration = Column(Integer, default=60, nullable=False)  # Minutes
    price_per_slot = Column(Integer, default=0, nullable=False)

    court = relationship("Court", back_populates="schedules")

    __table_args__ = (
        UniqueConstraint("court_id", "day_of_week", name="uq_court_schedules_court_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_court_schedules_day"),
        CheckConstraint("slot_duration > 0", name="ck_court_schedules_duration"),
    )


class CourtBlock(Base):
    """Explicit unavailability interval on a court, independent of bookings."""

    __tablename__ = "court_blocks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(BlockType), default=BlockType.MAINTENANCE, nullable=False)
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    court = relationship("Court", back_populates="blocks")

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_court_blocks_interval"),
        Index("idx_court_blocks_court_range", "court_id", "start_at", "end_at"),
    )


class Booking(Base):
    """Court reservations.

    No two PENDING/CONFIRMED bookings on the same court may overlap on
    [start_at, end_at).
    """

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=False)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    total_price = Column(Integer, default=0, nullable=False)
    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    expires_at = Column(UTCDateTime, nullable=True)  # Only set while PENDING
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancel_note = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    court = relationship("Court", back_populates="bookings")
    club = relationship("Club")
    creator = relationship("User", foreign_keys=[created_by_id])
    match = relationship("Match", back_populates="booking", uselist=False)

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_bookings_interval"),
        Index("idx_bookings_court_range", "court_id", "start_at", "end_at"),
        Index("idx_bookings_status_expires", "status", "expires_at"),
        Index("idx_bookings_created_by", "created_by_id"),
        Index("idx_bookings_club", "club_id"),
    )


class Match(Base):
    """Shared-cost group booking built on top of a Booking."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    is_public = Column(Boolean, default=False, nullable=False)
    max_players = Column(Integer, default=4, nullable=False)
    status = Column(Enum(MatchStatus), default=MatchStatus.OPEN, nullable=False)
    notes = Column(Text, nullable=True)
    seat_revision = Column(
        Integer, default=0, nullable=False
    )  # Bumped on every join; the UPDATE is the per-match write lock
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    # Relationships
    booking = relationship("Booking", back_populates="match")
    participants = relationship(
        "MatchParticipant", back_populates="match", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_matches_status", "status"),)


class MatchParticipant(Base):
    """A player's seat in a match."""

    __tablename__ = "match_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    status = Column(Enum(ParticipantStatus), default=ParticipantStatus.INVITED, nullable=False)
    split_amount = Column(Integer, default=0, nullable=False)
    expires_at = Column(UTCDateTime, nullable=True)  # Payment hold deadline
    joined_at = Column(UTCDateTime, nullable=True)
    paid_at = Column(UTCDateTime, nullable=True)

    match = relationship("Match", back_populates="participants")
    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_match_participants_match_player"),
        Index("idx_match_participants_status_expires", "status", "expires_at"),
    )


class Tournament(Base):
    """Tournaments hosted by a club."""

    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    name = Column(String, nullable=False)
    level = Column(Enum(TournamentLevel), default=TournamentLevel.LOCAL_250, nullable=False)
    status = Column(Enum(TournamentStatus), default=TournamentStatus.DRAFT, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    club = relationship("Club", back_populates="tournaments")
    results = relationship("TournamentResult", back_populates="tournament")


class TournamentResult(Base):
    """Final standings of one category of a tournament."""

    __tablename__ = "tournament_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    status = Column(Enum(ResultStatus), default=ResultStatus.DRAFT, nullable=False)
    confirmed_at = Column(UTCDateTime, nullable=True)
    confirmed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    tournament = relationship("Tournament", back_populates="results")
    category = relationship("Category")
    entries = relationship(
        "TournamentResultEntry", back_populates="result", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint(
            "tournament_id", "category_id", name="uq_tournament_results_tournament_category"
        ),
    )


class TournamentResultEntry(Base):
    """One player's finish position within a tournament result."""

    __tablename__ = "tournament_result_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    result_id = Column(
        Integer, ForeignKey("tournament_results.id", ondelete="CASCADE"), nullable=False
    )
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    finish_position = Column(Enum(FinishPosition), nullable=False)

    result = relationship("TournamentResult", back_populates="entries")
    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint("result_id", "player_id", name="uq_result_entries_result_player"),
    )


class PointMovement(Base):
    """Append-only points ledger. Rows are never edited, only voided once."""

    __tablename__ = "point_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    points = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    voided_at = Column(UTCDateTime, nullable=True)
    voided_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    void_reason = Column(Text, nullable=True)

    player = relationship("Player", back_populates="point_movements")
    tournament = relationship("Tournament")
    category = relationship("Category")

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_point_movements_points"),
        Index("idx_point_movements_player_created", "player_id", "created_at"),
        Index("idx_point_movements_tournament_category", "tournament_id", "category_id"),
    )


class CorrectionRequest(Base):
    """Player disputes about results or points."""

    __tablename__ = "correction_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    club_id = Column(
        Integer, ForeignKey("clubs.id"), nullable=True
    )  # NULL = addressed to admins directly
    message = Column(Text, nullable=False)
    status = Column(Enum(CorrectionStatus), default=CorrectionStatus.PENDING, nullable=False)
    escalated_to_admin = Column(Boolean, default=False, nullable=False)
    escalated_at = Column(UTCDateTime, nullable=True)
    response = Column(Text, nullable=True)
    resolved_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    player = relationship("Player")
    club = relationship("Club")

    __table_args__ = (
        Index("idx_correction_requests_status_escalated", "status", "escalated_to_admin"),
        Index("idx_correction_requests_created_at", "created_at"),
    )
