"""
Pydantic models for API request/response validation.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from courtside.database.models import BlockType, CorrectionStatus, FinishPosition


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    sweeper: str
    message: str


# ---------------------------------------------------------------------------
# Availability / courts
# ---------------------------------------------------------------------------


class SlotResponse(BaseModel):
    """One bookable slot of a court on a given day."""

    start_at: datetime
    end_at: datetime
    start_time: str
    end_time: str
    available: bool
    price: int


class CourtAvailabilityResponse(BaseModel):
    """A court with its slots for one day."""

    court_id: int
    court_name: str
    surface: str
    is_indoor: bool
    slots: List[SlotResponse]


class ScheduleEntry(BaseModel):
    """Opening hours of a court for one day of week (0 = Monday)."""

    day_of_week: int = Field(..., ge=0, le=6)
    open_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    close_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    slot_duration: int = 60
    price_per_slot: int = Field(0, ge=0)


class UpsertScheduleRequest(BaseModel):
    """Replace the weekly schedule entries for the given days."""

    schedules: List[ScheduleEntry] = Field(..., min_length=1)


class CreateBlockRequest(BaseModel):
    """Block a court over an interval."""

    start_at: datetime
    end_at: datetime
    type: BlockType = BlockType.MAINTENANCE
    reason: Optional[str] = None

    @model_validator(mode="after")
    def check_interval(self):
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


# ---------------------------------------------------------------------------
# Bookings / payments
# ---------------------------------------------------------------------------


class CreateBookingRequest(BaseModel):
    """Reserve a court slot. The price comes from the court's schedule."""

    court_id: int
    start_at: datetime
    end_at: datetime


class BookingResponse(BaseModel):
    """Booking data."""

    id: int
    court_id: int
    club_id: int
    created_by_id: int
    start_at: str
    end_at: str
    total_price: int
    status: str
    expires_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    cancel_note: Optional[str] = None


class CancelBookingRequest(BaseModel):
    """Optional note explaining a cancellation."""

    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------


class CreateMatchRequest(BaseModel):
    """Build a shared-cost match on one of the caller's bookings."""

    booking_id: int
    is_public: bool = False
    notes: Optional[str] = None
    invited_player_ids: List[int] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Tournaments / points
# ---------------------------------------------------------------------------


class ResultEntry(BaseModel):
    """One player's finish in a tournament category."""

    player_id: int = Field(..., gt=0)
    finish_position: FinishPosition


class SubmitResultsRequest(BaseModel):
    """Draft standings for one category."""

    category_id: int = Field(..., gt=0)
    entries: List[ResultEntry] = Field(..., min_length=1)


class ConfirmResultsRequest(BaseModel):
    """Category whose standings are being confirmed."""

    category_id: int = Field(..., gt=0)


class VoidPointMovementRequest(BaseModel):
    """Admin void of a ledger entry."""

    reason: str = Field(..., min_length=1)


class PointMovementResponse(BaseModel):
    """Ledger entry."""

    id: int
    player_id: int
    tournament_id: int
    category_id: int
    points: int
    reason: str
    created_at: Optional[str] = None
    voided_at: Optional[str] = None
    voided_by: Optional[int] = None
    void_reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------


class RankingEntry(BaseModel):
    """One row of the public ranking."""

    rank: int
    player_id: int
    first_name: str
    last_name: str
    locality_name: Optional[str] = None
    category_name: str
    total_points: int


class RankingListResponse(BaseModel):
    """Paginated ranking."""

    data: List[RankingEntry]
    total: int
    page: int
    limit: int


class CategoryResponse(BaseModel):
    """Ranking tier."""

    id: int
    name: str
    sort_order: int
    promotion_threshold: Optional[int] = None


class LocalityResponse(BaseModel):
    """Locality rankings can be scoped to."""

    id: int
    name: str
    province: Optional[str] = None


class CreateLocalityRequest(BaseModel):
    """Admin registration of a locality."""

    name: str = Field(..., min_length=1, max_length=100)
    province: Optional[str] = Field(None, max_length=100)


class PlayerRankingResponse(BaseModel):
    """A player's current ranking standing."""

    player_id: int
    category_id: int
    category_name: str
    locality_id: Optional[int] = None
    locality_name: Optional[str] = None
    total_points: int
    position: Optional[int] = None
    promotion_threshold: Optional[int] = None
    movements: List[PointMovementResponse]


# ---------------------------------------------------------------------------
# Corrections
# ---------------------------------------------------------------------------


class CreateCorrectionRequest(BaseModel):
    """Player dispute about a result or points."""

    message: str
    club_id: Optional[int] = None


class ResolveCorrectionRequest(BaseModel):
    """Close a correction request."""

    status: CorrectionStatus
    response: Optional[str] = None
