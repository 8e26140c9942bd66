"""
Points ledger service.

PointMovement rows are append-only: they are written once when a tournament
result is confirmed and afterwards can only be voided (once) by an admin.
"""

import logging
from typing import Dict, List, Optional, Union

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.models import FinishPosition, PointMovement, TournamentLevel
from courtside.services.exceptions import (
    AlreadyVoidedError,
    InvalidVoidError,
    PointMovementNotFoundError,
)
from courtside.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Points awarded by tournament level and finish position
POINTS_TABLE: Dict[TournamentLevel, Dict[FinishPosition, int]] = {
    TournamentLevel.LOCAL_250: {
        FinishPosition.CHAMPION: 250,
        FinishPosition.FINALIST: 150,
        FinishPosition.SEMIFINALIST: 90,
        FinishPosition.QUARTERFINALIST: 45,
        FinishPosition.ROUND_OF_16: 20,
        FinishPosition.PARTICIPANT: 5,
    },
    TournamentLevel.REGIONAL_500: {
        FinishPosition.CHAMPION: 500,
        FinishPosition.FINALIST: 300,
        FinishPosition.SEMIFINALIST: 180,
        FinishPosition.QUARTERFINALIST: 90,
        FinishPosition.ROUND_OF_16: 45,
        FinishPosition.PARTICIPANT: 10,
    },
    TournamentLevel.OPEN_1000: {
        FinishPosition.CHAMPION: 1000,
        FinishPosition.FINALIST: 600,
        FinishPosition.SEMIFINALIST: 360,
        FinishPosition.QUARTERFINALIST: 180,
        FinishPosition.ROUND_OF_16: 90,
        FinishPosition.PARTICIPANT: 25,
    },
}


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def calculate_points(
    level: Union[TournamentLevel, str], finish_position: Union[FinishPosition, str]
) -> int:
    """
    Look up the points for a finish position at a tournament level.

    Unknown levels or positions are worth 0 rather than an error.

    Examples:
        >>> calculate_points("REGIONAL_500", "CHAMPION")
        500
        >>> calculate_points("LOCAL_250", "PARTICIPANT")
        5
    """
    level = _coerce(TournamentLevel, level)
    finish_position = _coerce(FinishPosition, finish_position)
    if level is None or finish_position is None:
        return 0
    return POINTS_TABLE.get(level, {}).get(finish_position, 0)


def get_points_table() -> Dict[str, Dict[str, int]]:
    """The points table keyed by plain strings (for API responses)."""
    return {
        level.value: {position.value: points for position, points in row.items()}
        for level, row in POINTS_TABLE.items()
    }


def movement_to_dict(movement: PointMovement) -> Dict:
    """Serialize a PointMovement for API responses."""
    return {
        "id": movement.id,
        "player_id": movement.player_id,
        "tournament_id": movement.tournament_id,
        "category_id": movement.category_id,
        "points": movement.points,
        "reason": movement.reason,
        "created_at": movement.created_at.isoformat() if movement.created_at else None,
        "voided_at": movement.voided_at.isoformat() if movement.voided_at else None,
        "voided_by": movement.voided_by,
        "void_reason": movement.void_reason,
    }


async def record_point_movement(
    session: AsyncSession,
    *,
    player_id: int,
    tournament_id: int,
    category_id: int,
    level: Union[TournamentLevel, str],
    finish_position: Union[FinishPosition, str],
    reason: str,
    created_by_id: Optional[int] = None,
) -> PointMovement:
    """
    Append one ledger entry for a confirmed tournament result.

    The caller owns the transaction and guarantees the (tournament, category)
    result is only confirmed once; the ledger does no de-duplication.
    """
    movement = PointMovement(
        player_id=player_id,
        tournament_id=tournament_id,
        category_id=category_id,
        points=calculate_points(level, finish_position),
        reason=reason,
        created_by_id=created_by_id,
        created_at=utcnow(),
    )
    session.add(movement)
    await session.flush()
    return movement


async def void_point_movement(
    session: AsyncSession, movement_id: int, reason: str, actor_id: int
) -> PointMovement:
    """
    Void a ledger entry exactly once.

    The UPDATE only matches rows that are not yet voided, so of two concurrent
    voids only one can take effect.

    Args:
        session: Database session
        movement_id: PointMovement to void
        reason: Mandatory explanation
        actor_id: Admin user performing the void

    Returns:
        The voided PointMovement

    Raises:
        InvalidVoidError: If reason is blank
        PointMovementNotFoundError: If the movement does not exist
        AlreadyVoidedError: If it was voided before
    """
    if not reason or not reason.strip():
        raise InvalidVoidError("A reason is required to void a point movement")

    result = await session.execute(
        update(PointMovement)
        .where(and_(PointMovement.id == movement_id, PointMovement.voided_at.is_(None)))
        .values(voided_at=utcnow(), voided_by=actor_id, void_reason=reason.strip())
        .execution_options(synchronize_session=False)
    )

    movement_result = await session.execute(
        select(PointMovement)
        .where(PointMovement.id == movement_id)
        .execution_options(populate_existing=True)
    )
    movement = movement_result.scalar_one_or_none()
    if movement is None:
        raise PointMovementNotFoundError(f"Point movement {movement_id} not found")
    if result.rowcount == 0:
        raise AlreadyVoidedError(f"Point movement {movement_id} was already voided")

    logger.info(
        f"Point movement {movement_id} ({movement.points} pts, player {movement.player_id}) "
        f"voided by user {actor_id}"
    )
    return movement


async def list_player_movements(
    session: AsyncSession, player_id: int, include_voided: bool = False
) -> List[Dict]:
    """A player's ledger, newest first."""
    query = select(PointMovement).where(PointMovement.player_id == player_id)
    if not include_voided:
        query = query.where(PointMovement.voided_at.is_(None))
    result = await session.execute(
        query.order_by(PointMovement.created_at.desc(), PointMovement.id.desc())
    )
    return [movement_to_dict(m) for m in result.scalars().all()]
