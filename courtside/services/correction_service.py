"""
Correction requests: player disputes about results or points.
"""

import logging
from typing import Dict, List, Optional, Union

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.models import CorrectionRequest, CorrectionStatus, Player
from courtside.services.exceptions import (
    CorrectionNotFoundError,
    CorrectionStateError,
    InvalidCorrectionError,
    PlayerNotFoundError,
)
from courtside.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

MIN_MESSAGE_LENGTH = 10


def correction_to_dict(correction: CorrectionRequest) -> Dict:
    return {
        "id": correction.id,
        "user_id": correction.user_id,
        "player_id": correction.player_id,
        "club_id": correction.club_id,
        "message": correction.message,
        "status": correction.status.value,
        "escalated_to_admin": correction.escalated_to_admin,
        "escalated_at": correction.escalated_at.isoformat() if correction.escalated_at else None,
        "response": correction.response,
        "resolved_at": correction.resolved_at.isoformat() if correction.resolved_at else None,
        "created_at": correction.created_at.isoformat() if correction.created_at else None,
    }


async def create_correction_request(
    session: AsyncSession,
    *,
    user_id: int,
    player_id: int,
    message: str,
    club_id: Optional[int] = None,
) -> CorrectionRequest:
    """
    File a correction request.

    Raises:
        InvalidCorrectionError: Message shorter than MIN_MESSAGE_LENGTH
        PlayerNotFoundError: Player missing
    """
    message = (message or "").strip()
    if len(message) < MIN_MESSAGE_LENGTH:
        raise InvalidCorrectionError(
            f"Message must be at least {MIN_MESSAGE_LENGTH} characters"
        )

    player_result = await session.execute(select(Player.id).where(Player.id == player_id))
    if player_result.scalar_one_or_none() is None:
        raise PlayerNotFoundError(f"Player {player_id} not found")

    correction = CorrectionRequest(
        user_id=user_id,
        player_id=player_id,
        club_id=club_id,
        message=message,
        status=CorrectionStatus.PENDING,
        created_at=utcnow(),
    )
    session.add(correction)
    await session.flush()
    logger.info(f"Correction request {correction.id} filed by user {user_id}")
    return correction


async def resolve_correction_request(
    session: AsyncSession,
    correction_id: int,
    status: Union[CorrectionStatus, str],
    response: Optional[str] = None,
) -> CorrectionRequest:
    """
    Close a correction request as RESOLVED or REJECTED.

    Raises:
        InvalidCorrectionError: Target status is not RESOLVED/REJECTED
        CorrectionNotFoundError: Request missing
        CorrectionStateError: Request already closed
    """
    try:
        status = CorrectionStatus(status)
    except ValueError as e:
        raise InvalidCorrectionError(f"Invalid status: {status!r}") from e
    if status == CorrectionStatus.PENDING:
        raise InvalidCorrectionError("Status must be RESOLVED or REJECTED")

    result = await session.execute(
        select(CorrectionRequest).where(CorrectionRequest.id == correction_id)
    )
    correction = result.scalar_one_or_none()
    if correction is None:
        raise CorrectionNotFoundError(f"Correction request {correction_id} not found")
    if correction.status != CorrectionStatus.PENDING:
        raise CorrectionStateError(f"Correction request {correction_id} is already closed")

    correction.status = status
    correction.response = response
    correction.resolved_at = utcnow()
    await session.flush()
    logger.info(f"Correction request {correction_id} marked {status.value}")
    return correction


async def list_admin_corrections(session: AsyncSession) -> List[Dict]:
    """Requests addressed to admins directly, or escalated to them."""
    result = await session.execute(
        select(CorrectionRequest)
        .where(
            or_(
                CorrectionRequest.club_id.is_(None),
                CorrectionRequest.escalated_to_admin == True,  # noqa: E712
            )
        )
        .order_by(CorrectionRequest.created_at.desc())
    )
    return [correction_to_dict(c) for c in result.scalars().all()]


async def list_user_corrections(session: AsyncSession, user_id: int) -> List[Dict]:
    """Requests filed by a user, newest first."""
    result = await session.execute(
        select(CorrectionRequest)
        .where(CorrectionRequest.user_id == user_id)
        .order_by(CorrectionRequest.created_at.desc())
    )
    return [correction_to_dict(c) for c in result.scalars().all()]
