"""
User lookups used by the auth dependencies.
"""

import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.models import Club, Player, User

logger = logging.getLogger(__name__)


def _user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role.value,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_player_id_for_user(session: AsyncSession, user_id: int) -> Optional[int]:
    """The player profile linked to a user, if any."""
    result = await session.execute(
        select(Player.id).where(Player.user_id == user_id).order_by(Player.id).limit(1)
    )
    return result.scalar_one_or_none()


async def get_club_for_user(session: AsyncSession, user_id: int) -> Optional[Club]:
    """The club owned by a user, if any."""
    result = await session.execute(select(Club).where(Club.user_id == user_id))
    return result.scalar_one_or_none()
