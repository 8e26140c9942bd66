"""
Authentication dependencies for FastAPI routes.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.db import get_db_session
from courtside.database.models import ClubStatus, UserRole
from courtside.services import auth_service, user_service

security = HTTPBearer()


async def get_current_user(
    session: AsyncSession = Depends(get_db_session),
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        session: Database session
        credentials: HTTP Bearer token credentials

    Returns:
        User dictionary

    Raises:
        HTTPException: If token is invalid or user not found
    """
    token = credentials.credentials

    payload = auth_service.verify_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_current_user_optional(
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False)),
) -> Optional[dict]:
    """
    Optional dependency to get the current authenticated user.
    Returns None if no token is provided or token is invalid.
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(session, credentials)
    except HTTPException:
        return None


async def require_user(user: dict = Depends(get_current_user)) -> dict:
    """Require any authenticated user."""
    return user


async def require_player(
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    """
    Require a user with a player profile.

    Returns a dict with both user fields and player_id.
    """
    if user["role"] != UserRole.PLAYER.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Player access required")

    player_id = await user_service.get_player_id_for_user(session, user["id"])
    if player_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Player profile required",
        )
    return {**user, "player_id": player_id}


async def require_club(
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    """
    Require a club owner.

    Returns a dict with user fields plus club_id and club_status.
    """
    if user["role"] != UserRole.CLUB.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Club access required")

    club = await user_service.get_club_for_user(session, user["id"])
    if club is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Club profile required")
    return {**user, "club_id": club.id, "club_status": club.status.value}


async def require_approved_club(club_user: dict = Depends(require_club)) -> dict:
    """Require a club whose registration was approved."""
    if club_user["club_status"] != ClubStatus.APPROVED.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Club not approved")
    return club_user


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """Require platform-wide admin."""
    if user["role"] != UserRole.ADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
