"""Ranking route handlers (public)."""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.api.routes import service_error_to_http
from courtside.database.db import get_db_session
from courtside.models.schemas import (
    CategoryResponse,
    LocalityResponse,
    PlayerRankingResponse,
    RankingListResponse,
)
from courtside.services import points_service, ranking_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/rankings", response_model=RankingListResponse)
async def get_rankings(
    locality_id: Optional[int] = None,
    category_id: Optional[int] = None,
    gender: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_db_session),
):
    """Best-N ranking over the rolling window, highest first."""
    try:
        return await ranking_service.get_rankings(
            session,
            locality_id=locality_id,
            category_id=category_id,
            gender=gender,
            page=page,
            limit=limit,
        )
    except Exception as e:
        raise service_error_to_http(e, "loading rankings")


@router.get("/api/rankings/categories", response_model=List[CategoryResponse])
async def list_categories(session: AsyncSession = Depends(get_db_session)):
    """Ranking tiers with their promotion thresholds."""
    try:
        return await ranking_service.list_categories(session)
    except Exception as e:
        raise service_error_to_http(e, "loading categories")


@router.get("/api/rankings/localities", response_model=List[LocalityResponse])
async def list_localities(session: AsyncSession = Depends(get_db_session)):
    try:
        return await ranking_service.list_localities(session)
    except Exception as e:
        raise service_error_to_http(e, "loading localities")


@router.get("/api/rankings/points-table", response_model=Dict[str, Dict[str, int]])
async def get_points_table():
    """Points awarded per tournament level and finish position."""
    return points_service.get_points_table()


@router.get("/api/players/{player_id}/ranking", response_model=PlayerRankingResponse)
async def get_player_ranking(player_id: int, session: AsyncSession = Depends(get_db_session)):
    """A player's score, position in their locality and category, and ledger history."""
    try:
        return await ranking_service.get_player_ranking(session, player_id)
    except Exception as e:
        raise service_error_to_http(e, "loading player ranking")
