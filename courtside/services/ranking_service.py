"""
Ranking aggregation service.

A player's ranking score is always re-derived from the points ledger: the sum
of their best BEST_N_RESULTS non-voided movements created within the trailing
ROLLING_WINDOW_MONTHS. Nothing here caches a running total.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.models import Category, Locality, Player, PointMovement
from courtside.services.exceptions import (
    InvalidLocalityError,
    LocalityExistsError,
    PlayerNotFoundError,
)
from courtside.services.points_service import list_player_movements
from courtside.utils.constants import BEST_N_RESULTS, ROLLING_WINDOW_MONTHS
from courtside.utils.datetime_utils import ensure_utc, subtract_months, utcnow

logger = logging.getLogger(__name__)


def best_n_total(points: Iterable[int], n: int = BEST_N_RESULTS) -> int:
    """Sum of the ``n`` largest values (all of them when there are fewer)."""
    return sum(sorted(points, reverse=True)[:n])


def _window(as_of: Optional[datetime]):
    as_of = ensure_utc(as_of) if as_of else utcnow()
    return subtract_months(as_of, ROLLING_WINDOW_MONTHS), as_of


def _counted_movements_filter(cutoff: datetime, as_of: datetime):
    return and_(
        PointMovement.voided_at.is_(None),
        PointMovement.created_at >= cutoff,
        PointMovement.created_at <= as_of,
    )


async def get_player_ranking_score(
    session: AsyncSession, player_id: int, as_of: Optional[datetime] = None
) -> int:
    """
    Best-N ranking score of one player.

    Args:
        session: Database session
        player_id: Player to score
        as_of: Evaluation instant (defaults to utcnow())

    Returns:
        Sum of the player's top BEST_N_RESULTS non-voided, in-window movements
    """
    cutoff, as_of = _window(as_of)
    result = await session.execute(
        select(PointMovement.points)
        .where(
            and_(
                PointMovement.player_id == player_id,
                _counted_movements_filter(cutoff, as_of),
            )
        )
        .order_by(PointMovement.points.desc(), PointMovement.id)
        .limit(BEST_N_RESULTS)
    )
    return best_n_total(result.scalars().all())


def _ranked_players_query(
    cutoff: datetime,
    as_of: datetime,
    category_id: Optional[int] = None,
    gender: Optional[str] = None,
    locality_id: Optional[int] = None,
):
    """Players with a positive best-N total, highest first, ties by player id."""
    numbered = (
        select(
            PointMovement.player_id.label("player_id"),
            PointMovement.points.label("points"),
            func.row_number()
            .over(
                partition_by=PointMovement.player_id,
                order_by=(PointMovement.points.desc(), PointMovement.id),
            )
            .label("rn"),
        )
        .where(_counted_movements_filter(cutoff, as_of))
        .subquery()
    )
    totals = (
        select(
            numbered.c.player_id,
            func.sum(numbered.c.points).label("total_points"),
        )
        .where(numbered.c.rn <= BEST_N_RESULTS)
        .group_by(numbered.c.player_id)
        .subquery()
    )

    query = (
        select(
            Player,
            Category.name.label("category_name"),
            Locality.name.label("locality_name"),
            totals.c.total_points,
        )
        .join(totals, totals.c.player_id == Player.id)
        .join(Category, Category.id == Player.current_category_id)
        .outerjoin(Locality, Locality.id == Player.locality_id)
        .where(totals.c.total_points > 0)
    )
    if category_id is not None:
        query = query.where(Player.current_category_id == category_id)
    if gender:
        query = query.where(Player.gender == gender)
    if locality_id is not None:
        query = query.where(Player.locality_id == locality_id)
    return query.order_by(totals.c.total_points.desc(), Player.id)


async def get_rankings(
    session: AsyncSession,
    *,
    locality_id: Optional[int] = None,
    category_id: Optional[int] = None,
    gender: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    as_of: Optional[datetime] = None,
) -> Dict:
    """
    Public ranking listing.

    Args:
        session: Database session
        locality_id: Restrict to players registered in this locality
        category_id: Restrict to players currently in this category
        gender: Restrict to players of this gender
        page: 1-indexed page number
        limit: Page size
        as_of: Evaluation instant (defaults to utcnow())

    Returns:
        Dict with ``data`` (rank, player_id, first_name, last_name,
        locality_name, category_name, total_points), ``total``, ``page``,
        ``limit``.
    """
    page = max(page, 1)
    limit = max(limit, 1)
    cutoff, as_of = _window(as_of)
    query = _ranked_players_query(
        cutoff, as_of, category_id=category_id, gender=gender, locality_id=locality_id
    )

    count_result = await session.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar() or 0

    offset = (page - 1) * limit
    result = await session.execute(query.offset(offset).limit(limit))

    data = []
    for idx, (player, category_name, locality_name, total_points) in enumerate(result.all()):
        data.append(
            {
                "rank": offset + idx + 1,
                "player_id": player.id,
                "first_name": player.first_name,
                "last_name": player.last_name,
                "locality_name": locality_name,
                "category_name": category_name,
                "total_points": int(total_points),
            }
        )

    return {"data": data, "total": total, "page": page, "limit": limit}


async def get_player_ranking_position(
    session: AsyncSession, player_id: int, as_of: Optional[datetime] = None
) -> Optional[int]:
    """
    1-based position of a player among players of the same locality and
    category. Players without a locality are ranked among each other.

    Returns:
        The position, or None if the player is unknown or has no points
    """
    result = await session.execute(
        select(Player.current_category_id, Player.locality_id).where(Player.id == player_id)
    )
    row = result.first()
    if row is None:
        return None
    category_id, locality_id = row

    cutoff, as_of = _window(as_of)
    query = _ranked_players_query(cutoff, as_of, category_id=category_id, locality_id=locality_id)
    if locality_id is None:
        query = query.where(Player.locality_id.is_(None))
    ranked = await session.execute(query.with_only_columns(Player.id))
    for position, ranked_id in enumerate(ranked.scalars().all(), start=1):
        if ranked_id == player_id:
            return position
    return None


async def list_categories(session: AsyncSession) -> List[Dict]:
    """Ranking tiers, top tier first."""
    result = await session.execute(select(Category).order_by(Category.sort_order))
    return [
        {
            "id": c.id,
            "name": c.name,
            "sort_order": c.sort_order,
            "promotion_threshold": c.promotion_threshold,
        }
        for c in result.scalars().all()
    ]


def locality_to_dict(locality: Locality) -> Dict:
    return {"id": locality.id, "name": locality.name, "province": locality.province}


async def list_localities(session: AsyncSession) -> List[Dict]:
    """Localities rankings can be scoped to, alphabetically."""
    result = await session.execute(select(Locality).order_by(Locality.name))
    return [locality_to_dict(loc) for loc in result.scalars().all()]


async def create_locality(
    session: AsyncSession, name: str, province: Optional[str] = None
) -> Locality:
    """
    Register a locality.

    Raises:
        InvalidLocalityError: If the name is blank
        LocalityExistsError: If a locality with this name already exists
    """
    name = (name or "").strip()
    if not name:
        raise InvalidLocalityError("Locality name is required")

    existing = await session.execute(select(Locality.id).where(Locality.name == name))
    if existing.scalar_one_or_none() is not None:
        raise LocalityExistsError(f"Locality '{name}' already exists")

    locality = Locality(name=name, province=(province or "").strip() or None)
    session.add(locality)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise LocalityExistsError(f"Locality '{name}' already exists")
    await session.refresh(locality)
    logger.info(f"Created locality {locality.id} ({name})")
    return locality


async def get_player_ranking(session: AsyncSession, player_id: int) -> Dict:
    """
    A player's score, regional position and counted ledger history.

    Raises:
        PlayerNotFoundError: If the player does not exist
    """
    result = await session.execute(
        select(Player, Category, Locality)
        .join(Category, Category.id == Player.current_category_id)
        .outerjoin(Locality, Locality.id == Player.locality_id)
        .where(Player.id == player_id)
    )
    row = result.first()
    if row is None:
        raise PlayerNotFoundError(f"Player {player_id} not found")
    player, category, locality = row

    return {
        "player_id": player.id,
        "category_id": category.id,
        "category_name": category.name,
        "locality_id": locality.id if locality else None,
        "locality_name": locality.name if locality else None,
        "total_points": await get_player_ranking_score(session, player_id),
        "position": await get_player_ranking_position(session, player_id),
        "promotion_threshold": category.promotion_threshold,
        "movements": await list_player_movements(session, player_id),
    }
