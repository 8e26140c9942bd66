"""
Category promotion service.

A player moves up exactly one tier when their best-N ranking score reaches the
promotion_threshold of their current category. Players are never demoted.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.models import Category, Player
from courtside.services.ranking_service import get_player_ranking_score

logger = logging.getLogger(__name__)


async def check_and_promote_player(session: AsyncSession, player_id: int) -> Optional[Dict]:
    """
    Promote a player one category if their score has reached the threshold.

    Safe to call repeatedly: once promoted, the next evaluation is against the
    new category's threshold. Flushes but does not commit.

    Args:
        session: Database session
        player_id: Player to evaluate

    Returns:
        Promotion summary dict, or None when nothing changed
    """
    result = await session.execute(
        select(Player, Category)
        .join(Category, Category.id == Player.current_category_id)
        .where(Player.id == player_id)
    )
    row = result.first()
    if row is None:
        return None
    player, category = row

    # Top tier
    if category.sort_order <= 1:
        return None
    if category.promotion_threshold is None:
        return None

    total_points = await get_player_ranking_score(session, player_id)
    if total_points < category.promotion_threshold:
        return None

    next_result = await session.execute(
        select(Category).where(Category.sort_order == category.sort_order - 1)
    )
    next_category = next_result.scalar_one_or_none()
    if next_category is None:
        return None

    player.current_category_id = next_category.id
    await session.flush()

    promotion = {
        "player_id": player.id,
        "player_name": player.full_name,
        "from_category": category.name,
        "to_category": next_category.name,
        "total_points": total_points,
        "threshold": category.promotion_threshold,
    }
    logger.info(
        f"Promoted player {player.id} ({player.full_name}) from {category.name} "
        f"to {next_category.name} with {total_points} pts (threshold {category.promotion_threshold})"
    )
    return promotion


async def check_promotions_for_players(
    session: AsyncSession, player_ids: Iterable[int]
) -> List[Dict]:
    """
    Evaluate a batch of players (duplicates ignored) and commit once.

    Returns:
        List of promotion summaries, one per promoted player
    """
    promotions = []
    for player_id in dict.fromkeys(player_ids):
        promotion = await check_and_promote_player(session, player_id)
        if promotion:
            promotions.append(promotion)

    await session.commit()
    if promotions:
        logger.info(f"Promotion check: {len(promotions)} player(s) promoted")
    return promotions
