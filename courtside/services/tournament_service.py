"""
Tournament result submission and confirmation.

Results are entered as a DRAFT per (tournament, category) and can be edited
freely until confirmed. Confirmation is the only writer of point movements
and runs at most once per (tournament, category).
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.database.models import (
    Category,
    FinishPosition,
    PointMovement,
    ResultStatus,
    Tournament,
    TournamentResult,
    TournamentResultEntry,
    TournamentStatus,
)
from courtside.services.exceptions import (
    DuplicateConfirmationError,
    InvalidResultError,
    NotFoundError,
    TournamentNotFoundError,
)
from courtside.services.points_service import record_point_movement
from courtside.services.promotion_service import check_promotions_for_players
from courtside.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def get_tournament(
    session: AsyncSession, tournament_id: int, club_id: Optional[int] = None
) -> Tournament:
    """
    Fetch a tournament, optionally requiring it to belong to ``club_id``.

    Raises:
        TournamentNotFoundError: If missing or hosted by another club
    """
    query = select(Tournament).where(Tournament.id == tournament_id)
    if club_id is not None:
        query = query.where(Tournament.club_id == club_id)
    result = await session.execute(query)
    tournament = result.scalar_one_or_none()
    if tournament is None:
        raise TournamentNotFoundError(f"Tournament {tournament_id} not found")
    return tournament


async def _get_result(
    session: AsyncSession, tournament_id: int, category_id: int
) -> Optional[TournamentResult]:
    result = await session.execute(
        select(TournamentResult).where(
            and_(
                TournamentResult.tournament_id == tournament_id,
                TournamentResult.category_id == category_id,
            )
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _get_entries(session: AsyncSession, result_id: int) -> List[TournamentResultEntry]:
    result = await session.execute(
        select(TournamentResultEntry)
        .where(TournamentResultEntry.result_id == result_id)
        .order_by(TournamentResultEntry.id)
    )
    return list(result.scalars().all())


def _result_to_dict(result: TournamentResult, entries: Iterable[TournamentResultEntry]) -> Dict:
    return {
        "id": result.id,
        "tournament_id": result.tournament_id,
        "category_id": result.category_id,
        "status": result.status.value,
        "confirmed_at": result.confirmed_at.isoformat() if result.confirmed_at else None,
        "confirmed_by": result.confirmed_by,
        "entries": [
            {"player_id": e.player_id, "finish_position": e.finish_position.value}
            for e in entries
        ],
    }


def _validate_entries(entries: List[Dict]) -> List[Dict]:
    if not entries:
        raise InvalidResultError("At least one result entry is required")

    cleaned = []
    seen = set()
    for entry in entries:
        player_id = entry.get("player_id")
        if not isinstance(player_id, int) or player_id <= 0:
            raise InvalidResultError(f"Invalid player_id: {player_id!r}")
        if player_id in seen:
            raise InvalidResultError(f"Player {player_id} appears more than once")
        seen.add(player_id)
        try:
            position = FinishPosition(entry.get("finish_position"))
        except ValueError as e:
            raise InvalidResultError(
                f"Invalid finish_position: {entry.get('finish_position')!r}"
            ) from e
        cleaned.append({"player_id": player_id, "finish_position": position})
    return cleaned


async def submit_tournament_results(
    session: AsyncSession,
    tournament_id: int,
    category_id: int,
    entries: List[Dict],
    club_id: Optional[int] = None,
) -> Dict:
    """
    Create or replace the DRAFT standings of one tournament category.

    Args:
        session: Database session
        tournament_id: Tournament
        category_id: Category the standings are for
        entries: List of {"player_id", "finish_position"}
        club_id: If given, the tournament must be hosted by this club

    Returns:
        Result dict with its entries

    Raises:
        TournamentNotFoundError: Tournament missing or not the club's
        NotFoundError: Category missing
        InvalidResultError: Empty/duplicate/invalid entries
        DuplicateConfirmationError: Standings were already confirmed
    """
    await get_tournament(session, tournament_id, club_id)
    cleaned = _validate_entries(entries)

    category_result = await session.execute(select(Category.id).where(Category.id == category_id))
    if category_result.scalar_one_or_none() is None:
        raise NotFoundError(f"Category {category_id} not found")

    result = await _get_result(session, tournament_id, category_id)
    if result is not None and result.status == ResultStatus.CONFIRMED:
        raise DuplicateConfirmationError("Results for this category were already confirmed")

    if result is None:
        result = TournamentResult(
            tournament_id=tournament_id, category_id=category_id, status=ResultStatus.DRAFT
        )
        session.add(result)
        await session.flush()
    else:
        await session.execute(
            delete(TournamentResultEntry).where(TournamentResultEntry.result_id == result.id)
        )

    new_entries = [
        TournamentResultEntry(
            result_id=result.id,
            player_id=entry["player_id"],
            finish_position=entry["finish_position"],
        )
        for entry in cleaned
    ]
    session.add_all(new_entries)
    await session.flush()

    logger.info(
        f"Draft results saved for tournament {tournament_id}, category {category_id} "
        f"({len(new_entries)} entries)"
    )
    return _result_to_dict(result, new_entries)


async def confirm_tournament_results(
    session: AsyncSession,
    tournament_id: int,
    category_id: int,
    confirmed_by_id: int,
    club_id: Optional[int] = None,
) -> Dict:
    """
    Confirm a category's standings, award points and evaluate promotions.

    The result status flip is a conditional UPDATE (DRAFT -> CONFIRMED), so two
    concurrent confirmations cannot both write point movements.

    Args:
        session: Database session
        tournament_id: Tournament
        category_id: Category being confirmed
        confirmed_by_id: Confirming user
        club_id: If given, the tournament must be hosted by this club

    Returns:
        {"tournament_id", "category_id", "points_awarded": [...],
        "promotions": [...]}

    Raises:
        TournamentNotFoundError: Tournament or its standings missing
        DuplicateConfirmationError: Already confirmed, or points already exist
    """
    tournament = await get_tournament(session, tournament_id, club_id)

    result = await _get_result(session, tournament_id, category_id)
    if result is None:
        raise TournamentNotFoundError(
            f"No results for tournament {tournament_id}, category {category_id}"
        )
    if result.status == ResultStatus.CONFIRMED:
        raise DuplicateConfirmationError("Results were already confirmed")

    existing = await session.execute(
        select(PointMovement.id)
        .where(
            and_(
                PointMovement.tournament_id == tournament_id,
                PointMovement.category_id == category_id,
                PointMovement.voided_at.is_(None),
            )
        )
        .limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateConfirmationError(
            "Point movements already exist for this tournament and category"
        )

    entries = await _get_entries(session, result.id)
    now = utcnow()
    points_awarded = []

    try:
        flipped = await session.execute(
            update(TournamentResult)
            .where(
                and_(
                    TournamentResult.id == result.id,
                    TournamentResult.status == ResultStatus.DRAFT,
                )
            )
            .values(status=ResultStatus.CONFIRMED, confirmed_at=now, confirmed_by=confirmed_by_id)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount == 0:
            raise DuplicateConfirmationError("Results were already confirmed")

        for entry in entries:
            movement = await record_point_movement(
                session,
                player_id=entry.player_id,
                tournament_id=tournament_id,
                category_id=category_id,
                level=tournament.level,
                finish_position=entry.finish_position,
                reason=f"{entry.finish_position.value} - {tournament.name}",
                created_by_id=confirmed_by_id,
            )
            points_awarded.append(
                {
                    "player_id": movement.player_id,
                    "points": movement.points,
                    "reason": movement.reason,
                }
            )

        tournament.status = TournamentStatus.CONFIRMED
        await session.flush()
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        f"Confirmed tournament {tournament_id} category {category_id}: "
        f"{len(points_awarded)} movements, "
        f"{sum(p['points'] for p in points_awarded)} pts by user {confirmed_by_id}"
    )

    promotions = await check_promotions_for_players(
        session, [p["player_id"] for p in points_awarded]
    )

    return {
        "tournament_id": tournament_id,
        "category_id": category_id,
        "points_awarded": points_awarded,
        "promotions": promotions,
    }
