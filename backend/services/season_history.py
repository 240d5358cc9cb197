"""
Previous-season winner persistence.

Stores the winner of the last completed season so the next season can show
it above the live leaderboard.  Storage problems never surface to callers:
reads degrade to ``None`` and writes are logged and dropped.
"""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import delete, select

from models.database import AsyncSessionLocal, SeasonWinnerRecord
from models.leaderboard import HouseRanking, HouseWinner, PreviousWinner
from utils.logger import get_logger

logger = get_logger("season_history")

PREVIOUS_WINNER_ID = "previous"


def winner_from_rankings(rankings: Sequence[HouseRanking]) -> Optional[HouseWinner]:
    """Top row of an already ranked list, or None when nobody scored."""
    if not rankings or rankings[0].score <= 0:
        return None
    top = rankings[0]
    return HouseWinner(house_id=top.house.id, score=top.score, member_count=top.member_count)


class SeasonHistory:
    def __init__(self, session_factory=None):
        self._session_factory = session_factory or AsyncSessionLocal

    async def get_previous_winner(self) -> Optional[PreviousWinner]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(SeasonWinnerRecord).where(SeasonWinnerRecord.id == PREVIOUS_WINNER_ID)
                )
                row = result.scalar_one_or_none()
        except Exception as e:
            logger.warning("Previous winner read failed", error=str(e))
            return None

        if row is None:
            return None
        try:
            return PreviousWinner.model_validate(row.payload)
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("Discarding malformed previous winner record", error=str(e))
            return None

    async def save_previous_winner(self, season_id: int, winner: HouseWinner) -> bool:
        """Overwrites any earlier record."""
        record = PreviousWinner(season_id=season_id, winner=winner)
        try:
            async with self._session_factory() as session:
                await session.merge(
                    SeasonWinnerRecord(
                        id=PREVIOUS_WINNER_ID,
                        season_id=record.season_id,
                        payload=record.model_dump(mode="json", by_alias=True),
                    )
                )
                await session.commit()
        except Exception as e:
            logger.warning("Previous winner write failed", season_id=season_id, error=str(e))
            return False
        logger.info("Previous winner saved", season_id=season_id, house=winner.house_id)
        return True

    async def clear_previous_winner(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(SeasonWinnerRecord).where(SeasonWinnerRecord.id == PREVIOUS_WINNER_ID)
                )
                await session.commit()
        except Exception as e:
            logger.warning("Previous winner clear failed", error=str(e))
            return False
        return True
