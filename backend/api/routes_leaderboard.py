"""
Leaderboard API Routes

Serves the ranked Houses from the read-through cache and manages the
previous-season winner shown above the live board. Closing a season
records the current top House as that winner.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from models.house import build_houses, get_house_by_id
from models.leaderboard import LeaderboardResponse, PreviousWinner
from services.leaderboard_service import get_leaderboard_service
from services.season_history import SeasonHistory, winner_from_rankings
from utils.logger import api_logger as logger

router = APIRouter(prefix="/leaderboard", tags=["Leaderboard"])

season_history = SeasonHistory()

UNAVAILABLE_DETAIL = "Leaderboard temporarily unavailable"


# ==================== LEADERBOARD ====================


@router.get("", response_model=LeaderboardResponse)
async def get_leaderboard(
    refresh: bool = Query(False, description="Recompute even if the cached board is fresh"),
):
    """Ranked Houses, served from cache while fresh."""
    try:
        return await get_leaderboard_service().get_rankings(force_refresh=refresh)
    except asyncio.TimeoutError:
        logger.error("Leaderboard computation timed out", refresh=refresh)
        raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL)
    except Exception as e:
        logger.exception("Leaderboard computation failed", refresh=refresh, error=str(e))
        raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL)


# ==================== PREVIOUS WINNER ====================


@router.get("/previous-winner", response_model=Optional[PreviousWinner])
async def get_previous_winner():
    return await season_history.get_previous_winner()


@router.put("/previous-winner", response_model=PreviousWinner)
async def put_previous_winner(record: PreviousWinner):
    """Record the winner of a completed season, replacing any earlier one."""
    if get_house_by_id(build_houses(), record.winner.house_id) is None:
        raise HTTPException(status_code=400, detail=f"Unknown house: {record.winner.house_id}")

    saved = await season_history.save_previous_winner(record.season_id, record.winner)
    if not saved:
        raise HTTPException(status_code=503, detail="Failed to save previous winner")
    return record


@router.post("/seasons/{season_id}/close", response_model=PreviousWinner)
async def close_season(season_id: int):
    """Recompute the board and record its top House as the previous winner."""
    try:
        response = await get_leaderboard_service().get_rankings(force_refresh=True)
    except asyncio.TimeoutError:
        logger.error("Leaderboard computation timed out", season_id=season_id)
        raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL)
    except Exception as e:
        logger.exception("Leaderboard computation failed", season_id=season_id, error=str(e))
        raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL)

    winner = winner_from_rankings(response.rankings)
    if winner is None:
        raise HTTPException(status_code=409, detail="No house scored this season")

    if not await season_history.save_previous_winner(season_id, winner):
        raise HTTPException(status_code=503, detail="Failed to save previous winner")
    logger.info("Season closed", season_id=season_id, house_id=winner.house_id, score=winner.score)
    return PreviousWinner(season_id=season_id, winner=winner)


@router.delete("/previous-winner")
async def delete_previous_winner():
    cleared = await season_history.clear_previous_winner()
    if not cleared:
        raise HTTPException(status_code=503, detail="Failed to clear previous winner")
    return {"status": "success", "message": "Previous winner cleared"}
