import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from api import routes_leaderboard  # noqa: E402
from conftest import make_house  # noqa: E402
from models.leaderboard import HouseRanking, HouseWinner, LeaderboardResponse, PreviousWinner  # noqa: E402


def _service(get_rankings):
    return SimpleNamespace(get_rankings=get_rankings)


@pytest.mark.asyncio
async def test_get_leaderboard_returns_service_response(monkeypatch):
    expected = LeaderboardResponse(rankings=[], last_updated=123, cached=True)
    get_rankings = AsyncMock(return_value=expected)
    monkeypatch.setattr(routes_leaderboard, "get_leaderboard_service", lambda: _service(get_rankings))

    response = await routes_leaderboard.get_leaderboard(refresh=False)

    assert response is expected
    get_rankings.assert_awaited_once_with(force_refresh=False)


@pytest.mark.asyncio
async def test_refresh_flag_forces_recompute(monkeypatch):
    get_rankings = AsyncMock(return_value=LeaderboardResponse(rankings=[]))
    monkeypatch.setattr(routes_leaderboard, "get_leaderboard_service", lambda: _service(get_rankings))

    await routes_leaderboard.get_leaderboard(refresh=True)

    get_rankings.assert_awaited_once_with(force_refresh=True)


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [asyncio.TimeoutError(), RuntimeError("scoring defect")])
async def test_pipeline_failure_maps_to_503(monkeypatch, error):
    get_rankings = AsyncMock(side_effect=error)
    monkeypatch.setattr(routes_leaderboard, "get_leaderboard_service", lambda: _service(get_rankings))

    with pytest.raises(HTTPException) as excinfo:
        await routes_leaderboard.get_leaderboard(refresh=False)

    assert excinfo.value.status_code == 503
    assert excinfo.value.detail == "Leaderboard temporarily unavailable"


@pytest.mark.asyncio
async def test_put_previous_winner_rejects_unknown_house(monkeypatch):
    history = SimpleNamespace(save_previous_winner=AsyncMock(return_value=True))
    monkeypatch.setattr(routes_leaderboard, "season_history", history)

    record = PreviousWinner(season_id=1, winner=HouseWinner(house_id="sora", score=10))
    with pytest.raises(HTTPException) as excinfo:
        await routes_leaderboard.put_previous_winner(record)

    assert excinfo.value.status_code == 400
    history.save_previous_winner.assert_not_awaited()


@pytest.mark.asyncio
async def test_put_previous_winner_persists_known_house(monkeypatch):
    history = SimpleNamespace(save_previous_winner=AsyncMock(return_value=True))
    monkeypatch.setattr(routes_leaderboard, "season_history", history)

    record = PreviousWinner(season_id=2, winner=HouseWinner(house_id="honoo", score=480, member_count=42))
    response = await routes_leaderboard.put_previous_winner(record)

    assert response == record
    history.save_previous_winner.assert_awaited_once_with(2, record.winner)


@pytest.mark.asyncio
async def test_put_previous_winner_storage_failure_is_503(monkeypatch):
    history = SimpleNamespace(save_previous_winner=AsyncMock(return_value=False))
    monkeypatch.setattr(routes_leaderboard, "season_history", history)

    record = PreviousWinner(season_id=2, winner=HouseWinner(house_id="mizu", score=1))
    with pytest.raises(HTTPException) as excinfo:
        await routes_leaderboard.put_previous_winner(record)

    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_get_and_delete_previous_winner(monkeypatch):
    stored = PreviousWinner(season_id=1, winner=HouseWinner(house_id="kaze", score=5))
    history = SimpleNamespace(
        get_previous_winner=AsyncMock(return_value=stored),
        clear_previous_winner=AsyncMock(return_value=True),
    )
    monkeypatch.setattr(routes_leaderboard, "season_history", history)

    assert await routes_leaderboard.get_previous_winner() is stored
    response = await routes_leaderboard.delete_previous_winner()

    assert response["status"] == "success"
    history.clear_previous_winner.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_season_records_top_house(monkeypatch):
    rankings = [
        HouseRanking(house=make_house("mori", 3), member_count=4, score=88.0),
        HouseRanking(house=make_house("kaze", 5), member_count=2, score=12.0),
    ]
    get_rankings = AsyncMock(return_value=LeaderboardResponse(rankings=rankings))
    history = SimpleNamespace(save_previous_winner=AsyncMock(return_value=True))
    monkeypatch.setattr(routes_leaderboard, "get_leaderboard_service", lambda: _service(get_rankings))
    monkeypatch.setattr(routes_leaderboard, "season_history", history)

    response = await routes_leaderboard.close_season(7)

    get_rankings.assert_awaited_once_with(force_refresh=True)
    assert response.season_id == 7
    assert response.winner == HouseWinner(house_id="mori", score=88.0, member_count=4)
    history.save_previous_winner.assert_awaited_once_with(7, response.winner)


@pytest.mark.asyncio
async def test_close_season_without_any_score_is_a_conflict(monkeypatch):
    rankings = [HouseRanking(house=make_house("mori", 3), score=0.0)]
    get_rankings = AsyncMock(return_value=LeaderboardResponse(rankings=rankings))
    history = SimpleNamespace(save_previous_winner=AsyncMock(return_value=True))
    monkeypatch.setattr(routes_leaderboard, "get_leaderboard_service", lambda: _service(get_rankings))
    monkeypatch.setattr(routes_leaderboard, "season_history", history)

    with pytest.raises(HTTPException) as excinfo:
        await routes_leaderboard.close_season(7)

    assert excinfo.value.status_code == 409
    history.save_previous_winner.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_season_pipeline_failure_maps_to_503(monkeypatch):
    get_rankings = AsyncMock(side_effect=asyncio.TimeoutError())
    monkeypatch.setattr(routes_leaderboard, "get_leaderboard_service", lambda: _service(get_rankings))

    with pytest.raises(HTTPException) as excinfo:
        await routes_leaderboard.close_season(7)

    assert excinfo.value.status_code == 503


def test_response_serializes_camel_case():
    payload = LeaderboardResponse(rankings=[], last_updated=5, cached=True).model_dump(by_alias=True)

    assert payload == {"rankings": [], "lastUpdated": 5, "cached": True}
