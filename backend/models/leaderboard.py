from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.house import House


class _CamelModel(BaseModel):
    """Snake-case in Python, camelCase on the wire and in the cache record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HouseRanking(_CamelModel):
    """One House's row in the leaderboard."""

    house: House
    member_count: int = Field(default=0, ge=0)
    score: float = 0.0
    total_staked: int = Field(default=0, ge=0)
    last_updated: int = 0  # epoch ms, shared by every row of a run


class LeaderboardSnapshot(_CamelModel):
    """One complete ranked result; cached and replaced wholesale."""

    rankings: list[HouseRanking]
    computed_at: int  # epoch ms


class HouseWinner(_CamelModel):
    house_id: str
    score: float
    member_count: int = Field(default=0, ge=0)


class PreviousWinner(_CamelModel):
    """Winner of the last completed season, shown above the live board."""

    season_id: int = Field(ge=0)
    winner: HouseWinner


class LeaderboardResponse(_CamelModel):
    rankings: list[HouseRanking]
    last_updated: Optional[int] = None
    cached: bool = False
