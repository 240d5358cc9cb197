from .house import House, HouseColors, build_houses
from .leaderboard import (
    HouseRanking,
    HouseWinner,
    LeaderboardResponse,
    LeaderboardSnapshot,
    PreviousWinner,
)

__all__ = [
    "House",
    "HouseColors",
    "build_houses",
    "HouseRanking",
    "HouseWinner",
    "LeaderboardResponse",
    "LeaderboardSnapshot",
    "PreviousWinner",
]
