"""
Leaderboard scoring: pure functions, no I/O.

Per-wallet score (0-100):

    streak * 0.40 + stake% * 0.30 + onchat% * 0.30      OnChat available
    streak * 0.40 + stake% * 0.60                       OnChat unavailable

The branch is picked per wallet.  A House scores the sum of its members and
Houses rank by score, then by total staked.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, TypeVar

from config import settings

# Sum-to-one tolerance for configured weights
_WEIGHT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ScoringWeights:
    """Primary (three-metric) and fallback (two-metric) weight sets."""

    dojo: float = 0.40
    staking: float = 0.30
    onchat: float = 0.30
    fallback_dojo: float = 0.40
    fallback_staking: float = 0.60

    def __post_init__(self):
        primary = self.dojo + self.staking + self.onchat
        fallback = self.fallback_dojo + self.fallback_staking
        if abs(primary - 1.0) > _WEIGHT_TOLERANCE:
            raise ValueError(f"Primary scoring weights must sum to 1, got {primary}")
        if abs(fallback - 1.0) > _WEIGHT_TOLERANCE:
            raise ValueError(f"Fallback scoring weights must sum to 1, got {fallback}")

    @classmethod
    def from_settings(cls) -> "ScoringWeights":
        return cls(
            dojo=settings.SCORING_WEIGHT_DOJO,
            staking=settings.SCORING_WEIGHT_STAKING,
            onchat=settings.SCORING_WEIGHT_ONCHAT,
            fallback_dojo=settings.SCORING_FALLBACK_WEIGHT_DOJO,
            fallback_staking=settings.SCORING_FALLBACK_WEIGHT_STAKING,
        )


DEFAULT_WEIGHTS = ScoringWeights()
MAX_DOJO_STREAK = 30


def normalize(value: Optional[float], max_value: Optional[float]) -> float:
    """Scale ``value`` linearly onto 0-100 against ``max_value``, capped at 100.

    Missing, zero or negative inputs (on either side) score 0.
    """
    if not max_value or max_value <= 0:
        return 0.0
    if not value or value <= 0:
        return 0.0
    return min((value / max_value) * 100, 100.0)


def normalize_streak(streak: Optional[int], max_streak: int = MAX_DOJO_STREAK) -> float:
    """30-day streak = 100."""
    return normalize(streak, max_streak)


def wallet_score(
    streak_raw: Optional[int],
    stake_percentage: Optional[float],
    on_chat_percentage: Optional[float],
    *,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    max_streak: int = MAX_DOJO_STREAK,
) -> float:
    """Score one wallet; ``on_chat_percentage=None`` selects the fallback weights."""
    dojo = normalize_streak(streak_raw, max_streak)
    staking = stake_percentage or 0.0

    if on_chat_percentage is None:
        return dojo * weights.fallback_dojo + staking * weights.fallback_staking

    return dojo * weights.dojo + staking * weights.staking + on_chat_percentage * weights.onchat


def house_score(wallet_scores: Iterable[float]) -> float:
    """Sum of member scores; order of members does not affect the result."""
    return math.fsum(wallet_scores)


_Ranked = TypeVar("_Ranked")


def rank_houses(house_scores: Sequence[_Ranked]) -> list[_Ranked]:
    """New list ordered by ``score`` desc, ties by ``total_staked`` desc.

    The sort is stable, so Houses equal on both keys keep their input order.
    """
    return sorted(
        house_scores,
        key=lambda entry: (entry.score, getattr(entry, "total_staked", 0) or 0),
        reverse=True,
    )
