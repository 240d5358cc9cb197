"""
Leaderboard computation pipeline.

For each House, concurrently:
  1. enumerate current holders of its membership token;
  2. per holder, fetch DOJO streak, stake position and OnChat message count
     concurrently;
  3. score every wallet (40/30/30, or 40/60 when OnChat is unavailable);
  4. sum wallet scores into the House score.
Then rank all Houses (ties broken by total staked).

Failures are contained where a safe default exists: a failed metric read
degrades that one metric for that one wallet, and a failed holder
enumeration zeroes that one House.  Only a defect in the scoring functions
can make ``compute_leaderboard`` raise.

The orchestrator never caches; it recomputes on every call.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from models.house import House
from models.leaderboard import HouseRanking
from services.holder_enumerator import HolderEnumerator
from services.scoring import (
    DEFAULT_WEIGHTS,
    MAX_DOJO_STREAK,
    ScoringWeights,
    house_score,
    normalize,
    rank_houses,
    wallet_score,
)
from services.wallet_sources import OnChatSource, StakingSource, StreakSource
from utils.logger import leaderboard_logger as logger
from utils.utcnow import now_ms


@dataclass
class WalletMetrics:
    """Raw per-wallet inputs after degradation."""

    wallet: str
    streak: int = 0
    staked: int = 0
    on_chat_messages: Optional[int] = None  # None = unavailable
    degraded: list[str] = field(default_factory=list)


@dataclass
class HouseResult:
    house: House
    wallet_scores: list[float] = field(default_factory=list)
    member_count: int = 0
    total_staked: int = 0
    degraded_metrics: int = 0
    failed: bool = False


def _settled_value(result: Any) -> Any:
    """Value of a ``gather(return_exceptions=True)`` slot, or None if it failed."""
    if isinstance(result, BaseException):
        return None
    return result


class LeaderboardOrchestrator:
    """Runs the full pipeline over an injected, immutable House list."""

    def __init__(
        self,
        houses: Sequence[House],
        holder_enumerator: HolderEnumerator,
        streak_source: StreakSource,
        staking_source: StakingSource,
        onchat_source: OnChatSource,
        *,
        pool_address: str = "",
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        max_streak: int = MAX_DOJO_STREAK,
        clock: Callable[[], int] = now_ms,
    ):
        self._houses = tuple(houses)
        self._holders = holder_enumerator
        self._streaks = streak_source
        self._staking = staking_source
        self._onchat = onchat_source
        self._pool_address = pool_address
        self._weights = weights
        self._max_streak = max_streak
        self._clock = clock

    @property
    def houses(self) -> tuple[House, ...]:
        return self._houses

    async def compute_leaderboard(self, season_start_block: int = 0) -> list[HouseRanking]:
        """Ranked list with one entry per configured House."""
        started = time.monotonic()
        timestamp = self._clock()

        # Shared denominators, fetched once for every House.
        pool_state, total_messages = await asyncio.gather(
            self._staking.get_pool_state(self._pool_address),
            self._onchat.get_total_messages(),
            return_exceptions=True,
        )
        if isinstance(pool_state, BaseException):
            logger.warning("Pool state unavailable", error=str(pool_state))
        if isinstance(total_messages, BaseException):
            logger.warning("OnChat total unavailable", error=str(total_messages))
        pool_state = _settled_value(pool_state)
        pool_total = int(pool_state.total_staked) if pool_state is not None else 0
        total_messages = _settled_value(total_messages)

        results = await asyncio.gather(
            *(
                self._score_house(house, pool_total, total_messages, season_start_block)
                for house in self._houses
            )
        )

        ranked = rank_houses(
            [
                HouseRanking(
                    house=result.house,
                    member_count=result.member_count,
                    score=house_score(result.wallet_scores),
                    total_staked=result.total_staked,
                    last_updated=timestamp,
                )
                for result in results
            ]
        )

        logger.info(
            "Leaderboard computed",
            houses=len(results),
            holders=sum(r.member_count for r in results),
            failed_houses=[r.house.id for r in results if r.failed],
            degraded_metrics=sum(r.degraded_metrics for r in results),
            pool_total_staked=pool_total,
            onchat_available=bool(total_messages),
            elapsed_seconds=round(time.monotonic() - started, 3),
        )
        return ranked

    async def _score_house(
        self,
        house: House,
        pool_total: int,
        total_messages: Optional[int],
        season_start_block: int,
    ) -> HouseResult:
        try:
            holders = await self._holders.enumerate_holders(house.asset_address)
        except Exception as e:
            logger.warning(
                "Failed to get holders, scoring house as empty",
                house=house.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return HouseResult(house=house, failed=True)

        if not holders:
            return HouseResult(house=house)

        metrics = await asyncio.gather(
            *(self._collect_wallet_metrics(wallet, season_start_block) for wallet in holders)
        )

        scores = [self._score_wallet(m, pool_total, total_messages) for m in metrics]
        return HouseResult(
            house=house,
            wallet_scores=scores,
            member_count=len(holders),
            total_staked=sum(m.staked for m in metrics),
            degraded_metrics=sum(len(m.degraded) for m in metrics),
        )

    async def _collect_wallet_metrics(self, wallet: str, season_start_block: int) -> WalletMetrics:
        streak, position, messages = await asyncio.gather(
            self._streaks.get_current_streak(wallet),
            self._staking.get_user_position(self._pool_address, wallet),
            self._onchat.get_message_count(wallet, season_start_block),
            return_exceptions=True,
        )

        metrics = WalletMetrics(wallet=wallet)
        for name, outcome in (("streak", streak), ("stake", position), ("onchat", messages)):
            if isinstance(outcome, BaseException):
                metrics.degraded.append(name)
                logger.debug("Wallet metric unavailable", wallet=wallet, metric=name, error=str(outcome))

        streak = _settled_value(streak)
        position = _settled_value(position)
        metrics.streak = int(streak or 0)
        metrics.staked = int(getattr(position, "staked", None) or 0)
        metrics.on_chat_messages = _settled_value(messages)
        return metrics

    def _score_wallet(
        self,
        metrics: WalletMetrics,
        pool_total: int,
        total_messages: Optional[int],
    ) -> float:
        stake_pct = normalize(metrics.staked, pool_total)
        # Either side missing switches this wallet to the fallback weights.
        if metrics.on_chat_messages is not None and total_messages:
            on_chat_pct: Optional[float] = normalize(metrics.on_chat_messages, total_messages)
        else:
            on_chat_pct = None
        return wallet_score(
            metrics.streak,
            stake_pct,
            on_chat_pct,
            weights=self._weights,
            max_streak=self._max_streak,
        )
