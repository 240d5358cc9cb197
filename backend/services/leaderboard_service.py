"""
Read-through leaderboard access.

A fresh cached snapshot is served as-is.  Otherwise the orchestrator runs
under a caller-level timeout, the result is written back to the cache and
returned.  A failed cache write does not fail the request.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from config import settings
from models.house import build_houses
from models.leaderboard import LeaderboardResponse
from services.chain_rpc import ChainRPC
from services.holder_enumerator import HolderEnumerator
from services.leaderboard_cache import LeaderboardCache
from services.leaderboard_orchestrator import LeaderboardOrchestrator
from services.log_paginator import LogPaginator
from services.scoring import ScoringWeights
from services.wallet_sources import RPCOnChatSource, RPCStakingSource, RPCStreakSource
from utils.logger import leaderboard_logger as logger


class LeaderboardService:
    def __init__(
        self,
        cache: LeaderboardCache,
        orchestrator: LeaderboardOrchestrator,
        *,
        timeout_seconds: Optional[float] = None,
        season_start_block: Optional[int] = None,
        rpc: Optional[ChainRPC] = None,
        paginator: Optional[LogPaginator] = None,
    ):
        self.cache = cache
        self.orchestrator = orchestrator
        self._timeout = (
            settings.LEADERBOARD_COMPUTE_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        if season_start_block is None:
            season_start_block = settings.SEASON_START_BLOCK
        if season_start_block is None:
            season_start_block = settings.HOUSE_TOKEN_START_BLOCK
        self._season_start_block = season_start_block
        self._rpc = rpc
        self._paginator = paginator

    async def get_rankings(self, force_refresh: bool = False) -> LeaderboardResponse:
        """Ranked Houses, from cache when fresh.

        Raises ``asyncio.TimeoutError`` when the computation overruns, and
        whatever the orchestrator raises on a scoring defect.
        """
        if not force_refresh:
            snapshot = await self.cache.read_fresh()
            if snapshot is not None:
                return LeaderboardResponse(
                    rankings=snapshot.rankings,
                    last_updated=snapshot.computed_at,
                    cached=True,
                )

        rankings = await asyncio.wait_for(
            self._compute(),
            timeout=self._timeout,
        )

        snapshot = await self.cache.write(rankings)
        if snapshot is not None:
            last_updated = snapshot.computed_at
        else:
            last_updated = rankings[0].last_updated if rankings else None
            logger.warning("Serving uncached leaderboard", houses=len(rankings))

        return LeaderboardResponse(rankings=rankings, last_updated=last_updated, cached=False)

    async def _compute(self):
        season_start_block = self._season_start_block
        if season_start_block is None and self._paginator is not None:
            season_start_block = await self._paginator.resolve_start_block(None)
        elif season_start_block is None:
            season_start_block = 0
        return await self.orchestrator.compute_leaderboard(season_start_block)

    async def aclose(self) -> None:
        if self._rpc is not None:
            await self._rpc.aclose()


def build_default_service() -> LeaderboardService:
    """Wire the production pipeline from settings."""
    rpc = ChainRPC()
    paginator = LogPaginator(rpc)
    orchestrator = LeaderboardOrchestrator(
        build_houses(settings),
        HolderEnumerator(rpc, paginator, from_block=settings.HOUSE_TOKEN_START_BLOCK),
        RPCStreakSource(rpc),
        RPCStakingSource(rpc),
        RPCOnChatSource(rpc, paginator),
        pool_address=settings.STAKING_POOL_ADDRESS,
        weights=ScoringWeights.from_settings(),
        max_streak=settings.MAX_DOJO_STREAK,
    )
    return LeaderboardService(LeaderboardCache(), orchestrator, rpc=rpc, paginator=paginator)


_service: Optional[LeaderboardService] = None


def get_leaderboard_service() -> LeaderboardService:
    global _service
    if _service is None:
        _service = build_default_service()
    return _service


async def shutdown_leaderboard_service() -> None:
    global _service
    if _service is not None:
        await _service.aclose()
        _service = None
