"""
Persistent cache for the computed leaderboard.

One record under a fixed key holds the whole ranked snapshot and the time it
was computed.  Writes replace the record wholesale, so a reader sees either
the previous snapshot or the new one, never a mix.

The cache is best-effort in both directions: an unreadable or malformed
record reads as a miss, and a failed write is logged and dropped.  Callers
never see a storage error from here.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import delete, select

from config import settings
from models.database import AsyncSessionLocal, LeaderboardCacheEntry
from models.leaderboard import HouseRanking, LeaderboardSnapshot
from utils.logger import get_logger
from utils.utcnow import now_ms

logger = get_logger("leaderboard_cache")


class LeaderboardCache:
    """Read-through storage for one ``LeaderboardSnapshot``."""

    def __init__(
        self,
        session_factory=None,
        *,
        key: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._session_factory = session_factory or AsyncSessionLocal
        self._key = key or settings.LEADERBOARD_CACHE_KEY
        ttl = settings.LEADERBOARD_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._ttl_ms = int(float(ttl) * 1000)
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def snapshot_is_fresh(self, snapshot: Optional[LeaderboardSnapshot]) -> bool:
        """Fresh while strictly younger than the TTL.

        A ``computed_at`` ahead of the clock reads as stale.
        """
        if snapshot is None:
            return False
        age = self._clock() - snapshot.computed_at
        return 0 <= age < self._ttl_ms

    async def is_fresh(self) -> bool:
        """Whether a stored snapshot exists and is within the TTL."""
        return self.snapshot_is_fresh(await self.read())

    async def read(self) -> Optional[LeaderboardSnapshot]:
        """Stored snapshot regardless of age, or None."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(LeaderboardCacheEntry).where(LeaderboardCacheEntry.key == self._key)
                )
                row = result.scalar_one_or_none()
        except Exception as e:
            logger.warning("Leaderboard cache read failed", key=self._key, error=str(e))
            return None

        if row is None:
            return None

        try:
            snapshot = LeaderboardSnapshot.model_validate(row.payload)
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("Discarding malformed leaderboard cache record", key=self._key, error=str(e))
            return None
        return snapshot

    async def read_fresh(self) -> Optional[LeaderboardSnapshot]:
        """Stored snapshot if it is still within the TTL, else None."""
        snapshot = await self.read()
        if not self.snapshot_is_fresh(snapshot):
            return None
        return snapshot

    async def write(
        self,
        rankings: Sequence[HouseRanking],
        computed_at: Optional[int] = None,
    ) -> Optional[LeaderboardSnapshot]:
        """Replace the stored snapshot.  Returns it, or None if the store failed."""
        snapshot = LeaderboardSnapshot(
            rankings=list(rankings),
            computed_at=self._clock() if computed_at is None else computed_at,
        )
        try:
            async with self._session_factory() as session:
                await session.merge(
                    LeaderboardCacheEntry(
                        key=self._key,
                        payload=snapshot.model_dump(mode="json", by_alias=True),
                        computed_at_ms=snapshot.computed_at,
                    )
                )
                await session.commit()
        except Exception as e:
            logger.warning("Leaderboard cache write failed", key=self._key, error=str(e))
            return None
        logger.debug("Leaderboard cached", key=self._key, houses=len(snapshot.rankings))
        return snapshot

    async def clear(self) -> bool:
        """Drop the stored snapshot so the next read recomputes."""
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(LeaderboardCacheEntry).where(LeaderboardCacheEntry.key == self._key)
                )
                await session.commit()
        except Exception as e:
            logger.warning("Leaderboard cache clear failed", key=self._key, error=str(e))
            return False
        return True
