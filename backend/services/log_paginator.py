"""
Chunked event-log retrieval.

Public RPC endpoints cap ``eth_getLogs`` at a few thousand blocks per call,
so a query over the whole history of a contract is split into consecutive
inclusive sub-ranges no wider than ``LOG_MAX_BLOCK_RANGE``.  Sub-ranges are
fetched one at a time in ascending block order and concatenated, which keeps
the result chronological; holder enumeration relies on first-occurrence order.

No retry happens here.  Any failing sub-range aborts the whole call and the
error propagates to the caller, who decides how much failure it tolerates.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from config import settings
from services.chain_rpc import BlockTag, ChainRPC, hex_to_int
from utils.logger import get_logger

logger = get_logger("log_paginator")

LATEST = "latest"


def split_block_range(from_block: int, to_block: int, max_span: int) -> list[tuple[int, int]]:
    """Split ``[from_block, to_block]`` into inclusive chunks of at most ``max_span`` blocks.

    >>> split_block_range(0, 4999, 2000)
    [(0, 1999), (2000, 3999), (4000, 4999)]
    """
    if max_span <= 0:
        raise ValueError("max_span must be positive")
    chunks: list[tuple[int, int]] = []
    cursor = from_block
    while cursor <= to_block:
        end = min(cursor + max_span - 1, to_block)
        chunks.append((cursor, end))
        cursor = end + 1
    return chunks


class LogPaginator:
    """Fetches logs for one address/event across an arbitrary block range."""

    def __init__(self, rpc: ChainRPC, max_block_range: Optional[int] = None):
        self._rpc = rpc
        self._max_block_range = int(max_block_range or settings.LOG_MAX_BLOCK_RANGE)
        if self._max_block_range <= 0:
            raise ValueError("max_block_range must be positive")

    @property
    def max_block_range(self) -> int:
        return self._max_block_range

    async def resolve_start_block(self, configured: Optional[int], lookback: Optional[int] = None) -> int:
        """Configured start block, or ``lookback`` blocks behind the head when unset."""
        if configured is not None:
            return int(configured)
        if lookback is None:
            lookback = settings.LOG_SCAN_LOOKBACK_BLOCKS
        head = await self._rpc.block_number()
        start = max(0, head - int(lookback))
        logger.warning(
            "No start block configured, scanning recent blocks only",
            head=head,
            from_block=start,
        )
        return start

    async def fetch_logs(
        self,
        address: str,
        event_topic: str,
        indexed_topics: Sequence[Optional[str]] = (),
        from_block: int = 0,
        to_block: BlockTag = LATEST,
    ) -> list[dict]:
        """Return every matching raw log in ascending block order.

        ``indexed_topics`` filters topic1..topicN; ``None`` entries match
        anything.  A ``"latest"`` upper bound is resolved once, up front, so
        every chunk of this call sees the same head.
        """
        if to_block == LATEST:
            upper = await self._rpc.block_number()
        elif isinstance(to_block, str):
            upper = hex_to_int(to_block)
        else:
            upper = int(to_block)

        topics = [event_topic, *indexed_topics]
        chunks = split_block_range(int(from_block), upper, self._max_block_range)

        all_logs: list[dict] = []
        for start, end in chunks:
            logs = await self._rpc.get_logs(
                address=address,
                topics=topics,
                from_block=start,
                to_block=end,
            )
            all_logs.extend(logs)

        logger.debug(
            "Fetched paginated logs",
            address=address,
            from_block=from_block,
            to_block=upper,
            chunks=len(chunks),
            logs=len(all_logs),
        )
        return all_logs

    async def resolve_timestamps(self, logs: Sequence[dict]) -> dict[int, int]:
        """Map block number -> block timestamp (seconds) for the given logs.

        One block lookup per *distinct* block, not per log.
        """
        block_numbers = sorted({hex_to_int(log["blockNumber"]) for log in logs})
        if not block_numbers:
            return {}
        blocks = await asyncio.gather(*(self._rpc.get_block(n) for n in block_numbers))
        return {
            number: hex_to_int(block["timestamp"])
            for number, block in zip(block_numbers, blocks)
        }
