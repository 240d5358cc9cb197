"""
Per-wallet data sources consumed by the leaderboard.

The pipeline depends only on the three protocols below.  ``None`` is the
"unavailable" signal on every method: a missing streak counts as 0, a missing
position as nothing staked, and a missing OnChat count or channel total
switches that wallet to fallback scoring.

The RPC-backed implementations read:

- DOJO streaks from the DojoResolver's ``currentStreak(address)``;
- stake positions from the pool's ``totalStaked()`` / ``userStake(address)``;
- OnChat activity by counting ``MessageSent`` logs for the season channel
  since the season start block, and the channel total from
  ``getMessageCount(bytes32)``.

Unset contract addresses short-circuit to ``None`` without any I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from config import settings
from services.chain_rpc import (
    ChainRPC,
    decode_uint256,
    decode_words,
    encode_address,
    encode_bytes32,
    encode_call,
    event_topic,
    function_selector,
    text_hash,
)
from services.log_paginator import LATEST, LogPaginator
from utils.logger import get_logger
from utils.validation import address_to_topic, normalize_address

logger = get_logger("wallet_sources")


# ==================== CONTRACTS ====================


@dataclass(frozen=True)
class StakePosition:
    staked: int = 0
    pending_rewards: int = 0


@dataclass(frozen=True)
class PoolState:
    total_staked: int = 0


@runtime_checkable
class StreakSource(Protocol):
    async def get_current_streak(self, wallet: str) -> Optional[int]: ...


@runtime_checkable
class StakingSource(Protocol):
    async def get_pool_state(self, pool_address: str) -> Optional[PoolState]: ...

    async def get_user_position(self, pool_address: str, wallet: str) -> Optional[StakePosition]: ...


@runtime_checkable
class OnChatSource(Protocol):
    async def get_message_count(self, wallet: str, from_block: int) -> Optional[int]: ...

    async def get_total_messages(self) -> Optional[int]: ...


# ==================== RPC IMPLEMENTATIONS ====================

CURRENT_STREAK_SELECTOR = function_selector("currentStreak(address)")
TOTAL_STAKED_SELECTOR = function_selector("totalStaked()")
USER_STAKE_SELECTOR = function_selector("userStake(address)")
GET_MESSAGE_COUNT_SELECTOR = function_selector("getMessageCount(bytes32)")

# MessageSent(bytes32 indexed slugHash, address indexed sender, uint256 indexed messageIndex, string content)
MESSAGE_SENT_TOPIC = event_topic("MessageSent(bytes32,address,uint256,string)")


class RPCStreakSource:
    def __init__(self, rpc: ChainRPC, resolver_address: Optional[str] = None):
        self._rpc = rpc
        self._resolver = normalize_address(
            resolver_address if resolver_address is not None else settings.DOJO_RESOLVER_ADDRESS
        )

    async def get_current_streak(self, wallet: str) -> Optional[int]:
        if not self._resolver or not wallet:
            return None
        data = encode_call(CURRENT_STREAK_SELECTOR, encode_address(wallet))
        return decode_uint256(await self._rpc.call(self._resolver, data))


class RPCStakingSource:
    def __init__(self, rpc: ChainRPC):
        self._rpc = rpc

    async def get_pool_state(self, pool_address: str) -> Optional[PoolState]:
        pool = normalize_address(pool_address)
        if not pool:
            return None
        total = decode_uint256(await self._rpc.call(pool, TOTAL_STAKED_SELECTOR))
        return PoolState(total_staked=total)

    async def get_user_position(self, pool_address: str, wallet: str) -> Optional[StakePosition]:
        pool = normalize_address(pool_address)
        if not pool or not wallet:
            return None
        data = encode_call(USER_STAKE_SELECTOR, encode_address(wallet))
        words = decode_words(await self._rpc.call(pool, data))
        if not words:
            return None
        return StakePosition(
            staked=words[0],
            pending_rewards=words[1] if len(words) > 1 else 0,
        )


class RPCOnChatSource:
    """OnChat reads swallow their own failures and report ``None``."""

    def __init__(
        self,
        rpc: ChainRPC,
        paginator: Optional[LogPaginator] = None,
        onchat_address: Optional[str] = None,
        channel_slug: Optional[str] = None,
    ):
        self._rpc = rpc
        self._paginator = paginator or LogPaginator(rpc)
        self._onchat = normalize_address(
            onchat_address if onchat_address is not None else settings.ONCHAT_ADDRESS
        )
        self._slug_hash = text_hash(channel_slug or settings.ONCHAT_CHANNEL_SLUG)

    @property
    def channel_slug_hash(self) -> str:
        return self._slug_hash

    async def get_message_count(self, wallet: str, from_block: int) -> Optional[int]:
        if not self._onchat or not wallet:
            return None
        try:
            logs = await self._paginator.fetch_logs(
                self._onchat,
                MESSAGE_SENT_TOPIC,
                [self._slug_hash, address_to_topic(wallet)],
                from_block=from_block,
                to_block=LATEST,
            )
        except Exception as e:
            logger.warning("Failed to query OnChat message count", wallet=wallet, error=str(e))
            return None
        return len(logs)

    async def get_total_messages(self) -> Optional[int]:
        if not self._onchat:
            return None
        data = encode_call(GET_MESSAGE_COUNT_SELECTOR, encode_bytes32(self._slug_hash))
        try:
            return decode_uint256(await self._rpc.call(self._onchat, data))
        except Exception as e:
            logger.warning("Failed to query OnChat total messages", error=str(e))
            return None
