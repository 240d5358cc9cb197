"""
Current holder set of a House membership token.

House tokens are Mint Club ERC-1155 contracts, which are not enumerable.  The
holder list is rebuilt from the ledger on every run:

1. every ``TransferSingle`` whose ``from`` is the zero address (a mint);
2. the distinct recipients of those mints, minus the zero address;
3. a live ``balanceOf(recipient, 0)`` per recipient;
4. only recipients with a positive balance are kept, so wallets that minted
   and later sold drop out.

A failed balance read excludes that wallet instead of failing the House.
The mint scan starts at the tokens' deployment block when one is configured.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from services.chain_rpc import (
    ChainRPC,
    decode_uint256,
    encode_address,
    encode_call,
    encode_uint,
    event_topic,
    function_selector,
)
from services.log_paginator import LATEST, LogPaginator
from utils.logger import get_logger
from utils.validation import (
    ZERO_ADDRESS,
    address_to_topic,
    is_zero_address,
    normalize_address,
    topic_to_address,
)

logger = get_logger("holder_enumerator")

# TransferSingle(address indexed operator, address indexed from, address indexed to, uint256 id, uint256 value)
TRANSFER_SINGLE_TOPIC = event_topic("TransferSingle(address,address,address,uint256,uint256)")
BALANCE_OF_SELECTOR = function_selector("balanceOf(address,uint256)")

# Mint Club ERC-1155 token id is always 0
MEMBERSHIP_TOKEN_ID = 0


class HolderEnumerator:
    """Reconstructs holders of a non-enumerable ERC-1155 from its mint events."""

    def __init__(
        self,
        rpc: ChainRPC,
        paginator: Optional[LogPaginator] = None,
        token_id: int = MEMBERSHIP_TOKEN_ID,
        from_block: Optional[int] = None,
    ):
        self._rpc = rpc
        self._paginator = paginator or LogPaginator(rpc)
        self._token_id = token_id
        self._from_block = from_block

    @property
    def from_block(self) -> Optional[int]:
        return self._from_block

    async def mint_recipients(self, asset_address: str) -> list[str]:
        """Distinct mint recipients in first-mint order."""
        logs = await self._paginator.fetch_logs(
            asset_address,
            TRANSFER_SINGLE_TOPIC,
            [None, address_to_topic(ZERO_ADDRESS)],
            from_block=await self._paginator.resolve_start_block(self._from_block),
            to_block=LATEST,
        )

        seen: set[str] = set()
        recipients: list[str] = []
        for log in logs:
            topics = log.get("topics") or []
            if len(topics) < 4:
                continue
            recipient = topic_to_address(topics[3])
            if is_zero_address(recipient) or recipient in seen:
                continue
            seen.add(recipient)
            recipients.append(recipient)
        return recipients

    async def balance_of(self, asset_address: str, wallet: str) -> int:
        data = encode_call(BALANCE_OF_SELECTOR, encode_address(wallet), encode_uint(self._token_id))
        return decode_uint256(await self._rpc.call(asset_address, data))

    async def enumerate_holders(self, asset_address: str) -> list[str]:
        """Wallets holding a positive balance right now (possibly empty).

        Raises whatever the log fetch raises; balance failures never raise.
        """
        asset = normalize_address(asset_address)
        if not asset:
            return []

        candidates = await self.mint_recipients(asset)
        if not candidates:
            return []

        balances = await asyncio.gather(
            *(self.balance_of(asset, wallet) for wallet in candidates),
            return_exceptions=True,
        )

        holders: list[str] = []
        failed = 0
        for wallet, balance in zip(candidates, balances):
            if isinstance(balance, BaseException):
                failed += 1
                logger.debug(
                    "Balance check failed, excluding candidate",
                    asset=asset,
                    wallet=wallet,
                    error=str(balance),
                )
                continue
            if balance > 0:
                holders.append(wallet)

        logger.info(
            "Enumerated house holders",
            asset=asset,
            candidates=len(candidates),
            holders=len(holders),
            balance_failures=failed,
        )
        return holders
