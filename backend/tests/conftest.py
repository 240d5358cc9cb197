"""Shared fixtures for House leaderboard tests."""

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from models.database import Base
from models.house import House
from utils.validation import ZERO_ADDRESS, address_to_topic

ASSET_A = "0x" + "a1" * 20
ASSET_B = "0x" + "b2" * 20
POOL = "0x" + "c3" * 20
OPERATOR = "0x" + "0f" * 20

ALICE = "0x" + "11" * 20
BOB = "0x" + "22" * 20
CAROL = "0x" + "33" * 20


def word(value: int) -> str:
    return "0x" + format(value, "064x")


def mint_log(recipient: str, block: int, topic0: str = "0xmint") -> dict:
    """Raw TransferSingle mint log as returned by eth_getLogs."""
    return {
        "blockNumber": hex(block),
        "topics": [
            topic0,
            address_to_topic(OPERATOR),
            address_to_topic(ZERO_ADDRESS),
            address_to_topic(recipient),
        ],
        "data": "0x",
    }


class FakeLedgerRPC:
    """In-memory stand-in for ``ChainRPC`` that records every request."""

    def __init__(self, head: int = 0, logs=None, call_results=None):
        self.head = head
        self.logs = list(logs or [])
        # (to, wallet-or-None) -> hex result or Exception
        self.call_results = dict(call_results or {})
        self.get_logs_calls: list[dict] = []
        self.call_calls: list[tuple[str, str]] = []
        self.block_number_calls = 0
        self.get_block_calls: list[int] = []
        self.fail_logs_at: set[int] = set()

    async def block_number(self) -> int:
        self.block_number_calls += 1
        return self.head

    async def get_logs(self, *, address, topics, from_block, to_block):
        self.get_logs_calls.append(
            {"address": address, "topics": list(topics), "from_block": from_block, "to_block": to_block}
        )
        if from_block in self.fail_logs_at:
            raise RuntimeError(f"range {from_block}-{to_block} rejected")
        return [
            log for log in self.logs if from_block <= int(log["blockNumber"], 16) <= to_block
        ]

    async def get_block(self, number):
        self.get_block_calls.append(number)
        return {"number": hex(number), "timestamp": hex(1_700_000_000 + number)}

    async def call(self, to, data, block="latest"):
        self.call_calls.append((to, data))
        # Argument words follow the 4-byte selector; the first one is the wallet when present.
        wallet = "0x" + data[10 + 24 : 10 + 64] if len(data) > 10 else None
        result = self.call_results.get((to, wallet), self.call_results.get((to, None)))
        if isinstance(result, Exception):
            raise result
        if result is None:
            return "0x"
        return result


def make_house(house_id: str, numeric_id: int, asset_address: str = "") -> House:
    return House(
        id=house_id,
        numeric_id=numeric_id,
        element=house_id,
        symbol=house_id[:1].upper(),
        name_key=f"house.{house_id}",
        asset_address=asset_address,
    )


@pytest.fixture
def fake_rpc():
    return FakeLedgerRPC(head=100)


@pytest.fixture
def session_factory(tmp_path):
    """Async session factory over a fresh temp-file SQLite database."""
    db_path = tmp_path / "leaderboard.db"
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
