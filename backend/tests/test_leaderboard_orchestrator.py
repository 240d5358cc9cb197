import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from conftest import ALICE, ASSET_A, ASSET_B, BOB, CAROL, POOL, make_house  # noqa: E402
from services.leaderboard_orchestrator import LeaderboardOrchestrator  # noqa: E402
from services.wallet_sources import PoolState, StakePosition  # noqa: E402

ASSET_C = "0x" + "d4" * 20
NOW_MS = 1_760_000_000_000


class FakeHolders:
    def __init__(self, holders_by_asset):
        self.holders_by_asset = holders_by_asset
        self.calls: list[str] = []

    async def enumerate_holders(self, asset_address):
        self.calls.append(asset_address)
        result = self.holders_by_asset.get(asset_address, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


class FakeStreaks:
    def __init__(self, streaks):
        self.streaks = streaks

    async def get_current_streak(self, wallet):
        value = self.streaks.get(wallet)
        if isinstance(value, Exception):
            raise value
        return value


class FakeStaking:
    def __init__(self, total, stakes):
        self.total = total
        self.stakes = stakes
        self.pool_calls: list[str] = []

    async def get_pool_state(self, pool_address):
        self.pool_calls.append(pool_address)
        if isinstance(self.total, Exception):
            raise self.total
        return PoolState(total_staked=self.total)

    async def get_user_position(self, pool_address, wallet):
        value = self.stakes.get(wallet)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return None
        return StakePosition(staked=value)


class FakeOnChat:
    def __init__(self, total, counts):
        self.total = total
        self.counts = counts
        self.from_blocks: list[int] = []

    async def get_message_count(self, wallet, from_block):
        self.from_blocks.append(from_block)
        value = self.counts.get(wallet)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_total_messages(self):
        if isinstance(self.total, Exception):
            raise self.total
        return self.total


def _orchestrator(houses, holders, streaks, staking, onchat):
    return LeaderboardOrchestrator(
        houses,
        holders,
        streaks,
        staking,
        onchat,
        pool_address=POOL,
        clock=lambda: NOW_MS,
    )


@pytest.fixture
def two_houses():
    return (make_house("honoo", 1, ASSET_A), make_house("mizu", 2, ASSET_B))


@pytest.mark.asyncio
async def test_end_to_end_two_houses(two_houses):
    orchestrator = _orchestrator(
        two_houses,
        FakeHolders({ASSET_A: [ALICE, BOB], ASSET_B: []}),
        FakeStreaks({ALICE: 30, BOB: 20}),
        FakeStaking(1000, {ALICE: 500, BOB: 300}),
        FakeOnChat(100, {ALICE: 50, BOB: 30}),
    )

    rankings = await orchestrator.compute_leaderboard()

    assert [r.house.id for r in rankings] == ["honoo", "mizu"]
    first, second = rankings
    # (100*.4 + 50*.3 + 50*.3) + (66.67*.4 + 30*.3 + 30*.3)
    assert first.score == pytest.approx(70.0 + 44.6667, abs=1e-3)
    assert first.member_count == 2
    assert first.total_staked == 800
    assert second.score == 0.0
    assert second.member_count == 0
    assert {r.last_updated for r in rankings} == {NOW_MS}


@pytest.mark.asyncio
async def test_one_entry_per_house_even_when_enumeration_fails(two_houses):
    orchestrator = _orchestrator(
        two_houses,
        FakeHolders({ASSET_A: RuntimeError("logs unavailable"), ASSET_B: [CAROL]}),
        FakeStreaks({CAROL: 30}),
        FakeStaking(100, {CAROL: 100}),
        FakeOnChat(10, {CAROL: 10}),
    )

    rankings = await orchestrator.compute_leaderboard()

    assert len(rankings) == 2
    by_id = {r.house.id: r for r in rankings}
    assert by_id["honoo"].score == 0.0
    assert by_id["honoo"].member_count == 0
    assert by_id["mizu"].score == pytest.approx(100.0)
    assert rankings[0].house.id == "mizu"


@pytest.mark.asyncio
async def test_failed_metric_degrades_only_that_wallet(two_houses):
    orchestrator = _orchestrator(
        two_houses[:1],
        FakeHolders({ASSET_A: [ALICE, BOB]}),
        FakeStreaks({ALICE: RuntimeError("resolver down"), BOB: 30}),
        FakeStaking(1000, {ALICE: 1000, BOB: RuntimeError("pool down")}),
        FakeOnChat(100, {ALICE: 0, BOB: 0}),
    )

    [ranking] = await orchestrator.compute_leaderboard()

    # Alice: streak 0, full stake; Bob: full streak, stake 0
    assert ranking.score == pytest.approx(30.0 + 40.0)
    assert ranking.member_count == 2
    assert ranking.total_staked == 1000


@pytest.mark.asyncio
async def test_onchat_fallback_is_decided_per_wallet(two_houses):
    orchestrator = _orchestrator(
        two_houses[:1],
        FakeHolders({ASSET_A: [ALICE, BOB]}),
        FakeStreaks({ALICE: 30, BOB: 30}),
        FakeStaking(1000, {ALICE: 500, BOB: 500}),
        FakeOnChat(100, {ALICE: 50, BOB: None}),
    )

    [ranking] = await orchestrator.compute_leaderboard()

    # Alice 40+15+15 with OnChat, Bob 40+30 on fallback weights
    assert ranking.score == pytest.approx(70.0 + 70.0)


@pytest.mark.asyncio
async def test_missing_onchat_total_switches_everyone_to_fallback(two_houses):
    orchestrator = _orchestrator(
        two_houses[:1],
        FakeHolders({ASSET_A: [ALICE]}),
        FakeStreaks({ALICE: 0}),
        FakeStaking(1000, {ALICE: 250}),
        FakeOnChat(None, {ALICE: 50}),
    )

    [ranking] = await orchestrator.compute_leaderboard()

    assert ranking.score == pytest.approx(25.0 * 0.6)


@pytest.mark.asyncio
async def test_pool_state_failure_scores_stake_as_zero(two_houses):
    orchestrator = _orchestrator(
        two_houses[:1],
        FakeHolders({ASSET_A: [ALICE]}),
        FakeStreaks({ALICE: 30}),
        FakeStaking(RuntimeError("pool down"), {ALICE: 500}),
        FakeOnChat(100, {ALICE: 100}),
    )

    [ranking] = await orchestrator.compute_leaderboard()

    assert ranking.score == pytest.approx(40.0 + 30.0)
    assert ranking.total_staked == 500


@pytest.mark.asyncio
async def test_ties_broken_by_total_staked():
    houses = (
        make_house("honoo", 1, ASSET_A),
        make_house("mizu", 2, ASSET_B),
        make_house("mori", 3, ASSET_C),
    )
    orchestrator = _orchestrator(
        houses,
        FakeHolders({ASSET_A: [ALICE], ASSET_B: [BOB], ASSET_C: []}),
        FakeStreaks({ALICE: 30, BOB: 30}),
        FakeStaking(0, {ALICE: 10, BOB: 20}),
        FakeOnChat(None, {}),
    )

    rankings = await orchestrator.compute_leaderboard()

    assert [r.house.id for r in rankings] == ["mizu", "honoo", "mori"]
    assert rankings[0].score == rankings[1].score


@pytest.mark.asyncio
async def test_same_inputs_give_identical_rankings(two_houses):
    def build():
        return _orchestrator(
            two_houses,
            FakeHolders({ASSET_A: [ALICE, BOB], ASSET_B: [CAROL]}),
            FakeStreaks({ALICE: 12, BOB: 3, CAROL: 29}),
            FakeStaking(777, {ALICE: 100, BOB: 7, CAROL: 300}),
            FakeOnChat(33, {ALICE: 4, BOB: 1, CAROL: 2}),
        )

    first = await build().compute_leaderboard()
    second = await build().compute_leaderboard()

    assert [r.model_dump() for r in first] == [r.model_dump() for r in second]


@pytest.mark.asyncio
async def test_season_start_block_and_pool_are_passed_through(two_houses):
    onchat = FakeOnChat(10, {ALICE: 1})
    staking = FakeStaking(10, {ALICE: 1})
    orchestrator = _orchestrator(
        two_houses[:1],
        FakeHolders({ASSET_A: [ALICE]}),
        FakeStreaks({ALICE: 1}),
        staking,
        onchat,
    )

    await orchestrator.compute_leaderboard(season_start_block=12345)

    assert onchat.from_blocks == [12345]
    assert staking.pool_calls == [POOL]


@pytest.mark.asyncio
async def test_empty_house_skips_metric_lookups(two_houses):
    streaks = FakeStreaks({})
    streaks.get_current_streak = AsyncMock(return_value=30)
    orchestrator = _orchestrator(
        two_houses,
        FakeHolders({}),
        streaks,
        FakeStaking(10, {}),
        FakeOnChat(10, {}),
    )

    rankings = await orchestrator.compute_leaderboard()

    assert all(r.score == 0.0 and r.member_count == 0 for r in rankings)
    streaks.get_current_streak.assert_not_awaited()


@pytest.mark.asyncio
async def test_channel_total_failure_scores_everyone_on_fallback_weights():
    orchestrator = _orchestrator(
        (make_house("honoo", 1, ASSET_A),),
        FakeHolders({ASSET_A: [ALICE]}),
        FakeStreaks({ALICE: 30}),
        FakeStaking(1000, {ALICE: 500}),
        FakeOnChat(RuntimeError("getMessageCount reverted"), {ALICE: 50}),
    )

    rankings = await orchestrator.compute_leaderboard()

    # 100*.4 + 50*.6
    assert rankings[0].score == pytest.approx(70.0)


@pytest.mark.asyncio
async def test_one_wallet_message_count_failure_degrades_only_that_wallet():
    orchestrator = _orchestrator(
        (make_house("honoo", 1, ASSET_A),),
        FakeHolders({ASSET_A: [ALICE, BOB]}),
        FakeStreaks({ALICE: 30, BOB: 30}),
        FakeStaking(1000, {ALICE: 500, BOB: 500}),
        FakeOnChat(100, {ALICE: 50, BOB: RuntimeError("log range rejected")}),
    )

    rankings = await orchestrator.compute_leaderboard()

    # ALICE: 100*.4 + 50*.3 + 50*.3; BOB: 100*.4 + 50*.6
    assert rankings[0].score == pytest.approx(140.0)
    assert rankings[0].member_count == 2
