import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from utils.logger import get_logger

logger = get_logger("rate_limiter")


@dataclass
class RateLimitConfig:
    """Rate limit configuration for a family of RPC methods"""

    requests_per_window: int
    window_seconds: float = 1.0
    burst_limit: Optional[int] = None  # Max burst if different from rate


@dataclass
class TokenBucket:
    """Token bucket that hands out reservations.

    ``tokens`` may go negative: a caller that finds the bucket empty still
    takes its tokens and is told how long to sleep until they are earned.
    Reservations therefore queue in arrival order.
    """

    capacity: float
    tokens: float
    refill_rate: float  # tokens per second
    last_refill: float = field(default_factory=time.monotonic)

    def refill(self) -> None:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self.last_refill) * self.refill_rate)
        self.last_refill = now

    def reserve(self, tokens: int = 1) -> float:
        """Take ``tokens`` now and return the seconds until they are covered."""
        self.refill()
        self.tokens -= tokens
        if self.tokens >= 0:
            return 0.0
        return -self.tokens / self.refill_rate


class RateLimiter:
    """Token-bucket limiter keyed by RPC method family.

    Public Base endpoints throttle per second and are far stricter on
    ``eth_getLogs`` than on plain ``eth_call`` reads, so the families get
    separate buckets.
    """

    LIMITS = {
        "rpc_logs": RateLimitConfig(requests_per_window=5, window_seconds=1),
        "rpc_call": RateLimitConfig(requests_per_window=25, window_seconds=1, burst_limit=50),
        "rpc_block": RateLimitConfig(requests_per_window=20, window_seconds=1),
        "rpc_general": RateLimitConfig(requests_per_window=10, window_seconds=1),
    }

    def __init__(self, limits: Optional[Dict[str, RateLimitConfig]] = None):
        self._limits = dict(limits) if limits is not None else dict(self.LIMITS)
        self._buckets: Dict[str, TokenBucket] = {}

    def _get_bucket(self, family: str) -> TokenBucket:
        """Get or create a token bucket for a method family"""
        if family not in self._buckets:
            config = self._limits.get(family) or self._limits.get(
                "rpc_general", RateLimitConfig(10, 1)
            )
            capacity = config.burst_limit or config.requests_per_window
            refill_rate = config.requests_per_window / config.window_seconds
            self._buckets[family] = TokenBucket(
                capacity=capacity, tokens=capacity, refill_rate=refill_rate
            )
        return self._buckets[family]

    async def acquire(self, family: str, tokens: int = 1) -> float:
        """Wait for permission to send; returns the seconds waited."""
        wait_time = self._get_bucket(family).reserve(tokens)
        if wait_time > 0:
            logger.debug("Rate limit wait", family=family, wait_seconds=round(wait_time, 3))
            await asyncio.sleep(wait_time)
        return wait_time


def family_for_method(method: str) -> str:
    """Map a JSON-RPC method name to its rate-limit family"""
    if method == "eth_getLogs":
        return "rpc_logs"
    if method == "eth_call":
        return "rpc_call"
    if method in ("eth_getBlockByNumber", "eth_blockNumber"):
        return "rpc_block"
    return "rpc_general"
