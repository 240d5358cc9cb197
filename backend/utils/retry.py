import asyncio
import random
from typing import Tuple, Type

import httpx


class RetryConfig:
    """Configuration for transport-level retry of RPC requests"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        retryable_exceptions: Tuple[Type[Exception], ...] = (
            httpx.TimeoutException,
            httpx.NetworkError,
            ConnectionError,
            asyncio.TimeoutError,
        ),
        retryable_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504),
        # JSON-RPC "limit exceeded" / "rate limited" codes used by public nodes
        retryable_rpc_codes: Tuple[int, ...] = (-32005, -32016, 429),
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retryable_exceptions = retryable_exceptions
        self.retryable_status_codes = retryable_status_codes
        self.retryable_rpc_codes = retryable_rpc_codes


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay with exponential backoff and optional jitter"""
    delay = min(config.base_delay * (config.exponential_base**attempt), config.max_delay)
    if config.jitter:
        delay = delay * (0.5 + random.random())
    return delay


def retry_after_seconds(error: Exception) -> float:
    """Honour a server ``Retry-After`` header on HTTP 429, else 0."""
    if isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 429:
        raw = error.response.headers.get("Retry-After")
        try:
            return max(0.0, float(raw)) if raw else 0.0
        except ValueError:
            return 0.0
    return 0.0


def is_retryable_error(error: Exception, config: RetryConfig) -> bool:
    """Check if an error should be retried against the same endpoint"""
    if isinstance(error, config.retryable_exceptions):
        return True

    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in config.retryable_status_codes

    # JSON-RPC error objects surface as exceptions carrying a numeric ``code``
    code = getattr(error, "code", None)
    if isinstance(code, int):
        return code in config.retryable_rpc_codes

    return False
