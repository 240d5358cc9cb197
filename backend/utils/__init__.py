from .logger import setup_logging, get_logger, leaderboard_logger, chain_logger, api_logger
from .retry import RetryConfig, calculate_delay, is_retryable_error
from .rate_limiter import RateLimiter, family_for_method
from .validation import (
    ZERO_ADDRESS,
    validate_eth_address,
    normalize_address,
    is_zero_address,
)

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "leaderboard_logger",
    "chain_logger",
    "api_logger",

    # Retry
    "RetryConfig",
    "calculate_delay",
    "is_retryable_error",

    # Rate Limiter
    "RateLimiter",
    "family_for_method",

    # Validation
    "ZERO_ADDRESS",
    "validate_eth_address",
    "normalize_address",
    "is_zero_address",
]
