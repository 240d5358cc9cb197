"""
Async JSON-RPC client for the ledger (Base / any EVM chain).

Wraps the handful of read-only methods the leaderboard needs
(``eth_blockNumber``, ``eth_getLogs``, ``eth_getBlockByNumber``, ``eth_call``)
behind one ``httpx.AsyncClient`` with:

- a token-bucket limiter per method family, so unbounded fan-out from the
  leaderboard pipeline stays under the public endpoint's request rate;
- transport retries (timeouts, 429/5xx, JSON-RPC "limit exceeded") with
  exponential backoff against the same endpoint;
- failover across the configured endpoint list once retries are exhausted.

JSON-RPC ``error`` members that are not rate-limit signals (reverts, bad
ranges) raise :class:`RPCResponseError` immediately without failover.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Optional, Sequence, Union

import httpx
from eth_utils import keccak

from config import settings
from utils.logger import chain_logger as logger
from utils.rate_limiter import RateLimiter, family_for_method
from utils.retry import RetryConfig, calculate_delay, is_retryable_error, retry_after_seconds
from utils.validation import address_to_topic

BlockTag = Union[int, str]


# ==================== ERRORS ====================


class ChainRPCError(Exception):
    """Base class for ledger RPC failures."""


class RPCResponseError(ChainRPCError):
    """The endpoint answered with a JSON-RPC ``error`` object."""

    def __init__(self, method: str, code: Optional[int], message: str):
        super().__init__(f"{method} failed: [{code}] {message}")
        self.method = method
        self.code = code
        self.message = message


class RPCTransportError(ChainRPCError):
    """Every configured endpoint failed at the transport level."""


# ==================== ABI HELPERS ====================


def function_selector(signature: str) -> str:
    """4-byte selector for a canonical function signature, e.g. ``balanceOf(address,uint256)``."""
    return "0x" + keccak(text=signature)[:4].hex()


def event_topic(signature: str) -> str:
    """topic0 for a canonical event signature."""
    return "0x" + keccak(text=signature).hex()


def text_hash(text: str) -> str:
    """keccak256 of a UTF-8 string as 0x-prefixed bytes32."""
    return "0x" + keccak(text=text).hex()


def encode_uint(value: int) -> str:
    return format(int(value), "064x")


def encode_address(address: str) -> str:
    return address_to_topic(address)[2:]


def encode_bytes32(value: str) -> str:
    clean = value.lower().replace("0x", "")
    return clean.rjust(64, "0")


def encode_call(selector: str, *words: str) -> str:
    """Concatenate a selector with already-encoded 32-byte static words."""
    return selector + "".join(words)


def decode_words(result_hex: Optional[str]) -> list[int]:
    """Split an ``eth_call`` result into unsigned 256-bit words."""
    clean = str(result_hex or "").lower().replace("0x", "")
    if not clean:
        return []
    return [int(clean[i : i + 64], 16) for i in range(0, len(clean) - 63, 64)]


def decode_uint256(result_hex: Optional[str]) -> int:
    words = decode_words(result_hex)
    if not words:
        raise ValueError(f"Empty eth_call result: {result_hex!r}")
    return words[0]


def hex_to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(str(value), 16)


def to_block_param(block: BlockTag) -> str:
    if isinstance(block, str):
        return block
    return hex(block)


def _exception_text(exc: Exception) -> str:
    """Return a non-empty exception string for structured logging."""
    text = str(exc).strip()
    return text if text else repr(exc)


def _build_rpc_candidates(primary_url: str, fallback_urls: Sequence[str] = ()) -> list[str]:
    """Build de-duplicated RPC endpoints in failover order."""
    urls: list[str] = []
    for raw_url in (primary_url, *fallback_urls):
        url = (raw_url or "").strip().rstrip("/")
        if url and url not in urls:
            urls.append(url)
    return urls


# ==================== CLIENT ====================


class ChainRPC:
    """Read-only JSON-RPC client with rate limiting, retry and failover."""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        fallback_urls: Optional[Sequence[str]] = None,
        *,
        timeout_seconds: Optional[float] = None,
        retry_config: Optional[RetryConfig] = None,
        limiter: Optional[RateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._rpc_urls = _build_rpc_candidates(
            rpc_url if rpc_url is not None else settings.RPC_URL,
            fallback_urls if fallback_urls is not None else settings.FALLBACK_RPC_URLS,
        )
        if not self._rpc_urls:
            raise ValueError("At least one RPC endpoint must be configured")
        timeout = timeout_seconds if timeout_seconds is not None else settings.RPC_TIMEOUT_SECONDS
        self._timeout = httpx.Timeout(timeout, connect=min(5.0, timeout))
        self._retry = retry_config or RetryConfig(
            max_attempts=settings.RPC_MAX_RETRY_ATTEMPTS,
            base_delay=settings.RPC_RETRY_BASE_DELAY,
        )
        self._limiter = limiter or RateLimiter()
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)

    @property
    def endpoints(self) -> list[str]:
        return list(self._rpc_urls)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=32, max_keepalive_connections=16),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "ChainRPC":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # -------------------- transport --------------------

    async def _post(self, endpoint: str, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        response = await self._get_client().post(endpoint, json=payload)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise RPCResponseError(method, None, f"unexpected payload type {type(body).__name__}")
        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise RPCResponseError(method, error.get("code"), str(error.get("message", "")))
            raise RPCResponseError(method, None, str(error))
        return body.get("result")

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """Send one JSON-RPC request; returns the ``result`` member."""
        params = list(params or [])
        family = family_for_method(method)
        last_error: Optional[Exception] = None

        for endpoint in self._rpc_urls:
            for attempt in range(self._retry.max_attempts):
                await self._limiter.acquire(family)
                try:
                    result = await self._post(endpoint, method, params)
                    if endpoint != self._rpc_urls[0]:
                        logger.warning(
                            "Chain RPC failover",
                            method=method,
                            active_endpoint=endpoint,
                        )
                    return result
                except Exception as e:
                    last_error = e
                    if not is_retryable_error(e, self._retry):
                        if isinstance(e, RPCResponseError):
                            raise
                        # Malformed body or unexpected status: try the next endpoint.
                        break
                    if attempt < self._retry.max_attempts - 1:
                        delay = max(calculate_delay(attempt, self._retry), retry_after_seconds(e))
                        logger.debug(
                            "Retrying RPC request",
                            method=method,
                            endpoint=endpoint,
                            attempt=attempt + 1,
                            delay=delay,
                            error=_exception_text(e),
                        )
                        await asyncio.sleep(delay)

            logger.warning(
                "Chain RPC endpoint failed",
                method=method,
                endpoint=endpoint,
                error_type=type(last_error).__name__ if last_error else None,
                error=_exception_text(last_error) if last_error else None,
            )

        raise RPCTransportError(
            f"{method} failed across {len(self._rpc_urls)} endpoint(s): "
            f"{_exception_text(last_error) if last_error else 'no response'}"
        ) from last_error

    # -------------------- methods --------------------

    async def block_number(self) -> int:
        return hex_to_int(await self.request("eth_blockNumber"))

    async def get_logs(
        self,
        *,
        address: str,
        topics: Sequence[Optional[str]],
        from_block: BlockTag,
        to_block: BlockTag,
    ) -> list[dict]:
        params = {
            "address": address,
            "fromBlock": to_block_param(from_block),
            "toBlock": to_block_param(to_block),
            "topics": list(topics),
        }
        result = await self.request("eth_getLogs", [params])
        if not isinstance(result, list):
            raise RPCResponseError(
                "eth_getLogs", None, f"unexpected result type {type(result).__name__}"
            )
        return result

    async def get_block(self, block_number: BlockTag) -> dict:
        result = await self.request("eth_getBlockByNumber", [to_block_param(block_number), False])
        if not isinstance(result, dict):
            raise RPCResponseError(
                "eth_getBlockByNumber", None, f"block {block_number} not found"
            )
        return result

    async def call(self, to: str, data: str, block: BlockTag = "latest") -> str:
        result = await self.request("eth_call", [{"to": to, "data": data}, to_block_param(block)])
        return str(result or "0x")
