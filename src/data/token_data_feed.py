from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
import asyncio
import logging

import aiohttp

from core.errors import FetchError, ParseError, RateLimitExceeded, Timeout
from core.types import MarketSnapshot
from data.cache import TTLCache

DEFAULT_DEXSCREENER_URL = "https://api.dexscreener.com/latest"


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ParseError(f"Not a number: {value!r}") from e


def _float(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError) as e:
        raise ParseError(f"Not a number: {value!r}") from e


def parse_dexscreener_response(mint: str, payload: Dict) -> MarketSnapshot:
    """
    Build a MarketSnapshot from the first pair of a /dex/tokens response.

    DexScreener reports no market cap for many young pairs, so it is
    approximated as twice the pool liquidity.
    """
    if not isinstance(payload, dict):
        raise ParseError(f"Unexpected DexScreener payload for {mint}")

    pairs = payload.get("pairs") or []
    if not pairs:
        raise FetchError(f"No trading pairs found for {mint}")

    pair = pairs[0]
    price = _decimal(pair.get("priceUsd"))
    if not price.is_finite() or price <= 0:
        raise ParseError(f"DexScreener pair for {mint} has no usable price: {pair.get('priceUsd')!r}")
    liquidity = _decimal((pair.get("liquidity") or {}).get("usd"))
    price_change = pair.get("priceChange") or {}
    base_token = pair.get("baseToken") or {}

    return MarketSnapshot(
        mint=mint,
        symbol=base_token.get("symbol") or "UNKNOWN",
        name=base_token.get("name") or "Unknown",
        price_usd=price,
        market_cap=liquidity * 2,
        liquidity_usd=liquidity,
        volume_24h=_decimal((pair.get("volume") or {}).get("h24")),
        price_change_5m=_float(price_change.get("m5")),
        price_change_1h=_float(price_change.get("h1")),
        price_change_24h=_float(price_change.get("h24")),
        dex=pair.get("dexId") or "Unknown",
    )


class TokenDataFeed:
    """Market snapshots from the DexScreener REST API, cached per mint"""

    def __init__(self,
                 base_url: str = DEFAULT_DEXSCREENER_URL,
                 timeout_seconds: float = 10,
                 cache: Optional[TTLCache] = None,
                 logger: logging.Logger = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.cache = cache or TTLCache(ttl_seconds=60)
        self.logger = logger or logging.getLogger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def fetch_market_snapshot(self, mint: str) -> MarketSnapshot:
        return await self.cache.get_or_fetch(mint, lambda: self._fetch(mint))

    async def _fetch(self, mint: str) -> MarketSnapshot:
        await self._ensure_session()
        url = f"{self.base_url}/dex/tokens/{mint}"
        try:
            async with self.session.get(url) as response:
                if response.status == 429:
                    raise RateLimitExceeded(f"DexScreener rate limited on {mint}")
                if response.status != 200:
                    raise FetchError(f"DexScreener HTTP {response.status} for {mint}")
                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    raise ParseError(f"Invalid DexScreener JSON for {mint}: {str(e)}") from e
        except asyncio.TimeoutError as e:
            raise Timeout(f"DexScreener timed out for {mint}") from e
        except aiohttp.ClientError as e:
            raise FetchError(f"DexScreener request failed for {mint}: {str(e)}") from e

        snapshot = parse_dexscreener_response(mint, payload)
        self.logger.debug(f"Fetched {snapshot.symbol} ({mint}): price={snapshot.price_usd} liquidity={snapshot.liquidity_usd}")
        return snapshot
