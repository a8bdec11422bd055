from typing import Dict, List, Optional
import asyncio
import logging

import aiohttp

from core.errors import FetchError, ParseError, RateLimitExceeded, Timeout
from core.types import RiskLevel, SecurityInfo
from data.cache import TTLCache

DEFAULT_RUGCHECK_URL = "https://api.rugcheck.xyz/v1"
TOP_HOLDERS_BUNDLE_PCT = 80.0


def parse_rugcheck_report(mint: str, payload: Dict) -> SecurityInfo:
    """Reduce a RugCheck token report to scam/bundle flags and a risk level"""
    if not isinstance(payload, dict):
        raise ParseError(f"Unexpected RugCheck payload for {mint}")

    is_scam = False
    is_bundle = False
    risk_level = RiskLevel.LOW
    warnings: List[str] = []

    for risk in payload.get("risks") or []:
        name = str(risk.get("name") or "")
        description = str(risk.get("description") or "")
        level = str(risk.get("level") or "").lower()

        if level in ("danger", "critical"):
            is_scam = True
            risk_level = RiskLevel.CRITICAL
        elif level in ("warn", "warning") and risk_level == RiskLevel.LOW:
            risk_level = RiskLevel.MEDIUM

        if "bundle" in name.lower() or "bundl" in description.lower():
            is_bundle = True
        if name:
            warnings.append(name)

    try:
        top_holders_pct = sum(float(h.get("pct", h.get("percentage", 0)) or 0)
                              for h in (payload.get("topHolders") or [])[:10])
    except (TypeError, ValueError, AttributeError) as e:
        raise ParseError(f"Bad topHolders in RugCheck report for {mint}") from e

    if top_holders_pct > TOP_HOLDERS_BUNDLE_PCT:
        is_bundle = True
        if risk_level.rank < RiskLevel.HIGH.rank:
            risk_level = RiskLevel.HIGH

    liquidity_locked = False
    markets = payload.get("markets") or []
    if markets:
        lp = markets[0].get("lp") or {}
        liquidity_locked = bool(lp.get("lpLocked"))
        if liquidity_locked and risk_level == RiskLevel.MEDIUM:
            risk_level = RiskLevel.LOW

    score = payload.get("score")
    return SecurityInfo(
        mint=mint,
        is_scam=is_scam,
        is_bundle=is_bundle,
        risk_level=risk_level,
        rugcheck_score=float(score) / 100 if score is not None else None,
        top_holders_pct=top_holders_pct,
        liquidity_locked=liquidity_locked,
        warnings=tuple(warnings),
    )


class ScamChecker:
    """Token security reports from RugCheck, cached per mint"""

    def __init__(self,
                 base_url: str = DEFAULT_RUGCHECK_URL,
                 timeout_seconds: float = 10,
                 cache: Optional[TTLCache] = None,
                 logger: logging.Logger = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.cache = cache or TTLCache(ttl_seconds=300)
        self.logger = logger or logging.getLogger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def fetch_security_info(self, mint: str) -> SecurityInfo:
        return await self.cache.get_or_fetch(mint, lambda: self._fetch(mint))

    async def _fetch(self, mint: str) -> SecurityInfo:
        await self._ensure_session()
        url = f"{self.base_url}/tokens/{mint}/report"
        try:
            async with self.session.get(url) as response:
                if response.status == 429:
                    raise RateLimitExceeded(f"RugCheck rate limited on {mint}")
                if response.status != 200:
                    # unknown tokens get no report; treat as unverified
                    self.logger.warning(f"RugCheck returned HTTP {response.status} for {mint}")
                    return SecurityInfo(mint=mint)
                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    raise ParseError(f"Invalid RugCheck JSON for {mint}: {str(e)}") from e
        except asyncio.TimeoutError as e:
            raise Timeout(f"RugCheck timed out for {mint}") from e
        except aiohttp.ClientError as e:
            raise FetchError(f"RugCheck request failed for {mint}: {str(e)}") from e

        info = parse_rugcheck_report(mint, payload)
        if info.is_scam:
            self.logger.warning(f"RugCheck flags {mint} as scam: {', '.join(info.warnings)}")
        return info
