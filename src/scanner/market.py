"""Market data adapter: DexScreener liveness, Jupiter price, Rugcheck report.

A token is alive when its pairs hold >= $100 total liquidity or traded in the
last 24h. Tokens DexScreener returns no pairs for are *unverified* and are
left out of the status map rather than reported dead.

Per-feed TTL caches keep repeat scans of the same deployer cheap.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal

import httpx
from cachetools import TTLCache
from loguru import logger
from pydantic import BaseModel

from src.parsers.dexscreener.client import MAX_BATCH, DexScreenerClient
from src.parsers.dexscreener.models import DexScreenerPair
from src.parsers.jupiter.client import JupiterClient
from src.parsers.rugcheck.client import RugcheckClient
from src.parsers.rugcheck.models import RugcheckReport
from src.scanner.models import TokenSocials
from src.utils.concurrency import chunked, gather_bounded

ALIVE_LIQUIDITY_USD = 100.0
STATUS_CACHE_TTL = 7200
PRICE_CACHE_TTL = 300
REPORT_CACHE_TTL = 1800


class TokenStatus(BaseModel):
    alive: bool
    liquidity: float = 0.0
    volume_24h: float = 0.0
    price_usd: float | None = None
    price_change_24h: float | None = None
    fdv: float | None = None
    market_cap: float | None = None
    name: str = ""
    symbol: str = ""
    created_at: datetime | None = None  # earliest pair creation
    socials: TokenSocials | None = None


def _f(value: Decimal | str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_socials(pair: DexScreenerPair) -> TokenSocials | None:
    info = pair.info
    if info is None:
        return None
    website = info.websites[0].url if info.websites and info.websites[0].url else None
    twitter = telegram = None
    for social in info.socials:
        if social.type == "twitter" and social.url:
            twitter = social.url
        elif social.type == "telegram" and social.url:
            telegram = social.url
    if not (website or twitter or telegram):
        return None
    return TokenSocials(website=website, twitter=twitter, telegram=telegram)


def status_from_pairs(pairs: list[DexScreenerPair]) -> TokenStatus:
    """Aggregate every pair of one token. Price fields come from the deepest pair."""
    liquidity = sum(_f(p.liquidity.usd) or 0.0 for p in pairs if p.liquidity)
    volume = sum(_f(p.volume.h24) or 0.0 for p in pairs if p.volume)
    best = max(pairs, key=lambda p: _f(p.liquidity.usd if p.liquidity else None) or 0.0)
    created = [p.pairCreatedAt for p in pairs if p.pairCreatedAt]

    return TokenStatus(
        alive=liquidity >= ALIVE_LIQUIDITY_USD or volume > 0,
        liquidity=liquidity,
        volume_24h=volume,
        price_usd=_f(best.priceUsd),
        price_change_24h=_f(best.priceChange.h24) if best.priceChange else None,
        fdv=_f(best.fdv),
        market_cap=_f(best.marketCap),
        name=(best.baseToken.name or "") if best.baseToken else "",
        symbol=(best.baseToken.symbol or "") if best.baseToken else "",
        created_at=datetime.fromtimestamp(min(created) / 1000, tz=UTC) if created else None,
        socials=extract_socials(best),
    )


class MarketFeeds:
    def __init__(
        self,
        dexscreener: DexScreenerClient,
        jupiter: JupiterClient | None = None,
        rugcheck: RugcheckClient | None = None,
        *,
        max_concurrency: int = 5,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._dex = dexscreener
        self._jupiter = jupiter
        self._rugcheck = rugcheck
        self._max_concurrency = max_concurrency
        self._status_cache: TTLCache = TTLCache(maxsize=50_000, ttl=STATUS_CACHE_TTL, timer=timer)
        self._price_cache: TTLCache = TTLCache(maxsize=5_000, ttl=PRICE_CACHE_TTL, timer=timer)
        self._report_cache: TTLCache = TTLCache(maxsize=5_000, ttl=REPORT_CACHE_TTL, timer=timer)

    async def _fetch_batch(self, batch: list[str]) -> dict[str, TokenStatus]:
        try:
            pairs = await self._dex.get_tokens_batch(batch)
        except (httpx.HTTPError, ValueError) as e:
            # Batch stays unverified
            logger.warning(f"[DEXSCREENER] Batch of {len(batch)} failed: {type(e).__name__}: {e}")
            return {}

        by_token: dict[str, list[DexScreenerPair]] = {}
        for pair in pairs:
            if pair.baseToken and pair.baseToken.address:
                by_token.setdefault(pair.baseToken.address, []).append(pair)

        statuses: dict[str, TokenStatus] = {}
        for addr in batch:
            token_pairs = by_token.get(addr)
            if token_pairs:
                statuses[addr] = status_from_pairs(token_pairs)
        return statuses

    async def bulk_token_status(self, addresses: list[str]) -> dict[str, TokenStatus]:
        """Status per address, 30 addresses per request, bounded concurrency.

        Addresses missing from the result are unverified.
        """
        results: dict[str, TokenStatus] = {}
        uncached: list[str] = []
        for addr in dict.fromkeys(addresses):
            cached = self._status_cache.get(addr)
            if cached is not None:
                results[addr] = cached
            else:
                uncached.append(addr)

        batches = chunked(uncached, MAX_BATCH)
        for statuses in await gather_bounded(batches, self._fetch_batch, self._max_concurrency):
            for addr, status in statuses.items():
                self._status_cache[addr] = status
                results[addr] = status

        logger.debug(
            f"[DEXSCREENER] Status for {len(results)}/{len(set(addresses))} tokens "
            f"({len(batches)} requests)"
        )
        return results

    async def get_price(self, mint: str) -> float | None:
        if self._jupiter is None:
            return None
        if mint in self._price_cache:
            return self._price_cache[mint]
        price = await self._jupiter.get_price(mint)
        value = _f(price.price) if price is not None else None
        if value is not None:
            self._price_cache[mint] = value
        return value

    async def get_risk_report(self, mint: str) -> RugcheckReport | None:
        if self._rugcheck is None:
            return None
        if mint in self._report_cache:
            return self._report_cache[mint]
        report = await self._rugcheck.get_token_report(mint)
        if report is not None:
            self._report_cache[mint] = report
        return report
