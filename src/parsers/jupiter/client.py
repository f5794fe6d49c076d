"""Jupiter Price API client: live USD price of the scanned token.

Best-effort feed. Any failure returns None and the scan falls back to the
DexScreener pair price.
"""

import asyncio

import httpx
from loguru import logger

from src.parsers.jupiter.models import JupiterPrice
from src.parsers.rate_limiter import RateLimiter

BASE_URL = "https://api.jup.ag/price/v2"
MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]


class JupiterClient:
    """Async client for Jupiter pricing (free tier: 1 RPS, key optional)."""

    def __init__(self, api_key: str = "", max_rps: float = 1.0, timeout: float = 5.0) -> None:
        self._rate_limiter = RateLimiter(max_rps)
        headers = {"x-api-key": api_key} if api_key else {}
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers)

    async def close(self) -> None:
        await self._client.aclose()

    async def get_price(self, mint: str) -> JupiterPrice | None:
        params = {"ids": mint, "showExtraInfo": "true"}

        for attempt in range(MAX_RETRIES + 1):
            delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
            await self._rate_limiter.acquire()
            try:
                resp = await self._client.get(BASE_URL, params=params)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt == MAX_RETRIES:
                    logger.warning(f"[JUPITER] Price for {mint[:12]} failed after retries: {e}")
                    return None
                logger.debug(f"[JUPITER] {type(e).__name__}, retry in {delay}s")
                await asyncio.sleep(delay)
                continue

            if resp.status_code == 429:
                logger.debug(f"[JUPITER] Rate limited, backing off {delay}s")
                self._rate_limiter.backoff(delay)
                continue
            if resp.status_code != 200:
                logger.debug(f"[JUPITER] HTTP {resp.status_code} for {mint[:12]}")
                return None

            try:
                data = resp.json()
            except ValueError:
                logger.debug(f"[JUPITER] Non-JSON body for {mint[:12]}")
                return None
            return JupiterPrice.from_response(data, mint) if isinstance(data, dict) else None

        return None
