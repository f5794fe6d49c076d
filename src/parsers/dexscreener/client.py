"""DexScreener client: batched pair lookups used to decide token liveness.

Errors propagate (``httpx.HTTPError``, ``ValueError`` for a bad body); the
market layer turns a failed batch into unverified tokens.
"""

import asyncio

import httpx
from loguru import logger
from pydantic import ValidationError

from src.parsers.dexscreener.models import DexScreenerPair
from src.parsers.rate_limiter import RateLimiter

BASE_URL = "https://api.dexscreener.com"
MAX_RETRIES = 3
RETRY_DELAYS = [1.0, 2.0, 4.0]
MAX_BATCH = 30


def _retry_after(value: str | None) -> float:
    try:
        return max(0.0, float(value)) if value else 0.0
    except ValueError:
        return 0.0


class DexScreenerClient:
    """Async REST client for the public DexScreener API (no auth)."""

    def __init__(self, max_rps: float = 4.0, timeout: float = 10.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )
        self._rate_limiter = RateLimiter(max_rps)

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str) -> httpx.Response:
        """GET with retry on 429 and connection errors; other statuses raise."""
        attempt = 0
        while True:
            delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
            await self._rate_limiter.acquire()
            try:
                response = await self._client.get(path)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt >= MAX_RETRIES:
                    raise
                logger.debug(f"[DEXSCREENER] {type(e).__name__}, retrying in {delay}s")
                await asyncio.sleep(delay)
                attempt += 1
                continue

            if response.status_code == 429 and attempt < MAX_RETRIES:
                wait = max(delay, _retry_after(response.headers.get("Retry-After")))
                logger.debug(f"[DEXSCREENER] 429 rate limited, backing off {wait}s")
                self._rate_limiter.backoff(wait)
                attempt += 1
                continue

            response.raise_for_status()
            return response

    async def get_tokens_batch(self, addresses: list[str]) -> list[DexScreenerPair]:
        """All Solana pairs for up to 30 token addresses in one request.

        Malformed pairs are skipped so one bad entry doesn't unverify a batch.
        """
        batch = list(dict.fromkeys(addresses))[:MAX_BATCH]
        if not batch:
            return []
        response = await self._get(f"/tokens/v1/solana/{','.join(batch)}")
        data = response.json()
        if not isinstance(data, list):
            return []

        pairs: list[DexScreenerPair] = []
        for raw in data:
            try:
                pairs.append(DexScreenerPair.model_validate(raw))
            except ValidationError as e:
                logger.debug(f"[DEXSCREENER] Skipping malformed pair ({e.error_count()} errors)")
        return pairs
