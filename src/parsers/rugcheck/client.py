"""Rugcheck.xyz client: contract risk summary and LP lock for the scanned token.

Best-effort feed. Not found, non-200 and exhausted retries return None.
"""

import asyncio
from decimal import Decimal

import httpx
from loguru import logger

from src.parsers.rate_limiter import RateLimiter
from src.parsers.rugcheck.models import RugcheckReport, RugcheckRisk

BASE_URL = "https://api.rugcheck.xyz/v1"
MAX_RETRIES = 2
RETRY_DELAYS = [2.0, 5.0]

# Risk level bands on the raw score
GOOD_MAX_SCORE = 300
WARNING_MAX_SCORE = 700


class RugcheckClient:
    """Async client for Rugcheck.xyz (free, no API key)."""

    def __init__(self, max_rps: float = 2.0, timeout: float = 15.0) -> None:
        self._rate_limiter = RateLimiter(max_rps)
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def get_token_report(self, mint: str) -> RugcheckReport | None:
        url = f"{BASE_URL}/tokens/{mint}/report/summary"

        for attempt in range(MAX_RETRIES + 1):
            delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
            await self._rate_limiter.acquire()
            try:
                resp = await self._client.get(url)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt == MAX_RETRIES:
                    logger.warning(f"[RUGCHECK] Report for {mint[:12]} failed after retries: {e}")
                    return None
                logger.debug(f"[RUGCHECK] {type(e).__name__}, retry in {delay}s")
                await asyncio.sleep(delay)
                continue

            if resp.status_code == 429:
                logger.debug(f"[RUGCHECK] Rate limited, backing off {delay}s")
                self._rate_limiter.backoff(delay)
                continue
            if resp.status_code != 200:
                # 404: token unknown to Rugcheck
                logger.debug(f"[RUGCHECK] HTTP {resp.status_code} for {mint[:12]}")
                return None

            try:
                data = resp.json()
            except ValueError:
                logger.debug(f"[RUGCHECK] Non-JSON body for {mint[:12]}")
                return None
            return _parse_report(data, mint) if isinstance(data, dict) else None

        return None


def _risk_level(data: dict) -> str | None:
    token_meta = data.get("tokenMeta") or {}
    if token_meta.get("riskLevel"):
        return token_meta["riskLevel"]
    if data.get("riskLevel"):
        return data["riskLevel"]
    score = data.get("score")
    if not isinstance(score, (int, float)):
        return None
    if score <= GOOD_MAX_SCORE:
        return "Good"
    if score <= WARNING_MAX_SCORE:
        return "Warning"
    return "Danger"


def _parse_report(data: dict, mint: str) -> RugcheckReport:
    """Parse raw JSON into RugcheckReport."""
    risks = []
    for risk_data in data.get("risks") or []:
        risks.append(RugcheckRisk(
            name=risk_data.get("name") or "unknown",
            description=risk_data.get("description") or "",
            level=risk_data.get("level") or "info",
            score=risk_data.get("score") or 0,
        ))

    # LP lock: best market lock %, else a "good" LP-lock risk entry
    lp_lock_pct = Decimal("0")
    for market in data.get("markets") or []:
        pct = (market.get("lp") or {}).get("lpLockedPct")
        if pct:
            lp_lock_pct = max(lp_lock_pct, Decimal(str(pct)))
    lp_locked = lp_lock_pct > 0
    if not lp_locked:
        lp_locked = any(
            "lp" in r.name.lower() and "lock" in r.name.lower() and r.level == "good"
            for r in risks
        )

    score = data.get("score")
    token_meta = data.get("tokenMeta") or {}
    return RugcheckReport(
        score=int(score) if isinstance(score, (int, float)) else None,
        risk_level=_risk_level(data),
        risks=risks,
        lp_locked=lp_locked,
        lp_lock_pct=round(lp_lock_pct, 2),
        mint=mint,
        token_name=token_meta.get("name", ""),
        token_symbol=token_meta.get("symbol", ""),
    )
