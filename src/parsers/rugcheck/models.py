"""Pydantic models for Rugcheck.xyz API responses."""

from decimal import Decimal

from pydantic import BaseModel


class RugcheckRisk(BaseModel):
    """Individual risk detected by Rugcheck."""

    name: str
    description: str = ""
    level: str = "info"  # "warn", "danger", "info", "good"
    score: int = 0


class RugcheckReport(BaseModel):
    """Summary report from Rugcheck.xyz.

    score: raw risk total (0 = safest). risk_level: Good / Warning / Danger,
    derived from score unless the provider sends its own level.
    """

    score: int | None = None
    risk_level: str | None = None
    risks: list[RugcheckRisk] = []
    lp_locked: bool = False
    lp_lock_pct: Decimal = Decimal("0")
    mint: str = ""
    token_name: str = ""
    token_symbol: str = ""
