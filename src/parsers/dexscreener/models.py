"""DexScreener pair schema (``/tokens/v1/solana/{addresses}``).

Field names follow the API's camelCase; unknown fields are dropped.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class _DexModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class DexScreenerToken(_DexModel):
    address: str
    name: str | None = None
    symbol: str | None = None


class DexScreenerVolume(_DexModel):
    h1: Decimal | None = None
    h24: Decimal | None = None


class DexScreenerPriceChange(_DexModel):
    h1: Decimal | None = None
    h24: Decimal | None = None


class DexScreenerLiquidity(_DexModel):
    usd: Decimal | None = None


class DexScreenerWebsite(_DexModel):
    url: str = ""


class DexScreenerSocial(_DexModel):
    type: str = ""  # "twitter", "telegram", ...
    url: str = ""


class DexScreenerInfo(_DexModel):
    websites: list[DexScreenerWebsite] = []
    socials: list[DexScreenerSocial] = []


class DexScreenerPair(_DexModel):
    """One trading pair. A token with no pairs at all is unverified."""

    chainId: str = ""
    dexId: str = ""
    pairAddress: str = ""
    baseToken: DexScreenerToken | None = None
    priceUsd: str | None = None
    priceChange: DexScreenerPriceChange | None = None
    volume: DexScreenerVolume | None = None
    liquidity: DexScreenerLiquidity | None = None
    fdv: Decimal | None = None
    marketCap: Decimal | None = None
    pairCreatedAt: int | None = None  # unix ms
    info: DexScreenerInfo | None = None
