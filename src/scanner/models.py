"""Scan result models.

Every record is a frozen pydantic model: a DeployerScan, once assembled, is
shared read-only through the result cache. Enrichment steps produce new
instances with ``model_copy(update=...)``.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

FROZEN = ConfigDict(frozen=True)


class SubjectKind(StrEnum):
    TOKEN = "token"  # resolve the deployer first
    WALLET = "wallet"  # scan the wallet directly


class Verdict(StrEnum):
    CLEAN = "CLEAN"
    SUSPICIOUS = "SUSPICIOUS"
    SERIAL_RUGGER = "SERIAL_RUGGER"


class DeathType(StrEnum):
    NATURAL = "natural"
    LIKELY_RUG = "likely_rug"
    DISTRIBUTED_RUG = "distributed_rug"


class NetworkRisk(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DeployerMethod(StrEnum):
    ENHANCED_API = "enhanced_api"
    RPC_FALLBACK = "rpc_fallback"


class ScanSubject(BaseModel):
    model_config = FROZEN

    address: str
    kind: SubjectKind


class DeathEvidence(BaseModel):
    """Why a dead token was classified the way it was."""

    model_config = FROZEN

    deployer_sold: bool = False
    deployer_holdings_pct: float | None = None
    peak_liquidity: float = 0.0
    lifespan_hours: int | None = None  # token age, not exact time-to-death
    had_real_buyers: bool = False
    initial_transfer_to: str | None = None
    initial_transfer_is_dex: bool = False
    initial_transfer_is_associated: bool = False
    fanout_wallets: int = 0  # distinct non-DEX recipients in the first hours


class DeployerToken(BaseModel):
    model_config = FROZEN

    address: str
    name: str = "Unknown"
    symbol: str = "???"
    alive: bool | None = None  # None = status could not be verified
    liquidity: float = 0.0
    price_usd: float | None = None
    price_change_24h: float | None = None
    volume_24h: float | None = None
    fdv: float | None = None
    created_at: datetime | None = None
    death_type: DeathType | None = None
    death_evidence: DeathEvidence | None = None
    dexscreener_url: str = ""


class TokenInfo(BaseModel):
    model_config = FROZEN

    address: str
    name: str
    symbol: str


class DeployerInfo(BaseModel):
    model_config = FROZEN

    wallet: str
    sol_balance: float | None = None
    tokens_created: int = 0
    tokens_dead: int = 0
    tokens_unverified: int = 0
    tokens_assumed_dead: int = 0
    rug_rate: float = 0.0  # legacy: unverified counted as dead
    death_rate: float = 0.0  # verified tokens only
    reputation_score: int = 0
    deploy_velocity: float | None = None  # tokens per day
    deployer_is_burner: bool = False
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    tokens: list[DeployerToken] = []


class FundingInfo(BaseModel):
    model_config = FROZEN

    source_wallet: str | None = None
    other_deployers_funded: int = 0  # cluster size
    cluster_total_tokens: int = 0
    cluster_total_dead: int = 0
    from_cex: bool = False
    cex_name: str | None = None
    network_risk: NetworkRisk = NetworkRisk.LOW
    network_wallets: int = 0


class RiskSignals(BaseModel):
    """Discrete flags feeding the score deductions. None = not checked."""

    model_config = FROZEN

    mint_authority_active: bool | None = None
    freeze_authority_active: bool | None = None
    top_holder_pct: float | None = None
    bundle_detected: bool | None = None
    deployer_holdings_pct: float | None = None
    deploy_velocity: float | None = None
    is_burner: bool | None = None


class TokenRisks(BaseModel):
    model_config = FROZEN

    mint_authority: str | None = None
    freeze_authority: str | None = None
    deployer_holdings_pct: float | None = None
    top_holder_pct: float | None = None
    bundle_detected: bool | None = None
    lp_locked: bool | None = None
    lp_lock_pct: float | None = None


class TokenSocials(BaseModel):
    model_config = FROZEN

    website: str | None = None
    twitter: str | None = None
    telegram: str | None = None


class TokenMarketData(BaseModel):
    model_config = FROZEN

    price_usd: float | None = None
    price_change_24h: float | None = None
    volume_24h: float | None = None
    fdv: float | None = None
    market_cap: float | None = None
    socials: TokenSocials | None = None


class RugcheckRiskItem(BaseModel):
    model_config = FROZEN

    name: str
    level: str
    description: str = ""
    score: int = 0


class RugcheckSummary(BaseModel):
    model_config = FROZEN

    risk_level: str | None = None
    risk_score: int | None = None
    risks: list[RugcheckRiskItem] = []
    lp_locked: bool = False
    lp_lock_pct: float = 0.0


class ScoreBreakdown(BaseModel):
    """Additive score components. risk_deductions is a positive magnitude."""

    model_config = FROZEN

    death_rate_component: float
    token_count_component: float
    lifespan_component: float
    cluster_component: float
    risk_deductions: float = 0.0
    details: list[str] = []

    @property
    def components_total(self) -> float:
        return (
            self.death_rate_component
            + self.token_count_component
            + self.lifespan_component
            + self.cluster_component
        )


class ScanEvidence(BaseModel):
    model_config = FROZEN

    deployer_url: str
    funding_source_url: str | None = None
    creation_tx_url: str | None = None


class ScanConfidence(BaseModel):
    model_config = FROZEN

    tokens_verified: int = 0
    tokens_unverified: int = 0
    deployer_method: DeployerMethod = DeployerMethod.ENHANCED_API
    cluster_checked: bool = False
    token_risks_checked: bool = False
    tokens_may_be_incomplete: bool = False


class ScanUsage(BaseModel):
    """Per-request quota snapshot. Never cached with the scan."""

    model_config = FROZEN

    scans_used: int = 0
    scans_limit: int = 0
    scans_remaining: int = 0


class DeployerScan(BaseModel):
    model_config = FROZEN

    token: TokenInfo
    deployer: DeployerInfo
    funding: FundingInfo
    verdict: Verdict
    score_breakdown: ScoreBreakdown
    token_risks: TokenRisks | None = None
    market_data: TokenMarketData | None = None
    rugcheck: RugcheckSummary | None = None
    evidence: ScanEvidence
    confidence: ScanConfidence
    usage: ScanUsage = Field(default_factory=ScanUsage)
    scanned_at: datetime
