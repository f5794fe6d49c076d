"""Scan orchestrator: one pipeline for token scans and wallet scans.

Pipeline:
  validate -> result cache -> (single flight) resolve deployer -> token set
  (persistent cache or paginated discovery) -> bulk status -> metadata ->
  best-effort fan-out (funding, balance, price, rugcheck, last activity) ->
  funding/cluster -> death classification -> risk signals -> score ->
  assemble -> write caches, scan log.

Core-path steps (deployer resolution, cold discovery) run under the upstream
timeout and fail the scan; everything else goes through ``attempt`` and
degrades to a default. Only ScanError ever leaves ``scan``.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from src.parsers.helius.client import HeliusClient
from src.parsers.helius.exceptions import HeliusError
from src.parsers.rugcheck.models import RugcheckReport
from src.scanner.cache import ResultCache, SingleFlight, cache_key
from src.scanner.cluster import WalletNetwork, analyze_funding, with_network_risk
from src.scanner.death_classifier import DeathClassifier
from src.scanner.discovery import (
    DeployerResolution,
    FundingSource,
    HeliusDiscovery,
    TokenMetadata,
)
from src.scanner.errors import ScanError, ScanErrorCode
from src.scanner.market import MarketFeeds, TokenStatus
from src.scanner.metrics import ScanMetrics, metrics as default_metrics
from src.scanner.models import (
    DeployerInfo,
    DeployerMethod,
    DeployerScan,
    DeployerToken,
    FundingInfo,
    RugcheckRiskItem,
    RugcheckSummary,
    ScanConfidence,
    ScanEvidence,
    ScanSubject,
    ScanUsage,
    SubjectKind,
    TokenInfo,
    TokenMarketData,
)
from src.scanner.outcome import attempt
from src.scanner.reputation import DEFAULT_SCORING, ScoringConfig, calculate_reputation
from src.scanner.risk_signals import (
    TokenRiskCheck,
    build_risk_signals,
    build_token_risks,
    check_token_risks,
    deploy_velocity,
    is_burner,
)
from src.scanner.token_cache import DeployerHistory, DeployerTokenCache, record_deploy_times
from src.scanner.usage import ScanLog, UsageTracker
from src.scanner.validate import is_valid_solana_address, sanitize_string
from src.utils.concurrency import chunked, gather_bounded

T = TypeVar("T")

SOLSCAN_ACCOUNT_URL = "https://solscan.io/account/{}"
SOLSCAN_TX_URL = "https://solscan.io/tx/{}"
DEXSCREENER_URL = "https://dexscreener.com/solana/{}"
MAX_METADATA_LOOKUPS = 50
WALLET_SCAN_NAME = "Wallet Scan"
WALLET_SCAN_SYMBOL = "N/A"


@dataclass(frozen=True)
class ScanOptions:
    """What a scan includes and how long its result is cached."""

    cache_ttl: float = 1800.0
    include_risk_signals: bool = True
    include_market_data: bool = True
    classify_deaths: bool = True


@dataclass
class TokenSet:
    """Deployer's tokens before status verification."""

    known: dict[str, DeployerToken]  # address -> last known state
    to_check: list[str]  # addresses needing a DexScreener status lookup
    deploy_times: dict[str, datetime] = field(default_factory=dict)
    may_be_incomplete: bool = False
    method: DeployerMethod = DeployerMethod.ENHANCED_API
    from_cache: bool = False


def _days_between(earlier: datetime, later: datetime) -> float:
    return max(0.0, (later - earlier).total_seconds() / 86400)


def apply_status(token: DeployerToken, status: TokenStatus | None) -> DeployerToken:
    """Fold a fresh DexScreener status into a token. No status -> unverified."""
    if status is None:
        return token.model_copy(update={"alive": None})
    update: dict = {
        "alive": status.alive,
        "liquidity": status.liquidity,
        "price_usd": status.price_usd,
        "price_change_24h": status.price_change_24h,
        "volume_24h": status.volume_24h,
        "fdv": status.fdv,
    }
    if status.created_at is not None:
        update["created_at"] = status.created_at
    if token.name == "Unknown" and status.name:
        update["name"] = sanitize_string(status.name, "Unknown")
    if token.symbol == "???" and status.symbol:
        update["symbol"] = sanitize_string(status.symbol, "???")
    return token.model_copy(update=update)


def summarize_rugcheck(report: RugcheckReport | None) -> RugcheckSummary | None:
    if report is None:
        return None
    return RugcheckSummary(
        risk_level=report.risk_level,
        risk_score=report.score,
        risks=[
            RugcheckRiskItem(name=r.name, level=r.level, description=r.description, score=r.score)
            for r in report.risks
        ],
        lp_locked=report.lp_locked,
        lp_lock_pct=float(report.lp_lock_pct),
    )


@dataclass
class TokenStats:
    total: int
    verified: int
    dead: int
    unverified: int
    death_rate: float
    rug_rate: float
    avg_lifespan_days: float


def token_stats(tokens: list[DeployerToken], now: datetime) -> TokenStats:
    """Death rate over verified tokens only; rug rate presumes unverified dead."""
    total = len(tokens)
    dead = sum(1 for t in tokens if t.alive is False)
    unverified = sum(1 for t in tokens if t.alive is None)
    verified = total - unverified
    ages = [_days_between(t.created_at, now) for t in tokens if t.created_at is not None]
    return TokenStats(
        total=total,
        verified=verified,
        dead=dead,
        unverified=unverified,
        death_rate=dead / verified if verified else 0.0,
        rug_rate=(dead + unverified) / total if total else 0.0,
        avg_lifespan_days=sum(ages) / len(ages) if ages else 0.0,
    )


class ScanOrchestrator:
    def __init__(
        self,
        *,
        discovery: HeliusDiscovery,
        market: MarketFeeds,
        result_cache: ResultCache,
        token_cache: DeployerTokenCache | None = None,
        network: WalletNetwork | None = None,
        death_classifier: DeathClassifier | None = None,
        helius: HeliusClient | None = None,
        usage: UsageTracker | None = None,
        scan_log: ScanLog | None = None,
        scan_metrics: ScanMetrics = default_metrics,
        scoring: ScoringConfig = DEFAULT_SCORING,
        token_options: ScanOptions | None = None,
        wallet_options: ScanOptions | None = None,
        upstream_timeout: float = 60.0,
        enrichment_timeout: float = 20.0,
        discovery_max_tokens: int = 5000,
        metadata_batch_size: int = 5,
        cluster_max_wallets: int = 10,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._discovery = discovery
        self._market = market
        self._cache = result_cache
        self._token_cache = token_cache
        self._network = network or WalletNetwork()
        self._classifier = death_classifier
        self._helius = helius
        self._usage = usage
        self._scan_log = scan_log
        self._metrics = scan_metrics
        self._scoring = scoring
        self._token_options = token_options or ScanOptions()
        self._wallet_options = wallet_options or ScanOptions(
            cache_ttl=300.0, include_risk_signals=False, include_market_data=False
        )
        self._upstream_timeout = upstream_timeout
        self._enrichment_timeout = enrichment_timeout
        self._max_tokens = discovery_max_tokens
        self._metadata_batch_size = metadata_batch_size
        self._cluster_max_wallets = cluster_max_wallets
        self._clock = clock
        self._flight = SingleFlight()

    def options_for(self, kind: SubjectKind) -> ScanOptions:
        return self._token_options if kind == SubjectKind.TOKEN else self._wallet_options

    # --- public entry point ---

    async def scan(
        self,
        subject: ScanSubject,
        *,
        caller: str | None = None,
        source: str = "api",
        options: ScanOptions | None = None,
    ) -> DeployerScan:
        """Scan a token (resolving its deployer) or a wallet directly."""
        options = options or self.options_for(subject.kind)
        address = subject.address

        if not is_valid_solana_address(address):
            self._metrics.record_error(ScanErrorCode.INVALID_ADDRESS.value)
            raise ScanError(ScanErrorCode.INVALID_ADDRESS)

        key = cache_key(subject.kind.value, address)
        cached = await self._cache.get(key)
        if cached is not None:
            self._metrics.record_cache_hit()
            logger.debug(f"[SCAN] Cache hit for {address[:12]} ({subject.kind.value})")
            return await self._attach_usage(cached, caller)

        if self._flight.in_flight(key):
            self._metrics.record_shared_flight()

        try:
            result = await self._flight.do(
                key, lambda: self._run(subject, options, key, caller, source)
            )
        except ScanError as e:
            self._metrics.record_error(e.code.value)
            raise
        except (HeliusError, TimeoutError) as e:
            logger.warning(f"[SCAN] Upstream unavailable for {address[:12]}: {e}")
            self._metrics.record_error(ScanErrorCode.UPSTREAM_UNAVAILABLE.value)
            raise ScanError(ScanErrorCode.UPSTREAM_UNAVAILABLE) from e
        except Exception as e:
            logger.exception(f"[SCAN] Scan failed for {address[:12]}: {e}")
            self._metrics.record_error(ScanErrorCode.INTERNAL.value)
            raise ScanError(ScanErrorCode.INTERNAL) from e

        return await self._attach_usage(result, caller)

    async def _attach_usage(self, scan: DeployerScan, caller: str | None) -> DeployerScan:
        """Usage is per request and never part of the cached payload."""
        if self._usage is None or caller is None:
            return scan
        try:
            usage = await self._usage.record(caller)
        except SQLAlchemyError as e:
            logger.warning(f"[SCAN] Usage record failed for {caller[:24]}: {e}")
            usage = ScanUsage()
        return scan.model_copy(update={"usage": usage})

    async def _core(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._upstream_timeout)

    async def _best_effort(self, step: str, awaitable: Awaitable[T], default: T) -> T:
        outcome = await attempt(
            step, awaitable, self._enrichment_timeout, self._metrics.record_degraded
        )
        return outcome.unwrap_or(default)

    # --- pipeline ---

    async def _run(
        self,
        subject: ScanSubject,
        options: ScanOptions,
        key: str,
        caller: str | None,
        source: str,
    ) -> DeployerScan:
        started = time.monotonic()
        now = self._clock()
        address = subject.address
        is_token = subject.kind == SubjectKind.TOKEN

        resolution: DeployerResolution | None = None
        if is_token:
            resolution = await self._core(self._discovery.resolve_deployer(address))
            if resolution is None:
                raise ScanError(ScanErrorCode.NOT_FOUND)
            deployer = resolution.wallet
        else:
            deployer = address
        logger.info(f"[SCAN] {subject.kind.value} {address[:12]} -> deployer {deployer[:12]}")

        token_set = await self._load_token_set(deployer, now)
        if is_token and address != deployer and address not in token_set.known:
            token_set.known[address] = DeployerToken(
                address=address, dexscreener_url=DEXSCREENER_URL.format(address)
            )
            token_set.to_check.insert(0, address)
            if resolution is not None and resolution.created_at is not None:
                token_set.deploy_times.setdefault(address, resolution.created_at)

        # A failed status lookup leaves tokens unverified, never dead
        status_outcome = await attempt(
            "token_status",
            self._market.bulk_token_status(token_set.to_check),
            self._upstream_timeout,
            self._metrics.record_degraded,
        )
        statuses: dict[str, TokenStatus] = status_outcome.unwrap_or({})
        checked = set(token_set.to_check)
        tokens = [
            apply_status(token, statuses.get(addr)) if addr in checked else token
            for addr, token in token_set.known.items()
        ]
        tokens = await self._fill_metadata(tokens, priority=address)

        # Best-effort fan-out
        want_market = is_token and options.include_market_data
        funding_source, sol_balance, live_price, report, last_activity = await asyncio.gather(
            self._best_effort("funding_source", self._discovery.get_funding_source(deployer), None),
            self._best_effort("native_balance", self._discovery.get_native_balance(deployer), None),
            self._best_effort("price", self._market.get_price(address), None)
            if want_market else _none(),
            self._best_effort("rugcheck", self._market.get_risk_report(address), None)
            if want_market else _none(),
            self._best_effort("last_activity", self._discovery.get_last_activity(deployer), None),
        )

        stats = token_stats(tokens, now)
        funding, cluster_checked = await self._analyze_funding(deployer, funding_source, stats)

        if options.classify_deaths and self._classifier is not None:
            tokens = await self._classify_deaths(deployer, tokens, funding_source, now)
        funding = with_network_risk(funding, self._network, deployer)

        deploy_times = sorted(token_set.deploy_times.values()) or sorted(
            t.created_at for t in tokens if t.created_at is not None
        )
        velocity = deploy_velocity(deploy_times, stats.total)
        burner = is_burner(
            funding_source.timestamp if funding_source else None,
            deploy_times[0] if deploy_times else None,
        )

        risk_check: TokenRiskCheck | None = None
        if is_token and options.include_risk_signals and self._helius is not None:
            risk_check = await self._best_effort(
                "risk_signals", check_token_risks(self._helius, address, deployer), None
            )
        signals = build_risk_signals(risk_check, velocity=velocity, burner=burner)

        reputation = calculate_reputation(
            death_rate=stats.death_rate,
            rug_rate=stats.rug_rate,
            token_count=stats.total,
            verified_count=stats.verified,
            avg_lifespan_days=stats.avg_lifespan_days,
            cluster_size=funding.other_deployers_funded,
            risk_signals=signals,
            config=self._scoring,
        )

        scanned = next((t for t in tokens if t.address == address), None)
        if is_token:
            token_info = TokenInfo(
                address=address,
                name=scanned.name if scanned else "Unknown",
                symbol=scanned.symbol if scanned else "???",
            )
        else:
            token_info = TokenInfo(address=address, name=WALLET_SCAN_NAME, symbol=WALLET_SCAN_SYMBOL)

        pair_times = [t.created_at for t in tokens if t.created_at is not None]
        first_seen = min(deploy_times[:1] + pair_times, default=None)

        result = DeployerScan(
            token=token_info,
            deployer=DeployerInfo(
                wallet=deployer,
                sol_balance=sol_balance,
                tokens_created=stats.total,
                tokens_dead=stats.dead,
                tokens_unverified=stats.unverified,
                tokens_assumed_dead=stats.unverified,
                rug_rate=round(stats.rug_rate, 3),
                death_rate=round(stats.death_rate, 3),
                reputation_score=reputation.score,
                deploy_velocity=velocity,
                deployer_is_burner=bool(burner),
                first_seen=first_seen,
                last_seen=last_activity,
                tokens=tokens,
            ),
            funding=funding,
            verdict=reputation.verdict,
            score_breakdown=reputation.breakdown,
            token_risks=build_token_risks(
                risk_check,
                lp_locked=report.lp_locked if report else None,
                lp_lock_pct=float(report.lp_lock_pct) if report else None,
            ),
            market_data=self._market_data(scanned, statuses.get(address), live_price)
            if want_market else None,
            rugcheck=summarize_rugcheck(report),
            evidence=ScanEvidence(
                deployer_url=SOLSCAN_ACCOUNT_URL.format(deployer),
                funding_source_url=SOLSCAN_ACCOUNT_URL.format(funding_source.wallet)
                if funding_source else None,
                creation_tx_url=SOLSCAN_TX_URL.format(resolution.creation_signature)
                if resolution and resolution.creation_signature else None,
            ),
            confidence=ScanConfidence(
                tokens_verified=stats.verified,
                tokens_unverified=stats.unverified,
                deployer_method=resolution.method if resolution else token_set.method,
                cluster_checked=cluster_checked,
                token_risks_checked=risk_check is not None and risk_check.mint_info is not None,
                tokens_may_be_incomplete=token_set.may_be_incomplete,
            ),
            scanned_at=now,
        )

        await self._cache.set(key, result, options.cache_ttl)
        await self._persist(deployer, tokens, token_set, result, caller, source, now)

        latency_ms = (time.monotonic() - started) * 1000
        self._metrics.record_scan(subject.kind.value, latency_ms, result.verdict.value)
        logger.info(
            f"[SCAN] {address[:12]}: {result.verdict.value} score={reputation.score} "
            f"tokens={stats.total} dead={stats.dead} unverified={stats.unverified} "
            f"cluster={funding.other_deployers_funded} ({latency_ms:.0f}ms)"
        )
        return result

    async def _load_token_set(self, deployer: str, now: datetime) -> TokenSet:
        """Warm: cached rows plus the newest discovery page. Cold: full discovery."""
        records = []
        if self._token_cache is not None:
            try:
                records = await self._token_cache.get(deployer)
            except SQLAlchemyError as e:
                logger.warning(f"[SCAN] Token cache read failed for {deployer[:12]}: {e}")

        if records:
            fresh, stale = self._token_cache.split_stale(records, now)
            known = {t.address: t for t in fresh + stale}
            to_check = [t.address for t in stale]
            recent = await self._best_effort(
                "recent_discovery",
                self._discovery.list_deployer_tokens(
                    deployer, self._max_tokens, max_pages=1, rpc_fallback=False
                ),
                None,
            )
            # Cached creation times keep the first deploy and the full span
            deploy_times = record_deploy_times(records)
            if recent is not None:
                for mint, created in recent.created_at.items():
                    deploy_times.setdefault(mint, created)
                for mint in recent.tokens:
                    if mint not in known:
                        known[mint] = DeployerToken(
                            address=mint, dexscreener_url=DEXSCREENER_URL.format(mint)
                        )
                        to_check.append(mint)
            history = DeployerHistory()
            try:
                history = await self._token_cache.get_history(deployer)
            except SQLAlchemyError as e:
                logger.warning(f"[SCAN] Discovery history read failed for {deployer[:12]}: {e}")
            logger.info(
                f"[SCAN] Warm token cache for {deployer[:12]}: {len(known)} tokens, "
                f"{len(to_check)} to re-check"
            )
            return TokenSet(
                known=known,
                to_check=to_check,
                deploy_times=deploy_times,
                may_be_incomplete=history.may_be_incomplete,
                method=history.method,
                from_cache=True,
            )

        discovery = await self._core(
            self._discovery.list_deployer_tokens(deployer, self._max_tokens)
        )
        if discovery.limit_reached:
            logger.warning(
                f"[SCAN] Discovery bound hit for {deployer[:12]} "
                f"({len(discovery.tokens)} tokens), history may be incomplete"
            )
        known = {
            mint: DeployerToken(address=mint, dexscreener_url=DEXSCREENER_URL.format(mint))
            for mint in discovery.tokens
        }
        return TokenSet(
            known=known,
            to_check=list(known),
            deploy_times=dict(discovery.created_at),
            may_be_incomplete=discovery.limit_reached,
            method=discovery.method,
        )

    async def _fill_metadata(
        self, tokens: list[DeployerToken], priority: str
    ) -> list[DeployerToken]:
        """On-chain name/symbol for tokens DexScreener didn't name, in small batches."""
        missing = [t.address for t in tokens if t.name == "Unknown" or t.symbol == "???"]
        if priority in missing:
            missing.remove(priority)
            missing.insert(0, priority)
        missing = missing[:MAX_METADATA_LOOKUPS]
        if not missing:
            return tokens

        async def _lookup(mint: str) -> TokenMetadata | None:
            return await self._best_effort(
                "metadata", self._discovery.get_token_metadata(mint), None
            )

        found: dict[str, TokenMetadata] = {}
        for batch in chunked(missing, self._metadata_batch_size):
            results = await gather_bounded(batch, _lookup, self._metadata_batch_size)
            for mint, meta in zip(batch, results):
                if meta is not None:
                    found[mint] = meta

        filled = []
        for token in tokens:
            meta = found.get(token.address)
            if meta is None:
                filled.append(token)
                continue
            update = {}
            if token.name == "Unknown":
                update["name"] = meta.name
            if token.symbol == "???":
                update["symbol"] = meta.symbol
            filled.append(token.model_copy(update=update))
        return filled

    async def _analyze_funding(
        self, deployer: str, funding_source: FundingSource | None, stats: TokenStats
    ) -> tuple[FundingInfo, bool]:
        fallback = (
            FundingInfo(
                source_wallet=funding_source.wallet if funding_source else None,
                cluster_total_tokens=stats.total,
                cluster_total_dead=stats.dead,
            ),
            False,
        )
        return await self._best_effort(
            "cluster",
            analyze_funding(
                self._discovery,
                deployer,
                funding_source,
                tokens_total=stats.total,
                tokens_dead=stats.dead,
                max_wallets=self._cluster_max_wallets,
            ),
            fallback,
        )

    async def _classify_deaths(
        self,
        deployer: str,
        tokens: list[DeployerToken],
        funding_source: FundingSource | None,
        now: datetime,
    ) -> list[DeployerToken]:
        dead = [t for t in tokens if t.alive is False]
        if not dead:
            return tokens
        # Per-token timeouts live in the classifier; this only bounds the whole step
        outcome = await attempt(
            "death_classification",
            self._classifier.classify_deaths(
                deployer,
                dead,
                funding_source.wallet if funding_source else None,
                now=now,
            ),
            self._upstream_timeout,
            self._metrics.record_degraded,
        )
        classified = outcome.unwrap_or({})
        return [
            t.model_copy(update={
                "death_type": classified[t.address].type,
                "death_evidence": classified[t.address].evidence,
            })
            if t.address in classified else t
            for t in tokens
        ]

    def _market_data(
        self,
        token: DeployerToken | None,
        status: TokenStatus | None,
        live_price: float | None,
    ) -> TokenMarketData | None:
        if token is None and status is None and live_price is None:
            return None
        price = live_price
        if price is None and token is not None:
            price = token.price_usd
        return TokenMarketData(
            price_usd=price,
            price_change_24h=token.price_change_24h if token else None,
            volume_24h=token.volume_24h if token else None,
            fdv=token.fdv if token else None,
            market_cap=status.market_cap if status else None,
            socials=status.socials if status else None,
        )

    async def _persist(
        self,
        deployer: str,
        tokens: list[DeployerToken],
        token_set: TokenSet,
        result: DeployerScan,
        caller: str | None,
        source: str,
        now: datetime,
    ) -> None:
        """Token cache upsert and scan log. Storage failures never fail a scan."""
        if self._token_cache is not None:
            history = None
            if not token_set.from_cache:
                history = DeployerHistory(
                    may_be_incomplete=token_set.may_be_incomplete, method=token_set.method
                )
            try:
                await self._token_cache.upsert(
                    deployer,
                    tokens,
                    checked=set(token_set.to_check),
                    now=now,
                    deploy_times=token_set.deploy_times,
                    history=history,
                )
            except SQLAlchemyError as e:
                logger.warning(f"[SCAN] Token cache write failed for {deployer[:12]}: {e}")
                self._metrics.record_degraded("token_cache_write")
        if self._scan_log is not None:
            try:
                await self._scan_log.append(
                    address=result.token.address,
                    verdict=result.verdict.value,
                    score=result.deployer.reputation_score,
                    source=source,
                    caller=caller,
                )
            except SQLAlchemyError as e:
                logger.warning(f"[SCAN] Scan log append failed: {e}")
                self._metrics.record_degraded("scan_log")


async def _none() -> None:
    return None
