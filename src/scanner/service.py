"""Wires the scan object graph from settings.

One ScanService per process: upstream clients, caches, the wallet network
and the orchestrator share its lifetime. ``close()`` releases HTTP clients.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import Settings
from src.db.redis import get_redis
from src.parsers.dexscreener.client import DexScreenerClient
from src.parsers.helius.client import HeliusClient
from src.parsers.jupiter.client import JupiterClient
from src.parsers.rugcheck.client import RugcheckClient
from src.scanner.cache import MemoryResultCache, RedisResultCache, ResultCache
from src.scanner.cluster import WalletNetwork
from src.scanner.death_classifier import DeathClassifier
from src.scanner.discovery import HeliusDiscovery
from src.scanner.market import MarketFeeds
from src.scanner.models import DeployerScan, ScanSubject, SubjectKind
from src.scanner.orchestrator import ScanOptions, ScanOrchestrator
from src.scanner.reputation import ScoringConfig
from src.scanner.token_cache import DeployerTokenCache
from src.scanner.usage import DatabaseScanLog, DatabaseUsageTracker


class ScanService:
    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        result_cache: ResultCache,
    ) -> None:
        self.settings = settings
        self.helius = HeliusClient(
            api_key=settings.helius_api_key,
            rpc_url=settings.helius_rpc_url,
            max_rps=settings.helius_max_rps,
        )
        self.dexscreener = DexScreenerClient(max_rps=settings.dexscreener_max_rps)
        self.jupiter = (
            JupiterClient(api_key=settings.jupiter_api_key, max_rps=settings.jupiter_max_rps)
            if settings.enable_jupiter else None
        )
        self.rugcheck = (
            RugcheckClient(max_rps=settings.rugcheck_max_rps) if settings.enable_rugcheck else None
        )

        self.discovery = HeliusDiscovery(self.helius)
        self.market = MarketFeeds(
            self.dexscreener,
            self.jupiter,
            self.rugcheck,
            max_concurrency=settings.status_max_concurrency,
        )
        self.network = WalletNetwork()
        self.usage = DatabaseUsageTracker(
            session_factory,
            guest_daily_limit=settings.guest_daily_limit,
            wallet_daily_limit=settings.wallet_daily_limit,
            admin_callers=settings.admin_wallet_set,
        )
        classifier = (
            DeathClassifier(
                self.helius,
                self.discovery,
                self.network,
                max_tokens=settings.death_classify_max_tokens,
                token_timeout=settings.enrichment_timeout_sec,
            )
            if settings.enable_death_classification else None
        )

        self.orchestrator = ScanOrchestrator(
            discovery=self.discovery,
            market=self.market,
            result_cache=result_cache,
            token_cache=DeployerTokenCache(session_factory, settings.token_stale_hours),
            network=self.network,
            death_classifier=classifier,
            helius=self.helius,
            usage=self.usage,
            scan_log=DatabaseScanLog(session_factory),
            scoring=ScoringConfig(prior_weight=settings.scoring_prior_weight),
            token_options=ScanOptions(
                cache_ttl=settings.scan_cache_ttl_sec,
                include_risk_signals=settings.enable_risk_signals,
                classify_deaths=settings.enable_death_classification,
            ),
            wallet_options=ScanOptions(
                cache_ttl=settings.legacy_scan_cache_ttl_sec,
                include_risk_signals=False,
                include_market_data=False,
                classify_deaths=settings.enable_death_classification,
            ),
            upstream_timeout=settings.upstream_timeout_sec,
            enrichment_timeout=settings.enrichment_timeout_sec,
            discovery_max_tokens=settings.discovery_max_tokens,
            metadata_batch_size=settings.metadata_batch_size,
            cluster_max_wallets=settings.cluster_max_funded_wallets,
        )

    async def scan_token(
        self, address: str, *, caller: str | None = None, source: str = "api"
    ) -> DeployerScan:
        return await self.orchestrator.scan(
            ScanSubject(address=address, kind=SubjectKind.TOKEN), caller=caller, source=source
        )

    async def scan_wallet(
        self, address: str, *, caller: str | None = None, source: str = "api"
    ) -> DeployerScan:
        return await self.orchestrator.scan(
            ScanSubject(address=address, kind=SubjectKind.WALLET), caller=caller, source=source
        )

    async def close(self) -> None:
        await self.helius.close()
        await self.dexscreener.close()
        if self.jupiter:
            await self.jupiter.close()
        if self.rugcheck:
            await self.rugcheck.close()
        logger.info("[SCAN] Upstream clients closed")


async def build_result_cache(settings: Settings) -> ResultCache:
    if settings.result_cache_backend == "redis":
        logger.info("[CACHE] Using redis result cache")
        return RedisResultCache(await get_redis())
    return MemoryResultCache(maxsize=settings.scan_cache_max_entries)


async def create_scan_service(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> ScanService:
    return ScanService(settings, session_factory, await build_result_cache(settings))
