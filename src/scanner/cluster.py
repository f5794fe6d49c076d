"""Funding & cluster analysis: who funded the deployer, and who else they funded.

One hop only: the wallet behind the deployer's first incoming SOL. From that
funder we enumerate other wallets it sent >0.01 SOL to, sample up to 10 and
count how many launched Pump.fun tokens themselves (cluster size).

Exchange hot wallets fund thousands of unrelated users, so an exchange-funded
deployer is reported as such and not clustered.

The WalletNetwork accumulator collects non-DEX wallets that received a dead
token's supply right after launch (recorded by the death classifier). Its
size per deployer gives the network risk tier.
"""

from dataclasses import dataclass

from cachetools import LRUCache
from loguru import logger

from src.scanner.discovery import FundingSource, HeliusDiscovery
from src.scanner.models import FundingInfo, NetworkRisk
from src.utils.concurrency import gather_bounded

DEPLOYER_CHECK_CONCURRENCY = 3
HIGH_RISK_NETWORK_WALLETS = 4
MEDIUM_RISK_NETWORK_WALLETS = 1

# Known exchange hot wallets (Solana)
KNOWN_EXCHANGE_WALLETS: dict[str, str] = {
    "5tzFkiKscXHK5ZXCGbXZxdw7gTjjD1mBwuoFbhUvuAi9": "Binance",
    "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM": "Binance",
    "2ojv9BAiHUrvsm9gxDe7fJSzbNZSJcxZvf8dqmWGHG8S": "Binance",
    "GJRs4FwHtemZ5ZE9x3FNvJ8TMwitKTh21yxdRPqn7npE": "Coinbase",
    "H8sMJSCQxfKiFTCfDR3DUMLPwcRbM61LGFJ8N4dK3WjS": "Coinbase",
    "2AQdpHJ2JpcEgPiATUXjQxA8QmafFegfQwSLWSprPicm": "Coinbase",
    "5VCwKtCXgCJ6kit5FybXjvFnPe2FKEV4NMF4gD5MiSyn": "OKX",
    "JBGUGVkCYBe24KMTGE2TvoEU1EBJHvTGPDqnNJKbLXiW": "OKX",
    "AC5RDfQFmDS1deWZos921JfqscXdByf2BqcRbZES4VVk": "Bybit",
    "FWznbcNXWQuHTawe9RxvQ2LdCENssh12dsznf4RiouN5": "Kraken",
    "CnXhMid6m8FKM9u7o95qXdZtaXq3yJLcQB3Uq2hTj2sM": "Kraken",
}


def exchange_name(wallet: str | None) -> str | None:
    if wallet is None:
        return None
    return KNOWN_EXCHANGE_WALLETS.get(wallet)


class WalletNetwork:
    """Deployer -> wallets that received dead-token supply. Bounded LRU."""

    def __init__(self, max_deployers: int = 10_000) -> None:
        self._wallets: LRUCache = LRUCache(maxsize=max_deployers)

    def record(self, deployer: str, wallet: str) -> None:
        if not wallet or wallet == deployer or wallet in KNOWN_EXCHANGE_WALLETS:
            return
        wallets = self._wallets.get(deployer)
        if wallets is None:
            wallets = set()
            self._wallets[deployer] = wallets
        wallets.add(wallet)

    def wallets_for(self, deployer: str) -> set[str]:
        return set(self._wallets.get(deployer, ()))

    def risk_tier(self, deployer: str) -> NetworkRisk:
        count = len(self._wallets.get(deployer, ()))
        if count >= HIGH_RISK_NETWORK_WALLETS:
            return NetworkRisk.HIGH
        if count >= MEDIUM_RISK_NETWORK_WALLETS:
            return NetworkRisk.MEDIUM
        return NetworkRisk.LOW


@dataclass
class ClusterResult:
    funded_wallets: list[str]
    deployer_count: int
    checked_wallets: int


async def analyze_cluster(
    discovery: HeliusDiscovery,
    funder: str,
    deployer: str,
    *,
    max_wallets: int = 10,
) -> ClusterResult:
    """Count sibling deployers among wallets funded by `funder`."""
    funded = await discovery.list_wallets_funded_by(funder, exclude=deployer)
    sample = funded[:max_wallets]
    if not sample:
        return ClusterResult(funded_wallets=funded, deployer_count=0, checked_wallets=0)

    async def _check(wallet: str) -> bool:
        try:
            return await discovery.is_token_deployer(wallet)
        except Exception as e:
            logger.debug(f"[CLUSTER] Deployer check failed for {wallet[:12]}: {e}")
            return False

    results = await gather_bounded(sample, _check, DEPLOYER_CHECK_CONCURRENCY)
    deployer_count = sum(1 for is_deployer in results if is_deployer)
    logger.debug(
        f"[CLUSTER] Funder {funder[:12]}: {len(funded)} funded wallets, "
        f"{deployer_count}/{len(sample)} sampled are deployers"
    )
    return ClusterResult(
        funded_wallets=funded, deployer_count=deployer_count, checked_wallets=len(sample)
    )


async def analyze_funding(
    discovery: HeliusDiscovery,
    deployer: str,
    funding_source: FundingSource | None,
    *,
    tokens_total: int,
    tokens_dead: int,
    max_wallets: int = 10,
) -> tuple[FundingInfo, bool]:
    """FundingInfo for the deployer plus whether the cluster was actually checked.

    Cluster totals cover the scanned deployer's own tokens.
    """
    base = FundingInfo(
        source_wallet=funding_source.wallet if funding_source else None,
        cluster_total_tokens=tokens_total,
        cluster_total_dead=tokens_dead,
    )
    if funding_source is None:
        return base, False

    cex = exchange_name(funding_source.wallet)
    if cex is not None:
        logger.info(f"[CLUSTER] Deployer {deployer[:12]} funded by {cex}, skipping cluster")
        return base.model_copy(update={"from_cex": True, "cex_name": cex}), True

    cluster = await analyze_cluster(
        discovery, funding_source.wallet, deployer, max_wallets=max_wallets
    )
    return base.model_copy(update={"other_deployers_funded": cluster.deployer_count}), True


def with_network_risk(funding: FundingInfo, network: WalletNetwork, deployer: str) -> FundingInfo:
    return funding.model_copy(update={
        "network_risk": network.risk_tier(deployer),
        "network_wallets": len(network.wallets_for(deployer)),
    })
