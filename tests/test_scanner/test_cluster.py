"""Tests for funding/cluster analysis and the wallet network."""

from unittest.mock import AsyncMock

import pytest

from src.parsers.helius.exceptions import HeliusUnavailableError
from src.scanner.cluster import (
    KNOWN_EXCHANGE_WALLETS,
    WalletNetwork,
    analyze_cluster,
    analyze_funding,
    with_network_risk,
)
from src.scanner.discovery import FundingSource
from src.scanner.models import FundingInfo, NetworkRisk

DEPLOYER = "DeployerWallet1111111111111111111111111111"
FUNDER = "FunderWallet11111111111111111111111111111"
BINANCE = next(w for w, name in KNOWN_EXCHANGE_WALLETS.items() if name == "Binance")


def _discovery(funded: list[str], deployers: set[str]) -> AsyncMock:
    discovery = AsyncMock()
    discovery.list_wallets_funded_by = AsyncMock(return_value=funded)
    discovery.is_token_deployer = AsyncMock(side_effect=lambda w: w in deployers)
    return discovery


class TestAnalyzeCluster:
    @pytest.mark.asyncio
    async def test_counts_sibling_deployers(self) -> None:
        discovery = _discovery(["W1", "W2", "W3"], {"W1", "W3"})
        result = await analyze_cluster(discovery, FUNDER, DEPLOYER)
        assert result.deployer_count == 2
        assert result.checked_wallets == 3
        discovery.list_wallets_funded_by.assert_awaited_once_with(FUNDER, exclude=DEPLOYER)

    @pytest.mark.asyncio
    async def test_samples_at_most_max_wallets(self) -> None:
        funded = [f"W{i}" for i in range(25)]
        discovery = _discovery(funded, set(funded))
        result = await analyze_cluster(discovery, FUNDER, DEPLOYER, max_wallets=10)
        assert result.deployer_count == 10
        assert discovery.is_token_deployer.await_count == 10

    @pytest.mark.asyncio
    async def test_wallet_check_failure_counts_as_non_deployer(self) -> None:
        discovery = _discovery(["W1", "W2"], set())
        discovery.is_token_deployer = AsyncMock(
            side_effect=[True, HeliusUnavailableError("down")]
        )
        result = await analyze_cluster(discovery, FUNDER, DEPLOYER)
        assert result.deployer_count == 1


class TestAnalyzeFunding:
    @pytest.mark.asyncio
    async def test_no_funding_source(self) -> None:
        funding, checked = await analyze_funding(
            AsyncMock(), DEPLOYER, None, tokens_total=5, tokens_dead=2
        )
        assert funding.source_wallet is None
        assert funding.other_deployers_funded == 0
        assert funding.cluster_total_tokens == 5
        assert funding.cluster_total_dead == 2
        assert not checked

    @pytest.mark.asyncio
    async def test_exchange_funded_not_clustered(self) -> None:
        discovery = _discovery(["W1"], {"W1"})
        funding, checked = await analyze_funding(
            discovery, DEPLOYER, FundingSource(wallet=BINANCE), tokens_total=1, tokens_dead=0
        )
        assert funding.from_cex
        assert funding.cex_name == "Binance"
        assert funding.other_deployers_funded == 0
        assert checked
        discovery.list_wallets_funded_by.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cluster_size_reported(self) -> None:
        discovery = _discovery(["W1", "W2"], {"W1", "W2"})
        funding, checked = await analyze_funding(
            discovery, DEPLOYER, FundingSource(wallet=FUNDER), tokens_total=3, tokens_dead=3
        )
        assert funding.source_wallet == FUNDER
        assert funding.other_deployers_funded == 2
        assert not funding.from_cex
        assert checked


class TestWalletNetwork:
    def test_risk_tiers(self) -> None:
        network = WalletNetwork()
        assert network.risk_tier(DEPLOYER) == NetworkRisk.LOW
        network.record(DEPLOYER, "R1")
        assert network.risk_tier(DEPLOYER) == NetworkRisk.MEDIUM
        for wallet in ("R2", "R3", "R3", "R4"):
            network.record(DEPLOYER, wallet)
        assert network.wallets_for(DEPLOYER) == {"R1", "R2", "R3", "R4"}
        assert network.risk_tier(DEPLOYER) == NetworkRisk.HIGH

    def test_ignores_self_and_exchanges(self) -> None:
        network = WalletNetwork()
        network.record(DEPLOYER, DEPLOYER)
        network.record(DEPLOYER, BINANCE)
        network.record(DEPLOYER, "")
        assert network.wallets_for(DEPLOYER) == set()

    def test_bounded(self) -> None:
        network = WalletNetwork(max_deployers=2)
        for deployer in ("D1", "D2", "D3"):
            network.record(deployer, "R")
        assert network.wallets_for("D1") == set()
        assert network.wallets_for("D3") == {"R"}

    def test_with_network_risk(self) -> None:
        network = WalletNetwork()
        network.record(DEPLOYER, "R1")
        funding = with_network_risk(FundingInfo(source_wallet=FUNDER), network, DEPLOYER)
        assert funding.network_risk == NetworkRisk.MEDIUM
        assert funding.network_wallets == 1
        assert funding.source_wallet == FUNDER
