"""Tests for dead-token classification."""

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.parsers.helius.models import (
    HeliusMintInfo,
    HeliusTokenTransfer,
    HeliusTransaction,
)
from src.scanner.cluster import WalletNetwork
from src.scanner.death_classifier import DeathClassifier, decide
from src.scanner.discovery import FundingSource
from src.scanner.models import DeathEvidence, DeathType, DeployerToken

DEPLOYER = "DeployerWallet1111111111111111111111111111"
FUNDER = "FunderWallet11111111111111111111111111111"
NOW = datetime(2025, 6, 1, tzinfo=UTC)
CREATED = NOW - timedelta(days=10)


def _transfer_tx(mint: str, to: str, at: datetime, program: str = "") -> HeliusTransaction:
    return HeliusTransaction(
        signature=f"sig-{to}",
        timestamp=int(at.timestamp()),
        program_ids=[program] if program else [],
        token_transfers=[
            HeliusTokenTransfer(
                from_user_account=DEPLOYER, to_user_account=to, mint=mint,
                token_amount=Decimal("1000"),
            )
        ],
    )


def _classifier(
    history: list[HeliusTransaction],
    *,
    held: Decimal | None = Decimal("0"),
    network: WalletNetwork | None = None,
    max_tokens: int = 20,
    token_timeout: float = 10.0,
) -> tuple[DeathClassifier, AsyncMock, AsyncMock]:
    helius = AsyncMock()
    helius.get_mint_info = AsyncMock(
        side_effect=lambda mint: HeliusMintInfo(mint=mint, supply=Decimal("1000000"), decimals=0)
    )
    helius.get_token_balance_for_owner = AsyncMock(return_value=held)
    discovery = AsyncMock()
    discovery.get_early_history = AsyncMock(return_value=history)
    discovery.get_funding_source = AsyncMock(return_value=None)
    classifier = DeathClassifier(
        helius, discovery, network or WalletNetwork(),
        max_tokens=max_tokens, token_timeout=token_timeout,
    )
    return classifier, helius, discovery


def _dead(address: str, liquidity: float = 600.0, created_at: datetime | None = CREATED):
    return DeployerToken(address=address, alive=False, liquidity=liquidity, created_at=created_at)


class TestDecide:
    def test_not_sold_is_natural(self) -> None:
        evidence = DeathEvidence(deployer_sold=False, fanout_wallets=5, had_real_buyers=True)
        assert decide(evidence) == DeathType.NATURAL

    def test_fanout_is_distributed(self) -> None:
        assert decide(DeathEvidence(deployer_sold=True, fanout_wallets=2)) == DeathType.DISTRIBUTED_RUG

    def test_associated_recipient_is_distributed(self) -> None:
        evidence = DeathEvidence(deployer_sold=True, initial_transfer_is_associated=True)
        assert decide(evidence) == DeathType.DISTRIBUTED_RUG

    def test_single_recipient_is_likely_rug(self) -> None:
        assert decide(DeathEvidence(deployer_sold=True, fanout_wallets=1)) == DeathType.LIKELY_RUG

    def test_quick_dump_is_likely_rug(self) -> None:
        assert decide(DeathEvidence(deployer_sold=True, lifespan_hours=12)) == DeathType.LIKELY_RUG

    def test_sold_old_token_without_buyers_is_natural(self) -> None:
        assert decide(DeathEvidence(deployer_sold=True, lifespan_hours=500)) == DeathType.NATURAL


class TestClassifyDeaths:
    @pytest.mark.asyncio
    async def test_fanout_to_wallets_recorded_in_network(self) -> None:
        history = [
            _transfer_tx("MintA", "R1", CREATED + timedelta(minutes=1)),
            _transfer_tx("MintA", "R2", CREATED + timedelta(minutes=5)),
            _transfer_tx("MintA", "R3", CREATED + timedelta(hours=6)),  # outside window
        ]
        network = WalletNetwork()
        classifier, _, _ = _classifier(history, network=network)

        results = await classifier.classify_deaths(DEPLOYER, [_dead("MintA")], FUNDER, now=NOW)

        result = results["MintA"]
        assert result.type == DeathType.DISTRIBUTED_RUG
        assert result.evidence.deployer_sold
        assert result.evidence.fanout_wallets == 2
        assert result.evidence.initial_transfer_to == "R1"
        assert result.evidence.lifespan_hours == 240
        assert network.wallets_for(DEPLOYER) == {"R1", "R2"}

    @pytest.mark.asyncio
    async def test_dex_transfers_not_counted(self) -> None:
        raydium = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
        history = [_transfer_tx("MintA", "Pool", CREATED + timedelta(minutes=1), raydium)]
        network = WalletNetwork()
        classifier, _, discovery = _classifier(history, network=network)

        results = await classifier.classify_deaths(DEPLOYER, [_dead("MintA")], FUNDER, now=NOW)

        evidence = results["MintA"].evidence
        assert evidence.initial_transfer_is_dex
        assert evidence.fanout_wallets == 0
        # Had real buyers and sold
        assert results["MintA"].type == DeathType.LIKELY_RUG
        assert network.wallets_for(DEPLOYER) == set()
        discovery.get_funding_source.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recipient_sharing_funder_is_distributed(self) -> None:
        history = [_transfer_tx("MintA", "R1", CREATED + timedelta(minutes=1))]
        classifier, _, discovery = _classifier(history)
        discovery.get_funding_source = AsyncMock(return_value=FundingSource(wallet=FUNDER))

        results = await classifier.classify_deaths(DEPLOYER, [_dead("MintA")], FUNDER, now=NOW)

        assert results["MintA"].evidence.initial_transfer_is_associated
        assert results["MintA"].type == DeathType.DISTRIBUTED_RUG

    @pytest.mark.asyncio
    async def test_deployer_still_holding_is_natural(self) -> None:
        history = [_transfer_tx("MintA", "R1", CREATED + timedelta(minutes=1))]
        classifier, _, _ = _classifier(history, held=Decimal("500000"))

        results = await classifier.classify_deaths(DEPLOYER, [_dead("MintA")], FUNDER, now=NOW)

        assert not results["MintA"].evidence.deployer_sold
        assert results["MintA"].evidence.deployer_holdings_pct == 50.0
        assert results["MintA"].type == DeathType.NATURAL

    @pytest.mark.asyncio
    async def test_tokens_without_market_history_are_natural(self) -> None:
        classifier, helius, discovery = _classifier([])
        token = _dead("MintA", liquidity=0.0, created_at=None)

        results = await classifier.classify_deaths(DEPLOYER, [token], FUNDER, now=NOW)

        assert results["MintA"].type == DeathType.NATURAL
        helius.get_mint_info.assert_not_awaited()
        discovery.get_early_history.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cap_keeps_highest_liquidity(self) -> None:
        classifier, helius, _ = _classifier([], max_tokens=2)
        tokens = [_dead(f"Mint{i}", liquidity=float(i * 100)) for i in range(1, 5)]

        results = await classifier.classify_deaths(DEPLOYER, tokens, FUNDER, now=NOW)

        assert set(results) == {"Mint1", "Mint2", "Mint3", "Mint4"}
        inspected = {call.args[0] for call in helius.get_mint_info.await_args_list}
        assert inspected == {"Mint3", "Mint4"}

    @pytest.mark.asyncio
    async def test_history_failure_still_classifies(self) -> None:
        classifier, _, discovery = _classifier([])
        discovery.get_early_history = AsyncMock(side_effect=RuntimeError("boom"))

        results = await classifier.classify_deaths(DEPLOYER, [_dead("MintA")], FUNDER, now=NOW)

        # Sold with real buyers, no distribution evidence
        assert results["MintA"].type == DeathType.LIKELY_RUG

    @pytest.mark.asyncio
    async def test_slow_token_times_out_alone(self) -> None:
        helius = AsyncMock()

        async def _mint_info(mint: str) -> HeliusMintInfo:
            if mint == "SlowMint":
                await asyncio.sleep(10)
            return HeliusMintInfo(mint=mint, supply=Decimal("1000000"), decimals=0)

        helius.get_mint_info = AsyncMock(side_effect=_mint_info)
        helius.get_token_balance_for_owner = AsyncMock(return_value=Decimal("0"))
        discovery = AsyncMock()
        discovery.get_early_history = AsyncMock(return_value=[])
        classifier = DeathClassifier(helius, discovery, WalletNetwork(), token_timeout=0.05)

        results = await classifier.classify_deaths(
            DEPLOYER, [_dead("SlowMint"), _dead("FastMint")], FUNDER, now=NOW
        )

        assert "SlowMint" not in results
        assert results["FastMint"].type == DeathType.LIKELY_RUG

    @pytest.mark.asyncio
    async def test_slow_history_still_classifies(self) -> None:
        classifier, _, discovery = _classifier([], token_timeout=0.05)

        async def _hang(*args, **kwargs):
            await asyncio.sleep(10)

        discovery.get_early_history = AsyncMock(side_effect=_hang)

        results = await classifier.classify_deaths(DEPLOYER, [_dead("MintA")], FUNDER, now=NOW)

        assert results["MintA"].type == DeathType.LIKELY_RUG
