"""Tests for token and deployer risk signals."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.parsers.helius.exceptions import HeliusUnavailableError
from src.parsers.helius.models import (
    HeliusMintInfo,
    HeliusNativeTransfer,
    HeliusTokenAccountBalance,
    HeliusTransaction,
)
from src.scanner.risk_signals import (
    BundledBuyResult,
    TokenRiskCheck,
    build_risk_signals,
    build_token_risks,
    check_token_risks,
    deploy_velocity,
    detect_bundled_buys,
    is_burner,
)

CREATOR = "CreatorWallet111111111111111111111111111111"
MINT = "MintAddress11111111111111111111111111111pump"
T0 = datetime(2025, 3, 1, tzinfo=UTC)


def _tx(sig: str, slot: int, payer: str, funds: list[str] | None = None, **kw) -> HeliusTransaction:
    return HeliusTransaction(
        signature=sig,
        slot=slot,
        fee_payer=payer,
        native_transfers=[
            HeliusNativeTransfer(from_user_account=CREATOR, to_user_account=w, amount=50_000_000)
            for w in funds or []
        ],
        **kw,
    )


def _helius(txs: list[HeliusTransaction]) -> AsyncMock:
    helius = AsyncMock()
    helius.get_enhanced_transactions = AsyncMock(return_value=txs)
    return helius


class TestBundledBuys:
    @pytest.mark.asyncio
    async def test_creator_funded_majority_is_bundled(self) -> None:
        helius = _helius([
            _tx("create", 100, CREATOR, funds=["B1", "B2"]),
            _tx("buy1", 100, "B1"),
            _tx("buy2", 101, "B2"),
            _tx("buy3", 101, "B3"),
            _tx("late", 140, "B4"),
        ])
        result = await detect_bundled_buys(helius, MINT, CREATOR)
        assert result.first_block_buyers == 3
        assert result.funded_by_creator == 2
        assert result.bundled_pct == pytest.approx(66.7)
        assert result.is_bundled
        helius.get_enhanced_transactions.assert_awaited_once_with(MINT, limit=30, sort_order="asc")

    @pytest.mark.asyncio
    async def test_half_funded_is_not_bundled(self) -> None:
        helius = _helius([
            _tx("create", 100, CREATOR, funds=["B1"]),
            _tx("buy1", 100, "B1"),
            _tx("buy2", 100, "B2"),
        ])
        result = await detect_bundled_buys(helius, MINT, CREATOR)
        assert result.bundled_pct == 50.0
        assert not result.is_bundled

    @pytest.mark.asyncio
    async def test_failed_transactions_ignored(self) -> None:
        helius = _helius([
            _tx("failed", 90, "X", transaction_error="InstructionError"),
            _tx("create", 100, CREATOR),
            _tx("buy1", 100, "B1"),
        ])
        result = await detect_bundled_buys(helius, MINT, CREATOR)
        assert result.first_block_buyers == 1
        assert not result.is_bundled

    @pytest.mark.asyncio
    async def test_no_history(self) -> None:
        assert await detect_bundled_buys(_helius([]), MINT, CREATOR) == BundledBuyResult()


class TestCheckTokenRisks:
    @pytest.mark.asyncio
    async def test_all_checks(self) -> None:
        helius = _helius([])
        helius.get_mint_info = AsyncMock(return_value=HeliusMintInfo(
            mint=MINT, mint_authority=CREATOR, supply=Decimal("1000000000"), decimals=6,
        ))
        helius.get_token_largest_accounts = AsyncMock(return_value=[
            HeliusTokenAccountBalance(address="Acc1", ui_amount=Decimal("850")),
        ])
        helius.get_token_balance_for_owner = AsyncMock(return_value=Decimal("12.5"))

        check = await check_token_risks(helius, MINT, CREATOR)

        assert check.mint_info.mint_authority == CREATOR
        assert check.top_holder_pct == 85.0
        assert check.deployer_holdings_pct == 1.25
        assert check.bundle == BundledBuyResult()

    @pytest.mark.asyncio
    async def test_mint_info_failure_skips_holder_checks(self) -> None:
        helius = _helius([])
        helius.get_mint_info = AsyncMock(side_effect=HeliusUnavailableError("down"))

        check = await check_token_risks(helius, MINT, CREATOR)

        assert check.mint_info is None
        assert check.top_holder_pct is None
        helius.get_token_largest_accounts.assert_not_awaited()
        assert check.bundle is not None

    @pytest.mark.asyncio
    async def test_bundle_failure_leaves_field_unset(self) -> None:
        helius = AsyncMock()
        helius.get_mint_info = AsyncMock(return_value=None)
        helius.get_enhanced_transactions = AsyncMock(side_effect=HeliusUnavailableError("down"))

        check = await check_token_risks(helius, MINT, CREATOR)

        assert check.bundle is None


class TestDeployerSignals:
    def test_velocity_floors_span_at_one_day(self) -> None:
        times = [T0, T0 + timedelta(hours=2), T0 + timedelta(hours=5)]
        assert deploy_velocity(times, 3) == 3.0

    def test_velocity_over_span(self) -> None:
        times = [T0, T0 + timedelta(days=5)]
        assert deploy_velocity(times, 10) == 2.0

    def test_velocity_unknown_without_tokens(self) -> None:
        assert deploy_velocity([], 0) is None
        assert deploy_velocity([], 4) is None

    def test_burner(self) -> None:
        assert is_burner(T0, T0 + timedelta(seconds=30)) is True
        assert is_burner(T0, T0 + timedelta(seconds=60)) is False
        assert is_burner(T0 + timedelta(seconds=5), T0) is False
        assert is_burner(None, T0) is None
        assert is_burner(T0, None) is None


class TestBuilders:
    def test_signals_without_token_check(self) -> None:
        signals = build_risk_signals(None, velocity=1.5, burner=True)
        assert signals.deploy_velocity == 1.5
        assert signals.is_burner is True
        assert signals.mint_authority_active is None
        assert signals.bundle_detected is None

    def test_signals_from_check(self) -> None:
        check = TokenRiskCheck(
            mint_info=HeliusMintInfo(mint=MINT, freeze_authority=CREATOR),
            top_holder_pct=12.0,
            bundle=BundledBuyResult(is_bundled=True),
        )
        signals = build_risk_signals(check, velocity=None, burner=False)
        assert signals.mint_authority_active is False
        assert signals.freeze_authority_active is True
        assert signals.bundle_detected is True
        assert signals.top_holder_pct == 12.0

    def test_token_risks(self) -> None:
        assert build_token_risks(None) is None
        check = TokenRiskCheck(mint_info=HeliusMintInfo(mint=MINT, mint_authority=CREATOR))
        risks = build_token_risks(check, lp_locked=True, lp_lock_pct=99.0)
        assert risks.mint_authority == CREATOR
        assert risks.freeze_authority is None
        assert risks.lp_locked
        assert risks.bundle_detected is None
