"""Tests for chain discovery over Helius (mocked client)."""

from unittest.mock import AsyncMock

import pytest

from src.parsers.helius.exceptions import HeliusUnavailableError
from src.parsers.helius.models import (
    HeliusNativeTransfer,
    HeliusSignature,
    HeliusTokenTransfer,
    HeliusTransaction,
)
from src.scanner.discovery import (
    MIN_FUNDING_LAMPORTS,
    PAGE_SIZE,
    PUMP_FUN_PROGRAM,
    HeliusDiscovery,
    created_mints,
    is_pump_creation,
)
from src.scanner.models import DeployerMethod

DEPLOYER = "DeployerWallet1111111111111111111111111111"
FUNDER = "FunderWallet11111111111111111111111111111"
MINT = "MintAddress111111111111111111111111111111"


def _create_tx(sig: str, mint: str, fee_payer: str = DEPLOYER, ts: int = 1_700_000_000) -> HeliusTransaction:
    return HeliusTransaction(
        signature=sig,
        type="CREATE",
        source="PUMP_FUN",
        fee_payer=fee_payer,
        timestamp=ts,
        token_transfers=[HeliusTokenTransfer(mint=mint, to_user_account=fee_payer)],
    )


def _swap_tx(sig: str, fee_payer: str = DEPLOYER) -> HeliusTransaction:
    return HeliusTransaction(signature=sig, type="SWAP", source="PUMP_FUN", fee_payer=fee_payer)


def _helius() -> AsyncMock:
    helius = AsyncMock()
    helius.get_enhanced_transactions = AsyncMock(return_value=[])
    helius.get_signatures_for_address = AsyncMock(return_value=[])
    helius.get_transaction = AsyncMock(return_value=None)
    return helius


class TestCreationDetection:
    def test_pump_create_by_deployer(self) -> None:
        assert is_pump_creation(_create_tx("s", MINT), DEPLOYER)

    def test_buy_is_not_creation(self) -> None:
        assert not is_pump_creation(_swap_tx("s"), DEPLOYER)

    def test_other_fee_payer_is_not_creation(self) -> None:
        assert not is_pump_creation(_create_tx("s", MINT, fee_payer=FUNDER), DEPLOYER)

    def test_program_id_counts_as_pump(self) -> None:
        tx = HeliusTransaction(
            signature="s", type="TOKEN_MINT", source="UNKNOWN", fee_payer=DEPLOYER,
            program_ids=[PUMP_FUN_PROGRAM],
        )
        assert is_pump_creation(tx, DEPLOYER)

    def test_created_mints_excludes_wsol(self) -> None:
        tx = HeliusTransaction(
            signature="s",
            token_transfers=[
                HeliusTokenTransfer(mint=MINT),
                HeliusTokenTransfer(mint="So11111111111111111111111111111111111111112"),
            ],
        )
        assert created_mints(tx) == {MINT}


class TestResolveDeployer:
    @pytest.mark.asyncio
    async def test_enhanced_api(self) -> None:
        helius = _helius()
        helius.get_enhanced_transactions.return_value = [_create_tx("create_sig", MINT)]
        result = await HeliusDiscovery(helius).resolve_deployer(MINT)
        assert result.wallet == DEPLOYER
        assert result.method == DeployerMethod.ENHANCED_API
        assert result.creation_signature == "create_sig"
        assert result.created_at is not None

    @pytest.mark.asyncio
    async def test_rpc_fallback(self) -> None:
        helius = _helius()
        helius.get_enhanced_transactions.side_effect = HeliusUnavailableError("down")
        helius.get_signatures_for_address.return_value = [
            HeliusSignature(signature="newer"), HeliusSignature(signature="oldest"),
        ]
        helius.get_transaction.return_value = {
            "blockTime": 1_700_000_000,
            "transaction": {"message": {"accountKeys": [
                {"pubkey": DEPLOYER, "signer": True},
                {"pubkey": MINT, "signer": True},
            ]}},
            "meta": {"innerInstructions": [{"instructions": [
                {"parsed": {"type": "initializeMint2", "info": {"mint": MINT}}},
            ]}]},
        }
        result = await HeliusDiscovery(helius).resolve_deployer(MINT)
        assert result.wallet == DEPLOYER
        assert result.method == DeployerMethod.RPC_FALLBACK
        helius.get_transaction.assert_awaited_once_with("oldest")

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        assert await HeliusDiscovery(_helius()).resolve_deployer(MINT) is None


class TestListDeployerTokens:
    @pytest.mark.asyncio
    async def test_paginates_until_short_page(self) -> None:
        helius = _helius()
        page1 = [_create_tx(f"c{i}", f"Mint{i}") for i in range(PAGE_SIZE)]
        page2 = [_create_tx("last", "MintLast"), _swap_tx("swap")]
        helius.get_enhanced_transactions.side_effect = [page1, page2]

        result = await HeliusDiscovery(helius).list_deployer_tokens(DEPLOYER)
        assert len(result.tokens) == PAGE_SIZE + 1
        assert not result.limit_reached
        assert helius.get_enhanced_transactions.await_args_list[1].kwargs["before"] == f"c{PAGE_SIZE - 1}"
        assert "MintLast" in result.created_at

    @pytest.mark.asyncio
    async def test_limit_reached(self) -> None:
        helius = _helius()
        helius.get_enhanced_transactions.return_value = [
            _create_tx(f"c{i}", f"Mint{i}") for i in range(PAGE_SIZE)
        ]
        result = await HeliusDiscovery(helius).list_deployer_tokens(DEPLOYER, limit=10)
        assert len(result.tokens) == 10
        assert result.limit_reached

    @pytest.mark.asyncio
    async def test_single_page_bound(self) -> None:
        helius = _helius()
        helius.get_enhanced_transactions.return_value = [
            _create_tx(f"c{i}", f"Mint{i}") for i in range(PAGE_SIZE)
        ]
        result = await HeliusDiscovery(helius).list_deployer_tokens(
            DEPLOYER, max_pages=1, rpc_fallback=False
        )
        assert helius.get_enhanced_transactions.await_count == 1
        assert len(result.tokens) == PAGE_SIZE

    @pytest.mark.asyncio
    async def test_no_rpc_fallback_when_disabled(self) -> None:
        helius = _helius()
        result = await HeliusDiscovery(helius).list_deployer_tokens(
            DEPLOYER, max_pages=1, rpc_fallback=False
        )
        assert result.tokens == []
        helius.get_signatures_for_address.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_enhanced_listing_method(self) -> None:
        helius = _helius()
        helius.get_enhanced_transactions.return_value = [_create_tx("c0", "Mint0")]
        result = await HeliusDiscovery(helius).list_deployer_tokens(DEPLOYER)
        assert result.method == DeployerMethod.ENHANCED_API

    @pytest.mark.asyncio
    async def test_rpc_listing_method(self) -> None:
        helius = _helius()
        helius.get_signatures_for_address.return_value = [
            HeliusSignature(signature="create", timestamp=1_700_000_000),
        ]
        helius.get_transaction.return_value = {
            "transaction": {"message": {"accountKeys": [
                {"pubkey": DEPLOYER, "signer": True},
                {"pubkey": PUMP_FUN_PROGRAM, "signer": False},
            ]}},
            "meta": {"innerInstructions": [{"instructions": [
                {"parsed": {"type": "initializeMint2", "info": {"mint": MINT}}},
            ]}]},
        }
        result = await HeliusDiscovery(helius).list_deployer_tokens(DEPLOYER)
        assert result.tokens == [MINT]
        assert result.method == DeployerMethod.RPC_FALLBACK
        assert MINT in result.created_at

    @pytest.mark.asyncio
    async def test_core_path_error_propagates(self) -> None:
        helius = _helius()
        helius.get_enhanced_transactions.side_effect = HeliusUnavailableError("down")
        with pytest.raises(HeliusUnavailableError):
            await HeliusDiscovery(helius).list_deployer_tokens(DEPLOYER)


class TestFunding:
    @pytest.mark.asyncio
    async def test_first_incoming_sol(self) -> None:
        helius = _helius()
        helius.get_enhanced_transactions.return_value = [
            HeliusTransaction(
                signature="fund",
                fee_payer=FUNDER,
                timestamp=1_700_000_000,
                native_transfers=[HeliusNativeTransfer(
                    from_user_account=FUNDER, to_user_account=DEPLOYER, amount=2_000_000_000,
                )],
            )
        ]
        source = await HeliusDiscovery(helius).get_funding_source(DEPLOYER)
        assert source.wallet == FUNDER
        assert source.signature == "fund"
        assert source.timestamp is not None

    @pytest.mark.asyncio
    async def test_funded_wallets_ignore_dust_and_exclusions(self) -> None:
        helius = _helius()
        helius.get_enhanced_transactions.return_value = [
            HeliusTransaction(signature="t1", native_transfers=[
                HeliusNativeTransfer(from_user_account=FUNDER, to_user_account="WalletA", amount=MIN_FUNDING_LAMPORTS * 5),
                HeliusNativeTransfer(from_user_account=FUNDER, to_user_account="Dust", amount=MIN_FUNDING_LAMPORTS),
                HeliusNativeTransfer(from_user_account=FUNDER, to_user_account=DEPLOYER, amount=MIN_FUNDING_LAMPORTS * 5),
                HeliusNativeTransfer(from_user_account="Other", to_user_account="WalletB", amount=MIN_FUNDING_LAMPORTS * 5),
            ]),
            HeliusTransaction(signature="t2", native_transfers=[
                HeliusNativeTransfer(from_user_account=FUNDER, to_user_account="WalletC", amount=MIN_FUNDING_LAMPORTS * 2),
                HeliusNativeTransfer(from_user_account=FUNDER, to_user_account="WalletA", amount=MIN_FUNDING_LAMPORTS * 2),
            ]),
        ]
        wallets = await HeliusDiscovery(helius).list_wallets_funded_by(FUNDER, exclude=DEPLOYER)
        assert wallets == ["WalletA", "WalletC"]

    @pytest.mark.asyncio
    async def test_is_token_deployer(self) -> None:
        helius = _helius()
        helius.get_enhanced_transactions.return_value = [_swap_tx("s")]
        assert await HeliusDiscovery(helius).is_token_deployer("W")
        helius.get_enhanced_transactions.return_value = [
            HeliusTransaction(signature="x", source="SYSTEM_PROGRAM")
        ]
        assert not await HeliusDiscovery(helius).is_token_deployer("W")
