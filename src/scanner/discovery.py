"""Chain discovery adapter: deployer resolution, token history, funding.

Wraps HeliusClient and converts raw enhanced/RPC transactions into the small
typed results the scan pipeline needs. Core-path methods (resolve_deployer,
list_deployer_tokens) let HeliusUnavailableError propagate; the orchestrator
maps it to UPSTREAM_UNAVAILABLE.
"""

from datetime import UTC, datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel

from src.parsers.helius.client import HeliusClient
from src.parsers.helius.exceptions import HeliusError
from src.parsers.helius.models import HeliusTransaction
from src.scanner.models import DeployerMethod
from src.scanner.validate import sanitize_string
from src.utils.concurrency import chunked, gather_bounded

PUMP_FUN_PROGRAM = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
NATIVE_MINT = "So11111111111111111111111111111111111111112"
CREATION_TYPES = frozenset({"CREATE", "TOKEN_MINT"})

PAGE_SIZE = 100
RPC_PAGE_SIZE = 1000
MAX_RESOLVE_PAGES = 10
MAX_DISCOVERY_PAGES = 50  # 5000 txs of history
MAX_FUNDING_PAGES = 3
MAX_RPC_TX_CHECKS = 300
RPC_TX_CONCURRENCY = 10
MIN_FUNDING_LAMPORTS = 10_000_000  # 0.01 SOL, smaller transfers are dust


class DeployerResolution(BaseModel):
    wallet: str
    creation_signature: str | None = None
    created_at: datetime | None = None
    method: DeployerMethod


class TokenDiscovery(BaseModel):
    tokens: list[str] = []
    limit_reached: bool = False
    created_at: dict[str, datetime] = {}  # mint -> creation tx time, when seen
    method: DeployerMethod = DeployerMethod.ENHANCED_API


class TokenMetadata(BaseModel):
    name: str = "Unknown"
    symbol: str = "???"


class FundingSource(BaseModel):
    wallet: str
    timestamp: datetime | None = None
    signature: str | None = None


def _ts(unix: int | None) -> datetime | None:
    if not unix:
        return None
    return datetime.fromtimestamp(unix, tz=UTC)


def is_pump_creation(tx: HeliusTransaction, deployer: str) -> bool:
    """Deployer paid for a Pump.fun CREATE/TOKEN_MINT (not a buy or sell)."""
    if tx.fee_payer != deployer or tx.type not in CREATION_TYPES:
        return False
    return tx.source == "PUMP_FUN" or PUMP_FUN_PROGRAM in tx.program_ids


def created_mints(tx: HeliusTransaction) -> set[str]:
    mints = {t.mint for t in tx.token_transfers if t.mint}
    mints.update(c.mint for c in tx.token_balance_changes if c.mint)
    mints.discard(NATIVE_MINT)
    return mints


def _account_keys(raw_tx: dict[str, Any]) -> list[dict[str, Any]]:
    keys = (raw_tx.get("transaction") or {}).get("message", {}).get("accountKeys") or []
    return [k for k in keys if isinstance(k, dict)]


def _first_signer(raw_tx: dict[str, Any], exclude: str = "") -> str | None:
    for key in _account_keys(raw_tx):
        if key.get("signer") and key.get("pubkey") != exclude:
            return key.get("pubkey")
    return None


def _initialized_mints(raw_tx: dict[str, Any]) -> list[str]:
    """Mints created by initializeMint2 inner instructions."""
    mints: list[str] = []
    for group in (raw_tx.get("meta") or {}).get("innerInstructions") or []:
        for ix in group.get("instructions") or []:
            parsed = ix.get("parsed")
            if isinstance(parsed, dict) and parsed.get("type") == "initializeMint2":
                mint = (parsed.get("info") or {}).get("mint")
                if mint:
                    mints.append(mint)
    return mints


def _touches_pump_fun(raw_tx: dict[str, Any]) -> bool:
    return any(k.get("pubkey") == PUMP_FUN_PROGRAM for k in _account_keys(raw_tx))


class HeliusDiscovery:
    """Discovery operations over the Helius enhanced API with RPC fallbacks."""

    def __init__(self, helius: HeliusClient) -> None:
        self._helius = helius

    async def _oldest_signature(self, address: str, max_pages: int) -> str | None:
        before = ""
        oldest: str | None = None
        for _ in range(max_pages):
            sigs = await self._helius.get_signatures_for_address(
                address, limit=RPC_PAGE_SIZE, before=before
            )
            if not sigs:
                break
            oldest = sigs[-1].signature
            before = oldest
            if len(sigs) < RPC_PAGE_SIZE:
                break
        return oldest

    async def resolve_deployer(self, mint: str) -> DeployerResolution | None:
        """Find the wallet that created `mint`.

        Primary: oldest enhanced txs of the mint, the Pump.fun CREATE fee payer.
        Fallback: oldest RPC signature, signer of the initializeMint2 tx.
        """
        try:
            txs = await self._helius.get_enhanced_transactions(mint, limit=5, sort_order="asc")
        except HeliusError as e:
            logger.debug(f"[DISCOVERY] Enhanced lookup failed for {mint[:12]}: {e}")
            txs = []

        for tx in txs:
            if tx.type == "CREATE" and tx.source == "PUMP_FUN" and tx.fee_payer:
                return DeployerResolution(
                    wallet=tx.fee_payer,
                    creation_signature=tx.signature,
                    created_at=_ts(tx.timestamp),
                    method=DeployerMethod.ENHANCED_API,
                )

        oldest = await self._oldest_signature(mint, MAX_RESOLVE_PAGES)
        if oldest is None:
            return None
        raw_tx = await self._helius.get_transaction(oldest)
        if not raw_tx:
            return None

        wallet = _first_signer(raw_tx)
        if wallet is None:
            return None
        if mint not in _initialized_mints(raw_tx):
            logger.debug(f"[DISCOVERY] No initializeMint2 for {mint[:12]}, using first signer")
        return DeployerResolution(
            wallet=wallet,
            creation_signature=oldest,
            created_at=_ts(raw_tx.get("blockTime")),
            method=DeployerMethod.RPC_FALLBACK,
        )

    async def list_deployer_tokens(
        self,
        wallet: str,
        limit: int = 5000,
        *,
        max_pages: int = MAX_DISCOVERY_PAGES,
        rpc_fallback: bool = True,
    ) -> TokenDiscovery:
        """Every Pump.fun token `wallet` created, newest first, bounded by `limit`.

        A warm rescan passes max_pages=1 and rpc_fallback=False to pick up only
        launches newer than the cached token list.
        """
        found: dict[str, datetime | None] = {}
        before = ""
        limit_reached = False

        # Hitting either the token bound or the page bound means history was cut short
        for _ in range(max_pages):
            txs = await self._helius.get_enhanced_transactions(wallet, limit=PAGE_SIZE, before=before)
            if not txs:
                break
            for tx in txs:
                if not is_pump_creation(tx, wallet):
                    continue
                for mint in created_mints(tx):
                    found.setdefault(mint, _ts(tx.timestamp))
            if len(found) >= limit:
                limit_reached = True
                break
            before = txs[-1].signature
            if len(txs) < PAGE_SIZE:
                break
        else:
            limit_reached = True

        if not found and rpc_fallback:
            return await self._list_deployer_tokens_rpc(wallet, limit)

        tokens = list(found)[:limit]
        return TokenDiscovery(
            tokens=tokens,
            limit_reached=limit_reached,
            created_at={m: found[m] for m in tokens if found[m] is not None},
        )

    async def _list_deployer_tokens_rpc(self, wallet: str, limit: int) -> TokenDiscovery:
        """RPC fallback for wallets the enhanced API has no creations for."""
        sigs = []
        before = ""
        for _ in range(5):
            page = await self._helius.get_signatures_for_address(
                wallet, limit=RPC_PAGE_SIZE, before=before
            )
            if not page:
                break
            sigs.extend(page)
            before = page[-1].signature
            if len(page) < RPC_PAGE_SIZE:
                break

        successful = [s for s in sigs if s.err is None][:MAX_RPC_TX_CHECKS]

        async def _fetch(signature: str) -> dict[str, Any] | None:
            try:
                return await self._helius.get_transaction(signature)
            except HeliusError as e:
                logger.debug(f"[DISCOVERY] getTransaction {signature[:12]} failed: {e}")
                return None

        found: dict[str, datetime | None] = {}
        for batch in chunked(successful, RPC_TX_CONCURRENCY):
            raw_txs = await gather_bounded([s.signature for s in batch], _fetch, RPC_TX_CONCURRENCY)
            for sig, raw_tx in zip(batch, raw_txs):
                if not raw_tx or not _touches_pump_fun(raw_tx):
                    continue
                for mint in _initialized_mints(raw_tx):
                    if mint != NATIVE_MINT:
                        found.setdefault(mint, _ts(sig.timestamp))

        tokens = list(found)[:limit]
        return TokenDiscovery(
            tokens=tokens,
            limit_reached=len(found) >= limit,
            created_at={m: found[m] for m in tokens if found[m] is not None},
            method=DeployerMethod.RPC_FALLBACK,
        )

    async def get_token_metadata(self, mint: str) -> TokenMetadata:
        """Name/symbol from DAS getAsset. Unknown/??? when missing."""
        asset = await self._helius.get_asset(mint)
        metadata = ((asset or {}).get("content") or {}).get("metadata") or {}
        return TokenMetadata(
            name=sanitize_string(metadata.get("name"), "Unknown"),
            symbol=sanitize_string(metadata.get("symbol"), "???"),
        )

    async def get_funding_source(self, wallet: str) -> FundingSource | None:
        """Wallet that sent the first SOL into `wallet` (one hop)."""
        try:
            txs = await self._helius.get_enhanced_transactions(wallet, limit=5, sort_order="asc")
        except HeliusError as e:
            logger.debug(f"[DISCOVERY] Enhanced funding lookup failed for {wallet[:12]}: {e}")
            txs = []

        for tx in txs:
            for t in tx.native_transfers:
                if t.to_user_account == wallet and t.from_user_account and t.from_user_account != wallet:
                    return FundingSource(
                        wallet=t.from_user_account,
                        timestamp=_ts(tx.timestamp),
                        signature=tx.signature,
                    )
            if tx.fee_payer and tx.fee_payer != wallet:
                return FundingSource(
                    wallet=tx.fee_payer, timestamp=_ts(tx.timestamp), signature=tx.signature
                )

        oldest = await self._oldest_signature(wallet, MAX_FUNDING_PAGES)
        if oldest is None:
            return None
        raw_tx = await self._helius.get_transaction(oldest)
        if not raw_tx:
            return None

        instructions = (raw_tx.get("transaction") or {}).get("message", {}).get("instructions") or []
        for ix in instructions:
            parsed = ix.get("parsed") if isinstance(ix, dict) else None
            if not isinstance(parsed, dict) or parsed.get("type") != "transfer":
                continue
            info = parsed.get("info") or {}
            if info.get("destination") == wallet and info.get("source"):
                return FundingSource(
                    wallet=info["source"], timestamp=_ts(raw_tx.get("blockTime")), signature=oldest
                )

        signer = _first_signer(raw_tx, exclude=wallet)
        if signer is None:
            return None
        return FundingSource(wallet=signer, timestamp=_ts(raw_tx.get("blockTime")), signature=oldest)

    async def list_wallets_funded_by(
        self, funder: str, exclude: str = "", max_pages: int = 5
    ) -> list[str]:
        """Wallets that received >0.01 SOL from `funder`, in first-seen order."""
        funded: dict[str, None] = {}
        before = ""
        for _ in range(max_pages):
            txs = await self._helius.get_enhanced_transactions(funder, limit=PAGE_SIZE, before=before)
            if not txs:
                break
            for tx in txs:
                for t in tx.native_transfers:
                    to = t.to_user_account
                    if (
                        t.from_user_account == funder
                        and to
                        and to not in (funder, exclude, NATIVE_MINT)
                        and t.amount > MIN_FUNDING_LAMPORTS
                    ):
                        funded.setdefault(to, None)
            before = txs[-1].signature
            if len(txs) < PAGE_SIZE:
                break
        return list(funded)

    async def is_token_deployer(self, wallet: str) -> bool:
        """Quick check: any Pump.fun activity in the wallet's recent 20 txs."""
        txs = await self._helius.get_enhanced_transactions(wallet, limit=20)
        return any(tx.source == "PUMP_FUN" or PUMP_FUN_PROGRAM in tx.program_ids for tx in txs)

    async def get_native_balance(self, wallet: str) -> float | None:
        balance = await self._helius.get_balance(wallet)
        return float(balance) if balance is not None else None

    async def get_last_activity(self, wallet: str) -> datetime | None:
        sigs = await self._helius.get_signatures_for_address(wallet, limit=1)
        return _ts(sigs[0].timestamp) if sigs else None

    async def get_early_history(self, wallet: str, limit: int = 30) -> list[HeliusTransaction]:
        """Oldest transactions of a wallet (ascending)."""
        return await self._helius.get_enhanced_transactions(wallet, limit=limit, sort_order="asc")
