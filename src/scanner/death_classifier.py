"""Death classifier: why did a dead token die?

Evidence per token:
- deployer holdings (sold = holds < 0.01% of supply)
- where the deployer sent the mint in the first 4 hours after creation
  (DEX vs. wallet, and whether recipients share the deployer's funder)
- token age and whether it ever had real buyers (peak liquidity >= $500)

Rules, most specific first:
1. sold + supply fanned out to >= 2 non-DEX wallets, or to a wallet funded
   by the deployer's own funder -> distributed_rug
2. sold + (single non-DEX recipient, dumped within 48h, or had real buyers)
   -> likely_rug
3. otherwise -> natural

Only tokens with market history (liquidity or pair creation time) are
inspected, highest liquidity first, capped per scan. Each token runs under
its own timeout; a token that times out is left unclassified. Classification is
advisory: it feeds the wallet network, not the score formula.
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from loguru import logger

from src.parsers.helius.client import HeliusClient
from src.parsers.helius.models import HeliusTransaction
from src.scanner.cluster import WalletNetwork
from src.scanner.discovery import HeliusDiscovery
from src.scanner.models import DeathEvidence, DeathType, DeployerToken
from src.utils.concurrency import gather_bounded

SOLD_HOLDINGS_PCT = 0.01
REAL_BUYERS_LIQUIDITY_USD = 500.0
QUICK_DUMP_HOURS = 48
DISTRIBUTION_WINDOW = timedelta(hours=4)
FANOUT_MIN_WALLETS = 2
MAX_CLASSIFY = 20
CLASSIFY_CONCURRENCY = 5
HISTORY_LIMIT = 30
TOKEN_TIMEOUT = 10.0

DEX_PROGRAM_IDS = frozenset({
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",  # Raydium AMM v4
    "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C",  # Raydium CPMM
    "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK",  # Raydium CLMM
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",  # Orca Whirlpool
    "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YW8XYJ",  # Meteora DLMM
    "Eo7WjKq67rjJQSZxS6z3YkapzY3eMj6Xy8X5EQVn5UaB",  # Meteora pools
    "pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA",  # PumpSwap
    "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",  # Pump.fun bonding curve
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",  # Jupiter v6
})


@dataclass(frozen=True)
class Classification:
    type: DeathType
    evidence: DeathEvidence


def is_classifiable(token: DeployerToken) -> bool:
    return token.liquidity > 0 or token.created_at is not None


def decide(evidence: DeathEvidence) -> DeathType:
    if evidence.deployer_sold and (
        evidence.initial_transfer_is_associated or evidence.fanout_wallets >= FANOUT_MIN_WALLETS
    ):
        return DeathType.DISTRIBUTED_RUG
    if evidence.deployer_sold and (
        evidence.fanout_wallets == 1
        or (evidence.lifespan_hours is not None and evidence.lifespan_hours < QUICK_DUMP_HOURS)
        or evidence.had_real_buyers
    ):
        return DeathType.LIKELY_RUG
    return DeathType.NATURAL


class DeathClassifier:
    def __init__(
        self,
        helius: HeliusClient,
        discovery: HeliusDiscovery,
        network: WalletNetwork,
        *,
        max_tokens: int = MAX_CLASSIFY,
        concurrency: int = CLASSIFY_CONCURRENCY,
        token_timeout: float = TOKEN_TIMEOUT,
    ) -> None:
        self._helius = helius
        self._discovery = discovery
        self._network = network
        self._max_tokens = max_tokens
        self._concurrency = concurrency
        self._token_timeout = token_timeout

    async def classify_deaths(
        self,
        deployer: str,
        dead_tokens: list[DeployerToken],
        funding_source: str | None,
        *,
        now: datetime | None = None,
    ) -> dict[str, Classification]:
        now = now or datetime.now(UTC)
        results: dict[str, Classification] = {}

        classifiable = sorted(
            (t for t in dead_tokens if is_classifiable(t)),
            key=lambda t: t.liquidity,
            reverse=True,
        )[: self._max_tokens]
        selected = {t.address for t in classifiable}

        # No market history at all: never got traction
        for token in dead_tokens:
            if token.address not in selected:
                results[token.address] = Classification(DeathType.NATURAL, DeathEvidence())

        if not classifiable:
            return results

        try:
            history = await asyncio.wait_for(
                self._discovery.get_early_history(deployer, HISTORY_LIMIT), self._token_timeout
            )
        except Exception as e:
            logger.debug(f"[DEATH] History fetch failed for {deployer[:12]}: {e}")
            history = []

        async def _one(token: DeployerToken) -> Classification | None:
            try:
                return await asyncio.wait_for(
                    self._classify_token(token, deployer, funding_source, history, now),
                    self._token_timeout,
                )
            except TimeoutError:
                logger.debug(f"[DEATH] Classification timed out for {token.address[:12]}")
                return None

        for token, result in zip(
            classifiable, await gather_bounded(classifiable, _one, self._concurrency)
        ):
            if result is not None:
                results[token.address] = result

        counts: dict[str, int] = {}
        for c in results.values():
            counts[c.type.value] = counts.get(c.type.value, 0) + 1
        logger.info(f"[DEATH] {deployer[:12]}: {counts}")
        return results

    async def _deployer_holdings_pct(self, deployer: str, mint: str) -> float | None:
        mint_info = await self._helius.get_mint_info(mint)
        if mint_info is None or mint_info.ui_supply <= 0:
            return None
        balance = await self._helius.get_token_balance_for_owner(deployer, mint)
        if balance is None:
            return None
        return float(balance / mint_info.ui_supply * 100)

    async def _classify_token(
        self,
        token: DeployerToken,
        deployer: str,
        funding_source: str | None,
        history: list[HeliusTransaction],
        now: datetime,
    ) -> Classification:
        lifespan_hours = None
        if token.created_at is not None:
            lifespan_hours = round((now - token.created_at).total_seconds() / 3600)

        holdings_pct = None
        try:
            holdings_pct = await self._deployer_holdings_pct(deployer, token.address)
        except Exception as e:
            logger.debug(f"[DEATH] Holdings check failed for {token.address[:12]}: {e}")

        first_to: str | None = None
        first_is_dex = False
        recipients: list[str] = []
        if token.created_at is not None:
            cutoff = token.created_at.timestamp() + DISTRIBUTION_WINDOW.total_seconds()
            for tx in history:
                if tx.timestamp and tx.timestamp > cutoff:
                    break
                is_dex = tx.touches_program(DEX_PROGRAM_IDS)
                for t in tx.token_transfers:
                    if (
                        t.mint != token.address
                        or t.from_user_account != deployer
                        or not t.to_user_account
                        or t.to_user_account == deployer
                    ):
                        continue
                    if first_to is None:
                        first_to = t.to_user_account
                        first_is_dex = is_dex
                    if not is_dex and t.to_user_account not in recipients:
                        recipients.append(t.to_user_account)

        associated = False
        if first_to is not None and not first_is_dex and funding_source:
            try:
                dest_funding = await self._discovery.get_funding_source(first_to)
                associated = dest_funding is not None and dest_funding.wallet == funding_source
            except Exception as e:
                logger.debug(f"[DEATH] Recipient funding check failed for {first_to[:12]}: {e}")

        for wallet in recipients:
            self._network.record(deployer, wallet)

        evidence = DeathEvidence(
            deployer_sold=holdings_pct is not None and holdings_pct < SOLD_HOLDINGS_PCT,
            deployer_holdings_pct=round(holdings_pct, 4) if holdings_pct is not None else None,
            peak_liquidity=token.liquidity,
            lifespan_hours=lifespan_hours,
            had_real_buyers=token.liquidity >= REAL_BUYERS_LIQUIDITY_USD,
            initial_transfer_to=first_to,
            initial_transfer_is_dex=first_is_dex,
            initial_transfer_is_associated=associated,
            fanout_wallets=len(recipients),
        )
        return Classification(decide(evidence), evidence)
