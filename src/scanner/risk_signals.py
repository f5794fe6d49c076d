"""Token and deployer risk signals feeding the score deductions.

Token level (scanned token only): mint/freeze authority, top holder share,
deployer holdings, bundled first-block buys.
Deployer level: deploy velocity and burner-wallet funding.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger

from src.parsers.helius.client import HeliusClient
from src.parsers.helius.models import HeliusMintInfo
from src.scanner.models import RiskSignals, TokenRisks

BURNER_WINDOW = timedelta(seconds=60)
BUNDLE_PCT_THRESHOLD = 50.0
EARLY_TX_LIMIT = 30
MIN_VELOCITY_SPAN_DAYS = 1.0


@dataclass
class BundledBuyResult:
    """First-block buyers of a token and how many the creator funded."""

    first_block_buyers: int = 0
    funded_by_creator: int = 0
    bundled_pct: float = 0.0
    is_bundled: bool = False


@dataclass
class TokenRiskCheck:
    mint_info: HeliusMintInfo | None = None
    top_holder_pct: float | None = None
    deployer_holdings_pct: float | None = None
    bundle: BundledBuyResult | None = None


async def detect_bundled_buys(
    helius: HeliusClient, token_address: str, creator_address: str
) -> BundledBuyResult:
    """Did the creator fund the wallets buying in the creation slot (or the next)?"""
    txs = await helius.get_enhanced_transactions(
        token_address, limit=EARLY_TX_LIMIT, sort_order="asc"
    )
    txs = [tx for tx in txs if tx.slot and tx.transaction_error is None]
    if not txs:
        return BundledBuyResult()

    creation_slot = min(tx.slot for tx in txs)
    first_block = [tx for tx in txs if tx.slot <= creation_slot + 1]

    buyers = {tx.fee_payer for tx in first_block if tx.fee_payer and tx.fee_payer != creator_address}
    if not buyers:
        return BundledBuyResult()

    funded: set[str] = set()
    for tx in first_block:
        for transfer in tx.native_transfers:
            if (
                transfer.from_user_account == creator_address
                and transfer.to_user_account in buyers
                and transfer.amount > 0
            ):
                funded.add(transfer.to_user_account)

    bundled_pct = len(funded) / len(buyers) * 100
    result = BundledBuyResult(
        first_block_buyers=len(buyers),
        funded_by_creator=len(funded),
        bundled_pct=round(bundled_pct, 1),
        is_bundled=bundled_pct > BUNDLE_PCT_THRESHOLD,
    )
    if result.is_bundled:
        logger.info(
            f"[BUNDLED] {token_address[:12]}: {len(funded)}/{len(buyers)} "
            f"first-block buyers funded by creator ({bundled_pct:.0f}%)"
        )
    return result


async def check_token_risks(
    helius: HeliusClient, token_address: str, deployer: str
) -> TokenRiskCheck:
    """Each sub-check is independent; a failure leaves its field unset."""
    check = TokenRiskCheck()

    try:
        check.mint_info = await helius.get_mint_info(token_address)
    except Exception as e:
        logger.debug(f"[RISK] Mint info failed for {token_address[:12]}: {e}")

    supply = check.mint_info.ui_supply if check.mint_info else None
    if supply and supply > 0:
        try:
            largest = await helius.get_token_largest_accounts(token_address)
            if largest:
                check.top_holder_pct = round(float(largest[0].ui_amount / supply * 100), 2)
        except Exception as e:
            logger.debug(f"[RISK] Largest accounts failed for {token_address[:12]}: {e}")
        try:
            held = await helius.get_token_balance_for_owner(deployer, token_address)
            if held is not None:
                check.deployer_holdings_pct = round(float(held / supply * 100), 4)
        except Exception as e:
            logger.debug(f"[RISK] Deployer holdings failed for {token_address[:12]}: {e}")

    try:
        check.bundle = await detect_bundled_buys(helius, token_address, deployer)
    except Exception as e:
        logger.debug(f"[RISK] Bundle detection failed for {token_address[:12]}: {e}")

    return check


def deploy_velocity(created_times: list[datetime], token_count: int) -> float | None:
    """Tokens per day over the deployer's launch span (at least one day)."""
    if token_count <= 0 or not created_times:
        return None
    span = (max(created_times) - min(created_times)).total_seconds() / 86400
    return round(token_count / max(span, MIN_VELOCITY_SPAN_DAYS), 2)


def is_burner(funded_at: datetime | None, first_deploy_at: datetime | None) -> bool | None:
    """Funded less than 60s before the first deploy. None when either time is unknown."""
    if funded_at is None or first_deploy_at is None:
        return None
    gap = first_deploy_at - funded_at
    return timedelta(0) <= gap < BURNER_WINDOW


def build_risk_signals(
    check: TokenRiskCheck | None,
    *,
    velocity: float | None,
    burner: bool | None,
) -> RiskSignals:
    if check is None:
        return RiskSignals(deploy_velocity=velocity, is_burner=burner)
    info = check.mint_info
    return RiskSignals(
        mint_authority_active=(info.mint_authority is not None) if info else None,
        freeze_authority_active=(info.freeze_authority is not None) if info else None,
        top_holder_pct=check.top_holder_pct,
        bundle_detected=check.bundle.is_bundled if check.bundle else None,
        deployer_holdings_pct=check.deployer_holdings_pct,
        deploy_velocity=velocity,
        is_burner=burner,
    )


def build_token_risks(
    check: TokenRiskCheck | None,
    *,
    lp_locked: bool | None = None,
    lp_lock_pct: float | None = None,
) -> TokenRisks | None:
    if check is None:
        return None
    info = check.mint_info
    return TokenRisks(
        mint_authority=info.mint_authority if info else None,
        freeze_authority=info.freeze_authority if info else None,
        deployer_holdings_pct=check.deployer_holdings_pct,
        top_holder_pct=check.top_holder_pct,
        bundle_detected=check.bundle.is_bundled if check.bundle else None,
        lp_locked=lp_locked,
        lp_lock_pct=lp_lock_pct,
    )
