"""Persistent per-deployer token cache.

Once a deployer's token list has been discovered, repeat scans read it from
the ``deployer_tokens`` table and only re-verify tokens whose status may have
changed: alive tokens checked longer ago than the staleness window, and
tokens whose status was never verified. Dead tokens are terminal.

Rows are upserted, never deleted. Staleness is tracked per row. Each row also
keeps the creation tx time, and a per-deployer history row keeps whether the
full discovery hit its bound and which method found the tokens, so a warm
rescan reproduces burner, velocity and confidence without re-paginating.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.deployer import DeployerHistoryRecord, DeployerTokenRecord
from src.scanner.models import DeployerMethod, DeployerToken


def _to_naive_utc(value: datetime | None) -> datetime | None:
    # DB stores naive UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def _to_aware_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def record_to_token(record: DeployerTokenRecord) -> DeployerToken:
    return DeployerToken(
        address=record.token_address,
        name=record.name or "Unknown",
        symbol=record.symbol or "???",
        alive=record.alive,
        liquidity=float(record.liquidity or 0),
        created_at=_to_aware_utc(record.created_at),
        dexscreener_url=f"https://dexscreener.com/solana/{record.token_address}",
    )


def record_deploy_times(records: Iterable[DeployerTokenRecord]) -> dict[str, datetime]:
    """token address -> creation tx time, for rows that have one."""
    return {
        r.token_address: _to_aware_utc(r.deployed_at)
        for r in records
        if r.deployed_at is not None
    }


@dataclass(frozen=True)
class DeployerHistory:
    may_be_incomplete: bool = False
    method: DeployerMethod = DeployerMethod.ENHANCED_API


def needs_recheck(
    record: DeployerTokenRecord, now: datetime, stale_after: timedelta
) -> bool:
    """Alive and stale, or never verified. Dead is terminal."""
    if record.alive is False:
        return False
    if record.alive is None:
        return True
    checked = _to_aware_utc(record.last_checked_at)
    return checked is None or now - checked > stale_after


async def load_deployer_tokens(
    session: AsyncSession, deployer_wallet: str
) -> list[DeployerTokenRecord]:
    stmt = (
        select(DeployerTokenRecord)
        .where(DeployerTokenRecord.deployer_wallet == deployer_wallet)
        .order_by(DeployerTokenRecord.token_address)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def upsert_deployer_tokens(
    session: AsyncSession,
    deployer_wallet: str,
    tokens: Iterable[DeployerToken],
    *,
    checked: set[str],
    now: datetime,
    deploy_times: Mapping[str, datetime] | None = None,
) -> int:
    """Insert new rows and update existing ones in place.

    Only tokens in ``checked`` get a new status and last_checked_at.
    created_at and deployed_at are never overwritten with NULL, and a dead
    row never flips back to alive.
    """
    tokens = list(tokens)
    if not tokens:
        return 0
    deploy_times = deploy_times or {}
    existing = {
        r.token_address: r for r in await load_deployer_tokens(session, deployer_wallet)
    }
    now_db = _to_naive_utc(now)
    written = 0

    for token in tokens:
        record = existing.get(token.address)
        was_checked = token.address in checked
        deployed_at = _to_naive_utc(deploy_times.get(token.address))
        if record is None:
            session.add(DeployerTokenRecord(
                deployer_wallet=deployer_wallet,
                token_address=token.address,
                name=token.name,
                symbol=token.symbol,
                alive=token.alive if was_checked else None,
                liquidity=Decimal(str(token.liquidity)),
                created_at=_to_naive_utc(token.created_at),
                deployed_at=deployed_at,
                last_checked_at=now_db,
            ))
            written += 1
            continue

        if token.name != "Unknown":
            record.name = token.name
        if token.symbol != "???":
            record.symbol = token.symbol
        if record.created_at is None and token.created_at is not None:
            record.created_at = _to_naive_utc(token.created_at)
        if record.deployed_at is None and deployed_at is not None:
            record.deployed_at = deployed_at
        if was_checked:
            if record.alive is not False:
                record.alive = token.alive
            record.liquidity = Decimal(str(token.liquidity))
            record.last_checked_at = now_db
        written += 1

    await session.flush()
    return written


async def load_deployer_history(
    session: AsyncSession, deployer_wallet: str
) -> DeployerHistory | None:
    record = await session.get(DeployerHistoryRecord, deployer_wallet)
    if record is None:
        return None
    return DeployerHistory(
        may_be_incomplete=record.may_be_incomplete,
        method=DeployerMethod(record.discovery_method),
    )


async def save_deployer_history(
    session: AsyncSession, deployer_wallet: str, history: DeployerHistory, now: datetime
) -> None:
    record = await session.get(DeployerHistoryRecord, deployer_wallet)
    if record is None:
        record = DeployerHistoryRecord(deployer_wallet=deployer_wallet)
        session.add(record)
    record.may_be_incomplete = history.may_be_incomplete
    record.discovery_method = history.method.value
    record.discovered_at = _to_naive_utc(now)
    await session.flush()


class DeployerTokenCache:
    """Session-owning wrapper used by the orchestrator."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        stale_hours: float = 6.0,
    ) -> None:
        self._session_factory = session_factory
        self._stale_after = timedelta(hours=stale_hours)

    @property
    def stale_after(self) -> timedelta:
        return self._stale_after

    async def get(self, deployer_wallet: str) -> list[DeployerTokenRecord]:
        async with self._session_factory() as session:
            return await load_deployer_tokens(session, deployer_wallet)

    async def get_history(self, deployer_wallet: str) -> DeployerHistory:
        """Outcome of the deployer's full discovery. Defaults for rows written before it was kept."""
        async with self._session_factory() as session:
            return await load_deployer_history(session, deployer_wallet) or DeployerHistory()

    def split_stale(
        self, records: list[DeployerTokenRecord], now: datetime
    ) -> tuple[list[DeployerToken], list[DeployerToken]]:
        """Partition cached rows into (fresh, needs re-verification)."""
        fresh: list[DeployerToken] = []
        stale: list[DeployerToken] = []
        for record in records:
            token = record_to_token(record)
            if needs_recheck(record, now, self._stale_after):
                stale.append(token)
            else:
                fresh.append(token)
        return fresh, stale

    async def upsert(
        self,
        deployer_wallet: str,
        tokens: Iterable[DeployerToken],
        *,
        checked: set[str],
        now: datetime | None = None,
        deploy_times: Mapping[str, datetime] | None = None,
        history: DeployerHistory | None = None,
    ) -> None:
        """``history`` is passed only by a full discovery; warm rescans leave it as is."""
        now = now or datetime.now(UTC)
        async with self._session_factory() as session:
            written = await upsert_deployer_tokens(
                session, deployer_wallet, tokens,
                checked=checked, now=now, deploy_times=deploy_times,
            )
            if history is not None:
                await save_deployer_history(session, deployer_wallet, history, now)
            await session.commit()
        logger.debug(f"[CACHE] Upserted {written} tokens for deployer {deployer_wallet[:12]}")
