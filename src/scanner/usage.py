"""Usage quota and scan log collaborators.

The orchestrator only reports consumption and reads the remaining allowance;
quota policy (daily limits, admin bypass) lives here. Callers are identified
by an opaque string: a wallet address, or ``guest:<ip>`` for anonymous use.
"""

from datetime import UTC, date, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.deployer import ScanLogEntry, ScanUsageRecord
from src.scanner.models import ScanUsage

GUEST_PREFIX = "guest:"
UNLIMITED = 999_999


class UsageTracker(Protocol):
    async def peek(self, caller: str) -> ScanUsage: ...

    async def record(self, caller: str) -> ScanUsage: ...


class ScanLog(Protocol):
    async def append(
        self, *, address: str, verdict: str, score: int, source: str, caller: str | None
    ) -> None: ...


def _today() -> date:
    return datetime.now(UTC).date()


class DatabaseUsageTracker:
    """Per-caller daily counters in ``scan_usage`` with lazy daily reset."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        guest_daily_limit: int = 3,
        wallet_daily_limit: int = 10,
        admin_callers: set[str] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._guest_limit = guest_daily_limit
        self._wallet_limit = wallet_daily_limit
        self._admins = admin_callers or set()

    def _limit_for(self, caller: str, is_admin: bool) -> int:
        if is_admin or caller in self._admins:
            return UNLIMITED
        if caller.startswith(GUEST_PREFIX):
            return self._guest_limit
        return self._wallet_limit

    def _snapshot(self, caller: str, record: ScanUsageRecord | None) -> ScanUsage:
        used = 0
        is_admin = False
        if record is not None:
            is_admin = record.is_admin
            used = record.scans_today if record.last_reset >= _today() else 0
        limit = self._limit_for(caller, is_admin)
        return ScanUsage(
            scans_used=used,
            scans_limit=limit,
            scans_remaining=max(0, limit - used),
        )

    async def _load(self, session: AsyncSession, caller: str) -> ScanUsageRecord | None:
        stmt = select(ScanUsageRecord).where(ScanUsageRecord.caller == caller)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def peek(self, caller: str) -> ScanUsage:
        async with self._session_factory() as session:
            return self._snapshot(caller, await self._load(session, caller))

    async def record(self, caller: str) -> ScanUsage:
        today = _today()
        async with self._session_factory() as session:
            record = await self._load(session, caller)
            if record is None:
                record = ScanUsageRecord(
                    caller=caller,
                    scans_today=0,
                    total_scans=0,
                    last_reset=today,
                    is_admin=caller in self._admins,
                )
                session.add(record)
            elif record.last_reset < today:
                record.scans_today = 0
                record.last_reset = today
            record.scans_today += 1
            record.total_scans += 1
            await session.commit()
            return self._snapshot(caller, record)


class DatabaseScanLog:
    """Append-only ``scan_log`` writer."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(
        self, *, address: str, verdict: str, score: int, source: str, caller: str | None
    ) -> None:
        async with self._session_factory() as session:
            session.add(ScanLogEntry(
                address=address,
                verdict=verdict,
                score=score,
                source=source,
                caller=caller,
                scanned_at=datetime.now(UTC).replace(tzinfo=None),
            ))
            await session.commit()
