"""Tests for per-caller usage quotas and the scan log."""

from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy import select

from src.models.deployer import ScanLogEntry, ScanUsageRecord
from src.scanner.usage import UNLIMITED, DatabaseScanLog, DatabaseUsageTracker

WALLET_CALLER = "CallerWallet11111111111111111111111111111"


@pytest.mark.asyncio
async def test_guest_limit(session_factory) -> None:
    tracker = DatabaseUsageTracker(session_factory, guest_daily_limit=3)
    caller = "guest:10.0.0.1"

    usage = await tracker.peek(caller)
    assert usage.scans_used == 0
    assert usage.scans_limit == 3
    assert usage.scans_remaining == 3

    for _ in range(3):
        usage = await tracker.record(caller)
    assert usage.scans_used == 3
    assert usage.scans_remaining == 0
    assert (await tracker.peek(caller)).scans_remaining == 0


@pytest.mark.asyncio
async def test_wallet_callers_get_wallet_limit(session_factory) -> None:
    tracker = DatabaseUsageTracker(session_factory, guest_daily_limit=3, wallet_daily_limit=10)
    usage = await tracker.record(WALLET_CALLER)
    assert usage.scans_limit == 10
    assert usage.scans_remaining == 9


@pytest.mark.asyncio
async def test_admin_unlimited(session_factory) -> None:
    tracker = DatabaseUsageTracker(session_factory, admin_callers={WALLET_CALLER})
    usage = await tracker.record(WALLET_CALLER)
    assert usage.scans_limit == UNLIMITED
    assert usage.scans_remaining == UNLIMITED - 1


@pytest.mark.asyncio
async def test_daily_reset(session_factory) -> None:
    tracker = DatabaseUsageTracker(session_factory, guest_daily_limit=3)
    caller = "guest:10.0.0.2"
    yesterday = datetime.now(UTC).date() - timedelta(days=1)
    async with session_factory() as session:
        session.add(ScanUsageRecord(
            caller=caller, scans_today=3, total_scans=40, last_reset=yesterday, is_admin=False,
        ))
        await session.commit()

    assert (await tracker.peek(caller)).scans_remaining == 3
    usage = await tracker.record(caller)
    assert usage.scans_used == 1

    async with session_factory() as session:
        record = (await session.execute(
            select(ScanUsageRecord).where(ScanUsageRecord.caller == caller)
        )).scalar_one()
        assert record.total_scans == 41
        assert record.last_reset == datetime.now(UTC).date()
        assert isinstance(record.last_reset, date)


@pytest.mark.asyncio
async def test_scan_log_append(session_factory) -> None:
    log = DatabaseScanLog(session_factory)
    await log.append(address="MintA", verdict="CLEAN", score=88, source="api", caller="guest:1")
    await log.append(address="MintB", verdict="SERIAL_RUGGER", score=12, source="cli", caller=None)

    async with session_factory() as session:
        rows = (await session.execute(select(ScanLogEntry).order_by(ScanLogEntry.id))).scalars().all()
    assert [(r.address, r.verdict, r.score, r.source) for r in rows] == [
        ("MintA", "CLEAN", 88, "api"),
        ("MintB", "SERIAL_RUGGER", 12, "cli"),
    ]
    assert rows[1].caller is None
