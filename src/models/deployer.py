from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base


class DeployerTokenRecord(Base):
    """Persistent per-deployer token list.

    alive is tri-state: True / False / None (status never verified).
    Rows are upserted, never deleted.
    """

    __tablename__ = "deployer_tokens"

    deployer_wallet: Mapped[str] = mapped_column(String(64), primary_key=True)
    token_address: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(100))
    symbol: Mapped[str | None] = mapped_column(String(100))
    alive: Mapped[bool | None] = mapped_column(Boolean)
    liquidity: Mapped[Decimal | None] = mapped_column(Numeric)
    created_at: Mapped[datetime | None] = mapped_column(DateTime)
    deployed_at: Mapped[datetime | None] = mapped_column(DateTime)  # creation tx time
    last_checked_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_deployer_tokens_alive_checked", "deployer_wallet", "alive", "last_checked_at"),
    )


class DeployerHistoryRecord(Base):
    """How a deployer's token list was first discovered.

    Written by the full discovery; warm rescans only read it.
    """

    __tablename__ = "deployer_history"

    deployer_wallet: Mapped[str] = mapped_column(String(64), primary_key=True)
    may_be_incomplete: Mapped[bool] = mapped_column(Boolean, default=False)
    discovery_method: Mapped[str] = mapped_column(String(20), default="enhanced_api")
    discovered_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class ScanLogEntry(Base):
    """Append-only audit log of completed scans."""

    __tablename__ = "scan_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(64))
    verdict: Mapped[str] = mapped_column(String(20))
    score: Mapped[int] = mapped_column(Integer)
    source: Mapped[str] = mapped_column(String(20), default="api")
    caller: Mapped[str | None] = mapped_column(String(128))
    scanned_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_scan_log_address", "address"),
        Index("idx_scan_log_scanned_at", "scanned_at"),
    )


class ScanUsageRecord(Base):
    """Per-caller scan counters; scans_today resets lazily on the first scan of a new day."""

    __tablename__ = "scan_usage"

    caller: Mapped[str] = mapped_column(String(128), primary_key=True)
    scans_today: Mapped[int] = mapped_column(Integer, default=0)
    total_scans: Mapped[int] = mapped_column(Integer, default=0)
    last_reset: Mapped[date] = mapped_column(Date)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
