"""Health check: upstream reachability, storage, scan metrics."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from loguru import logger
from pydantic import BaseModel
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.api.registry import registry
from src.db.database import engine
from src.db.redis import redis_available
from src.scanner.metrics import metrics

router = APIRouter(prefix="/api/v1", tags=["health"])

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_sec: int
    helius_ok: bool
    db_ok: bool
    redis_ok: bool | None  # None when the memory cache backend is used
    metrics: dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check Helius, DB and Redis connectivity."""
    db_ok = False
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.warning(f"[HEALTH] DB check failed: {e}")

    redis_ok: bool | None = None
    service = registry.scan_service
    if service is not None and service.settings.result_cache_backend == "redis":
        try:
            redis_ok = await redis_available()
        except (RedisError, OSError) as e:
            logger.warning(f"[HEALTH] Redis check failed: {e}")
            redis_ok = False

    helius_ok = False
    if service is not None:
        helius_ok = await service.helius.health()

    summary = metrics.get_summary()
    healthy = db_ok and helius_ok and redis_ok is not False
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=VERSION,
        uptime_sec=summary.get("uptime_sec", 0),
        helius_ok=helius_ok,
        db_ok=db_ok,
        redis_ok=redis_ok,
        metrics=summary,
    )
