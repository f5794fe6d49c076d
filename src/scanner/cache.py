"""Result cache: full DeployerScan per scanned address with per-entry TTL.

Two backends behind the same async interface:
- MemoryResultCache: per-process cachetools TLRUCache. Expired entries are
  dropped lazily on access. The timer is injectable for fake clocks.
- RedisResultCache: shared across processes, SETEX with the scan JSON.

Entries are replaced wholesale, never mutated. Wallet scans and token scans
of the same address live in separate namespaces.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar

from cachetools import TLRUCache
from loguru import logger
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.scanner.models import DeployerScan

T = TypeVar("T")


def cache_key(namespace: str, address: str) -> str:
    return f"{namespace}:{address}"


class ResultCache(Protocol):
    async def get(self, key: str) -> DeployerScan | None: ...

    async def set(self, key: str, scan: DeployerScan, ttl_seconds: float) -> None: ...


@dataclass(frozen=True)
class CacheEntry:
    scan: DeployerScan
    inserted_at: float
    ttl_seconds: float


def _entry_expiry(_key: str, entry: CacheEntry, now: float) -> float:
    return now + entry.ttl_seconds


class MemoryResultCache:
    """In-process TTL cache."""

    def __init__(
        self,
        maxsize: int = 5000,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timer = timer
        self._entries: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=timer)

    async def get(self, key: str) -> DeployerScan | None:
        entry = self._entries.get(key)
        return entry.scan if entry is not None else None

    async def set(self, key: str, scan: DeployerScan, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        self._entries[key] = CacheEntry(scan=scan, inserted_at=self._timer(), ttl_seconds=ttl_seconds)

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)


class RedisResultCache:
    """Redis-backed cache. Redis failures read as misses; the scan still runs."""

    def __init__(self, redis: Redis, prefix: str = "deployer_scan:") -> None:
        self._redis = redis
        self._prefix = prefix

    async def get(self, key: str) -> DeployerScan | None:
        try:
            raw = await self._redis.get(self._prefix + key)
        except RedisError as e:
            logger.warning(f"[CACHE] Redis get failed for {key[:24]}: {e}")
            return None
        if raw is None:
            return None
        try:
            return DeployerScan.model_validate_json(raw)
        except ValidationError as e:
            # Older schema or corrupt payload: evict and rescan
            logger.warning(f"[CACHE] Dropping unreadable entry {key[:24]}: {e.error_count()} errors")
            try:
                await self._redis.delete(self._prefix + key)
            except RedisError as del_err:
                logger.debug(f"[CACHE] Redis delete failed for {key[:24]}: {del_err}")
            return None

    async def set(self, key: str, scan: DeployerScan, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        try:
            await self._redis.setex(self._prefix + key, int(ttl_seconds), scan.model_dump_json())
        except RedisError as e:
            logger.warning(f"[CACHE] Redis set failed for {key[:24]}: {e}")


class SingleFlight:
    """At most one in-flight computation per key; concurrent callers share it."""

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        else:
            logger.debug(f"[CACHE] Joining in-flight scan for {key[:24]}")
        # shield: one caller disconnecting must not cancel the shared scan
        return await asyncio.shield(task)
