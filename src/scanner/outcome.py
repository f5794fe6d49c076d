"""Best-effort step results.

Enrichment steps (funding, balance, price, risk report, cluster, death
classification, risk signals) never abort a scan. Each is run through
``attempt`` which returns ``Ok(value)`` or ``Degraded(step, reason)`` so the
orchestrator decides the fallback explicitly.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Degraded:
    step: str
    reason: str

    @property
    def ok(self) -> bool:
        return False

    def unwrap_or(self, default: T) -> T:
        return default


Outcome = Ok[T] | Degraded


async def attempt(
    step: str,
    awaitable: Awaitable[T],
    timeout: float,
    on_degraded: Callable[[str], None] | None = None,
) -> "Ok[T] | Degraded":
    """Await a best-effort step under a timeout."""
    try:
        return Ok(await asyncio.wait_for(awaitable, timeout=timeout))
    except TimeoutError:
        reason = f"timeout after {timeout:.0f}s"
    except Exception as e:
        reason = f"{type(e).__name__}: {e}"

    logger.debug(f"[SCAN] Step {step} degraded: {reason}")
    if on_degraded is not None:
        on_degraded(step)
    return Degraded(step=step, reason=reason)
