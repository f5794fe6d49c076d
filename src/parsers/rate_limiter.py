import asyncio


class RateLimiter:
    """Per-client request pacing: slots at least ``1 / max_rps`` apart.

    ``backoff`` pushes the next free slot out for every caller of the client,
    so concurrent status batches wait out a provider's 429 together instead
    of each retrying into it.
    """

    def __init__(self, max_rps: float) -> None:
        self._interval = 1.0 / max_rps if max_rps > 0 else 0.0
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait = self._next_slot - loop.time()
            if wait > 0:
                await asyncio.sleep(wait)
            self._next_slot = loop.time() + self._interval

    def backoff(self, seconds: float) -> None:
        """No request from this client before ``seconds`` from now."""
        if seconds <= 0:
            return
        resume_at = asyncio.get_running_loop().time() + seconds
        self._next_slot = max(self._next_slot, resume_at)
