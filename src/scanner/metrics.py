"""Scan metrics: throughput, latency, cache hits, degraded steps.

Counters accumulate for the process lifetime and are read by /health.
"""

import time
from collections import Counter
from dataclasses import dataclass
from threading import Lock


@dataclass
class LatencyStats:
    total_runs: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0

    @property
    def avg_latency_ms(self) -> float:
        if self.total_runs == 0:
            return 0.0
        return self.total_latency_ms / self.total_runs

    def add(self, latency_ms: float) -> None:
        self.total_runs += 1
        self.total_latency_ms += latency_ms
        if latency_ms > self.max_latency_ms:
            self.max_latency_ms = latency_ms


class ScanMetrics:
    """Process-wide scan counters (lock-protected for readers off the loop)."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._latency: dict[str, LatencyStats] = {}
        self._verdicts: Counter[str] = Counter()
        self._degraded: Counter[str] = Counter()
        self._errors: Counter[str] = Counter()
        self._cache_hits = 0
        self._shared_flights = 0
        self._start_time = time.monotonic()

    def record_scan(self, kind: str, latency_ms: float, verdict: str) -> None:
        with self._lock:
            self._latency.setdefault(kind, LatencyStats()).add(latency_ms)
            self._verdicts[verdict] += 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self._cache_hits += 1

    def record_shared_flight(self) -> None:
        with self._lock:
            self._shared_flights += 1

    def record_degraded(self, step: str) -> None:
        with self._lock:
            self._degraded[step] += 1

    def record_error(self, code: str) -> None:
        with self._lock:
            self._errors[code] += 1

    def get_summary(self) -> dict:
        """Return a snapshot of all metrics."""
        with self._lock:
            uptime = time.monotonic() - self._start_time
            total = sum(s.total_runs for s in self._latency.values())
            return {
                "uptime_sec": round(uptime),
                "total_scans": total,
                "scans_per_min": round(total / max(uptime / 60, 1), 2),
                "cache_hits": self._cache_hits,
                "shared_flights": self._shared_flights,
                "verdicts": dict(self._verdicts),
                "degraded_steps": dict(self._degraded),
                "errors": dict(self._errors),
                "latency": {
                    kind: {
                        "runs": s.total_runs,
                        "avg_ms": round(s.avg_latency_ms),
                        "max_ms": round(s.max_latency_ms),
                    }
                    for kind, s in self._latency.items()
                },
            }


# Global singleton, shared by the orchestrator and the health router
metrics = ScanMetrics()
