"""FastAPI dependency injection: scan service, caller identity."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.api.registry import registry
from src.scanner.service import ScanService
from src.scanner.usage import GUEST_PREFIX

CALLER_HEADER = "X-Caller-Id"


def get_scan_service() -> ScanService:
    """Return the process scan service (503 until startup has built it)."""
    if registry.scan_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scan service not ready",
        )
    return registry.scan_service


def get_caller(request: Request) -> str:
    """Caller id for quota accounting: X-Caller-Id header, else guest:<client ip>."""
    caller = request.headers.get(CALLER_HEADER, "").strip()
    if caller:
        return caller[:64]
    host = request.client.host if request.client else "unknown"
    return f"{GUEST_PREFIX}{host}"
