"""Scan endpoints: token scan (resolves the deployer) and direct wallet scan."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.api.dependencies import get_caller, get_scan_service
from src.scanner.models import DeployerScan, ScanUsage
from src.scanner.service import ScanService

router = APIRouter(prefix="/api/v1", tags=["scan"])


def _quota_exceeded(usage: ScanUsage) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "Daily scan limit reached",
            "code": "QUOTA_EXCEEDED",
            "usage": usage.model_dump(),
        },
    )


@router.get("/deployer/{token_address}", response_model=DeployerScan)
async def scan_deployer(
    token_address: str,
    caller: str = Depends(get_caller),
    service: ScanService = Depends(get_scan_service),
) -> DeployerScan | JSONResponse:
    """Resolve the token's deployer and score its launch history."""
    usage = await service.usage.peek(caller)
    if usage.scans_remaining <= 0:
        return _quota_exceeded(usage)
    return await service.scan_token(token_address, caller=caller, source="api")


@router.get("/wallet/{wallet_address}", response_model=DeployerScan)
async def scan_wallet(
    wallet_address: str,
    caller: str = Depends(get_caller),
    service: ScanService = Depends(get_scan_service),
) -> DeployerScan | JSONResponse:
    """Score a wallet's launch history directly (short-lived cache)."""
    usage = await service.usage.peek(caller)
    if usage.scans_remaining <= 0:
        return _quota_exceeded(usage)
    return await service.scan_wallet(wallet_address, caller=caller, source="api")
