"""FastAPI application factory for the deployer scan API."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.cors import CORSMiddleware

from config.settings import settings
from src.api.middleware import SecurityHeadersMiddleware
from src.scanner.errors import ScanError

# Rate limiter (shared instance), applied to every route
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.api_rate_limit])


async def _scan_error_handler(request: Request, exc: ScanError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning(f"[API] {request.url.path} -> {exc.code.value}")
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.message, "code": exc.code.value},
    )


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    app = FastAPI(
        title="Deployer Scan API",
        version="0.1.0",
        docs_url="/api/docs" if settings.api_debug else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if settings.api_debug else None,
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(ScanError, _scan_error_handler)

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    # Public read-only API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["X-Caller-Id", "X-Request-Id"],
    )

    from src.api.routers.health import router as health_router
    from src.api.routers.scan import router as scan_router

    app.include_router(health_router)
    app.include_router(scan_router)

    return app
