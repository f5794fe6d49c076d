"""Uvicorn server for the scan API, served on the caller's event loop."""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from config.settings import Settings


def build_server(app: FastAPI, settings: Settings) -> uvicorn.Server:
    """Server that ``src.main`` drives with ``serve()`` and stops via ``should_exit``.

    Behind a reverse proxy, ``api_trust_proxy`` makes the client address
    (used for guest quota keys) come from X-Forwarded-For.
    """
    config = uvicorn.Config(
        app=app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="warning",
        access_log=False,
        loop="none",  # use the existing event loop
        proxy_headers=settings.api_trust_proxy,
        forwarded_allow_ips="*" if settings.api_trust_proxy else None,
    )
    return uvicorn.Server(config)
