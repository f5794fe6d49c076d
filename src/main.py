"""Entry point for the deployer scan API."""

import asyncio
import signal

from loguru import logger

from config.settings import settings
from src.api.app import create_app
from src.api.registry import registry
from src.api.server import build_server
from src.db.database import async_session_factory, engine, init_models
from src.db.redis import close_redis
from src.scanner.service import create_scan_service
from src.utils.logger import setup_logger


async def main() -> None:
    setup_logger(json_logs=settings.log_json, level=settings.log_level)
    logger.info("Starting deployer scan API...")

    if not settings.helius_api_key:
        logger.warning("HELIUS_API_KEY is not set: chain lookups will fail")

    await init_models()
    service = await create_scan_service(settings, async_session_factory)
    registry.scan_service = service

    server = build_server(create_app(), settings)

    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        server.should_exit = True

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    logger.info(f"[API] Listening on http://{settings.api_host}:{settings.api_port}")
    try:
        # Returns once in-flight requests have drained after should_exit
        await server.serve()
    finally:
        registry.scan_service = None
        await service.close()
        await close_redis()
        await engine.dispose()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
