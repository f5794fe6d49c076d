"""Scan a token or wallet from the command line and print the scan JSON.

Usage:
    python scripts/scan_address.py <token_address>
    python scripts/scan_address.py --wallet <wallet_address>
    python scripts/scan_address.py <token_address> --summary
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from loguru import logger  # noqa: E402

from config.settings import settings  # noqa: E402
from src.db.database import async_session_factory, engine, init_models  # noqa: E402
from src.db.redis import close_redis  # noqa: E402
from src.scanner.errors import ScanError  # noqa: E402
from src.scanner.models import DeployerScan  # noqa: E402
from src.scanner.service import create_scan_service  # noqa: E402
from src.utils.logger import setup_logger  # noqa: E402


def _print_summary(scan: DeployerScan) -> None:
    d = scan.deployer
    print(f"Token:    {scan.token.name} ({scan.token.symbol}) {scan.token.address}")
    print(f"Deployer: {d.wallet}")
    print(f"Verdict:  {scan.verdict.value}  score={d.reputation_score}")
    print(
        f"Tokens:   {d.tokens_created} created, {d.tokens_dead} dead, "
        f"{d.tokens_unverified} unverified (death rate {d.death_rate:.0%})"
    )
    if scan.funding.source_wallet:
        print(
            f"Funding:  {scan.funding.source_wallet} "
            f"(cluster {scan.funding.other_deployers_funded}, network {scan.funding.network_risk.value})"
        )
    for line in scan.score_breakdown.details:
        print(f"  - {line}")


async def run(args: argparse.Namespace) -> int:
    await init_models()
    service = await create_scan_service(settings, async_session_factory)
    try:
        if args.wallet:
            scan = await service.scan_wallet(args.address, caller=None, source="cli")
        else:
            scan = await service.scan_token(args.address, caller=None, source="cli")
    except ScanError as e:
        logger.error(f"Scan failed: {e.code.value}: {e.message}")
        return 1
    finally:
        await service.close()
        await close_redis()
        await engine.dispose()

    if args.summary:
        _print_summary(scan)
    else:
        print(scan.model_dump_json(indent=2))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Deployer reputation scan")
    parser.add_argument("address", help="Token mint (default) or wallet address")
    parser.add_argument("--wallet", action="store_true", help="Scan the address as a deployer wallet")
    parser.add_argument("--summary", action="store_true", help="Print a short summary instead of JSON")
    parser.add_argument("--log-level", default="WARNING", help="Console log level")
    args = parser.parse_args()

    setup_logger(level=args.log_level)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
