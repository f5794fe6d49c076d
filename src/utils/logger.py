import os
import sys

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


def _is_scan_record(record: dict) -> bool:
    return record["message"].startswith(("[SCAN]", "[DEATH]", "[BUNDLED]"))


def setup_logger(*, json_logs: bool = False, level: str = "INFO", log_dir: str = "logs") -> None:
    """Configure loguru sinks.

    - stdout at ``LOG_LEVEL`` (env wins over ``level``), JSON lines when ``json_logs``
    - ``{log_dir}/deployer_scan_*.log``: everything at DEBUG, so degraded steps
      can be inspected after the fact
    - ``{log_dir}/scans_*.log``: scan verdicts and death classifications only
    """
    console_level = os.getenv("LOG_LEVEL", level).upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stdout, serialize=True, level=console_level)
    else:
        logger.add(sys.stdout, format=CONSOLE_FORMAT, level=console_level, colorize=True)

    logger.add(
        f"{log_dir}/deployer_scan_{{time:YYYY-MM-DD}}.log",
        rotation="20 MB",
        retention="7 days",
        compression="gz",
        level="DEBUG",
        serialize=json_logs,
    )
    logger.add(
        f"{log_dir}/scans_{{time:YYYY-MM-DD}}.log",
        rotation="1 day",
        retention="30 days",
        level="INFO",
        filter=_is_scan_record,
        serialize=json_logs,
    )
