from src.models.base import Base
from src.models.deployer import (
    DeployerHistoryRecord,
    DeployerTokenRecord,
    ScanLogEntry,
    ScanUsageRecord,
)

__all__ = [
    "Base",
    "DeployerHistoryRecord",
    "DeployerTokenRecord",
    "ScanLogEntry",
    "ScanUsageRecord",
]
