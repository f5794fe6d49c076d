"""Process-wide holder for the scan service shared with the API.

Populated once in ``src.main`` (or by tests). FastAPI endpoints read it via
``get_scan_service``. Safe because everything runs in one event loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.scanner.service import ScanService


class ServiceRegistry:
    """Holds references to runtime objects for API access."""

    scan_service: ScanService | None = None


registry = ServiceRegistry()
