from enum import StrEnum


class ScanErrorCode(StrEnum):
    INVALID_ADDRESS = "INVALID_ADDRESS"
    NOT_FOUND = "NOT_FOUND"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    INTERNAL = "INTERNAL"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ScanErrorCode.INVALID_ADDRESS: 400,
    ScanErrorCode.NOT_FOUND: 404,
    ScanErrorCode.UPSTREAM_UNAVAILABLE: 503,
    ScanErrorCode.INTERNAL: 500,
}

_DEFAULT_MESSAGES = {
    ScanErrorCode.INVALID_ADDRESS: "Invalid Solana address",
    ScanErrorCode.NOT_FOUND: "Could not find deployer for this token",
    ScanErrorCode.UPSTREAM_UNAVAILABLE: "Upstream API temporarily unavailable. Please try again later.",
    ScanErrorCode.INTERNAL: "Scan failed. Please try again later.",
}


class ScanError(Exception):
    """Terminal scan failure. Only these four codes ever leave the orchestrator."""

    def __init__(self, code: ScanErrorCode, message: str = "") -> None:
        self.code = code
        self.message = message or _DEFAULT_MESSAGES[code]
        super().__init__(f"{code.value}: {self.message}")

    @property
    def http_status(self) -> int:
        return self.code.http_status

    @property
    def retryable(self) -> bool:
        return self.code == ScanErrorCode.UPSTREAM_UNAVAILABLE
