class HeliusError(Exception):
    pass


class HeliusUnavailableError(HeliusError):
    """Retries exhausted, 5xx or timeout: the provider is down for now."""


class HeliusRateLimitError(HeliusUnavailableError):
    pass
