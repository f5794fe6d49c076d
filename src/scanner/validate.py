"""Input validation and sanitization for scan requests and upstream strings."""

import re

import base58

MIN_ADDRESS_LEN = 32
MAX_ADDRESS_LEN = 44
PUBKEY_BYTES = 32
MAX_LABEL_LEN = 100

_HTML_TAG = re.compile(r"<[^>]*>")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def is_valid_solana_address(address: object) -> bool:
    """True for a 32-44 char base58 string that decodes to a 32-byte public key."""
    if not isinstance(address, str):
        return False
    if not MIN_ADDRESS_LEN <= len(address) <= MAX_ADDRESS_LEN:
        return False
    try:
        decoded = base58.b58decode(address)
    except ValueError:
        return False
    return len(decoded) == PUBKEY_BYTES


def sanitize_string(value: object, fallback: str = "Unknown") -> str:
    """Strip HTML tags and control chars from upstream names, cap at 100 chars."""
    if not isinstance(value, str):
        return fallback
    cleaned = _CONTROL_CHARS.sub("", _HTML_TAG.sub("", value)).strip()
    return cleaned[:MAX_LABEL_LEN] or fallback
