"""
PIN and token generation.

PINs are six decimal digits drawn from the operating system's CSPRNG and live
for a few minutes. Tokens are random UUID4 strings that never expire.
"""

from __future__ import annotations

import re
import secrets
import uuid
from typing import Any

PIN_LENGTH = 6
PIN_SPACE = 10**PIN_LENGTH

# ASCII only; \d would also accept other Unicode decimal digits
_PIN_PATTERN = re.compile(r"[0-9]{6}")


def generate_pin() -> str:
    """
    Generate a random 6-digit PIN.

    Returns:
        A zero-padded string such as "042851".
    """
    return f"{secrets.randbelow(PIN_SPACE):0{PIN_LENGTH}d}"


def validate_pin(pin: Any) -> bool:
    """
    Check that a value is exactly six ASCII digits.

    Args:
        pin: Value to check; anything other than a str is rejected.

    Returns:
        True if the value is a well-formed PIN.
    """
    return isinstance(pin, str) and _PIN_PATTERN.fullmatch(pin) is not None


def generate_token() -> str:
    """Generate an opaque bearer token (a random UUID4 string)."""
    return str(uuid.uuid4())


def pin_key(pin: str) -> str:
    """Return the storage key for a pending PIN."""
    return f"pin:{pin}"


def token_key(token: str) -> str:
    """Return the storage key for an issued token."""
    return f"token:{token}"
