"""
Bearer token authentication for the MCP endpoint.

A request authenticates with ``Authorization: Bearer <token>``; the token is
looked up in the KV store and resolves to the device it was issued to.

Every failure (missing header, wrong scheme, unknown token, store outage)
surfaces as the same AuthenticationError so callers cannot tell them apart.
Store errors during the lookup are deliberately treated as an invalid token:
authentication fails closed and the outage is only visible in the logs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp_oblique.errors import UnauthenticatedError
from mcp_oblique.logging import get_logger
from mcp_oblique.security.pin import token_key

if TYPE_CHECKING:
    from mcp_oblique.storage.kv import KVStore

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


class AuthenticationError(UnauthenticatedError):
    """Raised when a request carries no valid bearer token."""

    def __init__(self, message: str = "Unauthorized") -> None:
        """Initialize an AuthenticationError."""
        super().__init__(message=message)


def extract_bearer_token(auth_header: str | None) -> str | None:
    """
    Extract the token from an Authorization header value.

    The scheme match is case-sensitive and requires exactly one space.

    Args:
        auth_header: Raw header value, or None when the header is absent.

    Returns:
        The stripped remainder after "Bearer " (possibly ""), or None when the
        header is absent or uses another scheme.
    """
    if auth_header is None or not auth_header.startswith(BEARER_PREFIX):
        return None
    return auth_header[len(BEARER_PREFIX) :].strip()


async def validate_token(store: KVStore, token: str) -> str | None:
    """
    Resolve a token to its device identifier.

    Args:
        store: KV store handle.
        token: Bearer token.

    Returns:
        The bound device identifier, or None if the token is empty, unknown,
        or the lookup failed.
    """
    if not token:
        return None

    try:
        device_id = await store.get(token_key(token))
    except Exception as e:
        logger.warning(
            "Token lookup failed; treating token as invalid",
            extra={"error": str(e), "exception_type": type(e).__name__},
        )
        return None

    return device_id or None


async def authenticate_request(store: KVStore, auth_header: str | None) -> str:
    """
    Authenticate a request from its Authorization header.

    Args:
        store: KV store handle.
        auth_header: Raw header value, or None when absent.

    Returns:
        The authenticated device identifier.

    Raises:
        AuthenticationError: If the header is missing or malformed, or the
            token does not resolve.
    """
    token = extract_bearer_token(auth_header)
    if not token:
        raise AuthenticationError()

    device_id = await validate_token(store, token)
    if device_id is None:
        raise AuthenticationError()

    return device_id
