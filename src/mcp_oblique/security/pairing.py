"""
Device pairing: PIN registration and PIN-for-token exchange.

Flow:
1. The device shows a PIN and calls ``register_device`` with it and its
   device identifier. The PIN is stored for a few minutes.
2. A human types the PIN into the web form, which calls ``exchange_pin``.
   A token is minted and bound to the device, and the PIN is consumed.

Bodies are validated against a schema before any PIN-format check, so a
structurally wrong body always reports "Invalid request body".

Known race: the exchange reads the PIN and deletes it in two separate store
operations. Two concurrent exchanges of the same live PIN can both succeed and
mint two tokens for the same device. The store offers no conditional delete,
and the flow is driven by a single human, so this is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcp_oblique.errors import InvalidArgumentError, NotFoundError
from mcp_oblique.logging import get_logger
from mcp_oblique.security.pin import generate_token, pin_key, token_key, validate_pin

if TYPE_CHECKING:
    from mcp_oblique.storage.kv import KVStore

logger = get_logger(__name__)

PIN_TTL_SECONDS = 300

INVALID_BODY_MESSAGE = "Invalid request body"
INVALID_PIN_MESSAGE = "PIN must be exactly 6 digits"
PIN_NOT_FOUND_MESSAGE = "PIN not found or expired"

ModelT = TypeVar("ModelT", bound=BaseModel)


class RegisterRequest(BaseModel):
    """Body of ``POST /register``."""

    model_config = ConfigDict(strict=True)

    pin: str
    deviceId: str = Field(min_length=1)


class ExchangeRequest(BaseModel):
    """Body of ``POST /auth``."""

    model_config = ConfigDict(strict=True)

    pin: str


@dataclass(frozen=True)
class TokenGrant:
    """Result of a successful PIN exchange."""

    token: str
    device_id: str


def _parse_body(model: type[ModelT], body: Any) -> ModelT:
    try:
        parsed = model.model_validate(body)
    except ValidationError as e:
        raise InvalidArgumentError(
            INVALID_BODY_MESSAGE,
            details={"fields": [".".join(map(str, err["loc"])) for err in e.errors()]},
        ) from e

    if not validate_pin(parsed.pin):
        raise InvalidArgumentError(INVALID_PIN_MESSAGE)
    return parsed


async def register_device(
    store: KVStore,
    body: Any,
    *,
    pin_ttl_seconds: int = PIN_TTL_SECONDS,
) -> dict[str, bool]:
    """
    Bind a device identifier to a PIN for a limited time.

    An existing binding for the same PIN is overwritten without notice.

    Args:
        store: KV store handle.
        body: Decoded request body, expected ``{"pin": str, "deviceId": str}``.
        pin_ttl_seconds: Lifetime of the PIN record.

    Returns:
        ``{"success": True}``.

    Raises:
        InvalidArgumentError: If the body fails schema or PIN-format checks.
    """
    request = _parse_body(RegisterRequest, body)

    await store.put(
        pin_key(request.pin), request.deviceId, expiration_ttl=pin_ttl_seconds
    )
    logger.info(
        "Device registered for pairing",
        extra={"device_id": request.deviceId, "ttl_seconds": pin_ttl_seconds},
    )
    return {"success": True}


async def exchange_pin(store: KVStore, body: Any) -> TokenGrant:
    """
    Exchange a registered PIN for a permanent bearer token.

    The token record is written before the PIN is deleted, so a failure
    between the two leaves the PIN usable for a retry.

    Args:
        store: KV store handle.
        body: Decoded request body, expected ``{"pin": str}``.

    Returns:
        TokenGrant carrying the new token and its device.

    Raises:
        InvalidArgumentError: If the body fails schema or PIN-format checks.
        NotFoundError: If the PIN was never registered, has expired, or was
            already exchanged.
    """
    request = _parse_body(ExchangeRequest, body)

    device_id = await store.get(pin_key(request.pin))
    if not device_id:
        raise NotFoundError(PIN_NOT_FOUND_MESSAGE)

    token = generate_token()
    await store.put(token_key(token), device_id)
    await store.delete(pin_key(request.pin))

    logger.info("PIN exchanged for token", extra={"device_id": device_id})
    return TokenGrant(token=token, device_id=device_id)
