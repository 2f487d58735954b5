"""
Security module for the Oblique Strategies MCP Server.

Components:
- pin: PIN and token generation and validation
- pairing: device registration and PIN-for-token exchange
- auth: bearer token authentication for the MCP endpoint
- AuditLogger: structured audit logging of pairing, auth and tool calls
"""

from mcp_oblique.security.audit_logger import AuditLogger
from mcp_oblique.security.auth import (
    AuthenticationError,
    authenticate_request,
    extract_bearer_token,
    validate_token,
)
from mcp_oblique.security.pairing import TokenGrant, exchange_pin, register_device
from mcp_oblique.security.pin import generate_pin, generate_token, validate_pin

__all__ = [
    "AuditLogger",
    "AuthenticationError",
    "TokenGrant",
    "authenticate_request",
    "exchange_pin",
    "extract_bearer_token",
    "generate_pin",
    "generate_token",
    "register_device",
    "validate_pin",
    "validate_token",
]
