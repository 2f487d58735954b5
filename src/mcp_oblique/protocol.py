"""
JSON-RPC 2.0 protocol handling for the Oblique Strategies MCP Server.

This module implements JSON-RPC 2.0 request validation and response formatting
used by both the HTTP (SSE-framed) and stdio transports.

Features:
- Envelope validation (``jsonrpc`` literal, ``id`` type, ``method`` type)
- A parse step that turns a raw body into a typed JSONRPCRequest or raises
  a structured JSONRPCError
- JSON-RPC 2.0 response formatting (success and error)

Error Code Mapping:
- -32700: Parse error
- -32600: Invalid Request (malformed JSON body, bad envelope)
- -32601: Method not found (unknown method or unknown tool)
- -32602: Invalid params (bad tools/call params)
- -32603: Internal error (unexpected failures, tool misuse)
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any

# =============================================================================
# JSON-RPC Error Codes
# =============================================================================

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

JSONRPC_VERSION = "2.0"

RequestId = int | float | str


# =============================================================================
# Data Classes
# =============================================================================


class JSONRPCError(Exception):
    """
    Represents a JSON-RPC 2.0 error object.

    This class is both an Exception (so it can be raised) and a data container
    for JSON-RPC error information.

    Attributes:
        code: Integer error code (JSON-RPC 2.0 reserved range or application-defined).
        message: Human-readable error message.
    """

    def __init__(self, code: int, message: str) -> None:
        """
        Initialize a JSONRPCError.

        Args:
            code: Integer error code.
            message: Human-readable error message.
        """
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a dictionary for JSON serialization."""
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return f"JSONRPCError(code={self.code}, message={self.message!r})"


@dataclass
class JSONRPCRequest:
    """
    Represents a validated JSON-RPC 2.0 request.

    Attributes:
        jsonrpc: Protocol version (always "2.0").
        id: Request identifier (number or string, never null).
        method: The method to invoke.
        params: Raw params value, None when absent.
    """

    jsonrpc: str
    id: RequestId
    method: str
    params: Any = None


@dataclass
class JSONRPCResponse:
    """
    Represents a JSON-RPC 2.0 response.

    Exactly one of result or error is serialized.

    Attributes:
        jsonrpc: Protocol version (always "2.0").
        id: Request identifier (matches request, or null when unknown).
        result: Success result (if not an error).
        error: Error object (if an error occurred).
    """

    jsonrpc: str
    id: RequestId | None
    result: Any | None = None
    error: JSONRPCError | None = None

    @property
    def is_error(self) -> bool:
        """Check if this is an error response."""
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the response to a dictionary for JSON serialization.

        Returns:
            Dictionary with jsonrpc, id, and either result or error.
        """
        response: dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
        }
        if self.error is not None:
            response["error"] = self.error.to_dict()
        else:
            response["result"] = self.result
        return response

    def to_json(self) -> str:
        """Serialize the response to a compact single-line JSON string."""
        return json.dumps(self.to_dict(), separators=(",", ":"), allow_nan=False)


# =============================================================================
# Request Validation
# =============================================================================


def _is_valid_id(value: Any) -> bool:
    # bool is an int subclass but not a JSON number
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, (int, str))


def is_valid_jsonrpc_request(data: Any) -> bool:
    """
    Check whether a decoded JSON value is a well-formed JSON-RPC 2.0 request.

    A valid request is an object with ``jsonrpc == "2.0"``, an ``id`` that is a
    finite number or string (null or missing is rejected), and a string
    ``method``.

    Args:
        data: Any decoded JSON value.

    Returns:
        True if the envelope is valid, False otherwise.
    """
    if not isinstance(data, dict):
        return False
    if data.get("jsonrpc") != JSONRPC_VERSION:
        return False
    if "id" not in data or not _is_valid_id(data["id"]):
        return False
    return isinstance(data.get("method"), str)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def decode_body(body: str | bytes) -> Any:
    """
    Decode a raw request body as JSON.

    Args:
        body: Raw body text or bytes.

    Returns:
        The decoded JSON value.

    Raises:
        JSONRPCError: INVALID_REQUEST if the body is not valid JSON, including
            the non-standard NaN and Infinity literals.
    """
    try:
        return json.loads(body, parse_constant=_reject_constant)
    except ValueError as e:
        raise JSONRPCError(
            code=INVALID_REQUEST,
            message="Invalid Request: body is not valid JSON",
        ) from e


def parse_request(body: str | bytes | dict[str, Any]) -> JSONRPCRequest:
    """
    Parse and validate a JSON-RPC 2.0 request.

    Args:
        body: Raw body, or a JSON value the caller already decoded.

    Returns:
        Parsed JSONRPCRequest object.

    Raises:
        JSONRPCError: INVALID_REQUEST if the body is not JSON or the envelope
            is malformed.

    Example:
        >>> request = parse_request('{"jsonrpc":"2.0","id":1,"method":"tools/list"}')
        >>> print(request.method)
        tools/list
    """
    data = decode_body(body) if isinstance(body, (str, bytes)) else body

    if not is_valid_jsonrpc_request(data):
        raise JSONRPCError(code=INVALID_REQUEST, message="Invalid Request")

    return JSONRPCRequest(
        jsonrpc=JSONRPC_VERSION,
        id=data["id"],
        method=data["method"],
        params=data.get("params"),
    )


# =============================================================================
# Response Formatting
# =============================================================================


def create_success_response(request_id: RequestId | None, result: Any) -> JSONRPCResponse:
    """
    Create a successful JSON-RPC 2.0 response.

    Args:
        request_id: The request ID to include in the response.
        result: The result value to include in the response.

    Returns:
        JSONRPCResponse object representing a success response.

    Example:
        >>> create_success_response(1, {"tools": []}).to_json()
        '{"jsonrpc":"2.0","id":1,"result":{"tools":[]}}'
    """
    return JSONRPCResponse(jsonrpc=JSONRPC_VERSION, id=request_id, result=result)


def create_error_response(
    request_id: RequestId | None,
    code: int,
    message: str,
) -> JSONRPCResponse:
    """
    Create a JSON-RPC 2.0 error response.

    Args:
        request_id: The request ID (None when the request could not be read).
        code: JSON-RPC error code.
        message: Human-readable error message.

    Returns:
        JSONRPCResponse object representing an error response.

    Example:
        >>> create_error_response(None, PARSE_ERROR, "Parse error").to_json()
        '{"jsonrpc":"2.0","id":null,"error":{"code":-32700,"message":"Parse error"}}'
    """
    return JSONRPCResponse(
        jsonrpc=JSONRPC_VERSION,
        id=request_id,
        error=JSONRPCError(code=code, message=message),
    )


def error_response_from(
    request_id: RequestId | None, error: JSONRPCError
) -> JSONRPCResponse:
    """Wrap a raised JSONRPCError into an error response."""
    return create_error_response(request_id, error.code, error.message)
