"""
MCP method dispatch for the Oblique Strategies MCP Server.

The dispatcher handles one already-authenticated JSON-RPC request at a time and
keeps no state between requests. Methods, in order of precedence:

- initialize: fixed protocol version, capabilities and server info
- notifications/initialized: one-way notification, no response at all
- tools/list: the registered tool descriptors
- tools/call: validate params, force the caller's deviceId into the
  arguments, run the tool
- anything else: Method not found

Error mapping:
- body is not JSON or the envelope is malformed: -32600, id null
- tools/call params malformed: -32602, request id
- unknown method or tool: -32601, request id
- a tool raising, or any unexpected failure: -32603, id null; only caller
  mistakes (invalid_argument, not_found) keep their message
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, StrictStr, ValidationError

from mcp_oblique import __version__
from mcp_oblique.context import ToolContext
from mcp_oblique.errors import ToolError
from mcp_oblique.logging import get_logger
from mcp_oblique.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    JSONRPCError,
    JSONRPCRequest,
    JSONRPCResponse,
    create_error_response,
    create_success_response,
    decode_body,
    error_response_from,
    parse_request,
)

if TYPE_CHECKING:
    from mcp_oblique.routing import ToolRegistry
    from mcp_oblique.security.audit_logger import AuditLogger

logger = get_logger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "oblique-strategies"

NOTIFICATION_PREFIX = "notifications/"
INITIALIZED_NOTIFICATION = "notifications/initialized"

# ToolError codes whose message describes the caller's own mistake; any other
# code may carry server details and is reported as a generic internal error
CLIENT_FACING_ERROR_CODES = frozenset({"invalid_argument", "not_found"})


class CallToolParams(BaseModel):
    """params of a tools/call request."""

    name: StrictStr
    arguments: Any = None


def _is_notification(data: Any) -> bool:
    """True for ``notifications/*`` messages, which never get a response."""
    if not isinstance(data, dict) or data.get("jsonrpc") != JSONRPC_VERSION:
        return False
    method = data.get("method")
    if method == INITIALIZED_NOTIFICATION:
        return True
    return (
        isinstance(method, str)
        and method.startswith(NOTIFICATION_PREFIX)
        and "id" not in data
    )


def bind_device_id(arguments: Any, device_id: str) -> dict[str, Any]:
    """
    Return tool arguments with deviceId set to the authenticated device.

    Any client-supplied deviceId is replaced; non-object arguments are
    replaced by an object holding only deviceId.
    """
    bound = dict(arguments) if isinstance(arguments, dict) else {}
    bound["deviceId"] = device_id
    return bound


class MCPDispatcher:
    """
    Routes JSON-RPC requests to built-in MCP methods and registered tools.

    Example:
        >>> dispatcher = MCPDispatcher(registry)
        >>> response = await dispatcher.dispatch(body, device_id="phone-1")
        >>> response.to_json() if response else None
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        audit_logger: AuditLogger | None = None,
        server_name: str = SERVER_NAME,
        server_version: str = __version__,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            registry: Registry holding the tools exposed by tools/list and tools/call.
            audit_logger: Optional audit logger for tool calls.
            server_name: Name reported in serverInfo.
            server_version: Version reported in serverInfo.
        """
        self.registry = registry
        self._audit_logger = audit_logger
        self._server_name = server_name
        self._server_version = server_version

    def server_info(self) -> dict[str, Any]:
        """Result of the initialize method."""
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": self._server_name,
                "version": self._server_version,
            },
        }

    async def dispatch(
        self,
        body: str | bytes,
        device_id: str,
        *,
        transport: str = "http",
        metadata: dict[str, Any] | None = None,
    ) -> JSONRPCResponse | None:
        """
        Handle one raw JSON-RPC request body for an authenticated device.

        Args:
            body: Raw request body.
            device_id: Device identity established by the transport.
            transport: Transport name, recorded in the tool context.
            metadata: Extra context recorded in the tool context.

        Returns:
            The response to send, or None for notifications.
        """
        try:
            data = decode_body(body)
            if _is_notification(data):
                logger.debug("Notification received", extra={"method": data["method"]})
                return None
            request = parse_request(data)
        except JSONRPCError as e:
            return error_response_from(None, e)

        try:
            return await self._dispatch_method(request, device_id, transport, metadata)
        except JSONRPCError as e:
            return error_response_from(request.id, e)
        except ToolError as e:
            logger.warning(
                "Tool call failed",
                extra={
                    "method": request.method,
                    "error_code": e.error_code,
                    "error": e.message,
                },
            )
            if e.error_code in CLIENT_FACING_ERROR_CODES:
                message = e.message
            else:
                message = "Internal error"
            return create_error_response(None, INTERNAL_ERROR, message)
        except Exception as e:
            logger.exception(
                "Unexpected error processing request",
                extra={"request_id": request.id, "method": request.method},
            )
            return create_error_response(
                None, INTERNAL_ERROR, f"Internal error: {type(e).__name__}"
            )

    async def _dispatch_method(
        self,
        request: JSONRPCRequest,
        device_id: str,
        transport: str,
        metadata: dict[str, Any] | None,
    ) -> JSONRPCResponse:
        method = request.method

        if method == "initialize":
            return create_success_response(request.id, self.server_info())

        if method == "tools/list":
            return create_success_response(
                request.id,
                {"tools": [tool.to_dict() for tool in self.registry.list_tools()]},
            )

        if method == "tools/call":
            result = await self._call_tool(request, device_id, transport, metadata)
            return create_success_response(request.id, result)

        raise JSONRPCError(code=METHOD_NOT_FOUND, message=f"Method not found: {method}")

    async def _call_tool(
        self,
        request: JSONRPCRequest,
        device_id: str,
        transport: str,
        metadata: dict[str, Any] | None,
    ) -> Any:
        try:
            params = CallToolParams.model_validate(request.params)
        except ValidationError as e:
            raise JSONRPCError(code=INVALID_PARAMS, message="Invalid params") from e

        if not self.registry.has_tool(params.name):
            raise JSONRPCError(
                code=METHOD_NOT_FOUND, message=f"Unknown tool: {params.name}"
            )

        arguments = bind_device_id(params.arguments, device_id)
        ctx = ToolContext(
            tool_name=params.name,
            device_id=device_id,
            request_id=request.id,
            transport=transport,
            metadata=metadata or {},
        )

        start = time.perf_counter()
        try:
            result = await self.registry.invoke(params.name, ctx, arguments)
        except ToolError as e:
            self._audit(ctx, "error", arguments, start, error_code=e.error_code)
            raise

        status = "tool_error" if isinstance(result, dict) and result.get("isError") else "success"
        self._audit(ctx, status, arguments, start)
        return result

    def _audit(
        self,
        ctx: ToolContext,
        status: str,
        arguments: dict[str, Any],
        start: float,
        error_code: str | None = None,
    ) -> None:
        if self._audit_logger is None:
            return
        self._audit_logger.log_tool_call(
            ctx,
            status=status,
            error_code=error_code,
            params=arguments,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
