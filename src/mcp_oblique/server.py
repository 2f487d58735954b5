"""
stdio transport for the Oblique Strategies MCP Server.

Reads newline-delimited JSON-RPC 2.0 requests from stdin and writes one JSON
line per response to stdout. There is no bearer authentication: the process
boundary is the trust boundary, and every call acts on the configured local
device identifier.
"""

from __future__ import annotations

import asyncio
import sys
from typing import TextIO

from mcp_oblique.dispatcher import MCPDispatcher
from mcp_oblique.logging import get_logger
from mcp_oblique.protocol import INVALID_REQUEST, create_error_response

logger = get_logger(__name__)


class MCPServer:
    """
    MCP Server that communicates via JSON-RPC 2.0 over stdio.

    Example:
        >>> server = MCPServer(dispatcher, device_id="stdio-local")
        >>> await server.run()

    Attributes:
        dispatcher: Dispatcher handling each request.
        device_id: Device identity every request acts as.
        running: Whether the server is currently running.
    """

    def __init__(
        self,
        dispatcher: MCPDispatcher,
        device_id: str,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        """
        Initialize the MCP Server.

        Args:
            dispatcher: Dispatcher shared with the HTTP transport.
            device_id: Local device identifier.
            stdin: Optional stdin stream. Uses sys.stdin if not provided.
            stdout: Optional stdout stream. Uses sys.stdout if not provided.
        """
        self.dispatcher = dispatcher
        self.device_id = device_id
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self.running = False

    async def handle_request(self, request_json: str) -> str | None:
        """
        Handle a single JSON-RPC request line.

        Returns:
            JSON string containing the response, or None for notifications.
        """
        response = await self.dispatcher.dispatch(
            request_json, self.device_id, transport="stdio"
        )
        return response.to_json() if response is not None else None

    async def handle_line(self, line: bytes) -> None:
        """Decode one raw stdin line, dispatch it and write any response."""
        try:
            request_json = line.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            logger.warning(
                "Invalid UTF-8 encoding in request",
                extra={"error": str(e)},
            )
            error_response = create_error_response(
                None, INVALID_REQUEST, "Invalid request encoding: UTF-8 required"
            )
            self._write_response(error_response.to_json())
            return

        if not request_json:
            return

        response = await self.handle_request(request_json)
        if response:
            self._write_response(response)

    async def run(self) -> None:
        """
        Run the server, reading from stdin and writing to stdout.

        The server runs until stdin is closed or stop() is called.
        """
        self.running = True
        logger.info(
            "MCP stdio server starting",
            extra={
                "device_id": self.device_id,
                "tools_count": len(self.dispatcher.registry),
            },
        )

        try:
            loop = asyncio.get_running_loop()
            reader = asyncio.StreamReader()
            protocol = asyncio.StreamReaderProtocol(reader)

            await loop.connect_read_pipe(lambda: protocol, self._stdin)

            while self.running:
                line = await reader.readline()
                if not line:
                    break
                await self.handle_line(line)
        finally:
            self.running = False
            logger.info("MCP stdio server stopped")

    def stop(self) -> None:
        """Stop the server gracefully."""
        self.running = False

    def _write_response(self, response_json: str) -> None:
        self._stdout.write(response_json + "\n")
        self._stdout.flush()
