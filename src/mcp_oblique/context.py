"""
Tool context for the Oblique Strategies MCP Server.

This module defines the ToolContext dataclass that carries the context of a
single tool call: the authenticated device, the JSON-RPC request id, the
transport it arrived on and when it was received.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass
class ToolContext:
    """
    Encapsulates the context of a single MCP tool call.

    This context is passed to every tool handler and contains the metadata
    needed for logging and auditing.

    Attributes:
        tool_name: Tool name (e.g., "get_random_strategy").
        device_id: Authenticated device identifier; the only identity tools
            may act on.
        request_id: Request identifier from the JSON-RPC request.
        transport: Transport the call arrived on ("http" or "stdio").
        timestamp: When the request was received (UTC).
        metadata: Additional context (e.g., client address).
    """

    tool_name: str
    device_id: str
    request_id: str | int | float | None = None
    transport: str = "http"
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def timestamp_ms(self) -> int:
        """Request time as Unix milliseconds."""
        return int(self.timestamp.timestamp() * 1000)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert ToolContext to a dictionary for logging/serialization.

        Returns:
            Dictionary with context information.
        """
        return {
            "tool_name": self.tool_name,
            "device_id": self.device_id,
            "request_id": self.request_id,
            "transport": self.transport,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }
