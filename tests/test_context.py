"""
Tests for ToolContext.
"""

from __future__ import annotations

from datetime import UTC, datetime

from mcp_oblique.context import ToolContext


class TestToolContext:
    """Tests for the ToolContext dataclass."""

    def test_defaults(self) -> None:
        ctx = ToolContext(tool_name="get_random_strategy", device_id="phone-1")

        assert ctx.request_id is None
        assert ctx.transport == "http"
        assert ctx.metadata == {}
        assert ctx.timestamp.tzinfo is UTC

    def test_metadata_not_shared(self) -> None:
        a = ToolContext(tool_name="a", device_id="d")
        b = ToolContext(tool_name="b", device_id="d")
        a.metadata["client_ip"] = "10.0.0.2"
        assert b.metadata == {}

    def test_timestamp_ms(self) -> None:
        ctx = ToolContext(
            tool_name="get_user_history",
            device_id="d",
            timestamp=datetime(2024, 1, 1, tzinfo=UTC),
        )
        assert ctx.timestamp_ms == 1704067200000

    def test_to_dict(self) -> None:
        ctx = ToolContext(
            tool_name="search_strategies",
            device_id="phone-1",
            request_id=7,
            transport="stdio",
            timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
            metadata={"client_ip": "127.0.0.1"},
        )

        assert ctx.to_dict() == {
            "tool_name": "search_strategies",
            "device_id": "phone-1",
            "request_id": 7,
            "transport": "stdio",
            "timestamp": "2024-01-01T12:00:00+00:00",
            "metadata": {"client_ip": "127.0.0.1"},
        }
