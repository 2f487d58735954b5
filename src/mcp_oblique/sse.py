"""
Server-Sent Events framing for MCP responses.

Every in-protocol response on ``POST /mcp`` is delivered as exactly one SSE
event, after which the stream ends. No keep-alive pings and no multi-event
streams are produced.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from starlette.responses import StreamingResponse

from mcp_oblique.protocol import JSONRPCResponse

SSE_MEDIA_TYPE = "text/event-stream"

SSE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def format_sse_message(response: JSONRPCResponse) -> str:
    """
    Format a JSON-RPC response as a single SSE ``data`` event.

    Args:
        response: The response to frame.

    Returns:
        ``"data: <compact json>\\n\\n"``.
    """
    return f"data: {response.to_json()}\n\n"


async def sse_stream(response: JSONRPCResponse) -> AsyncIterator[bytes]:
    """Yield the framed response once, then end the stream."""
    yield format_sse_message(response).encode("utf-8")


def create_sse_response(response: JSONRPCResponse) -> StreamingResponse:
    """
    Build the HTTP response carrying one SSE-framed JSON-RPC response.

    The status is always 200; a JSON-RPC error travels inside the event.

    Args:
        response: The JSON-RPC response to send.

    Returns:
        StreamingResponse with ``text/event-stream`` content type.
    """
    return StreamingResponse(
        sse_stream(response),
        status_code=200,
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )
