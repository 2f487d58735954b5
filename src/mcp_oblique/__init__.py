"""
Oblique Strategies MCP Server.

This package exposes the Model Context Protocol (JSON-RPC 2.0 over HTTP, framed
as Server-Sent Events) backed by a key-value store. Devices pair through a
short-lived PIN, receive a bearer token, and then call the strategy tools.
"""

__version__ = "1.0.0"
