"""
Process entry point for the Oblique Strategies MCP Server.

Usage:
    mcp-oblique [--config PATH] [--listen HOST:PORT] [--transport http|stdio]
                [--log-level LEVEL] [--debug]
"""

from __future__ import annotations

import asyncio
import signal
import sys

import uvicorn

from mcp_oblique import __version__
from mcp_oblique.config import AppConfig, load_config
from mcp_oblique.dispatcher import MCPDispatcher
from mcp_oblique.http import create_app
from mcp_oblique.logging import get_logger, setup_logging
from mcp_oblique.routing import ToolRegistry
from mcp_oblique.security.audit_logger import AuditLogger
from mcp_oblique.server import MCPServer
from mcp_oblique.storage.kv import KVStore, create_store
from mcp_oblique.tools import register_strategy_tools

logger = get_logger(__name__)


async def run_http(config: AppConfig, store: KVStore) -> None:
    """Serve the HTTP transport until uvicorn shuts down."""
    app = create_app(config, store)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level=config.server.log_level,
            access_log=False,
            log_config=None,
        )
    )
    logger.info(
        "HTTP server starting",
        extra={"listen": config.server.listen, "version": __version__},
    )
    await server.serve()


async def run_stdio(config: AppConfig, store: KVStore) -> None:
    """Serve the stdio transport until stdin closes or a signal arrives."""
    registry = register_strategy_tools(ToolRegistry(), store, config.history)
    dispatcher = MCPDispatcher(
        registry, audit_logger=AuditLogger.from_config(config.logging)
    )
    server = MCPServer(dispatcher, device_id=config.auth.stdio_device_id)

    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()

    def shutdown() -> None:
        logger.info("Received shutdown signal")
        server.stop()
        if main_task is not None:
            main_task.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown)
        except (ValueError, NotImplementedError):
            # Signal handling not supported on this platform
            break

    try:
        await server.run()
    except asyncio.CancelledError:
        logger.info("stdio transport cancelled")


def main(argv: list[str] | None = None) -> int:
    """
    Load configuration, set up logging and run the selected transport.

    Args:
        argv: Command-line arguments; defaults to sys.argv[1:].

    Returns:
        Process exit code.
    """
    config = load_config(cli_args=argv)

    stdio = config.server.transport == "stdio"
    # stdout carries the protocol on the stdio transport
    setup_logging(config.logging, stream=sys.stderr if stdio else sys.stdout)

    store = create_store(config.storage)
    logger.info(
        "Storage backend ready",
        extra={"backend": config.storage.backend, "transport": config.server.transport},
    )

    try:
        if stdio:
            asyncio.run(run_stdio(config, store))
        else:
            asyncio.run(run_http(config, store))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
