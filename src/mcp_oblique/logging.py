"""
Structured logging for the Oblique Strategies MCP Server.

Every record is emitted as one JSON object per line so the HTTP server's
output can be shipped to a log collector unchanged. On the stdio transport
stdout carries JSON-RPC, so logs go to stderr instead.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from mcp_oblique.config import LoggingConfig

ROOT_LOGGER_NAME = "mcp_oblique"

PLAIN_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Attributes every LogRecord carries; anything else arrived through `extra`
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}


def _extra_fields(record: logging.LogRecord) -> Iterator[tuple[str, Any]]:
    for key, value in vars(record).items():
        if key not in _STANDARD_ATTRS and value is not None:
            yield key, value


class JSONFormatter(logging.Formatter):
    """
    Render log records as single-line JSON.

    Fixed fields are ``timestamp`` (UTC, ISO 8601), ``level``, ``logger`` and
    ``message``; ``exception`` is added when the record carries exc_info.
    Non-None values passed through ``extra`` are merged in at the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(_extra_fields(record))
        return json.dumps(entry, default=str)


def _build_handler(stream: TextIO, level: int, json_format: bool) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_LOG_FORMAT))
    return handler


def setup_logging(
    config: LoggingConfig | None = None,
    *,
    level: str = "INFO",
    json_format: bool = True,
    log_to_stdout: bool = True,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Configure the ``mcp_oblique`` logger.

    Calling this again replaces the previously installed handler.

    Args:
        config: LoggingConfig to take level, debug mode and log_to_stdout
            from. When given, ``level`` and ``log_to_stdout`` are ignored.
        level: Log level name used without a config.
        json_format: Emit JSON lines (True) or plain text.
        log_to_stdout: Install a stream handler at all.
        stream: Where the handler writes; sys.stdout when None.

    Returns:
        The package logger.
    """
    if config is not None:
        level = "debug" if config.debug_mode else config.level
        log_to_stdout = config.log_to_stdout
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)
    logger.handlers.clear()
    logger.propagate = False

    if log_to_stdout:
        logger.addHandler(
            _build_handler(stream if stream is not None else sys.stdout, numeric_level, json_format)
        )

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``mcp_oblique`` hierarchy."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
