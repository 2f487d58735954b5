"""
Configuration management for the Oblique Strategies MCP Server.

This module implements the AppConfig Pydantic model and configuration loading.

Configuration is loaded from multiple sources with layered precedence:
1. Built-in defaults (Pydantic model defaults)
2. YAML config file (/etc/mcp-oblique/config.yml or --config path)
3. Environment variables (MCP_OBLIQUE_* prefix, __ for nesting)
4. Command-line arguments (highest precedence)
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = Path("/etc/mcp-oblique/config.yml")

VALID_LOG_LEVELS = {"debug", "info", "warn", "warning", "error", "critical"}


def _normalize_log_level(v: str) -> str:
    """Validate a log level name and normalize 'warn' to 'warning'."""
    v_lower = v.lower()
    if v_lower not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {v}. Must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}"
        )
    if v_lower == "warn":
        return "warning"
    return v_lower


# =============================================================================
# Server Configuration
# =============================================================================


class ServerConfig(BaseModel):
    """Server settings configuration.

    Attributes:
        listen: Listen address and port (e.g., "127.0.0.1:8787").
        log_level: Initial application log level.
        transport: Which transport the process serves ('http' or 'stdio').
        public_url: Externally visible base URL, used in the client snippet
            shown after a PIN exchange. Derived from the request when unset.
    """

    listen: str = Field(
        default="127.0.0.1:8787",
        description="Listen address and port (e.g., '127.0.0.1:8787' or '0.0.0.0:8787')",
    )
    log_level: str = Field(
        default="info",
        description="Log level: debug, info, warn, error",
    )
    transport: str = Field(
        default="http",
        description="Transport: 'http' or 'stdio'",
    )
    public_url: str | None = Field(
        default=None,
        description="Public base URL of the server (e.g., 'https://oblique.example.com')",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        return _normalize_log_level(v)

    @field_validator("transport")
    @classmethod
    def validate_transport(cls, v: str) -> str:
        """Validate transport name."""
        valid_transports = {"http", "stdio"}
        v_lower = v.lower()
        if v_lower not in valid_transports:
            raise ValueError(
                f"Invalid transport: {v}. Must be one of: {', '.join(sorted(valid_transports))}"
            )
        return v_lower

    @property
    def host(self) -> str:
        """Host part of the listen address."""
        host, _, _ = self.listen.rpartition(":")
        return host or "127.0.0.1"

    @property
    def port(self) -> int:
        """Port part of the listen address."""
        _, _, port = self.listen.rpartition(":")
        return int(port)


# =============================================================================
# Authentication Configuration
# =============================================================================


class AuthConfig(BaseModel):
    """Device pairing and bearer authentication configuration.

    Attributes:
        pin_ttl_seconds: Lifetime of a registered PIN before it expires unread.
        stdio_device_id: Device identifier used by the stdio transport, which
            has no bearer header to resolve an identity from.
    """

    pin_ttl_seconds: int = Field(
        default=300,
        description="PIN lifetime in seconds",
        ge=60,
        le=3600,
    )
    stdio_device_id: str = Field(
        default="stdio-local",
        description="Device identifier assumed by the stdio transport",
        min_length=1,
    )


# =============================================================================
# Storage Configuration
# =============================================================================


class StorageConfig(BaseModel):
    """Key-value storage configuration.

    Attributes:
        backend: Storage backend ('memory' or 'sqlite').
        sqlite_path: Database file used by the sqlite backend.
    """

    backend: str = Field(
        default="memory",
        description="Storage backend: 'memory' or 'sqlite'",
    )
    sqlite_path: str = Field(
        default="/var/lib/mcp-oblique/kv.db",
        description="SQLite database path for the sqlite backend",
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate storage backend name."""
        valid_backends = {"memory", "sqlite"}
        v_lower = v.lower()
        if v_lower not in valid_backends:
            raise ValueError(
                f"Invalid storage backend: {v}. Must be one of: {', '.join(sorted(valid_backends))}"
            )
        return v_lower


class HistoryConfig(BaseModel):
    """Per-device history log configuration.

    Attributes:
        max_entries: Maximum number of entries kept per device (newest first).
        ttl_seconds: Expiry of the history record, refreshed on every append.
    """

    max_entries: int = Field(
        default=100,
        description="Maximum history entries kept per device",
        ge=1,
    )
    ttl_seconds: int = Field(
        default=7776000,
        description="History TTL in seconds (90 days)",
        ge=60,
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging and audit configuration.

    Attributes:
        level: Log level.
        log_to_stdout: Whether to log to stdout. The stdio transport always
            logs to stderr because stdout carries the protocol.
        audit_log_path: Audit log file path (None disables the audit file).
        debug_mode: Enable extra diagnostic logging.
    """

    level: str = Field(
        default="info",
        description="Log level",
    )
    log_to_stdout: bool = Field(
        default=True,
        description="Whether to log to stdout",
    )
    audit_log_path: str | None = Field(
        default=None,
        description="Audit log file path",
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable extra diagnostic logging",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        return _normalize_log_level(v)


# =============================================================================
# Main Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """
    Main application configuration model.

    This is the central configuration model that contains all configuration
    sections. It is built from multiple layers following the precedence rules:
    1. Built-in defaults (defined in this model)
    2. YAML config file
    3. Environment variables (MCP_OBLIQUE_* prefix)
    4. Command-line arguments

    Attributes:
        server: Server settings.
        auth: Pairing and authentication settings.
        storage: Key-value storage settings.
        history: History log settings.
        logging: Logging configuration.
    """

    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="Server settings",
    )
    auth: AuthConfig = Field(
        default_factory=AuthConfig,
        description="Pairing and authentication settings",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Key-value storage settings",
    )
    history: HistoryConfig = Field(
        default_factory=HistoryConfig,
        description="History log settings",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated recursively with ``override``; inputs are left untouched."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML configuration file.

    An empty file yields an empty mapping.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


_TRUE_WORDS = frozenset({"true", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "no", "off"})


def _parse_env_value(value: str) -> Any:
    """
    Convert an environment variable string to a bool, number, list or str.

    Only words count as booleans, so ``"1"`` and ``"0"`` stay integers.
    Comma-separated values become lists with each item converted the same way.
    """
    lowered = value.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False

    for number_type in (int, float):
        try:
            return number_type(value)
        except ValueError:
            continue

    if "," in value:
        return [_parse_env_value(item.strip()) for item in value.split(",")]
    return value


def _load_env_config(prefix: str = "MCP_OBLIQUE_") -> dict[str, Any]:
    """
    Collect configuration from ``<prefix>SECTION__KEY`` environment variables.

    ``MCP_OBLIQUE_SERVER__LISTEN=0.0.0.0:8787`` becomes
    ``{"server": {"listen": "0.0.0.0:8787"}}``.
    """
    result: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        *sections, leaf = key[len(prefix) :].lower().split("__")
        target = result
        for section in sections:
            target = target.setdefault(section, {})
        target[leaf] = _parse_env_value(value)

    return result


def _parse_cli_args(args: list[str] | None = None) -> dict[str, Any]:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Dictionary with parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="Oblique Strategies MCP Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        help="Override log level",
    )

    parser.add_argument(
        "--listen",
        type=str,
        help="Override listen address (host:port)",
    )

    parser.add_argument(
        "--transport",
        type=str,
        choices=["http", "stdio"],
        help="Transport to serve",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )

    parsed = parser.parse_args(args)

    result: dict[str, Any] = {}

    if parsed.config:
        result["_config_path"] = parsed.config

    server: dict[str, Any] = {}
    if parsed.log_level:
        server["log_level"] = parsed.log_level
        result["logging"] = {"level": parsed.log_level}
    if parsed.listen:
        server["listen"] = parsed.listen
    if parsed.transport:
        server["transport"] = parsed.transport

    if parsed.debug:
        result["logging"] = {"debug_mode": True, "level": "debug"}
        server["log_level"] = "debug"

    if server:
        result["server"] = server

    return result


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = "MCP_OBLIQUE_",
    cli_args: list[str] | None = None,
) -> AppConfig:
    """
    Load configuration from all sources with layered precedence.

    Configuration is loaded from multiple sources in order:
    1. Built-in defaults (from AppConfig model)
    2. YAML config file (if specified or default exists)
    3. Environment variables (MCP_OBLIQUE_* prefix)
    4. Command-line arguments

    Later sources override earlier ones.

    Args:
        config_path: Path to YAML configuration file. If None, uses default
            path or CLI --config argument.
        env_prefix: Prefix for environment variables.
        cli_args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Fully configured AppConfig instance.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ValidationError: If configuration is invalid.

    Example:
        >>> config = load_config(cli_args=[])
        >>> print(config.server.listen)
        '127.0.0.1:8787'
    """
    config_dict: dict[str, Any] = {}

    # CLI args are parsed first to learn the config path
    cli_config = _parse_cli_args(cli_args)

    if config_path is None:
        if "_config_path" in cli_config:
            config_path = Path(cli_config.pop("_config_path"))
        elif DEFAULT_CONFIG_PATH.exists():
            config_path = DEFAULT_CONFIG_PATH
    else:
        cli_config.pop("_config_path", None)
        if isinstance(config_path, str):
            config_path = Path(config_path)

    if config_path is not None:
        yaml_config = _load_yaml_config(config_path)
        config_dict = _deep_merge(config_dict, yaml_config)

    env_config = _load_env_config(env_prefix)
    config_dict = _deep_merge(config_dict, env_config)

    config_dict = _deep_merge(config_dict, cli_config)

    return AppConfig(**config_dict)
