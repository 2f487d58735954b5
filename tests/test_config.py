"""
Tests for the configuration module.

This test module validates:
- Configuration loading from YAML files
- Environment variable overrides
- CLI argument overrides
- Configuration precedence (defaults < YAML < env vars < CLI args)
- Pydantic model validation with invalid inputs
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from unittest import mock

import pytest
import yaml
from pydantic import ValidationError

from mcp_oblique.config import (
    AppConfig,
    AuthConfig,
    HistoryConfig,
    LoggingConfig,
    ServerConfig,
    StorageConfig,
    _deep_merge,
    _load_env_config,
    _load_yaml_config,
    _parse_cli_args,
    _parse_env_value,
    load_config,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Path for a temporary config file."""
    return tmp_path / "config.yml"


@pytest.fixture
def sample_yaml_config() -> dict[str, Any]:
    """Sample YAML configuration for testing."""
    return {
        "server": {
            "listen": "0.0.0.0:9000",
            "log_level": "debug",
            "public_url": "https://oblique.example.com",
        },
        "auth": {"pin_ttl_seconds": 600},
        "storage": {"backend": "sqlite", "sqlite_path": "/tmp/kv.db"},
        "history": {"max_entries": 50},
    }


def _write_yaml(path: Path, data: dict[str, Any]) -> None:
    with open(path, "w") as f:
        yaml.dump(data, f)


# =============================================================================
# Tests for Default Configuration
# =============================================================================


class TestDefaultConfiguration:
    """Tests for default configuration values."""

    def test_app_config_defaults(self) -> None:
        """Test that AppConfig has sensible defaults."""
        config = AppConfig()

        assert config.server.listen == "127.0.0.1:8787"
        assert config.server.log_level == "info"
        assert config.server.transport == "http"
        assert config.server.public_url is None

        assert config.auth.pin_ttl_seconds == 300
        assert config.auth.stdio_device_id == "stdio-local"

        assert config.storage.backend == "memory"

        assert config.history.max_entries == 100
        assert config.history.ttl_seconds == 7776000

        assert config.logging.level == "info"
        assert config.logging.log_to_stdout is True
        assert config.logging.audit_log_path is None
        assert config.logging.debug_mode is False

    def test_host_and_port(self) -> None:
        config = ServerConfig(listen="0.0.0.0:9000")
        assert config.host == "0.0.0.0"
        assert config.port == 9000

    def test_port_only_listen(self) -> None:
        config = ServerConfig(listen=":8080")
        assert config.host == "127.0.0.1"
        assert config.port == 8080


# =============================================================================
# Tests for Configuration Validation
# =============================================================================


class TestConfigurationValidation:
    """Tests for configuration validation."""

    def test_log_level_validation_valid(self) -> None:
        """Test valid log levels are accepted and normalized."""
        for level in ["debug", "info", "warn", "warning", "error", "DEBUG", "INFO"]:
            config = ServerConfig(log_level=level)
            if level.lower() == "warn":
                assert config.log_level == "warning"
            else:
                assert config.log_level == level.lower()

    def test_log_level_validation_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            ServerConfig(log_level="invalid")

    def test_logging_level_validation(self) -> None:
        assert LoggingConfig(level="WARN").level == "warning"
        with pytest.raises(ValueError, match="Invalid log level"):
            LoggingConfig(level="verbose")

    def test_transport_validation(self) -> None:
        assert ServerConfig(transport="STDIO").transport == "stdio"
        with pytest.raises(ValueError, match="Invalid transport"):
            ServerConfig(transport="websocket")

    def test_storage_backend_validation(self) -> None:
        assert StorageConfig(backend="SQLite").backend == "sqlite"
        with pytest.raises(ValueError, match="Invalid storage backend"):
            StorageConfig(backend="redis")

    @pytest.mark.parametrize("ttl", [0, 59, 3601])
    def test_pin_ttl_bounds(self, ttl: int) -> None:
        with pytest.raises(ValidationError):
            AuthConfig(pin_ttl_seconds=ttl)

    def test_stdio_device_id_not_empty(self) -> None:
        with pytest.raises(ValidationError):
            AuthConfig(stdio_device_id="")

    def test_history_bounds(self) -> None:
        with pytest.raises(ValidationError):
            HistoryConfig(max_entries=0)
        with pytest.raises(ValidationError):
            HistoryConfig(ttl_seconds=10)


# =============================================================================
# Tests for YAML Configuration Loading
# =============================================================================


class TestYAMLConfigLoading:
    """Tests for YAML configuration file loading."""

    def test_load_yaml_config_success(
        self, temp_config_file: Path, sample_yaml_config: dict[str, Any]
    ) -> None:
        _write_yaml(temp_config_file, sample_yaml_config)

        config_dict = _load_yaml_config(temp_config_file)

        assert config_dict["server"]["listen"] == "0.0.0.0:9000"
        assert config_dict["auth"]["pin_ttl_seconds"] == 600

    def test_load_yaml_config_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            _load_yaml_config(Path("/nonexistent/config.yml"))

    def test_load_yaml_config_empty_file(self, temp_config_file: Path) -> None:
        temp_config_file.write_text("")
        assert _load_yaml_config(temp_config_file) == {}

    def test_load_config_with_yaml_file(
        self, temp_config_file: Path, sample_yaml_config: dict[str, Any]
    ) -> None:
        _write_yaml(temp_config_file, sample_yaml_config)

        config = load_config(config_path=temp_config_file, cli_args=[])

        assert config.server.listen == "0.0.0.0:9000"
        assert config.server.public_url == "https://oblique.example.com"
        assert config.auth.pin_ttl_seconds == 600
        assert config.storage.backend == "sqlite"
        assert config.history.max_entries == 50
        assert config.history.ttl_seconds == 7776000

    def test_config_path_from_cli(
        self, temp_config_file: Path, sample_yaml_config: dict[str, Any]
    ) -> None:
        _write_yaml(temp_config_file, sample_yaml_config)

        config = load_config(cli_args=["--config", str(temp_config_file)])

        assert config.server.listen == "0.0.0.0:9000"


# =============================================================================
# Tests for Environment Variable Loading
# =============================================================================


class TestEnvironmentVariableLoading:
    """Tests for environment variable configuration loading."""

    def test_parse_env_value_boolean(self) -> None:
        for value in ["true", "True", "yes", "on"]:
            assert _parse_env_value(value) is True
        for value in ["false", "FALSE", "no", "off"]:
            assert _parse_env_value(value) is False

    def test_parse_env_value_numbers(self) -> None:
        assert _parse_env_value("42") == 42
        assert _parse_env_value("0") == 0
        assert _parse_env_value("1") == 1
        assert _parse_env_value("3.14") == 3.14

    def test_parse_env_value_list(self) -> None:
        assert _parse_env_value("a, b, c") == ["a", "b", "c"]
        assert _parse_env_value("1,2") == [1, 2]

    def test_parse_env_value_string(self) -> None:
        assert _parse_env_value("hello") == "hello"
        assert _parse_env_value("127.0.0.1:8787") == "127.0.0.1:8787"

    def test_load_env_config_nested(self) -> None:
        env_vars = {
            "MCP_OBLIQUE_SERVER__LISTEN": "0.0.0.0:9000",
            "MCP_OBLIQUE_AUTH__PIN_TTL_SECONDS": "120",
            "MCP_OBLIQUE_LOGGING__DEBUG_MODE": "true",
        }

        with mock.patch.dict(os.environ, env_vars, clear=False):
            config_dict = _load_env_config()

        assert config_dict["server"]["listen"] == "0.0.0.0:9000"
        assert config_dict["auth"]["pin_ttl_seconds"] == 120
        assert config_dict["logging"]["debug_mode"] is True

    def test_custom_prefix(self) -> None:
        with mock.patch.dict(os.environ, {"OTHER_SERVER__TRANSPORT": "stdio"}):
            assert _load_env_config("OTHER_") == {"server": {"transport": "stdio"}}


# =============================================================================
# Tests for CLI Argument Parsing
# =============================================================================


class TestCLIArgumentParsing:
    """Tests for command-line argument parsing."""

    def test_parse_cli_args_config_path(self) -> None:
        result = _parse_cli_args(["--config", "/path/to/config.yml"])
        assert result["_config_path"] == "/path/to/config.yml"

    def test_parse_cli_args_log_level(self) -> None:
        result = _parse_cli_args(["--log-level", "debug"])
        assert result["server"]["log_level"] == "debug"
        assert result["logging"]["level"] == "debug"

    def test_parse_cli_args_listen_and_transport(self) -> None:
        result = _parse_cli_args(["--listen", "0.0.0.0:1234", "--transport", "stdio"])
        assert result["server"] == {"listen": "0.0.0.0:1234", "transport": "stdio"}

    def test_parse_cli_args_debug(self) -> None:
        result = _parse_cli_args(["--debug"])
        assert result["logging"]["debug_mode"] is True
        assert result["server"]["log_level"] == "debug"

    def test_parse_cli_args_empty(self) -> None:
        assert _parse_cli_args([]) == {}

    def test_invalid_transport_rejected(self) -> None:
        with pytest.raises(SystemExit):
            _parse_cli_args(["--transport", "carrier-pigeon"])


# =============================================================================
# Tests for Configuration Precedence
# =============================================================================


class TestConfigurationPrecedence:
    """Tests for configuration layering precedence."""

    def test_full_precedence_chain(self, temp_config_file: Path) -> None:
        """defaults < YAML < env vars < CLI args."""
        _write_yaml(
            temp_config_file,
            {
                "server": {"listen": "0.0.0.0:9000", "log_level": "info"},
                "auth": {"pin_ttl_seconds": 600},
                "storage": {"backend": "sqlite"},
            },
        )
        env_vars = {
            "MCP_OBLIQUE_AUTH__PIN_TTL_SECONDS": "900",
            "MCP_OBLIQUE_SERVER__LOG_LEVEL": "warning",
        }

        with mock.patch.dict(os.environ, env_vars, clear=False):
            config = load_config(
                config_path=temp_config_file, cli_args=["--log-level", "debug"]
            )

        assert config.server.log_level == "debug"
        assert config.logging.level == "debug"
        assert config.auth.pin_ttl_seconds == 900
        assert config.server.listen == "0.0.0.0:9000"
        assert config.storage.backend == "sqlite"
        assert config.history.max_entries == 100

    def test_invalid_yaml_value_rejected(self, temp_config_file: Path) -> None:
        _write_yaml(temp_config_file, {"storage": {"backend": "redis"}})

        with pytest.raises(ValidationError):
            load_config(config_path=temp_config_file, cli_args=[])


# =============================================================================
# Tests for Deep Merge
# =============================================================================


class TestDeepMerge:
    """Tests for deep merge functionality."""

    def test_deep_merge_nested(self) -> None:
        base = {"a": {"b": 1, "c": 2}}
        override = {"a": {"c": 3, "d": 4}}
        assert _deep_merge(base, override) == {"a": {"b": 1, "c": 3, "d": 4}}

    def test_deep_merge_does_not_modify_original(self) -> None:
        base = {"a": {"b": 1}}
        override = {"a": {"c": 2}}

        result = _deep_merge(base, override)

        assert result == {"a": {"b": 1, "c": 2}}
        assert base == {"a": {"b": 1}}
        assert override == {"a": {"c": 2}}
