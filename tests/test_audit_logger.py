"""
Tests for the audit logger.

This test module validates:
- Audit file setup from LoggingConfig
- Tool call and pairing event entries
- Masking of credentials before anything is written
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest import mock

import pytest

from mcp_oblique.config import LoggingConfig
from mcp_oblique.context import ToolContext
from mcp_oblique.security.audit_logger import AUDIT_LOGGER_NAME, AuditLogger

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def audit_path(tmp_path: Path) -> Path:
    return tmp_path / "audit" / "audit.log"


@pytest.fixture
def audit_logger(audit_path: Path) -> Iterator[AuditLogger]:
    """An audit logger writing to a temporary file."""
    yield AuditLogger(audit_log_path=str(audit_path))
    file_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    for handler in file_logger.handlers:
        handler.close()
    file_logger.handlers.clear()


@pytest.fixture
def sample_context() -> ToolContext:
    return ToolContext(
        tool_name="get_random_strategy",
        device_id="phone-1",
        request_id=7,
        transport="http",
    )


def _entries(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text().splitlines()]


# =============================================================================
# Tests for initialization
# =============================================================================


class TestAuditLoggerInit:
    """Tests for AuditLogger construction."""

    def test_without_file(self) -> None:
        audit = AuditLogger()
        assert audit._file_logger is None

    def test_creates_parent_directory(
        self, audit_logger: AuditLogger, audit_path: Path
    ) -> None:
        assert audit_path.parent.is_dir()
        assert audit_logger._file_logger is not None

    def test_from_config(self, tmp_path: Path) -> None:
        config = LoggingConfig(audit_log_path=None, log_to_stdout=False)

        audit = AuditLogger.from_config(config)

        assert audit._audit_log_path is None
        assert audit._log_to_stdout is False

    def test_unwritable_path_disables_file(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")

        audit = AuditLogger(audit_log_path=str(blocker / "audit.log"))

        assert audit._file_logger is None


# =============================================================================
# Tests for entries
# =============================================================================


class TestToolCallLogging:
    """Tests for log_tool_call."""

    def test_success_entry(
        self, audit_logger: AuditLogger, audit_path: Path, sample_context: ToolContext
    ) -> None:
        audit_logger.log_tool_call(
            sample_context,
            status="success",
            params={"deviceId": "phone-1"},
            duration_ms=3.14159,
        )

        [entry] = _entries(audit_path)
        assert entry["event_type"] == "tool_call"
        assert entry["device_id"] == "phone-1"
        assert entry["action"] == "get_random_strategy"
        assert entry["result"] == "success"
        assert entry["request_id"] == 7
        assert entry["transport"] == "http"
        assert entry["params"] == {"deviceId": "phone-1"}
        assert entry["duration_ms"] == 3.14
        assert "error_code" not in entry
        assert entry["timestamp"].endswith("+00:00")

    def test_error_entry(
        self, audit_logger: AuditLogger, audit_path: Path, sample_context: ToolContext
    ) -> None:
        audit_logger.log_tool_call(sample_context, status="error", error_code="failed_precondition")

        [entry] = _entries(audit_path)
        assert entry["result"] == "error"
        assert entry["error_code"] == "failed_precondition"
        assert "params" not in entry
        assert "duration_ms" not in entry


class TestAuthEventLogging:
    """Tests for log_auth_event."""

    def test_pin_exchange(self, audit_logger: AuditLogger, audit_path: Path) -> None:
        audit_logger.log_auth_event(
            "pin_exchanged",
            success=True,
            device_id="phone-1",
            source_ip="10.0.0.2",
            details={"pin": "123456"},
        )

        [entry] = _entries(audit_path)
        assert entry["event_type"] == "pin_exchanged"
        assert entry["success"] is True
        assert entry["device_id"] == "phone-1"
        assert entry["source_ip"] == "10.0.0.2"
        assert entry["details"] == {"pin": "<masked>"}

    def test_rejected_bearer(self, audit_logger: AuditLogger, audit_path: Path) -> None:
        audit_logger.log_auth_event("bearer_rejected", success=False)

        [entry] = _entries(audit_path)
        assert entry["success"] is False
        assert entry["device_id"] is None
        assert "details" not in entry

    def test_entries_appended(self, audit_logger: AuditLogger, audit_path: Path) -> None:
        audit_logger.log_auth_event("device_registered", success=True, device_id="a")
        audit_logger.log_auth_event("device_registered", success=True, device_id="b")

        assert [e["device_id"] for e in _entries(audit_path)] == ["a", "b"]

    def test_log_to_stdout(self, caplog: pytest.LogCaptureFixture) -> None:
        audit = AuditLogger(log_to_stdout=True)
        root = logging.getLogger("mcp_oblique")

        with mock.patch.object(root, "propagate", True), caplog.at_level(logging.INFO):
            audit.log_auth_event("device_registered", success=True, device_id="a")

        assert any("AUDIT:" in r.getMessage() for r in caplog.records)


# =============================================================================
# Tests for masking
# =============================================================================


class TestSensitiveFieldMasking:
    """Tests for mask_sensitive_fields."""

    def test_masks_credentials(self) -> None:
        masked = AuditLogger().mask_sensitive_fields(
            {"token": "abc", "Authorization": "Bearer abc", "pin": "123456", "deviceId": "d"}
        )

        assert masked == {
            "token": "<masked>",
            "Authorization": "<masked>",
            "pin": "<masked>",
            "deviceId": "d",
        }

    def test_nested_and_lists(self) -> None:
        masked = AuditLogger().mask_sensitive_fields(
            {"outer": {"access_token": "x"}, "items": [{"secret": "y", "n": 1}, "plain"]}
        )

        assert masked == {
            "outer": {"access_token": "<masked>"},
            "items": [{"secret": "<masked>", "n": 1}, "plain"],
        }

    def test_does_not_modify_input(self) -> None:
        data = {"token": "abc"}
        AuditLogger().mask_sensitive_fields(data)
        assert data == {"token": "abc"}
