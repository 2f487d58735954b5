"""
Audit logging for authentication and tool calls.

Audit logs record:
- Device registrations and PIN exchanges
- Rejected bearer credentials
- All MCP tool invocations and their outcome

Entries are single-line JSON objects. Credentials never appear in clear:
fields whose name looks sensitive are masked before writing.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mcp_oblique.logging import get_logger

if TYPE_CHECKING:
    from mcp_oblique.config import LoggingConfig
    from mcp_oblique.context import ToolContext

logger = get_logger(__name__)

AUDIT_LOGGER_NAME = "mcp_oblique.audit"


class AuditLogger:
    """
    Structured audit logger.

    Audit log format (JSON):
    {
        "timestamp": "2025-01-15T14:30:00+00:00",
        "event_type": "tool_call",
        "device_id": "phone-1",
        "action": "get_random_strategy",
        "result": "success",
        "request_id": 7,
        "duration_ms": 3.2
    }

    Example:
        >>> audit = AuditLogger.from_config(config.logging)
        >>> audit.log_auth_event("pin_exchanged", success=True, device_id="phone-1")
    """

    # Fields that should be masked in audit logs
    SENSITIVE_FIELD_PATTERNS = [
        "token",
        "pin",
        "password",
        "secret",
        "credential",
        "auth",
    ]

    def __init__(
        self,
        audit_log_path: str | None = None,
        log_to_stdout: bool = False,
    ) -> None:
        """
        Initialize the audit logger.

        Args:
            audit_log_path: Path to the audit log file; None disables the file.
            log_to_stdout: Whether to also emit entries through the app logger.
        """
        self._audit_log_path = audit_log_path
        self._log_to_stdout = log_to_stdout
        self._file_logger: logging.Logger | None = None

        if audit_log_path:
            self._setup_file_logger(audit_log_path)

    @classmethod
    def from_config(cls, config: LoggingConfig) -> AuditLogger:
        """Create an AuditLogger from configuration."""
        return cls(
            audit_log_path=config.audit_log_path,
            log_to_stdout=config.log_to_stdout,
        )

    def _setup_file_logger(self, path: str) -> None:
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)

            self._file_logger = logging.getLogger(AUDIT_LOGGER_NAME)
            self._file_logger.setLevel(logging.INFO)
            self._file_logger.propagate = False
            self._file_logger.handlers.clear()

            handler = logging.FileHandler(path, mode="a", encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._file_logger.addHandler(handler)

            logger.info("Audit logging initialized", extra={"audit_log_path": path})
        except OSError as e:
            logger.error(
                "Failed to set up audit file logging",
                extra={"audit_log_path": path, "error": str(e)},
            )
            self._file_logger = None

    def log_tool_call(
        self,
        ctx: ToolContext,
        status: str,
        error_code: str | None = None,
        params: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """
        Log a tool invocation.

        Args:
            ctx: Tool context with device and request information.
            status: Result status ("success", "tool_error" or "error").
            error_code: Error code if status is "error".
            params: Tool arguments (sensitive fields will be masked).
            duration_ms: Execution duration in milliseconds.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "event_type": "tool_call",
            "device_id": ctx.device_id,
            "action": ctx.tool_name,
            "result": status,
            "request_id": ctx.request_id,
            "transport": ctx.transport,
        }

        if error_code:
            entry["error_code"] = error_code

        if params:
            entry["params"] = self.mask_sensitive_fields(params)

        if duration_ms is not None:
            entry["duration_ms"] = round(duration_ms, 2)

        self._write_entry(entry)

    def log_auth_event(
        self,
        event_type: str,
        success: bool,
        device_id: str | None = None,
        source_ip: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Log a pairing or authentication event.

        Args:
            event_type: e.g. "device_registered", "pin_exchanged",
                "bearer_rejected".
            success: Whether the event was successful.
            device_id: Device identifier if known.
            source_ip: Client IP address.
            details: Additional event details.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "event_type": event_type,
            "success": success,
            "device_id": device_id,
            "source_ip": source_ip,
        }

        if details:
            entry["details"] = self.mask_sensitive_fields(details)

        self._write_entry(entry)

    def mask_sensitive_fields(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Mask sensitive fields in a dictionary.

        Values of sensitive fields are replaced with '<masked>', recursing into
        nested dictionaries and lists of dictionaries.

        Args:
            data: Dictionary to mask.

        Returns:
            Dictionary with sensitive values masked.
        """
        masked: dict[str, Any] = {}
        for key, value in data.items():
            key_lower = key.lower()
            if any(pattern in key_lower for pattern in self.SENSITIVE_FIELD_PATTERNS):
                masked[key] = "<masked>"
            elif isinstance(value, dict):
                masked[key] = self.mask_sensitive_fields(value)
            elif isinstance(value, list):
                masked[key] = [
                    self.mask_sensitive_fields(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                masked[key] = value
        return masked

    def _write_entry(self, entry: dict[str, Any]) -> None:
        json_line = json.dumps(entry, default=str)

        if self._file_logger:
            self._file_logger.info(json_line)

        if self._log_to_stdout:
            logger.info("AUDIT: %s", json_line)
