# ABOUTME: Structured logging with correlation IDs for the Datadog Application Key MCP Server
# ABOUTME: Implements audit logging and secret-safe log processing

"""
Structured logging with correlation IDs and audit trails.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module provides three observability features:

1. STRUCTURED LOGGING: Logs as key/value events (console text or JSON lines)
   so they can be searched by field.

2. CORRELATION IDs: A short identifier attached to every log line produced
   while handling one tool call. A single "get_app_key" by name makes two
   Datadog calls (list, then get); the correlation ID ties them together.

3. AUDIT LOGGING: One record per lifecycle operation (created, updated,
   deleted, blocked, error) for compliance and incident review.

=============================================================================
SECRETS IN LOGS
=============================================================================

The value of an application key is a credential. Log events never carry it:
the `redact_sensitive_fields` processor replaces any field whose name looks
like a credential before the renderer sees it. Calling code should not rely
on this and should not pass key values to the logger in the first place.

=============================================================================
CONTEXT VARIABLES (contextvars)
=============================================================================

The correlation ID lives in a ContextVar so concurrent async tool calls each
see their own value without it being passed through every function.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path

# =============================================================================
# CORRELATION ID MANAGEMENT
# =============================================================================

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Event fields that must never reach a log sink in clear text
REDACTED_FIELDS = frozenset(
    [
        "key",
        "api_key",
        "app_key",
        "application_key",
        "dd-api-key",
        "dd-application-key",
        "authorization",
        "token",
        "secret",
        "password",
    ]
)


def get_correlation_id() -> str:
    """
    Get current correlation ID or generate a new one.

    Code that runs outside a tool call (startup, shutdown) still gets an ID,
    so every log line is correlatable.

    Returns:
        8-character correlation ID string.
    """
    cid = correlation_id.get()
    if not cid:
        cid = str(uuid.uuid4())[:8]
        correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    """
    Set correlation ID for the current context.

    Called at the start of each tool. An empty string makes the next
    get_correlation_id() generate a fresh ID.
    """
    correlation_id.set(cid)


def add_correlation_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor adding the correlation ID to every event."""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def redact_sensitive_fields(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """
    Structlog processor masking credential-like fields.

    Only top-level event fields are inspected; nested payloads are the
    caller's responsibility.
    """
    for name in list(event_dict):
        if name.lower() in REDACTED_FIELDS and event_dict[name]:
            event_dict[name] = "***MASKED***"
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging. Call once at startup.

    PROCESSOR PIPELINE:
    -------------------
    1. merge_contextvars: Adds any bound context variables
    2. add_log_level: Adds "level" field
    3. TimeStamper: Adds ISO-format timestamp
    4. add_correlation_id: Adds our correlation ID
    5. redact_sensitive_fields: Masks credential-like fields
    6. Renderer: JSON (production) or colored console text (development)

    Args:
        level: "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL".
        json_output: If True, output JSON lines.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        redact_sensitive_fields,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# AUDIT LOGGER
# =============================================================================


class AuditLogger:
    """
    Audit logger for recording application key lifecycle operations.

    Every record carries:
    - timestamp: When it happened (UTC ISO 8601)
    - correlation_id: Tool call identifier
    - action: Operation ("create_app_key", "delete_app_key", ...)
    - target: Key id or name ("6a2b...", "name=ci-deployer")
    - result: "success", "created", "deleted", "removed", "blocked", "error"
    - details: Additional context (never the key value)

    EXAMPLE ENTRIES:
    ----------------
    {"timestamp": "2026-01-15T10:30:00+00:00", "correlation_id": "abc12345",
     "action": "create_app_key", "target": "ci-deployer", "result": "created",
     "details": {"id": "6a2b..."}}

    {"timestamp": "2026-01-15T10:30:05+00:00", "correlation_id": "def45678",
     "action": "delete_app_key", "target": "6a2b...", "result": "blocked",
     "details": {"reason": "Server is running in read-only mode"}}
    """

    def __init__(self, log_path: Path | None = None) -> None:
        """
        Initialize audit logger.

        Args:
            log_path: File to append JSON lines to, or None to log through
                      structlog. The parent directory must exist.
        """
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")

    def log(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Log an auditable action.

        All specialized methods (log_read, log_write, ...) delegate here.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "correlation_id": get_correlation_id(),
            "action": action,
            "target": target,
            "result": result,
        }

        if details:
            entry["details"] = details

        if self._log_path:
            with self._log_path.open("a") as f:
                f.write(json.dumps(entry) + "\n")
        else:
            self._logger.info(
                "audit",
                action=action,
                target=target,
                result=result,
                details=details,
            )

    def log_read(self, action: str, target: str) -> None:
        """Log a successful read operation."""
        self.log(action, target, "success")

    def log_write(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Log a write operation.

        Example:
            audit_logger.log_write("create_app_key", "ci-deployer", "created", {"id": key_id})
        """
        self.log(action, target, result, details)

    def log_blocked(
        self,
        action: str,
        target: str,
        reason: str,
    ) -> None:
        """Log an operation stopped by a safety check."""
        self.log(action, target, "blocked", {"reason": reason})

    def log_error(
        self,
        action: str,
        target: str,
        error: str,
    ) -> None:
        """Log an operation that failed with an API or lifecycle error."""
        self.log(action, target, "error", {"error": error})
