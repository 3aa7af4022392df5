"""Custom exception hierarchy for Waydroid Controller.

This module provides a structured exception hierarchy that enables:
- Consistent error handling across the controller
- Rich error context for debugging
- Error categorization for different handling strategies

Command failures are normally *reported* inside a CommandResult rather than
raised; the exception types below are still used to describe them so that
logging and error statistics stay uniform.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class WaydroidControllerError(Exception):
    """Base exception for all Waydroid Controller errors.

    Attributes:
        message: Human-readable error description.
        context: Additional context for debugging.
        timestamp: When the error occurred.
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now()
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message


# =============================================================================
# Command Errors
# =============================================================================


class CommandError(WaydroidControllerError):
    """Base class for external command errors."""

    pass


class SpawnFailure(CommandError):
    """Raised (or reported) when a process could not be created."""

    def __init__(
        self,
        message: str = "Failed to spawn process",
        *,
        command: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if command:
            ctx["command"] = command
        super().__init__(message, context=ctx, cause=cause)


class NonZeroExit(CommandError):
    """Raised (or reported) when a process ran and signaled failure."""

    def __init__(
        self,
        message: str = "Command exited with non-zero status",
        *,
        command: str | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if command:
            ctx["command"] = command
        if returncode is not None:
            ctx["returncode"] = returncode
        if stderr:
            ctx["stderr"] = stderr.strip()[:200]
        self.returncode = returncode
        super().__init__(message, context=ctx, cause=cause)


class ParseFailure(CommandError):
    """Raised when command output lacks an expected marker or field."""

    def __init__(
        self,
        message: str = "Failed to parse command output",
        *,
        field: str | None = None,
        output: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if field:
            ctx["field"] = field
        if output is not None:
            ctx["output"] = output.strip()[:100]  # Truncate long output
        super().__init__(message, context=ctx, cause=cause)


# =============================================================================
# State Errors
# =============================================================================


class StateConflict(WaydroidControllerError):
    """Raised when an operation is disallowed by the current state.

    The coordinator turns this into a silent no-op or a visual revert; it is
    never surfaced to the user as an error dialog.
    """

    def __init__(
        self,
        message: str = "Operation not permitted in current state",
        *,
        operation: str | None = None,
        state: str | None = None,
        pending: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if operation:
            ctx["operation"] = operation
        if state:
            ctx["state"] = state
        if pending:
            ctx["pending"] = pending
        super().__init__(message, context=ctx)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(WaydroidControllerError):
    """Base class for configuration-related errors."""

    pass


class ConfigLoadError(ConfigError):
    """Raised when configuration file fails to load."""

    def __init__(
        self,
        message: str = "Failed to load configuration",
        *,
        file_path: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if file_path:
            ctx["file_path"] = file_path
        super().__init__(message, context=ctx, cause=cause)


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    def __init__(
        self,
        message: str = "Configuration validation failed",
        *,
        field: str | None = None,
        value: Any = None,
        expected: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if field:
            ctx["field"] = field
        if value is not None:
            ctx["value"] = str(value)[:100]
        if expected:
            ctx["expected"] = expected
        super().__init__(message, context=ctx, cause=cause)


class ConfigSaveError(ConfigError):
    """Raised when configuration fails to save."""

    def __init__(
        self,
        message: str = "Failed to save configuration",
        *,
        file_path: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if file_path:
            ctx["file_path"] = file_path
        super().__init__(message, context=ctx, cause=cause)


# =============================================================================
# Error Registry for Categorization
# =============================================================================


@dataclass
class ErrorStats:
    """Track error statistics for monitoring."""

    total_count: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    recent_errors: list[tuple[datetime, str, str]] = field(default_factory=list)
    max_recent: int = 100

    def record(self, error: Exception) -> None:
        """Record an error occurrence."""
        self.total_count += 1
        type_name = type(error).__name__
        self.by_type[type_name] = self.by_type.get(type_name, 0) + 1

        self.recent_errors.append((datetime.now(), type_name, str(error)[:200]))
        if len(self.recent_errors) > self.max_recent:
            self.recent_errors.pop(0)

    def reset(self) -> None:
        """Clear all recorded errors."""
        self.total_count = 0
        self.by_type.clear()
        self.recent_errors.clear()


# Global error stats tracker
error_stats = ErrorStats()


def record_error(error: Exception) -> None:
    """Record an error to global stats."""
    error_stats.record(error)
