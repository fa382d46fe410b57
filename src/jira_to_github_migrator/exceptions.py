"""
Custom exception classes for the Jira to GitHub migration tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigError(MigrationError):
    """Raised when the configuration cannot be found or is invalid."""


class PersistenceError(MigrationError):
    """Raised when the mapping file cannot be read or written."""


class AuthenticationError(MigrationError):
    """Raised when a remote system rejects our credentials."""


class ConversionError(MigrationError):
    """Raised for malformed document nodes. Never escapes the converter."""


class RemoteError(MigrationError):
    """Failure reported by a remote service (Jira, GitHub, OpenAI)."""

    status: int | None
    rate_limited: bool

    def __init__(self, message: str, *, status: int | None = None, rate_limited: bool = False) -> None:
        super().__init__(message)
        self.status = status
        self.rate_limited = rate_limited


class JiraApiError(RemoteError):
    """Error response from the Jira REST API."""


class RemoteOperationError(MigrationError):
    """A remote operation failed for good. Carries the last underlying error."""

    label: str
    last_error: BaseException

    def __init__(self, label: str, last_error: BaseException) -> None:
        super().__init__(f"{label} failed: {last_error}")
        self.label = label
        self.last_error = last_error

    @property
    def status(self) -> int | None:
        """HTTP-like status of the last error, if it had one."""
        from .retry import error_status  # noqa: PLC0415 - avoid import cycle

        return error_status(self.last_error)


class ExhaustedRetriesError(RemoteOperationError):
    """Raised when a transient failure persisted through every retry."""


class FatalRemoteError(RemoteOperationError):
    """Raised for client-class failures that are not worth retrying."""
