"""Custom exceptions for TaskMate."""

from __future__ import annotations


class TaskMateError(Exception):
    """Base exception for all TaskMate errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskMateError):
    """Raised when caller input is malformed. Never sent to the store."""


class QueryError(TaskMateError):
    """Raised when a call against the remote task store fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotConfiguredError(QueryError):
    """Raised when the store URL or key has not been configured."""


class RealtimeUnavailableError(TaskMateError):
    """Raised when a change feed is requested but realtime is not configured."""


class SchemaMismatchWarning(UserWarning):
    """Issued when a column used for metrics is missing from the store."""
