"""Exit codes for the TaskMate CLI."""

from taskmate.errors import (
    NotConfiguredError,
    QueryError,
    ValidationError,
)

SUCCESS = 0

# General error (unspecified)
ERROR_GENERAL = 1

# Invalid arguments or validation error
ERROR_INVALID_ARGS = 2

# Store not configured
ERROR_NOT_CONFIGURED = 3

# Network or store error
ERROR_NETWORK = 4

# Resource not found
ERROR_NOT_FOUND = 5


def exit_code_for(error: BaseException) -> int:
    """Pick the exit code for an error raised by a command."""
    if isinstance(error, ValidationError):
        return ERROR_INVALID_ARGS
    if isinstance(error, NotConfiguredError):
        return ERROR_NOT_CONFIGURED
    if isinstance(error, QueryError):
        if error.status_code == 404:
            return ERROR_NOT_FOUND
        return ERROR_NETWORK
    return ERROR_GENERAL
