"""Repository interfaces for TaskMate.

The port the synchronization service depends on. The remote adapter lives
in taskmate.adapters.rest_api.
"""

from .repository import ChangeHandler, TaskRepository, Unsubscribe

__all__ = [
    "ChangeHandler",
    "TaskRepository",
    "Unsubscribe",
]
