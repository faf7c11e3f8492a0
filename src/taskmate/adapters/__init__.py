"""Adapters - TaskRepository implementations for concrete stores."""

from .rest_api import RestApiTaskRepository

__all__ = ["RestApiTaskRepository"]
