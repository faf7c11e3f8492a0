"""Wiring of configuration, repository and sync service.

This is the one place that turns configuration into live objects; the
pieces themselves only receive what they are given.
"""

from __future__ import annotations

import httpx

from taskmate.adapters.rest_api import RestApiTaskRepository
from taskmate.models import AppConfig, TaskCriteria
from taskmate.services.config_service import get_config_service
from taskmate.services.sync_service import TaskSyncService


def build_repository(
    config: AppConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RestApiTaskRepository:
    """Build the REST repository from the effective configuration."""
    if config is None:
        config = get_config_service().effective_config()
    return RestApiTaskRepository.from_config(config, transport=transport)


def build_sync_service(
    criteria: TaskCriteria | None = None,
    *,
    realtime: bool = False,
    config: AppConfig | None = None,
) -> TaskSyncService:
    """Build a TaskSyncService over the configured store.

    Realtime is off by default; one-shot commands have no use for a feed.
    """
    repository = build_repository(config)
    return TaskSyncService(repository, criteria, realtime=realtime)
