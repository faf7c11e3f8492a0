"""Change feed for the tasks table.

The store announces row changes on a long-lived ``text/event-stream``
response. Each event's ``data:`` holds one JSON object::

    {"type": "UPDATE", "new": {...row...}, "old": {"id": 7}}

``eventType``/``record``/``old_record`` spellings are accepted as well.
A ChangeFeed turns that stream into an async iterator of ChangeEvent
objects; malformed events are logged and skipped.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from taskmate.models.core import ChangeEvent, ChangeType
from taskmate.models.task import Task
from taskmate.services.api.client import APIClient
from taskmate.utils.logger import get_logger


def parse_change_payload(payload: dict[str, Any]) -> ChangeEvent:
    """Build a ChangeEvent from a raw feed payload.

    Raises:
        ValueError: If the type is unknown or the payload lacks the row it needs
    """
    raw_type = payload.get("type") or payload.get("eventType")
    try:
        change_type = ChangeType(str(raw_type).upper())
    except ValueError:
        raise ValueError(f"unknown change type {raw_type!r}") from None

    new = payload.get("new", payload.get("record")) or None
    old = payload.get("old", payload.get("old_record")) or None

    if change_type is ChangeType.DELETE:
        if not old or old.get("id") is None:
            raise ValueError("DELETE event without old.id")
        return ChangeEvent(type=change_type, old=old)

    if not new:
        raise ValueError(f"{change_type.value} event without new row")
    try:
        task = Task.model_validate(new)
    except PydanticValidationError as e:
        raise ValueError(f"invalid row in {change_type.value} event: {e}") from e
    return ChangeEvent(type=change_type, new=task, old=old)


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield the ``data`` field of each server-sent event.

    Bare JSON lines are passed through as well, so newline-delimited JSON
    feeds work too.
    """
    buffer: list[str] = []
    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith(":"):
            # heartbeat
            continue
        if line.startswith("data:"):
            buffer.append(line[5:].lstrip())
        elif line.startswith("{") and not buffer:
            yield line
    if buffer:
        yield "\n".join(buffer)


class ChangeFeed:
    """Async iterator over change events for one table.

    Iterate it from a single task. ``aclose()`` ends the stream; cancelling
    the consuming task has the same effect.
    """

    def __init__(self, client: APIClient, path: str, table: str):
        self.client = client
        self.path = path
        self.table = table
        self.logger = get_logger("realtime")
        self._events = self._iter_events()
        self._closed = False

    def __aiter__(self) -> "ChangeFeed":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed:
            raise StopAsyncIteration
        return await self._events.__anext__()

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Stop the feed and release the connection."""
        if self._closed:
            return
        self._closed = True
        await self._events.aclose()
        self.logger.info("change feed for %s closed", self.table)

    async def _iter_events(self) -> AsyncIterator[ChangeEvent]:
        async with self.client.stream(
            "GET",
            self.path,
            params={"table": self.table},
            headers={"Accept": "text/event-stream"},
        ) as response:
            response.raise_for_status()
            self.logger.info("subscribed to change feed for %s", self.table)
            async for data in iter_sse_data(response.aiter_lines()):
                try:
                    payload = json.loads(data)
                    if not isinstance(payload, dict):
                        raise ValueError("payload is not an object")
                    yield parse_change_payload(payload)
                except ValueError as e:
                    # json.JSONDecodeError is a ValueError too
                    self.logger.warning("skipping change event: %s", e)
