"""Tasks table endpoints in the PostgREST dialect."""

from __future__ import annotations

from typing import Any

from taskmate.services.api.client import APIClient

RETURN_REPRESENTATION = {"Prefer": "return=representation"}
COUNT_EXACT = {"Prefer": "count=exact"}


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the search matches them literally.

    PostgREST turns every ``*`` into ``%`` and has no escape for it, so a
    literal ``*`` is sent as the one-character wildcard ``_``. Callers that
    need an exact match must re-check titles containing it.
    """
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped.replace("*", "_")


def parse_content_range(value: str | None) -> int:
    """Read the total from a ``Content-Range`` header (``0-9/42``, ``*/0``)."""
    if not value or "/" not in value:
        return 0
    total = value.rsplit("/", 1)[1].strip()
    return int(total) if total.isdigit() else 0


class TasksAPI:
    """Tasks table API client."""

    def __init__(self, client: APIClient, table: str = "tasks"):
        self.client = client
        self.table = table

    @property
    def path(self) -> str:
        return f"/rest/v1/{self.table}"

    async def list_tasks(
        self,
        *,
        status: str | None = None,
        search: str | None = None,
        order_column: str = "created_at",
        ascending: bool = False,
    ) -> list[dict]:
        """List rows, optionally filtered by status and title substring."""
        nulls = "nullsfirst" if ascending else "nullslast"
        params: dict[str, Any] = {
            "select": "*",
            "order": f"{order_column}.{'asc' if ascending else 'desc'}.{nulls}",
        }
        if status:
            params["status"] = f"eq.{status}"
        if search:
            params["title"] = f"ilike.*{escape_like(search)}*"

        response = await self.client.get(self.path, params=params)
        return response.json() or []

    async def get_task(self, task_id: Any) -> dict | None:
        """Get a specific row by ID, or None if there is none."""
        response = await self.client.get(
            self.path,
            params={"select": "*", "id": f"eq.{task_id}", "limit": 1},
        )
        rows = response.json() or []
        return rows[0] if rows else None

    async def create_task(self, data: dict[str, Any]) -> dict | None:
        """Insert a row and return it as stored."""
        response = await self.client.post(
            self.path,
            json=data,
            params={"select": "*"},
            headers=RETURN_REPRESENTATION,
        )
        rows = response.json() or []
        return rows[0] if rows else None

    async def update_task(self, task_id: Any, data: dict[str, Any]) -> dict | None:
        """Update the given columns of one row and return it."""
        response = await self.client.patch(
            self.path,
            json=data,
            params={"select": "*", "id": f"eq.{task_id}"},
            headers=RETURN_REPRESENTATION,
        )
        rows = response.json() or []
        return rows[0] if rows else None

    async def delete_task(self, task_id: Any) -> None:
        """Delete a row. Deleting a missing row is not an error."""
        await self.client.delete(self.path, params={"id": f"eq.{task_id}"})

    async def probe_column(self, column: str) -> None:
        """Select one column with no rows; raises if the column is unknown."""
        await self.client.get(self.path, params={"select": column, "limit": 0})

    async def select_column(self, column: str) -> list[dict]:
        """Fetch a single column for every row."""
        response = await self.client.get(self.path, params={"select": column})
        return response.json() or []

    async def count_tasks(self, **filters: str) -> int:
        """Count rows matching PostgREST filters (``due_date="eq.2024-01-01"``)."""
        params: dict[str, Any] = {"select": "id"}
        params.update(filters)
        response = await self.client.head(self.path, params=params, headers=COUNT_EXACT)
        return parse_content_range(response.headers.get("content-range"))
