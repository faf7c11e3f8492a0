"""HTTP client for the remote task store."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from taskmate.errors import NotConfiguredError
from taskmate.models.config_models import StoreConfig
from taskmate.utils.logger import get_logger

NOT_CONFIGURED_MESSAGE = (
    "Task store is not configured. Set store.url and store.key with "
    "'taskmate config set', or export TASKMATE_URL and TASKMATE_KEY."
)


class APIClient:
    """Async HTTP client for the task store REST API.

    The client is built from an explicit StoreConfig; nothing is read from
    module-level state. ``transport`` lets callers swap the network layer
    (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        store: StoreConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff: float = 1.0,
    ):
        self.store = store
        self.base_url = store.url
        self.timeout = store.timeout
        self.retry = store.retry
        self.backoff = backoff
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.logger = get_logger("http")

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def is_configured(self) -> bool:
        return self.store.is_configured

    def _get_headers(self) -> dict[str, str]:
        """Get HTTP headers with the API key."""
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "apikey": self.store.key,
            "Authorization": f"Bearer {self.store.key}",
        }

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if not self.is_configured:
            raise NotConfiguredError(NOT_CONFIGURED_MESSAGE)
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._get_headers(),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        retry: int | None = None,
    ) -> httpx.Response:
        """Make an HTTP request, retrying server and transport errors."""
        if retry is None:
            retry = self.retry

        client = self._get_client()
        url = path if path.startswith("/") else f"/{path}"

        last_exception: Exception | None = None
        for attempt in range(retry + 1):
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    json=json,
                    params=params,
                    headers=headers,
                )
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                # Don't retry client errors (4xx)
                if 400 <= e.response.status_code < 500:
                    raise
                last_exception = e
            except httpx.RequestError as e:
                last_exception = e

            if attempt < retry:
                self.logger.warning(
                    "%s %s failed (attempt %d/%d): %s",
                    method,
                    url,
                    attempt + 1,
                    retry + 1,
                    last_exception,
                )
                await asyncio.sleep(self.backoff * 2**attempt)

        if last_exception:
            raise last_exception
        raise RuntimeError("Request failed after all retries")

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make a GET request."""
        return await self.request("GET", path, params=params, headers=headers)

    async def head(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make a HEAD request."""
        return await self.request("HEAD", path, params=params, headers=headers)

    async def post(
        self,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make a POST request."""
        return await self.request(
            "POST", path, json=json, params=params, headers=headers
        )

    async def patch(
        self,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make a PATCH request."""
        return await self.request(
            "PATCH", path, json=json, params=params, headers=headers
        )

    async def delete(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make a DELETE request."""
        return await self.request("DELETE", path, params=params, headers=headers)

    def stream(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        """Open a streaming response (async context manager), no retries."""
        client = self._get_client()
        url = path if path.startswith("/") else f"/{path}"
        return client.stream(
            method, url, params=params, headers=headers, timeout=None
        )
