"""Tests for the store HTTP client."""

import httpx
import pytest

from taskmate.errors import NotConfiguredError
from taskmate.models import StoreConfig
from taskmate.services.api.client import APIClient


def _client(handler, **store_kwargs) -> APIClient:
    store = StoreConfig(
        url=store_kwargs.pop("url", "https://store.test/"),
        key=store_kwargs.pop("key", "secret-key"),
        **store_kwargs,
    )
    return APIClient(store, transport=httpx.MockTransport(handler), backoff=0)


def test_client_initialization():
    client = APIClient(StoreConfig(url="https://store.test/", key="k"))
    assert client.base_url == "https://store.test"
    assert client.timeout == 30
    assert client._client is None


def test_headers_carry_api_key():
    client = APIClient(StoreConfig(url="https://store.test", key="secret-key"))
    headers = client._get_headers()
    assert headers["apikey"] == "secret-key"
    assert headers["Authorization"] == "Bearer secret-key"
    assert headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_not_configured_raises_before_any_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    client = _client(handler, key="")
    with pytest.raises(NotConfiguredError, match="TASKMATE_URL"):
        await client.get("/rest/v1/tasks")
    assert calls == []


@pytest.mark.asyncio
async def test_get_sends_auth_headers():
    seen = {}

    def handler(request):
        seen["apikey"] = request.headers["apikey"]
        seen["url"] = str(request.url)
        return httpx.Response(200, json=[{"id": 1}])

    async with _client(handler) as client:
        response = await client.get("rest/v1/tasks", params={"select": "*"})

    assert response.json() == [{"id": 1}]
    assert seen["apikey"] == "secret-key"
    assert seen["url"].startswith("https://store.test/rest/v1/tasks")


@pytest.mark.asyncio
async def test_retries_server_errors():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json=[])

    async with _client(handler, retry=3) as client:
        response = await client.get("/rest/v1/tasks")

    assert response.status_code == 200
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_client_errors_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(400, json={"message": "bad filter"})

    async with _client(handler, retry=3) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.get("/rest/v1/tasks")

    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_gives_up_after_retries():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler, retry=2) as client:
        with pytest.raises(httpx.ConnectError):
            await client.get("/rest/v1/tasks")

    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_close_resets_client():
    client = _client(lambda request: httpx.Response(200, json=[]))
    await client.get("/rest/v1/tasks")
    assert client._client is not None
    await client.close()
    assert client._client is None
