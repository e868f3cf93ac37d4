"""Tests for the HTTP token registry client."""

import json

import httpx
import pytest

from notifier.client.registry_client import RegistryHttpClient
from notifier.errors import StorageError


def make_client(handler) -> RegistryHttpClient:
    return RegistryHttpClient(
        "https://notifier.example.com/",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_register_posts_token():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "registered", "created": True})

    client = make_client(handler)

    assert await client.register("U1", "T1") is True

    request = seen[0]
    assert request.method == "POST"
    assert request.url == "https://notifier.example.com/push/tokens"
    assert request.headers["X-User-Id"] == "U1"
    assert json.loads(request.content) == {"token": "T1", "platform": "web"}


@pytest.mark.asyncio
async def test_resolve_returns_token_set():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"pushTokens": ["T1", "T2"]})

    assert await make_client(handler).resolve("U1") == {"T1", "T2"}


@pytest.mark.asyncio
async def test_server_error_raises_storage_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"success": False, "error": "Token registry unavailable"})

    with pytest.raises(StorageError):
        await make_client(handler).register("U1", "T1")
