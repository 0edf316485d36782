"""Tests for the NeuronWriter insight API client."""

import json

import httpx
import pytest

from page_optimizer.core.exceptions import AuthError, FetchError, MissingCredentialsError
from page_optimizer.integrations.neuronwriter import NeuronWriterClient

BASE = "https://nw.example.com/api"


def _client(handler) -> NeuronWriterClient:
    return NeuronWriterClient(
        "nw-key", base_url=BASE, transport=httpx.MockTransport(handler)
    )


class TestNeuronWriterClient:
    def test_requires_api_key(self) -> None:
        with pytest.raises(MissingCredentialsError):
            NeuronWriterClient("")

    @pytest.mark.asyncio
    async def test_list_ready_queries(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["key"] = request.headers["x-api-key"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=[{"query": "q1", "keyword": "boots"}])

        async with _client(handler) as client:
            queries = await client.list_ready_queries("proj", "boots")

        assert captured["path"] == "/api/list-queries"
        assert captured["key"] == "nw-key"
        assert captured["body"] == {"project": "proj", "status": "ready", "keyword": "boots"}
        assert queries == [{"query": "q1", "keyword": "boots"}]

    @pytest.mark.asyncio
    async def test_new_query_returns_id(self) -> None:
        async with _client(
            lambda request: httpx.Response(200, json={"query": "abc", "query_url": "x"})
        ) as client:
            assert await client.new_query("proj", "boots") == "abc"

    @pytest.mark.asyncio
    async def test_new_query_without_id(self) -> None:
        async with _client(lambda request: httpx.Response(200, json={})) as client:
            with pytest.raises(FetchError):
                await client.new_query("proj", "boots")

    @pytest.mark.asyncio
    async def test_get_query(self) -> None:
        async with _client(
            lambda request: httpx.Response(200, json={"status": "ready", "terms": {}})
        ) as client:
            data = await client.get_query("abc")

        assert data["status"] == "ready"

    @pytest.mark.asyncio
    async def test_auth_error(self) -> None:
        async with _client(lambda request: httpx.Response(401)) as client:
            with pytest.raises(AuthError):
                await client.get_query("abc")

    @pytest.mark.asyncio
    async def test_rate_limit(self) -> None:
        async with _client(lambda request: httpx.Response(429)) as client:
            with pytest.raises(FetchError) as exc_info:
                await client.get_query("abc")

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(FetchError, match="request failed"):
                await client.get_query("abc")
