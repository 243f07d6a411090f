"""Tests for AveClient using httpx.MockTransport (no real network)."""

import httpx
import pytest

from conftest import trade
from tradesync.client import AveClient
from tradesync.config import AveSettings
from tradesync.exceptions import FetchError


@pytest.fixture
def ave_settings() -> AveSettings:
    return AveSettings(
        api_key="test-ave-key",  # type: ignore[arg-type]
        base_url="https://ave.test",
        chain="solana",
    )


def _client(settings: AveSettings, handler) -> AveClient:
    return AveClient(settings, transport=httpx.MockTransport(handler))


class TestFetchPage:
    @pytest.mark.asyncio
    async def test_request_shape_and_records(self, ave_settings: AveSettings) -> None:
        seen: list[httpx.Request] = []
        txs = [trade("a", 100), trade("b", 99)]

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": 1, "data": {"txs": txs}})

        client = _client(ave_settings, handler)
        try:
            page = await client.fetch_page("PAIR", 1700, 100)
        finally:
            await client.close()

        assert page == txs
        request = seen[0]
        assert request.url.path == "/v2/txs/PAIR-solana"
        assert request.url.params["limit"] == "100"
        assert request.url.params["sort"] == "desc"
        assert request.url.params["to_time"] == "1700"
        assert request.headers["X-API-KEY"] == "test-ave-key"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body", [{"data": {"txs": None}}, {"data": {}}, {"data": []}, [], {"msg": "ok"}]
    )
    async def test_missing_txs_is_empty_page(self, ave_settings: AveSettings, body) -> None:
        client = _client(ave_settings, lambda request: httpx.Response(200, json=body))
        try:
            assert await client.fetch_page("PAIR", 1, 10) == []
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_http_error_raises_fetch_error(self, ave_settings: AveSettings) -> None:
        client = _client(
            ave_settings, lambda request: httpx.Response(401, text="invalid api key")
        )
        try:
            with pytest.raises(FetchError, match="HTTP 401"):
                await client.fetch_page("PAIR", 1, 10)
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_network_error_raises_fetch_error(self, ave_settings: AveSettings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(ave_settings, handler)
        try:
            with pytest.raises(FetchError, match="connection refused"):
                await client.fetch_page("PAIR", 1, 10)
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_invalid_json_raises_fetch_error(self, ave_settings: AveSettings) -> None:
        client = _client(ave_settings, lambda request: httpx.Response(200, text="<html>"))
        try:
            with pytest.raises(FetchError, match="invalid JSON"):
                await client.fetch_page("PAIR", 1, 10)
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_connect_and_close_are_idempotent(self, ave_settings: AveSettings) -> None:
        client = _client(ave_settings, lambda request: httpx.Response(200, json={}))
        await client.connect()
        await client.connect()
        await client.close()
        await client.close()
