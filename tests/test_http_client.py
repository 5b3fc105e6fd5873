"""Tests for the shared HTTP client, retry policy and backoff."""

from __future__ import annotations

import httpx
import pytest
import respx

from bluecat.core.errors import ErrorKind, TransportError
from bluecat.utils import http_client as http_client_module
from bluecat.utils.http_client import classify_status, compute_backoff, http_client

_URL = "https://api.example.com/resource"


@pytest.fixture()
def no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(http_client_module, "compute_backoff", lambda attempt: 0)


class TestComputeBackoff:
    def test_grows_exponentially(self) -> None:
        for attempt in range(3):
            delay = compute_backoff(attempt, base=1.0, maximum=100.0)
            assert 2 ** attempt <= delay <= 2 ** attempt + 1.0

    def test_capped_at_maximum(self) -> None:
        assert compute_backoff(10, base=1.0, maximum=15.0) == 15.0


class TestClassifyStatus:
    def test_success_is_not_an_error(self) -> None:
        assert classify_status(200) is None
        assert classify_status(302) is None

    def test_server_errors(self) -> None:
        assert classify_status(503) == ErrorKind.SERVER

    def test_throttling_is_retryable(self) -> None:
        assert classify_status(429) == ErrorKind.SERVER
        assert classify_status(408) == ErrorKind.SERVER

    def test_client_errors(self) -> None:
        assert classify_status(404) == ErrorKind.CLIENT


class TestTransportErrorRetryable:
    def test_timeout_and_server_are_retryable(self) -> None:
        assert TransportError(ErrorKind.TIMEOUT).retryable
        assert TransportError(ErrorKind.SERVER, status_code=502).retryable

    def test_client_is_not_retryable(self) -> None:
        assert not TransportError(ErrorKind.CLIENT, status_code=404).retryable

    def test_throttle_status_is_retryable(self) -> None:
        assert TransportError(ErrorKind.CLIENT, status_code=429).retryable


class TestRequest:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_returns_successful_response(self) -> None:
        respx.get(_URL).respond(200, json={"ok": True})
        response = await http_client.get(_URL, source="TEST")
        assert response.json() == {"ok": True}

    @respx.mock
    @pytest.mark.asyncio()
    async def test_retries_server_error_then_succeeds(self, no_backoff: None) -> None:
        route = respx.get(_URL)
        route.side_effect = [httpx.Response(503), httpx.Response(200, json={"ok": True})]

        response = await http_client.get(_URL, source="TEST", max_retries=2)
        assert response.status_code == 200
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio()
    async def test_client_error_not_retried(self, no_backoff: None) -> None:
        route = respx.get(_URL).respond(404)

        with pytest.raises(TransportError) as exc_info:
            await http_client.get(_URL, source="TEST", max_retries=3)
        assert exc_info.value.kind == ErrorKind.CLIENT
        assert exc_info.value.status_code == 404
        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio()
    async def test_timeout_exhausts_retries(self, no_backoff: None) -> None:
        route = respx.get(_URL).mock(side_effect=httpx.ConnectTimeout("slow"))

        with pytest.raises(TransportError) as exc_info:
            await http_client.get(_URL, source="TEST", max_retries=2)
        assert exc_info.value.kind == ErrorKind.TIMEOUT
        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio()
    async def test_connection_error_is_server_kind(self, no_backoff: None) -> None:
        respx.get(_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(TransportError) as exc_info:
            await http_client.get(_URL, source="TEST", max_retries=0)
        assert exc_info.value.kind == ErrorKind.SERVER
        assert exc_info.value.retryable
