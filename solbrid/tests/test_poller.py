"""
Unit tests for the inverter HTTP poller.

Tests verify:
- A 2xx response body is returned as text.
- Connection errors, timeouts and non-2xx statuses raise FetchError.
- A failure while streaming the body raises BodyReadError.
- The request timeout is fixed at 5 seconds by default and bounds the
  whole exchange, including a slowly streamed body.

CHANGELOG:
- 2026-10-18: Initial creation -- TDD tests written first (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import httpx
import pytest
from solbrid.src.errors import BodyReadError, FetchError
from solbrid.src.poller import HTTP_TIMEOUT_S, InverterPoller

_URL = "http://inverter.local/measurements.xml"


class _BrokenBodyStream(httpx.AsyncByteStream):
    """Body stream that fails after the headers were delivered."""

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield b"<Root>"
        raise httpx.ReadError("connection reset while reading body")


def _poller(handler) -> InverterPoller:
    return InverterPoller(_URL, transport=httpx.MockTransport(handler))


class TestFetchSuccess:
    """A successful GET returns the body text."""

    @pytest.mark.asyncio
    async def test_returns_body_text(self, sample_xml: str) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=sample_xml)

        async with _poller(handler) as poller:
            body = await poller.fetch()

        assert body == sample_xml
        assert len(seen) == 1
        assert seen[0].method == "GET"
        assert str(seen[0].url) == _URL

    @pytest.mark.asyncio
    async def test_client_reused_across_fetches(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, text=f"<Root n='{calls}'/>")

        async with _poller(handler) as poller:
            first = await poller.fetch()
            second = await poller.fetch()

        assert first != second
        assert calls == 2

    def test_default_timeout(self) -> None:
        assert HTTP_TIMEOUT_S == 5.0
        poller = InverterPoller(_URL)
        assert poller._client.timeout.read == 5.0
        assert poller._client.timeout.connect == 5.0


class TestFetchFailures:
    """Request-level failures raise FetchError."""

    @pytest.mark.asyncio
    async def test_connection_refused(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _poller(handler) as poller:
            with pytest.raises(FetchError, match="failed"):
                await poller.fetch()

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        async with _poller(handler) as poller:
            with pytest.raises(FetchError):
                await poller.fetch()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500, 503])
    async def test_non_success_status(self, status: int) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, text="<error/>")

        async with _poller(handler) as poller:
            with pytest.raises(FetchError, match=f"HTTP {status}"):
                await poller.fetch()


class TestBodyReadFailure:
    """A failure while reading the body is distinct from a fetch failure."""

    @pytest.mark.asyncio
    async def test_broken_body_raises_body_read_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=_BrokenBodyStream())

        async with _poller(handler) as poller:
            with pytest.raises(BodyReadError, match="body"):
                await poller.fetch()

    @pytest.mark.asyncio
    async def test_body_read_error_is_not_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=_BrokenBodyStream())

        async with _poller(handler) as poller:
            with pytest.raises(BodyReadError) as exc_info:
                await poller.fetch()

        assert not isinstance(exc_info.value, FetchError)


class _SlowBodyStream(httpx.AsyncByteStream):
    """Body stream that trickles in slower than the request timeout."""

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield b"<Root>"
        await asyncio.sleep(1.0)
        yield b"</Root>"


class TestWholeRequestTimeout:
    """The timeout covers the body, not only each phase."""

    @pytest.mark.asyncio
    async def test_slow_body_raises_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=_SlowBodyStream())

        poller = InverterPoller(
            _URL, timeout_s=0.05, transport=httpx.MockTransport(handler)
        )
        async with poller:
            with pytest.raises(FetchError, match="timed out"):
                await asyncio.wait_for(poller.fetch(), timeout=2.0)
