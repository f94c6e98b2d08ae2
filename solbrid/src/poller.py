"""
Async HTTP poller for the Solbrid inverter's XML status endpoint.

Issues one streamed GET per call with a fixed client-side timeout and
returns the body as text. Failures are split into two kinds so the ingestion
loop can tell them apart:

- FetchError: connection failure, timeout, or a non-2xx status.
- BodyReadError: the response started but reading its body failed.

The poller has no retry or backoff of its own; the ingestion loop sleeps the
configured interval after every cycle regardless of outcome.

CHANGELOG:
- 2026-10-18: Bound the whole request, body included, by the timeout
- 2026-10-18: Split body-read failures from request failures
- 2026-10-18: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from solbrid.src.errors import BodyReadError, FetchError

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_S: float = 5.0
"""Client-side timeout for the inverter request, in seconds."""


class InverterPoller:
    """Fetches the inverter XML document over HTTP.

    Owns one :class:`httpx.AsyncClient` for its whole lifetime; close it with
    :meth:`aclose` or use the poller as an async context manager.

    Args:
        url: Inverter status document URL.
        timeout_s: Request timeout in seconds (default 5).
        transport: Optional httpx transport, used by tests to stub the
            inverter.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_s: float = HTTP_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout_s = timeout_s
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            transport=transport,
        )

    @property
    def url(self) -> str:
        return self._url

    async def fetch(self) -> str:
        """GET the status document and return its body as text.

        The timeout bounds the whole exchange, body included; httpx's own
        timeout only bounds each phase.

        Raises:
            FetchError: On transport errors, timeouts, or non-2xx status.
            BodyReadError: If the body cannot be read after the response
                headers arrived.
        """
        try:
            async with asyncio.timeout(self._timeout_s):
                return await self._get()
        except TimeoutError as exc:
            raise FetchError(
                f"Request to {self._url} timed out after {self._timeout_s}s"
            ) from exc

    async def _get(self) -> str:
        try:
            async with self._client.stream("GET", self._url) as response:
                if not response.is_success:
                    raise FetchError(
                        f"HTTP {response.status_code} from {self._url}"
                    )
                try:
                    await response.aread()
                except httpx.HTTPError as exc:
                    raise BodyReadError(
                        f"Failed to read response body: {exc!r}"
                    ) from exc
                return response.text
        except httpx.HTTPError as exc:
            raise FetchError(f"Request to {self._url} failed: {exc!r}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> InverterPoller:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
