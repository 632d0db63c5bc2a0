"""Timed async HTTP client used by virtual users."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

import aiohttp

from rampload._internal.errors import RequestError


@dataclass(frozen=True)
class TimedResponse:
    """Outcome of one completed HTTP exchange.

    Attributes:
        status_code: HTTP response status code.
        latency_ms: Time from sending the request to reading the full body.
        content_length: Response body size in bytes.
    """

    status_code: int
    latency_ms: float
    content_length: int


class HttpClient:
    """Async HTTP client wrapping ``aiohttp.ClientSession``.

    Each virtual user owns one client, so connections are reused across that
    user's iterations but never shared between users. Every request is timed
    end to end, including reading the body.

    Attributes:
        headers: Headers applied to every request.
    """

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            headers: Default headers applied to every request.
            timeout: Total per-request timeout in seconds.
        """
        self.headers: dict[str, str] = dict(headers or {})
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self, url: str) -> TimedResponse:
        """Send a GET request and time it.

        Args:
            url: Absolute URL to request.

        Returns:
            The status, latency and body size of the response.

        Raises:
            RequestError: If no response was received (timeout, refused
                connection, DNS failure, broken payload).
            RuntimeError: If the client is used outside of an async context
                manager.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        start = time.monotonic()
        try:
            async with self._session.get(url, headers=self.headers) as resp:
                body = await resp.read()
                status_code = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            latency_ms = (time.monotonic() - start) * 1000
            raise RequestError(f"{type(exc).__name__}: {exc}", latency_ms=latency_ms) from exc

        return TimedResponse(
            status_code=status_code,
            latency_ms=(time.monotonic() - start) * 1000,
            content_length=len(body),
        )
