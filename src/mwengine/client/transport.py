"""Single-call HTTP transport.

Sends one fully assembled :class:`RequestOptions` with ``httpx`` and returns
the decoded body.  No retry policy lives here; recovery is the
orchestrator's job.  The transport owns the call counters described on
:class:`~mwengine.core.session.CallStatistics`.

The cookie jar of the underlying :class:`httpx.AsyncClient` carries the
login session between calls, so one transport must be reused for the whole
lifetime of an engine instance.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mwengine.client.request_options import RequestOptions
from mwengine.core.exceptions import TransportError
from mwengine.core.session import CallStatistics

logger = logging.getLogger(__name__)


class Transport:
    """Executes raw HTTP calls and keeps call statistics.

    Args:
        counter: Statistics object to update.  A fresh one is created when
            omitted.
        http_client: Optional injected :class:`httpx.AsyncClient` (tests,
            custom TLS or proxy setups).  When ``None`` a client is created
            lazily and closed by :meth:`aclose`.
    """

    def __init__(
        self,
        counter: CallStatistics | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.counter = counter if counter is not None else CallStatistics()
        self._http_client = http_client
        self._owns_client = http_client is None

    async def send(self, options: RequestOptions) -> Any:
        """Send *options* and return the decoded body.

        A JSON body is returned decoded.  Any other body is returned as text
        so that the caller can report it as an invalid response.

        Raises:
            TransportError: If no URL is set or httpx reports a request
                failure (connection, TLS, timeout).
        """
        self.counter.total += 1
        self.counter.resolved += 1

        if not options.url:
            self.counter.rejected += 1
            raise TransportError("No URI provided!", code="nourl")

        client = self._get_client()
        try:
            response = await client.request(
                options.method,
                options.url,
                params=options.query or None,
                data=options.form or None,
                files=options.files or None,
                headers=options.headers,
                timeout=options.timeout,
            )
        except httpx.RequestError as exc:
            self.counter.rejected += 1
            logger.debug("transport: %s %s failed: %s", options.method, options.url, exc)
            raise TransportError(
                f"Request to {options.url} failed: {exc}",
                code="http",
            ) from exc

        self.counter.fulfilled += 1
        return _decode_body(response)

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(follow_redirects=True)
        return self._http_client


def _decode_body(response: httpx.Response) -> Any:
    """Return the JSON-decoded body of *response*, or its text if not JSON."""
    try:
        return response.json()
    except ValueError:
        logger.debug(
            "transport: HTTP %d body is not JSON (%d bytes)",
            response.status_code,
            len(response.content),
        )
        return response.text
