"""Unit tests for the single-call HTTP transport and its call counters."""

from __future__ import annotations

import httpx
import pytest
import respx

from mwengine.client.request_options import RequestOptions
from mwengine.client.transport import Transport
from mwengine.core.exceptions import TransportError
from tests.conftest import API_PATH, API_URL, WIKI_HOST, sent_form


def _options(**changes) -> RequestOptions:
    base = RequestOptions(
        url=API_URL,
        headers={"User-Agent": "mwengine-tests"},
        form={"action": "query", "format": "json"},
        timeout=5.0,
    )
    return base.with_overrides(changes)


@pytest.mark.asyncio
class TestTransportSend:
    async def test_json_body_decoded(self) -> None:
        with respx.mock(base_url=WIKI_HOST) as mock:
            mock.post(API_PATH).mock(return_value=httpx.Response(200, json={"batchcomplete": True}))
            async with httpx.AsyncClient() as http_client:
                transport = Transport(http_client=http_client)
                body = await transport.send(_options())

        assert body == {"batchcomplete": True}
        assert transport.counter.total == 1
        assert transport.counter.resolved == 1
        assert transport.counter.fulfilled == 1
        assert transport.counter.rejected == 0

    async def test_non_json_body_returned_as_text(self) -> None:
        with respx.mock(base_url=WIKI_HOST) as mock:
            mock.post(API_PATH).mock(return_value=httpx.Response(503, text="<html>down</html>"))
            async with httpx.AsyncClient() as http_client:
                body = await Transport(http_client=http_client).send(_options())

        assert body == "<html>down</html>"

    async def test_form_headers_and_query_sent(self) -> None:
        with respx.mock(base_url=WIKI_HOST) as mock:
            route = mock.post(API_PATH).mock(return_value=httpx.Response(200, json={}))
            async with httpx.AsyncClient() as http_client:
                await Transport(http_client=http_client).send(_options(query={"curid": "1"}))

        request = route.calls[0].request
        assert request.headers["User-Agent"] == "mwengine-tests"
        assert request.url.params["curid"] == "1"
        assert sent_form(route.calls[0]) == {"action": "query", "format": "json"}

    async def test_get_request_uses_query_string(self) -> None:
        with respx.mock(base_url=WIKI_HOST) as mock:
            route = mock.get(API_PATH).mock(return_value=httpx.Response(200, json={"ok": 1}))
            async with httpx.AsyncClient() as http_client:
                body = await Transport(http_client=http_client).send(
                    RequestOptions(url=API_URL, method="GET", query={"action": "ask"})
                )

        assert body == {"ok": 1}
        assert route.calls[0].request.url.params["action"] == "ask"

    async def test_missing_url_rejected(self) -> None:
        transport = Transport()
        with pytest.raises(TransportError) as exc_info:
            await transport.send(RequestOptions(url=None))

        assert exc_info.value.code == "nourl"
        assert transport.counter.total == 1
        assert transport.counter.rejected == 1
        assert transport.counter.fulfilled == 0

    async def test_network_error_wrapped(self) -> None:
        with respx.mock(base_url=WIKI_HOST) as mock:
            mock.post(API_PATH).mock(side_effect=httpx.ConnectError("connection refused"))
            async with httpx.AsyncClient() as http_client:
                transport = Transport(http_client=http_client)
                with pytest.raises(TransportError) as exc_info:
                    await transport.send(_options())

        assert exc_info.value.code == "http"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert transport.counter.rejected == 1
        assert transport.counter.in_flight == 0

    async def test_injected_client_not_closed(self) -> None:
        async with httpx.AsyncClient() as http_client:
            transport = Transport(http_client=http_client)
            await transport.aclose()
            assert not http_client.is_closed
