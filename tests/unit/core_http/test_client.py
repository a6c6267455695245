import httpx
import pytest

from core_http import client as http
from core_logging import bind_request_id


@pytest.mark.asyncio
async def test_send_returns_any_status_and_propagates_bound_transaction_id():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(418, text="teapot")

    c = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    bind_request_id("tid_bound")
    try:
        resp = await http.send("GET", "http://svc/x", stage="writer", client=c)
    finally:
        bind_request_id(None)
    assert resp.status_code == 418
    assert seen[0].headers["X-Request-Id"] == "tid_bound"


@pytest.mark.asyncio
async def test_explicit_transaction_header_wins():
    seen = []
    c = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: seen.append(r) or httpx.Response(200)))
    bind_request_id("tid_bound")
    try:
        await http.send("GET", "http://svc/x", headers={"x-request-id": "tid_explicit"}, client=c)
    finally:
        bind_request_id(None)
    assert seen[0].headers.get_list("x-request-id") == ["tid_explicit"]


@pytest.mark.asyncio
async def test_transport_errors_propagate():
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    c = httpx.AsyncClient(transport=httpx.MockTransport(boom))
    with pytest.raises(httpx.ConnectError):
        await http.send("GET", "http://svc/x", client=c)


@pytest.mark.asyncio
async def test_shared_client_is_recreated_after_close():
    first = http.get_http_client()
    assert http.get_http_client() is first
    await http.close_http_client()
    second = http.get_http_client()
    assert second is not first and not second.is_closed
    await http.close_http_client()


def test_stage_budget_becomes_httpx_timeout():
    t = http._build_timeout(5.0)
    assert t.read == 5.0 and t.write == 5.0
    assert t.connect <= 5.0
