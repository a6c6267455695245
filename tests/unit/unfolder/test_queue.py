import base64
import json

import httpx
import pytest

from unfolder.errors import PublishError
from unfolder.queue import EventPublisher, Message, encode_ftmsg, proxy_records

from .conftest import TOPIC


def _message() -> Message:
    return Message(headers={"Message-Id": "m-1", "Message-Type": "cms-content-published"}, body='{"a":1}')


def test_ftmsg_envelope_layout():
    assert encode_ftmsg(_message()) == (
        "FTMSG/1.0\n"
        "Message-Id: m-1\n"
        "Message-Type: cms-content-published\n"
        "\n"
        '{"a":1}'
    )


def test_proxy_records_base64_wrap_the_envelope():
    records = proxy_records(_message())
    (record,) = records["records"]
    assert base64.b64decode(record["value"]).decode() == encode_ftmsg(_message())


@pytest.mark.asyncio
async def test_publish_posts_to_topic_with_binary_content_type():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"offsets": []})

    pub = EventPublisher(
        "http://kafka-proxy/", TOPIC, hostname="kafka", authorization="Basic abc",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    await pub.publish(_message(), transaction_id="tid_q")
    (req,) = seen
    assert req.method == "POST"
    assert str(req.url) == f"http://kafka-proxy/topics/{TOPIC}"
    assert req.headers["content-type"] == "application/vnd.kafka.binary.v1+json"
    assert req.headers["authorization"] == "Basic abc"
    assert req.headers["host"] == "kafka"
    assert json.loads(req.content) == proxy_records(_message())


@pytest.mark.asyncio
async def test_optional_proxy_headers_are_omitted_when_unset():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    pub = EventPublisher("http://kafka-proxy", TOPIC, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    await pub.publish(_message())
    assert "authorization" not in seen[0].headers
    assert seen[0].headers["host"] == "kafka-proxy"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 404, 500])
async def test_publish_non_2xx_raises(status):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(status)))
    with pytest.raises(PublishError):
        await EventPublisher("http://kafka-proxy", TOPIC, client=client).publish(_message())


@pytest.mark.asyncio
async def test_publish_transport_failure_raises():
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(boom))
    with pytest.raises(PublishError):
        await EventPublisher("http://kafka-proxy", TOPIC, client=client).publish(_message())


@pytest.mark.asyncio
async def test_connectivity_check():
    ok_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[TOPIC])))
    ok, msg = await EventPublisher("http://kafka-proxy", TOPIC, client=ok_client).connectivity_check()
    assert ok and msg

    bad_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    ok, msg = await EventPublisher("http://kafka-proxy", TOPIC, client=bad_client).connectivity_check()
    assert not ok and "503" in msg
