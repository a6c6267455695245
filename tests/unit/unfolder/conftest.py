# tests/unit/unfolder/conftest.py
"""
Unfolder unit-test harness.

Responsibilities
────────────────
• Stand in for every collaborator (relations API, writer, document store,
  Kafka REST proxy) with one `httpx.MockTransport` handler that records
  each outbound request.
• Build `Settings` pointing at those fake hosts.
• Decode published proxy records back into (headers, body) for assertions.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
import pytest

from core_config import Settings
from unfolder.app import build_unfolder

COLLECTION_UUID = "d4e80f9a-7ef2-4c4c-9b8f-2f1f0b7e6a01"
X = "11111111-1111-4111-8111-111111111111"
Y = "22222222-2222-4222-8222-222222222222"
Z = "33333333-3333-4333-8333-333333333333"
P = "44444444-4444-4444-8444-444444444444"
LAST_MODIFIED = "2017-01-31T15:33:21.687Z"
TOPIC = "PostPublicationEvents"


def collection_body(*uuids: str, last_modified: str = LAST_MODIFIED) -> bytes:
    return json.dumps({
        "uuid": COLLECTION_UUID,
        "items": [{"uuid": u} for u in uuids],
        "publishReference": "tid_test",
        "lastModified": last_modified,
    }).encode()


class FakeUpstream:
    """Programmable collaborators; every request lands in `calls`."""

    def __init__(self) -> None:
        self.calls: List[httpx.Request] = []
        self.relations_status = 200
        self.relations: Dict[str, Any] = {"containedIn": "", "contains": []}
        self.writer_status = 200
        self.writer_body = b'{"written":true}'
        self.content_status = 200
        self.records: Dict[str, Dict[str, Any]] = {}
        self.proxy_status = 200
        self.proxy_fail_uuids: Set[str] = set()
        self.unreachable: Set[str] = set()
        self.timeouts: Set[str] = set()
        self.health_status: Dict[str, int] = {}

    # -- routing ---------------------------------------------------------
    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        host = request.url.host
        if host in self.timeouts:
            raise httpx.ReadTimeout("timed out", request=request)
        if host in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        path = request.url.path
        if path.endswith("/__health"):
            return httpx.Response(self.health_status.get(host, 200), text="ok")
        if host == "relations":
            if self.relations_status != 200:
                return httpx.Response(self.relations_status, json={"message": "nope"})
            return httpx.Response(200, json=self.relations)
        if host == "writer":
            return httpx.Response(
                self.writer_status, content=self.writer_body,
                headers={"content-type": "application/json"},
            )
        if host == "content":
            if self.content_status != 200:
                return httpx.Response(self.content_status, text="store down")
            wanted = request.url.params.get_list("uuid")
            return httpx.Response(200, json=[self.records[u] for u in wanted if u in self.records])
        if host == "kafka-proxy":
            if request.method == "GET":
                return httpx.Response(200, json=[TOPIC])
            _, body = decode_record(request)
            uuid = body["contentUri"].rsplit("/", 1)[-1]
            if uuid in self.proxy_fail_uuids:
                return httpx.Response(500, json={"error_code": 50001})
            return httpx.Response(self.proxy_status, json={"offsets": [{"partition": 0, "offset": 1}]})
        return httpx.Response(404)

    # -- helpers ---------------------------------------------------------
    def calls_to(self, host: str, method: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.calls
            if r.url.host == host and (method is None or r.method == method)
            and not r.url.path.endswith("/__health")
        ]

    def published(self) -> List[Tuple[Dict[str, str], Dict[str, Any]]]:
        return [decode_record(r) for r in self.calls_to("kafka-proxy", "POST")]

    def add_record(self, uuid: str, **extra: Any) -> Dict[str, Any]:
        rec = {"uuid": uuid, "title": f"content {uuid[:8]}", **extra}
        self.records[uuid] = rec
        return rec

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def decode_ftmsg(raw: str) -> Tuple[Dict[str, str], str]:
    head, body = raw.split("\n\n", 1)
    lines = head.split("\n")
    assert lines[0] == "FTMSG/1.0"
    headers = dict(line.split(": ", 1) for line in lines[1:])
    return headers, body


def decode_record(request: httpx.Request) -> Tuple[Dict[str, str], Dict[str, Any]]:
    envelope = json.loads(request.content)
    (record,) = envelope["records"]
    headers, body = decode_ftmsg(base64.b64decode(record["value"]).decode("utf-8"))
    return headers, json.loads(body)


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        unfolding_whitelist_raw="content-package",
        writer_uri="http://writer/content-collection/",
        writer_health_uri="http://writer/__health",
        content_resolver_uri="http://content/content",
        content_resolver_health_uri="http://content/__health",
        relations_resolver_uri="http://relations/contentcollection/{uuid}/relations",
        relations_resolver_health_uri="http://relations/__health",
        write_topic=TOPIC,
        kafka_addr="http://kafka-proxy",
        kafka_hostname="kafka",
        kafka_auth="",
        content_uri_base="http://content-collection-unfolder.svc.ft.com/content/",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def http_client(upstream: FakeUpstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=upstream.transport())


@pytest.fixture
def unfolder(settings: Settings, http_client: httpx.AsyncClient):
    svc, _ = build_unfolder(settings, client=http_client)
    return svc
