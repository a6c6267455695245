import json

import pytest
from fastapi.testclient import TestClient

from unfolder import __version__
from unfolder.app import create_app

from .conftest import COLLECTION_UUID, P, X, Z, collection_body, make_settings

URL = f"/content-collection/content-package/{COLLECTION_UUID}"


@pytest.fixture
def client(settings, http_client):
    with TestClient(create_app(settings, client=http_client)) as c:
        yield c


def test_put_mirrors_writer_response_and_echoes_transaction_id(client, upstream):
    upstream.relations = {"containedIn": P, "contains": [Z]}
    upstream.add_record(X)
    upstream.add_record(P)

    res = client.put(URL, content=collection_body(X), headers={"X-Request-Id": "tid_abc"})

    assert res.status_code == 200
    assert res.content == upstream.writer_body
    assert res.headers["X-Request-Id"] == "tid_abc"
    assert {h["X-Request-Id"] for h, _ in upstream.published()} == {"tid_abc"}
    assert upstream.calls_to("writer")[0].headers["X-Request-Id"] == "tid_abc"


def test_transaction_id_is_generated_when_absent(client, upstream):
    res = client.put(URL, content=collection_body())
    tid = res.headers["X-Request-Id"]
    assert tid.startswith("tid_") and len(tid) == 14
    assert upstream.calls_to("writer")[0].headers["X-Request-Id"] == tid


def test_writer_error_status_and_body_pass_through(client, upstream):
    upstream.writer_status = 503
    upstream.writer_body = b'{"message":"neo4j down"}'
    res = client.put(URL, content=collection_body(X))
    assert res.status_code == 503
    assert res.json() == {"message": "neo4j down"}


def test_bad_path_uuid_is_400_with_envelope(client, upstream):
    res = client.put("/content-collection/content-package/1234", content=collection_body(X),
                     headers={"X-Request-Id": "tid_bad"})
    assert res.status_code == 400
    body = res.json()
    assert body["error"]["code"] == "validation_failed"
    assert body["request_id"] == "tid_bad"
    assert upstream.calls == []


def test_invalid_body_is_400(client, upstream):
    res = client.put(URL, content=b'{"items": []}')
    assert res.status_code == 400
    assert upstream.calls == []


def test_relations_down_is_500(client, upstream):
    upstream.unreachable.add("relations")
    res = client.put(URL, content=collection_body(X))
    assert res.status_code == 500
    assert res.json()["error"]["code"] == "upstream_error"


def test_only_put_is_routed(client):
    assert client.get(URL).status_code == 405


# ── health ──────────────────────────────────────────────────────────────────
def test_healthz(client, upstream):
    res = client.get("/healthz")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}
    assert upstream.calls == []


def test_readyz_all_healthy(client):
    res = client.get("/readyz")
    assert res.status_code == 200
    body = res.json()
    assert body["ready"] is True and body["status"] == "ready"
    assert set(body["checks"]) == {"content-collection-writer", "document-store-api", "relations-api", "kafka-proxy"}
    assert all(c["ok"] for c in body["checks"].values())


def test_readyz_degraded_when_a_dependency_fails(client, upstream):
    upstream.health_status["content"] = 500
    res = client.get("/readyz")
    assert res.status_code == 503
    body = res.json()
    assert body["status"] == "degraded" and body["ready"] is False
    assert body["checks"]["document-store-api"]["ok"] is False
    assert "500" in body["checks"]["document-store-api"]["message"]
    assert body["checks"]["content-collection-writer"]["ok"] is True


def test_gtg(client, upstream):
    ok = client.get("/__gtg")
    assert (ok.status_code, ok.text) == (200, "OK")

    upstream.unreachable.add("kafka-proxy")
    bad = client.get("/__gtg")
    assert bad.status_code == 503
    assert "proxy" in bad.text


def test_health_document_carries_service_identity_and_check_metadata(client):
    res = client.get("/__health")
    assert res.status_code == 200
    body = res.json()
    assert body["systemCode"] == "content-collection-unfolder"
    assert body["name"] == "Content Collection Unfolder"
    assert body["description"]
    assert body["ok"] is True and "severity" not in body
    by_id = {c["id"]: c for c in body["checks"]}
    assert set(by_id) == {"content-collection-writer", "document-store-api", "relations-api", "kafka-proxy"}
    relations = by_id["relations-api"]
    assert relations["name"] == "Relations API health check"
    assert relations["severity"] == 2
    assert relations["panicGuide"] == "https://runbooks.in.ft.com/upp-relations-api"
    assert relations["businessImpact"] and relations["technicalSummary"]
    assert relations["checkOutput"] == "OK"
    assert relations["lastUpdated"].endswith("Z")


def test_health_document_reports_failing_check_with_200(client, upstream):
    upstream.health_status["writer"] = 503
    res = client.get("/__health")
    assert res.status_code == 200
    body = res.json()
    assert body["ok"] is False and body["severity"] == 2
    (writer,) = [c for c in body["checks"] if c["id"] == "content-collection-writer"]
    assert writer["ok"] is False
    assert "503" in writer["checkOutput"]


@pytest.mark.parametrize("path", ["/__ping", "/ping"])
def test_ping(client, upstream, path):
    res = client.get(path)
    assert (res.status_code, res.text) == (200, "pong")
    assert upstream.calls == []


@pytest.mark.parametrize("path", ["/__build-info", "/build-info"])
def test_build_info(upstream, http_client, path):
    settings = make_settings(build_revision="abc123", build_repository="https://example.org/unfolder.git")
    with TestClient(create_app(settings, client=http_client)) as c:
        res = c.get(path)
    assert res.status_code == 200
    body = res.json()
    assert body["revision"] == "abc123"
    assert body["repository"] == "https://example.org/unfolder.git"
    assert body["version"] == __version__
    assert set(body) == {"version", "repository", "revision", "builder", "dateTime"}


def test_metrics_endpoint(client):
    client.put(URL, content=collection_body())
    res = client.get("/metrics")
    assert res.status_code == 200
    assert "unfolder_outcomes_total" in res.text


def test_allow_list_comes_from_settings(upstream, http_client):
    settings = make_settings(unfolding_whitelist_raw="story-package, content-package")
    upstream.relations = {"containedIn": "", "contains": []}
    upstream.add_record(X)
    with TestClient(create_app(settings, client=http_client)) as c:
        res = c.put(f"/content-collection/story-package/{COLLECTION_UUID}", content=collection_body(X))
    assert res.status_code == 200
    assert len(upstream.published()) == 1
    assert json.loads(upstream.calls_to("writer")[0].content)["items"] == [{"uuid": X}]
