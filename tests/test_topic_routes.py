import asyncio
import json
import time

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from api.dependencies import get_publish_service
from api.routes.topics import TopicOperation, resolve_operation
from domain.common.exceptions import MessageConflictException
from domain.message import Message, now_seconds
from infrastructure.database import build_engine, build_session_factory, create_tables, sqlite_url_for
from infrastructure.unit_of_work import uow_factory_for
from main import create_app


PRIORITY_ERROR = (
    '{"code":40007,"http":400,"error":"invalid priority parameter",'
    '"link":"https://ntfy.sh/docs/publish/#message-priority"}\n'
)


def _lines(body: str) -> list[dict]:
    return [json.loads(line) for line in body.split("\n") if line]


def _seed(db_path: str, *messages: Message) -> None:
    async def _run():
        engine = build_engine(sqlite_url_for(db_path))
        try:
            await create_tables(engine)
            async with uow_factory_for(build_session_factory(engine))() as uow:
                for m in messages:
                    await uow.message_repository.append(m)
        finally:
            await engine.dispose()

    asyncio.run(_run())


@pytest.fixture
def app(db_path):
    return create_app(sqlite_url_for(db_path))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.mark.parametrize("method,action,expected", [
    ("POST", None, TopicOperation.PUBLISH),
    ("PUT", None, TopicOperation.PUBLISH),
    ("GET", "json", TopicOperation.QUERY),
    ("GET", "auth", TopicOperation.AUTH_PROBE),
    ("WEBSOCKET", "ws", TopicOperation.SUBSCRIBE),
    ("GET", None, None),
    ("POST", "json", None),
    ("GET", "ws", None),
    ("DELETE", None, None),
])
def test_resolve_operation(method, action, expected):
    assert resolve_operation(method, action) is expected


def test_publish_without_priority_omits_it(client):
    resp = client.post("/alerts", content="disk full")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/json"
    assert resp.text.endswith("\n")
    event = json.loads(resp.text)
    assert list(event) == ["id", "time", "expires", "event", "topic", "message"]
    assert event["event"] == "message"
    assert event["topic"] == "alerts"
    assert event["message"] == "disk full"
    assert event["expires"] - event["time"] == 12 * 3600

    replay = client.get("/alerts/json")
    assert replay.status_code == 200
    assert replay.headers["content-type"] == "application/x-ndjson; charset=utf-8"
    assert replay.headers["access-control-allow-origin"] == "*"
    assert replay.headers["cache-control"] == "no-cache"
    records = _lines(replay.text)
    assert len(records) == 1
    assert "priority" not in records[0]
    assert records[0]["id"] == event["id"]
    assert records[0]["event"] == "message"


def test_publish_with_priority_and_empty_body(client):
    resp = client.put("/alerts", content=b"", headers={"X-Priority": "5"})
    assert resp.status_code == 200
    assert '"priority":5' in resp.text
    event = json.loads(resp.text)
    assert event["message"] == "triggered"

    records = _lines(client.get("/alerts/json").text)
    assert records[0]["message"] == "triggered"
    assert records[0]["priority"] == 5


def test_non_ascii_body_is_kept_verbatim(client):
    resp = client.post("/alerts", content="磁盘已满".encode("utf-8"))
    assert "磁盘已满" in resp.text


def test_publish_uses_first_topic_only(client):
    resp = client.post("/first,second", content="x")
    assert json.loads(resp.text)["topic"] == "first"
    assert client.get("/second/json").text == "\n"


@pytest.mark.parametrize("value", ["7", "0", "abc"])
def test_invalid_priority_is_rejected(client, value):
    resp = client.post("/alerts", content="nope", headers={"X-Priority": value})
    assert resp.status_code == 400
    assert resp.headers["content-type"] == "application/json"
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.text == PRIORITY_ERROR
    assert client.get("/alerts/json").text == "\n"


def test_live_subscriber_scoping(client):
    with client.websocket_connect("/alerts,ops/ws") as ws:
        opened = ws.receive_text()
        assert not opened.endswith("\n")
        open_event = json.loads(opened)
        assert open_event["event"] == "open"
        assert open_event["topic"] == "alerts,ops"

        client.post("/ops", content="deploy started")
        frame = ws.receive_text()
        assert frame.endswith("\n")
        first = json.loads(frame)
        assert first["event"] == "message"
        assert first["topic"] == "ops"
        assert first["message"] == "deploy started"

        # billing is not subscribed; the next frame must be the second ops message
        client.post("/billing", content="invoice")
        client.post("/ops", content="deploy done", headers={"X-Priority": "2"})
        second = json.loads(ws.receive_text())
        assert second["topic"] == "ops"
        assert second["message"] == "deploy done"
        assert second["priority"] == 2


def test_rejected_publish_is_not_fanned_out(client):
    with client.websocket_connect("/alerts/ws") as ws:
        ws.receive_text()
        assert client.post("/alerts", content="bad", headers={"X-Priority": "7"}).status_code == 400
        client.post("/alerts", content="good")
        assert json.loads(ws.receive_text())["message"] == "good"


def test_subscriber_is_removed_on_disconnect(app, client):
    with client.websocket_connect("/gone/ws") as ws:
        ws.receive_text()
        assert app.state.realtime_connections.subscriber_count("gone") == 1
    # publishing after the disconnect must still succeed
    assert client.post("/gone", content="anyone?").status_code == 200
    for _ in range(100):
        if "gone" not in app.state.realtime_connections.topics():
            break
        time.sleep(0.01)
    assert "gone" not in app.state.realtime_connections.topics()


def test_websocket_with_invalid_topic_is_closed(client):
    with client.websocket_connect("/bad.topic/ws") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_text()
    assert exc_info.value.code == 1008


def test_query_since_message_id(db_path):
    now = now_seconds()
    earlier = Message.create(topic="alerts", body="earlier", now=now - 300, message_id="earlier00000")
    anchor = Message.create(topic="alerts", body="anchor", now=now - 200, message_id="anchor000000")
    later = Message.create(topic="alerts", body="later", now=now - 100, message_id="later0000000")
    _seed(db_path, earlier, anchor, later)

    with TestClient(create_app(sqlite_url_for(db_path))) as client:
        records = _lines(client.get("/alerts/json", params={"since": anchor.id}).text)
    assert [r["id"] for r in records] == [anchor.id, later.id]
    assert list(records[0]) == ["id", "time", "expires", "topic", "message", "event"]


def test_query_since_relative_duration(db_path):
    now = now_seconds()
    old = Message.create(topic="alerts", body="old", now=now - 3 * 3600, message_id="old000000000")
    recent = Message.create(topic="alerts", body="recent", now=now - 3600, message_id="recent000000")
    _seed(db_path, old, recent)

    with TestClient(create_app(sqlite_url_for(db_path))) as client:
        records = _lines(client.get("/alerts/json?since=2h").text)
        assert [r["id"] for r in records] == [recent.id]
        assert client.get("/alerts/json?since=all").text.count("\n") == 2
        assert client.get("/alerts/json?since=nonsense").text == "\n"

        resp = client.get("/alerts/json?since=999999999999999d")
        assert resp.status_code == 200
        assert [r["id"] for r in _lines(resp.text)] == [old.id, recent.id]


def test_extra_path_segments_are_ignored(db_path):
    msg = Message.create(topic="alerts", body="hi", now=now_seconds(), message_id="hi0000000000")
    _seed(db_path, msg)

    with TestClient(create_app(sqlite_url_for(db_path))) as client:
        assert [r["id"] for r in _lines(client.get("/alerts/json/extra").text)] == [msg.id]
        assert client.get("/alerts/auth/extra").text == '{"success":true}'
        assert client.get("/alerts/unknown/json").status_code == 400


def test_startup_sweep_removes_expired_rows(db_path):
    now = now_seconds()
    stale = Message.create(topic="alerts", body="stale", now=now - 13 * 3600, message_id="stale0000000")
    _seed(db_path, stale)

    with TestClient(create_app(sqlite_url_for(db_path))) as client:
        assert client.get("/alerts/json").text == "\n"


def test_auth_probe(client):
    resp = client.get("/alerts/auth")
    assert resp.status_code == 200
    assert resp.text == '{"success":true}'


@pytest.mark.parametrize("method,path", [
    ("GET", "/"),
    ("GET", "/alerts"),
    ("DELETE", "/alerts"),
    ("GET", "/bad.topic/json"),
    ("POST", "/bad topic"),
    ("GET", "/alerts/unknown"),
    ("POST", "/alerts%0A"),
    ("GET", "/alerts%0A/json"),
    ("GET", "/a,,b/json"),
])
def test_unsupported_requests_get_usage(client, method, path):
    resp = client.request(method, path)
    assert resp.status_code == 400
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.text.startswith("Bad Request\nFollow the tutorial below:")
    assert "example.com" in resp.text


def test_store_conflict_is_internal_error(app):
    class ConflictingPublisher:
        async def publish(self, topic, body, priority=None):
            raise MessageConflictException("abcdefghijkl", topic)

    app.dependency_overrides[get_publish_service] = lambda: ConflictingPublisher()
    with TestClient(app) as client:
        resp = client.post("/alerts", content="x")
    assert resp.status_code == 500
    assert resp.text == '{"code":50001,"http":500,"error":"internal server error","link":""}\n'


def test_unexpected_error_is_internal_error(app):
    class BrokenPublisher:
        async def publish(self, topic, body, priority=None):
            raise RuntimeError("disk on fire")

    app.dependency_overrides[get_publish_service] = lambda: BrokenPublisher()
    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.post("/alerts", content="x")
    assert resp.status_code == 500
    assert json.loads(resp.text)["code"] == 50001


def test_request_id_and_timing_headers(client):
    resp = client.get("/alerts/auth", headers={"X-Request-ID": "req-123"})
    assert resp.headers["x-request-id"] == "req-123"
    assert "x-process-time" in resp.headers
    generated = client.get("/alerts/auth").headers["x-request-id"]
    assert generated and generated != "req-123"
