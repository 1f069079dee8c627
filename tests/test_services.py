import json

import pytest
import pytest_asyncio

from application.services.expiry_service import ExpirySweeper, seconds_until_minute
from application.services.publish_service import PublishService
from application.services.realtime_service import RealtimeService
from application.services.replay_service import ReplayService
from domain.common.exceptions import InvalidPriorityException
from domain.message import RETENTION_SECONDS
from infrastructure.realtime.brokers import InMemoryRealtimeBroker
from infrastructure.realtime.connection_manager import ConnectionManager
from support import FakeHandle, wait_for_frames


class FixedClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest_asyncio.fixture
async def realtime():
    broker = InMemoryRealtimeBroker()
    service = RealtimeService(broker=broker, connections=ConnectionManager())
    await broker.subscribe(service.on_broker_event)
    yield service
    await service.connections.aclose()
    await broker.aclose()


@pytest.fixture
def clock():
    return FixedClock(1_763_217_840)


@pytest.fixture
def publisher(uow_factory, realtime, clock):
    return PublishService(uow_factory, realtime, clock=clock)


@pytest.fixture
def replayer(uow_factory, clock):
    return ReplayService(uow_factory, clock=clock)


@pytest.mark.asyncio
async def test_publish_returns_event_without_default_priority(publisher, clock):
    event = await publisher.publish("alerts", "hello")
    payload = event.model_dump()
    assert list(payload) == ["id", "time", "expires", "event", "topic", "message"]
    assert payload["time"] == clock.now
    assert payload["expires"] == clock.now + RETENTION_SECONDS
    assert payload["message"] == "hello"


@pytest.mark.asyncio
async def test_publish_keeps_explicit_priority(publisher):
    event = await publisher.publish("alerts", "", "5")
    payload = event.model_dump()
    assert payload["message"] == "triggered"
    assert payload["priority"] == 5
    assert list(payload)[-1] == "priority"


@pytest.mark.asyncio
async def test_invalid_priority_writes_nothing_and_fans_out_nothing(publisher, replayer, realtime):
    handle = FakeHandle()
    await realtime.subscribe(["alerts"], handle)
    with pytest.raises(InvalidPriorityException):
        await publisher.publish("alerts", "nope", "9")
    await wait_for_frames(handle, 2, rounds=20)
    assert len(handle.sent) == 1
    assert await replayer.query("alerts") == []


@pytest.mark.asyncio
async def test_publish_fans_out_to_live_subscribers(publisher, realtime):
    alerts, other = FakeHandle(), FakeHandle()
    await realtime.subscribe(["alerts"], alerts)
    await realtime.subscribe(["other"], other)

    event = await publisher.publish("alerts", "disk full", "4")
    await wait_for_frames(alerts, 2)

    assert alerts.sent[1].endswith("\n")
    frame = json.loads(alerts.sent[1])
    assert frame == event.model_dump()
    assert frame["priority"] == 4
    assert other.sent[1:] == []


@pytest.mark.asyncio
async def test_replay_returns_published_messages_in_order(publisher, replayer, clock):
    first = await publisher.publish("log", "one")
    clock.now += 5
    second = await publisher.publish("log", "two", "2")
    await publisher.publish("elsewhere", "three")

    records = [r.model_dump() for r in await replayer.query("log")]
    assert [r["id"] for r in records] == [first.id, second.id]
    assert list(records[0]) == ["id", "time", "expires", "topic", "message", "event"]
    assert list(records[1]) == ["id", "time", "expires", "topic", "message", "priority", "event"]

    since_second = await replayer.query("log", second.id)
    assert [r.id for r in since_second] == [second.id]

    recent = await replayer.query("log", "3s")
    assert [r.id for r in recent] == [second.id]


@pytest.mark.asyncio
async def test_replay_is_idempotent_and_unknown_selector_is_empty(publisher, replayer):
    await publisher.publish("log", "one")
    assert await replayer.query("log") == await replayer.query("log")
    assert await replayer.query("log", "garbage") == []
    assert await replayer.query("empty-topic") == []


@pytest.mark.asyncio
async def test_sweeper_removes_only_expired(publisher, replayer, uow_factory, clock):
    old = await publisher.publish("log", "old")
    clock.now += 3600
    fresh = await publisher.publish("log", "fresh")

    sweeper = ExpirySweeper(uow_factory, clock=clock)
    assert await sweeper.sweep() == 0
    assert await sweeper.sweep(old.expires + 1) == 1
    assert [r.id for r in await replayer.query("log")] == [fresh.id]


@pytest.mark.parametrize("now,minute,expected", [
    (0, 58, 58 * 60),
    (58 * 60, 58, 3600),
    (59 * 60, 58, 59 * 60),
    (3600 + 30, 0, 3600 - 30),
])
def test_seconds_until_minute(now, minute, expected):
    assert seconds_until_minute(now, minute) == expected
