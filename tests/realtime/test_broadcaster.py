import asyncio

import pytest

from application.ports.realtime import HeartbeatEvent, WeatherUpdateEvent
from infrastructure.realtime.broadcaster import BroadcastEngine
from infrastructure.realtime.connection_registry import ConnectionRegistry


pytestmark = pytest.mark.asyncio


def _update(city: str) -> WeatherUpdateEvent:
    return WeatherUpdateEvent(city=city, temperature=10.0, description="Cloudy", humidity=80, wind_speed=5.0)


async def _registry_with(*conns) -> ConnectionRegistry:
    reg = ConnectionRegistry()
    for c in conns:
        await reg.register(c)
    return reg


async def test_broadcast_to_topic_reaches_exactly_subscribers(make_conn):
    a, b, c = make_conn("a"), make_conn("b"), make_conn("c")
    reg = await _registry_with(a, b, c)
    await reg.subscribe(a, "Tokyo")
    await reg.subscribe(c, "Tokyo")
    await reg.subscribe(b, "Paris")
    engine = BroadcastEngine(reg)

    delivered = await engine.broadcast_to_topic("Tokyo", _update("Tokyo"))

    assert delivered == 2
    assert [m["city"] for m in a.of_type("weatherUpdate")] == ["Tokyo"]
    assert [m["city"] for m in c.of_type("weatherUpdate")] == ["Tokyo"]
    assert b.sent == []


async def test_recipients_share_one_serialized_payload(make_conn):
    a, b = make_conn("a"), make_conn("b")
    reg = await _registry_with(a, b)
    engine = BroadcastEngine(reg)

    await engine.broadcast_all(HeartbeatEvent(total_clients=2, cities_monitored=6, timestamp=1))

    assert a.sent == b.sent
    assert a.sent[0] is b.sent[0]
    assert a.messages() == [{"type": "heartbeat", "total_clients": 2, "cities_monitored": 6, "timestamp": 1}]


async def test_failing_recipient_does_not_abort_broadcast(make_conn):
    good1, bad, good2 = make_conn("g1"), make_conn("bad", fail=True), make_conn("g2")
    reg = await _registry_with(good1, bad, good2)
    engine = BroadcastEngine(reg)

    delivered = await engine.broadcast_all("hello")

    assert delivered == 2
    assert good1.sent == ["hello"]
    assert good2.sent == ["hello"]


async def test_closed_connection_is_skipped(make_conn):
    a, b = make_conn("a"), make_conn("b")
    b.is_open = False
    reg = await _registry_with(a, b)
    engine = BroadcastEngine(reg)

    assert await engine.broadcast_all("x") == 1
    assert b.sent == []


async def test_slow_recipient_is_bounded_by_send_timeout(make_conn):
    fast, slow = make_conn("fast"), make_conn("slow", delay=5.0)
    reg = await _registry_with(slow, fast)
    engine = BroadcastEngine(reg, send_timeout=0.05)

    loop = asyncio.get_running_loop()
    started = loop.time()
    delivered = await engine.broadcast_all("tick")
    elapsed = loop.time() - started

    assert delivered == 1
    assert fast.sent == ["tick"]
    assert slow.sent == []
    assert elapsed < 1.0


async def test_unregister_before_snapshot_excludes_connection(make_conn):
    a, b = make_conn("a"), make_conn("b")
    reg = await _registry_with(a, b)
    await reg.subscribe(a, "Paris")
    engine = BroadcastEngine(reg)

    await reg.unregister(a)
    assert await engine.broadcast_to_topic("Paris", _update("Paris")) == 0
    assert await engine.broadcast_all("bye") == 1
    assert a.sent == []


async def test_unregister_during_broadcast_raises_nothing(make_conn):
    reg = ConnectionRegistry()
    engine = BroadcastEngine(reg)
    slow = make_conn("slow", delay=0.05)
    other = make_conn("other")
    await reg.register(slow)
    await reg.register(other)

    async def drop_other():
        await asyncio.sleep(0.01)
        other.is_open = False
        await reg.unregister(other)

    delivered, _ = await asyncio.gather(engine.broadcast_all("m"), drop_other())

    assert delivered >= 1
    assert slow.sent == ["m"]
    assert await reg.size() == 1


async def test_broadcast_with_no_recipients(make_conn):
    engine = BroadcastEngine(ConnectionRegistry())
    assert await engine.broadcast_all("x") == 0
    assert await engine.broadcast_to_topic("Nowhere", "x") == 0


async def test_send_to_reports_outcome(make_conn):
    engine = BroadcastEngine(ConnectionRegistry())
    ok, bad = make_conn("ok"), make_conn("bad", fail=True)
    assert await engine.send_to(ok, _update("Sydney")) is True
    assert await engine.send_to(bad, _update("Sydney")) is False
    assert ok.of_type("weatherUpdate")[0]["windSpeed"] == 5.0
