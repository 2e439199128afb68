import asyncio
import json

from vidshare.services.broadcast import (
    LocalBroadcaster,
    REACTION_UPDATED,
    RedisBroadcaster,
    emit_video_event,
    video_topic,
)
from vidshare.services.rooms import RoomManager


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.published = []

    async def publish(self, channel, message):
        if self.fail:
            raise ConnectionError("redis down")
        self.published.append((channel, message))


class FakeSocket:
    def __init__(self, fail: bool = False, delay: float = 0):
        self.fail = fail
        self.delay = delay
        self.sent = []

    async def send_json(self, payload):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


def _collector(received):
    async def handler(topic, payload):
        received.append((topic, payload))
    return handler


def test_local_subscribe_and_unsubscribe():
    bus = LocalBroadcaster()
    received = []
    unsubscribe = bus.subscribe("video_1", _collector(received))

    asyncio.run(bus.publish("video_1", {"n": 1}))
    asyncio.run(bus.publish("video_2", {"n": 2}))
    assert received == [("video_1", {"n": 1})]

    unsubscribe()
    unsubscribe()
    assert not bus.has_subscribers("video_1")
    asyncio.run(bus.publish("video_1", {"n": 3}))
    assert len(received) == 1


def test_failing_handler_does_not_block_others():
    bus = LocalBroadcaster()
    received = []

    async def broken(topic, payload):
        raise RuntimeError("boom")

    bus.subscribe("video_1", broken)
    bus.subscribe("video_1", _collector(received))
    asyncio.run(bus.publish("video_1", {"n": 1}))
    assert received == [("video_1", {"n": 1})]


def test_redis_publish_uses_prefixed_channel():
    redis = FakeRedis()
    bus = RedisBroadcaster(redis, "vidshare:")
    asyncio.run(bus.publish("video_1", {"event": "view_updated"}))
    assert redis.published == [("vidshare:video_1", json.dumps({"event": "view_updated"}))]


def test_redis_publish_failure_delivers_locally():
    bus = RedisBroadcaster(FakeRedis(fail=True), "vidshare:")
    received = []
    bus.subscribe("video_1", _collector(received))
    asyncio.run(bus.publish("video_1", {"n": 1}))
    assert received == [("video_1", {"n": 1})]


def test_redis_message_dispatched_to_local_topic():
    bus = RedisBroadcaster(FakeRedis(), "vidshare:")
    received = []
    bus.subscribe("video_1", _collector(received))

    asyncio.run(bus._handle_message({
        "type": "pmessage",
        "channel": b"vidshare:video_1",
        "data": json.dumps({"event": "view_updated", "data": {"views": 3}}),
    }))
    asyncio.run(bus._handle_message({"type": "pmessage", "channel": "vidshare:video_1", "data": "{not json"}))

    assert received == [("video_1", {"event": "view_updated", "data": {"views": 3}})]


def test_emit_video_event_payload_and_never_raises():
    bus = LocalBroadcaster()
    received = []
    bus.subscribe(video_topic("abc"), _collector(received))
    asyncio.run(emit_video_event(bus, "abc", REACTION_UPDATED, {"likes": 2, "dislikes": 0}))
    assert received == [(
        "video_abc",
        {"event": "reaction_updated", "data": {"video_id": "abc", "likes": 2, "dislikes": 0}},
    )]

    class Exploding(LocalBroadcaster):
        async def publish(self, topic, payload):
            raise RuntimeError("transport gone")

    asyncio.run(emit_video_event(Exploding(), "abc", REACTION_UPDATED, {}))
    asyncio.run(emit_video_event(None, "abc", REACTION_UPDATED, {}))


def test_room_fan_out_drops_failed_sockets():
    async def scenario():
        bus = LocalBroadcaster()
        rooms = RoomManager(bus)
        good, bad = FakeSocket(), FakeSocket(fail=True)
        await rooms.join("video_1", good)
        await rooms.join("video_1", bad)
        assert rooms.member_count("video_1") == 2

        await bus.publish("video_1", {"event": "view_updated"})
        await rooms.drain()
        assert good.sent == [{"event": "view_updated"}]
        assert rooms.member_count("video_1") == 1
        assert rooms.rooms_of(bad) == []

        await rooms.leave_all(good)
        assert rooms.member_count("video_1") == 0
        assert not bus.has_subscribers("video_1")

    asyncio.run(scenario())


def test_room_subscribes_once_per_topic():
    async def scenario():
        bus = LocalBroadcaster()
        rooms = RoomManager(bus)
        a, b = FakeSocket(), FakeSocket()
        await rooms.join("video_1", a)
        await rooms.join("video_1", b)
        await rooms.join("video_2", a)

        await bus.publish("video_1", {"n": 1})
        await rooms.drain()
        assert a.sent == [{"n": 1}]
        assert b.sent == [{"n": 1}]

        await rooms.leave("video_1", a)
        await bus.publish("video_1", {"n": 2})
        await rooms.drain()
        assert a.sent == [{"n": 1}]
        assert rooms.rooms_of(a) == ["video_2"]

    asyncio.run(scenario())


def test_slow_socket_does_not_block_publisher_or_room():
    async def scenario():
        loop = asyncio.get_event_loop()
        bus = LocalBroadcaster()
        rooms = RoomManager(bus)
        slow, fast = FakeSocket(delay=1.0), FakeSocket()
        await rooms.join(video_topic("v1"), slow)
        await rooms.join(video_topic("v1"), fast)

        started = loop.time()
        await emit_video_event(bus, "v1", REACTION_UPDATED, {"likes": 1, "dislikes": 0})
        assert loop.time() - started < 0.5

        await asyncio.sleep(0.1)
        assert fast.sent == [{"event": "reaction_updated", "data": {"video_id": "v1", "likes": 1, "dislikes": 0}}]
        assert slow.sent == []

        await rooms.drain()
        assert len(slow.sent) == 1
        assert rooms.member_count(video_topic("v1")) == 2

    asyncio.run(scenario())


def test_send_timeout_drops_socket():
    async def scenario():
        bus = LocalBroadcaster()
        rooms = RoomManager(bus, send_timeout=0.05)
        stuck, fast = FakeSocket(delay=1.0), FakeSocket()
        await rooms.join("video_1", stuck)
        await rooms.join("video_1", fast)

        await bus.publish("video_1", {"n": 1})
        await rooms.drain()

        assert fast.sent == [{"n": 1}]
        assert stuck.sent == []
        assert rooms.rooms_of(stuck) == []
        assert rooms.member_count("video_1") == 1

    asyncio.run(scenario())


def test_room_deliveries_keep_publish_order():
    async def scenario():
        bus = LocalBroadcaster()
        rooms = RoomManager(bus)
        ws = FakeSocket(delay=0.02)
        await rooms.join("video_1", ws)

        for n in range(5):
            await bus.publish("video_1", {"views": n})
        await rooms.drain()

        assert ws.sent == [{"views": n} for n in range(5)]

    asyncio.run(scenario())
