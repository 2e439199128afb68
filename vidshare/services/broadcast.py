"""
Realtime fan-out of engagement counters. Publish/subscribe by topic; not a source of truth.
Delivery is best-effort and at most once per mutation: a failing handler or a Redis outage
is logged and never fails the request that published.

Topics are rooms keyed by video id: video_{video_id}.
Payload: {"event": "view_updated" | "reaction_updated" | "subscriber_updated", "data": {...}}.
Each event carries absolute values (not deltas) so clients converge regardless of order.
"""
import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

VIEW_UPDATED = "view_updated"
REACTION_UPDATED = "reaction_updated"
SUBSCRIBER_UPDATED = "subscriber_updated"

Handler = Callable[[str, dict], Awaitable[None]]


def video_topic(video_id: str) -> str:
    return f"video_{video_id}"


class Broadcaster:
    """publish(topic, payload) / subscribe(topic, handler). Transport-agnostic."""

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def publish(self, topic: str, payload: dict) -> None:
        raise NotImplementedError

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        raise NotImplementedError


class LocalBroadcaster(Broadcaster):
    """In-process pub/sub. Enough for a single worker."""

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(topic)
            if not handlers:
                return
            try:
                handlers.remove(handler)
            except ValueError:
                pass
            if not handlers:
                self._handlers.pop(topic, None)

        return unsubscribe

    def has_subscribers(self, topic: str) -> bool:
        return bool(self._handlers.get(topic))

    async def _dispatch(self, topic: str, payload: dict) -> None:
        for handler in list(self._handlers.get(topic, ())):
            try:
                await handler(topic, payload)
            except Exception as e:
                logger.warning("Broadcast handler failed for %s: %s", topic, e, exc_info=False)

    async def publish(self, topic: str, payload: dict) -> None:
        await self._dispatch(topic, payload)


class RedisBroadcaster(LocalBroadcaster):
    """
    Redis Pub/Sub so every worker's rooms see every event.
    publish -> PUBLISH {prefix}{topic}; one listener task per process PSUBSCRIBEs {prefix}*
    and dispatches to local handlers. If PUBLISH fails, dispatch locally so this worker's
    clients still get the event.
    """

    RECONNECT_DELAY = 1.0

    def __init__(self, redis_client: Any, prefix: str):
        super().__init__()
        self._redis = redis_client
        self._prefix = prefix
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._listen())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def publish(self, topic: str, payload: dict) -> None:
        try:
            await self._redis.publish(f"{self._prefix}{topic}", json.dumps(payload))
        except Exception as e:
            logger.warning("Redis publish failed for %s, delivering locally: %s", topic, e, exc_info=False)
            await self._dispatch(topic, payload)

    async def _listen(self) -> None:
        while True:
            pubsub = self._redis.pubsub()
            try:
                await pubsub.psubscribe(f"{self._prefix}*")
                async for message in pubsub.listen():
                    if message.get("type") != "pmessage":
                        continue
                    await self._handle_message(message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Redis broadcast listener error, reconnecting: %s", e, exc_info=False)
            finally:
                try:
                    await pubsub.aclose()
                except Exception as e:
                    logger.warning("Redis pubsub close error: %s", e)
            await asyncio.sleep(self.RECONNECT_DELAY)

    async def _handle_message(self, message: dict) -> None:
        channel = message.get("channel") or ""
        if isinstance(channel, bytes):
            channel = channel.decode()
        topic = channel[len(self._prefix):]
        data = message.get("data")
        try:
            payload = json.loads(data)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Dropping malformed broadcast on %s", channel)
            return
        await self._dispatch(topic, payload)


async def emit_video_event(broadcaster: Broadcaster | None, video_id: str, event: str, data: dict) -> None:
    """Publish one counter snapshot to the video's room. Never raises."""
    if broadcaster is None:
        return
    payload = {"event": event, "data": {"video_id": video_id, **data}}
    try:
        await broadcaster.publish(video_topic(video_id), payload)
    except Exception as e:
        logger.warning("Broadcast %s for video %s failed: %s", event, video_id, e, exc_info=False)
