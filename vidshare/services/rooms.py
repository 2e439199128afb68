"""
WebSocket rooms keyed by video topic. The first member of a room subscribes it to the
broadcaster; the last one to leave unsubscribes.

Fan-out never blocks the publisher: each payload is delivered by a background task.
Deliveries for one room are chained so members see snapshots in publish order. Within a
delivery, members are sent to concurrently; a socket that fails or exceeds send_timeout
is dropped from the room.
"""
import asyncio
import logging
from collections import defaultdict
from functools import partial
from typing import Callable

from fastapi import WebSocket

from vidshare.services.broadcast import Broadcaster

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 5.0


class RoomManager:
    """Tracks WebSocket connections per room and forwards broadcast payloads to them."""

    def __init__(self, broadcaster: Broadcaster, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        self._broadcaster = broadcaster
        self.send_timeout = send_timeout
        self._lock = asyncio.Lock()
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self._unsubscribe: dict[str, Callable[[], None]] = {}
        self._tails: dict[str, asyncio.Task] = {}
        self._deliveries: set[asyncio.Task] = set()

    async def join(self, room: str, websocket: WebSocket) -> None:
        async with self._lock:
            members = self._rooms[room]
            if not members:
                self._unsubscribe[room] = self._broadcaster.subscribe(room, self._fan_out)
            members.add(websocket)

    async def leave(self, room: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._discard(room, websocket)

    async def leave_all(self, websocket: WebSocket) -> None:
        """Disconnect cleanup: remove socket from every room it joined."""
        async with self._lock:
            for room in [r for r, members in self._rooms.items() if websocket in members]:
                self._discard(room, websocket)

    def _discard(self, room: str, websocket: WebSocket) -> None:
        members = self._rooms.get(room)
        if not members:
            return
        members.discard(websocket)
        if not members:
            self._rooms.pop(room, None)
            unsubscribe = self._unsubscribe.pop(room, None)
            if unsubscribe:
                unsubscribe()

    def member_count(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    def rooms_of(self, websocket: WebSocket) -> list[str]:
        return [room for room, members in self._rooms.items() if websocket in members]

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def close(self) -> None:
        """Shutdown: cancel deliveries still in flight."""
        for task in list(self._deliveries):
            task.cancel()
        await self.drain()

    async def _fan_out(self, room: str, payload: dict) -> None:
        previous = self._tails.get(room)
        task = asyncio.create_task(self._deliver(room, payload, previous))
        self._tails[room] = task
        self._deliveries.add(task)
        task.add_done_callback(partial(self._delivery_done, room))

    def _delivery_done(self, room: str, task: asyncio.Task) -> None:
        self._deliveries.discard(task)
        if self._tails.get(room) is task:
            self._tails.pop(room, None)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Delivery to %s failed: %s", room, task.exception())

    async def _send(self, ws: WebSocket, payload: dict) -> None:
        await asyncio.wait_for(ws.send_json(payload), timeout=self.send_timeout)

    async def _deliver(self, room: str, payload: dict, previous: asyncio.Task | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        async with self._lock:
            targets = list(self._rooms.get(room, ()))
        if not targets:
            return

        results = await asyncio.gather(*(self._send(ws, payload) for ws in targets), return_exceptions=True)
        disconnected: list[WebSocket] = []
        for ws, result in zip(targets, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.info("Dropping socket from %s after send timeout", room)
            elif isinstance(result, Exception):
                logger.info("Dropping socket from %s after send failure: %s", room, result)
            else:
                continue
            disconnected.append(ws)

        if disconnected:
            async with self._lock:
                for ws in disconnected:
                    self._discard(room, ws)
