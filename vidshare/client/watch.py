"""
Watch page controller: optimistic update, request, then reconcile with the server's answer.
On a failed request the group's optimistic overlay is rolled back and the error re-raised.
listen() follows the video's room and feeds broadcast snapshots into the same state.
"""
import json
import logging

import aiohttp
import httpx

from vidshare.client.api import VidshareClient
from vidshare.client.state import REACTION, SUBSCRIPTION, VIEW, WatchState
from vidshare.errors import EngagementError

logger = logging.getLogger(__name__)


class WatchSession:
    def __init__(self, client: VidshareClient, state: WatchState):
        self.client = client
        self.state = state

    @classmethod
    def open(cls, client: VidshareClient, video_id: str) -> "WatchSession":
        """Load the video plus the caller's reaction/subscription state."""
        video = client.get_video(video_id)
        reaction = client.reaction_status(video_id) if client.token else None
        subscription = client.subscription_status(video_id) if client.token else None
        state = WatchState(
            video_id,
            views=video["views"],
            likes=video["likes"],
            dislikes=video["dislikes"],
            subscribers=(subscription or {}).get("subscribers", video.get("authorSubscribers", 0)),
            my_reaction=(reaction or {}).get("reaction"),
            is_subscribed=bool((subscription or {}).get("isSubscribed", False)),
        )
        return cls(client, state)

    def view(self) -> WatchState:
        if not self.state.apply_view():
            return self.state
        try:
            video = self.client.record_view(self.state.video_id)
        except (EngagementError, httpx.HTTPError):
            self.state.rollback(VIEW)
            raise
        self.state.confirm_view(video["views"])
        return self.state

    def react(self, desired: str) -> WatchState:
        self.state.apply_reaction(desired)
        try:
            data = self.client.react(self.state.video_id, desired)
        except (EngagementError, httpx.HTTPError):
            self.state.rollback(REACTION)
            raise
        self.state.confirm_reaction(data["likes"], data["dislikes"], data.get("reaction"))
        return self.state

    def toggle_subscription(self) -> WatchState:
        self.state.apply_subscription_toggle()
        try:
            data = self.client.toggle_subscription(self.state.video_id)
        except (EngagementError, httpx.HTTPError):
            self.state.rollback(SUBSCRIPTION)
            raise
        self.state.confirm_subscription(data["subscribers"], data["isSubscribed"])
        return self.state

    async def listen(self, ws_url: str, max_events: int | None = None) -> int:
        """
        Join the video's room at ws_url (e.g. ws://host/ws) and apply events until the socket
        closes or max_events counter events were applied. Returns the number applied.
        """
        applied = 0
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(ws_url) as ws:
                await ws.send_json({"event": "join_video", "data": self.state.video_id})
                async for msg in ws:
                    if msg.type != aiohttp.WSMsgType.TEXT:
                        break
                    try:
                        payload = json.loads(msg.data)
                    except json.JSONDecodeError:
                        logger.warning("Ignoring non-JSON realtime message")
                        continue
                    if self.state.apply_event(payload.get("event"), payload.get("data")):
                        applied += 1
                        if max_events is not None and applied >= max_events:
                            break
        return applied
