"""
Client-side engagement state for one watched video.

Effective value = last authoritative server value + pending optimistic overlay.
Overlay entries are grouped:
- "view": views delta and the local has_viewed flag
- "reaction": likes/dislikes deltas and my_reaction
- "subscription": subscribers delta and is_subscribed
An HTTP confirmation adopts server values and clears its group's overlay.
A broadcast event adopts the absolute counters it carries and clears their deltas
(flags stay pending until the actor's own request settles). rollback() drops a group.
"""
from typing import Any

VIEW = "view"
REACTION = "reaction"
SUBSCRIPTION = "subscription"

_GROUP_FIELDS = {
    VIEW: ("views", "has_viewed"),
    REACTION: ("likes", "dislikes", "my_reaction"),
    SUBSCRIPTION: ("subscribers", "is_subscribed"),
}
_COUNTERS = ("views", "likes", "dislikes", "subscribers")

_EVENT_FIELDS = {
    "view_updated": ("views",),
    "reaction_updated": ("likes", "dislikes"),
    "subscriber_updated": ("subscribers",),
}


class WatchState:
    def __init__(
        self,
        video_id: str,
        *,
        views: int = 0,
        likes: int = 0,
        dislikes: int = 0,
        subscribers: int = 0,
        my_reaction: str | None = None,
        is_subscribed: bool = False,
        has_viewed: bool = False,
    ):
        self.video_id = video_id
        self._server: dict[str, Any] = {
            "views": views,
            "likes": likes,
            "dislikes": dislikes,
            "subscribers": subscribers,
            "my_reaction": my_reaction,
            "is_subscribed": is_subscribed,
            "has_viewed": has_viewed,
        }
        self._pending: dict[str, Any] = {}

    # ---------- effective values ----------

    def _value(self, field: str) -> Any:
        if field in _COUNTERS:
            return max(0, self._server[field] + self._pending.get(field, 0))
        return self._pending.get(field, self._server[field])

    @property
    def views(self) -> int:
        return self._value("views")

    @property
    def likes(self) -> int:
        return self._value("likes")

    @property
    def dislikes(self) -> int:
        return self._value("dislikes")

    @property
    def subscribers(self) -> int:
        return self._value("subscribers")

    @property
    def my_reaction(self) -> str | None:
        return self._value("my_reaction")

    @property
    def is_subscribed(self) -> bool:
        return self._value("is_subscribed")

    @property
    def has_viewed(self) -> bool:
        return self._value("has_viewed")

    def has_pending(self, group: str | None = None) -> bool:
        fields = _GROUP_FIELDS[group] if group else tuple(self._pending)
        return any(f in self._pending for f in fields)

    def snapshot(self) -> dict:
        return {
            "video_id": self.video_id,
            "views": self.views,
            "likes": self.likes,
            "dislikes": self.dislikes,
            "subscribers": self.subscribers,
            "my_reaction": self.my_reaction,
            "is_subscribed": self.is_subscribed,
        }

    # ---------- optimistic actions ----------

    def _bump(self, field: str, delta: int) -> None:
        self._pending[field] = self._pending.get(field, 0) + delta

    def apply_view(self) -> bool:
        """First local watch: +1 views. False if this client already counted a view."""
        if self.has_viewed:
            return False
        self._bump("views", 1)
        self._pending["has_viewed"] = True
        return True

    def apply_reaction(self, desired: str) -> None:
        """Mirror the server's toggle-off / switch rules on the local overlay."""
        if desired not in ("like", "dislike"):
            raise ValueError("Reaction type must be 'like' or 'dislike'")
        current = self.my_reaction
        counter = "likes" if desired == "like" else "dislikes"
        if current == desired:
            self._bump(counter, -1)
            self._pending["my_reaction"] = None
            return
        if current is not None:
            self._bump("likes" if current == "like" else "dislikes", -1)
        self._bump(counter, 1)
        self._pending["my_reaction"] = desired

    def apply_subscription_toggle(self) -> bool:
        """Flip is_subscribed locally; returns the new optimistic value."""
        subscribed = not self.is_subscribed
        self._bump("subscribers", 1 if subscribed else -1)
        self._pending["is_subscribed"] = subscribed
        return subscribed

    # ---------- authoritative values ----------

    def _adopt(self, group: str, values: dict) -> None:
        self._server.update(values)
        for field in _GROUP_FIELDS[group]:
            self._pending.pop(field, None)

    def confirm_view(self, views: int) -> None:
        self._adopt(VIEW, {"views": views, "has_viewed": True})

    def confirm_reaction(self, likes: int, dislikes: int, reaction: str | None) -> None:
        self._adopt(REACTION, {"likes": likes, "dislikes": dislikes, "my_reaction": reaction})

    def confirm_subscription(self, subscribers: int, is_subscribed: bool) -> None:
        self._adopt(SUBSCRIPTION, {"subscribers": subscribers, "is_subscribed": is_subscribed})

    def apply_event(self, event: str, data: dict) -> bool:
        """
        Broadcast snapshot: last write wins per field. Events for other videos or with
        unknown names are ignored (returns False).
        """
        fields = _EVENT_FIELDS.get(event)
        if fields is None or not isinstance(data, dict):
            return False
        if data.get("video_id") not in (None, self.video_id):
            return False
        if any(not isinstance(data.get(f), int) for f in fields):
            return False
        for field in fields:
            self._server[field] = data[field]
            self._pending.pop(field, None)
        return True

    def rollback(self, group: str | None = None) -> None:
        """Drop the optimistic overlay of one group (or all) after a failed request."""
        if group is None:
            self._pending.clear()
            return
        for field in _GROUP_FIELDS[group]:
            self._pending.pop(field, None)
