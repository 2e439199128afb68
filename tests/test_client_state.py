import pytest

from vidshare.client.state import REACTION, SUBSCRIPTION, VIEW, WatchState


def test_view_applied_once():
    state = WatchState("v1", views=4)
    assert state.apply_view() is True
    assert state.views == 5
    assert state.apply_view() is False
    assert state.views == 5

    state.confirm_view(7)
    assert state.views == 7
    assert state.has_viewed is True
    assert not state.has_pending(VIEW)


def test_reaction_toggle_off_and_switch():
    state = WatchState("v1", likes=3, dislikes=1)

    state.apply_reaction("like")
    assert (state.likes, state.dislikes, state.my_reaction) == (4, 1, "like")

    state.apply_reaction("dislike")
    assert (state.likes, state.dislikes, state.my_reaction) == (3, 2, "dislike")

    state.apply_reaction("dislike")
    assert (state.likes, state.dislikes, state.my_reaction) == (3, 1, None)

    with pytest.raises(ValueError):
        state.apply_reaction("love")


def test_confirmation_replaces_overlay():
    state = WatchState("v1", likes=3)
    state.apply_reaction("like")
    state.confirm_reaction(likes=10, dislikes=2, reaction="like")
    assert (state.likes, state.dislikes, state.my_reaction) == (10, 2, "like")
    assert not state.has_pending(REACTION)


def test_counters_never_display_negative():
    state = WatchState("v1", likes=0, my_reaction="like")
    state.apply_reaction("like")
    assert state.likes == 0
    assert state.my_reaction is None


def test_subscription_toggle_and_confirm():
    state = WatchState("v1", subscribers=2)
    assert state.apply_subscription_toggle() is True
    assert (state.subscribers, state.is_subscribed) == (3, True)
    state.confirm_subscription(5, True)
    assert (state.subscribers, state.is_subscribed) == (5, True)
    assert state.apply_subscription_toggle() is False
    assert (state.subscribers, state.is_subscribed) == (4, False)


def test_events_are_last_write_wins():
    state = WatchState("v1", views=1, likes=1)
    assert state.apply_event("view_updated", {"video_id": "v1", "views": 9}) is True
    assert state.views == 9
    assert state.apply_event("reaction_updated", {"video_id": "v1", "likes": 4, "dislikes": 2}) is True
    assert state.apply_event("reaction_updated", {"video_id": "v1", "likes": 3, "dislikes": 2}) is True
    assert (state.likes, state.dislikes) == (3, 2)
    assert state.apply_event("subscriber_updated", {"video_id": "v1", "subscribers": 12}) is True
    assert state.subscribers == 12


def test_events_for_other_videos_or_unknown_are_ignored():
    state = WatchState("v1", views=1)
    assert state.apply_event("view_updated", {"video_id": "v2", "views": 50}) is False
    assert state.apply_event("comment_added", {"video_id": "v1"}) is False
    assert state.apply_event("view_updated", {"video_id": "v1", "views": "many"}) is False
    assert state.apply_event("view_updated", None) is False
    assert state.views == 1


def test_event_keeps_own_reaction_flag_pending():
    state = WatchState("v1", likes=0)
    state.apply_reaction("like")
    state.apply_event("reaction_updated", {"video_id": "v1", "likes": 1, "dislikes": 0})
    assert state.likes == 1
    assert state.my_reaction == "like"
    assert state.has_pending(REACTION)


def test_rollback_restores_server_values():
    state = WatchState("v1", likes=3, subscribers=2)
    state.apply_reaction("like")
    state.apply_subscription_toggle()

    state.rollback(REACTION)
    assert (state.likes, state.my_reaction) == (3, None)
    assert state.is_subscribed is True

    state.rollback()
    assert (state.subscribers, state.is_subscribed) == (2, False)
    assert not state.has_pending()
    assert state.snapshot() == {
        "video_id": "v1",
        "views": 0,
        "likes": 3,
        "dislikes": 0,
        "subscribers": 2,
        "my_reaction": None,
        "is_subscribed": False,
    }
    assert not state.has_pending(SUBSCRIPTION)
