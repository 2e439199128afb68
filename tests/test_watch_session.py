import asyncio

import pytest

from vidshare.client import VidshareClient, WatchSession
from vidshare.errors import InvalidOperationError, NotFoundError
from vidshare.main import app
from vidshare.models import User
from vidshare.services.broadcast import video_topic
from tests.conftest import make_video, register, upload


@pytest.fixture
def owner_video(client):
    _, headers = register(client, "Owner")
    return upload(client, headers, title="Watched")


def _viewer(client) -> VidshareClient:
    api = VidshareClient(http=client)
    api.register("Viewer", "viewer@example.com", "secret123")
    return api


def test_open_loads_server_state(client, owner_video):
    session = WatchSession.open(_viewer(client), owner_video["_id"])
    assert session.state.snapshot() == {
        "video_id": owner_video["_id"],
        "views": 0,
        "likes": 0,
        "dislikes": 0,
        "subscribers": 0,
        "my_reaction": None,
        "is_subscribed": False,
    }


def test_actions_reconcile_with_server(client, owner_video):
    session = WatchSession.open(_viewer(client), owner_video["_id"])

    assert session.view().views == 1
    assert session.view().views == 1
    assert not session.state.has_pending()

    state = session.react("like")
    assert (state.likes, state.dislikes, state.my_reaction) == (1, 0, "like")
    state = session.react("dislike")
    assert (state.likes, state.dislikes, state.my_reaction) == (0, 1, "dislike")

    state = session.toggle_subscription()
    assert (state.subscribers, state.is_subscribed) == (1, True)
    assert not state.has_pending()

    reopened = WatchSession.open(session.client, owner_video["_id"])
    assert reopened.state.my_reaction == "dislike"
    assert reopened.state.is_subscribed is True


def test_failed_request_rolls_back(client, owner_video):
    api = _viewer(client)
    session = WatchSession.open(api, owner_video["_id"])
    client.delete(
        f"/api/videos/{owner_video['_id']}",
        headers={"Authorization": f"Bearer {_owner_token(client)}"},
    )

    with pytest.raises(NotFoundError):
        session.react("like")
    assert (session.state.likes, session.state.my_reaction) == (0, None)
    assert not session.state.has_pending()

    with pytest.raises(NotFoundError):
        session.toggle_subscription()
    assert session.state.is_subscribed is False


def test_self_subscription_rolls_back(client):
    api = VidshareClient(http=client)
    api.register("Creator", "creator@example.com", "secret123")
    video = upload(client, {"Authorization": f"Bearer {api.token}"})
    session = WatchSession.open(api, video["_id"])

    with pytest.raises(InvalidOperationError):
        session.toggle_subscription()
    assert (session.state.subscribers, session.state.is_subscribed) == (0, False)


def _owner_token(client) -> str:
    res = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "secret123"})
    return res.json()["token"]


def test_listen_adopts_broadcast_counters(live_server, db):
    owner_api = VidshareClient(live_server)
    owner = owner_api.register("Owner", "owner@example.com", "secret123")
    video = make_video(db, db.query(User).filter(User.id == owner["id"]).one())
    video_id = video.id

    watcher = VidshareClient(live_server)
    watcher.register("Watcher", "watcher@example.com", "secret123")
    session = WatchSession.open(watcher, video_id)
    reactor = VidshareClient(live_server)
    reactor.register("Reactor", "reactor@example.com", "secret123")

    async def scenario():
        listener = asyncio.create_task(
            session.listen(live_server.replace("http://", "ws://") + "/ws", max_events=1)
        )
        loop = asyncio.get_event_loop()
        deadline = loop.time() + 5
        while app.state.rooms.member_count(video_topic(video_id)) == 0:
            assert loop.time() < deadline, "watcher never joined the room"
            await asyncio.sleep(0.02)
        await loop.run_in_executor(None, reactor.react, video_id, "dislike")
        return await asyncio.wait_for(listener, timeout=5)

    try:
        assert asyncio.run(scenario()) == 1
    finally:
        for api in (owner_api, watcher, reactor):
            api.close()

    assert (session.state.likes, session.state.dislikes) == (0, 1)
    assert session.state.my_reaction is None
    assert not session.state.has_pending()
