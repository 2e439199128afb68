import os
import socket
import tempfile
import threading
import time

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ.setdefault("VIDEO_UPLOAD_DIR", tempfile.mkdtemp(prefix="vidshare-videos-"))
os.environ.setdefault("THUMBNAIL_UPLOAD_DIR", tempfile.mkdtemp(prefix="vidshare-thumbs-"))

import pytest
import uvicorn
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vidshare.database import Base, get_db
from vidshare.main import app
from vidshare.models import User, Video


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _use_sessions(session_factory) -> None:
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def client(session_factory):
    _use_sessions(session_factory)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class _ThreadedServer(uvicorn.Server):
    def install_signal_handlers(self):
        pass


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def live_server(session_factory):
    """Serve the app on a real port (for WebSocket clients); yields the base URL."""
    _use_sessions(session_factory)
    port = _free_port()
    server = _ThreadedServer(uvicorn.Config(app, host="127.0.0.1", port=port, loop="asyncio", log_level="warning"))
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    deadline = time.monotonic() + 10
    while not server.started:
        if time.monotonic() > deadline:
            raise RuntimeError("uvicorn did not start")
        time.sleep(0.05)
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        server.should_exit = True
        thread.join(timeout=10)
        app.dependency_overrides.clear()


def make_user(db, name: str) -> User:
    user = User(name=name, email=f"{name.lower()}@example.com", password="not-a-real-hash")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_video(db, owner: User, title: str = "Clip") -> Video:
    video = Video(title=title, video_url=f"/uploads/videos/{title.lower()}.mp4", user_id=owner.id)
    db.add(video)
    db.commit()
    db.refresh(video)
    return video


def register(client, name: str) -> tuple[dict, dict]:
    """Register through the API; returns (user json, auth headers)."""
    res = client.post(
        "/api/auth/register",
        json={"name": name, "email": f"{name.lower()}@example.com", "password": "secret123"},
    )
    assert res.status_code == 201, res.text
    data = res.json()
    return data["user"], {"Authorization": f"Bearer {data['token']}"}


def upload(client, headers: dict, title: str = "First clip", thumbnail: bool = False) -> dict:
    files = {"video": ("clip.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4")}
    if thumbnail:
        files["thumbnail"] = ("thumb.png", b"\x89PNG\r\n", "image/png")
    res = client.post(
        "/api/videos/upload",
        data={"title": title, "description": "demo"},
        files=files,
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["video"]
