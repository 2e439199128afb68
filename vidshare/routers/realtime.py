"""
Realtime channel. Client -> server: {"event": "join_video" | "leave_video", "data": "<video_id>"}
(data may also be {"video_id": ...} or {"videoId": ...}).
Server -> client: {"event": "view_updated" | "reaction_updated" | "subscriber_updated", "data": {...}},
plus {"event": "joined" | "left", ...} acknowledgements and {"event": "error", ...}.
No auth: rooms only carry public counters. Rooms are left on disconnect.
"""
import json
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from vidshare.services.broadcast import video_topic
from vidshare.services.rooms import RoomManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

JOIN_VIDEO = "join_video"
LEAVE_VIDEO = "leave_video"


def _video_id(data) -> str | None:
    if isinstance(data, dict):
        data = data.get("video_id") or data.get("videoId")
    if isinstance(data, str) and data.strip():
        return data.strip()
    return None


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"event": "error", "data": {"message": message}})


@router.websocket("/ws")
async def realtime_websocket(websocket: WebSocket):
    await websocket.accept()
    rooms: RoomManager | None = getattr(websocket.app.state, "rooms", None)
    if rooms is None:
        await websocket.close(code=1011)
        return

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await _send_error(websocket, "Message must be JSON")
                continue
            if not isinstance(message, dict):
                await _send_error(websocket, "Message must be an object")
                continue
            event = message.get("event")
            video_id = _video_id(message.get("data"))
            if event not in (JOIN_VIDEO, LEAVE_VIDEO):
                await _send_error(websocket, f"Unknown event: {event}")
                continue
            if not video_id:
                await _send_error(websocket, "video_id is required")
                continue
            if event == JOIN_VIDEO:
                await rooms.join(video_topic(video_id), websocket)
                logger.debug("Socket joined %s", video_topic(video_id))
                await websocket.send_json({"event": "joined", "data": {"video_id": video_id}})
            else:
                await rooms.leave(video_topic(video_id), websocket)
                await websocket.send_json({"event": "left", "data": {"video_id": video_id}})
    except WebSocketDisconnect:
        pass
    finally:
        await rooms.leave_all(websocket)
