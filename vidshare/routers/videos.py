"""
Videos: upload, list, dashboard, detail, and engagement (view, react, subscribe, delete).
Engagement mutations run the sync DB work in the default executor, then publish a counter
snapshot to the video's room. The HTTP response carries the same authoritative values.
"""
import asyncio
import logging
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from vidshare.auth import get_current_user, get_optional_user
from vidshare.database import get_db
from vidshare.errors import NotFoundError
from vidshare.models.user import User
from vidshare.models.video import Video
from vidshare.schemas.video import (
    DashboardResponse,
    DeleteVideoResponse,
    ReactionRequest,
    ReactionResponse,
    SubscriptionResponse,
    UploadResponse,
    VideoResponse,
)
from vidshare.services import engagement
from vidshare.services.broadcast import (
    REACTION_UPDATED,
    SUBSCRIBER_UPDATED,
    VIEW_UPDATED,
    Broadcaster,
    emit_video_event,
)
from vidshare.services.video_upload import KIND_THUMBNAILS, KIND_VIDEOS, remove_upload, save_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/videos", tags=["videos"])


def get_broadcaster(request: Request) -> Broadcaster | None:
    return getattr(request.app.state, "broadcaster", None)


async def _in_executor(fn, *args):
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, lambda: fn(*args))


def to_video_response(video: Video) -> VideoResponse:
    author = video.user
    return VideoResponse(
        id=video.id,
        title=video.title,
        description=video.description,
        category=video.category or "Other",
        video_url=video.video_url,
        thumbnail_url=video.thumbnail_url,
        views=video.views,
        likes=video.likes,
        dislikes=video.dislikes,
        author_id=video.user_id,
        author_name=author.name if author else "Unknown",
        author_subscribers=author.subscribers if author else 0,
        created_at=video.created_at,
    )


def _load_video(db: Session, video_id: str) -> VideoResponse:
    video = db.query(Video).options(joinedload(Video.user)).filter(Video.id == video_id).first()
    if not video:
        raise NotFoundError("Video not found")
    return to_video_response(video)


# ---------- Catalog ----------


@router.get("", response_model=list[VideoResponse])
def list_videos(db: Session = Depends(get_db)):
    """All videos, newest first."""
    items = db.query(Video).options(joinedload(Video.user)).order_by(Video.created_at.desc()).all()
    return [to_video_response(v) for v in items]


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard_stats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Own uploads with totals for views and likes."""
    items = (
        db.query(Video)
        .options(joinedload(Video.user))
        .filter(Video.user_id == user.id)
        .order_by(Video.created_at.desc())
        .all()
    )
    total_views, total_likes = (
        db.query(func.coalesce(func.sum(Video.views), 0), func.coalesce(func.sum(Video.likes), 0))
        .filter(Video.user_id == user.id)
        .one()
    )
    return DashboardResponse(
        total_videos=len(items),
        total_views=total_views,
        total_likes=total_likes,
        videos=[to_video_response(v) for v in items],
    )


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
def upload_video(
    title: str = Form(""),
    description: str | None = Form(None),
    category: str | None = Form(None),
    video: UploadFile | None = File(None),
    thumbnail: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Upload a video file (field "video") with an optional thumbnail image (field "thumbnail")."""
    title = title.strip()
    if not title:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title is required")
    if video is None or not video.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No video uploaded")

    video_url = save_upload(video, KIND_VIDEOS)
    thumbnail_url = None
    try:
        if thumbnail is not None and thumbnail.filename:
            thumbnail_url = save_upload(thumbnail, KIND_THUMBNAILS)
        item = Video(
            title=title,
            description=(description or "").strip() or None,
            category=(category or "").strip() or "Other",
            video_url=video_url,
            thumbnail_url=thumbnail_url,
            user_id=user.id,
        )
        db.add(item)
        db.commit()
    except Exception:
        db.rollback()
        remove_upload(video_url)
        remove_upload(thumbnail_url)
        raise
    logger.info("Video uploaded: id=%s user=%s", item.id, user.id)
    return UploadResponse(message="Video uploaded successfully", video=_load_video(db, item.id))


@router.get("/{video_id}", response_model=VideoResponse)
def get_video(video_id: str, db: Session = Depends(get_db)):
    return _load_video(db, video_id)


# ---------- Engagement ----------


@router.post("/{video_id}/view", response_model=VideoResponse)
async def record_view(
    video_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster | None = Depends(get_broadcaster),
):
    """Count one view per user per video. Repeats return the video unchanged."""
    actor_id = user.id

    def _do():
        result = engagement.record_view(db, actor_id, video_id)
        return result, _load_video(db, video_id)

    result, video = await _in_executor(_do)
    if result.counted:
        await emit_video_event(broadcaster, video_id, VIEW_UPDATED, {"views": result.views})
    return video


@router.post("/{video_id}/react", response_model=ReactionResponse)
async def set_reaction(
    video_id: str,
    body: ReactionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster | None = Depends(get_broadcaster),
):
    """Like/dislike. Same type again removes it; the other type switches."""
    result = await _in_executor(engagement.set_reaction, db, user.id, video_id, body.type)
    await emit_video_event(
        broadcaster, video_id, REACTION_UPDATED, {"likes": result.likes, "dislikes": result.dislikes}
    )
    return ReactionResponse(likes=result.likes, dislikes=result.dislikes, reaction=result.reaction)


@router.get("/{video_id}/reaction-status", response_model=ReactionResponse)
def get_reaction_status(
    video_id: str,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    result = engagement.get_reaction_status(db, user.id if user else None, video_id)
    return ReactionResponse(likes=result.likes, dislikes=result.dislikes, reaction=result.reaction)


@router.post("/{video_id}/subscribe", response_model=SubscriptionResponse)
async def toggle_subscription(
    video_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster | None = Depends(get_broadcaster),
):
    """
    Toggle subscription to the channel that owns this video.
    The event goes to this video's room only (clients listen per video).
    """
    result = await _in_executor(engagement.toggle_subscription, db, user.id, video_id)
    await emit_video_event(broadcaster, video_id, SUBSCRIBER_UPDATED, {"subscribers": result.subscribers})
    return SubscriptionResponse(subscribers=result.subscribers, is_subscribed=result.is_subscribed)


@router.get("/{video_id}/subscription-status", response_model=SubscriptionResponse | None)
def get_subscription_status(
    video_id: str,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Current subscriber count and whether the caller is subscribed; null without credentials."""
    if user is None:
        return None
    result = engagement.get_subscription_status(db, user.id, video_id)
    return SubscriptionResponse(subscribers=result.subscribers, is_subscribed=result.is_subscribed)


@router.delete("/{video_id}", response_model=DeleteVideoResponse)
def delete_video(
    video_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Owner only. Removes views and reactions with it; local media files are deleted after commit."""
    deleted = engagement.delete_video(db, user.id, video_id)
    remove_upload(deleted.video_url)
    remove_upload(deleted.thumbnail_url)
    return DeleteVideoResponse(message="Video deleted successfully", id=deleted.id)
