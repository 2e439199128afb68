from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload
from vidshare.auth import get_optional_user
from vidshare.database import get_db
from vidshare.models.user import User
from vidshare.models.video import Video
from vidshare.routers.videos import to_video_response
from vidshare.schemas.user import ChannelProfileResponse
from vidshare.schemas.video import SubscriptionResponse, VideoResponse
from vidshare.services import engagement

router = APIRouter(prefix="/api/users", tags=["users"])


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/{user_id}", response_model=ChannelProfileResponse)
def get_user_profile(user_id: str, db: Session = Depends(get_db)):
    """Public channel profile."""
    return ChannelProfileResponse.model_validate(_get_user_or_404(db, user_id))


@router.get("/{user_id}/videos", response_model=list[VideoResponse])
def get_user_videos(user_id: str, db: Session = Depends(get_db)):
    """Channel uploads, newest first."""
    _get_user_or_404(db, user_id)
    items = (
        db.query(Video)
        .options(joinedload(Video.user))
        .filter(Video.user_id == user_id)
        .order_by(Video.created_at.desc())
        .all()
    )
    return [to_video_response(v) for v in items]


@router.get("/{user_id}/subscription-status", response_model=SubscriptionResponse)
def get_channel_subscription_status(
    user_id: str,
    viewer: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Subscriber count for a channel page; is_subscribed is false for anonymous callers."""
    result = engagement.get_channel_subscription_status(db, viewer.id if viewer else None, user_id)
    return SubscriptionResponse(subscribers=result.subscribers, is_subscribed=result.is_subscribed)
